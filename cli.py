"""
CLI entry point for activity_rollup. Wires the pipeline:
load -> normalize -> combine -> resolve identities -> classify -> infer priorities -> group -> report
"""

import argparse
import json
import os
import webbrowser
from datetime import datetime, timezone

from correlate.identity import build_account_map, resolve_activity_actors, resolve_identities
from correlate.linker import apply_priorities
from logconfig import get_logger, set_level
from mapper.cache import MapperCache, MapperType
from mapper.classifier import ActivityClassifier
from normalize.combiner import combine_activities
from normalize.util import normalize_accounts, normalize_activities, normalize_buckets, normalize_identities
from report.renderer import render
from scoring.grouper import group_activities
from scoring.utils import load_settings

logger = get_logger(__name__)


def _load_json_file(path: str, description: str):
    """Attempt to load a JSON file and return the parsed object or None on failure."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read {description} {path}: {e}")
        return None


def _load_optional(path: str, description: str, default):
    """Load an optional input; a missing flag yields default, an unreadable file yields None."""
    if not path:
        return default
    return _load_json_file(path, description)


def _load_inputs(args, parser) -> dict:
    """Load every input file named on the command line; exits through parser.error on unreadable input."""
    specs = [
        ('activities', args.activities, 'activities file', None),
        ('accounts', args.accounts, 'accounts file', {}),
        ('identities', args.identities, 'identities file', []),
        ('initiatives', args.initiatives, 'initiatives file', {}),
        ('launch_items', args.launch_items, 'launch items file', {}),
        ('tickets', args.tickets, 'tickets file', {}),
    ]
    loaded = {}
    for name, path, description, default in specs:
        data = _load_optional(path, description, default)
        if data is None:
            parser.error(f"Could not load {description}: {path}")
        loaded[name] = data
    if not isinstance(loaded['tickets'], dict):
        parser.error('tickets file must contain an object mapping ticket keys to priorities')
    return loaded


def run_pipeline(inputs: dict, settings: dict, top: int = None, combine: bool = True, cache: MapperCache = None):
    """Execute the rollup pipeline over loaded inputs and return (grouped, actors, initiatives, launch_items)."""
    activities = normalize_activities(inputs['activities'])
    if combine:
        activities = combine_activities(activities)

    accounts = normalize_accounts(inputs['accounts'])
    identities = normalize_identities(inputs['identities'])
    account_map = build_account_map(identities)
    actors = resolve_identities(accounts, identities, account_map)
    resolve_activity_actors(activities, account_map)

    initiatives = normalize_buckets(inputs['initiatives'])
    launch_items = normalize_buckets(inputs['launch_items'])
    cache = cache or MapperCache()
    cache.compile(MapperType.INITIATIVE, initiatives)
    cache.compile(MapperType.LAUNCH_ITEM, launch_items)
    classified = ActivityClassifier(cache).apply_all(activities)

    tickets = {str(k): v for k, v in inputs['tickets'].items()}
    prioritized = apply_priorities(activities, tickets, settings.get('ticket_key_pattern'))
    logger.info("Processed %d activities: %d classified, %d prioritized", len(activities), classified, prioritized)

    limit = top if top is not None else settings['top_actors_limit']
    grouped = group_activities(activities, top_actors_limit=limit)
    return grouped, actors, initiatives, launch_items


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def write_output(fmt: str, rendered: str, args):
    """Write output to file or stdout and optionally open HTML in browser."""
    if fmt not in ("html", "md", "csv", "json") or (not args.out_file.strip() and fmt == "json"):
        print(rendered)
        return
    out_path = args.out_file.strip() or f"activity_report_{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}.{fmt}"
    _write_report_file(out_path, fmt, rendered, open_html=(args.open and fmt == "html"))


def _write_report_file(path_base: str, ext: str, content: str, open_html: bool = False):
    """Write the rendered content to a file and optionally open HTML in the browser."""
    out_path = path_base if path_base.lower().endswith(f".{ext}") else f"{path_base}.{ext}"
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' is safe for CSV on Windows and harmless for other formats
    with open(out_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Wrote report to {out_path}")
    if open_html:
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print('Failed to open browser automatically; file saved at', out_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Activity rollup CLI")
    parser.add_argument("--activities", type=str, required=True, help="JSON file with activities (list or id -> activity object)")
    parser.add_argument("--accounts", type=str, default="", help="JSON file with raw accounts (list or id -> account object)")
    parser.add_argument("--identities", type=str, default="", help="JSON file with identities and their linked accounts")
    parser.add_argument("--initiatives", type=str, default="", help="JSON file with initiatives and their activityMapper rules")
    parser.add_argument("--launch-items", type=str, default="", help="JSON file with launch items and their activityMapper rules")
    parser.add_argument("--tickets", type=str, default="", help="JSON object mapping ticket keys to priorities")
    parser.add_argument("--output", type=str, default="text", help="Output format (text, md, csv, html, json)")
    parser.add_argument("--out-file", type=str, default="", help="Output file path (for HTML/CSV/MD/JSON). If omitted a default name will be used")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    parser.add_argument("--top", type=int, default=None, help="Number of top actors kept per artifact-action (overrides settings)")
    parser.add_argument("--no-combine", action="store_true", help="Do not merge successive related activities")
    parser.add_argument("--settings", type=str, default="", help="Path to a settings YAML file (defaults to config/settings.yaml)")
    parser.add_argument("--log-level", type=str, default="", help="Logging level (overrides settings and ACTIVITY_LOG_LEVEL)")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.settings or None)
    set_level(args.log_level or settings['log_level'])
    if args.top is not None and args.top < 0:
        parser.error('--top must be zero or greater')

    inputs = _load_inputs(args, parser)
    grouped, actors, initiatives, launch_items = run_pipeline(inputs, settings, top=args.top, combine=not args.no_combine)

    fmt = (args.output or "text").lower()
    rendered = render(
        grouped,
        fmt=fmt,
        actors=actors,
        initiatives=initiatives,
        launch_items=launch_items,
        generated_at=datetime.now(timezone.utc).isoformat(),
        scope=os.path.basename(args.activities),
    )
    write_output(fmt, rendered, args)


if __name__ == "__main__":
    main()

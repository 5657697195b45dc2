"""
Report renderer: generate text/Markdown/CSV/HTML/JSON summaries from GroupedActivities.
Supports Jinja2-based HTML and Markdown rendering using report/templates/ when available.
"""

from typing import Optional, List, Dict, Any, Mapping
import os
import importlib.util
import json
import io
import csv

from correlate.models import Actor
from normalize.models import Bucket
from scoring.grouper import BucketRollup, GroupedActivities
from scoring.utils import ARTIFACTS, PHASES, TOP_ACTORS_OTHERS_ID, artifact_action_label, artifact_action_sort_key

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), 'templates')


def _actor_name(actor_id: str, actors: Optional[Mapping[str, Actor]]) -> str:
    if actor_id == TOP_ACTORS_OTHERS_ID:
        return 'Others'
    actor = (actors or {}).get(actor_id)
    return actor.name if actor else actor_id


def _bucket_label(bucket_id: str, buckets: Optional[Mapping[str, Bucket]]) -> str:
    bucket = (buckets or {}).get(bucket_id)
    if not bucket:
        return bucket_id
    return bucket.label or bucket.key or bucket_id


def _sorted_top_actor_keys(grouped: GroupedActivities) -> List[str]:
    return sorted(grouped.top_actors.keys(), key=artifact_action_sort_key)


def build_context(
    grouped: GroupedActivities,
    actors: Optional[Mapping[str, Actor]] = None,
    initiatives: Optional[Mapping[str, Bucket]] = None,
    launch_items: Optional[Mapping[str, Bucket]] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> Dict[str, Any]:
    """Return a template-friendly view with display names and labels resolved."""

    def _rollups(rollups: List[BucketRollup], buckets: Optional[Mapping[str, Bucket]]):
        return [dict(r.to_dict(), label=_bucket_label(r.id, buckets)) for r in rollups]

    return {
        'top_actors': [
            {
                'key': key,
                'label': artifact_action_label(key),
                'actors': [dict(a, name=_actor_name(a['id'], actors)) for a in grouped.top_actors[key]],
            }
            for key in _sorted_top_actor_keys(grouped)
        ],
        'priorities': grouped.priorities,
        'initiatives': _rollups(grouped.initiatives, initiatives),
        'launch_items': _rollups(grouped.launch_items, launch_items),
        'artifacts': ARTIFACTS,
        'phases': PHASES,
        'generated_at': generated_at,
        'scope': scope,
    }


def render_text(context: Dict[str, Any]) -> str:
    """Render a simple plain-text summary."""
    lines = ['Top actors']
    for section in context['top_actors']:
        entries = ', '.join(f"{a['name']} ({a['count']})" for a in section['actors'])
        lines.append(f"  {section['label']}: {entries}")
    lines.append('Priorities')
    for p in context['priorities']:
        lines.append(f"  P{p['id']}: {p['count']}")
    for title, rollups in (('Initiatives', context['initiatives']), ('Launch items', context['launch_items'])):
        lines.append(title)
        for r in rollups:
            total = sum(r['artifactCount'].values())
            lines.append(f"  {r['label']}: {total} activities, {r['actorCount']} contributors, {r['effort']:.1f} hours")
    return "\n".join(lines)


def _render_markdown_with_jinja(context: Dict[str, Any]) -> str:
    from jinja2 import Environment, FileSystemLoader

    env = Environment(loader=FileSystemLoader(TEMPLATES_DIR), trim_blocks=True, lstrip_blocks=True)
    return env.get_template('report.md.j2').render(**context)


def render_markdown_fallback(context: Dict[str, Any]) -> str:
    """Markdown without Jinja2."""
    md = ["# Activity Summary\n"]
    md.append("## Top contributors\n")
    for section in context['top_actors']:
        md.append(f"### {section['label']}\n")
        for a in section['actors']:
            md.append(f"- {a['name']}: **{a['count']}**")
        md.append("")
    md.append("## Priorities\n")
    for p in context['priorities']:
        md.append(f"- P{p['id']}: **{p['count']}**")
    for title, rollups in (('Initiatives', context['initiatives']), ('Launch items', context['launch_items'])):
        md.append(f"\n## {title}\n")
        for r in rollups:
            md.append(f"- {r['label']}: **{sum(r['artifactCount'].values())}** activities, "
                      f"**{r['actorCount']}** contributors, **{r['effort']:.2f}** hours")
    return "\n".join(md)


def _render_markdown_choice(context: Dict[str, Any]) -> str:
    if importlib.util.find_spec('jinja2') is not None:
        return _render_markdown_with_jinja(context)
    return render_markdown_fallback(context)


def render_csv(context: Dict[str, Any]) -> str:
    """One row per initiative and launch item with artifact and phase counters."""
    output = io.StringIO()
    writer = csv.writer(output)
    header = ['type', 'id', 'label'] + list(context['artifacts']) + list(context['phases']) + ['actor_count', 'effort']
    writer.writerow(header)
    for kind, rollups in (('initiative', context['initiatives']), ('launch_item', context['launch_items'])):
        for r in rollups:
            writer.writerow(
                [kind, r['id'], r['label']]
                + [r['artifactCount'][a] for a in context['artifacts']]
                + [r['phaseCount'][p] for p in context['phases']]
                + [r['actorCount'], r['effort']]
            )
    return output.getvalue()


def render_html_fallback(context: Dict[str, Any]) -> str:
    """Simple HTML renderer without Jinja2."""
    html = ["<html><body>", "<h1>Activity Summary</h1>"]
    for section in context['top_actors']:
        html.append(f"<h2>{section['label']}</h2>")
        for a in section['actors']:
            html.append(f"<p>{a['name']}: {a['count']}</p>")
    if context['priorities']:
        html.append("<h2>Priorities</h2>")
        for p in context['priorities']:
            html.append(f"<p>P{p['id']}: {p['count']}</p>")
    for title, rollups in (('Initiatives', context['initiatives']), ('Launch items', context['launch_items'])):
        if not rollups:
            continue
        html.append(f"<h2>{title}</h2>")
        for r in rollups:
            html.append(f"<p>{r['label']}: {sum(r['artifactCount'].values())} activities, {r['actorCount']} contributors</p>")
    html.append("</body></html>")
    return "\n".join(html)


def _render_html_choice(context: Dict[str, Any]) -> str:
    """Attempt Jinja2 rendering when available, otherwise fall back to simple HTML renderer."""
    if importlib.util.find_spec('jinja2') is not None:
        from jinja2 import Environment, FileSystemLoader, select_autoescape

        env = Environment(loader=FileSystemLoader(TEMPLATES_DIR), autoescape=select_autoescape(['html', 'xml', 'j2']))
        return env.get_template('report.html.j2').render(**context)
    return render_html_fallback(context)


def render_json(grouped: GroupedActivities, actors: Optional[Mapping[str, Actor]] = None) -> str:
    """Export the rollup (and resolved actors when given) as JSON."""
    data = grouped.to_dict()
    if actors:
        data['actors'] = {actor_id: actor.to_dict() for actor_id, actor in actors.items()}
    return json.dumps(data, indent=2)


def render(
    grouped: GroupedActivities,
    fmt: str = 'text',
    actors: Optional[Mapping[str, Actor]] = None,
    initiatives: Optional[Mapping[str, Bucket]] = None,
    launch_items: Optional[Mapping[str, Bucket]] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    """Main render function."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('json', 'js'):
        return render_json(grouped, actors)
    context = build_context(grouped, actors, initiatives, launch_items, generated_at, scope)
    if fmt_l in ('md', 'markdown'):
        return _render_markdown_choice(context)
    if fmt_l == 'csv':
        return render_csv(context)
    if fmt_l in ('html', 'htm'):
        return _render_html_choice(context)
    return render_text(context)

import json
import webbrowser
from pathlib import Path
from types import SimpleNamespace

from cli import _load_json_file, _load_optional, _write_report_file, build_parser, write_output


def test_write_report_file_creates_file(tmp_path):
    base = str(tmp_path / 'out_report')
    content = 'hello world'
    _write_report_file(base, 'txt', content, open_html=False)
    p = Path(f"{base}.txt")
    assert p.exists()
    assert p.read_text(encoding='utf-8') == content


def test_write_report_file_keeps_extension(tmp_path):
    path = str(tmp_path / 'nested' / 'report.csv')
    _write_report_file(path, 'csv', 'a,b\n')
    assert Path(path).exists()
    assert not Path(f"{path}.csv").exists()


def test_write_report_file_opens_html(monkeypatch, tmp_path):
    # capture calls instead of launching a real browser
    called = {}

    def fake_open(url):
        called['url'] = url
        return True

    monkeypatch.setattr(webbrowser, 'open', fake_open)

    base = str(tmp_path / 'out_report2')
    _write_report_file(base, 'html', '<html><body>ok</body></html>', open_html=True)
    assert Path(f"{base}.html").exists()
    assert called['url'].startswith('file://')


def test_write_output_prints_text_and_json(capsys):
    args = SimpleNamespace(out_file='', open=False)
    write_output('text', 'plain summary', args)
    write_output('json', '{"a": 1}', args)
    out = capsys.readouterr().out
    assert 'plain summary' in out
    assert '{"a": 1}' in out


def test_load_json_file(tmp_path, capsys):
    p = tmp_path / 'data.json'
    p.write_text(json.dumps({'k': 1}), encoding='utf-8')
    assert _load_json_file(str(p), 'data file') == {'k': 1}

    bad = tmp_path / 'bad.json'
    bad.write_text('{not json', encoding='utf-8')
    assert _load_json_file(str(bad), 'data file') is None
    assert 'Failed to read data file' in capsys.readouterr().out


def test_load_optional_defaults():
    assert _load_optional('', 'accounts file', {}) == {}
    assert _load_optional(None, 'identities file', []) == []


def test_parser_defaults():
    args = build_parser().parse_args(['--activities', 'a.json'])
    assert args.output == 'text'
    assert args.top is None
    assert args.no_combine is False
    assert args.launch_items == ''

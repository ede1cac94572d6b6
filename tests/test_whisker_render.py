"""
Tests for the whisker-render command line wrapper.
"""

import io
import json

import pytest

import whisker_render
from whisker_render import load_data, main


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_renders_to_output_file(tmp_path, capsys):
    tmpl = _write(tmp_path / "t.html", "<p>{{name}}</p>")
    data = _write(tmp_path / "d.json", json.dumps({"name": "A & B"}))
    out = tmp_path / "out.html"

    assert main(["--template", tmpl, "--data", data, "--output", str(out)]) == 0
    assert out.read_text(encoding="utf-8") == "<p>A &amp; B</p>"
    assert capsys.readouterr().out == f"Wrote: {out}\n"


def test_non_utf8_input_exits_nonzero(tmp_path, caplog):
    tmpl = tmp_path / "t.txt"
    tmpl.write_bytes(b"{{x}} \xff\xfe")

    assert main(["--template", str(tmpl)]) == 1
    assert "not valid UTF-8" in caplog.text


def test_renders_to_stdout_without_data(tmp_path, capsys):
    tmpl = _write(tmp_path / "t.txt", "static {{missing}}text")

    assert main(["--template", tmpl]) == 0
    assert capsys.readouterr().out == "static text"


def test_custom_delimiters(tmp_path, capsys):
    tmpl = _write(tmp_path / "t.txt", "<%#xs%><%.%> <%/xs%>{{xs}}")
    data = _write(tmp_path / "d.json", '{"xs": ["a", "b"]}')

    assert main(["--template", tmpl, "--data", data, "--delimiters", "<% %>"]) == 0
    assert capsys.readouterr().out == "a b {{xs}}"


def test_data_from_stdin(tmp_path, capsys, monkeypatch):
    tmpl = _write(tmp_path / "t.txt", "{{msg}}")
    monkeypatch.setattr(whisker_render.sys, "stdin", io.StringIO('{"msg": "hi"}'))

    assert main(["--template", tmpl, "--data", "-"]) == 0
    assert capsys.readouterr().out == "hi"


def test_render_error_exits_nonzero(tmp_path, caplog):
    tmpl = _write(tmp_path / "t.txt", "{{#open}}never closed")

    assert main(["--template", tmpl]) == 1
    assert "Could not find closing tag" in caplog.text


def test_invalid_json_exits_nonzero(tmp_path, caplog):
    tmpl = _write(tmp_path / "t.txt", "{{x}}")
    data = _write(tmp_path / "d.json", "{not json")

    assert main(["--template", tmpl, "--data", data]) == 1
    assert "Invalid JSON data" in caplog.text


def test_missing_template_exits_nonzero(tmp_path):
    assert main(["--template", str(tmp_path / "nope.txt")]) == 1


def test_bad_delimiters_is_usage_error(tmp_path):
    tmpl = _write(tmp_path / "t.txt", "x")
    with pytest.raises(SystemExit) as exc:
        main(["--template", tmpl, "--delimiters", "<%"])
    assert exc.value.code == 2


def test_load_data_defaults_to_empty_object():
    assert load_data(None) == {}

"""Tests for the command line front end."""

import json

import pytest

import run
from chat_exporter.assembler import MessageSelection
from chat_exporter.config import ExportConfig, OutputConfig
from conftest import SAVED_PAGE


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("APPDATA", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    (tmp_path / "config.yaml").write_text(
        "timing:\n  scroll:\n    delay: 0\n  clipboard:\n    delay: 0\n    hover_delay: 0\n",
        encoding="utf-8",
    )
    (tmp_path / "chat.html").write_text(SAVED_PAGE, encoding="utf-8")
    return tmp_path


def test_exports_saved_page(workdir, capsys):
    assert run.main(["--html", "chat.html", "--format", "json"]) == 0
    [path] = (workdir / "outputs" / "chat_exports").glob("*.json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["title"] == "Pi facts"
    assert len(data["messages"]) == 4
    out = capsys.readouterr().out
    assert "Success!" in out
    assert "Saved to:" in out
    assert path.name in out


def test_custom_selection_and_name(workdir):
    assert run.main(["--html", "chat.html", "--include", "a2", "--filename", "only-code", "--no-toc"]) == 0
    text = (workdir / "outputs" / "chat_exports" / "only-code.md").read_text(encoding="utf-8")
    assert "print(3.14)" in text
    assert "What is pi?" not in text
    assert "Table of Contents" not in text


def test_nothing_selected_fails(workdir, capsys):
    assert run.main(["--html", "chat.html", "--select", "none"]) == 1
    assert "Please select at least one message to export." in capsys.readouterr().err


def test_missing_page_fails(workdir, capsys):
    assert run.main(["--html", "missing.html"]) == 1
    assert "HTML file not found" in capsys.readouterr().err


def test_source_is_required(workdir):
    with pytest.raises(SystemExit):
        run.main([])


def test_build_request_overrides():
    config = ExportConfig(output=OutputConfig(format="html", toc=True))
    args = run.build_parser().parse_args(["--html", "x", "--mode", "clipboard", "--no-toc", "--select", "ai"])
    request = run.build_request(args, config)
    assert (request.mode, request.format, request.include_toc) == ("clipboard", "html", False)
    assert request.selection == MessageSelection("ai")


def test_quick_ignores_config():
    config = ExportConfig(output=OutputConfig(format="txt", toc=False))
    args = run.build_parser().parse_args(["--html", "x", "--quick"])
    request = run.build_request(args, config)
    assert (request.mode, request.format, request.include_toc) == ("file", "md", True)

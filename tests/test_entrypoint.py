"""Tests for the openwith JSON entry point."""

from __future__ import annotations

import io
import json
import subprocess
import sys
from pathlib import Path

import pytest

from openwith.openwith import RequestError, main, parse_request

REPO_ROOT = Path(__file__).resolve().parent.parent


def run_main(monkeypatch, capsys, request: dict | str) -> tuple[int, dict]:
    """Run main() in-process and return (exit code, parsed stdout)."""
    text = request if isinstance(request, str) else json.dumps(request)
    monkeypatch.setattr(sys, "stdin", io.StringIO(text))
    with pytest.raises(SystemExit) as exc:
        main()
    return exc.value.code, json.loads(capsys.readouterr().out)


@pytest.fixture
def configured(xdg):
    """Enable extension detection through the settings file."""
    Path(xdg.root / "openwith.conf").write_text(
        "set use-extension-based-fallback true\nset use-file-tool false\n"
    )
    return xdg


class TestParseRequest:
    def test_valid(self):
        request = parse_request('{"action": "candidates", "files": ["/a"]}')
        assert request["files"] == ["/a"]

    @pytest.mark.parametrize(
        "text,message",
        [
            ("not json", "invalid JSON"),
            ("[1, 2]", "must be a JSON object"),
            ('{"action": "launch"}', "unknown action"),
            ('{"action": "candidates", "files": "/a"}', "'files' must be a list"),
            ('{"action": "commands", "files": ["/a"]}', "requires a 'candidate'"),
            ('{"action": "settings", "values": [1]}', "'values' must be an object"),
            ('{"action": "settings", "values": {"use-file-tool": "false"}}', "expects true or false"),
            ('{"action": "settings", "values": {"use-file-tool": 0}}', "expects true or false"),
        ],
    )
    def test_invalid(self, text, message):
        with pytest.raises(RequestError, match=message):
            parse_request(text)


class TestMain:
    def test_candidates(self, configured, monkeypatch, capsys):
        configured.add_app("v.desktop", Name="Viewer", Exec="viewer %F", MimeType="image/png;")
        path = configured.make_file("a.png")

        code, out = run_main(monkeypatch, capsys, {"action": "candidates", "files": [path]})

        assert code == 0
        assert out["candidates"] == [
            {"name": "Viewer", "id": "v.desktop", "terminal": False, "multi_file_aware": True}
        ]
        assert out["mime_types"] == ["(image/png)"]
        assert "error" not in out

    def test_no_app_found(self, configured, monkeypatch, capsys):
        path = configured.make_file("a.png")
        code, out = run_main(monkeypatch, capsys, {"action": "candidates", "files": [path]})
        assert code == 0
        assert out["error"] == "no_app_found"

    def test_no_mime_type(self, configured, monkeypatch, capsys):
        missing = str(configured.files / "missing")
        code, out = run_main(monkeypatch, capsys, {"action": "candidates", "files": [missing]})
        assert code == 0
        assert out["error"] == "no_mime_type"
        assert out["mime_types"] == ["(none)"]

    def test_commands(self, configured, monkeypatch, capsys):
        configured.add_app("v.desktop", Name="Viewer", Exec="viewer %f", MimeType="image/png;")
        files = [configured.make_file("a.png"), configured.make_file("b.png")]

        code, out = run_main(
            monkeypatch, capsys, {"action": "commands", "files": files, "candidate": "v.desktop"}
        )

        assert code == 0
        assert out["commands"] == [f"viewer {files[0]}", f"viewer {files[1]}"]

    def test_details(self, configured, monkeypatch, capsys):
        configured.add_app("v.desktop", Name="Viewer", Exec="viewer %f", MimeType="image/png;")
        path = configured.make_file("a.png")

        code, out = run_main(
            monkeypatch, capsys, {"action": "details", "files": [path], "candidate": "v.desktop"}
        )

        assert code == 0
        labels = [d["label"] for d in out["details"]]
        assert labels[:3] == ["Desktop file", "Source", "Name ="]

    def test_unknown_candidate(self, configured, monkeypatch, capsys):
        path = configured.make_file("a.png")
        code, out = run_main(
            monkeypatch, capsys, {"action": "commands", "files": [path], "candidate": "x.desktop"}
        )
        assert code == 0
        assert out["error"] == "unknown_candidate"

    def test_mimetypes(self, configured, monkeypatch, capsys):
        files = [configured.make_file("a.png"), configured.make_file("b.txt")]
        code, out = run_main(monkeypatch, capsys, {"action": "mimetypes", "files": files})
        assert code == 0
        assert out["mime_types"] == ["(image/png)", "(text/plain)"]

    def test_settings_update_and_save(self, configured, monkeypatch, capsys):
        code, out = run_main(
            monkeypatch,
            capsys,
            {"action": "settings", "values": {"sort-alphabetically": True}, "save": True},
        )
        assert code == 0
        assert out["saved"] is True
        values = {s["key"]: s["value"] for s in out["settings"]}
        assert values["sort-alphabetically"] is True
        assert values["use-extension-based-fallback"] is True
        assert "set sort-alphabetically true" in (configured.root / "openwith.conf").read_text()

    def test_string_setting_value_rejected(self, configured, monkeypatch, capsys):
        code, out = run_main(
            monkeypatch, capsys, {"action": "settings", "values": {"use-mimeinfo-cache": "false"}, "save": True}
        )
        assert code == 2
        assert out["error"] == "bad_request"
        assert "set use-mimeinfo-cache" not in (configured.root / "openwith.conf").read_text()

    def test_bad_request(self, configured, monkeypatch, capsys):
        code, out = run_main(monkeypatch, capsys, "{broken")
        assert code == 2
        assert out["error"] == "bad_request"


class TestStyle:
    def test_source_tree_is_clean(self):
        result = subprocess.run(
            [sys.executable, str(REPO_ROOT / "tools" / "check_style.py"), str(REPO_ROOT / "src")],
            capture_output=True,
            text=True,
            timeout=30,
        )
        assert result.returncode == 0, result.stdout

    def test_banned_constructions_reported(self, tmp_path):
        bad = tmp_path / "bad.py"
        bad.write_text("import shlex\nimport subprocess\nsubprocess.run('ls', shell=True)\n")
        result = subprocess.run(
            [sys.executable, str(REPO_ROOT / "tools" / "check_style.py"), str(tmp_path)],
            capture_output=True,
            text=True,
            timeout=30,
        )
        assert result.returncode == 1
        assert "import shlex" in result.stdout
        assert "shell=True" in result.stdout

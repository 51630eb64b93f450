"""Tests for the cmdify-sync command-line interface."""

import json
from unittest.mock import Mock, patch

import pytest

from cmdify_sync.cli import build_parser, main, prompt_conflict, prompt_import_mode
from cmdify_sync.storage import CommandStore
from cmdify_sync.sync.models import ConflictResolution, SyncConflict, SyncConflictType
from cmdify_sync.sync.state import SyncState


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Isolated data dir, HOME and CWD; no token; logging setup stubbed."""
    data_dir = tmp_path / "data"
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("CMDIFY_DATA_DIR", str(data_dir))
    monkeypatch.chdir(work)
    for name in (
        "CMDIFY_CONFIG",
        "CMDIFY_GITHUB_TOKEN",
        "GITHUB_TOKEN",
        "CMDIFY_CONFLICT_RESOLUTION",
        "CMDIFY_API_URL",
        "CMDIFY_HTTP_TIMEOUT",
        "CMDIFY_CONNECT_TIMEOUT",
        "CMDIFY_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    with patch("cmdify_sync.cli.setup_logging"):
        yield data_dir


def _answers(monkeypatch, *answers):
    it = iter(answers)

    def fake_input(prompt=""):
        try:
            return next(it)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr("builtins.input", fake_input)


def _response(status, data=None):
    response = Mock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.json.return_value = data
    return response


class TestParser:
    """Tests for argument parsing."""

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_import_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["import", "x.json", "--merge", "--replace"])

    def test_add_tags(self):
        args = build_parser().parse_args(
            ["add", "list", "ls", "--tag", "fs", "--tag", "basic"]
        )
        assert args.tag == ["fs", "basic"]
        assert args.command_text == "ls"


class TestLocalCommands:
    """Subcommands that never touch the network."""

    def test_add_and_list(self, env, capsys):
        assert main(["add", "list files", "ls -la", "--tag", "fs"]) == 0
        assert main(["list"]) == 0
        out = capsys.readouterr().out
        assert "list files  [fs]" in out
        assert "    ls -la" in out

    def test_list_empty(self, env, capsys):
        assert main(["list"]) == 0
        assert "No commands." in capsys.readouterr().out

    def test_add_empty_command_fails(self, env, capsys):
        assert main(["add", "nothing", "  "]) == 1
        assert "cannot be empty" in capsys.readouterr().err

    def test_delete(self, env, capsys):
        main(["add", "p", "pwd"])
        cmd_id = CommandStore(env).visible()[0].id
        assert main(["delete", cmd_id]) == 0
        assert CommandStore(env).visible() == []

    def test_delete_unknown_fails(self, env, capsys):
        assert main(["delete", "nope"]) == 1
        assert "Command not found: nope" in capsys.readouterr().err


class TestFileCommands:
    """export / import."""

    def test_export_empty(self, env, tmp_path, capsys):
        assert main(["export", str(tmp_path / "out.json")]) == 0
        assert "No commands to export." in capsys.readouterr().out
        assert not (tmp_path / "out.json").exists()

    def test_export_and_import_merge(self, env, tmp_path, monkeypatch, capsys):
        main(["add", "p", "pwd"])
        target = tmp_path / "out.json"
        assert main(["export", str(target)]) == 0
        assert json.loads(target.read_text("utf-8"))["commands"][0]["command"] == "pwd"

        monkeypatch.setenv("CMDIFY_DATA_DIR", str(tmp_path / "other"))
        assert main(["import", str(target), "--merge"]) == 0
        assert [c.command for c in CommandStore(tmp_path / "other").visible()] == [
            "pwd"
        ]

    def test_import_asks_for_mode(self, env, tmp_path, monkeypatch):
        main(["add", "p", "pwd"])
        target = tmp_path / "out.json"
        main(["export", str(target)])
        main(["add", "q", "whoami"])
        _answers(monkeypatch, "replace")
        assert main(["import", str(target)]) == 0
        assert [c.command for c in CommandStore(env).visible()] == ["pwd"]

    def test_import_cancel(self, env, tmp_path, monkeypatch, capsys):
        main(["add", "p", "pwd"])
        target = tmp_path / "out.json"
        main(["export", str(target)])
        _answers(monkeypatch, "c")
        assert main(["import", str(target)]) == 0
        assert "Cancelled" in capsys.readouterr().out

    def test_import_bad_file(self, env, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text("[]", encoding="utf-8")
        assert main(["import", str(bad), "--replace"]) == 1
        assert "Invalid command file format" in capsys.readouterr().err


class TestRemoteCommands:
    """sync / link / unlink with HTTP mocked."""

    def test_sync_requires_token(self, env, capsys):
        assert main(["sync"]) == 1
        assert "GitHub token not found" in capsys.readouterr().err

    @patch("cmdify_sync.core.client.requests.Session.request")
    def test_first_sync_creates_gist(self, mock_request, env, monkeypatch, capsys):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "tok")
        main(["add", "p", "pwd"])

        def respond(method, url, **kwargs):
            if method == "GET":
                return _response(200, [])
            return _response(201, {"id": "g9"})

        mock_request.side_effect = respond
        assert main(["sync", "--policy", "keep_local"]) == 0

        out = capsys.readouterr().out
        assert "Pushed to gist g9 (syncVersion 1)" in out
        assert [c[0][0] for c in mock_request.call_args_list] == ["GET", "POST"]

    @patch("cmdify_sync.core.client.requests.Session.request")
    def test_sync_json_report(self, mock_request, env, monkeypatch, capsys):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "tok")
        mock_request.side_effect = lambda method, url, **kw: (
            _response(200, []) if method == "GET" else _response(201, {"id": "g1"})
        )
        assert main(["sync", "--dry-run", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["dry_run"] is True
        assert data["pushed"] is False

    @patch("cmdify_sync.core.client.requests.Session.request")
    def test_transport_error_exits_1(self, mock_request, env, monkeypatch, capsys):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "tok")
        mock_request.side_effect = lambda method, url, **kw: (
            _response(200, []) if method == "GET" else _response(500)
        )
        assert main(["push"]) == 1
        assert "GitHub API error: 500" in capsys.readouterr().err

    @patch("cmdify_sync.core.client.requests.Session.request")
    def test_link_and_unlink(self, mock_request, env, monkeypatch, capsys):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "tok")
        mock_request.return_value = _response(
            200, [{"id": "g5", "files": {"cmdify-commands.json": {}}}]
        )
        assert main(["link"]) == 0
        assert main(["unlink"]) == 0
        assert main(["unlink"]) == 0
        out = capsys.readouterr().out
        assert "Linked to gist g5" in out
        assert "Unlinked from gist g5" in out
        assert "Not linked to a gist." in out

    def test_unlink_needs_no_token(self, env, capsys):
        """unlink only edits local state, so it runs without a token."""
        SyncState(env).set_gist_id("g7")
        assert main(["unlink"]) == 0
        assert "Unlinked from gist g7" in capsys.readouterr().out
        assert SyncState(env).get_gist_id() is None

    @patch("cmdify_sync.core.client.requests.Session.request")
    def test_link_not_found(self, mock_request, env, monkeypatch):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "tok")
        mock_request.return_value = _response(200, [])
        assert main(["link"]) == 1


class TestLogging:
    """Logging setup from flags and environment."""

    def test_debug_env_var_enables_debug_logging(self, env, monkeypatch):
        """CMDIFY_DEBUG turns on debug logging without --debug."""
        monkeypatch.setenv("CMDIFY_DEBUG", "1")
        with patch("cmdify_sync.cli.setup_logging") as mock_setup:
            assert main(["list"]) == 0
        assert mock_setup.call_args[1]["debug"] is True

    def test_debug_off_by_default(self, env):
        """Without --debug or CMDIFY_DEBUG, logging is not in debug mode."""
        with patch("cmdify_sync.cli.setup_logging") as mock_setup:
            assert main(["list"]) == 0
        assert mock_setup.call_args[1]["debug"] is False


class TestConfigErrors:
    """Configuration problems exit with code 1."""

    def test_invalid_yaml_section(self, env, capsys):
        cfg = env.parent / "work" / ".cmdify" / "config.yml"
        cfg.parent.mkdir(parents=True)
        cfg.write_text("gist:\n  timeout: never\n", encoding="utf-8")
        assert main(["list"]) == 1
        assert "Invalid configuration file" in capsys.readouterr().err


class TestPrompts:
    """Interactive terminal prompts."""

    @pytest.fixture
    def conflict(self, make_command):
        return SyncConflict(
            command_id="x",
            local=make_command(id="x", command="a"),
            remote=make_command(id="x", command="b"),
            type=SyncConflictType.MODIFIED,
        )

    def test_prompt_conflict_choice(self, conflict, monkeypatch, capsys):
        _answers(monkeypatch, "what", "b")
        assert prompt_conflict(conflict) is ConflictResolution.KEEP_BOTH
        assert "Please answer" in capsys.readouterr().out

    def test_prompt_conflict_quit(self, conflict, monkeypatch):
        _answers(monkeypatch, "q")
        assert prompt_conflict(conflict) is None

    def test_prompt_conflict_eof(self, conflict, monkeypatch):
        _answers(monkeypatch)
        assert prompt_conflict(conflict) is None

    def test_prompt_import_mode(self, monkeypatch):
        _answers(monkeypatch, "m")
        assert prompt_import_mode(2) == "merge"
        _answers(monkeypatch, "")
        assert prompt_import_mode(2) is None

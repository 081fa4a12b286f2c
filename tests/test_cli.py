# ABOUTME: Integration tests for the mcpp command line
# ABOUTME: Runs main() against a temporary home and project directory
import json
import shutil

import pytest

from mcpp import __version__
from mcpp.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_FATAL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    main,
    split_ids,
)


@pytest.fixture
def home(tmp_path, monkeypatch):
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("HOME", str(path))
    # No claude or doppler CLI on this machine as far as tests are concerned
    monkeypatch.setattr(shutil, "which", lambda *args, **kwargs: None)
    return path


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "proj"
    path.mkdir()
    return path


def run(project_dir, *argv):
    return main(["-C", str(project_dir), *argv])


def test_split_ids():
    assert split_ids(["cursor,warp", " windsurf ", ""]) == ["cursor", "warp", "windsurf"]
    assert split_ids(None) == []


class TestGlobalOptions:
    """Tests for options that do not need a project."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == EXIT_SUCCESS
        assert "usage" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestInitCommand:
    """Tests for `mcpp init`."""

    def test_init_default(self, home, project_dir, capsys):
        assert run(project_dir, "init") == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "Done: 1/1 IDE(s) configured" in out
        state = json.loads((project_dir / ".mcp" / "config.json").read_text())
        assert state["servers"] == ["filesystem", "sequential-thinking"]
        assert (home / ".cursor" / "mcp.json").exists()

    def test_init_twice_is_config_error(self, home, project_dir, capsys):
        run(project_dir, "init")
        assert run(project_dir, "init") == EXIT_CONFIG_ERROR
        assert "--force" in capsys.readouterr().out

    def test_dry_run(self, home, project_dir, capsys):
        assert run(project_dir, "init", "--ides", "cursor,warp", "--dry-run") == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "Dry run" in out
        assert '"mcpServers"' in out
        assert "Project state that would be written" in out
        assert not (project_dir / ".mcp").exists()
        assert not (home / ".cursor").exists()

    def test_unknown_server_warning_printed(self, home, project_dir, capsys):
        assert run(project_dir, "init", "--servers", "filesystem,bogus") == EXIT_SUCCESS
        assert "Warning: Unknown servers ignored: bogus" in capsys.readouterr().out

    def test_env_flag(self, home, project_dir):
        run(project_dir, "init", "--servers", "github", "--env", "GITHUB_TOKEN=ghp_cli")

        entry = json.loads((home / ".cursor" / "mcp.json").read_text())["mcpServers"]["github"]
        assert entry["env"] == {"GITHUB_TOKEN": "ghp_cli"}

    def test_missing_env_reported(self, home, project_dir, capsys):
        run(project_dir, "init", "--servers", "n8n")

        out = capsys.readouterr().out
        assert "Missing environment variables:" in out
        assert "n8n: N8N_API_KEY, N8N_BASE_URL" in out

    def test_write_failure_is_partial(self, home, project_dir, capsys):
        (home / ".cursor" / "mcp.json").mkdir(parents=True)

        assert run(project_dir, "init", "--ides", "cursor,warp") == EXIT_PARTIAL
        assert "Done with errors" in capsys.readouterr().out
        assert (home / ".warp" / "mcp_config.json").exists()


class TestProjectCommands:
    """Tests for add, remove, sync and list."""

    def test_add_requires_init(self, home, project_dir, capsys):
        assert run(project_dir, "add", "github") == EXIT_CONFIG_ERROR
        assert "mcpp init" in capsys.readouterr().out

    def test_malformed_state_is_fatal(self, home, project_dir, capsys):
        state = project_dir / ".mcp" / "config.json"
        state.parent.mkdir()
        state.write_text("not json")

        assert run(project_dir, "sync") == EXIT_FATAL
        assert state.read_text() == "not json"

    def test_add_remove_list(self, home, project_dir, capsys):
        run(project_dir, "init")
        assert run(project_dir, "add", "context7") == EXIT_SUCCESS
        assert run(project_dir, "remove", "filesystem") == EXIT_SUCCESS
        capsys.readouterr()

        assert run(project_dir, "list") == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "context7" in out
        assert "filesystem" not in out
        servers = json.loads((home / ".cursor" / "mcp.json").read_text())["mcpServers"]
        assert list(servers) == ["sequential-thinking", "context7"]

    def test_sync_new_ide(self, home, project_dir):
        run(project_dir, "init")
        assert run(project_dir, "sync", "--ides", "windsurf") == EXIT_SUCCESS
        assert (home / ".codeium" / "windsurf" / "mcp_config.json").exists()

    def test_list_available(self, home, project_dir, capsys):
        assert run(project_dir, "list", "--available") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "crawl4ai-rag" in out
        assert "Total: 9 server(s)" in out

    def test_list_bundles(self, home, project_dir, capsys):
        assert run(project_dir, "list", "--bundles") == EXIT_SUCCESS
        assert "essential" in capsys.readouterr().out

    def test_migrate_nothing_found(self, home, project_dir, capsys):
        assert run(project_dir, "migrate") == EXIT_SUCCESS
        assert "No existing MCP configuration" in capsys.readouterr().out


class TestBundleCommand:
    """Tests for `mcpp bundle`."""

    def test_invalid_name(self, home, project_dir, capsys):
        assert run(project_dir, "bundle", "create", "my bundle", "--servers", "github") == EXIT_CONFIG_ERROR
        assert "cannot contain spaces" in capsys.readouterr().out

    def test_builtin_name(self, home, project_dir):
        assert run(project_dir, "bundle", "create", "essential", "--servers", "github") == EXIT_CONFIG_ERROR

    def test_create_list_remove(self, home, project_dir, capsys):
        assert run(project_dir, "bundle", "create", "mine", "--servers", "github,context7") == EXIT_SUCCESS
        assert run(project_dir, "bundle", "list") == EXIT_SUCCESS
        assert "servers: github, context7" in capsys.readouterr().out

        assert run(project_dir, "bundle", "remove", "mine") == EXIT_SUCCESS
        assert run(project_dir, "bundle", "remove", "mine") == EXIT_CONFIG_ERROR

    def test_unparsable_registry_left_untouched(self, home, project_dir, capsys):
        registry = home / ".mcp-project-manager" / "custom-bundles.json"
        registry.parent.mkdir()
        registry.write_text("{not json")

        assert run(project_dir, "bundle", "create", "mine", "--servers", "github") == EXIT_FATAL
        assert "custom bundles file" in capsys.readouterr().out
        assert registry.read_text() == "{not json"

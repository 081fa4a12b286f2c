# ABOUTME: Tests for the Claude Code adapter
# ABOUTME: The claude CLI is mocked; the setup script is checked as text
from unittest.mock import MagicMock, patch

import pytest

from mcpp.catalog import builtin_ide_targets
from mcpp.merge import WritePlan
from mcpp.models import LaunchSpec, RenderedConfig
from mcpp.platforms.claude_code import (
    ClaudeCodeAdapter,
    CommandPlan,
    build_add_command,
    build_remove_command,
    render_script,
)


@pytest.fixture
def target(tmp_path):
    return {t.id: t for t in builtin_ide_targets(tmp_path)}["claude-code"]


def _rendered():
    rendered = RenderedConfig(target_id="claude-code")
    rendered.servers["filesystem"] = LaunchSpec("npx", ["fs@1"])
    rendered.servers["github"] = LaunchSpec("npx", ["gh@1"], {"GITHUB_TOKEN": "ghp x"})
    return rendered


def _completed(returncode=0, stdout="", stderr=""):
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestCommands:
    """Tests for command builders."""

    def test_add_command_with_env(self):
        cmd = build_add_command("github", LaunchSpec("npx", ["gh@1"], {"GITHUB_TOKEN": "t"}))
        assert cmd == [
            "claude", "mcp", "add", "--scope", "user", "github",
            "-e", "GITHUB_TOKEN=t", "--", "npx", "gh@1",
        ]

    def test_remove_command(self):
        assert build_remove_command("github") == ["claude", "mcp", "remove", "--scope", "user", "github"]


class TestRenderScript:
    """Tests for render_script()."""

    def test_script_content(self):
        script = render_script(_rendered(), "demo", [])
        lines = script.splitlines()

        assert lines[0] == "#!/bin/sh"
        assert "demo" in lines[1]
        assert "claude mcp remove --scope user filesystem >/dev/null 2>&1 || true" in lines
        assert "claude mcp add --scope user filesystem -- npx fs@1" in lines
        assert "claude mcp add --scope user github -e 'GITHUB_TOKEN=ghp x' -- npx gh@1" in lines
        assert "# Removed from project:" not in script

    def test_removed_servers_section(self):
        script = render_script(_rendered(), "demo", ["webflow", "github"])
        tail = script.split("# Removed from project:\n", 1)[1]
        assert tail == "claude mcp remove --scope user webflow >/dev/null 2>&1 || true\n"


class TestCommandPlan:
    """Tests for CommandPlan.run()."""

    def test_content_lists_commands(self):
        plan = CommandPlan(
            target_id="claude-code",
            add={"filesystem": build_add_command("filesystem", LaunchSpec("npx", ["fs@1"]))},
            remove=["webflow"],
        )
        assert plan.content == (
            "claude mcp remove --scope user webflow\n"
            "claude mcp add --scope user filesystem -- npx fs@1\n"
        )

    def test_run_success(self):
        plan = CommandPlan(
            target_id="claude-code",
            add={"filesystem": build_add_command("filesystem", LaunchSpec("npx", ["fs@1"]))},
        )
        with patch("mcpp.platforms.claude_code.subprocess.run", return_value=_completed()) as mock_run:
            assert plan.run() == []
        # remove, then add
        assert mock_run.call_count == 2

    def test_run_records_failed_add(self):
        plan = CommandPlan(
            target_id="claude-code",
            add={"filesystem": build_add_command("filesystem", LaunchSpec("npx", ["fs@1"]))},
        )
        results = [_completed(1, stderr="not found"), _completed(1, stderr="boom")]
        with patch("mcpp.platforms.claude_code.subprocess.run", side_effect=results):
            errors = plan.run()
        assert errors == ["could not configure server 'filesystem': boom"]


class TestClaudeCodeAdapter:
    """Tests for ClaudeCodeAdapter."""

    def test_plan_writes_script_and_commands(self, target, tmp_path):
        adapter = ClaudeCodeAdapter(target)
        with patch("mcpp.platforms.claude_code.shutil.which", return_value=None):
            plans = adapter.plan(_rendered(), tmp_path, "demo", ["webflow"])

        script, commands = plans
        assert isinstance(script, WritePlan)
        assert script.path == tmp_path / ".mcp" / "claude-code-setup.sh"
        assert script.executable is True
        assert isinstance(commands, CommandPlan)
        assert commands.available is False
        assert list(commands.add) == ["filesystem", "github"]
        assert commands.remove == ["webflow"]

    def test_load_server_ids(self, target):
        output = (
            "Checking MCP server health...\n"
            "\n"
            "filesystem: npx fs@1 - ✓ Connected\n"
            "github: npx gh@1 - ✗ Failed to connect\n"
        )
        adapter = ClaudeCodeAdapter(target)
        with patch("mcpp.platforms.claude_code.shutil.which", return_value="/usr/bin/claude"), \
             patch("mcpp.platforms.claude_code.subprocess.run", return_value=_completed(stdout=output)):
            assert adapter.load_server_ids() == ["filesystem", "github"]

    def test_load_server_ids_cli_missing(self, target):
        adapter = ClaudeCodeAdapter(target)
        with patch("mcpp.platforms.claude_code.shutil.which", return_value=None):
            assert adapter.load_server_ids() == []

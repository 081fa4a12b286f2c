# Claude Code platform adapter
import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from mcpp.config import get_project_config_dir
from mcpp.merge import WritePlan, plan_text_write
from mcpp.models import IDETarget, LaunchSpec, RenderedConfig

logger = logging.getLogger(__name__)

# ABOUTME: Upper bound for a single claude CLI call
CLI_TIMEOUT = 30  # seconds

# ABOUTME: Scope passed to every `claude mcp` call
CLAUDE_SCOPE = "user"


def build_add_command(name: str, spec: LaunchSpec, executable: str = "claude") -> list[str]:
    """argv that registers one server with the claude CLI.

    Examples:
        >>> build_add_command("filesystem", LaunchSpec("npx", ["pkg@1"]))
        ['claude', 'mcp', 'add', '--scope', 'user', 'filesystem', '--', 'npx', 'pkg@1']
    """
    cmd = [executable, "mcp", "add", "--scope", CLAUDE_SCOPE, name]
    for key, value in (spec.env or {}).items():
        cmd += ["-e", f"{key}={value}"]
    return cmd + ["--", spec.command, *spec.args]


def build_remove_command(name: str, executable: str = "claude") -> list[str]:
    return [executable, "mcp", "remove", "--scope", CLAUDE_SCOPE, name]


def render_script(rendered: RenderedConfig, project_name: str, removed: list[str]) -> str:
    """Express a rendered config as an idempotent shell script.

    ABOUTME: Each server is removed (errors ignored) and then added, so
    ABOUTME: re-running the script converges to the same state
    ABOUTME: Explicitly removed servers get a remove line only
    """
    lines = [
        "#!/bin/sh",
        f"# Claude Code MCP configuration for {project_name}",
        "# Generated by mcpp. Safe to re-run: each server is removed, then added.",
        "",
    ]

    for name, spec in rendered.servers.items():
        lines.append(f"{shlex.join(build_remove_command(name))} >/dev/null 2>&1 || true")
        lines.append(shlex.join(build_add_command(name, spec)))

    dropped = [name for name in removed if name not in rendered.servers]
    if dropped:
        lines.append("")
        lines.append("# Removed from project:")
        for name in dropped:
            lines.append(f"{shlex.join(build_remove_command(name))} >/dev/null 2>&1 || true")

    return "\n".join(lines) + "\n"


@dataclass
class CommandPlan:
    """CLI invocations that configure the user-level Claude Code setup.

    ABOUTME: Planned identically for dry-run and real runs
    ABOUTME: available is False when the claude CLI is not installed
    """
    target_id: str
    add: dict[str, list[str]] = field(default_factory=dict)
    remove: list[str] = field(default_factory=list)
    available: bool = True
    executable: str = "claude"
    scope: str = "user"

    @property
    def content(self) -> str:
        """Commands as they would be run, one per line."""
        lines = [shlex.join(build_remove_command(name, self.executable)) for name in self.remove]
        lines += [shlex.join(cmd) for cmd in self.add.values()]
        return "\n".join(lines) + ("\n" if lines else "")

    def run(self) -> list[str]:
        """Run the planned commands.

        ABOUTME: A failing remove is ignored (server may not exist yet)
        ABOUTME: A failing add is recorded and the next server is tried

        Returns:
            Error messages, one per server that could not be configured
        """
        errors: list[str] = []

        for name in self.remove:
            _run_quiet(build_remove_command(name, self.executable))

        for name, cmd in self.add.items():
            _run_quiet(build_remove_command(name, self.executable))
            ok, message = _run_quiet(cmd)
            if not ok:
                errors.append(f"could not configure server '{name}': {message}")

        return errors


def _run_quiet(cmd: list[str]) -> tuple[bool, str]:
    try:
        completed = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=CLI_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        return False, f"timed out after {CLI_TIMEOUT} seconds"
    except OSError as e:
        return False, str(e)

    if completed.returncode != 0:
        return False, (completed.stderr or completed.stdout).strip()[:200]
    return True, ""


class ClaudeCodeAdapter:
    """Adapter for Claude Code (configured via the `claude mcp` CLI).

    ABOUTME: Project copy is .mcp/claude-code-setup.sh (executable)
    ABOUTME: User-level config is applied by running the same commands
    """

    def __init__(self, target: IDETarget, executable: str = "claude") -> None:
        self._target = target
        self._executable = executable

    @property
    def name(self) -> str:
        return self._target.id

    @property
    def target(self) -> IDETarget:
        return self._target

    def is_available(self) -> bool:
        """True if the claude CLI is on PATH."""
        return shutil.which(self._executable) is not None

    def load_server_ids(self) -> list[str]:
        """Server names reported by `claude mcp list`.

        ABOUTME: Lines look like "name: command - status"
        ABOUTME: Returns [] if the CLI is missing or fails
        """
        if not self.is_available():
            return []

        try:
            completed = subprocess.run(
                [self._executable, "mcp", "list"],
                capture_output=True,
                text=True,
                timeout=CLI_TIMEOUT,
                check=True,
            )
        except (subprocess.SubprocessError, OSError) as e:
            logger.debug(f"claude mcp list failed: {e}")
            return []

        names: list[str] = []
        for line in completed.stdout.splitlines():
            if ":" not in line:
                continue
            name = line.split(":", 1)[0].strip()
            if name and name not in names:
                names.append(name)
        return names

    def plan(
        self,
        rendered: RenderedConfig,
        project_dir: Path,
        project_name: str,
        removed: list[str],
    ) -> list[WritePlan | CommandPlan]:
        """Plan the project script and the CLI invocations."""
        plans: list[WritePlan | CommandPlan] = []

        if self._target.supports_project_config and self._target.project_filename:
            plans.append(plan_text_write(
                target_id=self.name,
                scope="project",
                path=get_project_config_dir(project_dir) / self._target.project_filename,
                content=render_script(rendered, project_name, removed),
                executable=True,
            ))

        plans.append(CommandPlan(
            target_id=self.name,
            add={
                name: build_add_command(name, spec, self._executable)
                for name, spec in rendered.servers.items()
            },
            remove=[name for name in removed if name not in rendered.servers],
            available=self.is_available(),
            executable=self._executable,
        ))

        return plans

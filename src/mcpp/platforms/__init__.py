# IDE target adapter registry
from pathlib import Path
from typing import Protocol, runtime_checkable

from mcpp.merge import WritePlan
from mcpp.models import IDETarget, RenderedConfig
from mcpp.platforms.base import FileTargetAdapter
from mcpp.platforms.claude_code import ClaudeCodeAdapter, CommandPlan

# ABOUTME: A planned change for one target: a file write or CLI invocations
Plan = WritePlan | CommandPlan


@runtime_checkable
class TargetAdapter(Protocol):
    """Protocol for IDE target adapters.

    ABOUTME: plan() must be side-effect free; applying happens in sync
    """

    @property
    def name(self) -> str:
        """Target id."""
        ...

    def load_server_ids(self) -> list[str]:
        """Server ids currently configured at user level for this IDE."""
        ...

    def plan(
        self,
        rendered: RenderedConfig,
        project_dir: Path,
        project_name: str,
        removed: list[str],
    ) -> list[Plan]:
        """Plan every change this target needs."""
        ...


__all__ = [
    "ClaudeCodeAdapter",
    "CommandPlan",
    "FileTargetAdapter",
    "Plan",
    "TargetAdapter",
    "get_adapter",
]


def get_adapter(target: IDETarget) -> TargetAdapter:
    """Instantiate the adapter matching a target's config format."""
    if target.config_format == "script":
        return ClaudeCodeAdapter(target)
    return FileTargetAdapter(target)

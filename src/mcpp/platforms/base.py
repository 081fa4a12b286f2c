# File-based IDE target adapter (JSON and TOML)
import logging
from pathlib import Path

from mcpp.config import get_project_config_dir
from mcpp.merge import MANAGED_KEYS, WritePlan, load_existing, plan_config_write
from mcpp.models import IDETarget, RenderedConfig

logger = logging.getLogger(__name__)


class FileTargetAdapter:
    """Adapter for IDEs configured through a native JSON or TOML file.

    ABOUTME: Plans the .mcp/ project copy and the user-level file
    ABOUTME: Both go through the merge engine so foreign keys survive
    """

    def __init__(self, target: IDETarget, config_path: Path | None = None) -> None:
        """Initialize adapter with optional custom config path.

        ABOUTME: Defaults to the catalog path of the target
        """
        if target.config_format not in MANAGED_KEYS:
            raise ValueError(f"{target.id}: unsupported format '{target.config_format}'")
        self._target = target
        self._config_path = config_path if config_path else target.config_path

    @property
    def name(self) -> str:
        return self._target.id

    @property
    def target(self) -> IDETarget:
        return self._target

    @property
    def config_path(self) -> Path | None:
        """Path to the user-level config file."""
        return self._config_path

    def load_server_ids(self) -> list[str]:
        """Server ids currently listed in the user-level config.

        ABOUTME: Returns [] if the file is missing, unreadable or malformed
        """
        if self._config_path is None:
            return []
        try:
            existing = load_existing(self._config_path, self._target.config_format)
        except OSError as e:
            logger.warning(f"{self.name}: cannot read {self._config_path}: {e}")
            return []
        servers = existing.data.get(MANAGED_KEYS[self._target.config_format], {})
        return list(servers) if isinstance(servers, dict) else []

    def plan(
        self,
        rendered: RenderedConfig,
        project_dir: Path,
        project_name: str,
        removed: list[str],
    ) -> list[WritePlan]:
        """Plan every write for this target.

        Args:
            rendered: Rendered servers for this target
            project_dir: Project root
            project_name: Project name (unused by file targets)
            removed: Server ids explicitly removed from the project

        Returns:
            Plans for the project copy (if supported) and the user file
        """
        plans: list[WritePlan] = []

        if self._target.supports_project_config and self._target.project_filename:
            plans.append(plan_config_write(
                target_id=self.name,
                scope="project",
                path=get_project_config_dir(project_dir) / self._target.project_filename,
                config_format=self._target.config_format,
                rendered=rendered,
                removed=removed,
            ))

        if self._config_path is not None:
            plans.append(plan_config_write(
                target_id=self.name,
                scope="user",
                path=self._config_path,
                config_format=self._target.config_format,
                rendered=rendered,
                removed=removed,
                backup=True,
            ))

        return plans

# ABOUTME: Project State Store: the .mcp/config.json record of a project's selections
# ABOUTME: Missing file means "not initialized"; a malformed file is fatal
import json
from pathlib import Path

from mcpp.config import get_project_state_path
from mcpp.merge import write_text_atomic
from mcpp.models import ProjectDescriptor


class ProjectNotInitializedError(FileNotFoundError):
    """Raised when an operation needs a project that has not been initialized."""


class ProjectStateError(ValueError):
    """Raised when the project state file exists but cannot be trusted."""


class ProjectStateStore:
    """Load and save the project state file.

    ABOUTME: save() replaces the whole file atomically
    ABOUTME: No locking: concurrent writers are last-write-wins
    """

    def __init__(self, project_dir: Path) -> None:
        self._project_dir = project_dir
        self._path = get_project_state_path(project_dir)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> ProjectDescriptor | None:
        """Load the project descriptor.

        Returns:
            ProjectDescriptor, or None if the project is not initialized

        Raises:
            ProjectStateError: If the file is unreadable or malformed
        """
        if not self._path.exists():
            return None

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ProjectStateError(f"Invalid JSON in {self._path}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ProjectStateError(f"Cannot read {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise ProjectStateError(f"Expected a JSON object in {self._path}")

        try:
            return ProjectDescriptor.from_dict(data)
        except ValueError as e:
            raise ProjectStateError(f"Invalid project state in {self._path}: {e}") from e

    def require(self) -> ProjectDescriptor:
        """Load the descriptor for an operation that needs an existing project.

        Raises:
            ProjectNotInitializedError: If there is no state file
            ProjectStateError: If the state file is malformed
        """
        descriptor = self.load()
        if descriptor is None:
            raise ProjectNotInitializedError(
                f"Project not initialized (no {self._path}). Run 'mcpp init' first."
            )
        return descriptor

    def render(self, descriptor: ProjectDescriptor) -> str:
        """File content save() would write."""
        return json.dumps(descriptor.to_dict(), indent=2) + "\n"

    def save(self, descriptor: ProjectDescriptor) -> None:
        """Write the whole descriptor atomically.

        Raises:
            OSError: If the file cannot be written
        """
        write_text_atomic(self._path, self.render(descriptor))

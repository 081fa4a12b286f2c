# Paths and shared settings for mcpp
from datetime import datetime, timezone
from pathlib import Path

# ABOUTME: User-level directory holding custom bundles and backups
USER_DIR_NAME = ".mcp-project-manager"

# ABOUTME: Custom bundle registry filename inside the user directory
CUSTOM_BUNDLES_FILE = "custom-bundles.json"

# ABOUTME: Project-relative directory holding state, env and IDE copies
PROJECT_CONFIG_DIR = ".mcp"

# ABOUTME: Project state filename inside PROJECT_CONFIG_DIR
PROJECT_CONFIG_FILE = "config.json"

# ABOUTME: Project env filename inside PROJECT_CONFIG_DIR (also the template)
PROJECT_ENV_FILE = ".env"


def get_user_dir(home: Path | None = None) -> Path:
    """Return the user-level mcpp directory.

    ABOUTME: Returns ~/.mcp-project-manager
    ABOUTME: Does not create the directory

    Args:
        home: Home directory override (defaults to Path.home())

    Returns:
        Path to the user directory
    """
    return (home if home is not None else Path.home()) / USER_DIR_NAME


def get_custom_bundles_path(home: Path | None = None) -> Path:
    """Return the path to the custom bundle registry."""
    return get_user_dir(home) / CUSTOM_BUNDLES_FILE


def get_project_config_dir(project_dir: Path) -> Path:
    return project_dir / PROJECT_CONFIG_DIR


def get_project_state_path(project_dir: Path) -> Path:
    """Return the project state file path (.mcp/config.json)."""
    return get_project_config_dir(project_dir) / PROJECT_CONFIG_FILE


def get_project_env_path(project_dir: Path) -> Path:
    """Return the project env file path (.mcp/.env)."""
    return get_project_config_dir(project_dir) / PROJECT_ENV_FILE


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 with millisecond precision.

    Examples:
        >>> utc_timestamp()
        '2026-01-08T14:30:22.123Z'
    """
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")

# Core data models for mcpp
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

# ABOUTME: Closed set of server categories used by the catalog
ServerCategory = Literal["core", "integration", "specialized"]

# ABOUTME: Native formats an IDE target can consume
ConfigFormat = Literal["json", "toml", "script"]


@dataclass(frozen=True)
class ServerDescriptor:
    """Immutable description of a known MCP server.

    ABOUTME: Sourced from the catalog, never mutated at runtime
    ABOUTME: Env key tuples keep declaration order
    """
    id: str
    package: str
    version: str
    description: str
    category: ServerCategory
    required_env: tuple[str, ...] = ()
    optional_env: tuple[str, ...] = ()

    @property
    def package_spec(self) -> str:
        """npm-style package reference pinned to the catalog version."""
        return f"{self.package}@{self.version}"


@dataclass(frozen=True)
class Bundle:
    """Named, ordered set of server ids.

    ABOUTME: Built-in bundles come from the catalog and are immutable
    ABOUTME: Custom bundles carry custom=True and a creation timestamp
    """
    id: str
    description: str
    servers: tuple[str, ...]
    category: str
    custom: bool = False
    created: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the custom bundle registry format."""
        data: dict[str, Any] = {
            "name": self.id,
            "description": self.description,
            "servers": list(self.servers),
            "category": self.category,
        }
        if self.custom:
            data["custom"] = True
        if self.created:
            data["created"] = self.created
        return data


@dataclass(frozen=True)
class IDETarget:
    """A consumer of generated MCP configuration.

    ABOUTME: config_path is None for targets configured only via a CLI
    ABOUTME: project_filename names the copy written under .mcp/
    """
    id: str
    config_path: Path | None
    config_format: ConfigFormat
    supports_project_config: bool
    project_filename: str | None = None


@dataclass(frozen=True)
class LaunchSpec:
    """How an IDE should start one server.

    ABOUTME: env is None when no env block should be emitted at all
    """
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the mcpServers entry format."""
        result: dict[str, Any] = {
            "command": self.command,
            "args": list(self.args),
        }
        if self.env is not None:
            result["env"] = dict(self.env)
        return result


@dataclass
class RenderedConfig:
    """Target-specific payload ready to merge.

    ABOUTME: servers preserves the project's server order
    ABOUTME: skipped lists ids that were unknown to the catalog
    """
    target_id: str
    servers: dict[str, LaunchSpec] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, dict[str, Any]]:
        """Managed-section value: server id -> launch spec dict."""
        return {name: spec.to_dict() for name, spec in self.servers.items()}


@dataclass
class ResolvedEnv:
    """Env values resolved for one apply operation.

    ABOUTME: values only holds keys that were actually found
    ABOUTME: missing maps server id -> required keys still unresolved
    """
    values: dict[str, str] = field(default_factory=dict)
    missing: dict[str, list[str]] = field(default_factory=dict)
    sources: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.values


@dataclass
class ProjectDescriptor:
    """Persisted record of one project's server and IDE selections.

    ABOUTME: servers and ides are ordered and duplicate-free
    ABOUTME: env_vars is carried through untouched for the state file format
    """
    name: str
    servers: list[str]
    ides: list[str]
    created: str
    updated: str
    env_vars: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.servers = unique(self.servers)
        self.ides = unique(self.ides)

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the project state file format."""
        return {
            "name": self.name,
            "servers": list(self.servers),
            "ides": list(self.ides),
            "envVars": dict(self.env_vars),
            "created": self.created,
            "updated": self.updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectDescriptor":
        """Build from a parsed state file.

        Raises:
            ValueError: If required fields are missing or have the wrong type
        """
        for key in ("name", "servers", "ides", "created", "updated"):
            if key not in data:
                raise ValueError(f"Missing required '{key}' field")

        servers = data["servers"]
        ides = data["ides"]
        if not isinstance(servers, list) or not all(isinstance(s, str) for s in servers):
            raise ValueError("'servers' must be a list of strings")
        if not isinstance(ides, list) or not all(isinstance(i, str) for i in ides):
            raise ValueError("'ides' must be a list of strings")

        env_vars = data.get("envVars", {})
        if not isinstance(env_vars, dict):
            raise ValueError("'envVars' must be an object")

        return cls(
            name=str(data["name"]),
            servers=servers,
            ides=ides,
            created=str(data["created"]),
            updated=str(data["updated"]),
            env_vars={str(k): str(v) for k, v in env_vars.items()},
        )


def unique(items: list[str] | tuple[str, ...]) -> list[str]:
    """Collapse duplicates while keeping first-seen order."""
    return list(dict.fromkeys(items))

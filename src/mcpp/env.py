# ABOUTME: Environment Resolver: layered env value lookup for the selected servers
# ABOUTME: Sources are folded in priority order, first value found wins per key
import logging
import warnings
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from dotenv import dotenv_values

from mcpp.catalog import Catalog
from mcpp.models import ResolvedEnv

logger = logging.getLogger(__name__)

# ABOUTME: Header written at the top of a freshly created env template
ENV_TEMPLATE_HEADER = [
    "# MCP Server Environment Variables",
    "# Fill in the values below; empty entries are ignored",
    "",
]


@runtime_checkable
class EnvSource(Protocol):
    """Protocol for a source of env values.

    ABOUTME: try_resolve returns only the keys it could satisfy
    ABOUTME: Unreachable sources return {} instead of raising
    """

    @property
    def name(self) -> str:
        """Short label used when reporting where a value came from."""
        ...

    def try_resolve(self, keys: Sequence[str]) -> dict[str, str]:
        """Look up values for the given keys."""
        ...


class ExplicitSource:
    """Values supplied directly on the command line."""

    def __init__(self, values: dict[str, str]) -> None:
        self._values = dict(values)

    @property
    def name(self) -> str:
        return "explicit"

    def try_resolve(self, keys: Sequence[str]) -> dict[str, str]:
        return {k: self._values[k] for k in keys if self._values.get(k)}


class DotEnvSource:
    """Values read from a project-local .env file.

    ABOUTME: Parsed with python-dotenv: comments and blank lines skipped,
    ABOUTME: quotes stripped, '=' inside a value preserved
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def name(self) -> str:
        return ".env"

    def try_resolve(self, keys: Sequence[str]) -> dict[str, str]:
        values = read_env_file(self._path)
        return {k: values[k] for k in keys if k in values}


def read_env_file(path: Path) -> dict[str, str]:
    """Parse a KEY=VALUE env file.

    ABOUTME: Returns empty dict if the file is missing or unreadable
    ABOUTME: Keys with empty values are dropped
    ABOUTME: ${VAR} references are kept as written, never expanded

    Args:
        path: Path to the env file

    Returns:
        Mapping of keys that have a non-empty value
    """
    if not path.exists():
        return {}

    try:
        parsed = dotenv_values(path, interpolate=False, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read env file {path}: {e}")
        return {}

    return {key: value for key, value in parsed.items() if value}


def parse_env_pairs(pairs: Iterable[str]) -> dict[str, str]:
    """Parse KEY=VALUE strings supplied by the user.

    ABOUTME: Splits on the first '=' only
    ABOUTME: Entries without '=' or with an empty key are skipped with a warning

    Examples:
        >>> parse_env_pairs(["GITHUB_TOKEN=ghp_x", "URL=http://a?b=c"])
        {'GITHUB_TOKEN': 'ghp_x', 'URL': 'http://a?b=c'}
    """
    values: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            warnings.warn(
                f"Ignoring invalid env assignment '{pair}' (expected KEY=VALUE)",
                UserWarning,
                stacklevel=2,
            )
            continue
        values[key] = value.strip()
    return values


def resolve_env(
    catalog: Catalog,
    server_ids: Iterable[str],
    sources: Sequence[EnvSource],
) -> ResolvedEnv:
    """Resolve env values for the selected servers.

    ABOUTME: Only keys required/optional by the selected servers are consulted
    ABOUTME: A source is asked only for keys still unresolved
    ABOUTME: A failing source is logged and skipped, never fatal

    Args:
        catalog: Catalog providing each server's env keys
        server_ids: Selected server ids
        sources: Env sources, highest priority first

    Returns:
        ResolvedEnv with found values and per-server missing required keys
    """
    server_ids = list(server_ids)
    required, optional = catalog.env_keys(server_ids)
    wanted = required + optional

    result = ResolvedEnv()
    for source in sources:
        pending = [k for k in wanted if k not in result.values]
        if not pending:
            break
        try:
            found = source.try_resolve(pending)
        except (OSError, ValueError) as e:
            logger.warning(f"Env source '{source.name}' failed, ignoring it: {e}")
            continue
        for key in pending:
            value = found.get(key)
            if value:
                result.values[key] = value
                result.sources[key] = source.name

    for server_id in server_ids:
        server = catalog.servers.get(server_id)
        if server is None:
            continue
        unresolved = [k for k in server.required_env if k not in result.values]
        if unresolved:
            result.missing[server_id] = unresolved

    return result


def build_env_template(
    catalog: Catalog,
    server_ids: Iterable[str],
    existing: str | None,
) -> str | None:
    """Build env template content for the selected servers.

    ABOUTME: New file: header plus KEY= placeholders grouped by server
    ABOUTME: Existing file: kept verbatim, placeholders appended only for
    ABOUTME: required keys it does not already declare

    Args:
        catalog: Catalog providing required env keys
        server_ids: Selected server ids
        existing: Current file content, or None if the file is absent

    Returns:
        New file content, or None if nothing needs to be written
    """
    declared: set[str] = set()
    if existing is not None:
        for line in existing.splitlines():
            stripped = line.strip()
            if stripped.startswith("export "):
                stripped = stripped[len("export "):].lstrip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                declared.add(stripped.split("=", 1)[0].strip())

    sections: list[str] = []
    for server_id in catalog.servers_requiring_env(server_ids):
        server = catalog.servers[server_id]
        keys = [k for k in server.required_env if k not in declared]
        if not keys:
            continue
        sections.append(f"# {server.description}")
        sections.extend(f"{key}=" for key in keys)
        sections.append("")
        declared.update(keys)

    if not sections:
        return None

    if existing is None:
        return "\n".join(ENV_TEMPLATE_HEADER + sections)

    prefix = existing if existing.endswith("\n") or not existing else existing + "\n"
    return prefix + "\n".join(sections)

# ABOUTME: Merge Engine: non-destructive merge of rendered servers into native IDE files
# ABOUTME: Planning is pure; commit() is the only code path that touches storage
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import tomlkit
from tomlkit.exceptions import TOMLKitError

from mcpp.models import ConfigFormat, RenderedConfig
from mcpp.utils.backup import create_backup

logger = logging.getLogger(__name__)

# ABOUTME: The single top-level key this tool owns in each file format
MANAGED_KEYS: dict[str, str] = {
    "json": "mcpServers",
    "toml": "mcp_servers",
}

Scope = Literal["project", "user"]
Action = Literal["create", "update"]


@dataclass
class ExistingConfig:
    """An on-disk config as found before merging.

    ABOUTME: data is {} when the file is absent or could not be parsed
    ABOUTME: error carries the parse failure for reporting
    """
    data: dict[str, Any]
    exists: bool
    raw: str | None = None
    error: str | None = None

    @property
    def malformed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class WritePlan:
    """The exact write an apply would perform for one file.

    ABOUTME: Dry-run reports plans; a real run passes the same plans to commit()
    ABOUTME: payload is the parsed document for structured formats
    """
    target_id: str
    scope: Scope
    path: Path
    action: Action
    content: str
    previous: str | None = None
    payload: dict[str, Any] | None = None
    executable: bool = False
    backup: bool = False
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        """False when the file already holds exactly this content."""
        return self.content != self.previous


def parse_config(text: str, config_format: ConfigFormat) -> dict[str, Any]:
    """Parse native config text.

    Raises:
        ValueError: If the text is not a valid document or not a top-level object
    """
    if config_format == "toml":
        try:
            data: Any = tomlkit.parse(text)
        except TOMLKitError as e:
            raise ValueError(f"Invalid TOML: {e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a top-level object, got {type(data).__name__}")
    return data


def serialize_config(data: dict[str, Any], config_format: ConfigFormat) -> str:
    """Serialize a config document deterministically.

    ABOUTME: JSON uses 2-space indentation, key order preserved, trailing newline
    """
    if config_format == "toml":
        return tomlkit.dumps(data)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def load_existing(path: Path, config_format: ConfigFormat) -> ExistingConfig:
    """Load a native config, tolerating absence and malformed content.

    ABOUTME: Never raises for parse errors; they are reported via .error
    ABOUTME: Read errors other than "missing" propagate as OSError

    Args:
        path: Config file path
        config_format: Native format of the file

    Returns:
        ExistingConfig describing what was found
    """
    if not path.exists():
        return ExistingConfig(data={}, exists=False)

    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return ExistingConfig(data={}, exists=True, raw=raw)

    try:
        data = parse_config(raw, config_format)
    except ValueError as e:
        logger.warning(f"Existing config {path} is invalid, starting fresh: {e}")
        return ExistingConfig(data={}, exists=True, raw=raw, error=str(e))

    return ExistingConfig(data=data, exists=True, raw=raw)


def merge_config(
    existing: dict[str, Any],
    rendered: RenderedConfig,
    managed_key: str = "mcpServers",
    removed: Iterable[str] = (),
) -> dict[str, Any]:
    """Merge rendered servers into an existing config document.

    ABOUTME: Top-level keys other than managed_key pass through verbatim
    ABOUTME: Existing entries not being rendered are preserved (orphans)
    ABOUTME: Rendered entries fully replace existing ones, never deep-merged
    ABOUTME: Entries are deleted only when named in removed and not rendered
    ABOUTME: Returns new dict (doesn't mutate inputs)

    Args:
        existing: Parsed existing document ({} if absent or malformed)
        rendered: Freshly rendered servers for this target
        managed_key: Top-level key holding the server-launch map
        removed: Server ids explicitly being removed from the project

    Returns:
        Merged document

    Examples:
        >>> existing = {"theme": "dark", "mcpServers": {"a": {"command": "old"}}}
        >>> merged = merge_config(existing, rendered_with_only_b)
        >>> list(merged["mcpServers"])
        ['a', 'b']
        >>> merged["theme"]
        'dark'
    """
    payload = rendered.to_payload()
    removed_ids = set(removed) - set(payload)

    current = existing.get(managed_key)
    if not isinstance(current, dict):
        if current is not None:
            logger.warning(
                f"'{managed_key}' is not an object ({type(current).__name__}), replacing it"
            )
        current = {}

    servers: dict[str, Any] = {}
    for name, entry in current.items():
        if name in removed_ids:
            continue
        servers[name] = payload[name] if name in payload else entry
    for name, entry in payload.items():
        if name not in servers:
            servers[name] = entry

    merged = dict(existing)
    merged[managed_key] = servers
    return merged


def merge_toml_document(
    document: tomlkit.TOMLDocument,
    rendered: RenderedConfig,
    managed_key: str = "mcp_servers",
    removed: Iterable[str] = (),
) -> tomlkit.TOMLDocument:
    """Merge rendered servers into a parsed TOML document in place.

    ABOUTME: Only the managed table is edited; comments and layout elsewhere survive
    ABOUTME: Same rules as merge_config(): orphans kept, explicit removal set only
    ABOUTME: Entries whose content is unchanged are left untouched
    """
    payload = rendered.to_payload()
    removed_ids = set(removed) - set(payload)

    current = document.get(managed_key)
    if not isinstance(current, dict):
        if current is not None:
            logger.warning(
                f"'{managed_key}' is not a table ({type(current).__name__}), replacing it"
            )
            del document[managed_key]
        document[managed_key] = tomlkit.table()
        current = document[managed_key]

    for name in [n for n in current if n in removed_ids]:
        del current[name]
    for name, entry in payload.items():
        if _unwrap(current.get(name)) != entry:
            current[name] = entry
    return document


def _unwrap(value: Any) -> Any:
    return value.unwrap() if hasattr(value, "unwrap") else value


def plan_config_write(
    target_id: str,
    scope: Scope,
    path: Path,
    config_format: ConfigFormat,
    rendered: RenderedConfig,
    removed: Iterable[str] = (),
    backup: bool = False,
) -> WritePlan:
    """Compute the merged file for one target without writing it.

    ABOUTME: Same computation for dry-run and real runs
    ABOUTME: Malformed existing files are noted and treated as empty

    Args:
        target_id: IDE target id
        scope: "project" for the .mcp/ copy, "user" for the native file
        path: File to merge into
        config_format: json or toml
        rendered: Rendered servers for the target
        removed: Server ids explicitly removed from the project
        backup: Whether commit() should back up the existing file first

    Returns:
        WritePlan with full resulting content
    """
    managed_key = MANAGED_KEYS[config_format]
    existing = load_existing(path, config_format)

    notes: list[str] = []
    if existing.malformed:
        notes.append(f"existing config is invalid and was treated as empty ({existing.error})")

    if config_format == "toml":
        document = existing.data
        if not isinstance(document, tomlkit.TOMLDocument):
            document = tomlkit.document()
        merge_toml_document(document, rendered, managed_key=managed_key, removed=removed)
        merged = document.unwrap()
        content = tomlkit.dumps(document)
    else:
        merged = merge_config(existing.data, rendered, managed_key=managed_key, removed=removed)
        content = serialize_config(merged, config_format)

    return WritePlan(
        target_id=target_id,
        scope=scope,
        path=path,
        action="update" if existing.exists else "create",
        content=content,
        previous=existing.raw,
        payload=merged,
        backup=backup and existing.exists,
        notes=tuple(notes),
    )


def plan_text_write(
    target_id: str,
    scope: Scope,
    path: Path,
    content: str,
    executable: bool = False,
) -> WritePlan:
    """Plan a whole-file write for generated text (scripts, env templates)."""
    previous = path.read_text(encoding="utf-8") if path.exists() else None
    return WritePlan(
        target_id=target_id,
        scope=scope,
        path=path,
        action="update" if previous is not None else "create",
        content=content,
        previous=previous,
        executable=executable,
    )


def write_text_atomic(path: Path, content: str) -> None:
    """Write text via a temp file in the same directory and os.replace().

    ABOUTME: Readers see either the old or the new file, never a partial one
    ABOUTME: Creates parent directories if needed
    ABOUTME: Symlinked paths are written through to their target file
    """
    target = path.resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        if target.exists():
            os.chmod(tmp_name, target.stat().st_mode & 0o7777)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def commit(plan: WritePlan, backup_dir: Path | None = None) -> bool:
    """Perform a planned write.

    ABOUTME: Skips the write when content is unchanged
    ABOUTME: Backs up the previous file first when the plan asks for it

    Args:
        plan: Plan produced by plan_config_write() or plan_text_write()
        backup_dir: Where backups go (required for plans with backup=True)

    Returns:
        True if the file was written, False if it was already up to date

    Raises:
        OSError: If the file cannot be written
    """
    if not plan.changed:
        logger.debug(f"{plan.path} already up to date")
        return False

    if plan.backup and backup_dir is not None and plan.path.exists():
        backup_path = create_backup(plan.path, backup_dir, label=plan.target_id)
        logger.debug(f"Backed up {plan.path} to {backup_path}")

    write_text_atomic(plan.path, plan.content)

    if plan.executable:
        plan.path.chmod(0o755)

    logger.debug(f"{plan.action.capitalize()}d {plan.path}")
    return True

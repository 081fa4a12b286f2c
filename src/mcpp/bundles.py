# ABOUTME: Persisted user-defined bundles layered on top of the static catalog
# ABOUTME: Registry lives at ~/.mcp-project-manager/custom-bundles.json
import json
import logging
import re
from pathlib import Path
from typing import Any

from mcpp.catalog import Catalog
from mcpp.config import get_custom_bundles_path, utc_timestamp
from mcpp.models import Bundle, unique

logger = logging.getLogger(__name__)

# ABOUTME: Allowed characters for custom bundle names
BUNDLE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class BundleValidationError(ValueError):
    """Raised when a custom bundle cannot be saved as given."""


class BundleRegistryError(ValueError):
    """Raised when the registry file exists but cannot be read back safely."""


class CustomBundleStore:
    """Create, list and remove custom bundles.

    ABOUTME: Save is last-write-wins per name, never a merge
    ABOUTME: Authoring is strict: any unknown server id rejects the whole bundle
    ABOUTME: Writes refuse to replace a registry that failed to parse
    """

    def __init__(self, catalog: Catalog, path: Path | None = None) -> None:
        """Initialize store with the catalog used for validation.

        ABOUTME: Defaults to ~/.mcp-project-manager/custom-bundles.json
        """
        self._catalog = catalog
        self._path = path if path else get_custom_bundles_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Bundle]:
        """Load all custom bundles.

        ABOUTME: Missing registry means no custom bundles
        ABOUTME: An unreadable registry is logged and treated as empty

        Returns:
            List of custom bundles in registry order
        """
        try:
            return self._read(strict=False)
        except BundleRegistryError as e:
            logger.warning(str(e))
            return []

    def _read(self, strict: bool) -> list[Bundle]:
        if not self._path.exists():
            return []

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise BundleRegistryError(
                f"Failed to load custom bundles from {self._path}: {e}"
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("bundles", []), list):
            raise BundleRegistryError(
                f"Custom bundles file {self._path} has no 'bundles' list"
            )

        bundles: list[Bundle] = []
        for entry in data.get("bundles", []):
            try:
                bundles.append(_bundle_from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                if strict:
                    raise BundleRegistryError(
                        f"Malformed custom bundle entry in {self._path}: {e}"
                    ) from e
                logger.warning(f"Skipping malformed custom bundle entry: {e}")
        return bundles

    def list_bundles(self) -> list[Bundle]:
        return self.load()

    def get(self, name: str) -> Bundle | None:
        """Return the custom bundle with this name, or None."""
        for bundle in self.load():
            if bundle.id == name:
                return bundle
        return None

    def validate_name(self, name: str) -> None:
        """Check a prospective bundle name.

        Raises:
            BundleValidationError: If the name is empty, contains whitespace,
                uses disallowed characters or collides with a built-in bundle
        """
        if not name or not name.strip():
            raise BundleValidationError("Bundle name cannot be empty")
        if any(ch.isspace() for ch in name):
            raise BundleValidationError("Bundle name cannot contain spaces")
        if not BUNDLE_NAME_PATTERN.match(name):
            raise BundleValidationError(
                "Bundle name can only contain letters, numbers, hyphens, and underscores"
            )
        if name in self._catalog.bundles:
            raise BundleValidationError(
                f"Bundle name '{name}' conflicts with built-in bundle"
            )

    def build(self, name: str, description: str, servers: list[str]) -> Bundle:
        """Validate inputs and build the bundle that save() would persist.

        Raises:
            BundleValidationError: On an invalid name or any unknown server id
        """
        self.validate_name(name)

        unknown = [s for s in servers if s not in self._catalog.servers]
        if unknown:
            raise BundleValidationError(f"Unknown servers: {', '.join(unknown)}")

        return Bundle(
            id=name,
            description=description,
            servers=tuple(unique(servers)),
            category="custom",
            custom=True,
            created=utc_timestamp(),
        )

    def save(self, bundle: Bundle) -> None:
        """Persist a bundle built by build(), replacing any with the same name.

        Raises:
            BundleRegistryError: If the existing registry cannot be parsed
        """
        bundles = [b for b in self._read(strict=True) if b.id != bundle.id]
        bundles.append(bundle)
        self._write(bundles)

    def create(self, name: str, description: str, servers: list[str]) -> Bundle:
        """Validate, build and save a custom bundle in one step."""
        bundle = self.build(name, description, servers)
        self.save(bundle)
        return bundle

    def remove(self, name: str) -> bool:
        """Remove a custom bundle by name.

        Returns:
            True if the bundle existed and was removed, False otherwise

        Raises:
            BundleRegistryError: If the existing registry cannot be parsed
        """
        bundles = self._read(strict=True)
        remaining = [b for b in bundles if b.id != name]
        if len(remaining) == len(bundles):
            return False
        self._write(remaining)
        return True

    def _write(self, bundles: list[Bundle]) -> None:
        data: dict[str, Any] = {
            "bundles": [b.to_dict() for b in bundles],
            "lastUpdated": utc_timestamp(),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")


def _bundle_from_dict(data: dict[str, Any]) -> Bundle:
    servers = data["servers"]
    if not isinstance(servers, list):
        raise TypeError(f"'servers' of bundle {data.get('name')!r} must be a list")
    return Bundle(
        id=str(data["name"]),
        description=str(data.get("description", "")),
        servers=tuple(str(s) for s in servers),
        category=str(data.get("category", "custom")),
        custom=True,
        created=data.get("created"),
    )

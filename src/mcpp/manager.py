# ABOUTME: Project operations: init, add, remove, sync, migrate, list and bundle management
# ABOUTME: Each apply resolves env, plans every target, then commits (or previews) and saves state last
import logging
import warnings
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path

from mcpp.bundles import CustomBundleStore
from mcpp.catalog import Catalog, default_catalog
from mcpp.config import get_custom_bundles_path, get_project_env_path, utc_timestamp
from mcpp.doppler import DopplerSource
from mcpp.env import DotEnvSource, EnvSource, ExplicitSource, build_env_template, resolve_env
from mcpp.merge import WritePlan, commit, plan_text_write
from mcpp.models import Bundle, ProjectDescriptor, ResolvedEnv, unique
from mcpp.platforms import get_adapter
from mcpp.project import ProjectStateError, ProjectStateStore
from mcpp.sync import AdapterFactory, SyncReport, apply_plans, plan_targets
from mcpp.utils.backup import get_backup_dir

logger = logging.getLogger(__name__)

# ABOUTME: Used by init when neither bundles nor servers are given
DEFAULT_BUNDLE = "essential"

# ABOUTME: Used by init when no IDEs are given
DEFAULT_IDES = ("cursor",)


class ProjectExistsError(FileExistsError):
    """Raised when init would overwrite an existing project without force."""


@dataclass
class ApplyResult:
    """Everything an apply computed, whether or not it was committed.

    ABOUTME: state_content is exactly what was (or would be) written to .mcp/config.json
    """
    descriptor: ProjectDescriptor
    env: ResolvedEnv
    report: SyncReport
    state_content: str
    dry_run: bool = False
    created: bool = False
    env_template: WritePlan | None = None
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)


class ProjectManager:
    """Operations on one project directory.

    ABOUTME: Catalog, bundle store and adapter factory are injected for tests
    ABOUTME: Nothing is written in dry-run mode; plans are computed identically
    """

    def __init__(
        self,
        project_dir: Path | None = None,
        catalog: Catalog | None = None,
        bundle_store: CustomBundleStore | None = None,
        home: Path | None = None,
        adapter_factory: AdapterFactory = get_adapter,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self.project_dir = project_dir if project_dir else Path.cwd()
        self.catalog = catalog if catalog else default_catalog(home)
        self.bundle_store = bundle_store if bundle_store else CustomBundleStore(
            self.catalog, get_custom_bundles_path(home)
        )
        self.state = ProjectStateStore(self.project_dir)
        self.backup_dir = get_backup_dir(home)
        self._adapter_factory = adapter_factory
        self._clock = clock

    # Selection helpers

    def get_bundle(self, name: str) -> Bundle | None:
        """Built-in bundle first, then custom bundles."""
        bundle = self.catalog.bundles.get(name)
        if bundle is not None:
            return bundle
        return self.bundle_store.get(name)

    def list_bundles(self) -> list[Bundle]:
        return list(self.catalog.bundles.values()) + self.bundle_store.list_bundles()

    def expand_selection(self, servers: Iterable[str] = (), bundles: Iterable[str] = ()) -> list[str]:
        """Bundle members followed by explicit servers, validated.

        ABOUTME: Unknown bundles and unknown servers are dropped with a warning
        """
        selected: list[str] = []
        unknown_bundles: list[str] = []
        for name in bundles:
            bundle = self.get_bundle(name)
            if bundle is None:
                unknown_bundles.append(name)
                continue
            selected.extend(bundle.servers)
        if unknown_bundles:
            warnings.warn(
                f"Unknown bundles ignored: {', '.join(unknown_bundles)}",
                UserWarning,
                stacklevel=2,
            )
        selected.extend(servers)
        return self.catalog.validate_servers(selected)

    def build_sources(
        self,
        explicit: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
    ) -> list[EnvSource]:
        """Env sources in precedence order: explicit, secrets manager, .env."""
        sources: list[EnvSource] = [ExplicitSource(explicit or {})]
        if doppler is not None:
            sources.append(doppler)
        sources.append(DotEnvSource(get_project_env_path(self.project_dir)))
        return sources

    # Operations

    def init_project(
        self,
        name: str | None = None,
        bundles: Iterable[str] = (),
        servers: Iterable[str] = (),
        ides: Iterable[str] = (),
        env: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Create the project record and configure its IDEs.

        Raises:
            ProjectExistsError: If a project exists and force is not set (real runs only)
            ProjectStateError: If an existing state file is malformed and force is not set
        """
        try:
            exists = self.state.load() is not None
        except ProjectStateError:
            if not force:
                raise
            exists = True

        if exists and not force and not dry_run:
            raise ProjectExistsError(
                f"Project already initialized at {self.state.path}. Use --force to overwrite."
            )

        bundles = list(bundles)
        servers = list(servers)
        if not bundles and not servers:
            bundles = [DEFAULT_BUNDLE]
        ides = list(ides) or list(DEFAULT_IDES)

        now = self._clock()
        descriptor = ProjectDescriptor(
            name=name or self.project_dir.resolve().name,
            servers=self.expand_selection(servers, bundles),
            ides=self.catalog.validate_ides(ides),
            created=now,
            updated=now,
        )

        result = self._apply(descriptor, env=env, doppler=doppler, dry_run=dry_run)
        result.created = True
        result.added = list(descriptor.servers)
        return result

    def add_servers(
        self,
        servers: Iterable[str] = (),
        bundles: Iterable[str] = (),
        env: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Add servers (and bundle members) to the project.

        ABOUTME: Already-configured servers are reported, not re-added
        ABOUTME: Does nothing beyond reporting if no server is new

        Raises:
            ProjectNotInitializedError: If the project has not been initialized
            ProjectStateError: If the state file is malformed
        """
        current = self._validated(self.state.require())
        requested = self.expand_selection(servers, bundles)

        new_servers = [s for s in requested if s not in current.servers]
        already = [s for s in requested if s in current.servers]

        if not new_servers:
            return self._noop(current, dry_run, unchanged=already)

        descriptor = replace(
            current,
            servers=current.servers + new_servers,
            updated=self._clock(),
        )
        result = self._apply(descriptor, env=env, doppler=doppler, dry_run=dry_run)
        result.added = new_servers
        result.unchanged = already
        return result

    def remove_servers(
        self,
        servers: Iterable[str],
        env: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Remove servers from the project and from its IDE configs.

        ABOUTME: Only the named entries are deleted from IDE files
        ABOUTME: Names not in the project are reported with a warning

        Raises:
            ProjectNotInitializedError: If the project has not been initialized
            ProjectStateError: If the state file is malformed
        """
        current = self.state.require()
        requested = unique(list(servers))

        to_remove = [s for s in requested if s in current.servers]
        not_configured = [s for s in requested if s not in current.servers]
        if not_configured:
            warnings.warn(
                f"Servers not configured in this project: {', '.join(not_configured)}",
                UserWarning,
                stacklevel=2,
            )

        if not to_remove:
            return self._noop(self._validated(current), dry_run, unchanged=not_configured)

        descriptor = self._validated(
            replace(
                current,
                servers=[s for s in current.servers if s not in to_remove],
                updated=self._clock(),
            )
        )
        result = self._apply(
            descriptor, removed=to_remove, env=env, doppler=doppler, dry_run=dry_run
        )
        result.removed = to_remove
        return result

    def sync_configs(
        self,
        ides: Iterable[str] | None = None,
        env: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Regenerate IDE configs from the project record.

        ABOUTME: Named IDEs are added to the project's IDE set
        ABOUTME: Only the named IDEs (or all project IDEs) are written

        Raises:
            ProjectNotInitializedError: If the project has not been initialized
            ProjectStateError: If the state file is malformed
        """
        current = self._validated(self.state.require())

        requested = list(ides) if ides else []
        targets = self.catalog.validate_ides(requested) if requested else list(current.ides)

        descriptor = replace(
            current,
            ides=current.ides + targets,
            updated=self._clock(),
        )
        return self._apply(
            descriptor, ide_ids=targets, env=env, doppler=doppler, dry_run=dry_run
        )

    def detect_global_configs(self) -> dict[str, list[str]]:
        """Servers currently configured at user level, per IDE.

        ABOUTME: IDEs with no servers (or no readable config) are omitted
        """
        found: dict[str, list[str]] = {}
        for target in self.catalog.ides.values():
            adapter = self._adapter_factory(target)
            server_ids = adapter.load_server_ids()
            if server_ids:
                found[target.id] = server_ids
        return found

    def migrate_from_global(
        self,
        name: str | None = None,
        env: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
        dry_run: bool = False,
    ) -> ApplyResult | None:
        """Create or extend the project from servers found in user-level IDE configs.

        ABOUTME: Unknown server names are dropped with a warning
        ABOUTME: An existing project is extended, never replaced

        Returns:
            ApplyResult, or None if no user-level configuration was found

        Raises:
            ProjectStateError: If the state file is malformed
        """
        current = self.state.load()

        found = self.detect_global_configs()
        if not found:
            return None

        discovered = unique([s for ids in found.values() for s in ids])
        servers = self.catalog.validate_servers(discovered)
        ides = list(found)

        now = self._clock()
        if current is None:
            descriptor = ProjectDescriptor(
                name=name or self.project_dir.resolve().name,
                servers=servers,
                ides=ides,
                created=now,
                updated=now,
            )
            previous_servers: list[str] = []
        else:
            descriptor = self._validated(
                replace(
                    current,
                    servers=current.servers + servers,
                    ides=current.ides + ides,
                    updated=now,
                )
            )
            previous_servers = current.servers

        result = self._apply(descriptor, env=env, doppler=doppler, dry_run=dry_run)
        result.created = current is None
        result.added = [s for s in descriptor.servers if s not in previous_servers]
        return result

    def load_project(self) -> ProjectDescriptor:
        """Project record for display.

        Raises:
            ProjectNotInitializedError: If the project has not been initialized
            ProjectStateError: If the state file is malformed
        """
        return self.state.require()

    # Custom bundles

    def create_bundle(
        self,
        name: str,
        description: str | None = None,
        servers: Iterable[str] | None = None,
        dry_run: bool = False,
    ) -> Bundle:
        """Save a custom bundle from explicit servers or the project's servers.

        Raises:
            BundleValidationError: If the name or any server id is invalid
            ProjectNotInitializedError: If servers is None and there is no project
        """
        server_list = list(servers) if servers is not None else list(self.state.require().servers)
        if not description:
            description = f"Custom bundle with {len(server_list)} servers"

        bundle = self.bundle_store.build(name, description, server_list)
        if not dry_run:
            self.bundle_store.save(bundle)
        return bundle

    def remove_bundle(self, name: str) -> bool:
        return self.bundle_store.remove(name)

    # Internals

    def _validated(self, descriptor: ProjectDescriptor) -> ProjectDescriptor:
        """Drop server and IDE ids the catalog does not know, with a warning.

        ABOUTME: The state file may be hand-edited or written by an older catalog
        """
        return replace(
            descriptor,
            servers=self.catalog.validate_servers(descriptor.servers),
            ides=self.catalog.validate_ides(descriptor.ides),
        )

    def _noop(self, descriptor: ProjectDescriptor, dry_run: bool, unchanged: list[str]) -> ApplyResult:
        return ApplyResult(
            descriptor=descriptor,
            env=ResolvedEnv(),
            report=SyncReport(targets_total=0, dry_run=dry_run),
            state_content=self.state.render(descriptor),
            dry_run=dry_run,
            unchanged=unchanged,
        )

    def _apply(
        self,
        descriptor: ProjectDescriptor,
        removed: Iterable[str] = (),
        ide_ids: Iterable[str] | None = None,
        env: dict[str, str] | None = None,
        doppler: DopplerSource | None = None,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Resolve, render, merge, then commit or preview.

        ABOUTME: Plans are computed the same way in both modes
        ABOUTME: Write order: IDE targets, env template, project state (last)
        """
        resolved = resolve_env(
            self.catalog, descriptor.servers, self.build_sources(env, doppler)
        )
        for server_id, keys in resolved.missing.items():
            warnings.warn(
                f"Server '{server_id}' is missing required env: {', '.join(keys)} "
                "(configured without env)",
                UserWarning,
                stacklevel=3,
            )

        report = plan_targets(
            descriptor,
            resolved,
            self.catalog,
            self.project_dir,
            ide_ids=ide_ids,
            removed=removed,
            adapter_factory=self._adapter_factory,
        )

        env_path = get_project_env_path(self.project_dir)
        existing_env = env_path.read_text(encoding="utf-8") if env_path.exists() else None
        template = build_env_template(self.catalog, descriptor.servers, existing_env)
        template_plan = (
            plan_text_write("env", "project", env_path, template) if template is not None else None
        )

        state_content = self.state.render(descriptor)

        apply_plans(report, dry_run=dry_run, backup_dir=self.backup_dir)

        if not dry_run:
            if template_plan is not None:
                try:
                    commit(template_plan)
                except OSError as e:
                    report.add_error(f"env template: failed to write {env_path}: {e}")
            self.state.save(descriptor)
            logger.debug(f"Saved project state to {self.state.path}")

        return ApplyResult(
            descriptor=descriptor,
            env=resolved,
            report=report,
            state_content=state_content,
            dry_run=dry_run,
            env_template=template_plan,
        )

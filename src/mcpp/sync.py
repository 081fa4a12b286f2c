# Sync orchestration for mcpp
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from mcpp.catalog import Catalog
from mcpp.merge import WritePlan, commit
from mcpp.models import IDETarget, ProjectDescriptor, ResolvedEnv
from mcpp.platforms import CommandPlan, Plan, TargetAdapter, get_adapter
from mcpp.render import render

logger = logging.getLogger(__name__)

# ABOUTME: Adapter factory signature, swappable in tests
AdapterFactory = Callable[[IDETarget], TargetAdapter]


@dataclass
class TargetResult:
    """Outcome of one planned change.

    ABOUTME: status is one of created, updated, unchanged, applied,
    ABOUTME: skipped or failed; dry runs report create/update/unchanged
    """
    target_id: str
    scope: str
    status: str
    path: Path | None = None
    message: str = ""


@dataclass
class SyncReport:
    """Report from a sync (or dry-run) over all targets.

    ABOUTME: Per-target failures are recorded, never raised
    ABOUTME: plans holds every computed change, for previews
    """
    targets_total: int
    dry_run: bool = False
    results: list[TargetResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    plans: list[Plan] = field(default_factory=list)

    @property
    def failed_targets(self) -> set[str]:
        return {r.target_id for r in self.results if r.status == "failed"}

    @property
    def targets_synced(self) -> int:
        """Number of distinct targets with at least one result and no failure."""
        seen = {r.target_id for r in self.results}
        return len(seen - self.failed_targets)

    def add_result(self, result: TargetResult) -> None:
        self.results.append(result)

    def add_error(self, error: str) -> None:
        """Record an error that occurred during sync.

        ABOUTME: Errors are non-fatal, sync continues
        """
        self.errors.append(error)


def plan_targets(
    descriptor: ProjectDescriptor,
    env: ResolvedEnv,
    catalog: Catalog,
    project_dir: Path,
    ide_ids: Iterable[str] | None = None,
    removed: Iterable[str] = (),
    adapter_factory: AdapterFactory = get_adapter,
) -> SyncReport:
    """Compute every change needed to bring the IDE targets in line.

    ABOUTME: Pure planning: reads existing files, writes nothing
    ABOUTME: A target that cannot be planned is recorded as failed

    Args:
        descriptor: Project selection to render
        env: Env values resolved for this apply
        catalog: Catalog with server and IDE metadata
        project_dir: Project root
        ide_ids: Targets to plan (defaults to the project's IDEs)
        removed: Server ids explicitly removed from the project
        adapter_factory: Builds the adapter for a target

    Returns:
        SyncReport with plans filled in and planning failures recorded
    """
    ide_ids = list(ide_ids) if ide_ids is not None else list(descriptor.ides)
    removed = list(removed)
    report = SyncReport(targets_total=len(ide_ids))

    for ide_id in ide_ids:
        target = catalog.ides.get(ide_id)
        if target is None:
            report.add_error(f"{ide_id}: unknown IDE target")
            report.add_result(TargetResult(ide_id, "user", "failed", message="unknown IDE target"))
            continue

        try:
            rendered = render(descriptor, env, target, catalog)
            adapter = adapter_factory(target)
            plans = adapter.plan(rendered, project_dir, descriptor.name, removed)
        except (OSError, ValueError) as e:
            report.add_error(f"{ide_id}: {e}")
            report.add_result(TargetResult(ide_id, "user", "failed", message=str(e)))
            continue

        for plan in plans:
            if isinstance(plan, WritePlan):
                for note in plan.notes:
                    report.notes.append(f"{ide_id} ({plan.path}): {note}")
        report.plans.extend(plans)

    return report


def apply_plans(report: SyncReport, dry_run: bool = False, backup_dir: Path | None = None) -> SyncReport:
    """Commit (or preview) the plans in a report.

    ABOUTME: Dry-run records what each plan would do and touches nothing
    ABOUTME: Continues on per-target errors, records them in report

    Args:
        report: Report returned by plan_targets()
        dry_run: Preview only
        backup_dir: Where user-level files are backed up before overwriting

    Returns:
        The same report with results filled in
    """
    report.dry_run = dry_run

    for plan in report.plans:
        if isinstance(plan, CommandPlan):
            _apply_command_plan(report, plan, dry_run)
        else:
            _apply_write_plan(report, plan, dry_run, backup_dir)

    return report


def _apply_write_plan(
    report: SyncReport,
    plan: WritePlan,
    dry_run: bool,
    backup_dir: Path | None,
) -> None:
    if dry_run:
        status = plan.action if plan.changed else "unchanged"
        report.add_result(TargetResult(plan.target_id, plan.scope, status, plan.path))
        return

    try:
        written = commit(plan, backup_dir=backup_dir)
    except OSError as e:
        logger.warning(f"{plan.target_id}: failed to write {plan.path}: {e}")
        report.add_error(f"{plan.target_id}: failed to write {plan.path}: {e}")
        report.add_result(TargetResult(plan.target_id, plan.scope, "failed", plan.path, str(e)))
        return

    status = f"{plan.action}d" if written else "unchanged"
    report.add_result(TargetResult(plan.target_id, plan.scope, status, plan.path))


def _apply_command_plan(report: SyncReport, plan: CommandPlan, dry_run: bool) -> None:
    if not plan.available:
        report.add_result(TargetResult(
            plan.target_id, plan.scope, "skipped",
            message=f"{plan.executable} CLI not available",
        ))
        return

    if dry_run:
        report.add_result(TargetResult(plan.target_id, plan.scope, "update"))
        return

    errors = plan.run()
    for error in errors:
        report.add_error(f"{plan.target_id}: {error}")

    status = "failed" if errors and len(errors) == len(plan.add) and plan.add else "applied"
    report.add_result(TargetResult(
        plan.target_id, plan.scope, status,
        message="; ".join(errors),
    ))

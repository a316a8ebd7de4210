"""Break schedule operations over a ScheduleRepository."""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from breaks import (
    BreakAssignment,
    BreakRule,
    BreakScheduleWarning,
    BreakType,
    ConcurrentModificationError,
    ConstraintValidator,
    CoverageCalculator,
    CoverageRule,
    IntervalGrid,
    ScheduleConfig,
    ShiftNotFoundError,
    ShiftWindowResolver,
    ValidationResult,
    WarningDetector,
    schedule_version,
)
from breaks.engine import normalize_proposed
from config import default_schedule_config
from db.repository import ScheduleRepository
from solvers import (
    ApplyMode,
    DistributionProblem,
    DistributionResult,
    SolverConfig,
    SolverType,
    distribute,
)
from utils import to_minutes


@dataclass
class ScheduleContext:
    """Config and rules resolved once per operation."""
    config: ScheduleConfig
    grid: IntervalGrid
    resolver: ShiftWindowResolver
    rules: list[BreakRule]
    coverage_rule: CoverageRule

    @property
    def validator(self) -> ConstraintValidator:
        return ConstraintValidator(self.grid, self.resolver)

    @property
    def calculator(self) -> CoverageCalculator:
        return CoverageCalculator(self.grid, self.resolver)


@dataclass
class ReplaceResult:
    """Outcome of a validated replace; nothing is stored when ok is False."""
    validation: ValidationResult
    assignments: list[BreakAssignment] = field(default_factory=list)
    version: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.validation.ok


class BreakScheduleService:
    """Reads, edits, distributes and audits break schedules."""

    def __init__(self, repository: ScheduleRepository, config: Optional[ScheduleConfig] = None):
        self.repository = repository
        self.default_config = config or default_schedule_config()

    async def load_context(self) -> ScheduleContext:
        config = await self.repository.get_schedule_config() or self.default_config
        rows = await self.repository.get_shift_configurations()
        if rows:
            resolver = ShiftWindowResolver.from_configurations(rows)
        else:
            resolver = ShiftWindowResolver(config.shift_windows)
        return ScheduleContext(
            config=config,
            grid=IntervalGrid(config.day_start, config.day_end, config.interval_minutes),
            resolver=resolver,
            rules=await self.repository.get_break_rules(),
            coverage_rule=await self.repository.get_coverage_rule(),
        )

    async def _require_shift(self, user_id: str, date: str):
        shift = await self.repository.get_shift(user_id, date)
        if shift is None:
            raise ShiftNotFoundError(user_id, date)
        return shift

    # Schedule view

    async def get_schedule(self, date: str, department: Optional[str] = None) -> dict:
        """Agents with their breaks, per-slot coverage and open warnings for a date."""
        ctx = await self.load_context()
        await self._detect(ctx, date)

        shifts = await self.repository.get_shifts(date, department)
        all_assignments = await self.repository.get_assignments(date)
        roster = {s.user_id for s in shifts}
        if department:
            assignments = [a for a in all_assignments if a.user_id in roster]
        else:
            assignments = all_assignments

        by_user: dict[str, list[BreakAssignment]] = {}
        for a in assignments:
            by_user.setdefault(a.user_id, []).append(a)

        agents = []
        for shift in shifts:
            window = ctx.resolver.resolve(shift.shift_code)
            rows = sorted(by_user.get(shift.user_id, []), key=lambda a: a.interval_slot)
            agents.append({
                "user_id": shift.user_id,
                "name": shift.name,
                "department": shift.department,
                "shift_code": shift.shift_code,
                "shift_start": window.start if window else None,
                "shift_end": window.end if window else None,
                "required_breaks": {
                    rule.break_type.value: rule.required_count(window.duration_minutes) if window else 0
                    for rule in ctx.rules
                    if rule.is_active
                },
                "breaks": [
                    {
                        "interval_slot": a.interval_slot,
                        "time": ctx.grid.label(a.interval_slot) if 0 <= a.interval_slot < ctx.grid.total_slots else None,
                        "break_type": a.break_type.value,
                        "shift_code_at_assignment": a.shift_code_at_assignment,
                    }
                    for a in rows
                ],
                "version": schedule_version(shift.shift_code, rows),
            })

        coverage = ctx.calculator.summarize(assignments, shifts)
        warnings = await self.repository.get_unresolved_warnings(date)
        if department:
            warnings = [w for w in warnings if w.user_id in roster]

        return {
            "date": date,
            "interval_minutes": ctx.grid.interval_minutes,
            "slots": ctx.grid.labels(),
            "agents": agents,
            "coverage": coverage.to_dict(),
            "coverage_stats": coverage.stats(),
            "coverage_violations": [v.to_dict() for v in coverage.exceeding(ctx.coverage_rule)],
            "warnings": [w.to_dict() for w in warnings],
        }

    # Manual edits

    async def validate(self, user_id: str, date: str, proposed: Iterable) -> ValidationResult:
        """Dry run of the constraint checks against the agent's current shift."""
        ctx = await self.load_context()
        shift = await self._require_shift(user_id, date)
        return ctx.validator.validate(shift, proposed, ctx.rules)

    async def validate_and_replace(
        self,
        user_id: str,
        date: str,
        proposed: Iterable,
        created_by: Optional[str] = None,
        expected_version: Optional[str] = None,
    ) -> ReplaceResult:
        """
        Validate the agent's full break set and store it in place of the old one.

        Raises:
            ShiftNotFoundError: If the agent has no shift on the date
            ConcurrentModificationError: If expected_version is stale
        """
        ctx = await self.load_context()
        shift = await self._require_shift(user_id, date)
        proposed = normalize_proposed(proposed)

        validation = ctx.validator.validate(shift, proposed, ctx.rules)
        if not validation.ok:
            logging.info(f"Rejected breaks for {user_id} on {date}: {validation.error_count} violations")
            return ReplaceResult(validation=validation)

        assignments = [
            BreakAssignment(
                user_id=user_id,
                date=date,
                shift_code_at_assignment=shift.shift_code,
                interval_slot=slot,
                break_type=break_type,
                created_by=created_by,
            )
            for slot, break_type in sorted(proposed)
        ]
        version = await self.repository.replace_assignments(user_id, date, assignments, expected_version)
        return ReplaceResult(validation=validation, assignments=assignments, version=version)

    async def clear_assignments(self, user_id: str, date: str) -> int:
        deleted = await self.repository.delete_assignments(user_id, date)
        logging.info(f"Cleared {deleted} breaks for {user_id} on {date}")
        return deleted

    async def bulk_replace(
        self,
        date: str,
        updates: Iterable[dict],
        created_by: Optional[str] = None,
    ) -> dict:
        """
        Validate and store several agents' break sets for one date.

        Each update is {"user_id", "breaks", "expected_version"?} and is
        applied on its own; a rejected agent does not roll back the others.
        """
        updated, failed = [], []
        for update in updates:
            user_id = update["user_id"]
            try:
                outcome = await self.validate_and_replace(
                    user_id,
                    date,
                    update.get("breaks", []),
                    created_by=created_by,
                    expected_version=update.get("expected_version"),
                )
            except ShiftNotFoundError:
                failed.append({"user_id": user_id, "reason": "shift_not_found", "violations": []})
                continue
            except ConcurrentModificationError as e:
                logging.warning(str(e))
                failed.append({"user_id": user_id, "reason": "concurrent_modification", "violations": []})
                continue

            if not outcome.ok:
                failed.append({
                    "user_id": user_id,
                    "reason": "validation_failed",
                    "violations": [v.to_dict() for v in outcome.validation.violations],
                })
                continue
            updated.append({"user_id": user_id, "version": outcome.version})

        status = "partial" if failed else "success"
        logging.info(f"Bulk update for {date}: {len(updated)} agents stored, {len(failed)} failed")
        return {"status": status, "updated": updated, "failed_agents": failed}

    async def clear_all_for_date(self, date: str) -> int:
        deleted = await self.repository.delete_assignments_for_date(date)
        logging.info(f"Cleared {deleted} breaks on {date}")
        return deleted

    # Auto-distribution

    async def preview_distribution(
        self,
        date: str,
        department: Optional[str] = None,
        apply_mode: ApplyMode | str = ApplyMode.ALL,
        solver_type: Optional[SolverType | str] = None,
        created_by: Optional[str] = None,
    ) -> DistributionResult:
        """Run the solver for every shift of the date without storing anything."""
        ctx = await self.load_context()
        result, _ = await self._distribute(ctx, date, department, apply_mode, solver_type, created_by)
        return result

    async def apply_distribution(
        self,
        date: str,
        department: Optional[str] = None,
        apply_mode: ApplyMode | str = ApplyMode.ALL,
        solver_type: Optional[SolverType | str] = None,
        created_by: Optional[str] = None,
    ) -> dict:
        """
        Distribute and store every agent whose break set passes validation.

        Agents that fail re-validation, or whose schedule changed since it
        was read, are left untouched and reported. The status is "partial"
        when any agent failed or the stored result is not feasible (an
        unplaceable break or a slot over coverage capacity); otherwise
        "success".
        """
        ctx = await self.load_context()
        result, problem = await self._distribute(ctx, date, department, apply_mode, solver_type, created_by)

        shifts = {s.user_id: s for s in problem.shifts}
        existing: dict[str, list[BreakAssignment]] = {}
        for a in problem.existing_assignments:
            existing.setdefault(a.user_id, []).append(a)

        applied, failed = [], []
        for user_id, rows in sorted(result.assignments_by_user.items()):
            shift = shifts[user_id]
            validation = ctx.validator.validate(shift, rows, ctx.rules)
            if not validation.ok:
                failed.append({
                    "user_id": user_id,
                    "reason": "validation_failed",
                    "violations": [v.to_dict() for v in validation.violations],
                })
                continue

            expected = schedule_version(shift.shift_code, existing.get(user_id, []))
            try:
                await self.repository.replace_assignments(user_id, date, rows, expected)
            except ConcurrentModificationError as e:
                logging.warning(str(e))
                failed.append({"user_id": user_id, "reason": "concurrent_modification", "violations": []})
                continue
            applied.append(user_id)

        status = "partial" if failed or not result.feasible else "success"
        logging.info(
            f"Applied distribution for {date}: {len(applied)} agents stored, "
            f"{len(failed)} failed, status {status}"
        )
        return {
            "status": status,
            "applied_users": applied,
            "failed_agents": failed,
            "result": result.to_dict(),
        }

    async def _distribute(
        self,
        ctx: ScheduleContext,
        date: str,
        department: Optional[str],
        apply_mode: ApplyMode | str,
        solver_type: Optional[SolverType | str],
        created_by: Optional[str],
    ) -> tuple[DistributionResult, DistributionProblem]:
        shifts = await self.repository.get_shifts(date, department)
        roster = {s.user_id for s in shifts}
        existing = [a for a in await self.repository.get_assignments(date) if a.user_id in roster]

        problem = DistributionProblem(
            date=date,
            shifts=shifts,
            grid=ctx.grid,
            resolver=ctx.resolver,
            rules=ctx.rules,
            coverage_rule=ctx.coverage_rule,
            apply_mode=ApplyMode(apply_mode),
            existing_assignments=existing,
            created_by=created_by,
        )
        result = distribute(
            problem,
            solver_type or ctx.config.solver_type,
            SolverConfig(time_limit_sec=ctx.config.solver_time_limit_sec),
        )
        return result, problem

    # Warnings

    async def detect_warnings(self, date: str) -> list[BreakScheduleWarning]:
        """Store a warning for each agent whose breaks no longer match the roster."""
        ctx = await self.load_context()
        return await self._detect(ctx, date)

    async def _detect(self, ctx: ScheduleContext, date: str) -> list[BreakScheduleWarning]:
        detector = WarningDetector(ctx.resolver)
        assignments = await self.repository.get_assignments(date)
        shifts = await self.repository.get_shifts(date)
        existing = await self.repository.get_warnings(date)

        obsolete = detector.obsolete(assignments, shifts, existing)
        if obsolete:
            await self.repository.delete_warnings([w.id for w in obsolete])
            retired = {w.id for w in obsolete}
            existing = [w for w in existing if w.id not in retired]

        new = detector.detect(assignments, shifts, existing)
        if not new:
            return []
        saved = await self.repository.save_warnings(new)
        for warning in saved:
            logging.warning(f"Break schedule warning for {warning.user_id} on {date}: {warning.message}")
        return saved

    async def dismiss_warning(self, warning_id: str) -> BreakScheduleWarning:
        warning = await self.repository.resolve_warning(warning_id)
        logging.info(f"Dismissed warning {warning_id} for {warning.user_id} on {warning.date}")
        return warning

    # Rules and configuration

    async def get_break_rules(self) -> list[BreakRule]:
        return await self.repository.get_break_rules()

    async def save_break_rule(self, rule: BreakRule) -> BreakRule:
        for bucket in rule.buckets:
            if bucket.min_shift_minutes < 0 or bucket.count < 0:
                raise ValueError("Bucket thresholds and counts must be non-negative")
        if rule.min_spacing_slots < 0 or rule.forbidden_edge_slots < 0:
            raise ValueError("Spacing and edge slots must be non-negative")
        if rule.max_gap_slots is not None and rule.max_gap_slots < 1:
            raise ValueError("max_gap_slots must be at least 1")
        return await self.repository.save_break_rule(rule)

    async def update_break_rule(self, break_type: BreakType | str, changes: dict) -> BreakRule:
        """Apply the given fields to the stored rule; omitted fields keep their value."""
        break_type = BreakType(break_type.upper() if isinstance(break_type, str) else break_type)
        rules = {r.break_type: r for r in await self.repository.get_break_rules()}
        current = rules.get(break_type) or BreakRule(break_type)
        merged = {**current.to_dict(), **changes, "break_type": break_type.value}
        return await self.save_break_rule(BreakRule.from_dict(merged))

    async def toggle_break_rule(self, break_type: BreakType | str, is_active: bool) -> BreakRule:
        rule = await self.update_break_rule(break_type, {"is_active": is_active})
        logging.info(f"Break rule {rule.break_type.value} {'enabled' if is_active else 'disabled'}")
        return rule

    async def get_coverage_rule(self) -> CoverageRule:
        return await self.repository.get_coverage_rule()

    async def save_coverage_rule(self, rule: CoverageRule) -> CoverageRule:
        if rule.max_concurrent_on_break is not None and rule.max_concurrent_on_break < 0:
            raise ValueError("max_concurrent_on_break must be non-negative")
        if rule.max_concurrent_percent is not None and not 0 <= rule.max_concurrent_percent <= 100:
            raise ValueError("max_concurrent_percent must be between 0 and 100")
        if rule.min_available < 0:
            raise ValueError("min_available must be non-negative")
        return await self.repository.save_coverage_rule(rule)

    async def get_shift_configurations(self) -> list[dict]:
        rows = await self.repository.get_shift_configurations()
        if rows:
            return rows
        config = await self.repository.get_schedule_config() or self.default_config
        return [
            {"shift_code": code, "start_time": start, "end_time": end, "description": None, "is_active": True}
            for code, (start, end) in sorted(config.shift_windows.items())
        ]

    async def save_shift_configuration(self, row: dict) -> dict:
        start, end = to_minutes(row["start_time"]), to_minutes(row["end_time"])
        if end < start:
            raise ValueError(f"Shift {row['shift_code']} ends before it starts")
        if not await self.repository.get_shift_configurations():
            # Stored rows replace the default table, so store the defaults first
            for default_row in await self.get_shift_configurations():
                await self.repository.save_shift_configuration(default_row)
        return await self.repository.save_shift_configuration(row)

    async def get_schedule_config(self) -> ScheduleConfig:
        return await self.repository.get_schedule_config() or self.default_config

    async def save_schedule_config(self, config: ScheduleConfig) -> ScheduleConfig:
        IntervalGrid(config.day_start, config.day_end, config.interval_minutes)
        SolverType(config.solver_type)
        current = await self.get_schedule_config()
        config = replace(config, shift_windows=dict(current.shift_windows))
        return await self.repository.save_schedule_config(config)

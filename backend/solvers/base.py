"""Base protocol and shared problem preparation for break solvers."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

from breaks.coverage import CoverageCalculator
from breaks.engine import ConstraintValidator, rules_by_type
from breaks.types import (
    BreakAssignment,
    BreakRule,
    Shift,
    ShiftWindow,
    Violation,
    ViolationType,
)

from .types import ApplyMode, DistributionProblem, DistributionResult, SolverConfig

AUTO_DISTRIBUTION_USER = "auto-distribution"


class BreakSolver(Protocol):
    """Protocol defining the interface for break distribution solvers."""

    def solve(
        self,
        problem: DistributionProblem,
        config: SolverConfig,
    ) -> DistributionResult:
        """
        Distribute the required breaks of every agent in the problem.

        Args:
            problem: The distribution problem definition
            config: Solver configuration parameters

        Returns:
            DistributionResult with assignments, violations and coverage
        """
        ...


@dataclass
class AgentPlan:
    """One agent's required breaks and the slot bounds for each of them."""
    shift: Shift
    window: ShiftWindow
    breaks: list[BreakRule]
    lower: list[int]  # Earliest allowed slot per break, edges excluded
    upper: list[int]  # Latest allowed slot per break, edges excluded

    @property
    def user_id(self) -> str:
        return self.shift.user_id

    def gap(self, i: int, j: int) -> int:
        """Slots required between breaks i and j; never less than one."""
        return max(1, self.breaks[i].min_spacing_slots, self.breaks[j].min_spacing_slots)

    def latest(self) -> list[int]:
        """Latest slot per break that still leaves room for every later break."""
        latest = list(self.upper)
        for k in range(len(latest) - 2, -1, -1):
            latest[k] = min(latest[k], latest[k + 1] - self.gap(k, k + 1))
        return latest

    def earliest(self) -> list[int]:
        earliest = list(self.lower)
        for k in range(1, len(earliest)):
            earliest[k] = max(earliest[k], earliest[k - 1] + self.gap(k - 1, k))
        return earliest

    def fits(self) -> bool:
        """Whether the whole chain of breaks can be placed in the window."""
        return all(e <= l for e, l in zip(self.earliest(), self.latest()))


@dataclass
class PreparedProblem:
    """Agents to schedule plus the headcount context they are scheduled against."""
    plans: list[AgentPlan] = field(default_factory=list)
    kept_users: list[str] = field(default_factory=list)
    skipped_users: list[str] = field(default_factory=list)
    fixed_assignments: list[BreakAssignment] = field(default_factory=list)
    staffed: Counter = field(default_factory=Counter)


def prepare(problem: DistributionProblem) -> PreparedProblem:
    """
    Order agents by user_id and work out their required breaks.

    Raises:
        ValueError: If a user appears in more than one shift
    """
    counts = Counter(shift.user_id for shift in problem.shifts)
    duplicates = sorted(user for user, n in counts.items() if n > 1)
    if duplicates:
        raise ValueError(f"Duplicate shifts for users: {', '.join(duplicates)}")

    rules = sorted(rules_by_type(problem.rules).values(), key=lambda r: (r.sequence, r.break_type.value))

    existing: dict[str, list[BreakAssignment]] = {}
    for assignment in problem.existing_assignments:
        existing.setdefault(assignment.user_id, []).append(assignment)

    prepared = PreparedProblem()
    for shift in sorted(problem.shifts, key=lambda s: s.user_id):
        window = problem.resolver.resolve(shift.shift_code)
        if window is None:
            prepared.skipped_users.append(shift.user_id)
            continue

        slots = problem.grid.window_slots(window)
        for slot in slots:
            prepared.staffed[slot] += 1

        if problem.apply_mode == ApplyMode.ONLY_UNSCHEDULED and existing.get(shift.user_id):
            prepared.kept_users.append(shift.user_id)
            prepared.fixed_assignments.extend(existing[shift.user_id])
            continue

        breaks = []
        for rule in rules:
            breaks.extend([rule] * rule.required_count(window.duration_minutes))

        prepared.plans.append(AgentPlan(
            shift=shift,
            window=window,
            breaks=breaks,
            lower=[slots.start + rule.forbidden_edge_slots for rule in breaks],
            upper=[slots.stop - 1 - rule.forbidden_edge_slots for rule in breaks],
        ))

    return prepared


def build_result(
    problem: DistributionProblem,
    prepared: PreparedProblem,
    placements: dict[str, list[tuple[int, BreakRule]]],
    unplaceable: list[Violation],
    solver_name: str,
) -> DistributionResult:
    """Turn solver placements into assignments and check coverage over all of them."""
    created_by = problem.created_by or AUTO_DISTRIBUTION_USER
    assignments_by_user: dict[str, list[BreakAssignment]] = {}
    for plan in prepared.plans:
        assignments_by_user[plan.user_id] = [
            BreakAssignment(
                user_id=plan.user_id,
                date=problem.date,
                shift_code_at_assignment=plan.shift.shift_code,
                interval_slot=slot,
                break_type=rule.break_type,
                created_by=created_by,
            )
            for slot, rule in sorted(placements.get(plan.user_id, []), key=lambda p: p[0])
        ]

    all_assignments = list(prepared.fixed_assignments)
    for rows in assignments_by_user.values():
        all_assignments.extend(rows)

    calculator = CoverageCalculator(problem.grid, problem.resolver)
    coverage = calculator.summarize(all_assignments, problem.shifts)
    violations = list(unplaceable) + coverage.exceeding(problem.coverage_rule)
    rule_compliance = check_rule_compliance(problem, prepared, assignments_by_user)

    if logging.getLogger().isEnabledFor(logging.DEBUG):
        logging.debug(f"Coverage for {problem.date}:\n{coverage.to_frame(problem.grid).to_string()}")

    return DistributionResult(
        assignments_by_user=assignments_by_user,
        violations=violations,
        feasible=not violations,
        coverage=coverage,
        skipped_users=prepared.skipped_users,
        kept_users=prepared.kept_users,
        solver=solver_name,
        rule_compliance=rule_compliance,
    )


def unplaceable_violation(plan: AgentPlan, rule: BreakRule) -> Violation:
    return Violation(
        violation_type=ViolationType.UNPLACEABLE,
        message=(
            f"No valid slot for {rule.break_type.value} in {plan.user_id}'s "
            f"{plan.shift.shift_code} shift ({plan.window.start}-{plan.window.end})"
        ),
        user_id=plan.user_id,
        break_type=rule.break_type,
        details={"shift_code": plan.shift.shift_code},
    )


def check_rule_compliance(
    problem: DistributionProblem,
    prepared: PreparedProblem,
    assignments_by_user: dict[str, list[BreakAssignment]],
) -> dict:
    """Re-validate every distributed agent and count what the checks report."""
    validator = ConstraintValidator(problem.grid, problem.resolver)
    blocking = warning = 0
    for plan in prepared.plans:
        validation = validator.validate(plan.shift, assignments_by_user.get(plan.user_id, []), problem.rules)
        blocking += validation.error_count
        warning += validation.warning_count
    return {
        "total_violations": blocking + warning,
        "blocking_violations": blocking,
        "warning_violations": warning,
    }

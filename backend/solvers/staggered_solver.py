"""Fixed-point break distribution: breaks spread evenly over each shift."""

import logging
import time

from breaks.types import BreakRule, Violation

from .base import AgentPlan, build_result, prepare, unplaceable_violation
from .types import (
    DistributionProblem,
    DistributionResult,
    SolverConfig,
    SolverType,
)


class StaggeredSolver:
    """
    Places each agent's breaks at even fractions of the shift.

    With n required breaks, break k aims for start + (k + 1) / (n + 1) of
    the shift duration, so three breaks land near the quarter, half and
    three-quarter points. Each target is floored to its slot and moved to
    the nearest slot that keeps the edge, spacing and lookahead bounds.
    Coverage is not balanced; over-capacity slots are still reported.
    """

    def solve(
        self,
        problem: DistributionProblem,
        config: SolverConfig,
    ) -> DistributionResult:
        start_time = time.time()
        prepared = prepare(problem)

        placements: dict[str, list[tuple[int, BreakRule]]] = {}
        unplaceable: list[Violation] = []
        for plan in prepared.plans:
            placements[plan.user_id] = self._place_agent(problem, plan, unplaceable)

        result = build_result(problem, prepared, placements, unplaceable, SolverType.STAGGERED.value)
        logging.info(
            f"Staggered distribution for {problem.date}: {len(prepared.plans)} agents, "
            f"{len(result.violations)} violations in {time.time() - start_time:.3f}s"
        )
        return result

    def target_slots(self, problem: DistributionProblem, plan: AgentPlan) -> list[int]:
        """Ideal slot per break before any bound is applied."""
        grid = problem.grid
        n = len(plan.breaks)
        duration = plan.window.duration_minutes
        targets = []
        for k in range(n):
            minute = plan.window.start_minute + duration * (k + 1) // (n + 1)
            targets.append((minute - grid.start_minute) // grid.interval_minutes)
        return targets

    def _place_agent(
        self,
        problem: DistributionProblem,
        plan: AgentPlan,
        unplaceable: list[Violation],
    ) -> list[tuple[int, BreakRule]]:
        latest = plan.latest()
        targets = self.target_slots(problem, plan)
        placed: list[tuple[int, BreakRule, int]] = []  # (slot, rule, index)

        for k, rule in enumerate(plan.breaks):
            earliest = plan.lower[k]
            if placed:
                prev_slot, _, prev_k = placed[-1]
                earliest = max(earliest, prev_slot + plan.gap(prev_k, k))

            candidates = [
                slot for slot in range(earliest, latest[k] + 1)
                if all(abs(slot - other) >= plan.gap(j, k) for other, _, j in placed)
            ]
            if not candidates:
                unplaceable.append(unplaceable_violation(plan, rule))
                continue

            target = targets[k]
            placed.append((min(candidates, key=lambda slot: (abs(slot - target), slot)), rule, k))

        return [(slot, rule) for slot, rule, _ in placed]

"""Deterministic greedy break distribution."""

import logging
import time
from collections import Counter

from breaks.types import BreakRule, Violation

from .base import AgentPlan, PreparedProblem, build_result, prepare, unplaceable_violation
from .types import (
    DistributionProblem,
    DistributionResult,
    SolverConfig,
    SolverType,
)


class GreedySolver:
    """
    Places breaks agent by agent, in user_id order.

    Each break goes to the candidate slot with the lowest
    (over_capacity, on_break_so_far, slot) key. Candidates respect the
    shift window, forbidden edges, spacing against breaks already placed
    and a lookahead bound that leaves room for the agent's later breaks.
    """

    def solve(
        self,
        problem: DistributionProblem,
        config: SolverConfig,
    ) -> DistributionResult:
        start_time = time.time()
        prepared = prepare(problem)
        placements, unplaceable = self.place(problem, prepared)
        result = build_result(problem, prepared, placements, unplaceable, SolverType.GREEDY.value)

        logging.info(
            f"Greedy distribution for {problem.date}: {len(prepared.plans)} agents, "
            f"{len(result.violations)} violations in {time.time() - start_time:.3f}s"
        )
        return result

    def place(
        self,
        problem: DistributionProblem,
        prepared: PreparedProblem,
    ) -> tuple[dict[str, list[tuple[int, BreakRule]]], list[Violation]]:
        """Greedy placement for every plan; returns placements and unplaceable violations."""
        tally: Counter = Counter(a.interval_slot for a in prepared.fixed_assignments)
        capacity = {
            slot: problem.coverage_rule.capacity(staffed)
            for slot, staffed in prepared.staffed.items()
        }

        placements: dict[str, list[tuple[int, BreakRule]]] = {}
        unplaceable: list[Violation] = []

        for plan in prepared.plans:
            placed = self._place_agent(plan, tally, capacity, unplaceable)
            for slot, _ in placed:
                tally[slot] += 1
            placements[plan.user_id] = placed

        return placements, unplaceable

    def _place_agent(
        self,
        plan: AgentPlan,
        tally: Counter,
        capacity: dict,
        unplaceable: list[Violation],
    ) -> list[tuple[int, BreakRule]]:
        latest = plan.latest()
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

            def key(slot: int):
                cap = capacity.get(slot)
                over = 1 if cap is not None and tally[slot] + 1 > cap else 0
                return (over, tally[slot], slot)

            placed.append((min(candidates, key=key), rule, k))

        return [(slot, rule) for slot, rule, _ in placed]

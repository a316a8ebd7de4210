"""Google OR-Tools CP-SAT implementation of the break distribution solver."""

import logging
import time
from collections import Counter

from ortools.sat.python import cp_model

from .base import PreparedProblem, build_result, prepare
from .greedy_solver import GreedySolver
from .types import (
    DistributionProblem,
    DistributionResult,
    SolverConfig,
    SolverStatus,
    SolverType,
)


class ORToolsSolver:
    """
    Break distribution using Google OR-Tools CP-SAT.

    Same hard constraints as the greedy solver. Minimizes agents over
    capacity first, then the peak number on break, then how late breaks
    fall. Falls back to the greedy solver when an agent's breaks cannot
    fit its window or no solution is found within the time limit.
    """

    def __init__(self):
        self.status: SolverStatus | None = None

    def solve(
        self,
        problem: DistributionProblem,
        config: SolverConfig,
    ) -> DistributionResult:
        """Solve the distribution problem using OR-Tools CP-SAT."""
        start_time = time.time()
        prepared = prepare(problem)

        unfit = [plan.user_id for plan in prepared.plans if not plan.fits()]
        if unfit:
            logging.warning(f"Breaks cannot fit the windows of {', '.join(unfit)}; using greedy solver")
            return GreedySolver().solve(problem, config)

        placements = self._solve_model(problem, prepared, config)
        if placements is None:
            logging.warning(f"CP-SAT found no solution for {problem.date} ({self.status}); using greedy solver")
            return GreedySolver().solve(problem, config)

        result = build_result(problem, prepared, placements, [], SolverType.ORTOOLS.value)
        logging.info(
            f"CP-SAT distribution for {problem.date}: {len(prepared.plans)} agents, "
            f"status {self.status.value}, {len(result.violations)} violations "
            f"in {time.time() - start_time:.3f}s"
        )
        return result

    def _solve_model(
        self,
        problem: DistributionProblem,
        prepared: PreparedProblem,
        config: SolverConfig,
    ):
        model = cp_model.CpModel()

        fixed = Counter(a.interval_slot for a in prepared.fixed_assignments)
        total_slots = problem.grid.total_slots
        n_breaks = sum(len(plan.breaks) for plan in prepared.plans)

        # Decision variables: x[(user, k, slot)] = 1 when break k sits in slot
        x = {}
        position = {}
        for plan in prepared.plans:
            earliest, latest = plan.earliest(), plan.latest()
            for k in range(len(plan.breaks)):
                choices = []
                for s in range(earliest[k], latest[k] + 1):
                    x[(plan.user_id, k, s)] = model.NewBoolVar(f"x_{plan.user_id}_{k}_{s}")
                    choices.append((s, x[(plan.user_id, k, s)]))
                model.AddExactlyOne([var for _, var in choices])
                position[(plan.user_id, k)] = model.NewIntVar(earliest[k], latest[k], f"pos_{plan.user_id}_{k}")
                model.Add(position[(plan.user_id, k)] == sum(s * var for s, var in choices))

        # Ordering and spacing between every pair of an agent's breaks
        for plan in prepared.plans:
            for i in range(len(plan.breaks)):
                for j in range(i + 1, len(plan.breaks)):
                    model.Add(
                        position[(plan.user_id, j)] - position[(plan.user_id, i)] >= plan.gap(i, j)
                    )

        # Load per slot, over-capacity and peak
        max_load = len(prepared.plans) + max(fixed.values(), default=0)
        peak = model.NewIntVar(0, max_load, "peak")
        over_terms = []
        for s in range(total_slots):
            on_break = [var for (user, k, slot), var in x.items() if slot == s]
            if not on_break:
                continue
            load = sum(on_break) + fixed[s]
            model.Add(peak >= load)

            cap = problem.coverage_rule.capacity(prepared.staffed.get(s, 0))
            if cap is not None:
                over = model.NewIntVar(0, max_load, f"over_{s}")
                model.Add(over >= load - cap)
                over_terms.append(over)

        # Lexicographic weights: over-capacity, then peak, then positions
        position_weight_total = n_breaks * total_slots + 1
        peak_weight = position_weight_total
        over_weight = peak_weight * (max_load + 1)
        model.Minimize(
            over_weight * sum(over_terms)
            + peak_weight * peak
            + sum(position.values())
        )

        solver = cp_model.CpSolver()
        solver.parameters.log_search_progress = False
        solver.parameters.max_time_in_seconds = config.time_limit_sec
        solver.parameters.num_workers = config.num_workers
        solver.parameters.random_seed = config.random_seed
        status = solver.Solve(model)

        if status == cp_model.INFEASIBLE:
            self.status = SolverStatus.INFEASIBLE
            return None
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            self.status = SolverStatus.ERROR
            return None
        self.status = SolverStatus.OPTIMAL if status == cp_model.OPTIMAL else SolverStatus.SUBOPTIMAL

        placements = {}
        for plan in prepared.plans:
            placements[plan.user_id] = [
                (solver.Value(position[(plan.user_id, k)]), rule)
                for k, rule in enumerate(plan.breaks)
            ]
        return placements

"""Break distribution solvers."""

from typing import Optional

from .types import (
    SolverType,
    SolverStatus,
    SolverConfig,
    ApplyMode,
    DistributionProblem,
    DistributionResult,
)
from .base import BreakSolver
from .greedy_solver import GreedySolver
from .ortools_solver import ORToolsSolver
from .staggered_solver import StaggeredSolver


def create_solver(solver_type: SolverType | str) -> BreakSolver:
    """
    Factory function to create a solver instance.

    Args:
        solver_type: The type of solver to create (SolverType enum or string)

    Returns:
        A solver instance implementing BreakSolver protocol

    Raises:
        ValueError: If solver_type is not recognized
    """
    if isinstance(solver_type, str):
        solver_type = SolverType(solver_type.lower())

    if solver_type == SolverType.GREEDY:
        return GreedySolver()
    elif solver_type == SolverType.ORTOOLS:
        return ORToolsSolver()
    elif solver_type == SolverType.STAGGERED:
        return StaggeredSolver()
    else:
        raise ValueError(f"Unknown solver type: {solver_type}")


def distribute(
    problem: DistributionProblem,
    solver_type: SolverType | str = SolverType.GREEDY,
    config: Optional[SolverConfig] = None,
) -> DistributionResult:
    """Run the chosen solver over the problem."""
    return create_solver(solver_type).solve(problem, config or SolverConfig())


__all__ = [
    "SolverType",
    "SolverStatus",
    "SolverConfig",
    "ApplyMode",
    "DistributionProblem",
    "DistributionResult",
    "BreakSolver",
    "GreedySolver",
    "ORToolsSolver",
    "StaggeredSolver",
    "create_solver",
    "distribute",
]

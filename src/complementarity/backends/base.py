"""Solver back-end base classes.

A back end receives a fully flattened problem: bounds, a starting point
and the ``F``/``J`` callbacks, all positional in correspondence order.
Back ends that need the algebraic form (e.g. PATH through Pyomo) also
find the ordered variables and residuals on the problem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import IntEnum
from typing import Any

import numpy as np
from pydantic import BaseModel, Field

from complementarity.solver.options import SolverOptions
from complementarity.solver.outcome import OutcomeKind, StatusClassifier


class TerminationCode(IntEnum):
    """Raw termination codes, numbered as the PATH solver numbers them."""

    SOLVED = 1
    NO_PROGRESS = 2
    MAJOR_ITERATION_LIMIT = 3
    MINOR_ITERATION_LIMIT = 4
    TIME_LIMIT = 5
    USER_INTERRUPT = 6
    BOUND_ERROR = 7
    DOMAIN_ERROR = 8
    INTERNAL_ERROR = 9


DEFAULT_STATUS_TABLE: dict[int, OutcomeKind] = {
    TerminationCode.SOLVED: OutcomeKind.OPTIMAL,
    TerminationCode.NO_PROGRESS: OutcomeKind.INFEASIBLE,
    TerminationCode.MAJOR_ITERATION_LIMIT: OutcomeKind.ITERATION_LIMIT,
    TerminationCode.MINOR_ITERATION_LIMIT: OutcomeKind.ITERATION_LIMIT,
    TerminationCode.TIME_LIMIT: OutcomeKind.TIME_LIMIT,
    TerminationCode.BOUND_ERROR: OutcomeKind.INFEASIBLE,
    TerminationCode.DOMAIN_ERROR: OutcomeKind.NUMERICAL_FAILURE,
    TerminationCode.INTERNAL_ERROR: OutcomeKind.NUMERICAL_FAILURE,
}


class MCPProblem(BaseModel):
    """A flattened mixed complementarity problem.

    Attributes:
        lower: Lower bounds, shape (n,)
        upper: Upper bounds, shape (n,)
        x0: Starting point, shape (n,)
        evaluator: ``F(x) -> ndarray[n]``
        jacobian: ``J(x) -> ndarray[n, n]`` (or sparse matrix)
        jacobian_structure: ``(rows, cols)`` of structural nonzeros
        variables: Variable handles in flat order
        residuals: Residuals in flat order (``residuals[i] ⟂ variables[i]``)
    """

    lower: np.ndarray = Field(..., description="Lower bounds")
    upper: np.ndarray = Field(..., description="Upper bounds")
    x0: np.ndarray = Field(..., description="Starting point")
    evaluator: Callable[[np.ndarray], np.ndarray] = Field(..., description="F(x)")
    jacobian: Callable[[np.ndarray], Any] = Field(..., description="J(x)")
    jacobian_structure: tuple[np.ndarray, np.ndarray] | None = Field(
        default=None, description="Sparsity pattern"
    )
    variables: tuple[Any, ...] = Field(default_factory=tuple, description="Variables")
    residuals: tuple[Any, ...] = Field(default_factory=tuple, description="Residuals")

    model_config = {"arbitrary_types_allowed": True}

    @property
    def n(self) -> int:
        return int(self.x0.shape[0])

    def __repr__(self) -> str:
        return f"MCPProblem(n={self.n})"


class SolverOutput(BaseModel):
    """Raw result returned by a back end.

    Attributes:
        x: Solution vector in flat order (may be garbage unless solved)
        status_code: Solver-specific termination code
        message: Solver message
        iterations: Number of iterations
        residual_norm: Final residual norm of the reformulated system
        solve_time: Time taken to solve (seconds)
    """

    x: np.ndarray = Field(..., description="Solution vector")
    status_code: int = Field(..., description="Termination code")
    message: str = Field(default="", description="Solver message")
    iterations: int = Field(default=0, description="Number of iterations")
    residual_norm: float | None = Field(default=None, description="Final residual norm")
    solve_time: float = Field(default=0.0, description="Solve time in seconds")

    model_config = {"arbitrary_types_allowed": True}

    def __repr__(self) -> str:
        return (
            f"SolverOutput(status={self.status_code}, "
            f"iterations={self.iterations}, time={self.solve_time:.2f}s)"
        )


class MCPSolver(ABC):
    """Abstract base class for complementarity solver back ends."""

    name: str = "base"

    def __init__(self) -> None:
        self.last_output: SolverOutput | None = None

    @property
    def status_table(self) -> StatusClassifier:
        """Classifier for this solver's termination codes."""
        return StatusClassifier(DEFAULT_STATUS_TABLE)

    @abstractmethod
    def solve(self, problem: MCPProblem, options: SolverOptions) -> SolverOutput:
        """Solve the problem.

        Args:
            problem: Flattened problem
            options: Solver options, passed through verbatim

        Returns:
            Raw solver output
        """
        ...

    def available(self) -> bool:
        """Whether the back end can run in this environment."""
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


class SolverRegistry:
    """Registry of solver back ends by name.

    Example:
        >>> registry = SolverRegistry()
        >>> registry.register("newton", SemismoothNewtonSolver)
        >>> solver = registry.create("newton")
    """

    def __init__(self) -> None:
        self._solvers: dict[str, type[MCPSolver]] = {}

    def register(self, name: str, solver_class: type[MCPSolver]) -> None:
        """Register a solver class.

        Raises:
            ValueError: If a solver with the same name is registered
        """
        if name in self._solvers:
            msg = f"Solver '{name}' is already registered"
            raise ValueError(msg)
        self._solvers[name] = solver_class

    def get(self, name: str) -> type[MCPSolver]:
        """Get a solver class by name.

        Raises:
            KeyError: If solver not found
        """
        if name not in self._solvers:
            msg = f"Solver '{name}' not found in registry"
            raise KeyError(msg)
        return self._solvers[name]

    def create(self, name: str, **kwargs: Any) -> MCPSolver:
        """Create a solver instance."""
        return self.get(name)(**kwargs)

    def list_solvers(self) -> list[str]:
        """Return list of registered solver names."""
        return list(self._solvers.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._solvers


# Global registry instance
_global_registry: SolverRegistry | None = None


def get_registry() -> SolverRegistry:
    """Get the global solver registry."""
    global _global_registry
    if _global_registry is None:
        _global_registry = SolverRegistry()
    return _global_registry


def register_solver(name: str) -> Callable[[type[MCPSolver]], type[MCPSolver]]:
    """Decorator to register a solver class under ``name``.

    Example:
        >>> @register_solver("newton")
        ... class SemismoothNewtonSolver(MCPSolver):
        ...     pass
    """

    def decorator(solver_class: type[MCPSolver]) -> type[MCPSolver]:
        solver_class.name = name
        get_registry().register(name, solver_class)
        return solver_class

    return decorator


def get_solver(name: str, **kwargs: Any) -> MCPSolver:
    """Create a registered solver by name."""
    return get_registry().create(name, **kwargs)


def list_solvers() -> list[str]:
    """Names of all registered solvers."""
    return get_registry().list_solvers()

"""Run one solve of a model and classify the result.

The dispatcher validates the model, hands a flattened problem to a
back end, classifies the raw termination code and, only on success,
writes the solution back into the model's variables.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import numpy as np

from complementarity.backends.base import MCPSolver, get_solver
from complementarity.solver.options import SolverOptions
from complementarity.solver.outcome import ModelStatus, OutcomeKind, SolveOutcome

if TYPE_CHECKING:
    from complementarity.model import Model

logger = logging.getLogger(__name__)

DEFAULT_SOLVER = "newton"


class SolveDispatcher:
    """Solve a model with one back end.

    Example:
        >>> dispatcher = SolveDispatcher("trust_region")
        >>> outcome = dispatcher.dispatch(model, SolverOptions.from_mapping(time_limit=10))
        >>> outcome.kind
        <OutcomeKind.OPTIMAL: 'optimal'>
    """

    def __init__(self, solver: MCPSolver | str = DEFAULT_SOLVER) -> None:
        self.solver = get_solver(solver) if isinstance(solver, str) else solver

    def dispatch(self, model: Model, options: SolverOptions | None = None) -> SolveOutcome:
        """Solve ``model`` and update its status and values.

        Solver failures are returned as outcomes; the model is marked
        ``FAILED`` and previously stored values are left untouched.

        Args:
            model: Model to solve
            options: Options passed to the solver verbatim

        Returns:
            Classified outcome

        Raises:
            IncompleteCorrespondenceError: If a variable or residual is unpaired
            BoundInversionError: If a variable has ``lower > upper``
            UnknownComponentError: If a pair names an unregistered component
            ForeignReferenceError: If a residual references an unregistered variable
        """
        options = options if options is not None else SolverOptions()
        model.correspondences.validate_complete(model.variables.keys(), model.residuals.keys())
        model.variables.check_bounds()
        model.residuals.check_references(model.variables.keys())

        problem = model.bridge.build_problem()
        name = self.solver.name
        logger.info(f"Solving '{model.name}' ({problem.n} pairs) with solver '{name}'")

        start_time = time.time()
        try:
            output = self.solver.solve(problem, options)
        except Exception as exc:
            logger.error(f"Solver '{name}' failed with {type(exc).__name__}: {exc}")
            model.status = ModelStatus.FAILED
            return SolveOutcome(
                kind=OutcomeKind.NUMERICAL_FAILURE,
                status_code=None,
                solver=name,
                message=f"{type(exc).__name__}: {exc}",
                solve_time=time.time() - start_time,
            )

        kind = self.solver.status_table.classify(output.status_code)
        message = output.message
        x = np.asarray(output.x, dtype=float)
        if kind is OutcomeKind.OPTIMAL and (x.shape != (problem.n,) or not np.all(np.isfinite(x))):
            kind = OutcomeKind.NUMERICAL_FAILURE
            message = "Solver reported success with a non-finite or malformed solution"

        if kind is OutcomeKind.OPTIMAL:
            model.bridge.unflatten(x)
            model.status = ModelStatus.SOLVED
        else:
            model.status = ModelStatus.FAILED

        outcome = SolveOutcome(
            kind=kind,
            status_code=output.status_code,
            solver=name,
            message=message,
            iterations=output.iterations,
            residual_norm=output.residual_norm,
            solve_time=output.solve_time or time.time() - start_time,
        )
        logger.info(f"Solve of '{model.name}' finished: {outcome}")
        return outcome

    def __repr__(self) -> str:
        return f"SolveDispatcher(solver={self.solver.name})"

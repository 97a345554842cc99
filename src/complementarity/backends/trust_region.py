"""Trust-region least-squares solver for box-constrained MCPs.

Minimises ``0.5 |Phi(x)|^2`` with ``scipy.optimize.least_squares``
(trust region reflective) using the generalized Fischer-Burmeister
Jacobian. A point is accepted only if ``|Phi|_inf`` meets the
convergence tolerance; a local minimum with a positive residual is
reported as no progress.

Recognised options:
    convergence_tolerance   ``|Phi|_inf`` accepted as a solution (default 1e-8)
    major_iteration_limit   maximum function evaluations (default 1000)
    time_limit              wall-clock limit in seconds (default none)
    output                  forward progress reports from scipy
"""

from __future__ import annotations

import logging
import math
import time

import numpy as np
from scipy.optimize import least_squares

from complementarity.backends.base import (
    MCPProblem,
    MCPSolver,
    SolverOutput,
    TerminationCode,
    register_solver,
)
from complementarity.backends.reformulation import BoxReformulation
from complementarity.solver.options import SolverOptions

logger = logging.getLogger(__name__)


class _TimeLimitReached(Exception):
    """Raised from inside the objective to stop scipy early."""

    def __init__(self, x: np.ndarray) -> None:
        super().__init__("Time limit reached")
        self.x = x


@register_solver("trust_region")
class TrustRegionSolver(MCPSolver):
    """Least-squares trust region method on the reformulated system."""

    def solve(self, problem: MCPProblem, options: SolverOptions) -> SolverOutput:
        """Run ``least_squares`` from ``problem.x0``."""
        tol = options.get_float("convergence_tolerance", 1e-8)
        max_nfev = options.get_int("major_iteration_limit", 1000)
        time_limit = options.get_float("time_limit", math.inf)
        verbose = 2 if options.get_bool("output") else 0

        start_time = time.time()
        x0 = np.array(problem.x0, dtype=float)

        def finish(
            x: np.ndarray,
            code: TerminationCode,
            message: str,
            iterations: int = 0,
            norm: float | None = None,
        ) -> SolverOutput:
            output = SolverOutput(
                x=x,
                status_code=int(code),
                message=message,
                iterations=iterations,
                residual_norm=norm,
                solve_time=time.time() - start_time,
            )
            self.last_output = output
            return output

        reform = BoxReformulation(problem.lower, problem.upper)
        if np.any(problem.lower > problem.upper):
            return finish(x0, TerminationCode.BOUND_ERROR, "Lower bound exceeds upper bound")
        if problem.n == 0:
            return finish(x0, TerminationCode.SOLVED, "Empty problem", norm=0.0)

        def fun(x: np.ndarray) -> np.ndarray:
            if time.time() - start_time > time_limit:
                raise _TimeLimitReached(x.copy())
            return reform.evaluate(problem.evaluator, x)[0]

        def jac(x: np.ndarray) -> np.ndarray:
            _, dx, df = reform.evaluate(problem.evaluator, x)
            return reform.jacobian(dx, df, problem.jacobian(x))

        try:
            result = least_squares(
                fun,
                x0,
                jac=jac,
                method="trf",
                ftol=1e-15,
                xtol=1e-15,
                gtol=1e-15,
                max_nfev=max_nfev,
                verbose=verbose,
            )
        except _TimeLimitReached as exc:
            return finish(exc.x, TerminationCode.TIME_LIMIT, str(exc))
        except FloatingPointError as exc:
            return finish(x0, TerminationCode.DOMAIN_ERROR, str(exc))

        norm = float(np.max(np.abs(result.fun)))
        logger.debug(f"least_squares status {result.status}: {result.message} (|Phi|_inf = {norm:.3e})")
        if norm <= tol:
            return finish(result.x, TerminationCode.SOLVED, "Solution found", result.nfev, norm)
        if result.status == 0:
            return finish(result.x, TerminationCode.MAJOR_ITERATION_LIMIT, result.message, result.nfev, norm)
        if result.status < 0:
            return finish(result.x, TerminationCode.INTERNAL_ERROR, result.message, result.nfev, norm)
        return finish(result.x, TerminationCode.NO_PROGRESS, result.message, result.nfev, norm)

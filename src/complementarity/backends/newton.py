"""Semismooth Newton solver for box-constrained MCPs.

Solves ``Phi(x) = 0`` (see :mod:`complementarity.backends.reformulation`)
with a damped Newton method on the merit function ``psi = 0.5 |Phi|^2``.
When the Newton system is singular or its direction is not a sufficient
descent direction, the method falls back to steepest descent on ``psi``.

Recognised options:
    convergence_tolerance   ``|Phi|_inf`` at which to stop (default 1e-8)
    major_iteration_limit   maximum Newton iterations (default 500)
    time_limit              wall-clock limit in seconds (default none)
    output                  log iterations at INFO instead of DEBUG
"""

from __future__ import annotations

import logging
import math
import time

import numpy as np

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


@register_solver("newton")
class SemismoothNewtonSolver(MCPSolver):
    """Damped semismooth Newton method on the Fischer-Burmeister system.

    Attributes:
        sigma: Armijo sufficient-decrease constant
        beta: Step reduction factor in the line search
        rho: Descent test constant for the Newton direction
        min_step: Smallest step length before declaring no progress
        gradient_tolerance: Merit gradient norm treated as stationary
    """

    def __init__(
        self,
        sigma: float = 1e-4,
        beta: float = 0.5,
        rho: float = 1e-10,
        min_step: float = 1e-12,
        gradient_tolerance: float = 1e-14,
    ) -> None:
        super().__init__()
        self.sigma = sigma
        self.beta = beta
        self.rho = rho
        self.min_step = min_step
        self.gradient_tolerance = gradient_tolerance

    def solve(self, problem: MCPProblem, options: SolverOptions) -> SolverOutput:
        """Run the Newton iteration from ``problem.x0``."""
        tol = options.get_float("convergence_tolerance", 1e-8)
        max_iter = options.get_int("major_iteration_limit", 500)
        time_limit = options.get_float("time_limit", math.inf)
        log = logger.info if options.get_bool("output") else logger.debug

        start_time = time.time()
        x = np.array(problem.x0, dtype=float)

        def finish(code: TerminationCode, message: str, iterations: int, norm: float | None) -> SolverOutput:
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

        if np.any(problem.lower > problem.upper):
            return finish(TerminationCode.BOUND_ERROR, "Lower bound exceeds upper bound", 0, None)
        if problem.n == 0:
            return finish(TerminationCode.SOLVED, "Empty problem", 0, 0.0)

        reform = BoxReformulation(problem.lower, problem.upper)
        try:
            phi, dx, df = reform.evaluate(problem.evaluator, x)
        except FloatingPointError as exc:
            return finish(TerminationCode.DOMAIN_ERROR, str(exc), 0, None)

        for iteration in range(max_iter):
            norm = float(np.max(np.abs(phi)))
            log(f"Iteration {iteration}: |Phi|_inf = {norm:.3e}")
            if norm <= tol:
                return finish(TerminationCode.SOLVED, "Solution found", iteration, norm)
            if time.time() - start_time > time_limit:
                return finish(TerminationCode.TIME_LIMIT, "Time limit reached", iteration, norm)

            H = reform.jacobian(dx, df, problem.jacobian(x))
            if not np.all(np.isfinite(H)):
                return finish(TerminationCode.DOMAIN_ERROR, "Jacobian is not finite", iteration, norm)

            grad = H.T @ phi
            if float(np.max(np.abs(grad))) <= self.gradient_tolerance:
                return finish(
                    TerminationCode.NO_PROGRESS, "Stationary point of the merit function", iteration, norm
                )

            direction = self._direction(H, phi, grad)
            psi = 0.5 * float(phi @ phi)
            slope = float(grad @ direction)

            step = 1.0
            while True:
                trial = x + step * direction
                try:
                    phi_t, dx_t, df_t = reform.evaluate(problem.evaluator, trial)
                    psi_t = 0.5 * float(phi_t @ phi_t)
                except FloatingPointError:
                    psi_t = math.inf
                if psi_t <= psi + self.sigma * step * slope:
                    break
                step *= self.beta
                if step < self.min_step:
                    return finish(TerminationCode.NO_PROGRESS, "Line search failed", iteration, norm)

            x = trial
            phi, dx, df = phi_t, dx_t, df_t

        norm = float(np.max(np.abs(phi)))
        if norm <= tol:
            return finish(TerminationCode.SOLVED, "Solution found", max_iter, norm)
        return finish(TerminationCode.MAJOR_ITERATION_LIMIT, "Major iteration limit", max_iter, norm)

    def _direction(self, H: np.ndarray, phi: np.ndarray, grad: np.ndarray) -> np.ndarray:
        """Newton direction if it is a descent direction, else ``-grad``."""
        try:
            d = np.linalg.solve(H, -phi)
        except np.linalg.LinAlgError:
            logger.debug("Singular Newton system, using gradient step")
            return -grad
        if not np.all(np.isfinite(d)):
            return -grad
        if float(grad @ d) > -self.rho * float(np.linalg.norm(d)) ** 2.1:
            logger.debug("Newton direction is not a descent direction, using gradient step")
            return -grad
        return d

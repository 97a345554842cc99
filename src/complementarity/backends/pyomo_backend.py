"""PATH back end through Pyomo.

This module translates the algebraic residuals of a problem into Pyomo
expressions, states one ``pyomo.mpec.Complementarity`` condition per
correspondence pair and solves the result with the PATH solver
(``pathampl`` executable) through ``SolverFactory("path")``.

Unlike the numeric back ends it needs the expression trees, not just
the ``F``/``J`` callbacks, so black-box ``FunctionExpression`` residuals
are rejected.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from typing import Any

import numpy as np

from complementarity.backends.base import (
    MCPProblem,
    MCPSolver,
    SolverOutput,
    TerminationCode,
    register_solver,
)
from complementarity.core.expressions import (
    BinaryOp,
    Constant,
    Sum,
    UnaryOp,
    VariableRef,
)
from complementarity.core.keys import ComponentKey
from complementarity.solver.options import SolverOptions

try:
    import pyomo.environ as pyo
    from pyomo.mpec import Complementarity, complements
    from pyomo.opt import TerminationCondition

    PYOMO_AVAILABLE = True
except ImportError:
    PYOMO_AVAILABLE = False

logger = logging.getLogger(__name__)


def _termination_codes() -> dict[Any, TerminationCode]:
    tc = TerminationCondition
    return {
        tc.optimal: TerminationCode.SOLVED,
        tc.locallyOptimal: TerminationCode.SOLVED,
        tc.globallyOptimal: TerminationCode.SOLVED,
        tc.feasible: TerminationCode.SOLVED,
        tc.maxIterations: TerminationCode.MAJOR_ITERATION_LIMIT,
        tc.maxEvaluations: TerminationCode.MINOR_ITERATION_LIMIT,
        tc.maxTimeLimit: TerminationCode.TIME_LIMIT,
        tc.userInterrupt: TerminationCode.USER_INTERRUPT,
        tc.minStepLength: TerminationCode.NO_PROGRESS,
        tc.infeasible: TerminationCode.NO_PROGRESS,
        tc.noSolution: TerminationCode.NO_PROGRESS,
        tc.solverFailure: TerminationCode.INTERNAL_ERROR,
        tc.internalSolverError: TerminationCode.INTERNAL_ERROR,
        tc.error: TerminationCode.INTERNAL_ERROR,
    }


def to_pyomo(expr: Any, var_map: Mapping[ComponentKey, Any]) -> Any:
    """Translate an expression tree into a Pyomo expression.

    Args:
        expr: Expression node
        var_map: Pyomo variable for each variable key

    Raises:
        TypeError: For nodes without an algebraic form
    """
    if isinstance(expr, Constant):
        return expr.value
    if isinstance(expr, VariableRef):
        return var_map[expr.key]
    if isinstance(expr, BinaryOp):
        left = to_pyomo(expr.left, var_map)
        right = to_pyomo(expr.right, var_map)
        if expr.op == "+":
            return left + right
        if expr.op == "-":
            return left - right
        if expr.op == "*":
            return left * right
        if expr.op == "/":
            return left / right
        return left**right
    if isinstance(expr, UnaryOp):
        arg = to_pyomo(expr.arg, var_map)
        if expr.func == "neg":
            return -arg
        return getattr(pyo, expr.func)(arg)
    if isinstance(expr, Sum):
        return sum(to_pyomo(term, var_map) for term in expr.terms)
    msg = f"PATH back end cannot translate {type(expr).__name__} residuals"
    raise TypeError(msg)


@register_solver("path")
class PathSolver(MCPSolver):
    """PATH solver through Pyomo's MPEC interface.

    Options are copied verbatim into ``solver.options``; PATH understands
    e.g. ``convergence_tolerance``, ``major_iteration_limit``,
    ``time_limit`` and ``output``.

    Example:
        >>> solver = PathSolver()
        >>> outcome = model.solve(solver=solver)
    """

    def __init__(self, executable: str = "path") -> None:
        """Initialize PATH back end.

        Args:
            executable: Pyomo solver name (default: 'path')

        Raises:
            ImportError: If Pyomo is not installed
        """
        if not PYOMO_AVAILABLE:
            msg = "Pyomo is not installed. Install with: pip install pyomo"
            raise ImportError(msg)
        super().__init__()
        self.executable = executable
        self.pyomo_model: Any = None
        self._solver_results: Any = None

    def available(self) -> bool:
        return bool(pyo.SolverFactory(self.executable).available(exception_flag=False))

    def build(self, problem: MCPProblem) -> Any:
        """Build the Pyomo model for a problem.

        Returns:
            The ``ConcreteModel``
        """
        n = problem.n
        if len(problem.variables) != n or len(problem.residuals) != n:
            msg = "PATH back end requires the ordered variables and residuals"
            raise ValueError(msg)

        m = pyo.ConcreteModel(name="mcp")
        m.I = pyo.RangeSet(0, n - 1)
        m.x = pyo.Var(m.I, initialize={i: float(problem.x0[i]) for i in range(n)})

        var_map = {problem.variables[i].key: m.x[i] for i in range(n)}
        exprs = [to_pyomo(r.expression, var_map) for r in problem.residuals]
        lower = problem.lower
        upper = problem.upper

        def complementarity_rule(model: Any, i: int) -> Any:
            xi, fi = model.x[i], exprs[i]
            has_lower = math.isfinite(lower[i])
            has_upper = math.isfinite(upper[i])
            if has_lower and has_upper:
                return complements(pyo.inequality(float(lower[i]), xi, float(upper[i])), fi)
            if has_lower:
                return complements(xi >= float(lower[i]), fi >= 0)
            if has_upper:
                return complements(xi <= float(upper[i]), fi <= 0)
            return complements(fi == 0, xi)

        m.cc = Complementarity(m.I, rule=complementarity_rule)
        self.pyomo_model = m
        return m

    def solve(self, problem: MCPProblem, options: SolverOptions) -> SolverOutput:
        """Solve with PATH.

        Raises:
            RuntimeError: If the PATH executable is not available
        """
        start_time = time.time()
        if problem.n == 0:
            return SolverOutput(x=np.zeros(0), status_code=int(TerminationCode.SOLVED))

        m = self.build(problem)
        pyo.TransformationFactory("mpec.nl").apply_to(m)

        solver = pyo.SolverFactory(self.executable)
        if not solver.available(exception_flag=False):
            msg = f"Solver '{self.executable}' is not available"
            raise RuntimeError(msg)
        for key, val in options.values.items():
            solver.options[key] = val

        results = solver.solve(m, tee=options.get_bool("output"), load_solutions=False)
        self._solver_results = results

        termination = results.solver.termination_condition
        code = _termination_codes().get(termination, 0)
        if code == TerminationCode.SOLVED and len(results.solution) > 0:
            m.solutions.load_from(results)

        x = np.array(
            [np.nan if m.x[i].value is None else float(m.x[i].value) for i in range(problem.n)]
        )
        logger.info(f"PATH finished: {results.solver.status} - {termination}")

        output = SolverOutput(
            x=x,
            status_code=int(code),
            message=str(results.solver.message or termination),
            solve_time=time.time() - start_time,
        )
        self.last_output = output
        return output

    def get_solver_status(self) -> dict[str, Any]:
        """Get detailed solver status of the last solve."""
        if self._solver_results is None:
            return {"status": "not_solved"}

        results = self._solver_results
        return {
            "status": str(results.solver.status),
            "termination": str(results.solver.termination_condition),
            "message": str(results.solver.message),
        }

    def __repr__(self) -> str:
        return f"PathSolver(executable={self.executable})"

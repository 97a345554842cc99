"""Tests for the semismooth Newton solver."""

import math
import time

import numpy as np
import pytest
from scipy import sparse

from complementarity.backends import (
    SemismoothNewtonSolver,
    TerminationCode,
    get_solver,
    list_solvers,
)
from complementarity.solver import SolverOptions


@pytest.fixture
def solver():
    return SemismoothNewtonSolver()


@pytest.fixture
def options():
    return SolverOptions()


class TestRegistration:
    """Tests for the solver registry entry."""

    def test_registered_as_newton(self):
        """Test the solver is available by name."""
        assert "newton" in list_solvers()
        assert isinstance(get_solver("newton"), SemismoothNewtonSolver)
        assert SemismoothNewtonSolver.name == "newton"

    def test_constructor_arguments(self):
        """Test line-search parameters are forwarded."""
        solver = get_solver("newton", beta=0.25)
        assert solver.beta == 0.25


class TestSolutions:
    """Tests on problems with known solutions."""

    def test_lcp(self, solver, options, lcp, lcp_problem):
        """Test the 4x4 LCP converges to its known solution."""
        output = solver.solve(lcp_problem, options)
        assert output.status_code == TerminationCode.SOLVED
        np.testing.assert_allclose(output.x, lcp[2], atol=1e-6)
        assert output.residual_norm <= 1e-8
        assert solver.last_output is output

    def test_interior(self, solver, options, scalar_problem):
        """Test F(x) = x - 5 on [0, inf) has x* = 5."""
        output = solver.solve(scalar_problem(lambda x: x - 5, lambda x: 1.0), options)
        assert output.status_code == TerminationCode.SOLVED
        assert output.x[0] == pytest.approx(5.0, abs=1e-8)

    def test_lower_bound_active(self, solver, options, scalar_problem):
        """Test F(x) = x + 1 on [0, inf) has x* = 0."""
        output = solver.solve(scalar_problem(lambda x: x + 1, lambda x: 1.0, x0=3.0), options)
        assert output.status_code == TerminationCode.SOLVED
        assert output.x[0] == pytest.approx(0.0, abs=1e-8)

    def test_upper_bound_active(self, solver, options, scalar_problem):
        """Test F(x) = x - 5 on [0, 2] has x* = 2."""
        output = solver.solve(scalar_problem(lambda x: x - 5, lambda x: 1.0, upper=2.0), options)
        assert output.status_code == TerminationCode.SOLVED
        assert output.x[0] == pytest.approx(2.0, abs=1e-8)

    def test_upper_bound_only(self, solver, options, scalar_problem):
        """Test F(x) = x - 5 on (-inf, 2] has x* = 2."""
        problem = scalar_problem(lambda x: x - 5, lambda x: 1.0, lower=-math.inf, upper=2.0)
        output = solver.solve(problem, options)
        assert output.status_code == TerminationCode.SOLVED
        assert output.x[0] == pytest.approx(2.0, abs=1e-8)

    def test_free_nonlinear(self, solver, options, scalar_problem):
        """Test a free variable solves F(x) = x**3 - 8 = 0."""
        problem = scalar_problem(lambda x: x**3 - 8, lambda x: 3 * x**2, lower=-math.inf, x0=1.0)
        output = solver.solve(problem, options)
        assert output.status_code == TerminationCode.SOLVED
        assert output.x[0] == pytest.approx(2.0, abs=1e-8)

    def test_fixed_variable(self, solver, options, scalar_problem):
        """Test lower == upper pins the variable whatever F is."""
        problem = scalar_problem(lambda x: x - 5, lambda x: 1.0, lower=1.0, upper=1.0, x0=1.0)
        output = solver.solve(problem, options)
        assert output.status_code == TerminationCode.SOLVED
        assert output.x[0] == pytest.approx(1.0)

    def test_sparse_jacobian(self, solver, options, lcp, make_problem):
        """Test a CSR Jacobian is accepted."""
        M, q, expected = lcp
        problem = make_problem(
            lambda x: M @ x + q,
            lambda x: sparse.csr_matrix(M),
            np.zeros(4),
            np.full(4, math.inf),
            np.zeros(4),
        )
        output = solver.solve(problem, options)
        np.testing.assert_allclose(output.x, expected, atol=1e-6)

    def test_empty_problem(self, solver, options, make_problem):
        """Test n = 0 is trivially solved."""
        problem = make_problem(lambda x: x, lambda x: np.zeros((0, 0)), [], [], [])
        assert solver.solve(problem, options).status_code == TerminationCode.SOLVED


class TestFailures:
    """Tests for each failure termination code."""

    def test_no_solution(self, solver, options, scalar_problem):
        """Test F(x) = -1 on [0, inf) has no solution."""
        output = solver.solve(scalar_problem(lambda x: -1.0, lambda x: 0.0), options)
        assert output.status_code != TerminationCode.SOLVED

    def test_iteration_limit(self, solver, lcp_problem):
        """Test the major iteration limit is honoured."""
        output = solver.solve(lcp_problem, SolverOptions.from_mapping(major_iteration_limit=1))
        assert output.status_code == TerminationCode.MAJOR_ITERATION_LIMIT
        assert output.iterations == 1

    def test_time_limit(self, solver, lcp, make_problem):
        """Test the time limit is honoured."""
        M, q, _ = lcp

        def slow(x):
            time.sleep(0.02)
            return M @ x + q

        problem = make_problem(slow, lambda x: M, np.zeros(4), np.full(4, math.inf), np.zeros(4))
        output = solver.solve(problem, SolverOptions.from_mapping(time_limit=0.001))
        assert output.status_code == TerminationCode.TIME_LIMIT

    def test_domain_error(self, solver, options, scalar_problem):
        """Test a non-finite F at the start point is a domain error."""
        output = solver.solve(scalar_problem(lambda x: math.nan, lambda x: 1.0), options)
        assert output.status_code == TerminationCode.DOMAIN_ERROR
        assert "not finite" in output.message

    def test_bound_error(self, solver, options, scalar_problem):
        """Test inverted bounds are reported without iterating."""
        problem = scalar_problem(lambda x: x, lambda x: 1.0, lower=2.0, upper=1.0)
        assert solver.solve(problem, options).status_code == TerminationCode.BOUND_ERROR


class TestLogging:
    """Tests for iteration logging."""

    def test_output_option_logs_at_info(self, solver, lcp_problem, caplog):
        """Test 'output' raises iteration logs to INFO."""
        with caplog.at_level("INFO", logger="complementarity.backends.newton"):
            solver.solve(lcp_problem, SolverOptions.from_mapping(output=True))
        assert "Iteration 0" in caplog.text

    def test_quiet_by_default(self, solver, lcp_problem, caplog):
        """Test iterations are logged at DEBUG only."""
        with caplog.at_level("INFO", logger="complementarity.backends.newton"):
            solver.solve(lcp_problem, SolverOptions())
        assert "Iteration" not in caplog.text

"""Shared problems for solver back-end tests."""

import math

import numpy as np
import pytest

from complementarity.backends import MCPProblem


def _make_problem(evaluator, jacobian, lower, upper, x0):
    return MCPProblem(
        lower=np.asarray(lower, dtype=float),
        upper=np.asarray(upper, dtype=float),
        x0=np.asarray(x0, dtype=float),
        evaluator=evaluator,
        jacobian=jacobian,
    )


@pytest.fixture
def make_problem():
    """Factory building an MCPProblem from plain callables and sequences."""
    return _make_problem


@pytest.fixture
def scalar_problem():
    """Factory for one-dimensional problems ``lower <= x <= upper ⟂ f(x)``."""

    def build(f, df, lower=0.0, upper=math.inf, x0=0.0):
        return _make_problem(
            lambda x: np.array([f(x[0])]),
            lambda x: np.array([[df(x[0])]]),
            [lower],
            [upper],
            [x0],
        )

    return build


@pytest.fixture
def lcp():
    """Data of the 4x4 LCP ``0 <= x ⟂ Mx + q >= 0`` and its solution."""
    M = np.array(
        [
            [0.0, 0.0, -1.0, -1.0],
            [0.0, 0.0, 1.0, -2.0],
            [1.0, -1.0, 2.0, -2.0],
            [1.0, 2.0, -2.0, 4.0],
        ]
    )
    q = np.array([2.0, 2.0, -2.0, -6.0])
    return M, q, np.array([2.8, 0.0, 0.8, 1.2])


@pytest.fixture
def lcp_problem(lcp):
    M, q, _ = lcp
    return _make_problem(
        lambda x: M @ x + q, lambda x: M, np.zeros(4), np.full(4, math.inf), np.zeros(4)
    )

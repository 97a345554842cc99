"""Solver back ends for complementarity models.

Every back end receives a flattened ``MCPProblem`` and returns a raw
``SolverOutput``; importing this package registers the bundled solvers.
"""

from complementarity.backends.base import (
    DEFAULT_STATUS_TABLE,
    MCPProblem,
    MCPSolver,
    SolverOutput,
    SolverRegistry,
    TerminationCode,
    get_registry,
    get_solver,
    list_solvers,
    register_solver,
)
from complementarity.backends.newton import SemismoothNewtonSolver
from complementarity.backends.reformulation import BoxReformulation, fischer_burmeister
from complementarity.backends.trust_region import TrustRegionSolver
from complementarity.backends.pyomo_backend import PYOMO_AVAILABLE, PathSolver

__all__ = [
    "DEFAULT_STATUS_TABLE",
    "MCPProblem",
    "MCPSolver",
    "SolverOutput",
    "SolverRegistry",
    "TerminationCode",
    "get_registry",
    "get_solver",
    "list_solvers",
    "register_solver",
    "BoxReformulation",
    "fischer_burmeister",
    "SemismoothNewtonSolver",
    "TrustRegionSolver",
    "PathSolver",
    "PYOMO_AVAILABLE",
]

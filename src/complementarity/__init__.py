"""complementarity - Mixed Complementarity Problems in Python.

Declare bounded variables and residual expressions, pair them, and
solve ``lower <= x <= upper ⟂ F(x)`` with a pluggable solver back end.
"""

from complementarity.core import (
    BoundInversionError,
    CardinalityMismatchError,
    ComplementarityError,
    ComponentKey,
    ConfigurationError,
    DuplicateCorrespondenceError,
    DuplicateResidualError,
    DuplicateVariableError,
    ForeignReferenceError,
    FunctionExpression,
    IncompleteCorrespondenceError,
    ModelStateError,
    NotSolvedError,
    Set,
    UnknownComponentError,
    Variable,
    cos,
    dot,
    exp,
    log,
    quicksum,
    sin,
    sqrt,
    sum_over,
)
from complementarity.model import Model
from complementarity.backends import get_solver, list_solvers, register_solver
from complementarity.solver.dispatcher import SolveDispatcher
from complementarity.solver import ModelStatus, OutcomeKind, SolveOutcome, SolverOptions
from complementarity.version import __version__

__all__ = [
    "__version__",
    "Model",
    "Set",
    "Variable",
    "ComponentKey",
    "FunctionExpression",
    "SolverOptions",
    "SolveOutcome",
    "SolveDispatcher",
    "OutcomeKind",
    "ModelStatus",
    "get_solver",
    "list_solvers",
    "register_solver",
    "log",
    "exp",
    "sqrt",
    "sin",
    "cos",
    "quicksum",
    "sum_over",
    "dot",
    "ComplementarityError",
    "ConfigurationError",
    "DuplicateVariableError",
    "DuplicateResidualError",
    "CardinalityMismatchError",
    "DuplicateCorrespondenceError",
    "IncompleteCorrespondenceError",
    "BoundInversionError",
    "UnknownComponentError",
    "ForeignReferenceError",
    "ModelStateError",
    "NotSolvedError",
]

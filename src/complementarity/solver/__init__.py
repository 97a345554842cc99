"""Solving machinery.

Options and outcome types are exported here. The flattening bridge and
the dispatcher live in :mod:`complementarity.solver.flattening` and
:mod:`complementarity.solver.dispatcher`; both build on the back ends,
which in turn depend on the types below.
"""

from complementarity.solver.options import SolverOptions
from complementarity.solver.outcome import (
    ModelStatus,
    OutcomeKind,
    SolveOutcome,
    StatusClassifier,
)

__all__ = [
    "SolverOptions",
    "ModelStatus",
    "OutcomeKind",
    "SolveOutcome",
    "StatusClassifier",
]

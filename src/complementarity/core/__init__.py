"""Core data structures for complementarity models.

This module provides the building blocks of a model:
- Sets: Index definitions for multi-dimensional components
- Variables: Bounded decision variables
- Expressions: Algebraic residual expressions
- Residuals: Named residual functions
- Correspondence: The residual ⟂ variable pairing
"""

from complementarity.core.correspondence import Correspondence, CorrespondenceTable
from complementarity.core.errors import (
    BoundInversionError,
    CardinalityMismatchError,
    ComplementarityError,
    ConfigurationError,
    DuplicateCorrespondenceError,
    DuplicateResidualError,
    DuplicateVariableError,
    ForeignReferenceError,
    IncompleteCorrespondenceError,
    ModelStateError,
    NotSolvedError,
    UnknownComponentError,
)
from complementarity.core.expressions import (
    BinaryOp,
    Constant,
    Expression,
    FunctionExpression,
    Sum,
    UnaryOp,
    VariableRef,
    as_expression,
    const,
    cos,
    dot,
    exp,
    log,
    quicksum,
    sin,
    sqrt,
    sum_over,
)
from complementarity.core.keys import ComponentArray, ComponentKey, cartesian_product
from complementarity.core.residuals import Residual, ResidualArray, ResidualManager
from complementarity.core.sets import Set, SetManager
from complementarity.core.variables import Variable, VariableArray, VariableRegistry

__all__ = [
    # Identities and sets
    "ComponentKey",
    "ComponentArray",
    "cartesian_product",
    "Set",
    "SetManager",
    # Variables and residuals
    "Variable",
    "VariableArray",
    "VariableRegistry",
    "Residual",
    "ResidualArray",
    "ResidualManager",
    "Correspondence",
    "CorrespondenceTable",
    # Expressions
    "Expression",
    "Constant",
    "VariableRef",
    "BinaryOp",
    "UnaryOp",
    "Sum",
    "FunctionExpression",
    "as_expression",
    "const",
    "log",
    "exp",
    "sqrt",
    "sin",
    "cos",
    "quicksum",
    "sum_over",
    "dot",
    # Errors
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

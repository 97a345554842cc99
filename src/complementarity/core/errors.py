"""Exception hierarchy for complementarity models.

Configuration errors are detected locally, before any solver call, and
always name the offending component. Solver outcomes are never raised;
see :mod:`complementarity.solver.outcome`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from complementarity.core.keys import ComponentKey


def _names(keys: Iterable[ComponentKey]) -> str:
    return ", ".join(str(k) for k in keys)


class ComplementarityError(Exception):
    """Base class for all errors raised by this package."""

    pass


class ConfigurationError(ComplementarityError):
    """Raised when a model is inconsistent and cannot be dispatched."""

    pass


class DuplicateVariableError(ConfigurationError):
    """Raised when a ``(name, index)`` pair is registered twice."""

    def __init__(self, key: ComponentKey) -> None:
        self.key = key
        super().__init__(f"Variable '{key}' already exists")


class DuplicateResidualError(ConfigurationError):
    """Raised when a residual ``(name, index)`` pair is registered twice."""

    def __init__(self, key: ComponentKey) -> None:
        self.key = key
        super().__init__(f"Residual '{key}' already exists")


class CardinalityMismatchError(ConfigurationError):
    """Raised when residual and variable sequences differ in length."""

    def __init__(self, n_residuals: int, n_variables: int) -> None:
        self.n_residuals = n_residuals
        self.n_variables = n_variables
        super().__init__(
            f"Cannot pair {n_residuals} residual(s) with {n_variables} variable(s)"
        )


class DuplicateCorrespondenceError(ConfigurationError):
    """Raised when a variable or residual is paired more than once."""

    def __init__(
        self,
        variables: Iterable[ComponentKey] = (),
        residuals: Iterable[ComponentKey] = (),
    ) -> None:
        self.variables = tuple(variables)
        self.residuals = tuple(residuals)
        parts = []
        if self.variables:
            parts.append(f"variable(s) {_names(self.variables)}")
        if self.residuals:
            parts.append(f"residual(s) {_names(self.residuals)}")
        super().__init__(f"Already paired: {'; '.join(parts)}")


class IncompleteCorrespondenceError(ConfigurationError):
    """Raised when the pairing is not a bijection over the whole model.

    Attributes:
        unpaired_variables: Variables without a residual, in registration order
        unpaired_residuals: Residuals without a variable, in registration order
    """

    def __init__(
        self,
        unpaired_variables: Iterable[ComponentKey],
        unpaired_residuals: Iterable[ComponentKey] = (),
    ) -> None:
        self.unpaired_variables = tuple(unpaired_variables)
        self.unpaired_residuals = tuple(unpaired_residuals)
        parts = []
        if self.unpaired_variables:
            parts.append(f"unpaired variable(s): {_names(self.unpaired_variables)}")
        if self.unpaired_residuals:
            parts.append(f"unpaired residual(s): {_names(self.unpaired_residuals)}")
        super().__init__("Incomplete correspondence; " + "; ".join(parts))


class UnknownComponentError(ConfigurationError):
    """Raised when a pair names a variable or residual the model does not own."""

    def __init__(
        self,
        variables: Iterable[ComponentKey] = (),
        residuals: Iterable[ComponentKey] = (),
    ) -> None:
        self.variables = tuple(variables)
        self.residuals = tuple(residuals)
        parts = []
        if self.variables:
            parts.append(f"variable(s) {_names(self.variables)}")
        if self.residuals:
            parts.append(f"residual(s) {_names(self.residuals)}")
        super().__init__(f"Not registered in this model: {'; '.join(parts)}")


class ForeignReferenceError(ConfigurationError):
    """Raised when a residual references variables outside its model."""

    def __init__(self, residual: ComponentKey, variables: Iterable[ComponentKey]) -> None:
        self.residual = residual
        self.variables = tuple(variables)
        super().__init__(
            f"Residual '{residual}' references unregistered variable(s) {_names(self.variables)}"
        )


class BoundInversionError(ConfigurationError):
    """Raised when a variable's lower bound exceeds its upper bound."""

    def __init__(self, key: ComponentKey, lower: float, upper: float) -> None:
        self.key = key
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Variable '{key}': lower bound {lower} exceeds upper bound {upper}"
        )


class ModelStateError(ComplementarityError):
    """Raised when a solved or failed model is mutated without ``reset()``."""

    pass


class NotSolvedError(ComplementarityError):
    """Raised when values are read before a successful solve."""

    pass

"""Residual expressions, the ``F`` in ``F(x) ⟂ lb <= x <= ub``.

A residual is a named scalar expression. Residuals are owned by the
model and never change after creation; only the point they are
evaluated at changes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, field_validator

from complementarity.core.errors import DuplicateResidualError, ForeignReferenceError
from complementarity.core.expressions import as_expression
from complementarity.core.keys import ComponentArray, ComponentKey


def _is_evaluator(obj: Any) -> bool:
    return all(hasattr(obj, attr) for attr in ("evaluate", "partial", "variables"))


class Residual(BaseModel):
    """A scalar residual expression with an identity.

    Attributes:
        key: ``(name, index)`` identity
        expression: Object exposing ``evaluate``, ``partial`` and ``variables``
        description: Human-readable description
    """

    key: ComponentKey = Field(..., description="Residual identity")
    expression: Any = Field(..., description="Residual expression")
    description: str = Field(default="", description="Human-readable description")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_validator("expression", mode="before")
    @classmethod
    def ensure_expression(cls, v: Any) -> Any:  # noqa: N805
        """Accept numbers and variables as trivial expressions."""
        if _is_evaluator(v):
            return v
        try:
            return as_expression(v)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def index(self) -> tuple[Any, ...]:
        return self.key.index

    def evaluate(self, values: Any) -> float:
        return float(self.expression.evaluate(values))

    def variables(self) -> frozenset[ComponentKey]:
        return frozenset(self.expression.variables())

    def __str__(self) -> str:
        return str(self.key)

    def __repr__(self) -> str:
        return f"Residual {self.key}: {self.expression!r}"


class ResidualArray(ComponentArray[Residual]):
    """An indexed family of residuals, e.g. ``F[i]``."""

    kind = "Residual"


class ResidualManager:
    """Ordered collection of all residuals in a model."""

    def __init__(self) -> None:
        self._residuals: dict[ComponentKey, Residual] = {}

    def add(
        self,
        name: str,
        expression: Any,
        index: Any = (),
        description: str = "",
    ) -> Residual:
        """Register a residual expression.

        Raises:
            DuplicateResidualError: If ``(name, index)`` already exists
        """
        key = ComponentKey(name=name, index=index)
        if key in self._residuals:
            raise DuplicateResidualError(key)

        residual = Residual(key=key, expression=expression, description=description)
        self._residuals[key] = residual
        return residual

    def add_all(self, residuals: Iterable[Residual]) -> list[Residual]:
        """Register a batch of residuals; nothing is added if any key is taken.

        Raises:
            DuplicateResidualError: For the first key already registered or
                repeated within the batch
        """
        batch = list(residuals)
        seen: set[ComponentKey] = set()
        for residual in batch:
            if residual.key in self._residuals or residual.key in seen:
                raise DuplicateResidualError(residual.key)
            seen.add(residual.key)
        for residual in batch:
            self._residuals[residual.key] = residual
        return batch

    def get(self, key: ComponentKey) -> Residual:
        """Get residual by key.

        Raises:
            KeyError: If residual not found
        """
        if key not in self._residuals:
            msg = f"Residual '{key}' not found"
            raise KeyError(msg)
        return self._residuals[key]

    def __getitem__(self, key: ComponentKey) -> Residual:
        return self.get(key)

    def __contains__(self, key: ComponentKey) -> bool:
        return key in self._residuals

    def __len__(self) -> int:
        return len(self._residuals)

    def all_residuals(self) -> list[Residual]:
        """Return residuals in registration order."""
        return list(self._residuals.values())

    def keys(self) -> list[ComponentKey]:
        return list(self._residuals.keys())

    def check_references(self, variables: Iterable[ComponentKey]) -> None:
        """Verify every residual only references the given variables.

        Raises:
            ForeignReferenceError: For the first residual referencing an
                unregistered variable
        """
        known = set(variables)
        for residual in self._residuals.values():
            foreign = sorted(residual.variables() - known, key=str)
            if foreign:
                raise ForeignReferenceError(residual.key, foreign)

    def get_total_count(self) -> int:
        return len(self._residuals)

    def summary(self) -> dict[str, Any]:
        """Return residual counts grouped by name."""
        groups: dict[str, int] = {}
        for residual in self._residuals.values():
            groups[residual.name] = groups.get(residual.name, 0) + 1
        return {
            "total_scalar_residuals": len(self._residuals),
            "residuals": groups,
        }

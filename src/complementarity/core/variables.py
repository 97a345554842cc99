"""Decision variables for complementarity models.

Variables are scalar handles identified by ``(name, index)``. Indexed
families are grouped in a ``VariableArray``; the registry keeps every
scalar in registration order, which is the order used whenever no
explicit correspondence order applies.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from complementarity.core.errors import BoundInversionError, DuplicateVariableError
from complementarity.core.expressions import ExpressionOperators, VariableRef
from complementarity.core.keys import ComponentArray, ComponentKey

# Fields that change the problem handed to the solver
_BOUND_FIELDS = frozenset({"lower", "upper", "start"})


class Variable(ExpressionOperators, BaseModel):
    """A scalar decision variable with bounds.

    Variables take part in expressions directly (``2 * x + y``). The
    solved value is only written by the solve machinery; user code reads
    it through ``Model.get_value``.

    Once registered, changes to the bounds or start value are refused
    while the owning model is solved or failed.

    Attributes:
        key: ``(name, index)`` identity
        lower: Lower bound (default: 0, may be -inf)
        upper: Upper bound (default: inf)
        start: Starting point handed to the solver
        description: Human-readable description

    Example:
        >>> price = Variable(key=ComponentKey(name="p", index=("corn",)), lower=0.0)
        >>> price.fix(1.0)
        >>> price.is_fixed()
        True
    """

    key: ComponentKey = Field(..., description="Variable identity")
    lower: float = Field(default=0.0, description="Lower bound")
    upper: float = Field(default=math.inf, description="Upper bound")
    start: float = Field(default=0.0, description="Starting point")
    description: str = Field(default="", description="Human-readable description")

    _value: float | None = PrivateAttr(default=None)
    _registry: Any = PrivateAttr(default=None)

    model_config = {"frozen": False, "validate_assignment": True}

    @field_validator("lower", mode="before")
    @classmethod
    def none_is_minus_inf(cls, v: Any) -> float:  # noqa: N805
        return -math.inf if v is None else float(v)

    @field_validator("upper", mode="before")
    @classmethod
    def none_is_inf(cls, v: Any) -> float:  # noqa: N805
        return math.inf if v is None else float(v)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _BOUND_FIELDS and self._registry is not None:
            self._registry.check_mutable(f"change {name} of variable '{self.key}'")
        super().__setattr__(name, value)

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def index(self) -> tuple[Any, ...]:
        return self.key.index

    @property
    def value(self) -> float | None:
        """Last solved value, or None if never solved."""
        return self._value

    def to_expression(self) -> VariableRef:
        return VariableRef(self.key)

    def fix(self, value: float | None = None) -> None:
        """Fix variable to its start value or to ``value``.

        A fixed variable has ``lower == upper``; its residual is left free
        in sign by the solver.
        """
        if value is not None:
            self.start = value
        self.lower = self.start
        self.upper = self.start

    def unfix(self, lower: float = 0.0, upper: float = math.inf) -> None:
        """Restore bounds on a fixed variable."""
        self.lower = lower
        self.upper = upper

    def is_fixed(self) -> bool:
        """Check if variable is fixed."""
        return self.lower == self.upper

    def to_dict(self) -> dict[str, Any]:
        """Convert variable to dictionary."""
        return {
            "name": self.name,
            "index": list(self.index),
            "lower": self.lower,
            "upper": self.upper,
            "start": self.start,
            "value": self._value,
            "description": self.description,
            "fixed": self.is_fixed(),
        }

    def __str__(self) -> str:
        return str(self.key)

    def __repr__(self) -> str:
        fixed_str = " [FIXED]" if self.is_fixed() else ""
        return f"Variable {self.key} in [{self.lower}, {self.upper}]{fixed_str}"


class VariableArray(ComponentArray[Variable]):
    """An indexed family of variables, e.g. ``x[i, j]``."""

    kind = "Variable"


class VariableRegistry:
    """Ordered collection of all scalar variables in a model.

    Registration order is preserved and is load-bearing: it is the order
    reported by ``all_variables()`` and used to name unpaired variables.

    Attributes:
        guard: Called with a description of the change before a
            registered variable's bounds or start value change; raises to
            refuse it. The owning model installs its lifecycle check here.
    """

    def __init__(self) -> None:
        self._vars: dict[ComponentKey, Variable] = {}
        self.guard: Callable[[str], None] | None = None

    def add(
        self,
        name: str,
        index: Any = (),
        lower: float | None = 0.0,
        upper: float | None = math.inf,
        start: float = 0.0,
        description: str = "",
    ) -> Variable:
        """Register a scalar variable.

        Returns:
            The new variable handle

        Raises:
            DuplicateVariableError: If ``(name, index)`` already exists
        """
        key = ComponentKey(name=name, index=index)
        if key in self._vars:
            raise DuplicateVariableError(key)

        var = Variable(
            key=key, lower=lower, upper=upper, start=start, description=description
        )
        return self.add_all([var])[0]

    def add_all(self, variables: Iterable[Variable]) -> list[Variable]:
        """Register a batch of variables; nothing is added if any key is taken.

        Raises:
            DuplicateVariableError: For the first key already registered or
                repeated within the batch
        """
        batch = list(variables)
        seen: set[ComponentKey] = set()
        for var in batch:
            if var.key in self._vars or var.key in seen:
                raise DuplicateVariableError(var.key)
            seen.add(var.key)
        for var in batch:
            var._registry = self
            self._vars[var.key] = var
        return batch

    def check_mutable(self, action: str) -> None:
        if self.guard is not None:
            self.guard(action)

    def get(self, key: ComponentKey) -> Variable:
        """Get variable by key.

        Raises:
            KeyError: If variable not found
        """
        if key not in self._vars:
            msg = f"Variable '{key}' not found"
            raise KeyError(msg)
        return self._vars[key]

    def __getitem__(self, key: ComponentKey) -> Variable:
        return self.get(key)

    def __contains__(self, key: ComponentKey) -> bool:
        return key in self._vars

    def __len__(self) -> int:
        return len(self._vars)

    def all_variables(self) -> list[Variable]:
        """Return variable handles in registration order."""
        return list(self._vars.values())

    def keys(self) -> list[ComponentKey]:
        return list(self._vars.keys())

    def set_value(self, key: ComponentKey, value: float) -> None:
        """Store a solved value.

        Only the flattening bridge calls this, after a successful solve.
        """
        self.get(key)._value = float(value)

    def clear_values(self) -> None:
        """Forget all solved values."""
        for var in self._vars.values():
            var._value = None

    def check_bounds(self) -> None:
        """Verify ``lower <= upper`` for every variable.

        Raises:
            BoundInversionError: For the first offending variable
        """
        for var in self._vars.values():
            if math.isnan(var.lower) or math.isnan(var.upper) or var.lower > var.upper:
                raise BoundInversionError(var.key, var.lower, var.upper)

    def get_total_count(self) -> int:
        """Return total number of scalar variables."""
        return len(self._vars)

    def summary(self) -> dict[str, Any]:
        """Return summary of all variables grouped by name."""
        groups: dict[str, dict[str, int]] = {}
        for var in self._vars.values():
            group = groups.setdefault(var.name, {"count": 0, "fixed": 0})
            group["count"] += 1
            group["fixed"] += int(var.is_fixed())
        return {
            "total_scalar_vars": len(self._vars),
            "variables": groups,
        }

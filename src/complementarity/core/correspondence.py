"""Pairing of residuals with variables.

Each residual is matched to exactly one variable. The order in which
pairs are declared is the flat index order handed to the solver: the
first declared pair becomes position 0 of ``lb``, ``ub`` and ``x``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from pydantic import BaseModel, Field

from complementarity.core.errors import (
    CardinalityMismatchError,
    DuplicateCorrespondenceError,
    IncompleteCorrespondenceError,
    UnknownComponentError,
)
from complementarity.core.keys import ComponentKey


def _key_of(component: Any) -> ComponentKey:
    if isinstance(component, ComponentKey):
        return component
    return component.key


class Correspondence(BaseModel):
    """One ``residual ⟂ variable`` pair."""

    residual: ComponentKey = Field(..., description="Residual identity")
    variable: ComponentKey = Field(..., description="Paired variable identity")

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.residual} ⟂ {self.variable}"


class CorrespondenceTable:
    """Ordered bijection between residuals and variables.

    Example:
        >>> table = CorrespondenceTable()
        >>> table.correspond([f1, f2], [x1, x2])
        >>> table.variable_order()
        [ComponentKey(x1), ComponentKey(x2)]
    """

    def __init__(self) -> None:
        self._pairs: list[Correspondence] = []
        self._by_variable: dict[ComponentKey, Correspondence] = {}
        self._by_residual: dict[ComponentKey, Correspondence] = {}

    def correspond(
        self, residuals: Sequence[Any], variables: Sequence[Any]
    ) -> list[Correspondence]:
        """Pair residuals with variables position by position.

        The whole batch is checked before anything is recorded, so a
        failing call leaves the table unchanged.

        Args:
            residuals: Ordered residual handles or keys
            variables: Ordered variable handles or keys, same length

        Returns:
            The new pairs, in order

        Raises:
            CardinalityMismatchError: If the sequences differ in length
            DuplicateCorrespondenceError: If a variable or residual is
                already paired, or appears twice in the batch
        """
        residual_keys = [_key_of(r) for r in residuals]
        variable_keys = [_key_of(v) for v in variables]
        if len(residual_keys) != len(variable_keys):
            raise CardinalityMismatchError(len(residual_keys), len(variable_keys))

        dup_vars = _repeated(variable_keys, self._by_variable)
        dup_res = _repeated(residual_keys, self._by_residual)
        if dup_vars or dup_res:
            raise DuplicateCorrespondenceError(variables=dup_vars, residuals=dup_res)

        new_pairs = [
            Correspondence(residual=r, variable=v)
            for r, v in zip(residual_keys, variable_keys)
        ]
        for pair in new_pairs:
            self._pairs.append(pair)
            self._by_variable[pair.variable] = pair
            self._by_residual[pair.residual] = pair
        return new_pairs

    def validate_complete(
        self,
        variables: Iterable[ComponentKey],
        residuals: Iterable[ComponentKey] | None = None,
    ) -> None:
        """Check that the pairs form a bijection over the registered components.

        Every registered component must be paired, and every pair must
        name registered components, so afterwards
        ``len(pairs) == len(variables) == len(residuals)``.

        Args:
            variables: All registered variable keys, in registration order
            residuals: All registered residual keys, in registration order;
                None skips the residual side

        Raises:
            IncompleteCorrespondenceError: Naming every unpaired component
            UnknownComponentError: If a pair names an unregistered component
        """
        variable_keys = list(variables)
        unpaired_vars = [k for k in variable_keys if k not in self._by_variable]
        known_vars = set(variable_keys)
        foreign_vars = [p.variable for p in self._pairs if p.variable not in known_vars]

        unpaired_res: list[ComponentKey] = []
        foreign_res: list[ComponentKey] = []
        if residuals is not None:
            residual_keys = list(residuals)
            unpaired_res = [k for k in residual_keys if k not in self._by_residual]
            known_res = set(residual_keys)
            foreign_res = [p.residual for p in self._pairs if p.residual not in known_res]

        if unpaired_vars or unpaired_res:
            raise IncompleteCorrespondenceError(unpaired_vars, unpaired_res)
        if foreign_vars or foreign_res:
            raise UnknownComponentError(foreign_vars, foreign_res)

    def residual_for(self, variable: Any) -> ComponentKey:
        """Residual paired with a variable.

        Raises:
            KeyError: If the variable is unpaired
        """
        key = _key_of(variable)
        if key not in self._by_variable:
            msg = f"Variable '{key}' has no paired residual"
            raise KeyError(msg)
        return self._by_variable[key].residual

    def variable_for(self, residual: Any) -> ComponentKey:
        """Variable paired with a residual.

        Raises:
            KeyError: If the residual is unpaired
        """
        key = _key_of(residual)
        if key not in self._by_residual:
            msg = f"Residual '{key}' has no paired variable"
            raise KeyError(msg)
        return self._by_residual[key].variable

    def has_variable(self, variable: Any) -> bool:
        return _key_of(variable) in self._by_variable

    def has_residual(self, residual: Any) -> bool:
        return _key_of(residual) in self._by_residual

    def variable_order(self) -> list[ComponentKey]:
        """Variable keys in flat index order."""
        return [p.variable for p in self._pairs]

    def residual_order(self) -> list[ComponentKey]:
        """Residual keys in flat index order."""
        return [p.residual for p in self._pairs]

    def pairs(self) -> list[Correspondence]:
        return list(self._pairs)

    def __iter__(self) -> Iterator[Correspondence]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)


def _repeated(
    keys: list[ComponentKey], existing: dict[ComponentKey, Correspondence]
) -> list[ComponentKey]:
    """Keys already in ``existing`` or appearing more than once in ``keys``."""
    seen: set[ComponentKey] = set()
    repeated: list[ComponentKey] = []
    for key in keys:
        if (key in existing or key in seen) and key not in repeated:
            repeated.append(key)
        seen.add(key)
    return repeated

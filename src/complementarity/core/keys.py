"""Composite identities for model components."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator


def normalize_index(index: Any) -> tuple[Any, ...]:
    """Coerce an index into a tuple; scalars become 1-tuples."""
    if index is None:
        return ()
    if isinstance(index, tuple):
        return index
    if isinstance(index, list):
        return tuple(index)
    return (index,)


class ComponentKey(BaseModel):
    """Structural identity of a scalar variable or residual.

    Two keys are equal iff both name and index tuple are equal, so
    ``x[1, 2]`` never collides with ``x[12]`` or ``x1[2]``.

    Example:
        >>> ComponentKey(name="x", index=(1, "a"))
        ComponentKey(x[1,a])
    """

    name: str = Field(..., min_length=1, description="Component name")
    index: tuple[Any, ...] = Field(default_factory=tuple, description="Index tuple")

    model_config = {"frozen": True}

    @field_validator("index", mode="before")
    @classmethod
    def ensure_tuple(cls, v: Any) -> tuple[Any, ...]:  # noqa: N805
        """Accept scalar and list indices."""
        return normalize_index(v)

    def __str__(self) -> str:
        if not self.index:
            return self.name
        return f"{self.name}[{','.join(str(i) for i in self.index)}]"

    def __repr__(self) -> str:
        return f"ComponentKey({self})"


T = TypeVar("T")


class ComponentArray(Generic[T]):
    """An indexed family of scalar components sharing one name.

    Iteration yields the components in declaration order, so an array can
    be passed wherever an ordered sequence of components is expected.
    """

    kind = "Component"

    def __init__(self, name: str, items: dict[tuple[Any, ...], T]) -> None:
        self.name = name
        self._items = items

    def __getitem__(self, index: Any) -> T:
        key = normalize_index(index)
        if key not in self._items:
            msg = f"{self.kind} '{self.name}' has no index {key}"
            raise KeyError(msg)
        return self._items[key]

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, index: Any) -> bool:
        return normalize_index(index) in self._items

    def indices(self) -> list[tuple[Any, ...]]:
        """Index tuples in declaration order."""
        return list(self._items.keys())

    def items(self) -> Iterator[tuple[tuple[Any, ...], T]]:
        return iter(self._items.items())

    def __repr__(self) -> str:
        return f"{type(self).__name__} {self.name}: {len(self)} elements"


def cartesian_product(domains: Sequence[Iterable[Any]]) -> Iterator[tuple[Any, ...]]:
    """Index tuples of the product of ``domains``; the last varies fastest.

    An empty sequence of domains yields the single scalar index ``()``.
    """
    if not domains:
        yield ()
        return
    first, *rest = domains
    rest_combos = list(cartesian_product(rest))
    for elem in first:
        for combo in rest_combos:
            yield (elem,) + combo

"""Index sets for multi-dimensional variables and residuals.

Sets name the index domains that variables and residual families are
declared over. The cartesian product of several sets yields the index
tuples of an indexed component, in a deterministic order.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, Field, field_validator

from complementarity.core.keys import cartesian_product


class Set(BaseModel):
    """An ordered, immutable collection of index elements.

    Attributes:
        name: Unique identifier for the set
        elements: Ordered elements (strings or integers)
        description: Human-readable description

    Example:
        >>> goods = Set(name="I", elements=["wheat", "corn"])
        >>> print(goods)
        Set I (2 elements): wheat, corn
    """

    name: str = Field(..., min_length=1, description="Set identifier")
    elements: tuple[Any, ...] = Field(default_factory=tuple, description="Set elements")
    description: str = Field(default="", description="Human-readable description")

    model_config = {"frozen": True}

    @field_validator("elements", mode="before")
    @classmethod
    def ensure_unique(cls, v: Any) -> tuple[Any, ...]:  # noqa: N805
        """Convert to a tuple and reject repeated elements."""
        elements = tuple(v)
        if len(set(elements)) != len(elements):
            dupes = sorted({str(e) for e in elements if elements.count(e) > 1})
            msg = f"Duplicate set elements: {dupes}"
            raise ValueError(msg)
        return elements

    @classmethod
    def from_range(cls, name: str, stop: int, start: int = 1) -> Set:
        """Integer set ``start..stop`` inclusive."""
        return cls(name=name, elements=tuple(range(start, stop + 1)))

    def __len__(self) -> int:
        """Return number of elements in the set."""
        return len(self.elements)

    def __iter__(self) -> Iterator[Any]:  # type: ignore[override]
        """Iterate over set elements."""
        return iter(self.elements)

    def __contains__(self, item: Any) -> bool:
        """Check if element is in set."""
        return item in self.elements

    def __str__(self) -> str:
        elems = ", ".join(str(e) for e in self.elements[:5])
        if len(self.elements) > 5:
            elems += f", ... ({len(self.elements) - 5} more)"
        return f"Set {self.name} ({len(self.elements)} elements): {elems}"

    def index(self, element: Any) -> int:
        """Get the position of an element.

        Raises:
            ValueError: If element not in set
        """
        try:
            return self.elements.index(element)
        except ValueError as exc:
            msg = f"Element '{element}' not in set '{self.name}'"
            raise ValueError(msg) from exc


class SetManager:
    """Manages all sets in a model.

    Example:
        >>> manager = SetManager()
        >>> manager.add(Set(name="I", elements=["a", "b"]))
        >>> manager.add(Set(name="J", elements=[1, 2]))
        >>> list(manager.product("I", "J"))
        [('a', 1), ('a', 2), ('b', 1), ('b', 2)]
    """

    def __init__(self) -> None:
        self._sets: dict[str, Set] = {}

    def add(self, set_obj: Set) -> None:
        """Add a set to the manager.

        Raises:
            ValueError: If set with same name already exists
        """
        if set_obj.name in self._sets:
            msg = f"Set '{set_obj.name}' already exists"
            raise ValueError(msg)
        self._sets[set_obj.name] = set_obj

    def get(self, name: str) -> Set:
        """Get a set by name.

        Raises:
            KeyError: If set not found
        """
        if name not in self._sets:
            msg = f"Set '{name}' not found"
            raise KeyError(msg)
        return self._sets[name]

    def __getitem__(self, name: str) -> Set:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._sets

    def __iter__(self) -> Iterator[str]:
        return iter(self._sets.keys())

    def resolve(self, domain: str | Set | Iterable[Any]) -> tuple[Any, ...]:
        """Turn a set name, Set or iterable into its ordered elements.

        A domain is either the name of a registered set, a ``Set`` or any
        iterable of elements (e.g. ``range(1, 5)``).
        """
        if isinstance(domain, str):
            return self.get(domain).elements
        if isinstance(domain, Set):
            return domain.elements
        return tuple(domain)

    def product(self, *domains: str | Set | Iterable[Any]) -> Iterator[tuple[Any, ...]]:
        """Generate the cartesian product of several domains.

        The last domain varies fastest.

        Returns:
            Iterator over index tuples
        """
        return cartesian_product([self.resolve(d) for d in domains])

    def list_sets(self) -> list[str]:
        """Return list of all set names."""
        return list(self._sets.keys())

    def summary(self) -> dict[str, Any]:
        """Return summary statistics of all sets."""
        return {
            "total_sets": len(self._sets),
            "sets": {
                name: {"elements": len(s), "description": s.description}
                for name, s in self._sets.items()
            },
        }

"""Solver options as an explicit value object.

Options are plain ``name -> string`` pairs handed through to the solver
untouched. Names and values are not validated here; each solver reads
the ones it recognises (``convergence_tolerance``, ``time_limit``, ...).
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _to_option_string(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


class SolverOptions(BaseModel):
    """Immutable mapping of solver option names to string values.

    Example:
        >>> opts = SolverOptions.from_mapping({"convergence_tolerance": 1e-8})
        >>> opts = opts.with_option("time_limit", 60)
        >>> opts.get_float("time_limit")
        60.0
    """

    values: dict[str, str] = Field(default_factory=dict, description="Option values")

    model_config = {"frozen": True}

    @field_validator("values", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> dict[str, str]:  # noqa: N805
        """Store every value in its string form."""
        if v is None:
            return {}
        if not isinstance(v, Mapping):
            msg = "Solver options must be a mapping"
            raise ValueError(msg)
        return {str(k): _to_option_string(val) for k, val in v.items()}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None = None, **kwargs: Any) -> SolverOptions:
        """Build options from a mapping and/or keyword arguments."""
        values = dict(mapping or {})
        values.update(kwargs)
        return cls(values=values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> SolverOptions:
        """Load options from a YAML file.

        The file holds a top-level mapping, either of options directly or
        with the options under an ``options:`` key.

        Raises:
            ValueError: If the YAML does not define a mapping
        """
        path = Path(path)
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise ValueError(f"Options YAML must define a top-level mapping: {path}")
        if "options" in payload:
            payload = payload["options"] or {}
            if not isinstance(payload, dict):
                raise ValueError(f"'options' must be a mapping: {path}")
        return cls(values=payload)

    def with_option(self, name: str, value: Any) -> SolverOptions:
        """Return a copy with one option set."""
        return self.merge({name: value})

    def merge(self, other: SolverOptions | Mapping[str, Any] | None) -> SolverOptions:
        """Return a copy updated with ``other``; ``other`` wins on conflicts."""
        if other is None:
            return self
        updates = other.values if isinstance(other, SolverOptions) else other
        merged = dict(self.values)
        merged.update({str(k): _to_option_string(v) for k, v in updates.items()})
        return SolverOptions(values=merged)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.values.get(name, default)

    def get_float(self, name: str, default: float | None = None) -> float | None:
        """Read an option as float.

        Raises:
            ValueError: If the stored value is not numeric
        """
        if name not in self.values:
            return default
        return float(self.values[name])

    def get_int(self, name: str, default: int | None = None) -> int | None:
        """Read an option as int (``"1e3"`` is accepted)."""
        if name not in self.values:
            return default
        return int(float(self.values[name]))

    def get_bool(self, name: str, default: bool = False) -> bool:
        if name not in self.values:
            return default
        return self.values[name].strip().lower() in _TRUE_STRINGS

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"SolverOptions({self.values})"

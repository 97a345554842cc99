"""Typed solve outcomes and status-code classification."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OutcomeKind(str, Enum):
    """Classified result of one solve call."""

    OPTIMAL = "optimal"
    INFEASIBLE = "infeasible"
    ITERATION_LIMIT = "iteration_limit"
    TIME_LIMIT = "time_limit"
    NUMERICAL_FAILURE = "numerical_failure"
    UNKNOWN = "unknown"


class ModelStatus(str, Enum):
    """Lifecycle state of a model."""

    UNSOLVED = "unsolved"
    SOLVED = "solved"
    FAILED = "failed"


class StatusClassifier:
    """Total mapping from raw solver status codes to outcome kinds.

    Codes missing from the table classify as ``UNKNOWN``; nothing is
    silently dropped.
    """

    def __init__(self, table: Mapping[int, OutcomeKind]) -> None:
        self._table = dict(table)

    def classify(self, status_code: int | None) -> OutcomeKind:
        if status_code is None:
            return OutcomeKind.NUMERICAL_FAILURE
        return self._table.get(int(status_code), OutcomeKind.UNKNOWN)

    def codes_for(self, kind: OutcomeKind) -> list[int]:
        """Raw codes that classify as ``kind``."""
        return sorted(code for code, k in self._table.items() if k is kind)

    def __repr__(self) -> str:
        return f"StatusClassifier({len(self._table)} codes)"


class SolveOutcome(BaseModel):
    """Result of dispatching a model to a solver.

    Non-optimal outcomes are ordinary return values so callers can branch
    on them, e.g. re-solve with a looser tolerance after hitting the
    iteration limit.

    Attributes:
        kind: Classified outcome
        status_code: Raw solver status code (None if the solver crashed)
        solver: Name of the solver that ran
        message: Solver message
        iterations: Iterations reported by the solver
        residual_norm: Final merit / residual norm reported by the solver
        solve_time: Wall time spent in the solver (seconds)
    """

    kind: OutcomeKind = Field(..., description="Classified outcome")
    status_code: int | None = Field(default=None, description="Raw solver status code")
    solver: str = Field(default="", description="Solver name")
    message: str = Field(default="", description="Solver message")
    iterations: int = Field(default=0, description="Solver iterations")
    residual_norm: float | None = Field(default=None, description="Final residual norm")
    solve_time: float = Field(default=0.0, description="Solve time in seconds")

    model_config = {"frozen": True}

    @property
    def is_optimal(self) -> bool:
        return self.kind is OutcomeKind.OPTIMAL

    def to_dict(self) -> dict[str, Any]:
        """Convert outcome to dictionary."""
        data = self.model_dump()
        data["kind"] = self.kind.value
        return data

    def __str__(self) -> str:
        return (
            f"{self.kind.value} (status {self.status_code}, solver={self.solver}, "
            f"iterations={self.iterations}, time={self.solve_time:.2f}s)"
        )

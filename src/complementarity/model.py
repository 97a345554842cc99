"""Main Model class for complementarity problems.

The Model owns the variables, residuals and their correspondences,
the solver options and the lifecycle status. It is the only object
most user code talks to: build, solve, read values.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, PrivateAttr

from complementarity.backends.base import MCPSolver
from complementarity.core.correspondence import Correspondence, CorrespondenceTable
from complementarity.core.errors import (
    DuplicateCorrespondenceError,
    ModelStateError,
    NotSolvedError,
    UnknownComponentError,
)
from complementarity.core.expressions import dot
from complementarity.core.keys import ComponentKey
from complementarity.core.residuals import Residual, ResidualArray, ResidualManager
from complementarity.core.sets import Set, SetManager
from complementarity.core.variables import Variable, VariableArray, VariableRegistry
from complementarity.solver.dispatcher import DEFAULT_SOLVER, SolveDispatcher
from complementarity.solver.flattening import FlatteningBridge
from complementarity.solver.options import SolverOptions
from complementarity.solver.outcome import ModelStatus, SolveOutcome

logger = logging.getLogger(__name__)

Domain = str | Set | Iterable[Any]


def _per_index(value: Any, index: tuple[Any, ...]) -> Any:
    """Evaluate a per-index rule, or return a constant."""
    return value(*index) if callable(value) else value


class ModelStatistics(BaseModel):
    """Statistics for a complementarity model.

    Attributes:
        variables: Total number of scalar variables
        residuals: Total number of scalar residuals
        pairs: Number of declared correspondences
        fixed: Number of fixed variables
        nonzeros: Structural nonzeros of the Jacobian
        density: Nonzeros over ``pairs**2`` (0-1)
    """

    variables: int = Field(default=0, description="Total scalar variables")
    residuals: int = Field(default=0, description="Total scalar residuals")
    pairs: int = Field(default=0, description="Declared correspondences")
    fixed: int = Field(default=0, description="Fixed variables")
    nonzeros: int = Field(default=0, description="Jacobian structural nonzeros")
    density: float = Field(default=0.0, description="Jacobian density")

    model_config = {"frozen": True}


class Model(BaseModel):
    """Mixed complementarity model.

    Each variable ``x_i`` with bounds ``lower_i <= x_i <= upper_i`` is
    paired with one residual ``F_i``; a solution satisfies

        x_i = lower_i            =>  F_i(x) >= 0
        x_i = upper_i            =>  F_i(x) <= 0
        lower_i < x_i < upper_i  =>  F_i(x) == 0

    Building the model (adding components, pairing them, setting
    options) is only allowed while it is unsolved; call ``reset()`` to
    modify a solved or failed model. ``solve()`` may be repeated in any
    state.

    Attributes:
        name: Model identifier
        description: Model description
        set_manager: Named index sets
        variables: Variable registry
        residuals: Residual manager
        correspondences: Residual/variable pairs, in flat order
        options: Default solver options
        status: Lifecycle status

    Example:
        >>> model = Model(name="market")
        >>> p = model.add_variable("p", start=1.0)
        >>> model.complements(10 - 2 * p, p)
        >>> outcome = model.solve()
        >>> model.get_value(p)
        5.0
    """

    name: str = Field(default="model", description="Model identifier")
    description: str = Field(default="", description="Model description")
    set_manager: SetManager = Field(default_factory=SetManager, description="Set manager")
    variables: VariableRegistry = Field(
        default_factory=VariableRegistry, description="Variable registry"
    )
    residuals: ResidualManager = Field(
        default_factory=ResidualManager, description="Residual manager"
    )
    correspondences: CorrespondenceTable = Field(
        default_factory=CorrespondenceTable, description="Residual/variable pairs"
    )
    options: SolverOptions = Field(default_factory=SolverOptions, description="Solver options")
    status: ModelStatus = Field(default=ModelStatus.UNSOLVED, description="Lifecycle status")

    model_config = {"arbitrary_types_allowed": True}

    _bridge: FlatteningBridge = PrivateAttr()

    def __init__(self, **data: Any) -> None:
        """Initialize model and link the bridge to its components."""
        super().__init__(**data)
        self._bridge = FlatteningBridge(self.variables, self.residuals, self.correspondences)
        self.variables.guard = self._require_unsolved

    @property
    def bridge(self) -> FlatteningBridge:
        return self._bridge

    def _require_unsolved(self, action: str) -> None:
        if self.status is not ModelStatus.UNSOLVED:
            msg = f"Cannot {action}: model '{self.name}' is {self.status.value}; call reset() first"
            raise ModelStateError(msg)

    def _require_registered(self, residuals: list[Any], variables: list[Any]) -> None:
        """Refuse pairs naming components this model does not own."""
        unknown_vars = [k for k in map(_key_of, variables) if k not in self.variables]
        unknown_res = [k for k in map(_key_of, residuals) if k not in self.residuals]
        if unknown_vars or unknown_res:
            raise UnknownComponentError(unknown_vars, unknown_res)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_set(self, set_obj: Set) -> None:
        """Add a named index set."""
        self._require_unsolved("add a set")
        self.set_manager.add(set_obj)

    def add_sets(self, sets: list[Set]) -> None:
        for set_obj in sets:
            self.add_set(set_obj)

    def add_variable(
        self,
        name: str,
        index: Any = (),
        lower: float | None = 0.0,
        upper: float | None = math.inf,
        start: float = 0.0,
        description: str = "",
    ) -> Variable:
        """Add a scalar variable.

        Args:
            name: Variable name
            index: Index tuple (a scalar becomes a 1-tuple)
            lower: Lower bound, None for -inf
            upper: Upper bound, None for +inf
            start: Starting point
            description: Human-readable description

        Returns:
            Variable handle

        Raises:
            DuplicateVariableError: If ``(name, index)`` already exists
        """
        self._require_unsolved("add a variable")
        return self.variables.add(
            name, index, lower=lower, upper=upper, start=start, description=description
        )

    def add_variables(
        self,
        name: str,
        *domains: Domain,
        lower: Any = 0.0,
        upper: Any = math.inf,
        start: Any = 0.0,
        description: str = "",
    ) -> VariableArray:
        """Add a variable for every element of the product of ``domains``.

        ``lower``, ``upper`` and ``start`` are constants or rules called
        with the index elements. Nothing is registered unless every
        variable of the family can be.

        Example:
            >>> model.add_sets([Set(name="I", elements=["a", "b"])])
            >>> q = model.add_variables("q", "I", start=lambda i: 1.0)
            >>> q["a"]

        Raises:
            DuplicateVariableError: If any ``(name, index)`` already exists
        """
        self._require_unsolved("add variables")
        batch = [
            Variable(
                key=ComponentKey(name=name, index=index),
                lower=_per_index(lower, index),
                upper=_per_index(upper, index),
                start=_per_index(start, index),
                description=description,
            )
            for index in self.set_manager.product(*domains)
        ]
        self.variables.add_all(batch)
        logger.debug(f"Added {len(batch)} variables '{name}'")
        return VariableArray(name, {var.index: var for var in batch})

    def add_expression(
        self, name: str, expression: Any, index: Any = (), description: str = ""
    ) -> Residual:
        """Add a scalar residual expression.

        Raises:
            DuplicateResidualError: If ``(name, index)`` already exists
        """
        self._require_unsolved("add an expression")
        return self.residuals.add(name, expression, index=index, description=description)

    def add_expressions(
        self,
        name: str,
        rule: Callable[..., Any],
        *domains: Domain,
        description: str = "",
    ) -> ResidualArray:
        """Add ``rule(*index)`` for every element of the product of ``domains``.

        Nothing is registered if the rule fails or a key already exists.
        """
        self._require_unsolved("add expressions")
        batch = _build_residuals(name, rule, self.set_manager.product(*domains), description)
        self.residuals.add_all(batch)
        return ResidualArray(name, {r.index: r for r in batch})

    def correspond(
        self, residuals: Residual | Iterable[Any], variables: Variable | Iterable[Any]
    ) -> list[Correspondence]:
        """Pair residuals with variables position by position.

        Arrays and single components are accepted on either side.

        Raises:
            UnknownComponentError: If a component is not registered in this model
            CardinalityMismatchError: If the sides differ in length
            DuplicateCorrespondenceError: If a component is already paired
        """
        self._require_unsolved("add correspondences")
        residual_list = _as_list(residuals)
        variable_list = _as_list(variables)
        self._require_registered(residual_list, variable_list)
        return self.correspondences.correspond(residual_list, variable_list)

    def complements(
        self, expression: Any, variable: Variable | VariableArray, name: str | None = None
    ) -> Residual | ResidualArray:
        """Register ``expression ⟂ variable`` in one step.

        For a ``VariableArray``, ``expression`` is either a matching
        ``ResidualArray`` or a rule called with each index of the array.
        Residuals created here are named ``name`` or ``F_<variable>``.
        A failing call registers nothing.

        Returns:
            The paired residual(s)

        Raises:
            UnknownComponentError: If a component is not registered in this model
            DuplicateCorrespondenceError: If a variable is already paired
            DuplicateResidualError: If a created residual already exists
        """
        self._require_unsolved("add correspondences")
        targets = _as_list(variable)
        self._require_registered([], targets)
        taken = [v.key for v in targets if self.correspondences.has_variable(v)]
        if taken:
            raise DuplicateCorrespondenceError(variables=taken)

        res_name = name or f"F_{variable.name}"
        if isinstance(variable, VariableArray):
            if isinstance(expression, ResidualArray):
                residuals = expression
                self._require_registered(list(residuals), [])
            else:
                batch = _build_residuals(res_name, expression, variable.indices())
                self.residuals.add_all(batch)
                residuals = ResidualArray(res_name, {r.index: r for r in batch})
            self.correspondences.correspond(list(residuals), targets)
            return residuals

        if isinstance(expression, Residual):
            residual = expression
            self._require_registered([residual], [])
        else:
            residual = self.residuals.add(res_name, expression, index=variable.index)
        self.correspondences.correspond([residual], [variable])
        return residual

    # ------------------------------------------------------------------
    # Options and starting values
    # ------------------------------------------------------------------

    def set_option(self, name: str, value: Any) -> None:
        """Set one default solver option."""
        self._require_unsolved("set options")
        self.options = self.options.with_option(name, value)

    def set_options(self, **kwargs: Any) -> None:
        self._require_unsolved("set options")
        self.options = self.options.merge(kwargs)

    def load_options(self, path: str | Path) -> None:
        """Merge solver options from a YAML file."""
        self._require_unsolved("set options")
        self.options = self.options.merge(SolverOptions.from_yaml(path))

    def set_start_value(self, variable: Any, value: float) -> None:
        """Set the starting point of a variable."""
        self._require_unsolved("set start values")
        self.variables.get(_key_of(variable)).start = value

    def fix(self, variable: Any, value: float | None = None) -> None:
        """Fix a variable at ``value`` (or its start value)."""
        self._require_unsolved("fix variables")
        self.variables.get(_key_of(variable)).fix(value)

    def unfix(self, variable: Any, lower: float = 0.0, upper: float = math.inf) -> None:
        """Restore bounds on a fixed variable."""
        self._require_unsolved("unfix variables")
        self.variables.get(_key_of(variable)).unfix(lower, upper)

    # ------------------------------------------------------------------
    # Solving and results
    # ------------------------------------------------------------------

    def solve(
        self,
        solver: MCPSolver | str = DEFAULT_SOLVER,
        options: SolverOptions | dict[str, Any] | None = None,
    ) -> SolveOutcome:
        """Solve the model.

        Args:
            solver: Registered solver name or solver instance
            options: Options overriding the model's defaults for this call

        Returns:
            Classified outcome; check ``outcome.kind`` before reading values

        Raises:
            IncompleteCorrespondenceError: If a component is unpaired
            BoundInversionError: If a variable has ``lower > upper``
            ForeignReferenceError: If a residual references a variable of
                another model
        """
        merged = self.options.merge(options)
        return SolveDispatcher(solver).dispatch(self, merged)

    def get_value(self, variable: Any, index: Any = ()) -> float:
        """Solved value of a variable.

        Args:
            variable: Variable handle, key, or variable name
            index: Index when ``variable`` is a name

        Raises:
            NotSolvedError: If the last solve did not succeed
            KeyError: If the variable does not exist
        """
        if self.status is not ModelStatus.SOLVED:
            msg = f"Model '{self.name}' is {self.status.value}; no solution available"
            raise NotSolvedError(msg)
        if isinstance(variable, str):
            key = ComponentKey(name=variable, index=index)
        else:
            key = _key_of(variable)
        return float(self.variables.get(key).value)

    def get_values(self, array: VariableArray) -> dict[tuple[Any, ...], float]:
        """Solved values of an indexed family, keyed by index tuple."""
        return {index: self.get_value(var) for index, var in array.items()}

    def reset(self) -> None:
        """Return to the unsolved state and discard stored values."""
        self.variables.clear_values()
        self.status = ModelStatus.UNSOLVED
        logger.debug(f"Model '{self.name}' reset")

    @classmethod
    def from_lcp(
        cls,
        M: Any,
        q: Any,
        lower: Any = 0.0,
        upper: Any = math.inf,
        name: str = "lcp",
    ) -> Model:
        """Build the linear MCP ``lower <= x <= upper ⟂ Mx + q``.

        With the default bounds this is the LCP ``0 <= x ⟂ Mx + q >= 0``.
        Variables are ``x[0] .. x[n-1]``, residuals ``F[0] .. F[n-1]``.

        Raises:
            ValueError: If ``M`` is not square or does not match ``q``
        """
        M = np.asarray(M, dtype=float)
        q = np.asarray(q, dtype=float).ravel()
        n = q.shape[0]
        if M.shape != (n, n):
            msg = f"M has shape {M.shape}, expected ({n}, {n})"
            raise ValueError(msg)
        lower = np.broadcast_to(np.asarray(lower, dtype=float), (n,))
        upper = np.broadcast_to(np.asarray(upper, dtype=float), (n,))

        model = cls(name=name)
        x = model.add_variables(
            "x", range(n), lower=lambda i: lower[i], upper=lambda i: upper[i]
        )
        handles = list(x)
        model.complements(lambda i: dot(M[i], handles) + q[i], x, name="F")
        return model

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @property
    def statistics(self) -> ModelStatistics:
        """Calculate model statistics."""
        n_pairs = len(self.correspondences)
        nonzeros = int(self.bridge.jacobian_structure()[0].shape[0])
        density = nonzeros / (n_pairs * n_pairs) if n_pairs else 0.0
        fixed = sum(1 for v in self.variables.all_variables() if v.is_fixed())

        return ModelStatistics(
            variables=self.variables.get_total_count(),
            residuals=self.residuals.get_total_count(),
            pairs=n_pairs,
            fixed=fixed,
            nonzeros=nonzeros,
            density=density,
        )

    def summary(self) -> dict[str, Any]:
        """Return comprehensive model summary."""
        return {
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "statistics": self.statistics.model_dump(),
            "sets": self.set_manager.summary(),
            "variables": self.variables.summary(),
            "residuals": self.residuals.summary(),
            "options": dict(self.options.values),
        }

    def __repr__(self) -> str:
        stats = self.statistics
        return (
            f"Model '{self.name}': "
            f"{stats.variables} vars, "
            f"{stats.residuals} residuals, "
            f"{stats.pairs} pairs, "
            f"status={self.status.value}"
        )


def _key_of(component: Any) -> ComponentKey:
    return component if isinstance(component, ComponentKey) else component.key


def _as_list(components: Any) -> list[Any]:
    if isinstance(components, BaseModel):
        return [components]
    return list(components)


def _build_residuals(
    name: str, rule: Callable[..., Any], indices: Iterable[tuple[Any, ...]], description: str = ""
) -> list[Residual]:
    """Evaluate ``rule`` at every index without registering anything."""
    return [
        Residual(
            key=ComponentKey(name=name, index=index),
            expression=rule(*index),
            description=description,
        )
        for index in indices
    ]

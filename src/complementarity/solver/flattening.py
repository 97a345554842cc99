"""Translation between named model components and flat solver vectors.

The correspondence order fixes position ``i`` of every vector: the
``i``-th declared pair contributes ``lb[i]``, ``ub[i]``, ``x0[i]`` and
``F[i]``. The bridge owns a scratch binding (``ComponentKey -> float``)
that the ``F``/``J`` callbacks write trial points into, so the solver
can evaluate arbitrary points without touching stored variable values.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import numpy as np
from scipy import sparse

from complementarity.backends.base import MCPProblem
from complementarity.core.correspondence import CorrespondenceTable
from complementarity.core.keys import ComponentKey
from complementarity.core.residuals import Residual, ResidualManager
from complementarity.core.variables import Variable, VariableRegistry

logger = logging.getLogger(__name__)

JACOBIAN_FORMATS = ("dense", "csr")


class FlatteningBridge:
    """Builds flat vectors and callbacks from a model's components.

    The callbacks capture the correspondence order at build time; build
    them again after changing the model.

    Args:
        registry: Variables of the model
        residuals: Residuals of the model
        table: Residual/variable pairs defining the flat order
    """

    def __init__(
        self,
        registry: VariableRegistry,
        residuals: ResidualManager,
        table: CorrespondenceTable,
    ) -> None:
        self.registry = registry
        self.residuals = residuals
        self.table = table
        self._scratch: dict[ComponentKey, float] = {}

    def ordered_variables(self) -> list[Variable]:
        """Variables in flat index order."""
        return [self.registry.get(k) for k in self.table.variable_order()]

    def ordered_residuals(self) -> list[Residual]:
        """Residuals in flat index order."""
        return [self.residuals.get(k) for k in self.table.residual_order()]

    def build_numeric_vectors(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Bounds and starting point in flat order.

        Returns:
            lower, upper, x0 as float arrays of length n
        """
        variables = self.ordered_variables()
        lower = np.array([v.lower for v in variables], dtype=float)
        upper = np.array([v.upper for v in variables], dtype=float)
        x0 = np.array([v.start for v in variables], dtype=float)
        return lower, upper, x0

    def _binder(self) -> Callable[[Any], None]:
        keys = self.table.variable_order()
        n = len(keys)
        scratch = self._scratch

        def bind(point: Any) -> None:
            values = np.asarray(point, dtype=float)
            if values.shape != (n,):
                msg = f"Expected a point of length {n}, got shape {values.shape}"
                raise ValueError(msg)
            for key, value in zip(keys, values):
                scratch[key] = float(value)

        return bind

    def build_evaluator(self) -> Callable[[Any], np.ndarray]:
        """Callback ``F(point)`` returning residual values in flat order.

        Repeated calls with the same point give the same result; stored
        variable values are never read or written.
        """
        bind = self._binder()
        expressions = [r.expression for r in self.ordered_residuals()]
        scratch = self._scratch

        def evaluate(point: Any) -> np.ndarray:
            bind(point)
            return np.array([float(e.evaluate(scratch)) for e in expressions], dtype=float)

        return evaluate

    def jacobian_structure(self) -> tuple[np.ndarray, np.ndarray]:
        """Row and column indices of the structural nonzeros of ``J``.

        Entry ``(i, j)`` is present when residual ``i`` references the
        variable at flat position ``j``.
        """
        position = {key: j for j, key in enumerate(self.table.variable_order())}
        rows: list[int] = []
        cols: list[int] = []
        for i, residual in enumerate(self.ordered_residuals()):
            referenced = sorted(position[k] for k in residual.variables() if k in position)
            rows.extend([i] * len(referenced))
            cols.extend(referenced)
        return np.array(rows, dtype=int), np.array(cols, dtype=int)

    def build_jacobian(self, fmt: str = "dense") -> Callable[[Any], Any]:
        """Callback ``J(point)`` with ``J[i, j] = dF_i / dx_j``.

        Args:
            fmt: ``"dense"`` for an ndarray, ``"csr"`` for a
                ``scipy.sparse.csr_matrix``

        Raises:
            ValueError: If ``fmt`` is not a known format
        """
        if fmt not in JACOBIAN_FORMATS:
            msg = f"Unknown Jacobian format '{fmt}', expected one of {JACOBIAN_FORMATS}"
            raise ValueError(msg)

        bind = self._binder()
        keys = self.table.variable_order()
        expressions = [r.expression for r in self.ordered_residuals()]
        rows, cols = self.jacobian_structure()
        entries = [(expressions[i], keys[j]) for i, j in zip(rows, cols)]
        n = len(keys)
        scratch = self._scratch

        def jacobian(point: Any) -> Any:
            bind(point)
            data = np.array([float(e.partial(k, scratch)) for e, k in entries], dtype=float)
            if fmt == "csr":
                return sparse.csr_matrix((data, (rows, cols)), shape=(n, n))
            dense = np.zeros((n, n))
            dense[rows, cols] = data
            return dense

        return jacobian

    def unflatten(self, result: Any) -> None:
        """Write ``result[i]`` into the variable at flat position ``i``.

        Raises:
            ValueError: If ``result`` does not have one entry per pair
        """
        keys = self.table.variable_order()
        values = np.asarray(result, dtype=float).ravel()
        if values.shape[0] != len(keys):
            msg = f"Result has {values.shape[0]} entries, model has {len(keys)} pairs"
            raise ValueError(msg)
        for key, value in zip(keys, values):
            self.registry.set_value(key, value)
        logger.debug(f"Stored {len(keys)} solved values")

    def flatten_values(self) -> np.ndarray:
        """Stored values in flat order; unsolved entries are NaN."""
        return np.array(
            [np.nan if v.value is None else v.value for v in self.ordered_variables()],
            dtype=float,
        )

    def build_problem(self, jacobian_format: str = "dense") -> MCPProblem:
        """Assemble everything a back end needs into one problem."""
        lower, upper, x0 = self.build_numeric_vectors()
        return MCPProblem(
            lower=lower,
            upper=upper,
            x0=x0,
            evaluator=self.build_evaluator(),
            jacobian=self.build_jacobian(jacobian_format),
            jacobian_structure=self.jacobian_structure(),
            variables=tuple(self.ordered_variables()),
            residuals=tuple(self.ordered_residuals()),
        )

    def __repr__(self) -> str:
        return f"FlatteningBridge(n={len(self.table)})"

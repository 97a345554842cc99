"""Fischer-Burmeister reformulation of a box-constrained MCP.

The MCP ``lb <= x <= ub ⟂ F(x)`` is rewritten as the square system
``Phi(x) = 0`` with, per component:

    free          :  Phi_i = F_i
    lower only    :  Phi_i = phi(x_i - l_i, F_i)
    upper only    :  Phi_i = -phi(u_i - x_i, -F_i)
    both bounds   :  Phi_i = phi(x_i - l_i, -phi(u_i - x_i, -F_i))

where ``phi(a, b) = a + b - sqrt(a^2 + b^2)`` vanishes iff ``a >= 0``,
``b >= 0`` and ``a * b = 0``.

An element of the generalized Jacobian is ``H = diag(Da) + diag(Db) J``.
At the kink ``a = b = 0`` the derivative pair ``(1 - 1/sqrt(2),
1 - 1/sqrt(2))`` is used.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
from scipy import sparse

_KINK = 1.0 - 1.0 / np.sqrt(2.0)


def fischer_burmeister(a: np.ndarray, b: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Fischer-Burmeister function with its partial derivatives.

    Returns:
        phi: ``a + b - sqrt(a^2 + b^2)``
        da: d phi / d a
        db: d phi / d b
    """
    r = np.hypot(a, b)
    phi = a + b - r
    at_kink = r == 0.0
    safe_r = np.where(at_kink, 1.0, r)
    da = np.where(at_kink, _KINK, 1.0 - a / safe_r)
    db = np.where(at_kink, _KINK, 1.0 - b / safe_r)
    return phi, da, db


class BoxReformulation:
    """``Phi`` and its generalized Jacobian for fixed bounds."""

    def __init__(self, lower: np.ndarray, upper: np.ndarray) -> None:
        self.lower = np.asarray(lower, dtype=float)
        self.upper = np.asarray(upper, dtype=float)
        has_lower = np.isfinite(self.lower)
        has_upper = np.isfinite(self.upper)
        self.free = ~has_lower & ~has_upper
        self.lower_only = has_lower & ~has_upper
        self.upper_only = ~has_lower & has_upper
        self.boxed = has_lower & has_upper

    def residual(self, x: np.ndarray, f: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Evaluate ``Phi`` at ``x`` given ``f = F(x)``.

        Returns:
            phi: Reformulated residual
            dx: Diagonal derivative of ``Phi`` w.r.t. ``x`` (direct part)
            df: Diagonal derivative of ``Phi`` w.r.t. ``F``
        """
        n = x.shape[0]
        phi = np.empty(n)
        dx = np.zeros(n)
        df = np.zeros(n)

        m = self.free
        phi[m] = f[m]
        df[m] = 1.0

        m = self.lower_only
        if m.any():
            p, da, db = fischer_burmeister(x[m] - self.lower[m], f[m])
            phi[m], dx[m], df[m] = p, da, db

        m = self.upper_only
        if m.any():
            p, da, db = fischer_burmeister(self.upper[m] - x[m], -f[m])
            phi[m], dx[m], df[m] = -p, da, db

        m = self.boxed
        if m.any():
            inner, da2, db2 = fischer_burmeister(self.upper[m] - x[m], -f[m])
            p, da1, db1 = fischer_burmeister(x[m] - self.lower[m], -inner)
            phi[m] = p
            dx[m] = da1 + db1 * da2
            df[m] = db1 * db2

        return phi, dx, df

    def jacobian(self, dx: np.ndarray, df: np.ndarray, jac: object) -> np.ndarray:
        """Assemble ``H = diag(dx) + diag(df) J`` as a dense array."""
        if sparse.issparse(jac):
            dense = jac.toarray()
        else:
            dense = np.asarray(jac, dtype=float)
        return np.diag(dx) + df[:, None] * dense

    def evaluate(
        self, evaluator: Callable[[np.ndarray], np.ndarray], x: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Call ``F`` at ``x`` and reformulate.

        Raises:
            FloatingPointError: If ``F(x)`` has non-finite entries
        """
        f = np.asarray(evaluator(x), dtype=float)
        if f.shape != x.shape:
            msg = f"F returned shape {f.shape}, expected {x.shape}"
            raise ValueError(msg)
        if not np.all(np.isfinite(f)):
            bad = np.flatnonzero(~np.isfinite(f)).tolist()
            msg = f"F is not finite at components {bad}"
            raise FloatingPointError(msg)
        return self.residual(x, f)

"""Algebraic residual expressions.

Expressions form a small tagged tree (constants, variable references,
binary and unary operations, sums) evaluated recursively against a
mapping of variable keys to numbers. Every node can also produce its
partial derivative with respect to any variable, which is what the
flattening bridge uses to assemble Jacobians.

Example:
    >>> x = model.add_variable("x")
    >>> y = model.add_variable("y")
    >>> f = 2 * x * y - log(y) + 1
    >>> f.evaluate({x.key: 1.0, y.key: 1.0})
    3.0
"""

from __future__ import annotations

import numbers
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

import numpy as np

from complementarity.core.keys import ComponentKey, cartesian_product

Values = Mapping[ComponentKey, float]


def as_expression(obj: Any) -> Expression:
    """Coerce numbers and variable handles into expression nodes.

    Raises:
        TypeError: If ``obj`` cannot take part in an expression
    """
    if isinstance(obj, Expression):
        return obj
    if isinstance(obj, numbers.Real):
        return Constant(float(obj))
    if hasattr(obj, "to_expression"):
        return obj.to_expression()
    msg = f"Cannot use {type(obj).__name__} in an expression"
    raise TypeError(msg)


class ExpressionOperators:
    """Arithmetic operators shared by expressions and variable handles."""

    # numpy scalars and arrays defer to the reflected operators below
    __array_ufunc__ = None

    def __add__(self, other: Any) -> Expression:
        return BinaryOp("+", as_expression(self), as_expression(other))

    def __radd__(self, other: Any) -> Expression:
        # sum() starts from integer 0
        if isinstance(other, numbers.Real) and other == 0:
            return as_expression(self)
        return BinaryOp("+", as_expression(other), as_expression(self))

    def __sub__(self, other: Any) -> Expression:
        return BinaryOp("-", as_expression(self), as_expression(other))

    def __rsub__(self, other: Any) -> Expression:
        return BinaryOp("-", as_expression(other), as_expression(self))

    def __mul__(self, other: Any) -> Expression:
        return BinaryOp("*", as_expression(self), as_expression(other))

    def __rmul__(self, other: Any) -> Expression:
        return BinaryOp("*", as_expression(other), as_expression(self))

    def __truediv__(self, other: Any) -> Expression:
        return BinaryOp("/", as_expression(self), as_expression(other))

    def __rtruediv__(self, other: Any) -> Expression:
        return BinaryOp("/", as_expression(other), as_expression(self))

    def __pow__(self, other: Any) -> Expression:
        return BinaryOp("**", as_expression(self), as_expression(other))

    def __rpow__(self, other: Any) -> Expression:
        return BinaryOp("**", as_expression(other), as_expression(self))

    def __neg__(self) -> Expression:
        return UnaryOp("neg", as_expression(self))

    def __pos__(self) -> Expression:
        return as_expression(self)


class Expression(ExpressionOperators, ABC):
    """Base class of all expression nodes.

    Nodes are immutable once built. ``variables()`` is computed at
    construction so that ``partial`` can short-circuit to zero for
    variables the expression does not reference.
    """

    _variables: frozenset[ComponentKey] = frozenset()

    @abstractmethod
    def evaluate(self, values: Values) -> float:
        """Evaluate the expression at a point."""
        ...

    @abstractmethod
    def _partial(self, key: ComponentKey, values: Values) -> float: ...

    def partial(self, key: ComponentKey, values: Values) -> float:
        """Partial derivative with respect to ``key`` at a point."""
        if key not in self._variables:
            return 0.0
        return self._partial(key, values)

    def gradient(self, values: Values) -> dict[ComponentKey, float]:
        """All nonzero-structure partial derivatives at a point."""
        return {key: self._partial(key, values) for key in self._variables}

    def variables(self) -> frozenset[ComponentKey]:
        """Keys of all variables referenced by the expression."""
        return self._variables

    def to_expression(self) -> Expression:
        return self


class Constant(Expression):
    """A numeric literal."""

    def __init__(self, value: float) -> None:
        self.value = float(value)

    def evaluate(self, values: Values) -> float:
        return self.value

    def _partial(self, key: ComponentKey, values: Values) -> float:
        return 0.0

    def __repr__(self) -> str:
        return f"{self.value:g}"


class VariableRef(Expression):
    """Reference to a scalar variable by key."""

    def __init__(self, key: ComponentKey) -> None:
        self.key = key
        self._variables = frozenset((key,))

    def evaluate(self, values: Values) -> float:
        return float(values[self.key])

    def _partial(self, key: ComponentKey, values: Values) -> float:
        return 1.0

    def __repr__(self) -> str:
        return str(self.key)


_BINARY_FUNCS: dict[str, Callable[[Any, Any], Any]] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.divide,
    "**": np.power,
}


class BinaryOp(Expression):
    """Binary arithmetic node: ``+ - * / **``."""

    def __init__(self, op: str, left: Expression, right: Expression) -> None:
        if op not in _BINARY_FUNCS:
            msg = f"Unknown binary operator '{op}'"
            raise ValueError(msg)
        self.op = op
        self.left = left
        self.right = right
        self._variables = left.variables() | right.variables()

    def evaluate(self, values: Values) -> float:
        left = np.float64(self.left.evaluate(values))
        right = np.float64(self.right.evaluate(values))
        return float(_BINARY_FUNCS[self.op](left, right))

    def _partial(self, key: ComponentKey, values: Values) -> float:
        dl = self.left.partial(key, values)
        dr = self.right.partial(key, values)
        if self.op == "+":
            return dl + dr
        if self.op == "-":
            return dl - dr

        left = np.float64(self.left.evaluate(values))
        right = np.float64(self.right.evaluate(values))
        if self.op == "*":
            return float(dl * right + left * dr)
        if self.op == "/":
            return float((dl * right - left * dr) / (right * right))

        # power: constant exponent, constant base, or both varying
        if key not in self.right.variables():
            return float(right * np.power(left, right - 1.0) * dl)
        if key not in self.left.variables():
            return float(np.power(left, right) * np.log(left) * dr)
        return float(np.power(left, right) * (dr * np.log(left) + right * dl / left))

    def __repr__(self) -> str:
        return f"({self.left!r} {self.op} {self.right!r})"


_UNARY_FUNCS: dict[str, Callable[[Any], Any]] = {
    "neg": np.negative,
    "log": np.log,
    "exp": np.exp,
    "sqrt": np.sqrt,
    "sin": np.sin,
    "cos": np.cos,
}


class UnaryOp(Expression):
    """Unary function node: negation and elementary functions."""

    def __init__(self, func: str, arg: Expression) -> None:
        if func not in _UNARY_FUNCS:
            msg = f"Unknown function '{func}'"
            raise ValueError(msg)
        self.func = func
        self.arg = arg
        self._variables = arg.variables()

    def evaluate(self, values: Values) -> float:
        return float(_UNARY_FUNCS[self.func](np.float64(self.arg.evaluate(values))))

    def _partial(self, key: ComponentKey, values: Values) -> float:
        da = self.arg.partial(key, values)
        if self.func == "neg":
            return -da
        a = np.float64(self.arg.evaluate(values))
        if self.func == "log":
            return float(da / a)
        if self.func == "exp":
            return float(np.exp(a) * da)
        if self.func == "sqrt":
            return float(da / (2.0 * np.sqrt(a)))
        if self.func == "sin":
            return float(np.cos(a) * da)
        return float(-np.sin(a) * da)

    def __repr__(self) -> str:
        if self.func == "neg":
            return f"-{self.arg!r}"
        return f"{self.func}({self.arg!r})"


class Sum(Expression):
    """N-ary sum, typically produced by summing over an index set."""

    def __init__(self, terms: Iterable[Any]) -> None:
        self.terms = tuple(as_expression(t) for t in terms)
        variables: set[ComponentKey] = set()
        for term in self.terms:
            variables |= term.variables()
        self._variables = frozenset(variables)

    def evaluate(self, values: Values) -> float:
        return float(sum(term.evaluate(values) for term in self.terms))

    def _partial(self, key: ComponentKey, values: Values) -> float:
        return float(
            sum(term.partial(key, values) for term in self.terms if key in term.variables())
        )

    def __repr__(self) -> str:
        return "sum(" + ", ".join(repr(t) for t in self.terms) + ")"


class FunctionExpression(Expression):
    """Black-box scalar function of an ordered list of variables.

    ``func`` receives the variable values positionally. Without an
    explicit ``gradient`` callable, partials are taken by central
    finite differences.
    """

    def __init__(
        self,
        func: Callable[..., float],
        variables: Sequence[Any],
        gradient: Callable[..., Sequence[float]] | None = None,
        step: float = 1e-7,
    ) -> None:
        self.func = func
        self.keys = tuple(
            v if isinstance(v, ComponentKey) else as_expression(v).key  # type: ignore[attr-defined]
            for v in variables
        )
        self.gradient_func = gradient
        self.step = step
        self._variables = frozenset(self.keys)

    def _args(self, values: Values) -> list[float]:
        return [float(values[k]) for k in self.keys]

    def evaluate(self, values: Values) -> float:
        return float(self.func(*self._args(values)))

    def _partial(self, key: ComponentKey, values: Values) -> float:
        args = self._args(values)
        pos = self.keys.index(key)
        if self.gradient_func is not None:
            return float(self.gradient_func(*args)[pos])
        h = self.step * max(1.0, abs(args[pos]))
        hi = list(args)
        lo = list(args)
        hi[pos] += h
        lo[pos] -= h
        return float((self.func(*hi) - self.func(*lo)) / (2.0 * h))

    def __repr__(self) -> str:
        name = getattr(self.func, "__name__", "f")
        return f"{name}({', '.join(str(k) for k in self.keys)})"


# Helper functions for building expressions


def const(value: float) -> Constant:
    """Create a constant node."""
    return Constant(value)


def log(expr: Any) -> UnaryOp:
    """Natural logarithm."""
    return UnaryOp("log", as_expression(expr))


def exp(expr: Any) -> UnaryOp:
    """Exponential."""
    return UnaryOp("exp", as_expression(expr))


def sqrt(expr: Any) -> UnaryOp:
    """Square root."""
    return UnaryOp("sqrt", as_expression(expr))


def sin(expr: Any) -> UnaryOp:
    return UnaryOp("sin", as_expression(expr))


def cos(expr: Any) -> UnaryOp:
    return UnaryOp("cos", as_expression(expr))


def quicksum(terms: Iterable[Any]) -> Sum:
    """Sum an iterable of expressions, variables or numbers in one node."""
    return Sum(terms)


def sum_over(rule: Callable[..., Any], *domains: Iterable[Any]) -> Sum:
    """Sum ``rule(*index)`` over the cartesian product of ``domains``.

    Example:
        >>> sum_over(lambda j: M[i][j] * x[j], range(4))
    """
    return Sum(rule(*index) for index in cartesian_product([tuple(d) for d in domains]))


def dot(coefficients: Sequence[float], variables: Sequence[Any]) -> Sum:
    """Linear combination ``sum(c_j * x_j)``; zero coefficients are dropped."""
    if len(coefficients) != len(variables):
        msg = f"dot: {len(coefficients)} coefficients for {len(variables)} variables"
        raise ValueError(msg)
    return Sum(
        float(c) * as_expression(v) for c, v in zip(coefficients, variables) if c != 0
    )

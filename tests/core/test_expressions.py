"""Tests for the expression tree: evaluation and partial derivatives."""

import math

import numpy as np
import pytest

from complementarity.core import (
    BinaryOp,
    ComponentKey,
    Constant,
    FunctionExpression,
    Sum,
    UnaryOp,
    VariableRef,
    VariableRegistry,
    as_expression,
    cos,
    dot,
    exp,
    log,
    quicksum,
    sin,
    sqrt,
    sum_over,
)


@pytest.fixture
def registry():
    """Registry with two scalar variables and one indexed family."""
    registry = VariableRegistry()
    registry.add("x")
    registry.add("y")
    for i in range(3):
        registry.add("z", i)
    return registry


@pytest.fixture
def x(registry):
    return registry[ComponentKey(name="x")]


@pytest.fixture
def y(registry):
    return registry[ComponentKey(name="y")]


@pytest.fixture
def point(x, y):
    return {x.key: 2.0, y.key: 3.0}


class TestConstruction:
    """Tests for building expressions with operators."""

    def test_as_expression(self, x):
        """Test numbers and variables coerce to nodes."""
        assert isinstance(as_expression(3), Constant)
        assert isinstance(as_expression(x), VariableRef)
        expr = x + 1
        assert as_expression(expr) is expr

    def test_as_expression_rejects_strings(self):
        """Test unsupported operands raise TypeError."""
        with pytest.raises(TypeError, match="str"):
            as_expression("x")

    def test_operators_build_tree(self, x, y):
        """Test arithmetic on variables builds binary nodes."""
        expr = 2 * x - y / 4
        assert isinstance(expr, BinaryOp)
        assert expr.op == "-"
        assert expr.variables() == frozenset({x.key, y.key})

    def test_numpy_scalar_on_left(self, x, point):
        """Test numpy scalars defer to the expression operators."""
        expr = np.float64(3.0) * x
        assert isinstance(expr, BinaryOp)
        assert expr.evaluate(point) == 6.0

    def test_builtin_sum_starts_from_zero(self, registry, point):
        """Test sum() does not add a spurious constant node."""
        zs = [registry[ComponentKey(name="z", index=i)] for i in range(3)]
        expr = sum(zs)
        values = {z.key: float(i + 1) for i, z in enumerate(zs)}
        assert expr.evaluate(values) == 6.0

    def test_unknown_operator(self):
        """Test unknown node tags are rejected."""
        with pytest.raises(ValueError):
            BinaryOp("%", Constant(1), Constant(2))
        with pytest.raises(ValueError):
            UnaryOp("tan", Constant(1))


class TestEvaluation:
    """Tests for evaluate() against a value binding."""

    def test_arithmetic(self, x, y, point):
        """Test every binary operator."""
        assert (x + y).evaluate(point) == 5.0
        assert (x - y).evaluate(point) == -1.0
        assert (x * y).evaluate(point) == 6.0
        assert (y / x).evaluate(point) == 1.5
        assert (x**y).evaluate(point) == 8.0
        assert (-x).evaluate(point) == -2.0
        assert (+x).evaluate(point) == 2.0

    def test_functions(self, x, point):
        """Test elementary functions."""
        assert log(x).evaluate(point) == pytest.approx(math.log(2.0))
        assert exp(x).evaluate(point) == pytest.approx(math.exp(2.0))
        assert sqrt(x).evaluate(point) == pytest.approx(math.sqrt(2.0))
        assert sin(x).evaluate(point) == pytest.approx(math.sin(2.0))
        assert cos(x).evaluate(point) == pytest.approx(math.cos(2.0))

    def test_missing_value_raises(self, x, y):
        """Test evaluating without a value for a variable raises KeyError."""
        with pytest.raises(KeyError):
            (x + y).evaluate({x.key: 1.0})

    def test_evaluation_is_repeatable(self, x, y, point):
        """Test evaluation does not depend on previous calls."""
        expr = x * y - log(y)
        first = expr.evaluate(point)
        expr.evaluate({x.key: 10.0, y.key: 10.0})
        assert expr.evaluate(point) == first


class TestPartials:
    """Tests for partial derivatives."""

    def test_linear(self, x, y, point):
        """Test partials of a linear expression."""
        expr = 3 * x - 2 * y + 7
        assert expr.partial(x.key, point) == 3.0
        assert expr.partial(y.key, point) == -2.0

    def test_product_and_quotient(self, x, y, point):
        """Test product and quotient rules."""
        assert (x * y).partial(x.key, point) == 3.0
        assert (x / y).partial(y.key, point) == pytest.approx(-2.0 / 9.0)

    def test_power_rules(self, x, y, point):
        """Test constant exponent, constant base and general power."""
        assert (x**3).partial(x.key, point) == pytest.approx(12.0)
        assert (2**x).partial(x.key, point) == pytest.approx(4.0 * math.log(2.0))
        # d/dx x**y = y * x**(y-1)
        assert (x**y).partial(x.key, point) == pytest.approx(12.0)
        # d/dy x**y = x**y * log(x)
        assert (x**y).partial(y.key, point) == pytest.approx(8.0 * math.log(2.0))

    def test_chain_rule(self, x, point):
        """Test partials through elementary functions."""
        assert log(x * x).partial(x.key, point) == pytest.approx(1.0)
        assert exp(2 * x).partial(x.key, point) == pytest.approx(2.0 * math.exp(4.0))
        assert sqrt(x).partial(x.key, point) == pytest.approx(0.5 / math.sqrt(2.0))
        assert cos(x).partial(x.key, point) == pytest.approx(-math.sin(2.0))

    def test_unreferenced_variable_is_zero(self, x, y, point):
        """Test partials w.r.t. unreferenced variables are zero."""
        assert log(x).partial(y.key, point) == 0.0
        assert Constant(5).partial(x.key, point) == 0.0

    def test_gradient(self, x, y, point):
        """Test gradient covers exactly the referenced variables."""
        grad = (x * y + x).gradient(point)
        assert grad == {x.key: 4.0, y.key: 2.0}


class TestSums:
    """Tests for n-ary sums and helpers."""

    def test_quicksum(self, x, y, point):
        """Test quicksum over mixed terms."""
        expr = quicksum([x, y, 1.5])
        assert isinstance(expr, Sum)
        assert expr.evaluate(point) == 6.5
        assert expr.partial(x.key, point) == 1.0

    def test_sum_over(self, registry):
        """Test sum_over expands a rule over a product of domains."""
        zs = {i: registry[ComponentKey(name="z", index=i)] for i in range(3)}
        expr = sum_over(lambda i, j: (i + j) * zs[i], range(3), range(2))
        values = {z.key: 1.0 for z in zs.values()}
        # sum over i, j of (i + j) = 2 * (0 + 1 + 2) + 3 * (0 + 1)
        assert expr.evaluate(values) == 9.0
        assert expr.partial(zs[2].key, values) == 5.0

    def test_dot(self, registry):
        """Test dot drops zero coefficients."""
        zs = [registry[ComponentKey(name="z", index=i)] for i in range(3)]
        expr = dot([1.0, 0.0, -2.0], zs)
        assert len(expr.terms) == 2
        assert zs[1].key not in expr.variables()
        values = {z.key: 2.0 for z in zs}
        assert expr.evaluate(values) == -2.0

    def test_dot_length_mismatch(self, registry):
        """Test dot rejects mismatched lengths."""
        with pytest.raises(ValueError, match="coefficients"):
            dot([1.0, 2.0], [registry[ComponentKey(name="x")]])


class TestFunctionExpression:
    """Tests for black-box residual functions."""

    def test_finite_difference_partials(self, x, y, point):
        """Test central differences approximate the gradient."""
        expr = FunctionExpression(lambda a, b: a * a * b, [x, y])
        assert expr.evaluate(point) == 12.0
        assert expr.partial(x.key, point) == pytest.approx(12.0, rel=1e-6)
        assert expr.partial(y.key, point) == pytest.approx(4.0, rel=1e-6)

    def test_explicit_gradient(self, x, y, point):
        """Test an explicit gradient callable is used when given."""
        expr = FunctionExpression(
            lambda a, b: a + b, [x.key, y.key], gradient=lambda a, b: (10.0, 20.0)
        )
        assert expr.partial(y.key, point) == 20.0

    def test_combines_with_operators(self, x, y, point):
        """Test black-box nodes combine with the rest of the tree."""
        expr = 2 * FunctionExpression(math.hypot, [x, y]) - 1
        assert expr.evaluate(point) == pytest.approx(2 * math.hypot(2.0, 3.0) - 1)

"""Tests for the flattening bridge."""

import math

import numpy as np
import pytest
from scipy import sparse

from complementarity import Model, log
from complementarity.solver.flattening import FlatteningBridge


@pytest.fixture
def model():
    """Three pairs declared in a different order than registration.

    F_a = a * b - 1     ⟂  a in [0, inf)
    F_b = b + 2         ⟂  b in (-inf, inf)
    F_c = log(c) + a    ⟂  c in [1, 5]
    """
    model = Model(name="bridge")
    a = model.add_variable("a", start=1.0)
    b = model.add_variable("b", lower=None, upper=None, start=2.0)
    c = model.add_variable("c", lower=1.0, upper=5.0, start=3.0)
    fa = model.add_expression("F", a * b - 1, index="a")
    fb = model.add_expression("F", b + 2, index="b")
    fc = model.add_expression("F", log(c) + a, index="c")
    model.correspond([fc, fa], [c, a])
    model.correspond([fb], [b])
    return model


class TestVectors:
    """Tests for build_numeric_vectors."""

    def test_correspondence_order(self, model):
        """Test vectors follow declaration order of the pairs."""
        lower, upper, x0 = model.bridge.build_numeric_vectors()
        np.testing.assert_array_equal(lower, [1.0, 0.0, -math.inf])
        np.testing.assert_array_equal(upper, [5.0, math.inf, math.inf])
        np.testing.assert_array_equal(x0, [3.0, 1.0, 2.0])

    def test_cardinality(self, model):
        """Test every vector has one entry per pair."""
        n = len(model.correspondences)
        for vector in model.bridge.build_numeric_vectors():
            assert vector.shape == (n,)
            assert vector.dtype == float

    def test_fixed_variable_passes_through(self, model):
        """Test fixed variables keep lower == upper."""
        model.fix(model.variables.all_variables()[0], 0.5)
        lower, upper, x0 = model.bridge.build_numeric_vectors()
        assert lower[1] == upper[1] == x0[1] == 0.5


class TestEvaluator:
    """Tests for the F(x) callback."""

    def test_values_in_flat_order(self, model):
        """Test F returns residuals in pair order."""
        F = model.bridge.build_evaluator()
        # point is (c, a, b)
        np.testing.assert_allclose(F([math.e, 2.0, 3.0]), [1.0 + 2.0, 2.0 * 3.0 - 1.0, 5.0])

    def test_deterministic(self, model):
        """Test repeated calls at one point agree, whatever came in between."""
        F = model.bridge.build_evaluator()
        first = F(np.array([2.0, 1.0, 1.0]))
        F(np.array([4.0, 0.0, -7.0]))
        np.testing.assert_array_equal(F(np.array([2.0, 1.0, 1.0])), first)

    def test_does_not_touch_stored_values(self, model):
        """Test probing points leaves variable values alone."""
        F = model.bridge.build_evaluator()
        F([2.0, 1.0, 1.0])
        assert all(v.value is None for v in model.variables.all_variables())

    def test_wrong_length(self, model):
        """Test a point of the wrong size is rejected."""
        F = model.bridge.build_evaluator()
        with pytest.raises(ValueError, match="length 3"):
            F([1.0, 2.0])


class TestJacobian:
    """Tests for the J(x) callback."""

    def test_structure(self, model):
        """Test only referenced variables are structural nonzeros."""
        rows, cols = model.bridge.jacobian_structure()
        assert list(zip(rows.tolist(), cols.tolist())) == [(0, 0), (0, 1), (1, 1), (1, 2), (2, 2)]

    def test_dense(self, model):
        """Test dense Jacobian entries."""
        J = model.bridge.build_jacobian()
        expected = np.array(
            [
                [0.5, 1.0, 0.0],  # log(c) + a
                [0.0, 3.0, 1.0],  # a * b - 1
                [0.0, 0.0, 1.0],  # b + 2
            ]
        )
        np.testing.assert_allclose(J([2.0, 1.0, 3.0]), expected)

    def test_csr_matches_dense(self, model):
        """Test the sparse form holds the same entries."""
        point = [2.0, 1.0, 3.0]
        dense = model.bridge.build_jacobian("dense")(point)
        csr = model.bridge.build_jacobian("csr")(point)
        assert sparse.issparse(csr)
        assert csr.nnz == 5
        np.testing.assert_allclose(csr.toarray(), dense)

    def test_unknown_format(self, model):
        """Test unsupported formats raise."""
        with pytest.raises(ValueError, match="Unknown Jacobian format"):
            model.bridge.build_jacobian("coo")


class TestUnflatten:
    """Tests for writing results back."""

    def test_round_trip(self, model):
        """Test unflatten then flatten_values gives the input back."""
        result = np.array([1.5, 0.25, -2.0])
        model.bridge.unflatten(result)
        np.testing.assert_array_equal(model.bridge.flatten_values(), result)

    def test_writes_by_position(self, model):
        """Test result[i] lands in the variable paired at position i."""
        model.bridge.unflatten([1.5, 0.25, -2.0])
        values = {str(v): v.value for v in model.variables.all_variables()}
        assert values == {"a": 0.25, "b": -2.0, "c": 1.5}

    def test_length_mismatch(self, model):
        """Test wrong-length results are rejected without writing."""
        with pytest.raises(ValueError, match="3 pairs"):
            model.bridge.unflatten([1.0, 2.0])
        assert np.isnan(model.bridge.flatten_values()).all()

    def test_build_problem(self, model):
        """Test the assembled problem carries everything in flat order."""
        problem = model.bridge.build_problem()
        assert problem.n == 3
        assert [str(v) for v in problem.variables] == ["c", "a", "b"]
        assert [str(r) for r in problem.residuals] == ["F[c]", "F[a]", "F[b]"]
        np.testing.assert_array_equal(problem.x0, [3.0, 1.0, 2.0])

    def test_standalone_bridge(self, model):
        """Test the bridge works on bare components."""
        bridge = FlatteningBridge(model.variables, model.residuals, model.correspondences)
        assert repr(bridge) == "FlatteningBridge(n=3)"
        assert bridge.build_evaluator()([1.0, 0.0, 0.0]).shape == (3,)

"""Tests for the residual/variable correspondence table."""

import pytest

from complementarity.core import (
    CardinalityMismatchError,
    ComponentKey,
    CorrespondenceTable,
    DuplicateCorrespondenceError,
    IncompleteCorrespondenceError,
    ResidualManager,
    UnknownComponentError,
    VariableRegistry,
)


@pytest.fixture
def components():
    """Three variables and three residuals, unpaired."""
    registry = VariableRegistry()
    residuals = ResidualManager()
    xs = [registry.add("x", i) for i in range(1, 4)]
    fs = [residuals.add("F", x - i, index=i) for i, x in enumerate(xs, start=1)]
    return registry, residuals, xs, fs


class TestCorrespond:
    """Tests for declaring pairs."""

    def test_pairs_positionally(self, components):
        """Test pairs follow the order of both sequences."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        pairs = table.correspond(fs, xs)
        assert len(pairs) == 3
        assert table.variable_for(fs[1]) == xs[1].key
        assert table.residual_for(xs[2]) == fs[2].key
        assert str(pairs[0]) == "F[1] ⟂ x[1]"

    def test_declaration_order_defines_flat_order(self, components):
        """Test the table order is the order pairs were declared."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        table.correspond([fs[2]], [xs[0]])
        table.correspond([fs[0], fs[1]], [xs[2], xs[1]])
        assert table.variable_order() == [xs[0].key, xs[2].key, xs[1].key]
        assert table.residual_order() == [fs[2].key, fs[0].key, fs[1].key]

    def test_accepts_keys(self, components):
        """Test keys work as well as handles."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        table.correspond([fs[0].key], [xs[0].key])
        assert table.has_variable(xs[0])
        assert table.has_residual(fs[0].key)
        assert not table.has_variable(xs[1])

    def test_cardinality_mismatch(self, components):
        """Test sequences of different length are rejected."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        with pytest.raises(CardinalityMismatchError) as excinfo:
            table.correspond(fs[:2], xs)
        assert excinfo.value.n_residuals == 2
        assert excinfo.value.n_variables == 3
        assert len(table) == 0

    def test_variable_already_paired(self, components):
        """Test a variable cannot be paired twice."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        table.correspond([fs[0]], [xs[0]])
        with pytest.raises(DuplicateCorrespondenceError, match=r"x\[1\]") as excinfo:
            table.correspond([fs[1]], [xs[0]])
        assert excinfo.value.variables == (xs[0].key,)
        assert excinfo.value.residuals == ()

    def test_residual_already_paired(self, components):
        """Test a residual cannot be paired twice."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        table.correspond([fs[0]], [xs[0]])
        with pytest.raises(DuplicateCorrespondenceError) as excinfo:
            table.correspond([fs[0]], [xs[1]])
        assert excinfo.value.residuals == (fs[0].key,)

    def test_duplicate_within_batch(self, components):
        """Test repeats inside one call are caught."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        with pytest.raises(DuplicateCorrespondenceError) as excinfo:
            table.correspond(fs[:2], [xs[0], xs[0]])
        assert excinfo.value.variables == (xs[0].key,)

    def test_failed_batch_is_atomic(self, components):
        """Test a rejected batch leaves the table unchanged."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        table.correspond([fs[0]], [xs[0]])
        with pytest.raises(DuplicateCorrespondenceError):
            table.correspond([fs[1], fs[2]], [xs[1], xs[0]])
        assert len(table) == 1
        assert not table.has_variable(xs[1])
        assert not table.has_residual(fs[1])

    def test_unpaired_lookup(self, components):
        """Test lookups of unpaired components raise KeyError."""
        _, _, xs, fs = components
        table = CorrespondenceTable()
        with pytest.raises(KeyError):
            table.residual_for(xs[0])
        with pytest.raises(KeyError):
            table.variable_for(fs[0])


class TestValidateComplete:
    """Tests for the bijection check."""

    def test_complete(self, components):
        """Test a full pairing validates."""
        registry, residuals, xs, fs = components
        table = CorrespondenceTable()
        table.correspond(fs, xs)
        table.validate_complete(registry.keys(), residuals.keys())

    def test_names_unpaired_variable(self, components):
        """Test the exact unpaired variable is reported."""
        registry, residuals, xs, fs = components
        table = CorrespondenceTable()
        table.correspond(fs[:2], xs[:2])
        with pytest.raises(IncompleteCorrespondenceError, match=r"x\[3\]") as excinfo:
            table.validate_complete(registry.keys())
        assert excinfo.value.unpaired_variables == (ComponentKey(name="x", index=3),)

    def test_names_unpaired_residuals_in_order(self, components):
        """Test unpaired residuals are listed in registration order."""
        registry, residuals, xs, fs = components
        table = CorrespondenceTable()
        table.correspond([fs[1]], [xs[1]])
        with pytest.raises(IncompleteCorrespondenceError) as excinfo:
            table.validate_complete(registry.keys(), residuals.keys())
        assert excinfo.value.unpaired_variables == (xs[0].key, xs[2].key)
        assert excinfo.value.unpaired_residuals == (fs[0].key, fs[2].key)

    def test_pairs_outside_registry(self, components):
        """Test pairs naming unregistered components fail the check."""
        registry, residuals, xs, fs = components
        table = CorrespondenceTable()
        table.correspond(fs, xs)
        table.correspond([ComponentKey(name="G")], [ComponentKey(name="z")])
        assert len(table) == 4
        with pytest.raises(UnknownComponentError, match="z") as excinfo:
            table.validate_complete(registry.keys(), residuals.keys())
        assert excinfo.value.variables == (ComponentKey(name="z"),)
        assert excinfo.value.residuals == (ComponentKey(name="G"),)

    def test_residual_side_optional(self, components):
        """Test only variables are checked when residuals are omitted."""
        registry, _, xs, _ = components
        table = CorrespondenceTable()
        table.correspond([ComponentKey(name="G", index=i) for i in range(3)], xs)
        table.validate_complete(registry.keys())

"""Tests for design detection and group-size validation."""

import pandas as pd
import pytest

from autoanova.design import (
    cell_order,
    describe_design,
    group_labels,
    ordered_levels,
    validate_cell_labels,
    validate_group_sizes,
)
from autoanova.exceptions import ConfigurationError, InsufficientDataError, UnsupportedDesignError


def test_ordered_levels_appearance_and_category():
    """Plain columns keep appearance order; categoricals keep category order."""
    s = pd.Series(["z", "a", "z", "m"])
    assert ordered_levels(s) == ["z", "a", "m"]

    cat = pd.Series(pd.Categorical(["b", "a"], categories=["a", "b", "c"]))
    assert ordered_levels(cat) == ["a", "b"]


def test_group_labels_two_factors(two_by_two):
    """Two-way cells are labelled 'a:b'."""
    labels = group_labels(two_by_two, ["dose", "supp"])

    assert labels.iloc[0] == "low:OJ"
    assert cell_order(two_by_two, ["dose", "supp"]) == ["low:OJ", "low:VC", "high:OJ", "high:VC"]


def test_colon_levels_without_collision():
    """Clock-time levels are fine while every cell keeps its own label."""
    df = pd.DataFrame(
        {"time": ["10:00", "10:00", "14:30", "14:30"], "arm": ["a", "b", "a", "b"], "y": range(4)}
    )

    validate_cell_labels(df, ["time", "arm"])
    assert cell_order(df, ["time", "arm"]) == ["10:00:a", "10:00:b", "14:30:a", "14:30:b"]


def test_colliding_cell_labels_raise():
    """('x:y', 'z') and ('x', 'y:z') would both become 'x:y:z'."""
    df = pd.DataFrame(
        {
            "a": ["x:y", "x:y", "x", "x"],
            "b": ["z", "w", "y:z", "w"],
            "y": [1.0, 2.0, 3.0, 4.0],
        }
    )

    assert len(cell_order(df, ["a", "b"])) == 4
    with pytest.raises(ConfigurationError, match="x:y:z"):
        validate_cell_labels(df, ["a", "b"])


def test_describe_design(repeated_measures):
    """Blocked designs record the block and its count."""
    design = describe_design(repeated_measures, ["condition"], block="subject")

    assert design.n_factors == 1
    assert design.has_block
    assert design.n_blocks == 12
    assert design.levels["condition"] == ("pre", "mid", "post")
    assert "blocked by subject" in design.describe()


def test_describe_design_rejects_three_factors():
    df = pd.DataFrame({"a": ["x"], "b": ["y"], "c": ["z"]})
    with pytest.raises(UnsupportedDesignError):
        describe_design(df, ["a", "b", "c"])


def test_small_group_raises(plant_growth):
    """A group below the minimum size is an error by default."""
    df = plant_growth.iloc[:21]  # trt2 keeps a single observation

    with pytest.raises(InsufficientDataError, match="trt2"):
        validate_group_sizes(df, ["group"], min_group_size=2)


def test_small_group_dropped_on_request(plant_growth):
    """drop_small_groups removes undersized groups and reports them."""
    df = plant_growth.iloc[:21]

    out, dropped = validate_group_sizes(df, ["group"], min_group_size=2, drop_small_groups=True)

    assert dropped == ["trt2"]
    assert set(out["group"]) == {"ctrl", "trt1"}


def test_single_level_raises(plant_growth):
    """A factor needs at least two levels."""
    df = plant_growth[plant_growth["group"] == "ctrl"]
    with pytest.raises(InsufficientDataError, match="at least 2 levels"):
        validate_group_sizes(df, ["group"])


def test_empty_data_raises():
    with pytest.raises(InsufficientDataError):
        validate_group_sizes(pd.DataFrame({"y": [], "g": []}), ["g"])

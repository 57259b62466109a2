"""Tests for the assumption tester."""

import numpy as np
import pandas as pd
import pytest

from autoanova.assumptions import (
    aggregate_normality,
    cell_residuals,
    check_assumptions,
    homogeneity_tests,
)
from autoanova.config import SmallGroupPolicy
from autoanova.design import describe_design
from autoanova.normality import check_normality


def test_normal_equal_variance_passes(iris_like):
    """Normal groups with equal spread are parametric-appropriate."""
    design = describe_design(iris_like, ["species"])

    verdict, residuals = check_assumptions(iris_like, "sepal_length", design)

    assert verdict.all_groups_normal
    assert verdict.homogeneous
    assert verdict.parametric_appropriate
    assert len(verdict.cell_checks()) == 3
    assert verdict.residual_normality.scope == "residual"
    assert verdict.levene.test == "Levene (median)"
    assert len(residuals) == len(iris_like)


def test_unequal_variance_fails():
    """Very different spreads fail Levene's test."""
    rng = np.random.default_rng(11)
    df = pd.DataFrame(
        {
            "y": np.concatenate([rng.normal(0, 0.2, 40), rng.normal(0, 5.0, 40)]),
            "g": ["a"] * 40 + ["b"] * 40,
        }
    )
    verdict, _ = check_assumptions(df, "y", describe_design(df, ["g"]))

    assert not verdict.homogeneous
    assert not verdict.parametric_appropriate


def test_two_way_adds_factor_level_checks(two_by_two):
    """Two-way designs also check each factor's marginal groups."""
    design = describe_design(two_by_two, ["dose", "supp"])

    verdict, _ = check_assumptions(two_by_two, "len", design)

    scopes = [c.scope for c in verdict.normality]
    assert scopes.count("cell") == 4
    assert scopes.count("factor_level") == 4
    assert verdict.parametric_appropriate


def test_small_group_policy():
    """Untestable groups are excluded with a caveat, or counted as failures."""
    checks = [
        check_normality(np.array([1.0, 2.0, 2.5, 3.0, 4.5]), 0.05, "a"),
        check_normality(np.array([1.0, 2.0]), 0.05, "b"),
    ]

    ok, caveats = aggregate_normality(checks, SmallGroupPolicy.EXCLUDE)
    assert ok
    assert any("'b'" in c for c in caveats)

    ok, caveats = aggregate_normality(checks, SmallGroupPolicy.FAIL)
    assert not ok
    assert any("non-normal" in c for c in caveats)


def test_small_group_policy_in_verdict():
    """The policy flows through check_assumptions."""
    df = pd.DataFrame(
        {
            "y": [4.1, 5.0, 5.2, 4.7, 5.9, 4.4, 6.1, 6.3],
            "g": ["a", "a", "a", "a", "a", "a", "b", "b"],
        }
    )
    design = describe_design(df, ["g"])

    excluded, _ = check_assumptions(df, "y", design, small_group_policy=SmallGroupPolicy.EXCLUDE)
    failed, _ = check_assumptions(df, "y", design, small_group_policy=SmallGroupPolicy.FAIL)

    assert excluded.all_groups_normal
    assert excluded.caveats
    assert not failed.all_groups_normal
    assert not failed.parametric_appropriate


def test_homogeneity_tests_need_two_groups():
    assert homogeneity_tests([np.array([1.0, 2.0, 3.0])]) == (None, None)


def test_cell_residuals_sum_to_zero(plant_growth):
    """Residuals are centred within each group."""
    residuals = cell_residuals(plant_growth, "weight", plant_growth["group"])

    sums = residuals.groupby(plant_growth["group"]).sum()
    np.testing.assert_allclose(sums.to_numpy(), 0.0, atol=1e-12)
    assert residuals.name == "residual"

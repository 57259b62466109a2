"""End-to-end tests of the analysis pipeline."""

import numpy as np
import pandas as pd
import pytest

import autoanova.api as api_module
from autoanova import (
    AnalysisBranch,
    AnalysisConfig,
    ConfigurationError,
    InsufficientDataError,
    TransformationError,
    UnsupportedDesignError,
    run_analysis,
    run_analysis_from_config,
)


def test_iris_like_is_parametric(iris_like):
    """Normal, equal-variance groups take the one-way ANOVA path with a large effect."""
    result = run_analysis(iris_like, "sepal_length", "species")

    assert result.verdict.parametric_appropriate
    assert result.branch == AnalysisBranch.ONE_WAY_PARAMETRIC
    assert result.test.p_value < 0.001
    assert result.effect_size.name == "eta_squared"
    assert result.effect_size.value > 0.3
    assert result.post_hoc.method == "Tukey HSD"
    assert all(c.reject for c in result.post_hoc.comparisons)


def test_plant_growth_forced_nonparametric(plant_growth):
    """Forcing the rank-based path on three groups gives Kruskal-Wallis with Dunn post-hoc."""
    result = run_analysis(plant_growth, "weight", "group", force_nonparametric=True)

    assert result.branch == AnalysisBranch.ONE_WAY_KRUSKAL_WALLIS
    assert result.test.statistic == pytest.approx(7.988, abs=1e-2)
    assert result.test.p_value == pytest.approx(0.0184, abs=1e-3)
    assert (result.post_hoc is not None) == (result.test.p_value < 0.05)
    assert result.effect_size.value == pytest.approx((7.988 - 2) / 27, abs=1e-3)


def test_plant_growth_default_path(plant_growth):
    """PlantGrowth passes the assumptions and trt1 vs trt2 differs under Tukey."""
    result = run_analysis(plant_growth, "weight", "group")

    assert result.branch == AnalysisBranch.ONE_WAY_PARAMETRIC
    assert result.test.statistic == pytest.approx(4.846, abs=1e-3)
    pairs = {(c.group1, c.group2): c for c in result.post_hoc.comparisons}
    assert pairs[("trt1", "trt2")].reject
    assert pairs[("trt1", "trt2")].estimate == pytest.approx(0.865, abs=1e-3)


def test_reciprocal_with_zero_fails_before_assumptions(two_by_two, monkeypatch):
    """A transformation domain error stops the run before any assumption test."""
    calls = []
    monkeypatch.setattr(api_module, "check_assumptions", lambda *a, **k: calls.append(1))
    df = two_by_two.copy()
    df.loc[3, "len"] = 0.0

    with pytest.raises(TransformationError):
        run_analysis(df, "len", ["dose", "supp"], transformation="reciprocal")
    assert calls == []


def test_block_selects_friedman_even_when_assumptions_pass(repeated_measures):
    """Any block column routes to Friedman's test, even with a passing verdict."""
    result = run_analysis(repeated_measures, "score", "condition", block="subject")

    assert result.verdict.parametric_appropriate
    assert result.branch == AnalysisBranch.REPEATED_MEASURES_FRIEDMAN
    assert result.effect_size.name == "kendall_w"
    assert result.design.n_blocks == 12
    assert result.test.p_value < 0.001


def test_block_overrides_force_parametric(repeated_measures):
    """Forcing the parametric path does not bypass the block routing."""
    result = run_analysis(
        repeated_measures, "score", "condition", block="subject", force_parametric=True
    )

    assert result.branch == AnalysisBranch.REPEATED_MEASURES_FRIEDMAN
    assert result.test.test == "Friedman"


def test_duplicate_index_gives_same_analysis(plant_growth):
    """A frame built with pd.concat (repeated labels) is analyzed like its unique-index twin."""
    df = plant_growth.copy()
    df.loc[[0, 11, 22], "weight"] = [9.5, 1.0, 9.9]
    stacked = pd.concat(
        [df.iloc[0:10], df.iloc[10:20].reset_index(drop=True), df.iloc[20:30].reset_index(drop=True)]
    )

    unique = run_analysis(df, "weight", "group", remove_outliers=True)
    repeated = run_analysis(stacked, "weight", "group", remove_outliers=True)

    assert stacked.index.has_duplicates
    assert repeated.preprocessing.n_outliers_removed == unique.preprocessing.n_outliers_removed == 3
    assert repeated.preprocessing.n_output == unique.preprocessing.n_output == 27
    assert repeated.branch == unique.branch
    assert repeated.test.p_value == pytest.approx(unique.test.p_value)


def test_colliding_two_way_cells_rejected():
    """Levels whose joined labels collide fail instead of merging cells."""
    df = pd.DataFrame(
        {
            "a": ["x:y"] * 6 + ["x"] * 6,
            "b": (["z"] * 3 + ["w"] * 3) * 2,
            "y": np.arange(12, dtype=float),
        }
    )
    df.loc[6:8, "b"] = "y:z"

    with pytest.raises(ConfigurationError, match="x:y:z"):
        run_analysis(df, "y", ["a", "b"], force_nonparametric=True)


def test_two_way_parametric(two_by_two):
    result = run_analysis(two_by_two, "len", ["dose", "supp"])

    assert result.branch == AnalysisBranch.TWO_WAY_PARAMETRIC
    assert result.test.term("dose").significant
    assert result.groups.iloc[0] == "low:OJ"


def test_two_group_rank_path(plant_growth):
    """Two levels without parametric assumptions use Mann-Whitney."""
    df = plant_growth[plant_growth["group"] != "ctrl"]

    result = run_analysis(df, "weight", "group", force_nonparametric=True)

    assert result.branch == AnalysisBranch.TWO_GROUP_MANN_WHITNEY
    assert result.post_hoc is None
    assert result.effect_size.name == "rank_biserial"


def test_configuration_errors_before_preprocessing(plant_growth):
    with pytest.raises(ConfigurationError):
        run_analysis(plant_growth, "weight", "group", force_parametric=True, force_nonparametric=True)
    with pytest.raises(ConfigurationError, match="not found"):
        run_analysis(plant_growth, "weight", "treatment")
    with pytest.raises(UnsupportedDesignError):
        run_analysis(plant_growth, "weight", ["group", "a", "b"])


def test_friedman_needs_three_conditions(repeated_measures):
    df = repeated_measures[repeated_measures["condition"] != "mid"]

    with pytest.raises(UnsupportedDesignError):
        run_analysis(df, "score", "condition", block="subject")


def test_missing_values_and_small_groups(plant_growth):
    """Missing values are counted; undersized groups raise or are dropped with a diagnostic."""
    df = plant_growth.copy()
    df.loc[21:29, "weight"] = np.nan  # trt2 keeps one observation

    with pytest.raises(InsufficientDataError):
        run_analysis(df, "weight", "group")

    result = run_analysis(df, "weight", "group", drop_small_groups=True)
    assert result.preprocessing.n_missing_response == 9
    assert result.design.levels["group"] == ("ctrl", "trt1")
    assert any(d.stage == "design" for d in result.diagnostics)

    imputed = run_analysis(df, "weight", "group", missing_method="mean")
    assert imputed.preprocessing.n_imputed == 9
    assert imputed.preprocessing.n_output == 30


def test_input_not_modified(plant_growth):
    original = plant_growth.copy()

    run_analysis(plant_growth, "weight", "group", transformation="log", remove_outliers=True)

    pd.testing.assert_frame_equal(plant_growth, original)


def test_run_from_config(plant_growth):
    config = AnalysisConfig(response="weight", factors=["group"], alpha=0.01)

    result = run_analysis_from_config(plant_growth, config)

    assert result.config is config
    assert result.verdict.alpha == 0.01
    # F test p = 0.016 is not significant at 0.01
    assert not result.test.primary.significant
    assert result.post_hoc is None


def test_parametric_rate_under_the_null():
    """Normal, equal-variance data is routed to ANOVA at about the expected rate.

    With three groups each tested at alpha plus one Levene test, the policy
    accepts roughly (1 - alpha) ** 4 of such datasets.
    """
    n_runs = 200
    n_parametric = 0
    for seed in range(n_runs):
        rng = np.random.default_rng(seed)
        df = pd.DataFrame(
            {
                "y": rng.normal(loc=10.0, scale=2.0, size=60),
                "g": np.repeat(["a", "b", "c"], 20),
            }
        )
        result = run_analysis(df, "y", "g", post_hoc=False)
        n_parametric += result.branch == AnalysisBranch.ONE_WAY_PARAMETRIC

    assert n_parametric / n_runs >= 0.70

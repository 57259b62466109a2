"""Decision policy: map an assumption verdict and design shape to an analysis branch."""

from __future__ import annotations

import logging
from enum import Enum

from autoanova.design import DesignShape
from autoanova.exceptions import ConfigurationError, UnsupportedDesignError
from autoanova.results import AssumptionVerdict

logger = logging.getLogger(__name__)

MIN_REPEATED_CONDITIONS = 3


class AnalysisBranch(str, Enum):
    """The closed set of analyses the executor can run."""

    ONE_WAY_PARAMETRIC = "OneWayParametric"
    ONE_WAY_KRUSKAL_WALLIS = "OneWayKruskalWallis"
    TWO_GROUP_MANN_WHITNEY = "TwoGroupMannWhitney"
    TWO_WAY_PARAMETRIC = "TwoWayParametric"
    TWO_WAY_KRUSKAL_WALLIS = "TwoWayKruskalWallis"
    REPEATED_MEASURES_FRIEDMAN = "RepeatedMeasuresFriedman"

    @property
    def is_parametric(self) -> bool:
        return self in (AnalysisBranch.ONE_WAY_PARAMETRIC, AnalysisBranch.TWO_WAY_PARAMETRIC)

    @property
    def effect_size_name(self) -> str:
        return _EFFECT_SIZE_NAMES[self]


_EFFECT_SIZE_NAMES = {
    AnalysisBranch.ONE_WAY_PARAMETRIC: "eta_squared",
    AnalysisBranch.TWO_WAY_PARAMETRIC: "eta_squared",
    AnalysisBranch.ONE_WAY_KRUSKAL_WALLIS: "eta_squared_h",
    AnalysisBranch.TWO_WAY_KRUSKAL_WALLIS: "eta_squared_h",
    AnalysisBranch.TWO_GROUP_MANN_WHITNEY: "rank_biserial",
    AnalysisBranch.REPEATED_MEASURES_FRIEDMAN: "kendall_w",
}


def select_branch(
    verdict: AssumptionVerdict,
    design: DesignShape,
    force_parametric: bool = False,
    force_nonparametric: bool = False,
) -> AnalysisBranch:
    """Choose the analysis branch.

    Args:
        verdict: Assumption verdict of the cleaned dataset
        design: Design shape
        force_parametric: Override the verdict towards ANOVA
        force_nonparametric: Override the verdict towards rank-based tests

    Returns:
        The AnalysisBranch to execute

    Raises:
        ConfigurationError: Both force flags set
        UnsupportedDesignError: More than two factors, a block with two factors,
            or a block with fewer than three conditions

    Logic:
        - A block always selects Friedman (no parametric repeated-measures path)
        - Otherwise parametric iff forced, or not forced away and the verdict allows it
        - One factor, non-parametric, exactly 2 levels -> Mann-Whitney
    """
    if force_parametric and force_nonparametric:
        raise ConfigurationError("force_parametric and force_nonparametric are mutually exclusive")

    if design.n_factors > 2:
        raise UnsupportedDesignError(
            f"Only one-way and two-way designs are supported, got {design.n_factors} factors"
        )

    if design.has_block:
        if design.n_factors != 1:
            raise UnsupportedDesignError(
                "Repeated measures are supported for a single within-block factor only"
            )
        if design.n_levels() < MIN_REPEATED_CONDITIONS:
            raise UnsupportedDesignError(
                f"Friedman's test needs at least {MIN_REPEATED_CONDITIONS} conditions, "
                f"got {design.n_levels()}"
            )
        if force_parametric:
            logger.warning("force_parametric ignored: repeated-measures designs always use Friedman's test")
        return AnalysisBranch.REPEATED_MEASURES_FRIEDMAN

    if force_parametric:
        parametric = True
    elif force_nonparametric:
        parametric = False
    else:
        parametric = verdict.parametric_appropriate

    if design.n_factors == 2:
        return AnalysisBranch.TWO_WAY_PARAMETRIC if parametric else AnalysisBranch.TWO_WAY_KRUSKAL_WALLIS

    if parametric:
        return AnalysisBranch.ONE_WAY_PARAMETRIC
    if design.n_levels() == 2:
        return AnalysisBranch.TWO_GROUP_MANN_WHITNEY
    return AnalysisBranch.ONE_WAY_KRUSKAL_WALLIS


def describe_decision(
    branch: AnalysisBranch,
    verdict: AssumptionVerdict,
    design: DesignShape,
    force_parametric: bool = False,
    force_nonparametric: bool = False,
) -> str:
    """Human-readable reason for a branch choice."""
    if design.has_block:
        return f"block column '{design.block}' present; repeated measures use Friedman's test"
    if force_parametric:
        return "parametric analysis forced by configuration"
    if force_nonparametric:
        return "non-parametric analysis forced by configuration"
    if verdict.parametric_appropriate:
        return "all tested groups normal and variances homogeneous"
    reasons = []
    if not verdict.all_groups_normal:
        reasons.append("normality rejected in at least one group")
    if not verdict.homogeneous:
        reasons.append("variances not homogeneous (Levene)")
    return "; ".join(reasons)

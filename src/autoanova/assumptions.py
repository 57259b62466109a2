"""Assumption testing: per-group normality, residual normality and homogeneity of variance."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from autoanova.config import SmallGroupPolicy
from autoanova.design import DesignShape, cell_order, group_labels
from autoanova.normality import check_normality, check_normality_by_group
from autoanova.results import AssumptionVerdict, NormalityCheck, TestOutcome

logger = logging.getLogger(__name__)


def cell_residuals(df: pd.DataFrame, response: str, labels: pd.Series) -> pd.Series:
    """Response minus its group mean (the residuals of the full-factorial cell-means model)."""
    y = df[response].astype(float)
    return (y - y.groupby(labels).transform("mean")).rename("residual")


def homogeneity_tests(
    groups: List[np.ndarray], center: str = "median"
) -> Tuple[Optional[TestOutcome], Optional[TestOutcome]]:
    """Run Bartlett's and Levene's tests across groups.

    Args:
        groups: List of group arrays (at least two)
        center: Center for Levene's test (median gives the Brown-Forsythe variant)

    Returns:
        Tuple of (bartlett, levene); either is None if fewer than two groups
    """
    if len(groups) < 2:
        return None, None
    b_stat, b_p = stats.bartlett(*groups)
    l_stat, l_p = stats.levene(*groups, center=center)
    return (
        TestOutcome("Bartlett", float(b_stat), float(b_p)),
        TestOutcome(f"Levene ({center})", float(l_stat), float(l_p)),
    )


def aggregate_normality(
    checks: List[NormalityCheck], policy: SmallGroupPolicy
) -> Tuple[bool, List[str]]:
    """Combine cell checks into one flag.

    Returns:
        Tuple of (all_groups_normal, caveats)

    Logic:
        - Tested groups must all be normal
        - Untested groups are excluded with a caveat (``exclude``) or count
          as non-normal (``fail``)
    """
    caveats: List[str] = []
    all_normal = True
    for check in checks:
        if check.is_normal is None:
            if policy == SmallGroupPolicy.FAIL:
                all_normal = False
                caveats.append(f"Group '{check.group}' counted as non-normal: {check.note}")
            else:
                caveats.append(f"Group '{check.group}' excluded from the normality verdict: {check.note}")
        elif not check.is_normal:
            all_normal = False

    if checks and all(c.is_normal is None for c in checks) and policy == SmallGroupPolicy.EXCLUDE:
        caveats.append("No group could be tested for normality; verdict rests on homogeneity alone")
    return all_normal, caveats


def check_assumptions(
    df: pd.DataFrame,
    response: str,
    design: DesignShape,
    alpha: float = 0.05,
    small_group_policy: SmallGroupPolicy = SmallGroupPolicy.EXCLUDE,
    levene_center: str = "median",
) -> Tuple[AssumptionVerdict, pd.Series]:
    """Test the assumptions of parametric ANOVA on a cleaned dataset.

    Args:
        df: Cleaned dataframe
        response: Response column name
        design: Design shape (factors and levels)
        alpha: Significance level
        small_group_policy: Treatment of groups that cannot be tested
        levene_center: Center for Levene's test

    Returns:
        Tuple of (AssumptionVerdict, residuals)
    """
    factors = list(design.factors)
    labels = group_labels(df, factors)
    cells = cell_order(df, factors)
    values = df[response].astype(float)

    checks = check_normality_by_group(values, labels, cells, alpha, scope="cell")
    if len(factors) > 1:
        for factor in factors:
            checks.extend(
                check_normality_by_group(
                    values,
                    df[factor].astype(str),
                    list(design.levels[factor]),
                    alpha,
                    scope="factor_level",
                    factor=factor,
                )
            )

    residuals = cell_residuals(df, response, labels)
    residual_check = check_normality(residuals.to_numpy(), alpha, "residuals", scope="residual")

    cell_checks = [c for c in checks if c.scope == "cell"]
    all_normal, caveats = aggregate_normality(cell_checks, small_group_policy)

    groups = [values[labels == g].to_numpy() for g in cells]
    bartlett, levene = homogeneity_tests(groups, center=levene_center)
    homogeneous = levene is not None and bool(levene.p_value > alpha)
    if levene is not None and not np.isfinite(levene.p_value):
        caveats.append("Levene's test is undefined (zero spread in every group); homogeneity not established")

    verdict = AssumptionVerdict(
        alpha=alpha,
        normality=tuple(checks),
        residual_normality=residual_check,
        bartlett=bartlett,
        levene=levene,
        all_groups_normal=all_normal,
        homogeneous=homogeneous,
        parametric_appropriate=all_normal and homogeneous,
        caveats=tuple(caveats),
    )

    n_failed = sum(1 for c in cell_checks if c.is_normal is False)
    logger.info(
        f"Assumptions: {len(cell_checks) - n_failed}/{len(cell_checks)} groups normal or untested, "
        f"homogeneous={homogeneous}, parametric_appropriate={verdict.parametric_appropriate}"
    )
    return verdict, residuals

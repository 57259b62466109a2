"""Normality testing with Shapiro-Wilk, Anderson-Darling and Lilliefors."""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import lilliefors, normal_ad

from autoanova.results import NormalityCheck, TestOutcome

SHAPIRO_MAX_N = 5000
MIN_TESTABLE_N = 3
LILLIEFORS_MIN_N = 4


def normality_test(x: np.ndarray) -> Tuple[Optional[TestOutcome], Optional[TestOutcome], str]:
    """Run the primary and secondary normality tests on one sample.

    Args:
        x: Array of values (non-finite values are dropped)

    Returns:
        Tuple of (primary, lilliefors, note)

    Notes:
        - Primary is Shapiro-Wilk for n <= 5000, Anderson-Darling above
        - Lilliefors is computed whenever n >= 4
        - Returns (None, None, reason) if n < 3 or the values are constant
    """
    x = np.asarray(x, dtype=float)
    x = x[np.isfinite(x)]
    n = len(x)

    if n < MIN_TESTABLE_N:
        return None, None, f"n={n} is below {MIN_TESTABLE_N}; normality not testable"

    if np.isclose(np.ptp(x), 0.0):
        return None, None, "constant values; normality not testable"

    if n <= SHAPIRO_MAX_N:
        W, p = stats.shapiro(x)
        primary = TestOutcome("Shapiro-Wilk", float(W), float(p))
    else:
        A2, p = normal_ad(x)
        primary = TestOutcome("Anderson-Darling", float(A2), float(p))

    secondary = None
    if n >= LILLIEFORS_MIN_N:
        D, p_lf = lilliefors(x, dist="norm", pvalmethod="table")
        secondary = TestOutcome("Lilliefors", float(D), float(p_lf))

    return primary, secondary, ""


def check_normality(
    x: np.ndarray,
    alpha: float,
    group: str,
    scope: str = "cell",
    factor: Optional[str] = None,
) -> NormalityCheck:
    """Normality check for one group.

    A group is normal iff the primary p-value is greater than ``alpha``.
    Untestable groups get ``is_normal=None``.
    """
    x = np.asarray(x, dtype=float)
    primary, secondary, note = normality_test(x)
    is_normal = None if primary is None else bool(primary.p_value > alpha)
    return NormalityCheck(
        scope=scope,
        factor=factor,
        group=str(group),
        n=int(np.isfinite(x).sum()),
        primary=primary,
        lilliefors=secondary,
        is_normal=is_normal,
        note=note,
    )


def check_normality_by_group(
    values: pd.Series,
    labels: pd.Series,
    order: List[str],
    alpha: float,
    scope: str = "cell",
    factor: Optional[str] = None,
) -> List[NormalityCheck]:
    """Test normality within each group.

    Args:
        values: Response values
        labels: Group label per value
        order: Groups to test, in reporting order
        alpha: Significance level
        scope: Recorded scope (cell or factor_level)
        factor: Factor name for factor_level checks

    Returns:
        List of NormalityCheck, one per group in ``order``
    """
    return [
        check_normality(values[labels == g].to_numpy(dtype=float), alpha, g, scope, factor)
        for g in order
    ]

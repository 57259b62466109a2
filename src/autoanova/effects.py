"""Closed-form effect sizes for each analysis branch."""

from __future__ import annotations

import numpy as np


def eta_squared(ss_effect: float, ss_total: float) -> float:
    """Calculate eta-squared for an ANOVA term.

    Args:
        ss_effect: Sum of squares of the term
        ss_total: Corrected total sum of squares of the response

    Returns:
        SS_effect / SS_total, or NaN if SS_total is not positive
    """
    if not np.isfinite(ss_total) or ss_total <= 0:
        return np.nan
    return float(ss_effect / ss_total)


def eta_squared_h(h_statistic: float, k: int, n: int) -> float:
    """Calculate the eta-squared approximation for Kruskal-Wallis.

    Args:
        h_statistic: Kruskal-Wallis H
        k: Number of groups
        n: Total number of observations

    Returns:
        (H - k + 1) / (n - k)

    Notes:
        Can be slightly negative when H < k - 1; the value is not clipped.
        Returns NaN if n <= k.
    """
    if n <= k:
        return np.nan
    return float((h_statistic - k + 1) / (n - k))


def rank_biserial(u_statistic: float, n1: int, n2: int) -> float:
    """Calculate rank-biserial correlation from Mann-Whitney U.

    Args:
        u_statistic: U statistic of the first group
        n1: First group size
        n2: Second group size

    Returns:
        Rank-biserial correlation in range [-1, 1]

    Notes:
        Computed as: r = 2*U1 / (n1 * n2) - 1, so r > 0 when the first group
        tends to have larger values. Returns NaN if either group is empty.
    """
    if n1 == 0 or n2 == 0:
        return np.nan
    return float(2.0 * u_statistic / (n1 * n2) - 1.0)


def kendall_w(chi_square: float, n_blocks: int, k: int) -> float:
    """Calculate Kendall's W from the Friedman statistic.

    Args:
        chi_square: Friedman chi-square statistic
        n_blocks: Number of complete blocks
        k: Number of conditions

    Returns:
        W = chi2 / (n_blocks * (k - 1)) in range [0, 1]
    """
    if n_blocks <= 0 or k <= 1:
        return np.nan
    return float(chi_square / (n_blocks * (k - 1)))

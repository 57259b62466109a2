"""Statistical tests (parametric and nonparametric) and their post-hoc procedures.

Thin wrappers around scipy, statsmodels and scikit-posthocs that return
structured values. Fit failures of omnibus tests raise TestExecutionError;
post-hoc helpers let library errors propagate so the executor can record them.
"""

from __future__ import annotations

from itertools import combinations
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
import scikit_posthocs as sp
from scipy import stats
from statsmodels.formula.api import ols
from statsmodels.stats.anova import anova_lm
from statsmodels.stats.multicomp import pairwise_tukeyhsd
from statsmodels.stats.multitest import multipletests

from autoanova.exceptions import TestExecutionError
from autoanova.results import PairwiseComparison

_MODEL_FACTORS = ("A", "B")
_ZERO_TOL = 1e-12


def model_frame(df: pd.DataFrame, response: str, factors: List[str]) -> pd.DataFrame:
    """Rename analysis columns to formula-safe names (``y``, ``A``, ``B``)."""
    frame = pd.DataFrame({"y": df[response].astype(float).to_numpy()}, index=df.index)
    for alias, factor in zip(_MODEL_FACTORS, factors):
        frame[alias] = df[factor].astype(str).to_numpy()
    return frame


def anova(df: pd.DataFrame, response: str, factors: List[str]) -> Tuple[pd.DataFrame, float]:
    """Fit a one-way or two-way ANOVA.

    Args:
        df: Cleaned dataframe
        response: Response column name
        factors: One or two factor columns

    Returns:
        Tuple of (table, ss_total). ``table`` is indexed by term name (factor
        names, ``"A:B"`` style for the interaction) with columns sum_sq, df,
        F, p_value; ``ss_total`` is the corrected total sum of squares.

    Notes:
        - One-way: ``y ~ C(A)`` with type-II sums of squares
        - Two-way: ``y ~ C(A, Sum) * C(B, Sum)`` with type-III sums of squares
          (sum-to-zero contrasts make type III valid for unbalanced designs)

    Raises:
        TestExecutionError: Rank-deficient design (e.g. an empty cell), zero
            within-group variance, or a model fitting error
    """
    frame = model_frame(df, response, factors)
    if len(factors) == 1:
        formula, typ = "y ~ C(A)", 2
        names = {"C(A)": factors[0]}
    else:
        formula, typ = "y ~ C(A, Sum) * C(B, Sum)", 3
        names = {
            "C(A, Sum)": factors[0],
            "C(B, Sum)": factors[1],
            "C(A, Sum):C(B, Sum)": f"{factors[0]}:{factors[1]}",
        }

    try:
        model = ols(formula, data=frame).fit()
    except Exception as exc:
        raise TestExecutionError(f"ANOVA model could not be fit: {exc}") from exc

    exog = model.model.exog
    if np.linalg.matrix_rank(exog) < exog.shape[1]:
        raise TestExecutionError(
            "ANOVA design matrix is rank deficient (empty factor-level combination?)"
        )
    if model.df_resid <= 0:
        raise TestExecutionError("ANOVA has no residual degrees of freedom")
    if model.ssr <= _ZERO_TOL * max(1.0, model.centered_tss):
        raise TestExecutionError("Zero within-group variance; F statistic is undefined")

    try:
        table = anova_lm(model, typ=typ)
    except (ValueError, np.linalg.LinAlgError) as exc:
        raise TestExecutionError(f"ANOVA table could not be computed: {exc}") from exc

    table = table.rename(columns={"PR(>F)": "p_value"})
    resid = table.loc["Residual"]
    table = table.loc[list(names)].rename(index=names)
    table["df_resid"] = float(resid["df"])
    return table, float(model.centered_tss)


def tukey_posthoc(
    values: pd.Series,
    labels: pd.Series,
    order: List[str],
    term: str,
    alpha: float = 0.05,
) -> List[PairwiseComparison]:
    """Perform Tukey HSD post-hoc test.

    Args:
        values: Response values
        labels: Group label per value
        order: Group order for reporting pairs
        term: Model term the comparisons belong to
        alpha: Family-wise significance level

    Returns:
        List of PairwiseComparison in ``order`` pair order; ``estimate`` is
        mean(group2) - mean(group1)
    """
    tuk = pairwise_tukeyhsd(
        endog=values.astype(float).to_numpy(), groups=labels.astype(str).to_numpy(), alpha=alpha
    )
    groups = [str(g) for g in tuk.groupsunique]
    lookup: Dict[Tuple[str, str], int] = {
        (groups[i], groups[j]): k for k, (i, j) in enumerate(combinations(range(len(groups)), 2))
    }

    rows = []
    for g1, g2 in combinations(order, 2):
        if (g1, g2) in lookup:
            k, sign = lookup[(g1, g2)], 1.0
        else:
            k, sign = lookup[(g2, g1)], -1.0
        low, high = (float(v) for v in tuk.confint[k])
        rows.append(
            PairwiseComparison(
                term=term,
                group1=g1,
                group2=g2,
                p_adj=float(tuk.pvalues[k]),
                reject=bool(tuk.reject[k]),
                estimate=sign * float(tuk.meandiffs[k]),
                ci_low=low if sign > 0 else -high,
                ci_high=high if sign > 0 else -low,
            )
        )
    return rows


def kruskal_wallis(groups: List[np.ndarray]) -> Tuple[float, float]:
    """Perform Kruskal-Wallis H test.

    Returns:
        Tuple of (H statistic, p_value)

    Raises:
        TestExecutionError: If scipy rejects the input (e.g. all values identical)
    """
    try:
        H_stat, p_val = stats.kruskal(*groups)
    except ValueError as exc:
        raise TestExecutionError(f"Kruskal-Wallis test failed: {exc}") from exc
    if not np.isfinite(H_stat):
        raise TestExecutionError("Kruskal-Wallis statistic is undefined (all values tied)")
    return float(H_stat), float(p_val)


def dunn_posthoc(
    values: pd.Series,
    labels: pd.Series,
    order: List[str],
    term: str,
    p_adjust: str = "holm",
    alpha: float = 0.05,
) -> List[PairwiseComparison]:
    """Perform Dunn's post-hoc test with p-value adjustment.

    Args:
        values: Response values
        labels: Group label per value
        order: Group order for reporting pairs
        term: Term the comparisons belong to
        p_adjust: P-value adjustment method
        alpha: Significance level (for reject flag)

    Returns:
        List of PairwiseComparison, one per unordered pair
    """
    frame = pd.DataFrame(
        {"value": values.astype(float).to_numpy(), "group": labels.astype(str).to_numpy()}
    )
    ph = sp.posthoc_dunn(frame, val_col="value", group_col="group", p_adjust=p_adjust)
    ph.index = ph.index.astype(str)
    ph.columns = ph.columns.astype(str)

    return [
        PairwiseComparison(
            term=term,
            group1=g1,
            group2=g2,
            p_adj=float(ph.loc[g1, g2]),
            reject=bool(ph.loc[g1, g2] < alpha),
        )
        for g1, g2 in combinations(order, 2)
    ]


def mann_whitney(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    """Two-sided Mann-Whitney U test.

    Returns:
        Tuple of (U statistic of ``x``, p_value)
    """
    try:
        U, p_val = stats.mannwhitneyu(x, y, alternative="two-sided")
    except ValueError as exc:
        raise TestExecutionError(f"Mann-Whitney U test failed: {exc}") from exc
    return float(U), float(p_val)


def friedman(matrix: pd.DataFrame) -> Tuple[float, float]:
    """Friedman chi-square test on a complete block x condition matrix.

    Returns:
        Tuple of (chi-square statistic, p_value)
    """
    try:
        chi2, p_val = stats.friedmanchisquare(*[matrix[c].to_numpy(dtype=float) for c in matrix.columns])
    except ValueError as exc:
        raise TestExecutionError(f"Friedman test failed: {exc}") from exc
    if not np.isfinite(chi2):
        raise TestExecutionError("Friedman statistic is undefined (all ranks tied within every block)")
    return float(chi2), float(p_val)


def adjust_pvalues(pvals: np.ndarray, method: str) -> np.ndarray:
    """Adjust p-values with statsmodels multipletests."""
    p_adj = np.full_like(pvals, np.nan, dtype=float)
    mask = np.isfinite(pvals)
    if mask.any():
        _, adj, _, _ = multipletests(pvals[mask], method=method)
        p_adj[mask] = adj
    return p_adj


def pairwise_wilcoxon(
    matrix: pd.DataFrame,
    term: str,
    p_adjust: str = "holm",
    alpha: float = 0.05,
) -> List[PairwiseComparison]:
    """Paired Wilcoxon signed-rank tests across all condition pairs.

    Args:
        matrix: Complete block x condition matrix
        term: Term the comparisons belong to
        p_adjust: P-value adjustment method
        alpha: Significance level (for reject flag)

    Returns:
        List of PairwiseComparison; ``estimate`` is the median paired difference
        (group2 - group1)

    Notes:
        A pair whose differences are all zero gets p = 1 without calling scipy.
    """
    pairs = list(combinations([str(c) for c in matrix.columns], 2))
    matrix = matrix.rename(columns=str)
    raw = []
    medians = []
    for g1, g2 in pairs:
        diff = matrix[g2].to_numpy(dtype=float) - matrix[g1].to_numpy(dtype=float)
        medians.append(float(np.median(diff)))
        if np.allclose(diff, 0.0):
            raw.append(1.0)
            continue
        _, p_val = stats.wilcoxon(matrix[g1].to_numpy(dtype=float), matrix[g2].to_numpy(dtype=float))
        raw.append(float(p_val))

    adjusted = adjust_pvalues(np.asarray(raw, dtype=float), p_adjust)
    return [
        PairwiseComparison(
            term=term,
            group1=g1,
            group2=g2,
            p_adj=float(p),
            reject=bool(p < alpha),
            estimate=med,
        )
        for (g1, g2), p, med in zip(pairs, adjusted, medians)
    ]

"""Test executor: run the primary test and matched post-hoc for an analysis branch."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import pandas as pd

from autoanova.design import DesignShape, cell_order, group_labels
from autoanova.effects import eta_squared, eta_squared_h, kendall_w, rank_biserial
from autoanova.exceptions import ConfigurationError, InsufficientDataError
from autoanova.policy import AnalysisBranch
from autoanova.results import (
    Diagnostic,
    EffectSize,
    PairwiseComparison,
    PostHocResult,
    TermResult,
    TestResult,
)
from autoanova.tests import (
    anova,
    dunn_posthoc,
    friedman,
    kruskal_wallis,
    mann_whitney,
    pairwise_wilcoxon,
    tukey_posthoc,
)

logger = logging.getLogger(__name__)


def execute(
    df: pd.DataFrame,
    response: str,
    design: DesignShape,
    branch: AnalysisBranch,
    alpha: float = 0.05,
    post_hoc: bool = True,
    p_adjust: str = "holm",
) -> Tuple[TestResult, List[Diagnostic]]:
    """Run the analysis selected for ``branch``.

    Args:
        df: Cleaned dataframe
        response: Response column name
        design: Design shape
        branch: Branch chosen by the decision policy
        alpha: Significance level for the omnibus test and post-hoc flags
        post_hoc: Run post-hoc comparisons after a significant omnibus test
        p_adjust: Adjustment for Dunn and Wilcoxon post-hoc tests

    Returns:
        Tuple of (TestResult, diagnostics)

    Raises:
        TestExecutionError: The primary test cannot be fit
        InsufficientDataError: Fewer than two complete blocks for Friedman
        ConfigurationError: Branch does not match the design shape
    """
    diagnostics: List[Diagnostic] = []
    logger.info(f"Running {branch.value} on {design.describe()}")

    match branch:
        case AnalysisBranch.ONE_WAY_PARAMETRIC:
            _require_shape(design, branch, n_factors=1)
            result = _run_anova(df, response, design, branch, alpha, post_hoc, diagnostics)
        case AnalysisBranch.TWO_WAY_PARAMETRIC:
            _require_shape(design, branch, n_factors=2)
            result = _run_anova(df, response, design, branch, alpha, post_hoc, diagnostics)
        case AnalysisBranch.ONE_WAY_KRUSKAL_WALLIS:
            _require_shape(design, branch, n_factors=1)
            result = _run_kruskal(df, response, design, branch, alpha, post_hoc, p_adjust, diagnostics)
        case AnalysisBranch.TWO_WAY_KRUSKAL_WALLIS:
            _require_shape(design, branch, n_factors=2)
            result = _run_kruskal(df, response, design, branch, alpha, post_hoc, p_adjust, diagnostics)
        case AnalysisBranch.TWO_GROUP_MANN_WHITNEY:
            _require_shape(design, branch, n_factors=1)
            result = _run_mann_whitney(df, response, design, branch, alpha)
        case AnalysisBranch.REPEATED_MEASURES_FRIEDMAN:
            _require_shape(design, branch, n_factors=1, block=True)
            result = _run_friedman(df, response, design, branch, alpha, post_hoc, p_adjust, diagnostics)
        case _:
            raise ConfigurationError(f"Unknown analysis branch: {branch!r}")

    logger.info(
        f"{result.test}: statistic={result.statistic:.4g}, p={result.p_value:.4g}, "
        f"{result.effect_size.name}={result.effect_size.value:.4g}"
    )
    return result, diagnostics


def _require_shape(
    design: DesignShape, branch: AnalysisBranch, n_factors: int, block: bool = False
) -> None:
    if design.n_factors != n_factors or design.has_block != block:
        raise ConfigurationError(f"{branch.value} does not match the design: {design.describe()}")
    if branch == AnalysisBranch.TWO_GROUP_MANN_WHITNEY and design.n_levels() != 2:
        raise ConfigurationError(
            f"{branch.value} needs exactly 2 levels, got {design.n_levels()}"
        )


def _guarded_post_hoc(
    name: str,
    run: Callable[[], List[PairwiseComparison]],
    diagnostics: List[Diagnostic],
) -> Optional[List[PairwiseComparison]]:
    """Run a post-hoc procedure; a failure keeps the main result and records a diagnostic."""
    try:
        return run()
    except Exception as exc:
        message = f"{name} post-hoc failed; main test result kept: {exc}"
        logger.warning(message)
        diagnostics.append(Diagnostic(stage="post_hoc", level="error", message=message))
        return None


def _run_anova(
    df: pd.DataFrame,
    response: str,
    design: DesignShape,
    branch: AnalysisBranch,
    alpha: float,
    post_hoc: bool,
    diagnostics: List[Diagnostic],
) -> TestResult:
    factors = list(design.factors)
    table, ss_total = anova(df, response, factors)

    terms = tuple(
        TermResult(
            term=str(name),
            statistic=float(row["F"]),
            p_value=float(row["p_value"]),
            df=float(row["df"]),
            df_resid=float(row["df_resid"]),
            effect_size=eta_squared(float(row["sum_sq"]), ss_total),
            significant=bool(row["p_value"] < alpha),
        )
        for name, row in table.iterrows()
    )

    posthoc_result = None
    if post_hoc and any(t.significant for t in terms):

        def run_tukey() -> List[PairwiseComparison]:
            rows: List[PairwiseComparison] = []
            for term in terms:
                if not term.significant:
                    continue
                if term.term in design.factors:
                    labels = df[term.term].astype(str)
                    order = list(design.levels[term.term])
                else:
                    labels = group_labels(df, factors)
                    order = cell_order(df, factors)
                rows.extend(tukey_posthoc(df[response], labels, order, term.term, alpha))
            return rows

        comparisons = _guarded_post_hoc("Tukey HSD", run_tukey, diagnostics)
        if comparisons is not None:
            posthoc_result = PostHocResult("Tukey HSD", None, tuple(comparisons))

    primary = terms[0]
    return TestResult(
        branch=branch,
        test="ANOVA (type II)" if len(factors) == 1 else "ANOVA (type III)",
        terms=terms,
        effect_size=EffectSize(branch.effect_size_name, primary.term, primary.effect_size),
        post_hoc=posthoc_result,
    )


def _run_kruskal(
    df: pd.DataFrame,
    response: str,
    design: DesignShape,
    branch: AnalysisBranch,
    alpha: float,
    post_hoc: bool,
    p_adjust: str,
    diagnostics: List[Diagnostic],
) -> TestResult:
    factors = list(design.factors)
    term_name = ":".join(factors)
    labels = group_labels(df, factors)
    cells = cell_order(df, factors)
    values = df[response].astype(float)
    groups = [values[labels == g].to_numpy() for g in cells]

    H, p = kruskal_wallis(groups)
    k, n = len(cells), len(values)
    term = TermResult(
        term=term_name,
        statistic=H,
        p_value=p,
        df=float(k - 1),
        effect_size=eta_squared_h(H, k, n),
        significant=bool(p < alpha),
    )

    posthoc_result = None
    if post_hoc and term.significant:
        comparisons = _guarded_post_hoc(
            "Dunn",
            lambda: dunn_posthoc(values, labels, cells, term_name, p_adjust, alpha),
            diagnostics,
        )
        if comparisons is not None:
            posthoc_result = PostHocResult("Dunn", p_adjust, tuple(comparisons))

    return TestResult(
        branch=branch,
        test="Kruskal-Wallis",
        terms=(term,),
        effect_size=EffectSize(branch.effect_size_name, term_name, term.effect_size),
        post_hoc=posthoc_result,
    )


def _run_mann_whitney(
    df: pd.DataFrame,
    response: str,
    design: DesignShape,
    branch: AnalysisBranch,
    alpha: float,
) -> TestResult:
    factor = design.factors[0]
    first, second = design.levels[factor]
    labels = df[factor].astype(str)
    x = df.loc[labels == first, response].to_numpy(dtype=float)
    y = df.loc[labels == second, response].to_numpy(dtype=float)

    U, p = mann_whitney(x, y)
    term = TermResult(
        term=factor,
        statistic=U,
        p_value=p,
        effect_size=rank_biserial(U, len(x), len(y)),
        significant=bool(p < alpha),
    )
    # two groups: the omnibus test is the pairwise comparison
    return TestResult(
        branch=branch,
        test="Mann-Whitney U",
        terms=(term,),
        effect_size=EffectSize(branch.effect_size_name, factor, term.effect_size),
        post_hoc=None,
    )


def block_matrix(
    df: pd.DataFrame,
    response: str,
    factor: str,
    block: str,
    levels: List[str],
) -> Tuple[pd.DataFrame, int, int]:
    """Pivot to a complete block x condition matrix.

    Returns:
        Tuple of (matrix, n_replicated_cells, n_incomplete_blocks). Replicated
        block/condition cells are averaged; incomplete blocks are dropped.
    """
    frame = pd.DataFrame(
        {
            "block": df[block].to_numpy(),
            "condition": df[factor].astype(str).to_numpy(),
            "y": df[response].to_numpy(dtype=float),
        }
    )
    n_replicated = int((frame.groupby(["block", "condition"]).size() > 1).sum())
    matrix = frame.pivot_table(index="block", columns="condition", values="y", aggfunc="mean")
    matrix = matrix.reindex(columns=levels)
    complete = matrix.dropna()
    return complete, n_replicated, len(matrix) - len(complete)


def _run_friedman(
    df: pd.DataFrame,
    response: str,
    design: DesignShape,
    branch: AnalysisBranch,
    alpha: float,
    post_hoc: bool,
    p_adjust: str,
    diagnostics: List[Diagnostic],
) -> TestResult:
    factor = design.factors[0]
    levels = list(design.levels[factor])
    matrix, n_replicated, n_incomplete = block_matrix(df, response, factor, design.block, levels)

    if n_replicated:
        diagnostics.append(
            Diagnostic(
                stage="execute",
                level="info",
                message=f"{n_replicated} block/condition cell(s) had replicates and were averaged",
            )
        )
    if n_incomplete:
        message = f"Dropped {n_incomplete} incomplete block(s) lacking at least one condition"
        logger.warning(message)
        diagnostics.append(Diagnostic(stage="execute", level="warning", message=message))
    if len(matrix) < 2:
        raise InsufficientDataError(
            f"Friedman's test needs at least 2 complete blocks, found {len(matrix)}"
        )

    chi2, p = friedman(matrix)
    k, n_blocks = len(levels), len(matrix)
    term = TermResult(
        term=factor,
        statistic=chi2,
        p_value=p,
        df=float(k - 1),
        effect_size=kendall_w(chi2, n_blocks, k),
        significant=bool(p < alpha),
    )

    posthoc_result = None
    if post_hoc and term.significant:
        comparisons = _guarded_post_hoc(
            "Wilcoxon signed-rank",
            lambda: pairwise_wilcoxon(matrix, factor, p_adjust, alpha),
            diagnostics,
        )
        if comparisons is not None:
            posthoc_result = PostHocResult("Wilcoxon signed-rank", p_adjust, tuple(comparisons))

    return TestResult(
        branch=branch,
        test="Friedman",
        terms=(term,),
        effect_size=EffectSize(branch.effect_size_name, factor, term.effect_size),
        post_hoc=posthoc_result,
    )

"""Top-level analysis pipeline."""

from __future__ import annotations

import logging
from typing import List, Optional, Union

import pandas as pd

from autoanova.assumptions import check_assumptions
from autoanova.config import AnalysisConfig
from autoanova.design import describe_design, group_labels, validate_group_sizes
from autoanova.exceptions import UnsupportedDesignError
from autoanova.executor import execute
from autoanova.policy import MIN_REPEATED_CONDITIONS, describe_decision, select_branch
from autoanova.preprocess import preprocess, validate_columns
from autoanova.reports import build_summary
from autoanova.results import AnalysisResult, Diagnostic

logger = logging.getLogger(__name__)


def run_analysis(
    data: pd.DataFrame,
    response: str,
    factors: Union[List[str], str],
    block: Optional[str] = None,
    **options,
) -> AnalysisResult:
    """
    Run the full decision engine on a table.

    Parameters
    ----------
    data : pd.DataFrame
        Raw input table (not modified)
    response : str
        Numeric response column
    factors : list of str or str
        One or two grouping factor columns
    block : str, optional
        Block/subject column for repeated measures
    **options
        Any other AnalysisConfig field (missing_method, outlier_method,
        remove_outliers, transformation, alpha, force_parametric,
        force_nonparametric, post_hoc, p_adjust, impute_scope,
        small_group_policy, levene_center, min_group_size, drop_small_groups)

    Returns
    -------
    AnalysisResult
        Unified result record

    Raises
    ------
    AutoAnovaError
        Any subclass, see ``autoanova.exceptions``

    Examples
    --------
    >>> result = run_analysis(df, "weight", "group", force_nonparametric=True)
    >>> result.branch.value
    'OneWayKruskalWallis'
    """
    config = AnalysisConfig(response=response, factors=factors, block=block, **options)
    return run_analysis_from_config(data, config)


def run_analysis_from_config(data: pd.DataFrame, config: AnalysisConfig) -> AnalysisResult:
    """
    Run the pipeline for a validated configuration.

    Steps:
    1. Validate columns
    2. Preprocess (missing values, outliers, transformation)
    3. Validate group sizes and describe the design
    4. Test assumptions
    5. Select the analysis branch
    6. Execute the primary test, post-hoc and effect size
    7. Assemble the result and its summary
    """
    validate_columns(data, config.columns)
    diagnostics: List[Diagnostic] = []

    logger.info(f"Preprocessing {len(data)} rows (response={config.response}, factors={config.factors})")
    cleaned, prep = preprocess(data, config)
    if prep.n_outliers_detected and not config.remove_outliers:
        diagnostics.append(
            Diagnostic(
                stage="preprocess",
                level="info",
                message=f"{prep.n_outliers_detected} outlier(s) detected and kept",
            )
        )

    cleaned, dropped = validate_group_sizes(
        cleaned, config.factors, config.min_group_size, config.drop_small_groups
    )
    if dropped:
        diagnostics.append(
            Diagnostic(
                stage="design",
                level="warning",
                message=f"Dropped undersized group(s): {', '.join(dropped)}",
            )
        )

    design = describe_design(cleaned, config.factors, config.block)
    if design.has_block and design.n_levels() < MIN_REPEATED_CONDITIONS:
        raise UnsupportedDesignError(
            f"Friedman's test needs at least {MIN_REPEATED_CONDITIONS} conditions, "
            f"got {design.n_levels()}"
        )
    logger.info(f"Design: {design.describe()}")

    verdict, residuals = check_assumptions(
        cleaned,
        config.response,
        design,
        alpha=config.alpha,
        small_group_policy=config.small_group_policy,
        levene_center=config.levene_center,
    )
    for caveat in verdict.caveats:
        diagnostics.append(Diagnostic(stage="assumptions", level="warning", message=caveat))

    branch = select_branch(verdict, design, config.force_parametric, config.force_nonparametric)
    reason = describe_decision(
        branch, verdict, design, config.force_parametric, config.force_nonparametric
    )
    logger.info(f"Selected {branch.value}: {reason}")

    test, exec_diagnostics = execute(
        cleaned,
        config.response,
        design,
        branch,
        alpha=config.alpha,
        post_hoc=config.post_hoc,
        p_adjust=config.p_adjust,
    )
    diagnostics.extend(exec_diagnostics)

    summary = build_summary(
        config.response, design, prep, verdict, branch, reason, test, diagnostics
    )

    return AnalysisResult(
        data=cleaned,
        groups=group_labels(cleaned, config.factors),
        residuals=residuals,
        design=design,
        preprocessing=prep,
        verdict=verdict,
        branch=branch,
        test=test,
        summary=summary,
        diagnostics=tuple(diagnostics),
        config=config,
    )

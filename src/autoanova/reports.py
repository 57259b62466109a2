"""Build human-readable summaries and tables from analysis results."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from autoanova import __version__
from autoanova.design import DesignShape
from autoanova.policy import AnalysisBranch
from autoanova.results import (
    AnalysisResult,
    AssumptionVerdict,
    Diagnostic,
    PreprocessingSummary,
    TestResult,
)


def _fmt_p(p: float) -> str:
    if p is None or not np.isfinite(p):
        return "NA"
    return "< 0.001" if p < 0.001 else f"{p:.4f}"


def _fmt(x: Any, digits: int = 4) -> str:
    if x is None or (isinstance(x, float) and not np.isfinite(x)):
        return "NA"
    return f"{x:.{digits}g}"


def assumption_table(verdict: AssumptionVerdict) -> pd.DataFrame:
    """Normality and homogeneity outcomes as one long table.

    Returns:
        DataFrame with columns: check, scope, factor, group, n, test, statistic, p_value, passed
    """
    rows: List[Dict[str, Any]] = []
    checks = list(verdict.normality)
    if verdict.residual_normality is not None:
        checks.append(verdict.residual_normality)
    for check in checks:
        outcomes = [("normality", check.primary)]
        if check.lilliefors is not None:
            outcomes.append(("normality (secondary)", check.lilliefors))
        for label, outcome in outcomes:
            rows.append(
                {
                    "check": label,
                    "scope": check.scope,
                    "factor": check.factor,
                    "group": check.group,
                    "n": check.n,
                    "test": outcome.test if outcome else "not tested",
                    "statistic": outcome.statistic if outcome else np.nan,
                    "p_value": outcome.p_value if outcome else np.nan,
                    "passed": (outcome.p_value > verdict.alpha) if outcome else None,
                }
            )
    for outcome in (verdict.bartlett, verdict.levene):
        if outcome is None:
            continue
        rows.append(
            {
                "check": "homogeneity",
                "scope": "cell",
                "factor": None,
                "group": "all",
                "n": np.nan,
                "test": outcome.test,
                "statistic": outcome.statistic,
                "p_value": outcome.p_value,
                "passed": bool(outcome.p_value > verdict.alpha),
            }
        )
    return pd.DataFrame(
        rows,
        columns=["check", "scope", "factor", "group", "n", "test", "statistic", "p_value", "passed"],
    )


def terms_table(test: TestResult) -> pd.DataFrame:
    """Omnibus results per term.

    Returns:
        DataFrame with columns: term, statistic, df, df_resid, p_value, effect_size, significant
    """
    return pd.DataFrame(
        [asdict(t) for t in test.terms],
        columns=["term", "statistic", "df", "df_resid", "p_value", "effect_size", "significant"],
    )


def posthoc_table(test: TestResult) -> pd.DataFrame:
    """Post-hoc comparisons (empty frame when no post-hoc ran).

    Returns:
        DataFrame with columns: term, group1, group2, estimate, ci_low, ci_high, p_adj, reject
    """
    columns = ["term", "group1", "group2", "estimate", "ci_low", "ci_high", "p_adj", "reject"]
    if test.post_hoc is None:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([asdict(c) for c in test.post_hoc.comparisons], columns=columns)


def build_summary(
    response: str,
    design: DesignShape,
    prep: PreprocessingSummary,
    verdict: AssumptionVerdict,
    branch: AnalysisBranch,
    reason: str,
    test: TestResult,
    diagnostics: List[Diagnostic],
) -> str:
    """Build the multi-line summary stored on an AnalysisResult."""
    lines = [
        f"Response: {response} | Design: {design.describe()}",
        (
            f"Preprocessing: {prep.n_input} -> {prep.n_output} rows; "
            f"missing={prep.missing_method} (dropped {prep.n_rows_dropped_missing}, imputed {prep.n_imputed}); "
            f"outliers={prep.outlier_method} (detected {prep.n_outliers_detected}, removed {prep.n_outliers_removed}); "
            f"transformation={prep.transformation}"
        ),
    ]

    cells = verdict.cell_checks()
    n_normal = sum(1 for c in cells if c.is_normal)
    n_tested = sum(1 for c in cells if c.tested)
    levene = verdict.levene
    lines.append(
        f"Assumptions: normality passed in {n_normal}/{n_tested} tested groups; "
        f"Levene p={_fmt_p(levene.p_value) if levene else 'NA'} "
        f"({'homogeneous' if verdict.homogeneous else 'not homogeneous'})"
    )
    for caveat in verdict.caveats:
        lines.append(f"  caveat: {caveat}")

    lines.append(f"Analysis: {branch.value} ({reason})")
    for term in test.terms:
        df_text = ""
        if term.df is not None:
            df_text = f", df={_fmt(term.df)}" + (f"/{_fmt(term.df_resid)}" if term.df_resid is not None else "")
        lines.append(
            f"  {test.test} [{term.term}]: statistic={_fmt(term.statistic)}{df_text}, "
            f"p={_fmt_p(term.p_value)}{' *' if term.significant else ''}"
        )
    lines.append(f"Effect size: {test.effect_size.name}={_fmt(test.effect_size.value, 3)} ({test.effect_size.term})")

    if test.post_hoc is not None:
        sig = test.post_hoc.significant_pairs()
        adj = f", {test.post_hoc.p_adjust}" if test.post_hoc.p_adjust else ""
        lines.append(
            f"Post-hoc: {test.post_hoc.method}{adj}; {len(sig)}/{len(test.post_hoc.comparisons)} pairs significant"
        )
        for c in sig:
            lines.append(f"  {c.group1} vs {c.group2}: p_adj={_fmt_p(c.p_adj)}")
    else:
        lines.append("Post-hoc: not run")

    for diag in diagnostics:
        lines.append(f"[{diag.level}] {diag.stage}: {diag.message}")

    return "\n".join(lines)


def result_to_dict(result: AnalysisResult) -> Dict[str, Any]:
    """JSON-serializable view of a result (the cleaned data frame is excluded)."""

    def clean(value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): clean(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [clean(v) for v in value]
        if isinstance(value, (np.integer,)):
            return int(value)
        if isinstance(value, (float, np.floating)):
            return float(value) if np.isfinite(value) else None
        if isinstance(value, np.bool_):
            return bool(value)
        if isinstance(value, Enum):
            return value.value
        return value

    return clean(
        {
            "package_version": __version__,
            "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "branch": result.branch.value,
            "design": {
                "factors": list(result.design.factors),
                "levels": {k: list(v) for k, v in result.design.levels.items()},
                "block": result.design.block,
                "n_blocks": result.design.n_blocks,
            },
            "preprocessing": asdict(result.preprocessing),
            "verdict": asdict(result.verdict),
            "test": {
                "test": result.test.test,
                "terms": [asdict(t) for t in result.test.terms],
                "effect_size": asdict(result.test.effect_size),
                "post_hoc": asdict(result.test.post_hoc) if result.test.post_hoc else None,
            },
            "diagnostics": [asdict(d) for d in result.diagnostics],
            "config": result.config.to_dict() if result.config is not None else None,
            "summary": result.summary,
        }
    )

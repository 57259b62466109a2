"""Plot data export for external renderers.

This module turns an AnalysisResult into tidy frames (boxplot summaries, Q-Q
points, interaction means, residuals vs fitted) so a plotting or reporting
front end can draw them without recomputing any statistic.
"""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd
from scipy import stats

from autoanova.design import cell_order
from autoanova.preprocess import iqr_bounds
from autoanova.results import AnalysisResult


def _response(result: AnalysisResult) -> pd.Series:
    return result.data[result.config.response].astype(float)


def boxplot_data(result: AnalysisResult, whisker: float = 1.5) -> pd.DataFrame:
    """
    Five-number summary per analysis group.

    Parameters
    ----------
    result : AnalysisResult
        Completed analysis
    whisker : float
        Whisker length in IQRs

    Returns
    -------
    pd.DataFrame
        One row per group with columns: group, n, min, q1, median, q3, max,
        whisker_low, whisker_high, outliers (list of values beyond the whiskers)
    """
    y = _response(result)
    rows = []
    for group in cell_order(result.data, list(result.design.factors)):
        x = y[result.groups == group].to_numpy()
        low, high = iqr_bounds(x, whisker)
        inside = x[(x >= low) & (x <= high)]
        q1, median, q3 = np.percentile(x, [25, 50, 75])
        rows.append(
            {
                "group": group,
                "n": len(x),
                "min": float(x.min()),
                "q1": float(q1),
                "median": float(median),
                "q3": float(q3),
                "max": float(x.max()),
                "whisker_low": float(inside.min()) if len(inside) else float(q1),
                "whisker_high": float(inside.max()) if len(inside) else float(q3),
                "outliers": sorted(float(v) for v in x[(x < low) | (x > high)]),
            }
        )
    return pd.DataFrame(rows)


def qq_data(result: AnalysisResult) -> pd.DataFrame:
    """
    Normal Q-Q points of the model residuals.

    Returns
    -------
    pd.DataFrame
        Columns: theoretical, sample, line (the least-squares reference line
        evaluated at each theoretical quantile)
    """
    residuals = result.residuals.dropna().to_numpy(dtype=float)
    if len(residuals) < 2:
        return pd.DataFrame(columns=["theoretical", "sample", "line"])
    (osm, osr), (slope, intercept, _) = stats.probplot(residuals, dist="norm")
    return pd.DataFrame({"theoretical": osm, "sample": osr, "line": slope * osm + intercept})


def interaction_data(result: AnalysisResult) -> pd.DataFrame:
    """
    Cell means for an interaction plot of a two-way design.

    Returns
    -------
    pd.DataFrame
        Columns: <factor A>, <factor B>, n, mean, se

    Raises
    ------
    ValueError
        If the design does not have two factors
    """
    if result.design.n_factors != 2:
        raise ValueError(
            f"Interaction data needs a two-way design, got {result.design.describe()}"
        )
    a, b = result.design.factors
    frame = pd.DataFrame(
        {a: result.data[a].astype(str), b: result.data[b].astype(str), "y": _response(result)}
    )
    agg = frame.groupby([a, b], sort=False)["y"].agg(["count", "mean", "std"]).reset_index()
    agg = agg.rename(columns={"count": "n"})
    agg["se"] = agg["std"] / np.sqrt(agg["n"])

    order_a: List[str] = list(result.design.levels[a])
    order_b: List[str] = list(result.design.levels[b])
    agg[a] = pd.Categorical(agg[a], categories=order_a, ordered=True)
    agg[b] = pd.Categorical(agg[b], categories=order_b, ordered=True)
    agg = agg.sort_values([a, b]).reset_index(drop=True)
    agg[a] = agg[a].astype(str)
    agg[b] = agg[b].astype(str)
    return agg[[a, b, "n", "mean", "se"]]


def residual_data(result: AnalysisResult) -> pd.DataFrame:
    """
    Residuals vs fitted values per observation.

    Returns
    -------
    pd.DataFrame
        Columns: group, fitted, residual (indexed like the cleaned data)
    """
    y = _response(result)
    residuals = result.residuals.reindex(y.index)
    return pd.DataFrame(
        {"group": result.groups, "fitted": y - residuals, "residual": residuals},
        index=y.index,
    )

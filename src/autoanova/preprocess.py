"""Data preprocessing: missing values, outliers and response transformations."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from autoanova.config import (
    AnalysisConfig,
    ImputeScope,
    MissingMethod,
    OutlierMethod,
    Transformation,
)
from autoanova.design import cell_order, group_labels, validate_cell_labels
from autoanova.exceptions import ConfigurationError, TransformationError
from autoanova.results import PreprocessingSummary

logger = logging.getLogger(__name__)


def validate_columns(df: pd.DataFrame, columns: List[str]) -> None:
    """Raise ConfigurationError if any analysis column is missing from the dataframe."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Columns not found in data: {missing}. Available: {sorted(map(str, df.columns))[:10]}..."
        )


def handle_missing(
    df: pd.DataFrame,
    response: str,
    factors: List[str],
    block: Optional[str] = None,
    method: MissingMethod = MissingMethod.COMPLETE,
    scope: ImputeScope = ImputeScope.GROUP,
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """Drop or impute missing values.

    Rows missing any grouping label are always dropped. The response is either
    dropped (``complete``) or imputed with the mean/median of the row's group
    (``scope=group``) or of the whole column (``scope=global``).

    Args:
        df: Input dataframe (not modified)
        response: Response column name
        factors: Factor columns (define the imputation groups)
        block: Optional block column
        method: Missing value method
        scope: Where the imputation statistic is computed

    Returns:
        Tuple of (dataframe, counts) with keys n_missing_response,
        n_missing_factors, n_rows_dropped_missing, n_imputed
    """
    df = df.copy()
    grouping = list(factors) + ([block] if block else [])
    df[response] = pd.to_numeric(df[response], errors="coerce").replace([np.inf, -np.inf], np.nan)

    missing_group = df[grouping].isna().any(axis=1)
    missing_response = df[response].isna()
    counts = {
        "n_missing_response": int(missing_response.sum()),
        "n_missing_factors": int(missing_group.sum()),
        "n_rows_dropped_missing": 0,
        "n_imputed": 0,
    }

    n_before = len(df)
    df = df.loc[~missing_group].copy()

    if method == MissingMethod.COMPLETE:
        df = df.loc[df[response].notna()].copy()
    else:
        to_fill = df[response].isna()
        if to_fill.any():
            fill = _imputation_values(df, response, factors, method, scope)
            df.loc[to_fill, response] = fill[to_fill]
            counts["n_imputed"] = int(to_fill.sum())

    counts["n_rows_dropped_missing"] = n_before - len(df)
    return df, counts


def _imputation_values(
    df: pd.DataFrame,
    response: str,
    factors: List[str],
    method: MissingMethod,
    scope: ImputeScope,
) -> pd.Series:
    stat = method.value
    global_value = getattr(df[response], stat)()
    if not np.isfinite(global_value):
        raise ConfigurationError(
            f"Cannot impute '{response}' with {stat}: column has no observed values"
        )

    if scope == ImputeScope.GLOBAL:
        return pd.Series(global_value, index=df.index)

    labels = group_labels(df, factors)
    per_group = df[response].groupby(labels).transform(stat)
    empty = per_group.isna()
    if empty.any():
        logger.warning(
            f"Groups with no observed '{response}' values fall back to the global {stat}: "
            f"{sorted(labels[empty].unique())}"
        )
        per_group = per_group.fillna(global_value)
    return per_group


def iqr_bounds(x: np.ndarray, multiplier: float = 1.5) -> Tuple[float, float]:
    """Tukey fences ``[Q1 - m*IQR, Q3 + m*IQR]``."""
    q1, q3 = np.percentile(x, [25, 75])
    iqr = q3 - q1
    return float(q1 - multiplier * iqr), float(q3 + multiplier * iqr)


def detect_outliers(
    values: pd.Series,
    groups: Optional[pd.Series] = None,
    method: OutlierMethod = OutlierMethod.IQR,
    iqr_multiplier: float = 1.5,
    zscore_threshold: float = 3.0,
) -> pd.Series:
    """Flag outliers within each group.

    Args:
        values: Numeric response values
        groups: Group label per value (None = treat all values as one group)
        method: iqr or zscore
        iqr_multiplier: Fence multiplier for the iqr rule
        zscore_threshold: |z| cut-off for the zscore rule (sample SD)

    Returns:
        Boolean Series aligned with ``values``; True marks an outlier

    Notes:
        Groups with zero spread flag nothing. Groups are matched by position,
        so duplicate index labels are safe.
    """
    x_all = values.to_numpy(dtype=float)
    keys = np.zeros(len(x_all), dtype=int) if groups is None else np.asarray(groups, dtype=object)

    flags = np.zeros(len(x_all), dtype=bool)
    for _, pos in pd.Series(x_all).groupby(keys).indices.items():
        x = x_all[pos]
        if len(x) < 2:
            continue
        if method == OutlierMethod.IQR:
            low, high = iqr_bounds(x, iqr_multiplier)
            flags[pos] = (x < low) | (x > high)
        else:
            sd = np.std(x, ddof=1)
            if not np.isfinite(sd) or np.isclose(sd, 0.0):
                continue
            z = (x - np.mean(x)) / sd
            flags[pos] = np.abs(z) > zscore_threshold
    return pd.Series(flags, index=values.index)


def apply_transformation(values: pd.Series, transformation: Transformation) -> pd.Series:
    """Transform the response.

    Raises:
        TransformationError: log with values <= 0, sqrt with values < 0,
            reciprocal with a zero value
    """
    transformation = Transformation(transformation)
    x = values.astype(float)

    if transformation == Transformation.NONE:
        return x
    if transformation == Transformation.LOG:
        bad = int((x <= 0).sum())
        if bad:
            raise TransformationError(f"log transform requires values > 0; {bad} value(s) are <= 0")
        return np.log(x)
    if transformation == Transformation.SQRT:
        bad = int((x < 0).sum())
        if bad:
            raise TransformationError(f"sqrt transform requires values >= 0; {bad} value(s) are < 0")
        return np.sqrt(x)
    if transformation == Transformation.RECIPROCAL:
        bad = int((x == 0).sum())
        if bad:
            raise TransformationError(
                f"reciprocal transform is undefined at 0; {bad} value(s) equal 0"
            )
        return 1.0 / x
    if transformation == Transformation.SQUARE:
        return x**2
    raise ConfigurationError(f"Unknown transformation: {transformation}")


def inverse_transform(values: pd.Series, transformation: Transformation) -> pd.Series:
    """Undo ``apply_transformation``.

    ``square`` is inverted with the positive root, so it only round-trips for
    non-negative originals.
    """
    transformation = Transformation(transformation)
    x = values.astype(float)

    if transformation == Transformation.NONE:
        return x
    if transformation == Transformation.LOG:
        return np.exp(x)
    if transformation == Transformation.SQRT:
        return x**2
    if transformation == Transformation.RECIPROCAL:
        return 1.0 / x
    if transformation == Transformation.SQUARE:
        return np.sqrt(x)
    raise ConfigurationError(f"Unknown transformation: {transformation}")


def preprocess(df: pd.DataFrame, config: AnalysisConfig) -> Tuple[pd.DataFrame, PreprocessingSummary]:
    """Clean the response and grouping columns.

    Order: missing values, outlier detection (and optional removal),
    transformation. The input dataframe is never modified. An input with
    duplicate index labels is renumbered 0..n-1 first, so ``outlier_index``
    then holds row positions.

    Returns:
        Tuple of (cleaned dataframe, PreprocessingSummary)

    Raises:
        ConfigurationError: If a configured column is missing, or two-way
            cell labels collide
        TransformationError: If the response violates the transformation's domain
    """
    validate_columns(df, config.columns)
    n_input = len(df)

    source = df[config.columns]
    if not source.index.is_unique:
        logger.warning("Input index has duplicate labels; renumbering rows 0..n-1")
        source = source.reset_index(drop=True)

    data, counts = handle_missing(
        source,
        config.response,
        config.factors,
        config.block,
        config.missing_method,
        config.impute_scope,
    )
    if counts["n_rows_dropped_missing"] or counts["n_imputed"]:
        logger.info(
            f"Missing values: dropped {counts['n_rows_dropped_missing']} row(s), "
            f"imputed {counts['n_imputed']} value(s) ({config.missing_method.value})"
        )

    for factor in config.factors:
        if not isinstance(data[factor].dtype, pd.CategoricalDtype):
            data[factor] = data[factor].astype(str)
    validate_cell_labels(data, config.factors)

    labels = group_labels(data, config.factors) if len(data) else pd.Series(dtype=str)
    outliers = detect_outliers(
        data[config.response],
        labels,
        config.outlier_method,
        config.iqr_multiplier,
        config.zscore_threshold,
    )
    outlier_index = tuple(data.index[outliers])
    n_removed = 0
    if outlier_index:
        logger.info(f"Detected {len(outlier_index)} outlier(s) ({config.outlier_method.value})")
    if config.remove_outliers and outlier_index:
        data = data.loc[~outliers].copy()
        n_removed = len(outlier_index)

    data[config.response] = apply_transformation(data[config.response], config.transformation)

    summary = PreprocessingSummary(
        n_input=n_input,
        n_output=len(data),
        missing_method=config.missing_method.value,
        impute_scope=config.impute_scope.value,
        n_missing_response=counts["n_missing_response"],
        n_missing_factors=counts["n_missing_factors"],
        n_rows_dropped_missing=counts["n_rows_dropped_missing"],
        n_imputed=counts["n_imputed"],
        outlier_method=config.outlier_method.value,
        n_outliers_detected=len(outlier_index),
        outlier_index=outlier_index,
        remove_outliers=config.remove_outliers,
        n_outliers_removed=n_removed,
        transformation=config.transformation.value,
    )
    return data, summary


def compute_group_stats(df: pd.DataFrame, response: str, factors: List[str]) -> pd.DataFrame:
    """Compute descriptive statistics per analysis group.

    Args:
        df: Input dataframe
        response: Response column name
        factors: Factor columns defining the groups

    Returns:
        DataFrame with columns: group, n, n_missing, mean, sd, median, q25, q75, iqr
    """
    labels = group_labels(df, factors)
    order = cell_order(df, factors)
    rows = []
    for g in order:
        x = df.loc[labels == g, response]
        x_valid = x.dropna().astype(float)
        n_valid = len(x_valid)
        n_missing = len(x) - n_valid

        if n_valid > 0:
            mean_val = float(np.mean(x_valid))
            sd_val = float(np.std(x_valid, ddof=1)) if n_valid > 1 else np.nan
            median_val = float(np.median(x_valid))
            q25 = float(np.percentile(x_valid, 25))
            q75 = float(np.percentile(x_valid, 75))
            iqr = q75 - q25
        else:
            mean_val = sd_val = median_val = q25 = q75 = iqr = np.nan

        rows.append(
            {
                "group": g,
                "n": n_valid,
                "n_missing": n_missing,
                "mean": mean_val,
                "sd": sd_val,
                "median": median_val,
                "q25": q25,
                "q75": q75,
                "iqr": iqr,
            }
        )

    return pd.DataFrame(rows)

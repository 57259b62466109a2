"""Design shape detection and group-size validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd

from autoanova.exceptions import ConfigurationError, InsufficientDataError, UnsupportedDesignError

logger = logging.getLogger(__name__)

CELL_SEPARATOR = ":"


def ordered_levels(series: pd.Series) -> List[str]:
    """Levels of a factor column in analysis order.

    Categorical columns keep their category order (unused categories dropped);
    anything else uses order of first appearance.
    """
    if isinstance(series.dtype, pd.CategoricalDtype):
        present = set(series.dropna().astype(str))
        return [str(c) for c in series.cat.categories if str(c) in present]
    return [str(v) for v in pd.unique(series.dropna().astype(str))]


def group_labels(df: pd.DataFrame, factors: List[str]) -> pd.Series:
    """Analysis group label per row: the factor level, or ``"a:b"`` for two factors."""
    labels = df[factors[0]].astype(str)
    for factor in factors[1:]:
        labels = labels + CELL_SEPARATOR + df[factor].astype(str)
    return labels.rename("group")


def _observed_cells(df: pd.DataFrame, factors: List[str]) -> List[Tuple[str, ...]]:
    observed = set(df[factors].astype(str).itertuples(index=False, name=None))
    cells: List[Tuple[str, ...]] = [()]
    for factor in factors:
        cells = [c + (level,) for c in cells for level in ordered_levels(df[factor])]
    return [c for c in cells if c in observed]


def validate_cell_labels(df: pd.DataFrame, factors: List[str]) -> None:
    """Raise ConfigurationError if two observed cells share a joined label.

    Levels containing the separator are fine as long as no two level
    combinations join to the same text, e.g. ``("x:y", "z")`` and ``("x", "y:z")``.
    """
    if len(factors) < 2:
        return
    seen: Dict[str, Tuple[str, ...]] = {}
    for cell in _observed_cells(df, factors):
        label = CELL_SEPARATOR.join(cell)
        if label in seen:
            raise ConfigurationError(
                f"Cells {seen[label]} and {cell} both map to group label '{label}'; "
                f"rename levels so they do not contain '{CELL_SEPARATOR}'"
            )
        seen[label] = cell


def cell_order(df: pd.DataFrame, factors: List[str]) -> List[str]:
    """Observed analysis groups ordered by the factor level orders."""
    return [CELL_SEPARATOR.join(c) for c in _observed_cells(df, factors)]


@dataclass(frozen=True)
class DesignShape:
    """Factors, their levels and the optional block of an experiment."""

    factors: Tuple[str, ...]
    levels: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    block: Optional[str] = None
    n_blocks: int = 0

    @property
    def n_factors(self) -> int:
        return len(self.factors)

    @property
    def has_block(self) -> bool:
        return self.block is not None

    def n_levels(self, factor: Optional[str] = None) -> int:
        return len(self.levels[factor or self.factors[0]])

    def describe(self) -> str:
        parts = [f"{f} ({len(self.levels.get(f, ()))} levels)" for f in self.factors]
        text = " x ".join(parts)
        if self.has_block:
            text += f", blocked by {self.block} ({self.n_blocks} blocks)"
        return text


def describe_design(df: pd.DataFrame, factors: List[str], block: Optional[str] = None) -> DesignShape:
    """Build the design shape of a cleaned dataset.

    Raises:
        UnsupportedDesignError: More than two factors, or a block with two factors
    """
    if len(factors) > 2:
        raise UnsupportedDesignError(
            f"Only one-way and two-way designs are supported, got {len(factors)} factors"
        )
    if block is not None and len(factors) > 1:
        raise UnsupportedDesignError(
            "Repeated measures are supported for a single within-block factor only"
        )

    levels = {f: tuple(ordered_levels(df[f])) for f in factors}
    n_blocks = int(df[block].nunique()) if block is not None else 0
    return DesignShape(factors=tuple(factors), levels=levels, block=block, n_blocks=n_blocks)


def validate_group_sizes(
    df: pd.DataFrame,
    factors: List[str],
    min_group_size: int = 2,
    drop_small_groups: bool = False,
) -> Tuple[pd.DataFrame, List[str]]:
    """Check that every factor has >= 2 levels and every cell enough observations.

    Args:
        df: Cleaned dataframe
        factors: Factor columns
        min_group_size: Minimum observations per analysis group
        drop_small_groups: Drop undersized groups instead of raising

    Returns:
        Tuple of (dataframe, list of dropped group labels)

    Raises:
        InsufficientDataError: If the design is not analyzable
    """
    if len(df) == 0:
        raise InsufficientDataError("No observations left after preprocessing")

    labels = group_labels(df, factors)
    counts = labels.value_counts()
    small = [str(g) for g in cell_order(df, factors) if counts[g] < min_group_size]

    dropped: List[str] = []
    if small:
        detail = ", ".join(f"'{g}' (n={int(counts[g])})" for g in small)
        if not drop_small_groups:
            raise InsufficientDataError(
                f"Groups with fewer than {min_group_size} observations: {detail}"
            )
        logger.warning(f"Dropping groups with fewer than {min_group_size} observations: {detail}")
        df = df.loc[~labels.isin(small)].copy()
        dropped = small

    for factor in factors:
        n_levels = df[factor].nunique()
        if n_levels < 2:
            raise InsufficientDataError(
                f"Factor '{factor}' needs at least 2 levels, found {n_levels}"
            )

    return df, dropped

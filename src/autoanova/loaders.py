"""Data loading for CSV and Parquet tables."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

_PYARROW_AVAILABLE: Optional[bool] = None


class DataFormat(str, Enum):
    """Supported table formats."""

    CSV = "csv"
    PARQUET = "parquet"

    @classmethod
    def from_path(cls, path: Path) -> DataFormat:
        """
        Infer format from the file suffix.

        Raises
        ------
        ValueError
            If the suffix is neither .csv nor .parquet
        """
        suffix = Path(path).suffix.lower()
        if suffix == ".csv":
            return cls.CSV
        if suffix in (".parquet", ".pq"):
            return cls.PARQUET
        raise ValueError(
            f"Cannot infer data format from path: {path}. Expected a .csv or .parquet file."
        )


def validate_parquet_available() -> None:
    """
    Check that PyArrow is installed for Parquet reads.

    Raises
    ------
    ImportError
        If PyArrow is not installed, with an installation hint
    """
    global _PYARROW_AVAILABLE

    if _PYARROW_AVAILABLE is None:
        try:
            import pyarrow  # noqa: F401

            _PYARROW_AVAILABLE = True
        except ImportError:
            _PYARROW_AVAILABLE = False

    if not _PYARROW_AVAILABLE:
        raise ImportError(
            "PyArrow is required for Parquet support but is not installed.\n"
            "Install with: pip install autoanova[parquet] or pip install pyarrow"
        )


def load_table(
    path: Union[str, Path],
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Load a table from a CSV or Parquet file.

    Parameters
    ----------
    path : Path
        Path to the data file
    columns : List[str], optional
        Subset of columns to load

    Returns
    -------
    pd.DataFrame
        Loaded data

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the format cannot be inferred

    Examples
    --------
    >>> df = load_table(Path("plant_growth.csv"))
    >>> df = load_table(Path("trial.parquet"), columns=["weight", "group"])
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data path not found: {path}")

    fmt = DataFormat.from_path(path)
    logger.info(f"Loading table from {path} (format: {fmt.value})")

    if fmt == DataFormat.CSV:
        df = pd.read_csv(path, usecols=columns)
    else:
        validate_parquet_available()
        df = pd.read_parquet(path, columns=columns, engine="pyarrow")

    logger.info(f"Loaded {len(df)} rows, {len(df.columns)} columns")
    return df

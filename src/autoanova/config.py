"""Configuration dataclass and option enums for the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from autoanova.exceptions import ConfigurationError, UnsupportedDesignError

VALID_P_ADJUST = ["holm", "bonferroni", "fdr_bh", "fdr_by", "sidak"]
VALID_LEVENE_CENTERS = ["mean", "median", "trimmed"]
MAX_FACTORS = 2


class MissingMethod(str, Enum):
    """How missing response values are handled."""

    COMPLETE = "complete"
    MEAN = "mean"
    MEDIAN = "median"


class ImputeScope(str, Enum):
    """Where the imputation statistic is computed."""

    GROUP = "group"
    GLOBAL = "global"


class OutlierMethod(str, Enum):
    """Outlier detection rule."""

    IQR = "iqr"
    ZSCORE = "zscore"


class Transformation(str, Enum):
    """Response transformation applied after outlier handling."""

    NONE = "none"
    LOG = "log"
    SQRT = "sqrt"
    RECIPROCAL = "reciprocal"
    SQUARE = "square"


class SmallGroupPolicy(str, Enum):
    """Treatment of groups too small to test for normality (n < 3).

    ``exclude`` leaves them out of the aggregate verdict and records a caveat;
    ``fail`` counts them as non-normal.
    """

    EXCLUDE = "exclude"
    FAIL = "fail"


def _coerce_enum(enum_cls: type, value: Any, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError as exc:
        valid = [member.value for member in enum_cls]
        raise ConfigurationError(f"{name} must be one of {valid}, got {value!r}") from exc


@dataclass
class AnalysisConfig:
    """Configuration for a single analysis run.

    Attributes:
        response: Name of the numeric response column
        factors: One or two grouping factor columns (a single name is accepted)
        block: Optional block/subject column for repeated measures
        missing_method: complete, mean or median
        impute_scope: group (default) or global statistic for mean/median imputation
        outlier_method: iqr or zscore
        remove_outliers: Drop detected outliers (detection always runs)
        iqr_multiplier: Fence multiplier for the iqr rule (default: 1.5)
        zscore_threshold: |z| cut-off for the zscore rule (default: 3.0)
        transformation: none, log, sqrt, reciprocal or square
        alpha: Significance threshold for every test (default: 0.05)
        force_parametric: Skip the verdict and use the parametric branch
        force_nonparametric: Skip the verdict and use the rank-based branch
        post_hoc: Run the matched post-hoc procedure after a significant omnibus test
        p_adjust: Multiple-comparison adjustment for Dunn and Wilcoxon post-hoc tests
            Options: holm, bonferroni, fdr_bh, fdr_by, sidak
        small_group_policy: exclude (default) or fail for groups with n < 3
        levene_center: Center used by Levene's test (mean, median, trimmed)
        min_group_size: Minimum observations per analysis group (default: 2)
        drop_small_groups: Drop undersized groups with a warning instead of raising
    """

    response: str
    factors: Union[List[str], str]
    block: Optional[str] = None
    missing_method: MissingMethod = MissingMethod.COMPLETE
    impute_scope: ImputeScope = ImputeScope.GROUP
    outlier_method: OutlierMethod = OutlierMethod.IQR
    remove_outliers: bool = False
    iqr_multiplier: float = 1.5
    zscore_threshold: float = 3.0
    transformation: Transformation = Transformation.NONE
    alpha: float = 0.05
    force_parametric: bool = False
    force_nonparametric: bool = False
    post_hoc: bool = True
    p_adjust: str = "holm"
    small_group_policy: SmallGroupPolicy = SmallGroupPolicy.EXCLUDE
    levene_center: str = "median"
    min_group_size: int = 2
    drop_small_groups: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.factors, str):
            self.factors = [self.factors]
        self.factors = list(self.factors)

        if self.force_parametric and self.force_nonparametric:
            raise ConfigurationError(
                "force_parametric and force_nonparametric are mutually exclusive"
            )

        if len(self.factors) == 0:
            raise ConfigurationError("At least one factor column is required")

        if len(self.factors) > MAX_FACTORS:
            raise UnsupportedDesignError(
                f"Only one-way and two-way designs are supported, got {len(self.factors)} factors: "
                f"{self.factors}"
            )

        if self.block is not None and len(self.factors) > 1:
            raise UnsupportedDesignError(
                "Repeated measures are supported for a single within-block factor only"
            )

        columns = self.columns
        if len(set(columns)) != len(columns):
            raise ConfigurationError(f"Response, factor and block columns must be distinct: {columns}")

        self.missing_method = _coerce_enum(MissingMethod, self.missing_method, "missing_method")
        self.impute_scope = _coerce_enum(ImputeScope, self.impute_scope, "impute_scope")
        self.outlier_method = _coerce_enum(OutlierMethod, self.outlier_method, "outlier_method")
        self.transformation = _coerce_enum(Transformation, self.transformation, "transformation")
        self.small_group_policy = _coerce_enum(
            SmallGroupPolicy, self.small_group_policy, "small_group_policy"
        )

        if self.alpha <= 0 or self.alpha >= 1:
            raise ConfigurationError(f"Alpha must be in (0, 1), got {self.alpha}")

        if self.p_adjust not in VALID_P_ADJUST:
            raise ConfigurationError(
                f"p_adjust must be one of {VALID_P_ADJUST}, got {self.p_adjust}"
            )

        if self.levene_center not in VALID_LEVENE_CENTERS:
            raise ConfigurationError(
                f"levene_center must be one of {VALID_LEVENE_CENTERS}, got {self.levene_center}"
            )

        if self.min_group_size < 2:
            raise ConfigurationError(f"min_group_size must be >= 2, got {self.min_group_size}")

        if self.iqr_multiplier <= 0:
            raise ConfigurationError(f"iqr_multiplier must be positive, got {self.iqr_multiplier}")

        if self.zscore_threshold <= 0:
            raise ConfigurationError(
                f"zscore_threshold must be positive, got {self.zscore_threshold}"
            )

    @property
    def columns(self) -> List[str]:
        """Response, factor and block columns in that order."""
        return [self.response, *self.factors] + ([self.block] if self.block else [])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

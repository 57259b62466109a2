"""Immutable result records produced by the analysis pipeline.

Every record is a frozen dataclass. ``AnalysisResult`` aggregates the records
of one run and is handed to the caller, to plotting helpers
(``autoanova.plot_data``) and to report builders (``autoanova.reports``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Tuple

import pandas as pd

if TYPE_CHECKING:
    from autoanova.config import AnalysisConfig
    from autoanova.design import DesignShape
    from autoanova.policy import AnalysisBranch


@dataclass(frozen=True)
class PreprocessingSummary:
    """Counts of what the preprocessor changed."""

    n_input: int
    n_output: int
    missing_method: str
    impute_scope: str
    n_missing_response: int
    n_missing_factors: int
    n_rows_dropped_missing: int
    n_imputed: int
    outlier_method: str
    n_outliers_detected: int
    outlier_index: Tuple = ()
    remove_outliers: bool = False
    n_outliers_removed: int = 0
    transformation: str = "none"


@dataclass(frozen=True)
class TestOutcome:
    """Statistic and p-value of a single named test."""

    __test__ = False

    test: str
    statistic: float
    p_value: float


@dataclass(frozen=True)
class NormalityCheck:
    """Normality outcome for one group.

    ``primary`` is Shapiro-Wilk (n <= 5000) or Anderson-Darling (n > 5000);
    ``lilliefors`` is the secondary check. ``is_normal`` is None when the group
    could not be tested (see ``note``).
    """

    scope: str
    factor: Optional[str]
    group: str
    n: int
    primary: Optional[TestOutcome]
    lilliefors: Optional[TestOutcome]
    is_normal: Optional[bool]
    note: str = ""

    @property
    def tested(self) -> bool:
        return self.primary is not None


@dataclass(frozen=True)
class AssumptionVerdict:
    """Structured normality and homogeneity diagnostics plus the aggregate verdict."""

    alpha: float
    normality: Tuple[NormalityCheck, ...]
    residual_normality: Optional[NormalityCheck]
    bartlett: Optional[TestOutcome]
    levene: Optional[TestOutcome]
    all_groups_normal: bool
    homogeneous: bool
    parametric_appropriate: bool
    caveats: Tuple[str, ...] = ()

    def cell_checks(self) -> Tuple[NormalityCheck, ...]:
        """Checks on the analysis groups (the ones that decide the verdict)."""
        return tuple(c for c in self.normality if c.scope == "cell")


@dataclass(frozen=True)
class TermResult:
    """Omnibus statistic for one model term."""

    term: str
    statistic: float
    p_value: float
    df: Optional[float] = None
    df_resid: Optional[float] = None
    effect_size: Optional[float] = None
    significant: bool = False


@dataclass(frozen=True)
class PairwiseComparison:
    """One post-hoc comparison between two groups."""

    term: str
    group1: str
    group2: str
    p_adj: float
    reject: bool
    estimate: Optional[float] = None
    ci_low: Optional[float] = None
    ci_high: Optional[float] = None


@dataclass(frozen=True)
class PostHocResult:
    """Ordered pairwise comparisons from a post-hoc procedure."""

    method: str
    p_adjust: Optional[str]
    comparisons: Tuple[PairwiseComparison, ...]

    def significant_pairs(self) -> Tuple[PairwiseComparison, ...]:
        return tuple(c for c in self.comparisons if c.reject)


@dataclass(frozen=True)
class EffectSize:
    """Branch-specific effect size exposed under a single field."""

    name: str
    term: str
    value: float


@dataclass(frozen=True)
class TestResult:
    """Primary test output, optional post-hoc and effect size.

    ``terms`` lists the primary term first; ``statistic``, ``p_value`` and
    ``df`` mirror it.
    """

    __test__ = False

    branch: "AnalysisBranch"
    test: str
    terms: Tuple[TermResult, ...]
    effect_size: EffectSize
    post_hoc: Optional[PostHocResult] = None

    @property
    def primary(self) -> TermResult:
        return self.terms[0]

    @property
    def statistic(self) -> float:
        return self.primary.statistic

    @property
    def p_value(self) -> float:
        return self.primary.p_value

    @property
    def df(self) -> Optional[float]:
        return self.primary.df

    def term(self, name: str) -> TermResult:
        """Look up a term by name."""
        for term in self.terms:
            if term.term == name:
                return term
        raise KeyError(f"No term named '{name}'. Available: {[t.term for t in self.terms]}")


@dataclass(frozen=True)
class Diagnostic:
    """An entry in the diagnostic trail of a run."""

    stage: str
    level: str
    message: str


@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Everything one analysis run produced."""

    data: pd.DataFrame = field(repr=False)
    groups: pd.Series = field(repr=False)
    residuals: pd.Series = field(repr=False)
    design: "DesignShape"
    preprocessing: PreprocessingSummary
    verdict: AssumptionVerdict
    branch: "AnalysisBranch"
    test: TestResult
    summary: str
    diagnostics: Tuple[Diagnostic, ...] = ()
    config: Optional["AnalysisConfig"] = field(default=None, repr=False)

    @property
    def effect_size(self) -> EffectSize:
        return self.test.effect_size

    @property
    def post_hoc(self) -> Optional[PostHocResult]:
        return self.test.post_hoc

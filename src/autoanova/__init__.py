"""
autoanova: assumption-driven selection of group-comparison tests.

This package provides:
- Preprocessing of a response and one or two grouping factors
- Normality and homogeneity-of-variance diagnostics
- A deterministic policy choosing ANOVA, Kruskal-Wallis, Mann-Whitney or Friedman
- Matched post-hoc procedures and comparable effect sizes
- Plot data, report tables and a Typer CLI
"""

__version__ = "0.1.0"

from autoanova.api import run_analysis, run_analysis_from_config
from autoanova.config import AnalysisConfig
from autoanova.exceptions import (
    AutoAnovaError,
    ConfigurationError,
    InsufficientDataError,
    TestExecutionError,
    TransformationError,
    UnsupportedDesignError,
)
from autoanova.policy import AnalysisBranch
from autoanova.results import AnalysisResult, AssumptionVerdict, TestResult

__all__ = [
    "__version__",
    "run_analysis",
    "run_analysis_from_config",
    "AnalysisConfig",
    "AnalysisBranch",
    "AnalysisResult",
    "AssumptionVerdict",
    "TestResult",
    "AutoAnovaError",
    "ConfigurationError",
    "UnsupportedDesignError",
    "TransformationError",
    "InsufficientDataError",
    "TestExecutionError",
]

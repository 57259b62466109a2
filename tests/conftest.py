"""Pytest configuration and fixtures."""

import numpy as np
import pandas as pd
import pytest
from scipy import stats


def normal_sample(mean: float, sd: float, n: int) -> np.ndarray:
    """Deterministic sample placed on the Blom normal quantiles."""
    i = np.arange(1, n + 1)
    return mean + sd * stats.norm.ppf((i - 0.375) / (n + 0.25))


@pytest.fixture
def iris_like():
    """Three species with normal, equal-variance sepal lengths."""
    means = {"setosa": 5.006, "versicolor": 5.936, "virginica": 6.588}
    frames = [
        pd.DataFrame({"species": name, "sepal_length": normal_sample(mu, 0.5, 50)})
        for name, mu in means.items()
    ]
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def plant_growth():
    """The classic PlantGrowth dataset (dried plant weight under three conditions)."""
    weights = {
        "ctrl": [4.17, 5.58, 5.18, 6.11, 4.50, 4.61, 5.17, 4.53, 5.33, 5.14],
        "trt1": [4.81, 4.17, 4.41, 3.59, 5.87, 3.83, 6.03, 4.89, 4.32, 4.69],
        "trt2": [6.31, 5.12, 5.54, 5.50, 5.37, 5.29, 4.92, 6.15, 5.80, 5.26],
    }
    return pd.DataFrame(
        {
            "weight": [w for values in weights.values() for w in values],
            "group": [g for g, values in weights.items() for _ in values],
        }
    )


@pytest.fixture
def two_by_two():
    """Balanced 2x2 design with a dose main effect and no interaction."""
    rows = []
    cell_means = {("low", "OJ"): 10.0, ("low", "VC"): 10.5, ("high", "OJ"): 14.0, ("high", "VC"): 14.5}
    for (dose, supp), mu in cell_means.items():
        for value in normal_sample(mu, 1.0, 12):
            rows.append({"dose": dose, "supp": supp, "len": value})
    return pd.DataFrame(rows)


@pytest.fixture
def repeated_measures():
    """Twelve subjects measured under three conditions."""
    rng = np.random.default_rng(7)
    rows = []
    for subject in range(12):
        base = 20.0 + subject
        for condition, shift in (("pre", 0.0), ("mid", 1.0), ("post", 2.5)):
            rows.append(
                {
                    "subject": f"s{subject:02d}",
                    "condition": condition,
                    "score": base + shift + rng.normal(scale=0.2),
                }
            )
    return pd.DataFrame(rows)

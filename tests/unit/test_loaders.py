"""Tests for table loading."""

import pytest

from autoanova.loaders import DataFormat, load_table


def test_infer_format():
    assert DataFormat.from_path("data.csv") == DataFormat.CSV
    assert DataFormat.from_path("data.PARQUET") == DataFormat.PARQUET
    with pytest.raises(ValueError, match="Cannot infer"):
        DataFormat.from_path("data.xlsx")


def test_load_csv(tmp_path, plant_growth):
    path = tmp_path / "plants.csv"
    plant_growth.to_csv(path, index=False)

    df = load_table(path)

    assert df.shape == (30, 2)
    assert df["weight"].sum() == pytest.approx(plant_growth["weight"].sum())


def test_load_csv_subset(tmp_path, plant_growth):
    path = tmp_path / "plants.csv"
    plant_growth.to_csv(path, index=False)

    df = load_table(path, columns=["group"])

    assert list(df.columns) == ["group"]


def test_load_parquet(tmp_path, plant_growth):
    pytest.importorskip("pyarrow")
    path = tmp_path / "plants.parquet"
    plant_growth.to_parquet(path, index=False)

    df = load_table(path)

    assert df.shape == (30, 2)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_table(tmp_path / "nope.csv")

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from autoanova.cli import app


def test_cli_version_flag() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "autoanova" in result.stdout


def test_cli_run_writes_summary_and_json(tmp_path: Path, plant_growth) -> None:
    runner = CliRunner()
    data = tmp_path / "plants.csv"
    plant_growth.to_csv(data, index=False)
    json_out = tmp_path / "out" / "result.json"

    result = runner.invoke(
        app,
        [
            "run",
            "--data",
            str(data),
            "--response",
            "weight",
            "--factor",
            "group",
            "--force-nonparametric",
            "--json-out",
            str(json_out),
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert "OneWayKruskalWallis" in result.stdout

    payload = json.loads(json_out.read_text())
    assert payload["branch"] == "OneWayKruskalWallis"
    assert len(payload["test"]["post_hoc"]["comparisons"]) == 3


def test_cli_two_factors(tmp_path: Path, two_by_two) -> None:
    runner = CliRunner()
    data = tmp_path / "tooth.csv"
    two_by_two.to_csv(data, index=False)

    result = runner.invoke(
        app,
        ["run", "--data", str(data), "--response", "len", "--factor", "dose", "--factor", "supp"],
    )
    assert result.exit_code == 0, result.stdout
    assert "TwoWayParametric" in result.stdout


def test_cli_reports_analysis_errors(tmp_path: Path, plant_growth) -> None:
    runner = CliRunner()
    data = tmp_path / "plants.csv"
    plant_growth.to_csv(data, index=False)

    result = runner.invoke(
        app,
        [
            "run",
            "--data",
            str(data),
            "--response",
            "weight",
            "--factor",
            "group",
            "--force-parametric",
            "--force-nonparametric",
        ],
    )
    assert result.exit_code == 1


def test_cli_missing_file(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["run", "--data", str(tmp_path / "nope.csv"), "--response", "y", "--factor", "g"],
    )
    assert result.exit_code == 1


def test_cli_small_group_options(tmp_path: Path, plant_growth) -> None:
    """--min-group-size rejects small groups unless --drop-small-groups is given."""
    runner = CliRunner()
    df = plant_growth[~((plant_growth["group"] == "trt2") & (plant_growth.index > 23))]
    data = tmp_path / "plants.csv"
    df.to_csv(data, index=False)
    base = ["run", "--data", str(data), "--response", "weight", "--factor", "group"]

    strict = runner.invoke(app, base + ["--min-group-size", "5"])
    assert strict.exit_code == 1

    json_out = tmp_path / "dropped.json"
    dropped = runner.invoke(
        app,
        base
        + [
            "--min-group-size",
            "5",
            "--drop-small-groups",
            "--levene-center",
            "mean",
            "--json-out",
            str(json_out),
        ],
    )
    assert dropped.exit_code == 0, dropped.stdout
    payload = json.loads(json_out.read_text())
    assert payload["config"]["levene_center"] == "mean"
    assert payload["config"]["min_group_size"] == 5
    assert payload["design"]["levels"]["group"] == ["ctrl", "trt1"]


def test_cli_rejects_unknown_levene_center(tmp_path: Path, plant_growth) -> None:
    runner = CliRunner()
    data = tmp_path / "plants.csv"
    plant_growth.to_csv(data, index=False)

    result = runner.invoke(
        app,
        [
            "run",
            "--data",
            str(data),
            "--response",
            "weight",
            "--factor",
            "group",
            "--levene-center",
            "mode",
        ],
    )
    assert result.exit_code == 1

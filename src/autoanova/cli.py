"""Main CLI entrypoint using Typer."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from autoanova import __version__
from autoanova.api import run_analysis
from autoanova.excel import write_result_workbook
from autoanova.exceptions import AutoAnovaError
from autoanova.loaders import load_table
from autoanova.reports import posthoc_table, result_to_dict

app = typer.Typer(
    name="autoanova",
    help="Assumption-driven selection of ANOVA and rank-based group comparisons.",
    add_completion=False,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"autoanova {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """autoanova: choose and run the right group-comparison test."""
    pass


@app.command()
def run(
    data: Path = typer.Option(..., "--data", help="Path to data file (.csv or .parquet)"),
    response: str = typer.Option(..., "--response", help="Numeric response column"),
    factor: List[str] = typer.Option(..., "--factor", help="Grouping factor column (repeat for two-way)"),
    block: Optional[str] = typer.Option(None, "--block", help="Block/subject column for repeated measures"),
    missing_method: str = typer.Option("complete", "--missing-method", help="complete, mean or median"),
    impute_scope: str = typer.Option("group", "--impute-scope", help="group or global imputation statistic"),
    outlier_method: str = typer.Option("iqr", "--outlier-method", help="iqr or zscore"),
    remove_outliers: bool = typer.Option(False, "--remove-outliers", help="Drop detected outliers"),
    iqr_multiplier: float = typer.Option(1.5, "--iqr-multiplier", help="Fence multiplier for the iqr rule"),
    zscore_threshold: float = typer.Option(3.0, "--zscore-threshold", help="|z| cut-off for the zscore rule"),
    transformation: str = typer.Option(
        "none", "--transformation", help="none, log, sqrt, reciprocal or square"
    ),
    alpha: float = typer.Option(0.05, "--alpha", help="Significance threshold"),
    force_parametric: bool = typer.Option(False, "--force-parametric", help="Always run ANOVA"),
    force_nonparametric: bool = typer.Option(
        False, "--force-nonparametric", help="Always run the rank-based test"
    ),
    no_post_hoc: bool = typer.Option(False, "--no-post-hoc", help="Skip post-hoc comparisons"),
    p_adjust: str = typer.Option("holm", "--p-adjust", help="P-value adjustment for Dunn/Wilcoxon"),
    small_group_policy: str = typer.Option(
        "exclude", "--small-group-policy", help="exclude or fail for groups too small to test"
    ),
    levene_center: str = typer.Option(
        "median", "--levene-center", help="Center for Levene's test: mean, median or trimmed"
    ),
    min_group_size: int = typer.Option(2, "--min-group-size", help="Minimum observations per group"),
    drop_small_groups: bool = typer.Option(
        False, "--drop-small-groups", help="Drop undersized groups instead of failing"
    ),
    json_out: Optional[Path] = typer.Option(None, "--json-out", help="Write the full result as JSON"),
    xlsx_out: Optional[Path] = typer.Option(None, "--xlsx-out", help="Write result tables to an Excel workbook"),
):
    """Run the decision engine on a table and print the summary."""
    try:
        df = load_table(data)
    except (FileNotFoundError, ValueError, ImportError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        result = run_analysis(
            df,
            response=response,
            factors=list(factor),
            block=block,
            missing_method=missing_method,
            impute_scope=impute_scope,
            outlier_method=outlier_method,
            remove_outliers=remove_outliers,
            iqr_multiplier=iqr_multiplier,
            zscore_threshold=zscore_threshold,
            transformation=transformation,
            alpha=alpha,
            force_parametric=force_parametric,
            force_nonparametric=force_nonparametric,
            post_hoc=not no_post_hoc,
            p_adjust=p_adjust,
            small_group_policy=small_group_policy,
            levene_center=levene_center,
            min_group_size=min_group_size,
            drop_small_groups=drop_small_groups,
        )
    except AutoAnovaError as e:
        typer.secho(f"\n✗ Analysis failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(result.summary)

    pairs = posthoc_table(result.test)
    if len(pairs):
        typer.echo("")
        typer.echo(pairs.to_string(index=False))

    if json_out is not None:
        json_out.parent.mkdir(parents=True, exist_ok=True)
        json_out.write_text(json.dumps(result_to_dict(result), indent=2))
        typer.echo(f"\n  Result JSON: {json_out}")

    if xlsx_out is not None:
        write_result_workbook(result, xlsx_out)
        typer.echo(f"  Workbook: {xlsx_out}")

    typer.secho(f"\n✓ {result.branch.value} complete", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()

"""Excel workbook export of an analysis result."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pandas as pd

from autoanova.preprocess import compute_group_stats
from autoanova.reports import assumption_table, posthoc_table, terms_table
from autoanova.results import AnalysisResult

_PVALUE_COLUMNS = {"p_value", "p_adj"}
_DECIMAL_COLUMNS = {"statistic", "effect_size", "estimate", "ci_low", "ci_high", "mean", "sd", "median", "iqr"}


def autosize_column(ws: Any, df: pd.DataFrame, col_idx: int, col_name: str, min_width: int = 10, max_width: int = 60):
    """Set column width from the longest of header and content."""
    header_len = len(str(col_name))
    content_len = df[col_name].astype(str).map(len).max() if len(df) > 0 else 0
    width = max(min_width, min(max_width, max(header_len, content_len) + 2))
    ws.set_column(col_idx, col_idx, width)


def create_formats(workbook: Any) -> Dict[str, Any]:
    """Create xlsxwriter format objects.

    Args:
        workbook: xlsxwriter Workbook object

    Returns:
        Dictionary of format objects
    """
    return {
        "pvalue": workbook.add_format({"num_format": "0.00E+00"}),
        "decimal3": workbook.add_format({"num_format": "0.000"}),
        "sig_highlight": workbook.add_format({"bg_color": "#FFEB9C", "font_color": "#9C5700"}),
    }


def write_sheet(writer: pd.ExcelWriter, df: pd.DataFrame, sheet_name: str, formats: Dict[str, Any], alpha: float):
    """Write a DataFrame with frozen header, autofilter and number formats.

    Empty frames are skipped. P-value columns get a highlight below ``alpha``.
    """
    if df.empty:
        return

    df.to_excel(writer, sheet_name=sheet_name, index=False)
    ws = writer.sheets[sheet_name]
    ws.freeze_panes(1, 0)
    ws.autofilter(0, 0, len(df), len(df.columns) - 1)

    for col_idx, col_name in enumerate(df.columns):
        autosize_column(ws, df, col_idx, col_name)
        if col_name in _PVALUE_COLUMNS:
            ws.set_column(col_idx, col_idx, None, formats["pvalue"])
            ws.conditional_format(
                1,
                col_idx,
                len(df),
                col_idx,
                {"type": "cell", "criteria": "<", "value": alpha, "format": formats["sig_highlight"]},
            )
        elif col_name in _DECIMAL_COLUMNS:
            ws.set_column(col_idx, col_idx, None, formats["decimal3"])


def write_result_workbook(result: AnalysisResult, out_xlsx: Path) -> Path:
    """Write a result to an .xlsx workbook.

    Sheets: Summary, Group_Stats, Assumptions, Omnibus, PostHoc (when run),
    Diagnostics (when any).

    Args:
        result: Completed analysis
        out_xlsx: Output path

    Returns:
        Path to created workbook
    """
    out_xlsx = Path(out_xlsx)
    out_xlsx.parent.mkdir(parents=True, exist_ok=True)
    config = result.config
    alpha = result.verdict.alpha

    summary = pd.DataFrame({"summary": result.summary.splitlines()})
    group_stats = compute_group_stats(result.data, config.response, list(result.design.factors))
    diagnostics = pd.DataFrame(
        [{"stage": d.stage, "level": d.level, "message": d.message} for d in result.diagnostics]
    )

    with pd.ExcelWriter(out_xlsx, engine="xlsxwriter") as writer:
        formats = create_formats(writer.book)
        write_sheet(writer, summary, "Summary", formats, alpha)
        write_sheet(writer, group_stats, "Group_Stats", formats, alpha)
        write_sheet(writer, assumption_table(result.verdict), "Assumptions", formats, alpha)
        write_sheet(writer, terms_table(result.test), "Omnibus", formats, alpha)
        write_sheet(writer, posthoc_table(result.test), "PostHoc", formats, alpha)
        write_sheet(writer, diagnostics, "Diagnostics", formats, alpha)

    return out_xlsx

"""
Weak-IV Reporting Functions
===========================

Functions for tabular export of a run, summary tables and LaTeX output.
"""

from typing import TYPE_CHECKING, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from weakiv.diagnostics import classify_instrument

if TYPE_CHECKING:
    from weakiv.histogram import BinData
    from weakiv.simulation import SimulationParams, SimulationResult


REPLICATION_COLUMNS = ["Replication", "OLS_Estimate", "IV_Estimate", "F_Statistic"]


def replication_table(result: "SimulationResult") -> pd.DataFrame:
    """
    One row per replication, numbered from 1.

    Columns: Replication, OLS_Estimate, IV_Estimate, F_Statistic.
    """
    frame = result.to_frame()
    return pd.DataFrame({
        "Replication": frame["replication"] + 1,
        "OLS_Estimate": frame["ols"],
        "IV_Estimate": frame["iv"],
        "F_Statistic": frame["f_stat"],
    }, columns=REPLICATION_COLUMNS)


def to_csv(
    result: "SimulationResult",
    path: Optional[str] = None,
    float_format: str = "%.6f",
) -> Optional[str]:
    """
    Write the replication table as CSV.

    Parameters
    ----------
    result : SimulationResult
        Completed run.
    path : str, optional
        Destination file. If None, the CSV text is returned.
    float_format : str, default '%.6f'
        Format for the estimate columns.

    Returns
    -------
    str or None
        CSV text when ``path`` is None.
    """
    return replication_table(result).to_csv(
        path, index=False, float_format=float_format,
    )


def export_filename(params: "SimulationParams", extension: str = "csv") -> str:
    """
    Default download name, e.g. ``weak_iv_sim_N500_Pi0.5_Rho0.8.csv``.

    Numbers are written positionally with trailing zeros trimmed, so
    π = 0.00001 gives ``Pi0.00001`` and π = 1.0 gives ``Pi1``.
    """
    pi = np.format_float_positional(params.iv_strength, trim="-")
    rho = np.format_float_positional(params.endogeneity, trim="-")
    return f"weak_iv_sim_N{params.sample_size}_Pi{pi}_Rho{rho}.{extension}"


def histogram_table(bins: Sequence["BinData"]) -> pd.DataFrame:
    """Bin ranges and frequencies as a DataFrame."""
    return pd.DataFrame(
        [b.to_dict() for b in bins],
        columns=["range_start", "range_end", "midpoint",
                 "ols_frequency", "iv_frequency"],
    )


def summary_table(
    results: List["SimulationResult"],
    include_f: bool = True,
) -> pd.DataFrame:
    """
    Create a summary table comparing several runs.

    Parameters
    ----------
    results : list of SimulationResult
        Runs to compare, e.g. over a grid of π.
    include_f : bool, default True
        Whether to include the mean first-stage F and its description.

    Returns
    -------
    pd.DataFrame
        Summary table with one row per result.
    """
    rows = []
    for r in results:
        p = r.params
        row = {
            'N': p.sample_size,
            'R': r.n_replications,
            'π': p.iv_strength,
            'ρ': p.endogeneity,
            'OLS Bias': r.ols_bias,
            'IV Bias': r.iv_bias,
            'OLS Var': r.ols_variance,
            'IV Var': r.iv_variance,
        }

        if include_f:
            row['Mean F'] = r.mean_f_stat
            row['Instrument'] = classify_instrument(r.mean_f_stat)["description"]

        rows.append(row)

    return pd.DataFrame(rows)


def to_latex(
    df: pd.DataFrame,
    caption: Optional[str] = None,
    label: Optional[str] = None,
    float_format: str = "%.3f",
) -> str:
    """
    Export a DataFrame to LaTeX table format.

    Parameters
    ----------
    df : pd.DataFrame
        Table to export.
    caption : str, optional
        Table caption.
    label : str, optional
        LaTeX label for referencing.
    float_format : str, default '%.3f'
        Format string for floating point numbers.

    Returns
    -------
    str
        LaTeX table code.
    """
    latex = df.to_latex(
        index=False,
        float_format=float_format,
        escape=False,
    )

    if caption or label:
        lines = latex.split('\n')

        insert_point = len(lines)
        for i, line in enumerate(lines):
            if '\\end{tabular}' in line:
                insert_point = i + 1
                break

        additions = []
        if caption:
            additions.append(f'\\caption{{{caption}}}')
        if label:
            additions.append(f'\\label{{{label}}}')

        for j, add in enumerate(additions):
            lines.insert(insert_point + j, add)

        latex = '\n'.join(lines)

    return latex


def format_estimator(name: str, bias: float, variance: float, digits: int = 4) -> str:
    """
    Format one estimator's summary, e.g. "OLS: bias = +0.7981, var = 0.0007".
    """
    return f"{name}: bias = {bias:+.{digits}f}, var = {variance:.{digits}f}"


def print_summary(results: Union["SimulationResult", List["SimulationResult"]]) -> None:
    """
    Print a formatted summary of one or more runs to console.
    """
    if not isinstance(results, list):
        results = [results]

    print("\n" + "=" * 70)
    print("WEAK-IV MONTE CARLO SUMMARY")
    print("=" * 70)

    for i, r in enumerate(results):
        if i > 0:
            print("-" * 70)

        p = r.params
        instrument = classify_instrument(r.mean_f_stat)
        print(f"\nN = {p.sample_size}, R = {r.n_replications}, "
              f"π = {p.iv_strength}, ρ = {p.endogeneity}, β = {p.beta_true}")
        print(f"  {format_estimator('OLS', r.ols_bias, r.ols_variance)}")
        print(f"  {format_estimator('IV ', r.iv_bias, r.iv_variance)}")
        print(f"  Mean F = {r.mean_f_stat:.1f}  ({instrument['description']})")

    print("\n" + "=" * 70)

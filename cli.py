# ============================================================================
# cli.py - Command Line Interface
# ============================================================================
"""
This module handles:
- The `cugold run` command: load configuration, run the analysis, render results
- Writing diagnostic tables (CSV) and figures (HTML) to an output directory
- The `cugold show-config` command for inspecting the resolved configuration
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import pandas as pd
import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config import PipelineConfig, load_config
from exceptions import PipelineError
from logging_config import setup_logging

app = typer.Typer(add_completion=False, help="Copper/gold ratio vs. Treasury spread VAR analysis")
console = Console()


def _fmt(x: object, digits: int = 4) -> str:
    if isinstance(x, bool):
        return "yes" if x else "no"
    if isinstance(x, (int, float)):
        return f"{float(x):.{digits}f}"
    return str(x)


def _table(title: str, rows: list[dict], columns: list[str]) -> Table:
    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, justify="left" if col in ("Variable", "Cause", "Effect", "Pair") else "right")
    for row in rows:
        table.add_row(*[_fmt(row[c]) for c in columns])
    return table


def _render(report) -> None:
    s = report.summary()["sample"]
    console.print(Panel.fit(
        f"Sample {s['start']} to {s['end']} ({s['months']} months)\n"
        f"Train differences: {s['train_diff_rows']}  Test differences: {s['test_diff_rows']}\n"
        f"Selected lag order (AIC): {report.lag_selection.selected}  "
        f"Stable: {_fmt(report.is_stable)}",
        title="Copper/Gold vs. 10Y-2Y",
    ))

    console.print(_table("ADF on first differences", report.adf_results,
                         ["Variable", "ADF Statistic", "p-value", "Lags Used", "Stationary"]))
    console.print(_table("KPSS on first differences", report.kpss_results,
                         ["Variable", "KPSS Statistic", "p-value", "Stationary"]))
    console.print(_table("Lag order selection", report.lag_selection.table.to_dict("records"),
                         ["Lag", "AIC", "BIC", "HQIC", "FPE"]))
    console.print(_table("Granger causality (F-test)", report.granger,
                         ["Cause", "Effect", "F Statistic", "df (num)", "df (denom)", "p-value", "Significant"]))
    console.print(_table("Instantaneous causality", report.instantaneous,
                         ["Pair", "Test Statistic", "p-value", "Significant"]))

    metrics = report.forecast.metrics.reset_index().to_dict("records")
    console.print(_table("Out-of-sample forecast accuracy", metrics,
                         ["Variable", "MAE", "RMSE", "MAPE (%)"]))


def _write_outputs(report, output_dir: Path) -> None:
    from plots import plot_irf_with_ci, plot_ratio

    output_dir.mkdir(parents=True, exist_ok=True)
    tables = {
        "lag_selection.csv": report.lag_selection.table,
        "coefficients.csv": report.coefficients,
        "stability.csv": report.stability,
        "irf.csv": report.irf.to_frame(),
        "fevd.csv": report.fevd_table,
        "forecast.csv": report.forecast.forecasts,
        "forecast_metrics.csv": report.forecast.metrics,
    }
    for name, frame in tables.items():
        frame.to_csv(output_dir / name)

    pd.DataFrame(report.adf_results).to_csv(output_dir / "adf.csv", index=False)
    pd.DataFrame(report.granger).to_csv(output_dir / "granger.csv", index=False)
    pd.concat([report.ratio, report.ratio_ma], axis=1).to_csv(output_dir / "ratio.csv")

    plot_ratio(report.ratio, report.ratio_ma, report.aligned.spread).write_html(output_dir / "ratio.html")
    plot_irf_with_ci(report.irf).write_html(output_dir / "irf.html")
    console.print(f"[green]Wrote tables and figures to {output_dir}[/green]")


@app.command("run")
def run(
    config_path: Path = typer.Argument(..., help="YAML configuration file"),
    cutoff: Optional[str] = typer.Option(None, "--cutoff", help="Train/test cutoff date (YYYY-MM-DD)"),
    lag_max: Optional[int] = typer.Option(None, "--lag-max", help="Upper bound of the lag search"),
    bootstrap: Optional[bool] = typer.Option(None, "--bootstrap/--no-bootstrap", help="Bootstrap IRF bands"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the IRF bootstrap"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Write CSV tables and HTML figures here"),
    json_out: bool = typer.Option(False, "--json", help="Print the run summary as JSON"),
    log_level: str = typer.Option("INFO", "--log-level"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Also write JSON-lines logs here"),
):
    """Run the full analysis and print diagnostics and forecast accuracy."""
    from pipeline import run_analysis

    setup_logging(log_level, str(log_dir) if log_dir else None)
    try:
        config = load_config(config_path).with_overrides(
            cutoff=cutoff, lag_max=lag_max, bootstrap=bootstrap, seed=seed)
        report = run_analysis(config)
    except PipelineError as e:
        console.print(f"[red]Run failed at stage '{e.stage}':[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    if json_out:
        print(json.dumps(report.summary(), indent=2, default=str))
    else:
        _render(report)
    if output_dir:
        _write_outputs(report, output_dir)


@app.command("show-config")
def show_config(
    config_path: Optional[Path] = typer.Argument(None, help="YAML configuration file (defaults if omitted)"),
):
    """Print the resolved configuration."""
    try:
        config = load_config(config_path) if config_path else PipelineConfig()
    except PipelineError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    console.print(yaml.safe_dump(config.to_dict(), sort_keys=False), markup=False)


def main():
    app()


if __name__ == "__main__":
    main()

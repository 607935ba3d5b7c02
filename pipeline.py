# ============================================================================
# pipeline.py - Analysis Run Orchestration
# ============================================================================
"""
Brings all modules together into one linear run:

    align -> ratio -> split -> difference + stationarity -> lag selection
    -> VAR fit -> {Granger causality, IRF/FEVD, forecast evaluation}

Each stage consumes the previous stage's output and never modifies it. The
first failure stops the run; nothing downstream is computed from it.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass

import pandas as pd

from causality_irf import (
    comprehensive_granger_causality,
    compute_fevd,
    compute_irf,
    instantaneous_causality,
)
from data_loader import (
    align_series,
    construct_ratio,
    load_sources,
    rolling_mean,
    split_at_cutoff,
)
from exceptions import (
    AlignmentError,
    EstimationError,
    FitError,
    InputError,
    PipelineError,
)
from forecasting import forecast_and_evaluate
from statistical_tests import check_stationarity, difference_after, difference_pair
from var_model import (
    analyze_coefficient_significance,
    coefficient_table,
    fit_var,
    select_lag_order,
    stability_analysis,
)

logger = logging.getLogger(__name__)

# Cholesky ordering of the orthogonalized shocks: ratio first, spread second
VAR_VARIABLES = ("ratio", "spread")


@dataclass(frozen=True)
class AnalysisReport:
    """Everything one run produced"""
    aligned: object
    ratio: pd.Series
    ratio_ma: pd.Series
    split: object
    train_diff: pd.DataFrame
    test_diff: pd.DataFrame
    adf_results: list
    kpss_results: list
    lag_selection: object
    model: object
    coefficients: pd.DataFrame
    insignificant: pd.DataFrame
    is_stable: bool
    stability: pd.DataFrame
    granger: list
    instantaneous: list
    irf: object
    fevd: object
    fevd_table: pd.DataFrame
    forecast: object

    def summary(self):
        return {
            "sample": {
                "start": str(self.aligned.index[0].date()),
                "end": str(self.aligned.index[-1].date()),
                "months": len(self.aligned.index),
                "train_diff_rows": len(self.train_diff),
                "test_diff_rows": len(self.test_diff),
            },
            "stationarity": {r['Variable']: r['p-value'] for r in self.adf_results},
            "lag_order": self.lag_selection.selected,
            "stable": self.is_stable,
            "granger": {f"{g['Cause']} -> {g['Effect']}": g['p-value'] for g in self.granger},
            "forecast_metrics": self.forecast.metrics.to_dict(orient="index"),
        }


# Error raised for an unexpected library failure inside each stage
STAGE_ERRORS = {
    "loading": InputError,
    "alignment": AlignmentError,
    "ratio": InputError,
    "split": AlignmentError,
    "stationarity": FitError,
    "lag selection": EstimationError,
    "estimation": EstimationError,
    "causality": EstimationError,
    "impulse response": EstimationError,
    "forecast": EstimationError,
}


@contextmanager
def _stage(name):
    """Log the stage and make sure anything escaping it is a PipelineError naming it"""
    logger.info(f"Stage: {name}")
    try:
        yield
    except PipelineError as e:
        logger.error(f"Stage '{e.stage}' failed during {name}: {e}", extra={"stage": e.stage})
        raise
    except Exception as e:
        error = STAGE_ERRORS[name](f"Unexpected {type(e).__name__}: {e}", stage=name)
        logger.exception(f"Stage '{name}' failed: {error}", extra={"stage": name})
        raise error from e


def analyze(spread, gold, copper, config):
    """Run every analysis stage on already loaded raw series"""
    with _stage("alignment"):
        aligned = align_series(spread, gold, copper, lag_max=config.lag_max,
                               spread_aggregation=config.spread_aggregation)

    with _stage("ratio"):
        ratio = construct_ratio(aligned.copper, aligned.gold, config.conversion_factor)
        ratio_ma = rolling_mean(ratio, config.rolling_window)
        levels = pd.concat([ratio, aligned.spread], axis=1)[list(VAR_VARIABLES)]

    with _stage("split"):
        split = split_at_cutoff(levels, config.cutoff_date)

    with _stage("stationarity"):
        train_diff = difference_pair(split.train)
        test_diff = difference_after(split.train, split.test).dropna(how="any")
        adf_results, kpss_results = check_stationarity(
            train_diff, regression=config.adf_regression, significance=config.significance)

    with _stage("lag selection"):
        lag_selection = select_lag_order(train_diff, lag_max=config.lag_max,
                                         trend=config.trend_code)

    with _stage("estimation"):
        model = fit_var(train_diff, lag_selection.selected, trend=config.trend_code)
        coefficients = coefficient_table(model)
        _, insignificant = analyze_coefficient_significance(model, config.significance)
        is_stable, stability = stability_analysis(model)

    with _stage("causality"):
        granger = comprehensive_granger_causality(model, config.significance)
        instantaneous = instantaneous_causality(model, config.significance)

    with _stage("impulse response"):
        irf = compute_irf(model, horizon=config.irf_horizon, bootstrap=config.bootstrap,
                          replications=config.bootstrap_reps, seed=config.seed,
                          alpha=config.significance)
        fevd, fevd_table = compute_fevd(model, horizon=config.irf_horizon)

    with _stage("forecast"):
        forecast = forecast_and_evaluate(model, test_diff, alpha=config.forecast_alpha)

    return AnalysisReport(
        aligned=aligned,
        ratio=ratio,
        ratio_ma=ratio_ma,
        split=split,
        train_diff=train_diff,
        test_diff=test_diff,
        adf_results=adf_results,
        kpss_results=kpss_results,
        lag_selection=lag_selection,
        model=model,
        coefficients=coefficients,
        insignificant=insignificant,
        is_stable=is_stable,
        stability=stability,
        granger=granger,
        instantaneous=instantaneous,
        irf=irf,
        fevd=fevd,
        fevd_table=fevd_table,
        forecast=forecast,
    )


def run_analysis(config):
    """Pipeline entry point: load the configured sources and analyze them"""
    with _stage("loading"):
        spread, gold, copper = load_sources(config)
    report = analyze(spread, gold, copper, config)
    logger.info("Analysis run completed")
    return report

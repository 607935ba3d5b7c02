# ============================================================================
# forecasting.py - Out-of-Sample Forecasting and Evaluation Module
# ============================================================================
"""
This module handles:
- Iterated multi-step forecasts from a fitted VARModel (no re-estimation)
- Forecast intervals from the VAR forecast MSE matrices
- Accuracy metrics (MAE, RMSE, MAPE) against held-out data
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats

from exceptions import DivisionByZeroError, EstimationError

logger = logging.getLogger(__name__)

# ============================================================================
# ACCURACY METRICS
# ============================================================================

def mean_absolute_error(actual, predicted):
    actual, predicted = np.asarray(actual, dtype=float), np.asarray(predicted, dtype=float)
    return float(np.mean(np.abs(actual - predicted)))


def root_mean_squared_error(actual, predicted):
    actual, predicted = np.asarray(actual, dtype=float), np.asarray(predicted, dtype=float)
    return float(np.sqrt(np.mean((actual - predicted) ** 2)))


def mean_absolute_percentage_error(actual, predicted, variable=None, dates=None):
    """
    MAPE in percent. Raises DivisionByZeroError when any actual value is
    exactly zero instead of returning inf or dropping the point.
    """
    actual, predicted = np.asarray(actual, dtype=float), np.asarray(predicted, dtype=float)
    zeros = np.flatnonzero(actual == 0)
    if zeros.size:
        context = {"variable": variable, "positions": zeros.tolist()}
        if dates is not None:
            context = {"variable": variable, "dates": [str(dates[i].date()) for i in zeros]}
        raise DivisionByZeroError("MAPE is undefined: actual value is zero", **context)
    return float(np.mean(np.abs(actual - predicted) / np.abs(actual)) * 100)

# ============================================================================
# FORECASTING
# ============================================================================

def forecast_var(model, steps, index=None):
    """
    Apply the fitted equations ``steps`` times, feeding each forecast back in
    as the next lag input. Actual future values are never used.

    The linear trend continues the estimation sample's counter: step ``s``
    uses the value of usable observation ``nobs + s``.
    """
    if steps < 1:
        raise EstimationError("Forecast horizon must be >= 1", stage="forecast", steps=steps)

    p = model.lag_order
    lags = [row for row in model.last_observations]  # oldest first
    forecasts = np.empty((steps, model.n_vars))

    for s in range(1, steps + 1):
        y = model.intercept + model.trend_coef * model.trend_value(model.nobs + s)
        for i in range(p):
            y = y + model.coefs[i] @ lags[-(i + 1)]
        forecasts[s - 1] = y
        lags.append(y)

    return pd.DataFrame(forecasts, columns=list(model.variables), index=index)


def forecast_with_mse_and_ci(model, forecast_df, alpha=0.05):
    """Normal-approximation forecast bounds from the h-step MSE matrices"""
    steps = len(forecast_df)
    mse_matrices = model.results.mse(steps)
    z_score = stats.norm.ppf(1 - alpha / 2)

    std_errors = np.sqrt(np.array([np.diag(m) for m in mse_matrices]))
    lower = forecast_df - z_score * std_errors
    upper = forecast_df + z_score * std_errors
    return lower, upper

# ============================================================================
# EVALUATION
# ============================================================================

@dataclass(frozen=True)
class ForecastResult:
    forecasts: pd.DataFrame
    actual: pd.DataFrame
    lower: pd.DataFrame
    upper: pd.DataFrame
    metrics: pd.DataFrame
    alpha: float


def evaluate_forecast(actual, forecasts):
    """MAE, RMSE and MAPE per variable, as a frame indexed by variable"""
    metrics = []
    for var in forecasts.columns:
        a = actual[var].to_numpy()
        f = forecasts[var].to_numpy()
        metrics.append({
            'Variable': var,
            'MAE': mean_absolute_error(a, f),
            'RMSE': root_mean_squared_error(a, f),
            'MAPE (%)': mean_absolute_percentage_error(a, f, variable=var, dates=actual.index),
        })
    return pd.DataFrame(metrics).set_index('Variable')


def forecast_and_evaluate(model, test_diff, alpha=0.05):
    """
    Forecast over the whole differenced test partition and score it.

    The horizon is the length of ``test_diff`` and forecasts are aligned to
    its dates.
    """
    missing = [v for v in model.variables if v not in test_diff.columns]
    if missing:
        raise EstimationError("Test partition lacks model variables", stage="forecast",
                              missing=missing)
    actual = test_diff[list(model.variables)]
    if actual.empty:
        raise EstimationError("Test partition is empty", stage="forecast")

    forecasts = forecast_var(model, len(actual), index=actual.index)
    lower, upper = forecast_with_mse_and_ci(model, forecasts, alpha=alpha)
    metrics = evaluate_forecast(actual, forecasts)

    for var, row in metrics.iterrows():
        logger.info(f"Forecast {var} over {len(actual)} steps: MAE={row['MAE']:.6f} "
                    f"RMSE={row['RMSE']:.6f} MAPE={row['MAPE (%)']:.2f}%")

    return ForecastResult(forecasts=forecasts, actual=actual, lower=lower, upper=upper,
                          metrics=metrics, alpha=alpha)

"""Tests for iterated VAR forecasts and accuracy metrics."""

import numpy as np
import pandas as pd
import pytest

from exceptions import DivisionByZeroError, EstimationError, PipelineError
from forecasting import (
    evaluate_forecast,
    forecast_and_evaluate,
    forecast_var,
    mean_absolute_error,
    mean_absolute_percentage_error,
    root_mean_squared_error,
)
from tests.conftest import simulate_var1
from var_model import fit_var


@pytest.fixture
def train_test(var_sample):
    return var_sample.iloc[:240], var_sample.iloc[240:]


class TestForecastVar:

    def test_one_step_applies_fitted_equation(self, train_test):
        train, _ = train_test
        model = fit_var(train, 1)

        forecast = forecast_var(model, 1)

        last = train.to_numpy()[-1]
        expected = (model.intercept + model.trend_coef * model.trend_value(model.nobs + 1)
                    + model.coefs[0] @ last)
        np.testing.assert_allclose(forecast.to_numpy()[0], expected, rtol=1e-12)

    def test_later_steps_feed_forecasts_back(self, train_test):
        train, _ = train_test
        model = fit_var(train, 2)

        forecast = forecast_var(model, 3).to_numpy()

        y1, y2 = forecast[0], forecast[1]
        prev = train.to_numpy()[-1]
        expected_y2 = (model.intercept + model.trend_coef * model.trend_value(model.nobs + 2)
                       + model.coefs[0] @ y1 + model.coefs[1] @ prev)
        np.testing.assert_allclose(y2, expected_y2, rtol=1e-12)
        expected_y3 = (model.intercept + model.trend_coef * model.trend_value(model.nobs + 3)
                       + model.coefs[0] @ y2 + model.coefs[1] @ y1)
        np.testing.assert_allclose(forecast[2], expected_y3, rtol=1e-12)

    @pytest.mark.parametrize("lags", [1, 2, 3])
    def test_matches_statsmodels_forecast(self, lags):
        sample = simulate_var1(200, seed=3)
        model = fit_var(sample, lags)

        ours = forecast_var(model, 6).to_numpy()

        theirs = model.results.forecast(sample.to_numpy()[-lags:], steps=6)
        np.testing.assert_allclose(ours, theirs, rtol=1e-10, atol=1e-12)

    def test_horizon_below_one(self, train_test):
        model = fit_var(train_test[0], 1)
        with pytest.raises(EstimationError):
            forecast_var(model, 0)


class TestMetrics:

    def test_values_on_small_arrays(self):
        actual = [1.0, -2.0, 4.0]
        predicted = [2.0, -2.0, 1.0]
        assert mean_absolute_error(actual, predicted) == pytest.approx(4.0 / 3.0)
        assert root_mean_squared_error(actual, predicted) == pytest.approx(np.sqrt(10.0 / 3.0))
        assert mean_absolute_percentage_error(actual, predicted) == pytest.approx(100 * 1.75 / 3.0)

    def test_zero_actual_names_variable_and_date(self):
        dates = pd.date_range("2019-01-01", periods=3, freq="MS")
        with pytest.raises(DivisionByZeroError) as excinfo:
            mean_absolute_percentage_error([0.1, 0.0, 0.2], [0.1, 0.1, 0.1],
                                           variable="spread", dates=dates)
        assert isinstance(excinfo.value, ZeroDivisionError)
        assert isinstance(excinfo.value, PipelineError)
        assert excinfo.value.context == {"variable": "spread", "dates": ["2019-02-01"]}

    def test_zero_actual_without_dates_reports_positions(self):
        with pytest.raises(DivisionByZeroError) as excinfo:
            mean_absolute_percentage_error([0.0, 1.0], [1.0, 1.0])
        assert excinfo.value.context["positions"] == [0]

    def test_metric_frame_per_variable(self, monthly_series):
        actual = pd.concat([monthly_series([1.0, 2.0], name="ratio"),
                            monthly_series([2.0, 4.0], name="spread")], axis=1)
        forecasts = actual + 1.0
        metrics = evaluate_forecast(actual, forecasts)
        assert list(metrics.index) == ["ratio", "spread"]
        assert list(metrics.columns) == ['MAE', 'RMSE', 'MAPE (%)']
        assert metrics.loc["ratio", 'MAE'] == pytest.approx(1.0)
        assert metrics.loc["spread", 'MAPE (%)'] == pytest.approx(37.5)


class TestForecastAndEvaluate:

    def test_forecasts_are_aligned_to_test_dates(self, train_test):
        train, test = train_test
        model = fit_var(train, 2)

        result = forecast_and_evaluate(model, test)

        assert result.forecasts.index.equals(test.index)
        assert list(result.forecasts.columns) == ["ratio", "spread"]
        assert (result.lower.to_numpy() <= result.forecasts.to_numpy()).all()
        assert (result.upper.to_numpy() >= result.forecasts.to_numpy()).all()
        assert set(result.metrics.index) == {"ratio", "spread"}
        assert (result.metrics['RMSE'] >= result.metrics['MAE']).all()

    def test_does_not_look_at_actual_values(self, train_test):
        train, test = train_test
        model = fit_var(train, 1)
        shifted = test + 100.0
        a = forecast_and_evaluate(model, test).forecasts
        b = forecast_and_evaluate(model, shifted).forecasts
        pd.testing.assert_frame_equal(a, b)

    def test_missing_variable(self, train_test):
        train, test = train_test
        model = fit_var(train, 1)
        with pytest.raises(EstimationError) as excinfo:
            forecast_and_evaluate(model, test[["ratio"]])
        assert excinfo.value.context["missing"] == ["spread"]
        assert excinfo.value.stage == "forecast"

    def test_empty_test_partition(self, train_test):
        train, test = train_test
        model = fit_var(train, 1)
        with pytest.raises(EstimationError, match="empty"):
            forecast_and_evaluate(model, test.iloc[:0])

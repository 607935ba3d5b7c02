"""Pytest configuration and shared fixtures."""

import logging

import numpy as np
import pandas as pd
import pytest

from config import PipelineConfig, SourceConfig

# Generating coefficients of the synthetic bivariate VAR(1):
#   ratio[t]  = 0.5 * ratio[t-1]                      + e1
#   spread[t] = 0.3 * ratio[t-1] + 0.4 * spread[t-1]  + e2
TRUE_COEFS = np.array([[0.5, 0.0],
                       [0.3, 0.4]])


def simulate_var1(n, seed, coefs=TRUE_COEFS, burn=50, start="2000-01-01"):
    """Simulate the synthetic VAR(1) on a monthly index."""
    rng = np.random.default_rng(seed)
    k = coefs.shape[0]
    y = np.zeros((n + burn, k))
    noise = rng.standard_normal((n + burn, k))
    for t in range(1, n + burn):
        y[t] = coefs @ y[t - 1] + noise[t]
    index = pd.date_range(start=start, periods=n, freq="MS", name="date")
    return pd.DataFrame(y[burn:], index=index, columns=["ratio", "spread"])


@pytest.fixture
def var_sample():
    """300 months of the synthetic VAR(1)."""
    return simulate_var1(300, seed=7)


@pytest.fixture
def short_var_sample():
    """60 months of the synthetic VAR(1)."""
    return simulate_var1(60, seed=11)


def _business_days(start, end):
    return pd.bdate_range(start=start, end=end)


def write_raw_sources(directory, start="2005-01-01", end="2022-12-31", seed=42):
    """
    Write the three raw sources in their native layouts:
    daily spread with '.' placeholders, descending daily gold quotes with a
    footer block, monthly copper with header rows and an unused column.
    """
    rng = np.random.default_rng(seed)
    days = _business_days(start, end)
    months = pd.date_range(start=start, end=end, freq="MS")

    spread_level = 1.0 + np.cumsum(rng.normal(0, 0.15, len(months)))
    spread_daily = spread_level[days.to_period("M").asi8 - months.to_period("M").asi8[0]]
    spread_daily = np.round(spread_daily + rng.normal(0, 0.05, len(days)), 2)
    spread = pd.DataFrame({"DATE": days.strftime("%Y-%m-%d"), "T10Y2Y": spread_daily.astype(str)})
    spread.loc[::37, "T10Y2Y"] = "."
    spread.to_csv(directory / "T10Y2Y.csv", index=False)

    gold_price = 1000 * np.exp(np.cumsum(rng.normal(0, 0.01, len(days))))
    gold = pd.DataFrame({"Date": days.strftime("%Y-%m-%d"), "Bid": np.round(gold_price, 2),
                         "Ask": np.round(gold_price + 0.5, 2)}).iloc[::-1]
    with open(directory / "gold_spot_daily.csv", "w") as f:
        gold.to_csv(f, index=False)
        f.write("Source: synthetic quotes\n")
        f.write("All prices in USD per troy ounce\n")

    copper_price = 6000 * np.exp(np.cumsum(rng.normal(0, 0.05, len(months))))
    copper = pd.DataFrame({"Year-Month": months.strftime("%Y-%m"),
                           "Price": np.round(copper_price, 2), "Unused": ""})
    with open(directory / "copper_monthly.csv", "w") as f:
        f.write("Monthly copper spot prices\n")
        f.write("USD per metric ton\n")
        copper.to_csv(f, index=False)

    return PipelineConfig(
        spread=SourceConfig(path=str(directory / "T10Y2Y.csv"), date_column="DATE",
                            value_column="T10Y2Y"),
        gold=SourceConfig(path=str(directory / "gold_spot_daily.csv"), date_column="Date",
                          value_column="Bid"),
        copper=SourceConfig(path=str(directory / "copper_monthly.csv"), date_column="Year-Month",
                            value_column="Price", skip_rows=2),
    )


@pytest.fixture
def raw_config(tmp_path):
    """PipelineConfig pointing at freshly written raw source files."""
    return write_raw_sources(tmp_path)


@pytest.fixture
def monthly_series():
    """Factory for a monthly Series on a month-start index."""
    def make(values, start="2010-01-01", name="x"):
        index = pd.date_range(start=start, periods=len(values), freq="MS", name="date")
        return pd.Series(np.asarray(values, dtype=float), index=index, name=name)
    return make


@pytest.fixture
def isolated_logging():
    """Restore the root logger after a test configures logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
    logging.captureWarnings(False)

# ============================================================================
# data_loader.py - Data Loading, Alignment and Ratio Module
# ============================================================================
"""
This module handles:
- Loading the three raw sources (spread, gold spot, copper spot) from CSV/Excel
- Predicate-based cleaning (unparseable dates/values are dropped, never row slices)
- Aligning everything onto a common monthly calendar
- Building the copper-to-gold ratio and its rolling mean
- Splitting aligned data at the train/test cutoff
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from exceptions import AlignmentError, InputError

logger = logging.getLogger(__name__)

MONTH_START = "MS"
EXCEL_SUFFIXES = (".xlsx", ".xls")

# ============================================================================
# FILE READERS
# ============================================================================

def _read_table(source):
    """Read a source file into a raw DataFrame, dispatching on the suffix"""
    path = Path(source.path)
    if not path.exists():
        raise InputError("Source file not found", path=str(path))

    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            return pd.read_excel(path, sheet_name=source.sheet_name, skiprows=source.skip_rows)
        return pd.read_csv(path, skiprows=source.skip_rows, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise InputError(f"Could not read source file: {e}", path=str(path)) from e


def _parse_numbers(raw):
    """Coerce a raw column to floats; '.', blanks and text become NaN"""
    if not pd.api.types.is_numeric_dtype(raw):
        raw = raw.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(raw, errors="coerce")


def load_source(source, name):
    """
    Load one raw source as a clean, ascending Series.

    Rows whose date or value does not parse are dropped. This is what removes
    trailing footer blocks and placeholder values, independent of row counts.
    """
    frame = _read_table(source)
    frame.columns = [str(c).strip() for c in frame.columns]

    missing = [c for c in (source.date_column, source.value_column) if c not in frame.columns]
    if missing:
        raise InputError(f"Missing column(s) {missing}", variable=name,
                         path=source.path, available=list(frame.columns))

    dates = pd.to_datetime(frame[source.date_column], format=source.date_format, errors="coerce")
    values = _parse_numbers(frame[source.value_column])

    valid = dates.notna() & values.notna() & np.isfinite(values)
    n_dropped = int((~valid).sum())
    if not valid.any():
        raise InputError("No rows with a parseable date and numeric value",
                         variable=name, path=source.path)

    series = pd.Series(values[valid].to_numpy(dtype=float),
                       index=pd.DatetimeIndex(dates[valid]), name=name)
    series = series.sort_index()
    series.index.name = "date"

    logger.info(f"Loaded {len(series)} {name} observations from {source.path} "
                f"({series.index[0].date()} to {series.index[-1].date()}, {n_dropped} rows dropped)")
    return series


def load_sources(config):
    """Load the spread, gold and copper sources named in the configuration"""
    return (
        load_source(config.spread, "spread"),
        load_source(config.gold, "gold"),
        load_source(config.copper, "copper"),
    )

# ============================================================================
# MONTHLY ALIGNMENT
# ============================================================================

@dataclass(frozen=True)
class AlignedSeries:
    """Three monthly series sharing one gap-free date index"""
    spread: pd.Series
    gold: pd.Series
    copper: pd.Series

    @property
    def index(self):
        return self.spread.index

    def to_frame(self):
        return pd.concat([self.spread, self.gold, self.copper], axis=1)


def to_monthly(series, how="mean"):
    """One value per calendar month, stamped at the month start"""
    grouped = series.groupby(series.index.to_period("M"))
    monthly = grouped.mean() if how == "mean" else grouped.last()
    monthly.index = monthly.index.to_timestamp(how="start")
    monthly.index.name = "date"
    return monthly.rename(series.name)


def align_series(spread, gold, copper, lag_max, spread_aggregation="mean"):
    """
    Put spread, gold and copper onto the common monthly calendar.

    Gold daily quotes are averaged within each month, the daily spread is
    reduced by ``spread_aggregation``, copper duplicates are averaged. All
    three are truncated to the months every series covers.
    """
    monthly = {
        "spread": to_monthly(spread, spread_aggregation),
        "gold": to_monthly(gold, "mean"),
        "copper": to_monthly(copper, "mean"),
    }

    start = max(s.index[0] for s in monthly.values())
    end = min(s.index[-1] for s in monthly.values())
    if start > end:
        raise AlignmentError("Series do not overlap in time",
                             ranges={k: (str(s.index[0].date()), str(s.index[-1].date()))
                                     for k, s in monthly.items()})

    calendar = pd.date_range(start=start, end=end, freq=MONTH_START, name="date")
    aligned = {}
    for name, series in monthly.items():
        window = series.loc[start:end]
        gaps = calendar.difference(window.index)
        if len(gaps) > 0:
            raise AlignmentError("Series has months without observations inside the common range",
                                 variable=name, missing=[str(d.date()) for d in gaps[:6]])
        aligned[name] = window.reindex(calendar)

    required = lag_max + 2
    if len(calendar) < required:
        raise AlignmentError(f"Only {len(calendar)} common months, need at least {required} "
                             f"for lag_max={lag_max}",
                             start=str(start.date()), end=str(end.date()))

    logger.info(f"Aligned {len(calendar)} months from {start.date()} to {end.date()}")
    return AlignedSeries(**aligned)

# ============================================================================
# COPPER / GOLD RATIO
# ============================================================================

def construct_ratio(copper, gold, conversion_factor=2204.62):
    """Copper per pound divided by the monthly average gold price"""
    if not copper.index.equals(gold.index):
        raise AlignmentError("Copper and gold must be aligned before building the ratio",
                             stage="ratio")

    for name, series in (("copper", copper), ("gold", gold)):
        if (series <= 0).any():
            first_bad = series.index[(series <= 0).to_numpy()][0]
            raise InputError("Prices must be strictly positive", stage="ratio",
                             variable=name, date=str(first_bad.date()))

    ratio = (copper / conversion_factor) / gold
    return ratio.rename("ratio")


def rolling_mean(series, window=12):
    """Trailing (not centered) moving average; NaN for the first window-1 points"""
    return series.rolling(window=window, min_periods=window).mean().rename(f"{series.name}_ma{window}")

# ============================================================================
# TRAIN / TEST SPLIT
# ============================================================================

@dataclass(frozen=True)
class Split:
    train: pd.DataFrame
    test: pd.DataFrame
    cutoff: pd.Timestamp


def split_at_cutoff(data, cutoff):
    """Train = rows dated on or before the cutoff, test = rows after it"""
    cutoff = pd.Timestamp(cutoff)
    train = data.loc[data.index <= cutoff].copy()
    test = data.loc[data.index > cutoff].copy()

    if train.empty or test.empty:
        raise AlignmentError("Cutoff leaves an empty train or test partition", stage="split",
                             cutoff=str(cutoff.date()),
                             start=str(data.index[0].date()), end=str(data.index[-1].date()))

    logger.info(f"Split at {cutoff.date()}: {len(train)} train rows, {len(test)} test rows")
    return Split(train=train, test=test, cutoff=cutoff)

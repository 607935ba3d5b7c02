# ============================================================================
# config.py - Run Configuration Module
# ============================================================================
"""
This module handles:
- The explicit configuration passed into the pipeline entry point
- Loading that configuration from a YAML file
- Validation of every option with documented defaults
"""

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path

import pandas as pd
import yaml

from exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Deterministic terms in each VAR equation, mapped to statsmodels trend codes
TREND_CODES = {
    "both": "ct",   # intercept + linear trend
    "const": "c",
    "none": "n",
}

SPREAD_AGGREGATIONS = ("mean", "last")
ADF_REGRESSIONS = ("c", "ct", "ctt", "n")

# ============================================================================
# SOURCE DESCRIPTIONS
# ============================================================================

@dataclass(frozen=True)
class SourceConfig:
    """Location and layout of one raw input file"""
    path: str
    date_column: str
    value_column: str
    skip_rows: int = 0
    date_format: str = None
    sheet_name: object = 0

    def __post_init__(self):
        if not self.path:
            raise ConfigurationError("Source path must not be empty")
        if not self.date_column or not self.value_column:
            raise ConfigurationError("Source date/value column names must not be empty",
                                     path=self.path)
        if self.skip_rows < 0:
            raise ConfigurationError("skip_rows must be >= 0", path=self.path)


def _default_spread():
    return SourceConfig(path="data/T10Y2Y.csv", date_column="DATE", value_column="T10Y2Y")


def _default_gold():
    return SourceConfig(path="data/gold_spot_daily.csv", date_column="Date", value_column="Bid")


def _default_copper():
    return SourceConfig(path="data/copper_monthly.csv", date_column="Year-Month",
                        value_column="Price", skip_rows=2)

# ============================================================================
# PIPELINE CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """
    Every recognized option of an analysis run.

    Defaults:
        conversion_factor: 2204.62 pounds per metric ton of copper
        rolling_window: 12-month trailing mean for the ratio plot
        cutoff: train = dates <= 2018-12-31, test = later dates
        lag_max: 12, upper bound of the lag-order search
        trend: "both" (intercept + linear trend in every equation)
        irf_horizon: 20 steps for impulse responses and FEVD
        bootstrap: False, bootstrap bands for impulse responses off
    """
    spread: SourceConfig = field(default_factory=_default_spread)
    gold: SourceConfig = field(default_factory=_default_gold)
    copper: SourceConfig = field(default_factory=_default_copper)
    conversion_factor: float = 2204.62
    rolling_window: int = 12
    spread_aggregation: str = "mean"
    cutoff: str = "2018-12-31"
    lag_max: int = 12
    trend: str = "both"
    adf_regression: str = "ct"
    significance: float = 0.05
    irf_horizon: int = 20
    bootstrap: bool = False
    bootstrap_reps: int = 1000
    seed: int = None
    forecast_alpha: float = 0.05

    def __post_init__(self):
        if self.conversion_factor <= 0:
            raise ConfigurationError("conversion_factor must be positive",
                                     conversion_factor=self.conversion_factor)
        if self.rolling_window < 1:
            raise ConfigurationError("rolling_window must be >= 1", rolling_window=self.rolling_window)
        if self.spread_aggregation not in SPREAD_AGGREGATIONS:
            raise ConfigurationError(f"spread_aggregation must be one of {SPREAD_AGGREGATIONS}",
                                     spread_aggregation=self.spread_aggregation)
        try:
            pd.Timestamp(self.cutoff)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"cutoff is not a valid date: {e}", cutoff=self.cutoff) from e
        if self.lag_max < 1:
            raise ConfigurationError("lag_max must be >= 1", lag_max=self.lag_max)
        if self.trend not in TREND_CODES:
            raise ConfigurationError(f"trend must be one of {sorted(TREND_CODES)}", trend=self.trend)
        if self.adf_regression not in ADF_REGRESSIONS:
            raise ConfigurationError(f"adf_regression must be one of {ADF_REGRESSIONS}",
                                     adf_regression=self.adf_regression)
        for name in ("significance", "forecast_alpha"):
            value = getattr(self, name)
            if not 0 < value < 1:
                raise ConfigurationError(f"{name} must lie in (0, 1)", **{name: value})
        if self.irf_horizon < 1:
            raise ConfigurationError("irf_horizon must be >= 1", irf_horizon=self.irf_horizon)
        if self.bootstrap_reps < 1:
            raise ConfigurationError("bootstrap_reps must be >= 1", bootstrap_reps=self.bootstrap_reps)

    @property
    def cutoff_date(self):
        return pd.Timestamp(self.cutoff)

    @property
    def trend_code(self):
        return TREND_CODES[self.trend]

    def with_overrides(self, **overrides):
        """Return a copy with the non-None overrides applied"""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self):
        return asdict(self)

# ============================================================================
# YAML LOADER
# ============================================================================

# YAML section -> PipelineConfig fields it may set
_SECTIONS = {
    "alignment": ("conversion_factor", "rolling_window", "spread_aggregation", "cutoff"),
    "model": ("lag_max", "trend", "adf_regression", "significance"),
    "impulse_response": ("irf_horizon", "bootstrap", "bootstrap_reps", "seed"),
    "forecast": ("forecast_alpha",),
}
_SOURCE_NAMES = ("spread", "gold", "copper")
_SOURCE_FIELDS = {f.name for f in fields(SourceConfig)}


def _check_keys(section, given, allowed):
    unknown = set(given) - set(allowed)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{section}': {sorted(unknown)}")


def _build_source(name, raw, base_dir):
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Source '{name}' must be a mapping")
    _check_keys(f"sources.{name}", raw, _SOURCE_FIELDS)
    missing = {"path", "date_column", "value_column"} - set(raw)
    if missing:
        raise ConfigurationError(f"Source '{name}' is missing {sorted(missing)}")

    values = dict(raw)
    path = Path(values["path"])
    if not path.is_absolute():
        path = base_dir / path
    values["path"] = str(path)
    return SourceConfig(**values)


def config_from_dict(raw, base_dir="."):
    """Build a PipelineConfig from the parsed YAML structure"""
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be a mapping")
    _check_keys("root", raw, ("sources",) + tuple(_SECTIONS))

    kwargs = {}
    sources = raw.get("sources") or {}
    _check_keys("sources", sources, _SOURCE_NAMES)
    for name, source in sources.items():
        kwargs[name] = _build_source(name, source, Path(base_dir))

    for section, allowed in _SECTIONS.items():
        values = raw.get(section) or {}
        _check_keys(section, values, allowed)
        kwargs.update(values)

    if "cutoff" in kwargs:
        kwargs["cutoff"] = str(kwargs["cutoff"])

    try:
        return PipelineConfig(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e


def load_config(config_path):
    """Load and validate a YAML configuration file"""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError("Configuration file not found", path=str(path))

    with open(path, "r", encoding="utf-8") as file:
        try:
            raw = yaml.safe_load(file)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse YAML: {e}", path=str(path)) from e

    config = config_from_dict(raw, base_dir=path.parent)
    logger.info(f"Loaded configuration from {path}")
    return config

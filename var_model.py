# ============================================================================
# var_model.py - VAR Lag Selection, Estimation and Diagnostics Module
# ============================================================================
"""
This module handles:
- Lag order selection by information criteria on a common sample
- VAR estimation (OLS per equation with intercept + linear trend)
- The immutable fitted model handed to every downstream analysis
- Coefficient significance and stability analysis
"""

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import ValueWarning
from statsmodels.tsa.api import VAR

from exceptions import EstimationError

logger = logging.getLogger(__name__)

FREQUENCY_NOTICE = r".*frequency"


def _n_trend_terms(trend):
    return 0 if trend == "n" else len(trend)


def _frozen(values):
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


def _fit_statsmodels_var(data, lag_order, trend, stage):
    """Fit a statsmodels VAR, turning its failures into EstimationError"""
    with warnings.catch_warnings():
        # frequency inference notices on sliced monthly indexes
        warnings.filterwarnings("ignore", message=FREQUENCY_NOTICE, category=ValueWarning)
        try:
            return VAR(data).fit(lag_order, trend=trend)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise EstimationError(f"VAR({lag_order}) could not be estimated: {e}", stage=stage,
                                  lag_order=lag_order, observations=len(data)) from e

# ============================================================================
# FITTED MODEL
# ============================================================================

@dataclass(frozen=True)
class VARModel:
    """
    A fitted VAR bound to its variable ordering and sample window.

    ``coefs[i][eq, var]`` is the coefficient of ``var`` at lag ``i + 1`` in the
    equation of ``eq``. Arrays are read-only.

    The linear trend regressor of the t-th usable observation (t = 1..nobs) is
    ``trend_offset + t``.
    """
    variables: tuple
    lag_order: int
    trend: str
    coefs: np.ndarray
    intercept: np.ndarray
    trend_coef: np.ndarray
    trend_offset: int
    sigma_u: np.ndarray
    nobs: int
    sample_start: pd.Timestamp
    sample_end: pd.Timestamp
    last_observations: np.ndarray
    results: object = field(repr=False, compare=False)

    @property
    def n_vars(self):
        return len(self.variables)

    @property
    def aic(self):
        return float(self.results.aic)

    @property
    def bic(self):
        return float(self.results.bic)

    def trend_value(self, t):
        return self.trend_offset + t

    def index_of(self, name):
        try:
            return self.variables.index(name)
        except ValueError:
            raise KeyError(f"'{name}' is not a model variable {list(self.variables)}") from None

# ============================================================================
# ESTIMATION
# ============================================================================

def _validate_sample(data, lag_order, trend, stage):
    values = data.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        bad = [c for c in data.columns if not np.isfinite(data[c].to_numpy(dtype=float)).all()]
        raise EstimationError("Sample contains non-finite values", stage=stage, variables=bad)
    if lag_order < 1:
        raise EstimationError("Lag order must be >= 1", stage=stage, lag_order=lag_order)

    n_regressors = data.shape[1] * lag_order + _n_trend_terms(trend)
    nobs = len(data) - lag_order
    if nobs <= n_regressors:
        raise EstimationError(f"{nobs} usable observations cannot identify {n_regressors} "
                              f"regressors per equation", stage=stage,
                              lag_order=lag_order, sample_size=len(data))


def fit_var(data, lag_order, trend="ct"):
    """
    Estimate VAR(p) by OLS, one equation per column of ``data``.

    Raises EstimationError on non-finite input, p < 1, too few observations or
    a rank-deficient design matrix.
    """
    _validate_sample(data, lag_order, trend, stage="estimation")
    results = _fit_statsmodels_var(data, lag_order, trend, stage="estimation")

    design = np.asarray(results.endog_lagged)
    rank = np.linalg.matrix_rank(design)
    if rank < design.shape[1]:
        raise EstimationError("Design matrix is rank-deficient", lag_order=lag_order,
                              rank=int(rank), regressors=design.shape[1])

    k_trend = _n_trend_terms(trend)
    deterministic = np.asarray(results.params)[:k_trend]
    n_vars = data.shape[1]
    intercept = deterministic[0] if "c" in trend else np.zeros(n_vars)
    trend_coef = deterministic[k_trend - 1] if "t" in trend else np.zeros(n_vars)
    # statsmodels counts the trend over the full sample, presample rows included
    trend_offset = int(round(design[0, k_trend - 1])) - 1 if "t" in trend else 0

    model = VARModel(
        variables=tuple(data.columns),
        lag_order=int(lag_order),
        trend=trend,
        coefs=_frozen(results.coefs),
        intercept=_frozen(intercept),
        trend_coef=_frozen(trend_coef),
        trend_offset=trend_offset,
        sigma_u=_frozen(results.sigma_u),
        nobs=int(results.nobs),
        sample_start=data.index[0],
        sample_end=data.index[-1],
        last_observations=_frozen(data.to_numpy(dtype=float)[-lag_order:]),
        results=results,
    )
    logger.info(f"Fitted VAR({lag_order}) trend={trend} on {model.nobs} observations "
                f"({data.index[0].date()} to {data.index[-1].date()}), AIC={model.aic:.4f}")
    return model

# ============================================================================
# LAG ORDER SELECTION
# ============================================================================

@dataclass(frozen=True)
class LagSelection:
    table: pd.DataFrame
    selected: int
    lag_max: int
    nobs: int


def select_lag_order(data, lag_max=12, trend="ct"):
    """
    Pick the VAR lag order minimizing AIC over 1..lag_max.

    Every candidate is fitted on the same dependent sample, the last
    ``n - lag_max`` rows, so the criteria are comparable. Ties go to the
    smallest lag.
    """
    _validate_sample(data, lag_max, trend, stage="lag selection")
    usable = len(data) - lag_max

    ic_results = []
    for lag in range(1, lag_max + 1):
        sample = data.iloc[lag_max - lag:]
        var_temp = _fit_statsmodels_var(sample, lag, trend, stage="lag selection")
        if var_temp.nobs != usable:
            raise EstimationError("Candidate models were not fitted on a common sample",
                                  stage="lag selection", lag_order=lag, nobs=var_temp.nobs)
        ic_results.append({
            'Lag': lag,
            'AIC': var_temp.aic,
            'BIC': var_temp.bic,
            'HQIC': var_temp.hqic,
            'FPE': var_temp.fpe,
        })

    criteria_df = pd.DataFrame(ic_results)
    if not np.isfinite(criteria_df['AIC']).any():
        raise EstimationError("No candidate lag order produced a finite AIC",
                              stage="lag selection", lag_max=lag_max)

    aic = criteria_df['AIC'].where(np.isfinite(criteria_df['AIC']))
    selected = int(criteria_df.loc[aic.idxmin(), 'Lag'])
    logger.info(f"Lag selection over 1..{lag_max} on {usable} observations: "
                f"AIC selects p={selected}")
    return LagSelection(table=criteria_df, selected=selected, lag_max=lag_max, nobs=usable)

# ============================================================================
# COEFFICIENT SIGNIFICANCE
# ============================================================================

def coefficient_table(model):
    """Estimate, standard error, t-statistic and p-value for every coefficient"""
    res = model.results
    rows = []
    params = pd.DataFrame(res.params)
    stderr = pd.DataFrame(res.stderr)
    tvalues = pd.DataFrame(res.tvalues)
    pvalues = pd.DataFrame(res.pvalues)
    for j, eq in enumerate(params.columns):
        for i, param in enumerate(params.index):
            rows.append({
                'Equation': eq,
                'Parameter': param,
                'Coefficient': params.iat[i, j],
                'Std. Error': stderr.iat[i, j],
                't-stat': tvalues.iat[i, j],
                'p-value': pvalues.iat[i, j],
            })
    return pd.DataFrame(rows)


def analyze_coefficient_significance(model, significance_level=0.05):
    """Lagged coefficients that are insignificant at the given level"""
    table = coefficient_table(model)
    deterministic = table['Parameter'].isin(["const", "trend"])
    insignificant = table[~deterministic & (table['p-value'] > significance_level)]
    return len(insignificant), insignificant.reset_index(drop=True)

# ============================================================================
# STABILITY ANALYSIS
# ============================================================================

def companion_matrix(model):
    k, p = model.n_vars, model.lag_order
    companion = np.zeros((k * p, k * p))
    companion[:k, :] = np.hstack(list(model.coefs))
    if p > 1:
        companion[k:, :-k] = np.eye(k * (p - 1))
    return companion


def stability_analysis(model):
    """Eigenvalues of the companion matrix; stable iff every modulus is < 1"""
    eigenvalues = np.linalg.eigvals(companion_matrix(model))
    moduli = np.abs(eigenvalues)

    stability_df = pd.DataFrame({
        'Index': np.arange(1, len(eigenvalues) + 1),
        'Eigenvalue (Real)': np.real(eigenvalues),
        'Eigenvalue (Imag)': np.imag(eigenvalues),
        'Modulus': moduli,
        'Stable': moduli < 1,
    })
    is_stable = bool((moduli < 1).all())
    if not is_stable:
        logger.warning(f"VAR({model.lag_order}) is not stable: max modulus {moduli.max():.4f}")
    return is_stable, stability_df

# ============================================================================
# causality_irf.py - Granger Causality, IRF and FEVD Module
# ============================================================================
"""
This module handles:
- Granger causality F-tests in both directions of the fitted VAR
- Instantaneous causality tests on the residual covariance
- Orthogonalized Impulse Response Functions, optionally with residual-bootstrap bands
- Forecast error variance decomposition (FEVD)

Every function is a read-only analysis of an already fitted VARModel.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.stats import chi2

from var_model import _fit_statsmodels_var

logger = logging.getLogger(__name__)

# ============================================================================
# GRANGER CAUSALITY
# ============================================================================

def granger_causality(model, cause, effect, significance_level=0.05):
    """
    F-test of H0: every lag of ``cause`` has a zero coefficient in the
    equation of ``effect``.
    """
    model.index_of(cause)
    model.index_of(effect)
    test = model.results.test_causality(caused=effect, causing=[cause], kind="f",
                                        signif=significance_level)
    df_num, df_denom = test.df
    significant = bool(test.pvalue < significance_level)

    result = {
        'Cause': cause,
        'Effect': effect,
        'F Statistic': float(test.test_statistic),
        'df (num)': int(df_num),
        'df (denom)': int(df_denom),
        'p-value': float(test.pvalue),
        'Critical Value': float(test.crit_value),
        'Significant': significant,
        'Interpretation': f"{cause} {'does' if significant else 'does NOT'} Granger-cause {effect}",
    }
    logger.info(f"Granger {cause} -> {effect}: F={result['F Statistic']:.4f} "
                f"df=({df_num}, {df_denom}) p={result['p-value']:.4f}")
    return result


def comprehensive_granger_causality(model, significance_level=0.05):
    """Granger tests for every ordered pair of model variables"""
    return [
        granger_causality(model, cause, effect, significance_level)
        for cause in model.variables
        for effect in model.variables
        if cause != effect
    ]

# ============================================================================
# INSTANTANEOUS CAUSALITY
# ============================================================================

def instantaneous_causality(model, significance_level=0.05):
    """
    Wald test on the residual covariance matrix.
    Tests H0: sigma_ij = 0 for every pair i < j.
    """
    results = []
    sigma_u = model.sigma_u
    n_obs = model.nobs
    critical_value = chi2.ppf(1 - significance_level, df=1)

    for i, var1 in enumerate(model.variables):
        for j, var2 in enumerate(model.variables):
            if i < j:
                sigma_ij = sigma_u[i, j]
                test_stat = n_obs * sigma_ij ** 2 / (sigma_u[i, i] * sigma_u[j, j])
                p_value = float(chi2.sf(test_stat, df=1))
                results.append({
                    'Pair': f"{var1} <-> {var2}",
                    'Covariance': float(sigma_ij),
                    'Test Statistic': float(test_stat),
                    'p-value': p_value,
                    'Critical Value': float(critical_value),
                    'Significant': p_value < significance_level,
                })
    return results

# ============================================================================
# IMPULSE RESPONSES
# ============================================================================

@dataclass(frozen=True)
class ImpulseResponse:
    """
    Orthogonalized responses indexed ``[step, response, impulse]`` for steps
    0..horizon. ``lower``/``upper`` are only set when bands were bootstrapped.
    """
    variables: tuple
    horizon: int
    responses: np.ndarray
    lower: np.ndarray = None
    upper: np.ndarray = None
    alpha: float = None

    @property
    def has_bands(self):
        return self.lower is not None

    def to_frame(self):
        rows = []
        for step in range(self.horizon + 1):
            for r, response in enumerate(self.variables):
                for i, impulse in enumerate(self.variables):
                    row = {
                        'Step': step,
                        'Impulse': impulse,
                        'Response': response,
                        'Value': self.responses[step, r, i],
                    }
                    if self.has_bands:
                        row['Lower'] = self.lower[step, r, i]
                        row['Upper'] = self.upper[step, r, i]
                    rows.append(row)
        return pd.DataFrame(rows)


def _simulate_from_residuals(model, rng):
    """
    One residual-bootstrap sample: the first ``p`` observations are kept and the
    rest rebuilt from the fitted equations with resampled, centered residuals.
    """
    results = model.results
    endog = np.asarray(results.endog, dtype=float)
    resid = np.asarray(results.resid, dtype=float)
    resid = resid - resid.mean(axis=0)
    p = model.lag_order

    draws = resid[rng.integers(0, len(resid), size=len(resid))]
    sample = endog.copy()
    for t in range(p, len(sample)):
        y = model.intercept + model.trend_coef * model.trend_value(t - p + 1) + draws[t - p]
        for i in range(p):
            y = y + model.coefs[i] @ sample[t - i - 1]
        sample[t] = y
    return sample


def _bootstrap_irf_bands(model, horizon, replications, rng, alpha):
    """Percentile bands of orthogonalized responses refitted on bootstrap samples"""
    collected = np.empty((replications, horizon + 1, model.n_vars, model.n_vars))
    for r in range(replications):
        sample = _simulate_from_residuals(model, rng)
        refit = _fit_statsmodels_var(sample, model.lag_order, model.trend, stage="impulse response")
        collected[r] = refit.orth_ma_rep(maxn=horizon)

    lower = np.percentile(collected, 100 * alpha / 2, axis=0)
    upper = np.percentile(collected, 100 * (1 - alpha / 2), axis=0)
    return lower, upper


def compute_irf(model, horizon=20, bootstrap=False, replications=1000, seed=None, alpha=0.05):
    """
    Orthogonalized impulse responses up to ``horizon``.

    Deterministic unless ``bootstrap`` is set; the bands then come from a
    residual bootstrap drawn from a generator seeded with ``seed``.
    """
    irf = model.results.irf(horizon)
    responses = np.array(irf.orth_irfs)
    lower = upper = None

    if bootstrap:
        logger.info(f"Bootstrapping IRF bands: {replications} replications, seed={seed}")
        rng = np.random.default_rng(seed)
        lower, upper = _bootstrap_irf_bands(model, horizon, replications, rng, alpha)

    return ImpulseResponse(
        variables=model.variables,
        horizon=horizon,
        responses=responses,
        lower=lower,
        upper=upper,
        alpha=alpha if bootstrap else None,
    )

# ============================================================================
# FORECAST ERROR VARIANCE DECOMPOSITION
# ============================================================================

def compute_fevd(model, horizon=20):
    """
    Share of each variable's forecast-error variance attributable to each
    orthogonalized shock, for steps 1..horizon. Shares sum to 1 per step.

    Returns an array indexed ``[response, step - 1, shock]`` and a long frame.
    """
    decomp = np.array(model.results.fevd(horizon).decomp)

    rows = []
    for r, response in enumerate(model.variables):
        for h in range(horizon):
            for s, shock in enumerate(model.variables):
                rows.append({
                    'Response': response,
                    'Step': h + 1,
                    'Shock': shock,
                    'Share': decomp[r, h, s],
                })

    long_run = ", ".join(
        f"{response}: {model.variables[int(decomp[r, -1].argmax())]} "
        f"({decomp[r, -1].max() * 100:.1f}%)"
        for r, response in enumerate(model.variables)
    )
    logger.info(f"FEVD dominant shock at step {horizon}: {long_run}")
    return decomp, pd.DataFrame(rows)

"""Tests for Granger causality, impulse responses and FEVD."""

import numpy as np
import pytest

from causality_irf import (
    _simulate_from_residuals,
    comprehensive_granger_causality,
    compute_fevd,
    compute_irf,
    granger_causality,
    instantaneous_causality,
)
from tests.conftest import simulate_var1
from var_model import fit_var


@pytest.fixture
def fitted(var_sample):
    return fit_var(var_sample, 2)


class TestGrangerCausality:

    def test_true_direction_is_detected(self, fitted):
        # spread depends on lagged ratio, ratio does not depend on spread
        result = granger_causality(fitted, cause="ratio", effect="spread")
        assert result['p-value'] < 0.01
        assert result['Significant']
        assert result['df (num)'] == 2  # one restriction per lag

    def test_both_directions_are_reported(self, fitted):
        results = comprehensive_granger_causality(fitted)
        directions = [(r['Cause'], r['Effect']) for r in results]
        assert directions == [("ratio", "spread"), ("spread", "ratio")]
        for r in results:
            assert 0.0 <= r['p-value'] <= 1.0
            assert r['F Statistic'] >= 0.0
            assert r['df (denom)'] > 0

    def test_unknown_variable(self, fitted):
        with pytest.raises(KeyError):
            granger_causality(fitted, cause="gold", effect="spread")

    def test_model_is_not_modified(self, fitted):
        coefs = fitted.coefs.copy()
        comprehensive_granger_causality(fitted)
        instantaneous_causality(fitted)
        np.testing.assert_array_equal(fitted.coefs, coefs)

    def test_instantaneous_causality_on_independent_shocks(self, fitted):
        (result,) = instantaneous_causality(fitted)
        assert result['Pair'] == "ratio <-> spread"
        assert 0.0 <= result['p-value'] <= 1.0
        assert result['Test Statistic'] >= 0.0


class TestImpulseResponse:

    def test_shapes_and_impact_matrix(self, fitted):
        irf = compute_irf(fitted, horizon=20)
        assert irf.responses.shape == (21, 2, 2)
        assert not irf.has_bands
        # the impact response of orthogonalized shocks is the Cholesky factor
        np.testing.assert_allclose(irf.responses[0], np.linalg.cholesky(fitted.sigma_u), rtol=1e-8)

    def test_deterministic_without_bootstrap(self, fitted):
        a = compute_irf(fitted, horizon=10)
        b = compute_irf(fitted, horizon=10)
        np.testing.assert_array_equal(a.responses, b.responses)

    def test_seeded_bootstrap_is_reproducible(self, var_sample):
        model = fit_var(var_sample, 1)
        a = compute_irf(model, horizon=5, bootstrap=True, replications=50, seed=3)
        b = compute_irf(model, horizon=5, bootstrap=True, replications=50, seed=3)
        assert a.has_bands
        assert a.lower.shape == a.responses.shape
        np.testing.assert_array_equal(a.lower, b.lower)
        np.testing.assert_array_equal(a.upper, b.upper)
        assert (a.lower <= a.upper).all()

    def test_bootstrap_rebuild_with_own_residuals_reproduces_sample(self, fitted):
        class _InOrder:
            def integers(self, low, high, size):
                return np.arange(size)

        # OLS residuals with an intercept have zero mean, so centering is a no-op
        sample = _simulate_from_residuals(fitted, _InOrder())

        np.testing.assert_allclose(sample, np.asarray(fitted.results.endog), rtol=1e-8, atol=1e-8)

    def test_long_frame(self, fitted):
        frame = compute_irf(fitted, horizon=4).to_frame()
        assert len(frame) == 5 * 2 * 2
        assert list(frame.columns) == ['Step', 'Impulse', 'Response', 'Value']


class TestFEVD:

    @pytest.mark.parametrize("seed, lags", [(0, 1), (1, 2), (2, 3), (3, 4)])
    def test_shares_sum_to_one_at_every_step(self, seed, lags):
        model = fit_var(simulate_var1(120, seed=seed), lags)

        decomp, table = compute_fevd(model, horizon=20)

        assert decomp.shape == (2, 20, 2)
        np.testing.assert_allclose(decomp.sum(axis=2), 1.0, atol=1e-10)
        assert (decomp >= 0).all()
        sums = table.groupby(['Response', 'Step'])['Share'].sum()
        np.testing.assert_allclose(sums.to_numpy(), 1.0, atol=1e-10)

    def test_first_variable_is_own_shock_at_step_one(self, fitted):
        decomp, _ = compute_fevd(fitted, horizon=5)
        # Cholesky ordering: the first variable only loads on its own shock on impact
        assert decomp[0, 0, 0] == pytest.approx(1.0)

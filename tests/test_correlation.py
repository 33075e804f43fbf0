# tests/test_correlation.py

"""
Tests for theoretical and sample autocovariance functions.
"""

import numpy as np
import pandas as pd
import pytest
from hypothesis import HealthCheck, given, settings

from tests.conftest import NAMES, simulate_var, stable_var1_strategy
from vartoolbox.core.exceptions import (
    DataError, NonStationaryModelError, NumericError, ParameterError
)
from vartoolbox.core.panel import Panel
from vartoolbox.models.time_series.correlation import AutoCovarianceEngine, acf, sample_acf
from vartoolbox.models.time_series.structural import identify
from vartoolbox.models.time_series.var import VAREnsemble, VARModel, VARSpec


def var1(A: np.ndarray, omega: np.ndarray) -> VARModel:
    ny = A.shape[0]
    spec = VARSpec(tuple(f"y{i}" for i in range(ny)), order=1)
    return VARModel(spec, A[:, :, None], np.zeros(ny), np.zeros((ny, 0)), omega, nobs=100)


class TestTheoreticalACF:
    """Tests for autocovariances implied by a stationary VAR."""

    def test_shapes_and_lag_zero(self, var2_model):
        result = AutoCovarianceEngine().acf(var2_model, 6)
        assert result.covariance.shape == (4, 4, 7)
        assert result.max_lag == 6
        gamma0 = result.covariance[:, :, 0]
        np.testing.assert_allclose(gamma0, gamma0.T, atol=1e-12)
        np.testing.assert_allclose(np.diag(result.correlation[:, :, 0]), np.ones(4))
        assert np.all(np.abs(result.correlation) <= 1 + 1e-12)

    def test_yule_walker_equations(self, var2_model, var2_params):
        A1, A2 = var2_params["A"][:, :, 0], var2_params["A"][:, :, 1]
        omega = var2_params["omega"]
        gamma = acf(var2_model, 5).covariance

        # Gamma_0 = A1 Gamma_1' + A2 Gamma_2' + Omega
        np.testing.assert_allclose(gamma[:, :, 0],
                                   A1 @ gamma[:, :, 1].T + A2 @ gamma[:, :, 2].T + omega,
                                   atol=1e-10)
        np.testing.assert_allclose(gamma[:, :, 1], A1 @ gamma[:, :, 0] + A2 @ gamma[:, :, 1].T,
                                   atol=1e-10)
        for k in range(2, 6):
            np.testing.assert_allclose(gamma[:, :, k],
                                       A1 @ gamma[:, :, k - 1] + A2 @ gamma[:, :, k - 2],
                                       atol=1e-10)

    @settings(max_examples=30, deadline=None,
              suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(A=stable_var1_strategy(ny=3))
    def test_var1_lyapunov(self, A):
        omega = np.array([[1.0, 0.3, 0.0], [0.3, 0.8, 0.1], [0.0, 0.1, 0.5]])
        gamma = acf(var1(A, omega), 3).covariance
        np.testing.assert_allclose(gamma[:, :, 0], A @ gamma[:, :, 0] @ A.T + omega,
                                   rtol=1e-8, atol=1e-8)
        np.testing.assert_allclose(gamma[:, :, 3], np.linalg.matrix_power(A, 3) @ gamma[:, :, 0],
                                   rtol=1e-8, atol=1e-8)

    def test_structural_model_has_reduced_form_acf(self, fitted_var2):
        model, _ = fitted_var2
        structural, _ = identify(model, ordering=[1, 3, 0, 2])
        reduced = acf(model, 4)
        np.testing.assert_allclose(acf(structural, 4).covariance, reduced.covariance)

    def test_matches_long_simulation(self, var2_model, var2_params):
        values = simulate_var(np.random.default_rng(11), 40000, var2_params["A"],
                              var2_params["K"], var2_params["omega"], burn=500)
        theory = acf(var2_model, 1)
        sample = sample_acf(values, 1, names=NAMES)
        np.testing.assert_allclose(sample.covariance, theory.covariance, rtol=0.1, atol=0.01)

    def test_non_stationary_model(self):
        explosive = var1(1.02 * np.eye(2), np.eye(2))
        with pytest.raises(NonStationaryModelError):
            acf(explosive, 3)

    def test_ensemble_adds_member_axis(self, var2_model):
        spec = var2_model.spec
        scaled = VARModel(spec, 0.5 * np.asarray(var2_model.A), var2_model.K, var2_model.G,
                          var2_model.omega, nobs=400)
        ensemble = VAREnsemble((var2_model, scaled))
        result = acf(ensemble, 3)
        assert result.covariance.shape == (4, 4, 4, 2)
        np.testing.assert_allclose(result.covariance[..., 0], acf(var2_model, 3).covariance)
        np.testing.assert_allclose(result.covariance[..., 1], acf(scaled, 3).covariance)
        with pytest.raises(ParameterError):
            result.to_frame()

    def test_ensemble_with_explosive_member(self):
        ensemble = VAREnsemble((var1(0.5 * np.eye(2), np.eye(2)), var1(1.1 * np.eye(2), np.eye(2))))
        with pytest.raises(NonStationaryModelError):
            acf(ensemble, 2)
        assert acf(ensemble.stationary(), 2).covariance.shape == (2, 2, 3, 1)

    @pytest.mark.parametrize("max_lag", [-1, 1.5, True])
    def test_invalid_max_lag(self, var2_model, max_lag):
        with pytest.raises(ParameterError):
            acf(var2_model, max_lag)

    def test_frame_view(self, var2_model):
        frame = acf(var2_model, 2).to_frame()
        assert frame.shape == (3, 16)
        assert frame.index.name == "lag"
        assert frame[("yy", "yy")].iloc[0] == pytest.approx(1.0)


class TestSampleACF:
    """Tests for sample autocovariances."""

    @pytest.fixture
    def data(self, rng) -> np.ndarray:
        return rng.standard_normal((200, 3)) + np.array([1.0, -2.0, 0.5])

    def test_matches_direct_computation(self, data):
        result = sample_acf(data, 3)
        x = data - data.mean(axis=0)
        n = x.shape[0]
        for k in range(4):
            expected = x[k:].T @ x[:n - k] / (n - k)
            np.testing.assert_allclose(result.covariance[:, :, k], expected, atol=1e-12)
        assert result.names == ("y0", "y1", "y2")

    def test_large_sample_divisor(self, data):
        result = AutoCovarianceEngine().sample_acf(data, 2, small_sample=False)
        x = data - data.mean(axis=0)
        np.testing.assert_allclose(result.covariance[:, :, 2], x[2:].T @ x[:-2] / 200, atol=1e-12)

    def test_without_demeaning(self, data):
        result = sample_acf(data, 0, demean=False)
        np.testing.assert_allclose(result.covariance[:, :, 0], data.T @ data / 200, atol=1e-12)

    def test_panel_and_frame_inputs(self, var2_panel, var2_frame):
        from_panel = sample_acf(var2_panel, 2)
        from_frame = sample_acf(var2_frame, 2)
        assert from_panel.names == NAMES
        assert from_frame.names == NAMES
        np.testing.assert_allclose(from_panel.covariance, from_frame.covariance)

    def test_one_dimensional_input(self, data):
        result = sample_acf(data[:, 0], 4)
        assert result.covariance.shape == (1, 1, 5)
        assert result.correlation[0, 0, 0] == pytest.approx(1.0)

    def test_errors(self, data):
        with_nan = data.copy()
        with_nan[5, 1] = np.nan
        with pytest.raises(DataError):
            sample_acf(with_nan, 2)
        with pytest.raises(ParameterError):
            sample_acf(data, 200)
        with pytest.raises(NumericError):
            sample_acf(np.ones((10, 2)), 1)

    def test_frame_input_names(self):
        frame = pd.DataFrame({"a": [1.0, 2.0, 0.0, 1.0], "b": [0.0, 1.0, 1.0, 3.0]})
        result = sample_acf(frame, 1)
        assert result.names == ("a", "b")
        assert isinstance(sample_acf(Panel(frame), 1).names, tuple)

    def test_residual_and_shock_panels(self, fitted_var2):
        model, data = fitted_var2
        residual_acf = sample_acf(data.residuals, 1, demean=False, small_sample=False)
        e = data.residuals.values[2:]
        assert residual_acf.names == model.residual_names
        np.testing.assert_allclose(residual_acf.covariance[:, :, 0], model.omega, atol=1e-12)
        np.testing.assert_allclose(residual_acf.covariance[:, :, 1],
                                   e[1:].T @ e[:-1] / model.nobs, atol=1e-12)

        _, shocks = identify(model, data)
        shock_acf = sample_acf(shocks, 1, demean=False, small_sample=False)
        np.testing.assert_allclose(shock_acf.covariance[:, :, 0], np.eye(4), atol=1e-10)

    def test_gaps_inside_the_observed_span(self, var2_frame):
        frame = var2_frame.copy()
        frame.iloc[:3, :] = np.nan
        frame.iloc[-2:, :] = np.nan
        trimmed = sample_acf(Panel(frame), 2)
        expected = sample_acf(var2_frame.iloc[3:-2], 2)
        np.testing.assert_allclose(trimmed.covariance, expected.covariance, atol=1e-12)

        frame.iloc[50, 1] = np.nan
        with pytest.raises(DataError):
            sample_acf(frame, 2)

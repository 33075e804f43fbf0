# tests/test_forecast.py

"""
Tests for unconditional and conditional VAR forecasts.
"""

import numpy as np
import pandas as pd
import pytest

from vartoolbox.core.exceptions import (
    DimensionMismatchError, ForecastError, InsufficientHistoryError, InvalidConditioningPeriodError,
    InvalidInstrumentSpecError, ParameterError
)
from vartoolbox.core.panel import Panel
from vartoolbox.models.time_series.forecast import (
    ConditioningSet, ForecastEngine, as_conditioning_set, forecast, forecast_ensemble
)
from vartoolbox.models.time_series.var import VAREnsemble, VARModel

HORIZON = ("2060Q1", "2061Q4")


def recursion(A: np.ndarray, K: np.ndarray, history: np.ndarray, steps: int) -> np.ndarray:
    """Deterministic forecast y_t = K + sum_l A_l y_{t-l}."""
    p = A.shape[2]
    path = [row for row in history]
    for _ in range(steps):
        value = K.copy()
        for lag in range(1, p + 1):
            value = value + A[:, :, lag - 1] @ path[-lag]
        path.append(value)
    return np.array(path[len(history):])


class TestUnconditionalForecast:
    """Tests for forecasts without conditions."""

    def test_mean_follows_recursion(self, var2_model, var2_panel, var2_params):
        result = ForecastEngine().forecast(var2_model, var2_panel, HORIZON)
        expected = recursion(var2_params["A"], var2_params["K"], var2_panel.values[-2:], 8)

        assert result.horizon == 8
        assert list(result.mean.columns) == ["yy", "pp", "rr", "un"]
        assert result.mean.index[0] == pd.Period("2060Q1", freq="Q")
        np.testing.assert_allclose(result.mean.to_numpy(), expected, atol=1e-12)

    def test_standard_deviations(self, var2_model, var2_panel, var2_params):
        result = forecast(var2_model, var2_panel, HORIZON)
        omega = var2_params["omega"]
        A1 = var2_params["A"][:, :, 0]

        np.testing.assert_allclose(result.std.iloc[0].to_numpy(), np.sqrt(np.diag(omega)))
        np.testing.assert_allclose(result.std.iloc[1].to_numpy(),
                                   np.sqrt(np.diag(omega + A1 @ omega @ A1.T)))
        assert np.all(np.diff(result.std.to_numpy(), axis=0) >= -1e-12)

    def test_mean_only(self, var2_model, var2_panel):
        full = forecast(var2_model, var2_panel, HORIZON)
        mean_only = forecast(var2_model, var2_panel, HORIZON, mean_only=True)
        assert mean_only.std is None
        pd.testing.assert_frame_equal(mean_only.mean, full.mean)

    def test_forecast_inside_sample(self, var2_model, var2_panel, var2_params):
        result = forecast(var2_model, var2_panel, ("2000Q1", "2000Q4"))
        start = var2_panel.position("2000Q1")
        history = var2_panel.values[start - 2:start]
        np.testing.assert_allclose(result.mean.to_numpy(),
                                   recursion(var2_params["A"], var2_params["K"], history, 4))

    def test_integer_indexed_panel(self, var2_model, small_panel):
        result = forecast(var2_model, small_panel, range(120, 124))
        assert list(result.mean.index) == [120, 121, 122, 123]

    def test_insufficient_history(self, var2_model, var2_panel):
        with pytest.raises(InsufficientHistoryError):
            forecast(var2_model, var2_panel, ("1960Q2", "1961Q1"))

        frame = var2_panel.to_frame()
        frame.iloc[-1, 2] = np.nan
        with pytest.raises(InsufficientHistoryError):
            forecast(var2_model, Panel(frame), HORIZON)

    def test_missing_variable(self, var2_model, var2_frame):
        with pytest.raises(DimensionMismatchError):
            forecast(var2_model, var2_frame.drop(columns="rr"), HORIZON)

    def test_overlay_extends_history(self, var2_model, var2_panel):
        result = forecast(var2_model, var2_panel, HORIZON)
        combined = result.overlay(var2_panel)
        assert len(combined) == 408
        assert combined.end == pd.Period("2061Q4", freq="Q")
        np.testing.assert_allclose(combined.values[-8:], result.mean.to_numpy())
        np.testing.assert_allclose(combined.values[:400], var2_panel.values)

    def test_overlay_inside_sample(self, var2_model, var2_panel):
        result = forecast(var2_model, var2_panel, ("2000Q1", "2000Q4"))
        combined = result.overlay(var2_panel)
        assert len(combined) == 400
        start = var2_panel.position("2000Q1")
        np.testing.assert_allclose(combined.values[start:start + 4], result.mean.to_numpy())
        np.testing.assert_allclose(combined.values[start + 4:], var2_panel.values[start + 4:])


class TestConditionalForecast:
    """Tests for forecasts conditioned on variable and instrument paths."""

    def test_empty_conditions_match_unconditional(self, var2_model, var2_panel):
        plain = forecast(var2_model, var2_panel, HORIZON)
        empty = forecast(var2_model, var2_panel, HORIZON, ConditioningSet())
        pd.testing.assert_frame_equal(empty.mean, plain.mean)
        pd.testing.assert_frame_equal(empty.std, plain.std)

    def test_variable_conditions_hold(self, var2_model, var2_panel):
        conditions = {"2060Q2": {"rr": 1.0}, "2060Q4": {"rr": 0.5}}
        result = forecast(var2_model, var2_panel, HORIZON, conditions)
        plain = forecast(var2_model, var2_panel, HORIZON)

        assert result.mean.loc[pd.Period("2060Q2", freq="Q"), "rr"] == pytest.approx(1.0)
        assert result.mean.loc[pd.Period("2060Q4", freq="Q"), "rr"] == pytest.approx(0.5)
        assert result.std.loc[pd.Period("2060Q2", freq="Q"), "rr"] == pytest.approx(0.0, abs=1e-6)
        # Conditioning reduces uncertainty
        assert np.all(result.std.to_numpy() <= plain.std.to_numpy() + 1e-10)
        assert len(result.conditions) == 2

    def test_condition_order_is_irrelevant(self, var2_model, var2_panel):
        first = ConditioningSet().add("2060Q1", "yy", 0.3).add("2060Q3", "un", -0.2)
        second = ConditioningSet().add("2060Q3", "un", -0.2).add("2060Q1", "yy", 0.3)
        a = forecast(var2_model, var2_panel, HORIZON, first)
        b = forecast(var2_model, var2_panel, HORIZON, second)
        np.testing.assert_allclose(a.mean.to_numpy(), b.mean.to_numpy(), atol=1e-10)
        np.testing.assert_allclose(a.std.to_numpy(), b.std.to_numpy(), atol=1e-8)

    def test_single_step_condition_matches_regression(self, var2_model, var2_panel, var2_params):
        # Conditioning yy at the first step moves the others by Omega[:, 0] / Omega[0, 0]
        omega = var2_params["omega"]
        plain = forecast(var2_model, var2_panel, HORIZON)
        first = plain.mean.iloc[0].to_numpy()
        result = forecast(var2_model, var2_panel, HORIZON, {"2060Q1": {"yy": first[0] + 1.0}})
        np.testing.assert_allclose(result.mean.iloc[0].to_numpy(),
                                   first + omega[:, 0] / omega[0, 0], atol=1e-10)

    def test_instrument_condition(self, var2_model, var2_panel):
        model = var2_model.with_instrument("nn := pp + yy")
        result = forecast(model, var2_panel, HORIZON, {"2060Q3": {"nn": 0.0}})
        row = result.mean.loc[pd.Period("2060Q3", freq="Q")]
        assert row["pp"] + row["yy"] == pytest.approx(0.0, abs=1e-10)

    def test_lagged_instrument_reaches_history(self, var2_model, var2_panel):
        model = var2_model.with_instrument("dy := yy - yy{-1}")
        result = forecast(model, var2_panel, HORIZON, {"2060Q1": {"dy": 0.25}})
        last = var2_panel.values[-1, 0]
        assert result.mean.iloc[0]["yy"] - last == pytest.approx(0.25, abs=1e-10)

    def test_instrument_with_constant(self, var2_model, var2_panel):
        model = var2_model.with_instrument("gap := 2*rr - un + 1")
        result = forecast(model, var2_panel, HORIZON, {"2061Q1": {"gap": 3.0}})
        row = result.mean.loc[pd.Period("2061Q1", freq="Q")]
        assert 2 * row["rr"] - row["un"] + 1 == pytest.approx(3.0, abs=1e-10)

    def test_frame_conditions(self, var2_model, var2_panel):
        index = pd.period_range("2060Q1", periods=3, freq="Q")
        frame = pd.DataFrame({"rr": [np.nan, 0.8, np.nan], "un": [0.1, np.nan, np.nan]},
                             index=index)
        result = forecast(var2_model, var2_panel, HORIZON, frame)
        assert len(result.conditions) == 2
        assert result.mean.loc[index[1], "rr"] == pytest.approx(0.8)
        assert result.mean.loc[index[0], "un"] == pytest.approx(0.1)

    @pytest.mark.parametrize("period", ["2059Q4", "2062Q1"])
    def test_condition_outside_horizon(self, var2_model, var2_panel, period):
        with pytest.raises(InvalidConditioningPeriodError):
            forecast(var2_model, var2_panel, HORIZON, {period: {"rr": 1.0}})

    def test_unknown_name(self, var2_model, var2_panel):
        with pytest.raises(InvalidInstrumentSpecError):
            forecast(var2_model, var2_panel, HORIZON, {"2060Q1": {"gdp": 1.0}})

    def test_redundant_conditions(self, var2_model, var2_panel):
        model = var2_model.with_instrument("r2 := 2*rr")
        conditions = ConditioningSet().add("2060Q1", "rr", 1.0).add("2060Q1", "r2", 2.0)
        with pytest.raises(ForecastError):
            forecast(model, var2_panel, HORIZON, conditions)

    def test_condition_fixed_by_history(self, var2_model, var2_panel):
        model = var2_model.with_instrument("ly := yy{-1}")
        with pytest.raises(ForecastError):
            forecast(model, var2_panel, HORIZON, {"2060Q1": {"ly": 0.0}})


class TestConditioningSet:
    """Tests for building conditioning sets."""

    def test_from_mapping_skips_nan(self):
        conditions = ConditioningSet.from_mapping({2: {"a": 1.0, "b": np.nan}, 3: {"a": None}})
        assert conditions.items == ((2, "a", 1.0),)

    def test_add_returns_new_set(self):
        base = ConditioningSet()
        extended = base.add(5, "x", 2)
        assert base.is_empty
        assert extended.items == ((5, "x", 2.0),)

    def test_normalisation(self):
        assert as_conditioning_set(None).is_empty
        frame = pd.DataFrame({"r": [0.5, np.nan]}, index=[100, 101])
        assert as_conditioning_set(frame).items == ((100, "r", 0.5),)
        with pytest.raises(ParameterError):
            as_conditioning_set([("2000Q1", "r", 1.0)])


class TestEnsembleForecast:
    """Tests for forecasts of every ensemble member."""

    @pytest.fixture
    def ensemble(self, var2_model) -> VAREnsemble:
        members = [var2_model]
        for scale in (0.8, 0.9):
            members.append(VARModel(var2_model.spec, scale * np.asarray(var2_model.A),
                                    var2_model.K, var2_model.G, var2_model.omega, nobs=400))
        return VAREnsemble(tuple(members))

    def test_paths_match_member_forecasts(self, ensemble, var2_panel):
        result = forecast_ensemble(ensemble, var2_panel, HORIZON)
        assert result.paths.shape == (8, 4, 3)
        assert result.names == ("yy", "pp", "rr", "un")
        for i, member in enumerate(ensemble):
            single = forecast(member, var2_panel, HORIZON, mean_only=True)
            np.testing.assert_allclose(result.paths[:, :, i], single.mean.to_numpy())

    def test_summaries(self, ensemble, var2_panel):
        result = forecast_ensemble(ensemble, var2_panel, HORIZON)
        np.testing.assert_allclose(result.mean_path.to_numpy(), result.paths.mean(axis=2))
        np.testing.assert_allclose(result.percentile(50).to_numpy(), np.median(result.paths, axis=2))

        bands = result.bands(80)
        assert set(bands) == {"lower", "upper"}
        assert np.all(bands["lower"].to_numpy() <= bands["upper"].to_numpy())
        assert bands["lower"].index.equals(result.index)

        with pytest.raises(ParameterError):
            result.percentile(120)

    def test_conditions_apply_to_every_member(self, ensemble, var2_panel):
        result = forecast_ensemble(ensemble, var2_panel, HORIZON, {"2060Q2": {"pp": 0.4}})
        np.testing.assert_allclose(result.paths[1, 1, :], 0.4)

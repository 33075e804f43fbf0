# tests/test_estimation.py

"""
Tests for VAR estimation and coefficient restrictions.

The unrestricted estimator is checked against statsmodels' VAR, and the
restricted estimator against the restrictions it imposes: fixed values hold
exactly, general restrictions hold to floating tolerance, and text and array
forms of the same restrictions give the same estimates.
"""

import json

import numpy as np
import pytest
from statsmodels.tsa.api import VAR

from tests.conftest import NAMES, simulate_var
from vartoolbox.core.exceptions import (
    DataError, DimensionError, DimensionMismatchError, EstimationError,
    InconsistentConstraintsError, InsufficientHistoryError, NumericWarning, ParameterError
)
from vartoolbox.core.panel import Panel
from vartoolbox.models.time_series.constraints import Coefficient, ConstraintSet
from vartoolbox.models.time_series.estimation import (
    VAREstimator, design_matrices, estimate, ols_fit
)
from vartoolbox.models.time_series.var import VARModel, VARSpec


class TestUnrestrictedEstimation:
    """Tests for ordinary least squares estimation."""

    def test_matches_statsmodels(self, var2_frame, var2_panel, var2_spec):
        model, _ = VAREstimator().estimate(var2_panel, var2_spec)
        reference = VAR(var2_frame.to_numpy()).fit(2, trend="c")

        np.testing.assert_allclose(model.coefficient_matrix(), np.asarray(reference.params),
                                   rtol=1e-8, atol=1e-10)
        np.testing.assert_allclose(model.omega, np.asarray(reference.sigma_u_mle),
                                   rtol=1e-8, atol=1e-12)
        assert model.nobs == reference.nobs

    def test_default_sample_range(self, fitted_var2, var2_panel):
        model, data = fitted_var2
        assert model.sample_range == (var2_panel.period_at(2), var2_panel.end)
        assert data.sample_range == model.sample_range
        assert data.endogenous.start == var2_panel.start
        assert np.isnan(data.residuals.values[:2]).all()
        assert not np.isnan(data.residuals.values[2:]).any()
        assert data.residuals.names == ("res_yy", "res_pp", "res_rr", "res_un")

    def test_explicit_sample_range(self, var2_panel, var2_spec):
        model, data = estimate(var2_panel, var2_spec, sample_range=("1970Q1", "1989Q4"))
        assert model.nobs == 80
        assert str(model.sample_range[0]) == "1970Q1"
        assert str(data.endogenous.start) == "1969Q3"
        assert len(data.endogenous) == 82

    def test_residual_covariance_divides_by_sample_size(self, fitted_var2):
        model, data = fitted_var2
        e = data.residuals.values[2:]
        np.testing.assert_allclose(model.omega, e.T @ e / model.nobs)
        np.testing.assert_allclose(model.omega, model.omega.T)

    def test_parameter_covariance_is_kronecker(self, fitted_var2, var2_panel, var2_spec):
        model, _ = fitted_var2
        X = design_matrices(var2_panel, var2_spec).X
        expected = np.kron(model.omega, np.linalg.inv(X.T @ X))
        np.testing.assert_allclose(model.cov_parameters, expected, rtol=1e-8, atol=1e-14)

    def test_parameter_covariance_is_optional(self, var2_panel, var2_spec):
        model, _ = estimate(var2_panel, var2_spec)
        assert model.cov_parameters is None
        assert model.std_errors is None

    def test_fitted_values_refit_exactly(self, fitted_var2, var2_panel, var2_spec):
        model, data = fitted_var2
        design = design_matrices(var2_panel, var2_spec)
        fitted = data.fitted.values[2:]
        beta = ols_fit(design.X, fitted)
        np.testing.assert_allclose(beta, model.coefficient_matrix(), atol=1e-10)
        np.testing.assert_allclose(fitted - design.X @ beta, 0.0, atol=1e-10)

    def test_consistency_as_sample_grows(self, var2_params):
        true_beta = np.vstack([var2_params["K"][None, :],
                               var2_params["A"][:, :, 0].T,
                               var2_params["A"][:, :, 1].T])
        spec = VARSpec(NAMES, order=2)
        errors = []
        for n_obs in (100, 5000):
            values = simulate_var(np.random.default_rng(7), n_obs, var2_params["A"],
                                  var2_params["K"], var2_params["omega"])
            model, _ = estimate(Panel.from_array(values, NAMES), spec)
            errors.append(np.abs(model.coefficient_matrix() - true_beta).mean())
        assert errors[1] < errors[0]
        assert errors[1] < 0.06

    def test_no_constant(self, var2_frame, var2_panel):
        spec = VARSpec(NAMES, order=2, constant=False)
        model, _ = estimate(var2_panel, spec)
        reference = VAR(var2_frame.to_numpy()).fit(2, trend="n")
        np.testing.assert_allclose(model.coefficient_matrix(), np.asarray(reference.params),
                                   rtol=1e-8, atol=1e-10)
        assert not model.K.any()

    def test_variable_subset_and_order(self, var2_panel):
        spec = VARSpec(("rr", "yy"), order=1)
        model, data = estimate(var2_panel, spec)
        assert model.names == ("rr", "yy")
        assert data.endogenous.names == ("rr", "yy")

    def test_collinear_regressors(self, var2_panel):
        spec = VARSpec(("yy", "pp"), order=1, cointeg=[[1.0, -1.0]])
        with pytest.raises(EstimationError):
            estimate(var2_panel, spec)

    def test_ill_conditioned_regressors_warn(self):
        X = np.zeros((10, 2))
        X[::2, 0] = 1.0
        X[1::2, 1] = 1e-9
        Y = np.arange(10.0)[:, None]
        with pytest.warns(NumericWarning):
            beta = ols_fit(X, Y)
        np.testing.assert_allclose(X @ beta, Y, rtol=1e-6)

    @pytest.mark.asyncio
    async def test_estimate_async(self, var2_panel, var2_spec):
        model, _ = await VAREstimator().estimate_async(var2_panel, var2_spec)
        expected, _ = estimate(var2_panel, var2_spec)
        np.testing.assert_array_equal(model.A, expected.A)


class TestEstimationErrors:
    """Tests for data validation during estimation."""

    def test_missing_variable(self, var2_panel):
        spec = VARSpec(("yy", "gdp"), order=1)
        with pytest.raises(DimensionMismatchError) as excinfo:
            estimate(var2_panel, spec)
        assert excinfo.value.missing == ["gdp"]

    def test_sample_start_without_presample(self, var2_panel, var2_spec):
        with pytest.raises(InsufficientHistoryError) as excinfo:
            estimate(var2_panel, var2_spec, sample_range=(var2_panel.period_at(1), var2_panel.end))
        assert excinfo.value.required == 2
        assert excinfo.value.available == 1

    def test_missing_presample_observation(self, var2_frame, var2_spec):
        frame = var2_frame.copy()
        frame.iloc[0, 1] = np.nan
        with pytest.raises(InsufficientHistoryError):
            estimate(Panel(frame), var2_spec)

    def test_missing_sample_observation(self, var2_frame, var2_spec):
        frame = var2_frame.copy()
        frame.iloc[50, 2] = np.nan
        with pytest.raises(DataError) as excinfo:
            estimate(Panel(frame), var2_spec)
        assert not isinstance(excinfo.value, InsufficientHistoryError)

    def test_missing_data_outside_sample_is_ignored(self, var2_frame, var2_spec):
        frame = var2_frame.copy()
        frame.iloc[300:, :] = np.nan
        model, _ = estimate(Panel(frame), var2_spec,
                            sample_range=(frame.index[2], frame.index[299]))
        assert model.nobs == 298

    def test_sample_beyond_panel_end(self, var2_panel, var2_spec):
        with pytest.raises(DataError):
            estimate(var2_panel, var2_spec,
                     sample_range=(var2_panel.period_at(10), var2_panel.period_at(400)))


class TestVARData:
    """Tests for the residual panel container returned by estimation."""

    def test_fitted_plus_residuals(self, fitted_var2):
        _, data = fitted_var2
        rebuilt = data.fitted.values[2:] + data.residuals.values[2:]
        np.testing.assert_allclose(rebuilt, data.endogenous.values[2:])
        assert np.isnan(data.fitted.values[:2]).all()
        np.testing.assert_array_equal(data.presample, data.endogenous.values[:2])

    def test_combined(self, fitted_var2):
        _, data = fitted_var2
        combined = data.combined()
        assert combined.names == NAMES + ("res_yy", "res_pp", "res_rr", "res_un")
        assert len(combined) == len(data.endogenous)

    def test_zero_residuals(self, fitted_var2):
        _, data = fitted_var2
        zeroed = data.with_residuals_zeroed(["yy", "res_rr"])
        assert not zeroed.residuals.values[2:, 0].any()
        assert not zeroed.residuals.values[2:, 2].any()
        np.testing.assert_array_equal(zeroed.residuals.values[2:, 1], data.residuals.values[2:, 1])
        assert np.isnan(zeroed.residuals.values[:2]).all()
        with pytest.raises(ParameterError):
            data.with_residuals_zeroed(["gdp"])

    def test_replace_residuals(self, fitted_var2):
        _, data = fitted_var2
        replaced = data.with_residuals(np.ones((398, 4)))
        assert (replaced.residuals.values[2:] == 1.0).all()
        with pytest.raises(DimensionError):
            data.with_residuals(np.ones((10, 4)))


class TestConstraintParsing:
    """Tests for the restriction language and its resolution."""

    @pytest.fixture
    def spec(self) -> VARSpec:
        return VARSpec(NAMES, order=2)

    def test_coefficient_index(self, spec):
        assert Coefficient("K", 1).index(spec) == 9
        assert Coefficient("A", 2, 0, 1).index(spec) == 2 * 9 + 1
        assert Coefficient("A", 0, 3, 2).index(spec) == 1 + 4 + 3

    def test_ranges_expand_to_fixed_values(self, spec):
        constraints = ConstraintSet.parse("A(3,1:2,:) = 0", spec)
        assert len(constraints.fixed) == 4
        assert not constraints.linear
        assert {str(c) for c, _ in constraints.fixed} == {
            "A(3,1,1)", "A(3,1,2)", "A(3,2,1)", "A(3,2,2)"
        }

    def test_general_restriction(self, spec):
        constraints = ConstraintSet.parse("A(3,1,1) + A(3,2,1) = -1", spec)
        assert not constraints.fixed
        (linear,) = constraints.linear
        assert linear.rhs == -1.0
        assert [w for _, w in linear.terms] == [1.0, 1.0]

    def test_weights_and_signs(self, spec):
        constraints = ConstraintSet.parse("2*K(1) - 0.5*A(1,1,1) = 3", spec)
        (linear,) = constraints.linear
        assert [w for _, w in linear.terms] == [2.0, -0.5]

    def test_single_weighted_term_becomes_fixed(self, spec):
        constraints = ConstraintSet.parse("2*K(1) = 1", spec)
        assert constraints.fixed == ((Coefficient("K", 0), 0.5),)

    def test_multiple_statements(self, spec):
        constraints = ConstraintSet.parse("K(1) = 0; K(2) = 0\nA(1,1,1) = 0.5", spec)
        assert len(constraints) == 3
        assert len(ConstraintSet.parse(["K(1) = 0", "K(2) = 0"], spec)) == 2

    @pytest.mark.parametrize("text", [
        "A(1,1) = 0",
        "A(5,1,1) = 0",
        "A(1,1,3) = 0",
        "G(1,1) = 0",
        "A(1,:,1) + A(2,1,1) = 0",
        "A(1,1,1) = x",
        "A(1,1,1)",
        "A(1,1,1) A(1,2,1) = 0",
        "B(1,1) = 0",
    ])
    def test_parse_errors(self, spec, text):
        with pytest.raises(ParameterError):
            ConstraintSet.parse(text, spec)

    def test_intercepts_need_constant(self):
        spec = VARSpec(NAMES, order=2, constant=False)
        with pytest.raises(ParameterError):
            ConstraintSet.parse("K(1) = 0", spec)

    def test_from_arrays_shape_checked(self, spec):
        with pytest.raises(DimensionError):
            ConstraintSet.from_arrays(spec, A=np.zeros((4, 4, 1)))

    def test_compile_sorts_fixed_values(self, spec):
        compiled = ConstraintSet.parse("A(1,1,1) = 0.5; K(1) = 0.1", spec).compile(spec)
        np.testing.assert_array_equal(compiled.fixed_index, [0, 1])
        np.testing.assert_array_equal(compiled.fixed_values, [0.1, 0.5])
        assert compiled.R.shape == (0, spec.n_coefficients)

    def test_conflicting_fixed_values(self, spec):
        constraints = ConstraintSet.parse("A(1,1,1) = 0; A(1,1,1) = 1", spec)
        with pytest.raises(InconsistentConstraintsError):
            constraints.compile(spec)


class TestRestrictedEstimation:
    """Tests for restricted least squares."""

    def test_empty_constraints_equal_unconstrained(self, var2_panel, var2_spec):
        plain, _ = estimate(var2_panel, var2_spec, cov_parameters=True)
        for empty in (ConstraintSet(), "", []):
            restricted, _ = estimate(var2_panel, var2_spec, constraints=empty, cov_parameters=True)
            np.testing.assert_allclose(restricted.coefficient_matrix(), plain.coefficient_matrix(),
                                       rtol=1e-12, atol=1e-14)
            np.testing.assert_allclose(restricted.cov_parameters, plain.cov_parameters,
                                       rtol=1e-10, atol=1e-16)

    def test_text_and_array_forms_agree(self, var2_panel, var2_spec):
        by_text, _ = estimate(var2_panel, var2_spec, constraints="A(3,1:2,:) = 0")
        fixed = np.full((4, 4, 2), np.nan)
        fixed[2, 0:2, :] = 0.0
        by_array, _ = estimate(var2_panel, var2_spec,
                               constraints=ConstraintSet.from_arrays(var2_spec, A=fixed))
        np.testing.assert_allclose(by_text.coefficient_matrix(), by_array.coefficient_matrix(),
                                   rtol=1e-12, atol=1e-14)
        assert not by_text.A[2, 0:2, :].any()

    def test_fixed_values_hold_exactly(self, fitted_var2, var2_panel, var2_spec):
        unrestricted, _ = fitted_var2
        model, _ = estimate(var2_panel, var2_spec, constraints="K(:) = 0; A(1,2,1) = 0.25",
                            cov_parameters=True)
        assert not model.K.any()
        assert model.A[0, 1, 0] == 0.25
        assert model.n_free == 36 - 5
        # Fixed coefficients carry no sampling variance
        se = model.std_errors
        assert not se[0].any()
        assert se[1 + 1, 0] == 0.0
        assert not np.allclose(model.A, unrestricted.A)

    def test_general_restriction_holds(self, var2_panel, var2_spec):
        model, _ = estimate(var2_panel, var2_spec, constraints="A(3,1,1) + A(3,2,1) = -1",
                            cov_parameters=True)
        assert model.A[2, 0, 0] + model.A[2, 1, 0] == pytest.approx(-1.0, abs=1e-10)

        R = np.zeros(var2_spec.n_coefficients)
        R[Coefficient("A", 2, 0, 1).index(var2_spec)] = 1.0
        R[Coefficient("A", 2, 1, 1).index(var2_spec)] = 1.0
        assert R @ model.cov_parameters @ R == pytest.approx(0.0, abs=1e-12)
        assert model.n_free == 35

    def test_model_records_its_restrictions(self, fitted_var2, var2_panel, var2_spec):
        unrestricted, _ = fitted_var2
        assert unrestricted.constraints is None

        text = "A(1,2,1) = 0.25; A(3,1,1) + A(3,2,1) = -1"
        model, _ = estimate(var2_panel, var2_spec, constraints=text)
        assert model.constraints == ConstraintSet.parse(text, var2_spec)

        restored = VARModel.from_dict(json.loads(json.dumps(model.to_dict())))
        assert restored.constraints == model.constraints

    def test_mixed_fixed_and_general(self, var2_panel, var2_spec):
        model, _ = estimate(var2_panel, var2_spec,
                            constraints=["A(2,2,1) = 0.4", "A(2,1,1) - A(2,3,1) = 0"])
        assert model.A[1, 1, 0] == 0.4
        assert model.A[1, 0, 0] == pytest.approx(model.A[1, 2, 0], abs=1e-10)

    def test_restriction_on_fixed_coefficients_only(self, var2_panel, var2_spec):
        consistent = "A(1,1,1) = 0; A(1,2,1) = 0; A(1,1,1) + A(1,2,1) = 0"
        fixed_only = "A(1,1,1) = 0; A(1,2,1) = 0"
        first, _ = estimate(var2_panel, var2_spec, constraints=consistent)
        second, _ = estimate(var2_panel, var2_spec, constraints=fixed_only)
        np.testing.assert_allclose(first.coefficient_matrix(), second.coefficient_matrix())

        contradictory = "A(1,1,1) = 0; A(1,2,1) = 0; A(1,1,1) + A(1,2,1) = 1"
        with pytest.raises(InconsistentConstraintsError):
            estimate(var2_panel, var2_spec, constraints=contradictory)

    def test_dependent_restrictions(self, var2_panel, var2_spec):
        text = "A(1,1,1) + A(1,2,1) = 0; 2*A(1,1,1) + 2*A(1,2,1) = 0"
        with pytest.raises(InconsistentConstraintsError) as excinfo:
            estimate(var2_panel, var2_spec, constraints=text)
        assert excinfo.value.rank == 1

    def test_cointegration_with_fixed_loadings(self):
        spec = VARSpec(("a", "b"), order=1, cointeg=[[1.0, -1.0]])
        A1 = 0.5 * np.eye(2)
        G = np.array([[-0.2], [0.1]])
        effective = (A1 + G @ spec.cointeg)[:, :, None]
        omega = np.array([[0.5, 0.1], [0.1, 0.4]])
        values = simulate_var(np.random.default_rng(3), 3000, effective, np.zeros(2), omega)

        constraints = ConstraintSet.from_arrays(spec, G=G)
        model, _ = estimate(Panel.from_array(values, ("a", "b")), spec, constraints=constraints)
        np.testing.assert_array_equal(model.G, G)
        np.testing.assert_allclose(model.A[:, :, 0], A1, atol=0.08)
        np.testing.assert_allclose(model.transition()[0], effective[:, :, 0], atol=0.08)

'''
Pytest configuration and fixtures for the VAR Toolbox test suite.

This module provides common fixtures used across the test suite: a seeded
random generator, a known four-variable VAR(2) process, panels simulated
from it and the model fitted to them.
'''

from typing import Dict, Tuple

import numpy as np
import pandas as pd
import pytest
from hypothesis import strategies as st

from vartoolbox.core.config import reset_config
from vartoolbox.core.panel import Panel
from vartoolbox.models.time_series.estimation import VARData, VAREstimator
from vartoolbox.models.time_series.var import VARModel, VARSpec

NAMES = ("yy", "pp", "rr", "un")


def simulate_var(rng: np.random.Generator,
                 n_obs: int,
                 A: np.ndarray,
                 K: np.ndarray,
                 omega: np.ndarray,
                 burn: int = 200) -> np.ndarray:
    """Simulate ``n_obs`` periods of y_t = K + sum_l A_l y_{t-l} + e_t."""
    ny, _, p = A.shape
    chol = np.linalg.cholesky(omega)
    total = n_obs + burn
    y = np.zeros((total + p, ny))
    shocks = rng.standard_normal((total, ny)) @ chol.T
    for t in range(p, total + p):
        value = K + shocks[t - p]
        for lag in range(1, p + 1):
            value = value + A[:, :, lag - 1] @ y[t - lag]
        y[t] = value
    return y[-n_obs:]


# ---- Basic Data Generation Fixtures ----

@pytest.fixture(autouse=True)
def _default_config():
    """Restore configuration defaults around every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def rng() -> np.random.Generator:
    """Provide a seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def var2_params() -> Dict[str, np.ndarray]:
    """Coefficients of a stationary four-variable VAR(2)."""
    A = np.zeros((4, 4, 2))
    A[:, :, 0] = [[0.50, 0.10, 0.00, 0.00],
                  [0.10, 0.40, 0.10, 0.00],
                  [0.00, 0.20, 0.50, 0.10],
                  [0.00, 0.00, 0.10, 0.30]]
    A[:, :, 1] = [[0.10, 0.00, 0.00, 0.00],
                  [0.00, 0.10, 0.00, 0.00],
                  [0.00, 0.00, 0.15, 0.00],
                  [0.00, 0.00, 0.00, 0.10]]
    K = np.array([0.20, 0.10, 0.05, 0.00])
    L = np.array([[0.50, 0.00, 0.00, 0.00],
                  [0.10, 0.40, 0.00, 0.00],
                  [0.05, 0.10, 0.30, 0.00],
                  [0.00, 0.05, 0.05, 0.20]])
    return {"A": A, "K": K, "omega": L @ L.T}


@pytest.fixture
def var2_spec() -> VARSpec:
    return VARSpec(NAMES, order=2)


@pytest.fixture
def var2_model(var2_spec: VARSpec, var2_params: Dict[str, np.ndarray]) -> VARModel:
    """The true data generating process as a VARModel."""
    return VARModel(var2_spec, var2_params["A"], var2_params["K"],
                    np.zeros((4, 0)), var2_params["omega"], nobs=400)


@pytest.fixture
def var2_frame(rng: np.random.Generator, var2_params: Dict[str, np.ndarray]) -> pd.DataFrame:
    """400 quarters simulated from the known VAR(2)."""
    values = simulate_var(rng, 400, var2_params["A"], var2_params["K"], var2_params["omega"])
    index = pd.period_range("1960Q1", periods=400, freq="Q")
    return pd.DataFrame(values, index=index, columns=list(NAMES))


@pytest.fixture
def var2_panel(var2_frame: pd.DataFrame) -> Panel:
    return Panel(var2_frame)


@pytest.fixture
def fitted_var2(var2_panel: Panel, var2_spec: VARSpec) -> Tuple[VARModel, VARData]:
    """VAR(2) estimated on the simulated panel with parameter covariance."""
    return VAREstimator().estimate(var2_panel, var2_spec, cov_parameters=True)


@pytest.fixture
def small_panel(rng: np.random.Generator, var2_params: Dict[str, np.ndarray]) -> Panel:
    """120 integer-indexed periods from the known VAR(2)."""
    values = simulate_var(rng, 120, var2_params["A"], var2_params["K"], var2_params["omega"])
    return Panel.from_array(values, NAMES, start=0)


# ---- Hypothesis strategies ----

@st.composite
def stable_var1_strategy(draw, ny: int = 2):
    """Stationary VAR(1) coefficients: a random matrix scaled inside the unit circle."""
    entries = draw(st.lists(st.floats(-1.0, 1.0), min_size=ny * ny, max_size=ny * ny))
    A = np.array(entries).reshape(ny, ny)
    radius = max(np.max(np.abs(np.linalg.eigvals(A))), 1e-3)
    scale = draw(st.floats(0.1, 0.9))
    return A * (scale / radius)

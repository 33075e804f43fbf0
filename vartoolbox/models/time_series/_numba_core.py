"""
Numba-accelerated core functions for VAR analysis.

This module holds the loops that sit on the hot path of estimation,
simulation and bootstrapping: building lagged design matrices, running the
VAR recursion, accumulating moving-average coefficients and computing sample
autocovariances. The functions take and return plain float64 arrays so that
they compile in nopython mode; validation is left to the callers.
"""

import logging
from typing import Tuple

import numpy as np
from numba import jit

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models.time_series._numba_core")


# ============================================================================
# Design matrices
# ============================================================================

@jit(nopython=True, cache=True)
def lag_matrix(y: np.ndarray, order: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the matrix of lagged observations used as VAR regressors.

    Args:
        y: Observation matrix (T x Ny), with the first ``order`` rows used
            only as pre-sample
        order: Lag order P

    Returns:
        Tuple[np.ndarray, np.ndarray]:
            - Lagged data (T-P x Ny*P); columns (l-1)*Ny..l*Ny-1 hold lag l
            - Trimmed observations y[P:] (T-P x Ny)
    """
    T, k = y.shape
    X = np.zeros((T - order, k * order))

    for t in range(order, T):
        row = t - order
        for lag in range(1, order + 1):
            for j in range(k):
                X[row, (lag - 1) * k + j] = y[t - lag, j]

    return X, y[order:].copy()


# ============================================================================
# Recursions
# ============================================================================

@jit(nopython=True, cache=True)
def var_recursion(presample: np.ndarray,
                  transition: np.ndarray,
                  constant: np.ndarray,
                  shocks: np.ndarray) -> np.ndarray:
    """
    Run y_t = c + sum_l A_l y_{t-l} + e_t forward from a pre-sample.

    Args:
        presample: The P observations preceding the first simulated period
            (P x Ny), oldest first
        transition: Lag matrices stacked along the first axis (P x Ny x Ny),
            ``transition[l]`` multiplying y_{t-l-1}
        constant: Intercept vector (Ny,)
        shocks: Innovations, one row per simulated period (T x Ny)

    Returns:
        np.ndarray: Simulated observations (T x Ny)
    """
    p = transition.shape[0]
    k = transition.shape[1]
    T = shocks.shape[0]

    path = np.zeros((p + T, k))
    path[:p] = presample

    for t in range(T):
        s = p + t
        for i in range(k):
            value = constant[i] + shocks[t, i]
            for lag in range(p):
                for j in range(k):
                    value += transition[lag, i, j] * path[s - lag - 1, j]
            path[s, i] = value

    return path[p:]


@jit(nopython=True, cache=True)
def ma_coefficients(transition: np.ndarray, horizon: int) -> np.ndarray:
    """
    Moving-average (impulse response) coefficients of a VAR.

    Psi_0 = I and Psi_h = sum_{j=1..min(h,P)} A_j Psi_{h-j}.

    Args:
        transition: Lag matrices (P x Ny x Ny)
        horizon: Number of coefficient matrices to return

    Returns:
        np.ndarray: MA coefficients (horizon x Ny x Ny)
    """
    p = transition.shape[0]
    k = transition.shape[1]
    psi = np.zeros((horizon, k, k))

    if horizon == 0:
        return psi

    for i in range(k):
        psi[0, i, i] = 1.0

    for h in range(1, horizon):
        for lag in range(1, min(h, p) + 1):
            psi[h] += transition[lag - 1] @ psi[h - lag]

    return psi


# ============================================================================
# Sample moments
# ============================================================================

@jit(nopython=True, cache=True)
def sample_autocovariance(x: np.ndarray, max_lag: int, small_sample: bool) -> np.ndarray:
    """
    Sample autocovariances sum_t x_t x_{t-k}' for k = 0..max_lag.

    Args:
        x: Observations, already demeaned if required (N x Ny)
        max_lag: Largest lag
        small_sample: Divide lag k by N-k instead of N

    Returns:
        np.ndarray: Autocovariances (max_lag+1 x Ny x Ny)
    """
    n, k = x.shape
    gamma = np.zeros((max_lag + 1, k, k))

    for lag in range(max_lag + 1):
        for t in range(lag, n):
            for i in range(k):
                for j in range(k):
                    gamma[lag, i, j] += x[t, i] * x[t - lag, j]
        divisor = n - lag if small_sample else n
        gamma[lag] /= divisor

    return gamma

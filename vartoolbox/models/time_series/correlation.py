'''
Autocovariance and autocorrelation functions for VAR models and data.

The theoretical autocovariances of a stationary VAR follow from the companion
form s_t = Phi s_{t-1} + J' e_t. The stacked-state covariance Sigma_s solves
the discrete Lyapunov equation

    Sigma_s = Phi Sigma_s Phi' + J' Omega J

and the lag-k autocovariance Gamma_k = E[y_t y_{t-k}'] is the top-left
Ny x Ny block of Phi^k Sigma_s. Sample autocovariances are computed by a
compiled kernel.

All results are returned with the lag on the last axis, ``[Ny, Ny, K+1]``;
ensemble input adds a trailing member axis.
'''

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import linalg

from vartoolbox.core.base import EngineBase, ResultBase
from vartoolbox.core.exceptions import DataError, NumericError, ParameterError
from vartoolbox.core.panel import Panel
from vartoolbox.models.time_series._numba_core import sample_autocovariance
from vartoolbox.models.time_series.structural import StructuralModel
from vartoolbox.models.time_series.var import VAREnsemble, VARModel
from vartoolbox.utils.matrix_ops import selection_matrix

logger = logging.getLogger("vartoolbox.models.time_series.correlation")

ModelLike = Union[VARModel, StructuralModel, VAREnsemble]


@dataclass(frozen=True)
class ACFResult(ResultBase):
    """
    Autocovariances and autocorrelations by lag.

    Attributes:
        covariance: Autocovariances, ``covariance[i, j, k] = Cov(y_i,t, y_j,t-k)``
        correlation: Autocorrelations on the same layout
        names: Variable names
    """
    covariance: np.ndarray
    correlation: np.ndarray
    names: Tuple[str, ...]

    @property
    def max_lag(self) -> int:
        return self.covariance.shape[2] - 1

    def to_frame(self, kind: str = "correlation") -> pd.DataFrame:
        """
        Long-to-wide pandas view: one row per lag, one column per variable pair.

        Only available for single-model results.
        """
        values = self.correlation if kind == "correlation" else self.covariance
        if values.ndim != 3:
            raise ParameterError(
                "to_frame is only available for single-model results",
                param_name="kind",
                param_value=kind
            )
        columns = pd.MultiIndex.from_product([self.names, self.names], names=["variable", "lagged"])
        data = values.transpose(2, 0, 1).reshape(values.shape[2], -1)
        return pd.DataFrame(data, index=pd.RangeIndex(values.shape[2], name="lag"), columns=columns)


def _check_max_lag(max_lag: int) -> int:
    if not isinstance(max_lag, (int, np.integer)) or isinstance(max_lag, bool) or max_lag < 0:
        raise ParameterError(
            "max_lag must be a non-negative integer",
            param_name="max_lag",
            param_value=max_lag,
            constraint="max_lag >= 0"
        )
    return int(max_lag)


def _observed_span(values: np.ndarray) -> np.ndarray:
    """Rows from the first to the last row that is not entirely NaN."""
    observed = np.flatnonzero(~np.isnan(values).all(axis=1))
    if observed.size == 0:
        return values[:0]
    return values[observed[0]:observed[-1] + 1]


def _correlation(covariance: np.ndarray) -> np.ndarray:
    sd = np.sqrt(np.diag(covariance[:, :, 0]))
    if np.any(sd <= 0):
        raise NumericError(
            "Autocorrelations need strictly positive variances",
            operation="acf",
            values=sd,
            error_type="zero variance"
        )
    return covariance / np.outer(sd, sd)[:, :, None]


def _model_acf(model: VARModel, max_lag: int) -> np.ndarray:
    model.require_stationary("acf")
    ny = model.ny
    phi = model.companion
    selector = selection_matrix(ny, model.order)
    q = selector.T @ model.omega @ selector
    state_cov = linalg.solve_discrete_lyapunov(phi, q)

    covariance = np.empty((ny, ny, max_lag + 1))
    current = state_cov
    for k in range(max_lag + 1):
        covariance[:, :, k] = current[:ny, :ny]
        current = phi @ current
    return covariance


class AutoCovarianceEngine(EngineBase):
    """Theoretical and sample autocovariance functions."""

    def __init__(self, name: str = "AutoCovarianceEngine"):
        super().__init__(name)

    def acf(self, model: ModelLike, max_lag: int) -> ACFResult:
        """
        Theoretical autocovariance and autocorrelation functions.

        Args:
            model: A reduced-form or structural VAR, or an ensemble
            max_lag: Largest lag K

        Returns:
            ACFResult: Arrays of shape (Ny, Ny, K+1), with a trailing member
            axis for ensembles

        Raises:
            NonStationaryModelError: If a model is not stationary
        """
        max_lag = _check_max_lag(max_lag)

        if isinstance(model, VAREnsemble):
            results = [self.acf(member, max_lag) for member in model]
            return ACFResult(
                covariance=np.stack([r.covariance for r in results], axis=-1),
                correlation=np.stack([r.correlation for r in results], axis=-1),
                names=model.spec.names,
            )

        if isinstance(model, StructuralModel):
            model = model.model

        covariance = _model_acf(model, max_lag)
        return ACFResult(covariance, _correlation(covariance), model.names)

    def sample_acf(self,
                   x: Union[np.ndarray, pd.DataFrame, Panel],
                   max_lag: int,
                   demean: bool = True,
                   small_sample: bool = True,
                   names: Optional[Sequence[str]] = None) -> ACFResult:
        """
        Sample autocovariance and autocorrelation functions.

        Panel and DataFrame input is first trimmed to the span between its
        first and last observed row, so residual and shock panels with NaN
        pre-sample rows can be passed directly.

        Args:
            x: Observations (N x Ny)
            max_lag: Largest lag K (< N)
            demean: Subtract the sample mean first
            small_sample: Divide lag k by N-k instead of N
            names: Variable names for array input

        Returns:
            ACFResult: Arrays of shape (Ny, Ny, K+1)

        Raises:
            DataError: If the data contain NaN inside the observed span
            NumericError: If a series has zero variance
        """
        max_lag = _check_max_lag(max_lag)

        if isinstance(x, Panel):
            names = x.names
            values = _observed_span(np.array(x.values))
        elif isinstance(x, pd.DataFrame):
            names = tuple(str(c) for c in x.columns)
            values = _observed_span(x.to_numpy(dtype=float))
        else:
            values = np.asarray(x, dtype=float)
            if values.ndim == 1:
                values = values[:, None]
            if names is None:
                names = tuple(f"y{i}" for i in range(values.shape[1]))

        if np.isnan(values).any():
            raise DataError(
                "Sample autocovariances need complete data",
                data_name="x",
                issue="NaN values"
            )
        if max_lag >= values.shape[0]:
            raise ParameterError(
                "max_lag must be smaller than the number of observations",
                param_name="max_lag",
                param_value=max_lag,
                constraint=f"max_lag < {values.shape[0]}"
            )

        if demean:
            values = values - values.mean(axis=0)
        gamma = sample_autocovariance(np.ascontiguousarray(values), max_lag, small_sample)
        covariance = np.moveaxis(gamma, 0, 2)
        return ACFResult(covariance, _correlation(covariance), tuple(names))


_default_engine = AutoCovarianceEngine()


def acf(model: ModelLike, max_lag: int) -> ACFResult:
    """Theoretical ACF; see ``AutoCovarianceEngine.acf``."""
    return _default_engine.acf(model, max_lag)


def sample_acf(x: Union[np.ndarray, pd.DataFrame, Panel],
               max_lag: int,
               demean: bool = True,
               small_sample: bool = True,
               names: Optional[Sequence[str]] = None) -> ACFResult:
    """Sample ACF; see ``AutoCovarianceEngine.sample_acf``."""
    return _default_engine.sample_acf(x, max_lag, demean, small_sample, names)

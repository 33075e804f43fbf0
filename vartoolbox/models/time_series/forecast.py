'''
Unconditional and conditional VAR forecasting.

Forecasts are built on the stacked forecast path. Writing the H forecast
periods as one vector y = (y_1', ..., y_H')', the path given the history is
Gaussian with

    mean  mu  from the deterministic VAR recursion
    cov   S = M (I_H (x) Omega) M'

where M is block lower triangular with block (s, i) equal to the moving
average coefficient Psi_{s-i}. The k-step marginal variance is therefore
sum_{i<k} Psi_i Omega Psi_i'.

A conditioning set fixes linear combinations of the path. Each condition is
one exact (zero-variance) observation ``r'y + d = target``, where ``d``
collects contributions of known history reached through lagged instrument
terms. All conditions are imposed jointly by the Gaussian projection

    mean_c = mu + S R' (R S R')^{-1} (target - d - R mu)
    S_c    = S - S R' (R S R')^{-1} R S

which is independent of the order in which conditions are listed and reduces
to the unconditional forecast when the set is empty.

Classes:
    ConditioningSet: Targets for variables or instruments at forecast periods
    ForecastResult: Mean and standard deviation paths
    EnsembleForecastResult: Mean paths of every ensemble member
    ForecastEngine: Forecast computations
'''

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import linalg

from vartoolbox.core.base import EngineBase, ResultBase
from vartoolbox.core.config import get_config
from vartoolbox.core.exceptions import (
    ForecastError, InsufficientHistoryError, InvalidConditioningPeriodError,
    InvalidInstrumentSpecError, ParameterError
)
from vartoolbox.core.panel import Panel, as_panel
from vartoolbox.core.types import PeriodLike, RangeLike
from vartoolbox.models.time_series._numba_core import ma_coefficients, var_recursion
from vartoolbox.models.time_series.var import VAREnsemble, VARModel
from vartoolbox.utils.date_utils import period_offset, period_range

logger = logging.getLogger("vartoolbox.models.time_series.forecast")


@dataclass(frozen=True)
class ConditioningSet:
    """
    Targets for variables or instruments at forecast periods.

    Attributes:
        items: ``(period, name, target)`` triples in insertion order
    """
    items: Tuple[Tuple[Any, str, float], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple((p, str(n), float(v)) for p, n, v in self.items))

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def add(self, period: Any, name: str, target: float) -> "ConditioningSet":
        """Return a new set with one more condition."""
        return ConditioningSet(self.items + ((period, name, target),))

    @classmethod
    def from_mapping(cls, mapping: Mapping[Any, Mapping[str, float]]) -> "ConditioningSet":
        """
        Build a set from ``{period: {name: target}}``.

        NaN targets are skipped.
        """
        items = []
        for period, targets in mapping.items():
            for name, target in targets.items():
                if target is None or np.isnan(target):
                    continue
                items.append((period, name, target))
        return cls(tuple(items))

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "ConditioningSet":
        """
        Build a set from a DataFrame indexed by period, one column per name.

        NaN cells are unconditioned.

        Examples:
            >>> import numpy as np, pandas as pd
            >>> frame = pd.DataFrame({"r": [0.5, np.nan]}, index=[100, 101])
            >>> len(ConditioningSet.from_frame(frame))
            1
        """
        items = []
        for period, row in frame.iterrows():
            for name, target in row.items():
                if not np.isnan(target):
                    items.append((period, str(name), float(target)))
        return cls(tuple(items))


ConditionsLike = Union[None, ConditioningSet, Mapping[Any, Mapping[str, float]], pd.DataFrame]


def as_conditioning_set(conditions: ConditionsLike) -> ConditioningSet:
    """Normalise the accepted condition inputs to a ``ConditioningSet``."""
    if conditions is None:
        return ConditioningSet()
    if isinstance(conditions, ConditioningSet):
        return conditions
    if isinstance(conditions, pd.DataFrame):
        return ConditioningSet.from_frame(conditions)
    if isinstance(conditions, Mapping):
        return ConditioningSet.from_mapping(conditions)
    raise ParameterError(
        "Unrecognised conditioning input",
        param_name="conditions",
        param_value=type(conditions).__name__,
        constraint="ConditioningSet, mapping or DataFrame"
    )


@dataclass(frozen=True)
class ForecastResult(ResultBase):
    """
    Forecast mean and standard deviation paths.

    Attributes:
        mean: Forecast mean, indexed by forecast period, one column per variable
        std: Forecast standard deviations on the same layout (None for mean-only)
        conditions: Conditions imposed on the forecast
    """
    mean: pd.DataFrame
    std: Optional[pd.DataFrame]
    conditions: ConditioningSet = ConditioningSet()

    @property
    def horizon(self) -> int:
        return len(self.mean)

    def overlay(self, panel: Union[Panel, pd.DataFrame]) -> Panel:
        """
        Splice the forecast mean onto the history in ``panel``.

        Forecast periods overwrite observed values; the resulting panel spans
        both the history and the forecast horizon.
        """
        panel = as_panel(panel).select(self.mean.columns)
        frame = panel.to_frame()
        first = self.mean.index[0]
        last = self.mean.index[-1]
        start = panel.start if period_offset(panel.start, first) >= 0 else first
        end = panel.end if period_offset(panel.end, last) <= 0 else last
        frame = frame.reindex(period_range(start, end))
        frame.loc[self.mean.index, :] = self.mean.to_numpy()
        return Panel(frame)


@dataclass(frozen=True)
class EnsembleForecastResult(ResultBase):
    """
    Forecast mean paths of every member of a VAR ensemble.

    Attributes:
        paths: Mean paths (H x Ny x N)
        index: Forecast periods
        names: Variable names
    """
    paths: np.ndarray
    index: pd.Index
    names: Tuple[str, ...]

    def _frame(self, values: np.ndarray) -> pd.DataFrame:
        return pd.DataFrame(values, index=self.index, columns=list(self.names))

    @property
    def mean_path(self) -> pd.DataFrame:
        """Average of the member paths."""
        return self._frame(self.paths.mean(axis=2))

    def percentile(self, q: float) -> pd.DataFrame:
        """
        Pointwise percentile of the member paths.

        Args:
            q: Percentile in [0, 100]
        """
        if not 0 <= q <= 100:
            raise ParameterError(
                "Percentile must lie in [0, 100]",
                param_name="q",
                param_value=q,
                constraint="0 <= q <= 100"
            )
        return self._frame(np.percentile(self.paths, q, axis=2))

    def bands(self, coverage: float = 90.0) -> Dict[str, pd.DataFrame]:
        """Lower and upper percentile paths covering ``coverage`` percent."""
        tail = (100.0 - coverage) / 2
        return {"lower": self.percentile(tail), "upper": self.percentile(100.0 - tail)}


def _path_covariance(psi: np.ndarray, omega: np.ndarray) -> np.ndarray:
    """Covariance of the stacked forecast path (H*Ny x H*Ny)."""
    horizon, ny = psi.shape[0], psi.shape[1]
    M = np.zeros((horizon * ny, horizon * ny))
    for s in range(horizon):
        for i in range(s + 1):
            M[s * ny:(s + 1) * ny, i * ny:(i + 1) * ny] = psi[s - i]
    return M @ np.kron(np.eye(horizon), omega) @ M.T


class ForecastEngine(EngineBase):
    """Unconditional and conditional forecasts from fitted VARs."""

    def __init__(self, name: str = "ForecastEngine"):
        super().__init__(name)

    def _history(self, model: VARModel, panel: Panel, start: PeriodLike) -> np.ndarray:
        p = model.order
        history = panel.window(panel.period_at(panel.position(start) - p),
                               panel.period_at(panel.position(start) - 1),
                               model.names)
        if np.isnan(history).any():
            raise InsufficientHistoryError(
                f"Forecast starting {start} needs {p} observed periods of history",
                required=p,
                available=int(np.sum(~np.isnan(history).any(axis=1))),
                index=start
            )
        return history

    def _restrictions(self,
                      model: VARModel,
                      conditions: ConditioningSet,
                      panel: Panel,
                      start: PeriodLike,
                      horizon: int,
                      history: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Rows R, history offsets d and targets for every condition."""
        ny, p = model.ny, model.order
        n_conditions = len(conditions)
        R = np.zeros((n_conditions, horizon * ny))
        d = np.zeros(n_conditions)
        targets = np.zeros(n_conditions)

        for row, (raw_period, name, target) in enumerate(conditions.items):
            period = panel.to_period(raw_period)
            h = period_offset(start, period)
            if h < 0 or h >= horizon:
                raise InvalidConditioningPeriodError(
                    f"Condition on '{name}' at {period} lies outside the forecast horizon",
                    period=period,
                    horizon=horizon
                )
            targets[row] = target

            if name in model.names:
                R[row, h * ny + model.names.index(name)] = 1.0
                continue

            instrument = model.instrument(name)
            if instrument is None:
                raise InvalidInstrumentSpecError(
                    f"'{name}' is neither a model variable nor a registered instrument",
                    instrument=name,
                    constraint=f"one of {list(model.names)} or a registered instrument"
                )
            instrument.validate(model.names, p)

            d[row] = instrument.constant
            for term in instrument.terms:
                j = model.names.index(term.variable)
                step = h - term.lag
                if step >= 0:
                    R[row, step * ny + j] += term.coefficient
                else:
                    d[row] += term.coefficient * history[p + step, j]

            if not np.any(R[row]):
                raise ForecastError(
                    f"Condition on '{name}' at {period} involves no forecast-period value",
                    model_type="VAR",
                    horizon=horizon,
                    issue="condition fixed by history"
                )

        return R, d, targets

    def forecast(self,
                 model: VARModel,
                 panel: Union[Panel, pd.DataFrame],
                 horizon_range: RangeLike,
                 conditions: ConditionsLike = None,
                 mean_only: bool = False) -> ForecastResult:
        """
        Forecast ``model`` over ``horizon_range`` from the history in ``panel``.

        Args:
            model: Fitted VAR, possibly with registered instruments
            panel: Observations supplying the P periods before the horizon
            horizon_range: First and last forecast period
            conditions: Targets for variables or instruments
            mean_only: Skip the standard deviations

        Returns:
            ForecastResult: Mean and standard deviation paths

        Raises:
            InsufficientHistoryError: If the P pre-horizon periods are not all observed
            InvalidConditioningPeriodError: If a condition lies outside the horizon
            InvalidInstrumentSpecError: If a condition names an unknown variable
                or instrument
            ForecastError: If the conditions are redundant, contradictory or
                do not involve any forecast-period value
        """
        panel = as_panel(panel)
        start, end = panel.resolve_range(horizon_range)
        horizon = period_offset(start, end) + 1
        index = period_range(start, end)
        conditions = as_conditioning_set(conditions)

        history = self._history(model, panel, start)
        transition = model.transition()
        mu = var_recursion(history, transition, np.array(model.K), np.zeros((horizon, model.ny)))

        need_cov = not (mean_only and conditions.is_empty)
        std = None
        if need_cov:
            psi = ma_coefficients(transition, horizon)
            S = _path_covariance(psi, np.asarray(model.omega))
            mean_vec = mu.reshape(-1)

            if not conditions.is_empty:
                R, d, targets = self._restrictions(model, conditions, panel, start, horizon, history)
                RSR = R @ S @ R.T
                rank_tol = get_config("numerical", "rank_tolerance", 1e-10)
                scale = max(1.0, float(np.max(np.abs(RSR))))
                rank = int(np.linalg.matrix_rank(RSR, tol=rank_tol * scale))
                if rank < len(conditions):
                    raise ForecastError(
                        "Forecast conditions are redundant or contradictory",
                        model_type="VAR",
                        horizon=horizon,
                        issue="singular condition covariance",
                        details=f"{len(conditions)} conditions, rank {rank}"
                    )
                try:
                    gain = linalg.solve(RSR, R @ S, assume_a="pos").T
                except linalg.LinAlgError as e:
                    raise ForecastError(
                        "Forecast conditions are redundant or contradictory",
                        model_type="VAR",
                        horizon=horizon,
                        issue="singular condition covariance",
                        details=str(e)
                    ) from e
                mean_vec = mean_vec + gain @ (targets - d - R @ mean_vec)
                S = S - gain @ R @ S
                logger.debug(f"Imposed {len(conditions)} forecast conditions")

            mu = mean_vec.reshape(horizon, model.ny)
            if not mean_only:
                std = np.sqrt(np.clip(np.diag(S), 0.0, None)).reshape(horizon, model.ny)

        columns = list(model.names)
        return ForecastResult(
            mean=pd.DataFrame(mu, index=index, columns=columns),
            std=None if std is None else pd.DataFrame(std, index=index, columns=columns),
            conditions=conditions,
        )

    def forecast_ensemble(self,
                          ensemble: VAREnsemble,
                          panel: Union[Panel, pd.DataFrame],
                          horizon_range: RangeLike,
                          conditions: ConditionsLike = None) -> EnsembleForecastResult:
        """
        Mean forecast paths for every ensemble member.

        Returns:
            EnsembleForecastResult: Paths (H x Ny x N) with percentile helpers
        """
        panel = as_panel(panel)
        conditions = as_conditioning_set(conditions)
        results = [self.forecast(member, panel, horizon_range, conditions, mean_only=True)
                   for member in ensemble]
        paths = np.stack([r.mean.to_numpy() for r in results], axis=-1)
        return EnsembleForecastResult(paths=paths, index=results[0].mean.index,
                                      names=ensemble.spec.names)


_default_engine = ForecastEngine()


def forecast(model: VARModel,
             panel: Union[Panel, pd.DataFrame],
             horizon_range: RangeLike,
             conditions: ConditionsLike = None,
             mean_only: bool = False) -> ForecastResult:
    """Forecast a VAR; see ``ForecastEngine.forecast``."""
    return _default_engine.forecast(model, panel, horizon_range, conditions, mean_only)


def forecast_ensemble(ensemble: VAREnsemble,
                      panel: Union[Panel, pd.DataFrame],
                      horizon_range: RangeLike,
                      conditions: ConditionsLike = None) -> EnsembleForecastResult:
    """Forecast every ensemble member; see ``ForecastEngine.forecast_ensemble``."""
    return _default_engine.forecast_ensemble(ensemble, panel, horizon_range, conditions)

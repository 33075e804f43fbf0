# vartoolbox/models/bootstrap/residual_bootstrap.py

"""
Residual bootstrap for VAR models.

Each bootstrap draw regenerates the estimation sample by running the fitted
VAR recursion forward from the observed pre-sample, driven by pseudo-residuals
built from the estimated residuals:

- Efron resampling draws whole residual vectors with replacement,
  independently for every period.
- Wild resampling multiplies each residual vector by a Rademacher sign
  drawn per draw and per period.

Every random number is drawn in the calling thread before any work is handed
to worker threads, so results depend only on the seed. The model is then
re-estimated on each regenerated sample; re-estimation fans out over a
thread pool and the ensemble keeps draw order. Draws whose re-estimation
fails are excluded and counted.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Dict, Optional, Type, Union

import numpy as np
import pandas as pd

from vartoolbox.core.base import EngineBase
from vartoolbox.core.config import get_config
from vartoolbox.core.exceptions import (
    BootstrapError, DataError, InsufficientHistoryError, VARToolboxError, warn_model
)
from vartoolbox.core.panel import Panel
from vartoolbox.core.types import BootstrapMethod, ProgressCallback, RangeLike
from vartoolbox.models.bootstrap.base import BootstrapParameters, ResampledData, ResamplerBase
from vartoolbox.models.time_series._numba_core import var_recursion
from vartoolbox.models.time_series.constraints import as_constraint_set
from vartoolbox.models.time_series.estimation import ConstraintsLike, VARData, VAREstimator
from vartoolbox.models.time_series.var import VAREnsemble, VARModel, VARSpec
from vartoolbox.utils.date_utils import period_range

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models.bootstrap.residual_bootstrap")


class EfronResampler(ResamplerBase):
    """Draws residual vectors with replacement, one independent index per period."""

    method = BootstrapMethod.EFRON

    def generate(self,
                 residuals: np.ndarray,
                 draws: int,
                 rng: np.random.Generator) -> np.ndarray:
        n_obs = residuals.shape[0]
        indices = rng.integers(0, n_obs, size=(draws, n_obs))
        return residuals[indices]


class WildResampler(ResamplerBase):
    """Flips the sign of each residual vector with probability one half."""

    method = BootstrapMethod.WILD

    def generate(self,
                 residuals: np.ndarray,
                 draws: int,
                 rng: np.random.Generator) -> np.ndarray:
        signs = rng.choice(np.array([-1.0, 1.0]), size=(draws, residuals.shape[0]))
        return signs[:, :, None] * residuals[None, :, :]


_RESAMPLERS: Dict[BootstrapMethod, Type[ResamplerBase]] = {
    BootstrapMethod.EFRON: EfronResampler,
    BootstrapMethod.WILD: WildResampler,
}


def get_resampler(method: Union[str, BootstrapMethod]) -> ResamplerBase:
    """Resampler instance for a method name or enum member."""
    return _RESAMPLERS[BootstrapMethod.from_name(method)]()


class BootstrapEngine(EngineBase):
    """
    Residual bootstrap for VAR models.

    Examples:
        >>> engine = BootstrapEngine()
        >>> ensemble = engine.run(model, data, draws=200, random_state=7)  # doctest: +SKIP
        >>> stable = ensemble.stationary()  # doctest: +SKIP
    """

    def __init__(self,
                 estimator: Optional[VAREstimator] = None,
                 name: str = "BootstrapEngine"):
        super().__init__(name)
        self._estimator = estimator or VAREstimator()

    def _parameters(self,
                    draws: Optional[int],
                    method: Optional[Union[str, BootstrapMethod]],
                    random_state: Optional[Union[int, np.random.Generator]],
                    max_workers: Optional[int] = None) -> BootstrapParameters:
        if random_state is None:
            random_state = get_config("core", "random_seed", None)
        return BootstrapParameters(
            draws=draws if draws is not None else get_config("bootstrap", "default_draws", 500),
            method=method if method is not None else get_config("bootstrap", "method", "efron"),
            random_state=random_state,
            max_workers=(max_workers if max_workers is not None
                         else get_config("bootstrap", "max_workers", 4)),
        )

    def resample(self,
                 model: VARModel,
                 data: VARData,
                 sample_range: RangeLike = None,
                 draws: Optional[int] = None,
                 method: Optional[Union[str, BootstrapMethod]] = None,
                 random_state: Optional[Union[int, np.random.Generator]] = None) -> ResampledData:
        """
        Generate bootstrap data sets from a fitted model and its residuals.

        Args:
            model: Fitted VAR supplying the coefficients
            data: Endogenous and residual panels from estimation
            sample_range: Periods to regenerate; the fitted sample when None
            draws: Number of draws (``bootstrap.default_draws`` when None)
            method: ``"efron"`` or ``"wild"`` (``bootstrap.method`` when None)
            random_state: Seed or generator (``core.random_seed`` when None)

        Returns:
            ResampledData: Wide panel of regenerated data and the pseudo-residuals

        Raises:
            InsufficientHistoryError: If the pre-sample is not observed
            DataError: If residuals are missing inside the range
            ParameterError: If the draw count or method is invalid
        """
        params = self._parameters(draws, method, random_state)
        p, ny = model.order, model.ny

        endogenous = data.endogenous.select(model.names)
        residual_panel = data.residuals.select(model.residual_names)
        start, end = residual_panel.resolve_range(sample_range, data.sample_range)

        first = endogenous.position(start)
        presample = endogenous.window(endogenous.period_at(first - p),
                                      endogenous.period_at(first - 1))
        if np.isnan(presample).any():
            raise InsufficientHistoryError(
                f"Bootstrap sample starting {start} needs {p} observed pre-sample periods",
                required=p,
                available=int(np.sum(~np.isnan(presample).any(axis=1))),
                index=start
            )
        residuals = residual_panel.window(start, end)
        if np.isnan(residuals).any():
            raise DataError(
                "Residuals are missing inside the bootstrap range",
                data_name="residuals",
                issue="NaN residuals",
                index=(start, end)
            )

        shocks = get_resampler(params.method)(residuals, params.draws, params.generator())

        transition = model.transition()
        constant = np.array(model.K)
        n_obs = residuals.shape[0]
        values = np.empty((p + n_obs, ny * params.draws))
        for d in range(params.draws):
            block = slice(d * ny, (d + 1) * ny)
            values[:p, block] = presample
            values[p:, block] = var_recursion(presample, transition, constant,
                                              np.ascontiguousarray(shocks[d]))

        columns = [f"{name}_{d}" for d in range(params.draws) for name in model.names]
        index = period_range(endogenous.period_at(first - p), end)
        panel = Panel(pd.DataFrame(values, index=index, columns=columns), copy=False)

        logger.debug(f"Generated {params.draws} {params.method.name.lower()} bootstrap samples "
                     f"of {n_obs} periods")
        return ResampledData(
            panel=panel,
            residuals=np.moveaxis(shocks, 0, 2),
            names=model.names,
            order=p,
            method=params.method,
        )

    def estimate_ensemble(self,
                          resampled: ResampledData,
                          spec: VARSpec,
                          constraints: ConstraintsLike = None,
                          max_workers: Optional[int] = None,
                          progress_callback: Optional[ProgressCallback] = None) -> VAREnsemble:
        """
        Re-estimate ``spec`` on every bootstrap draw.

        Args:
            resampled: Output of ``resample``
            spec: Model structure to estimate
            constraints: Restrictions applied to every re-estimation
            max_workers: Thread pool size (``bootstrap.max_workers`` when None)
            progress_callback: Called with the completed fraction and a message

        Returns:
            VAREnsemble: Members in draw order, excluding failed draws

        Raises:
            BootstrapError: If every draw fails to re-estimate
        """
        params = self._parameters(resampled.draws, resampled.method, None, max_workers)
        workers = params.max_workers
        constraint_set = as_constraint_set(constraints, spec)
        sample_range = resampled.sample_range
        n_draws = resampled.draws

        if progress_callback:
            progress_callback(0.0, f"Re-estimating {n_draws} bootstrap draws")

        def fit_draw(i: int) -> Optional[VARModel]:
            try:
                model, _ = self._estimator.estimate(resampled.draw(i), spec, sample_range,
                                                    constraint_set)
                return model
            except VARToolboxError as e:
                logger.debug(f"Bootstrap draw {i} failed: {e.args[0]}")
                return None

        with ThreadPoolExecutor(max_workers=workers) as executor:
            fitted = list(executor.map(fit_draw, range(n_draws)))

        keep = np.array([m is not None for m in fitted], dtype=bool)
        n_excluded = int(n_draws - keep.sum())

        if progress_callback:
            progress_callback(1.0, "Bootstrap re-estimation complete")

        if n_excluded == n_draws:
            raise BootstrapError(
                "Re-estimation failed for every bootstrap draw",
                bootstrap_type=resampled.method.name.lower(),
                n_bootstraps=n_draws,
                issue="no successful draws"
            )
        if n_excluded:
            logger.warning(f"Excluded {n_excluded} of {n_draws} bootstrap draws")
            warn_model(
                f"{n_excluded} of {n_draws} bootstrap draws failed to re-estimate and were excluded",
                model_type="VAR",
                issue="bootstrap draws excluded",
                parameter="draws",
                value=n_excluded
            )
        else:
            logger.info(f"Re-estimated all {n_draws} bootstrap draws")

        return VAREnsemble(
            members=tuple(m for m in fitted if m is not None),
            residual_draws=resampled.residuals[:, :, keep],
            n_excluded=n_excluded,
            draw_ids=np.flatnonzero(keep),
        )

    async def estimate_ensemble_async(self,
                                      resampled: ResampledData,
                                      spec: VARSpec,
                                      constraints: ConstraintsLike = None,
                                      max_workers: Optional[int] = None,
                                      progress_callback: Optional[ProgressCallback] = None
                                      ) -> VAREnsemble:
        """Run ``estimate_ensemble`` in the default executor without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            partial(self.estimate_ensemble, resampled, spec, constraints, max_workers,
                    progress_callback)
        )

    def run(self,
            model: VARModel,
            data: VARData,
            sample_range: RangeLike = None,
            draws: Optional[int] = None,
            method: Optional[Union[str, BootstrapMethod]] = None,
            random_state: Optional[Union[int, np.random.Generator]] = None,
            constraints: ConstraintsLike = None,
            max_workers: Optional[int] = None) -> VAREnsemble:
        """
        Resample and re-estimate in one call.

        The ensemble re-estimates ``model.spec`` over the same sample range,
        under ``model.constraints`` unless ``constraints`` is given; pass an
        empty ``ConstraintSet`` to re-estimate without restrictions.
        """
        if constraints is None:
            constraints = model.constraints
        resampled = self.resample(model, data, sample_range, draws, method, random_state)
        return self.estimate_ensemble(resampled, model.spec, constraints, max_workers)

    async def run_async(self,
                        model: VARModel,
                        data: VARData,
                        sample_range: RangeLike = None,
                        draws: Optional[int] = None,
                        method: Optional[Union[str, BootstrapMethod]] = None,
                        random_state: Optional[Union[int, np.random.Generator]] = None,
                        constraints: ConstraintsLike = None,
                        max_workers: Optional[int] = None) -> VAREnsemble:
        """Asynchronous ``run``; draws are generated before awaiting."""
        if constraints is None:
            constraints = model.constraints
        resampled = self.resample(model, data, sample_range, draws, method, random_state)
        return await self.estimate_ensemble_async(resampled, model.spec, constraints, max_workers)

'''
Resimulation of VAR data from residuals.

Running the VAR recursion forward from the observed pre-sample with the
estimated residuals reproduces the data; running it with modified residuals
(for instance with one shock series zeroed through
``VARData.with_residuals_zeroed``) gives counterfactual paths.

By linearity the resimulated path splits into one contribution per residual
series, each driven from a zero initial state without the constant, plus one
contribution from the initial conditions and the constant. The contributions
sum to the path.
'''

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from vartoolbox.core.base import EngineBase, ResultBase
from vartoolbox.core.exceptions import (
    DataError, InsufficientHistoryError, ParameterError, SimulationError
)
from vartoolbox.core.panel import Panel
from vartoolbox.core.types import RangeLike
from vartoolbox.models.time_series._numba_core import var_recursion
from vartoolbox.models.time_series.estimation import VARData
from vartoolbox.models.time_series.var import VARModel
from vartoolbox.utils.date_utils import period_range

logger = logging.getLogger("vartoolbox.models.time_series.simulation")

INITIAL_CONDITIONS = "init"


@dataclass(frozen=True)
class SimulationResult(ResultBase):
    """
    Resimulated paths and, optionally, their decomposition.

    Attributes:
        paths: Simulated observations over the simulation range
        contributions: (T x Ny x Ny+1) decomposition; column j < Ny is the
            contribution of residual j, the last column that of the initial
            conditions and constant. None unless requested.
        contribution_names: Labels of the contribution columns
    """
    paths: Panel
    contributions: Optional[np.ndarray] = None
    contribution_names: Tuple[str, ...] = ()

    def contribution_frame(self, variable: str) -> pd.DataFrame:
        """
        Contributions to one variable, one column per source.

        Raises:
            ParameterError: If contributions were not computed or the
                variable is unknown
        """
        if self.contributions is None:
            raise ParameterError(
                "Contributions were not computed; simulate with contributions=True",
                param_name="contributions"
            )
        if variable not in self.paths.names:
            raise ParameterError(
                f"Unknown variable '{variable}'",
                param_name="variable",
                param_value=variable,
                constraint=f"one of {list(self.paths.names)}"
            )
        i = self.paths.names.index(variable)
        return pd.DataFrame(self.contributions[:, i, :], index=self.paths.index,
                            columns=list(self.contribution_names))


class SimulationEngine(EngineBase):
    """Resimulates VAR data from (possibly modified) residuals."""

    def __init__(self, name: str = "SimulationEngine"):
        super().__init__(name)

    def simulate(self,
                 model: VARModel,
                 data: VARData,
                 sample_range: RangeLike = None,
                 contributions: bool = False) -> SimulationResult:
        """
        Run the VAR recursion over ``sample_range`` driven by ``data`` residuals.

        Args:
            model: Fitted VAR
            data: Endogenous and residual panels, typically from estimation
            sample_range: Periods to simulate; the fitted sample of ``data``
                when None
            contributions: Also return the residual and initial-condition
                decomposition

        Returns:
            SimulationResult: Paths and optional contributions

        Raises:
            InsufficientHistoryError: If the P periods before the range are not observed
            DataError: If residuals are missing inside the range
            SimulationError: If the path overflows
        """
        p, ny = model.order, model.ny
        endogenous = data.endogenous.select(model.names)
        residuals = data.residuals.select(model.residual_names)
        start, end = residuals.resolve_range(sample_range, data.sample_range)

        first = endogenous.position(start)
        presample = endogenous.window(endogenous.period_at(first - p),
                                      endogenous.period_at(first - 1))
        if np.isnan(presample).any():
            raise InsufficientHistoryError(
                f"Simulation starting {start} needs {p} observed pre-sample periods",
                required=p,
                available=int(np.sum(~np.isnan(presample).any(axis=1))),
                index=start
            )

        shocks = residuals.window(start, end)
        if np.isnan(shocks).any():
            raise DataError(
                "Residuals are missing inside the simulation range",
                data_name="residuals",
                issue="NaN residuals",
                index=(start, end)
            )

        transition = model.transition()
        constant = np.array(model.K)
        path = var_recursion(presample, transition, constant, shocks)
        if not np.isfinite(path).all():
            raise SimulationError(
                "Simulated path is not finite",
                model_type="VAR",
                n_periods=path.shape[0],
                issue="overflow in the VAR recursion"
            )
        logger.debug(f"Resimulated {path.shape[0]} periods from {start}")

        index = period_range(start, end)
        paths = Panel(pd.DataFrame(path, index=index, columns=list(model.names)))

        if not contributions:
            return SimulationResult(paths)

        parts = np.empty((path.shape[0], ny, ny + 1))
        zero_state = np.zeros((p, ny))
        zero_constant = np.zeros(ny)
        for j in range(ny):
            single = np.zeros_like(shocks)
            single[:, j] = shocks[:, j]
            parts[:, :, j] = var_recursion(zero_state, transition, zero_constant, single)
        parts[:, :, ny] = var_recursion(presample, transition, constant, np.zeros_like(shocks))

        return SimulationResult(paths, parts, model.residual_names + (INITIAL_CONDITIONS,))


_default_engine = SimulationEngine()


def simulate(model: VARModel,
             data: VARData,
             sample_range: RangeLike = None,
             contributions: bool = False) -> SimulationResult:
    """Resimulate VAR data; see ``SimulationEngine.simulate``."""
    return _default_engine.simulate(model, data, sample_range, contributions)

'''
Structural impulse response functions.

For a structural VAR with impact matrix B and moving-average coefficients
Psi_h, the response of variable i to a one-standard-deviation shock j after
h periods is ``(Psi_h B)[i, j]``. Step 0 is the impact period, where the
response equals B.
'''

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd

from vartoolbox.core.base import EngineBase, ResultBase
from vartoolbox.core.exceptions import ParameterError
from vartoolbox.models.time_series._numba_core import ma_coefficients
from vartoolbox.models.time_series.structural import StructuralModel

logger = logging.getLogger("vartoolbox.models.time_series.impulse_response")


@dataclass(frozen=True)
class ImpulseResponseResult(ResultBase):
    """
    Impulse responses to structural shocks.

    Attributes:
        responses: ``responses[i, j, h]`` is the response of variable i to
            shock j at step h (Ny x Ny x H)
        cumulative: Running sums of ``responses`` along the horizon
        names: Variable names
        shock_names: Structural shock names
        presample: Whether a zero pre-impact period is prepended
    """
    responses: np.ndarray
    cumulative: np.ndarray
    names: Tuple[str, ...]
    shock_names: Tuple[str, ...]
    presample: bool = False

    @property
    def horizon(self) -> int:
        return self.responses.shape[2]

    def to_frame(self, cumulative: bool = False) -> pd.DataFrame:
        """
        Responses as a DataFrame indexed by step, with (shock, variable) columns.

        Steps are numbered from 0 at impact; the pre-impact period is -1.
        """
        values = self.cumulative if cumulative else self.responses
        first = -1 if self.presample else 0
        index = pd.RangeIndex(first, first + self.horizon, name="step")
        columns = pd.MultiIndex.from_product([self.shock_names, self.names],
                                             names=["shock", "variable"])
        data = values.transpose(2, 1, 0).reshape(self.horizon, -1)
        return pd.DataFrame(data, index=index, columns=columns)


class ImpulseResponseEngine(EngineBase):
    """Computes impulse responses of identified structural VARs."""

    def __init__(self, name: str = "ImpulseResponseEngine"):
        super().__init__(name)

    def respond(self,
                structural_model: StructuralModel,
                horizon: int,
                presample: bool = False) -> ImpulseResponseResult:
        """
        Compute impulse responses over ``horizon`` steps.

        Args:
            structural_model: Identified structural VAR
            horizon: Number of steps H, counting the impact step
            presample: Prepend a zero period before the impact

        Returns:
            ImpulseResponseResult: Responses and cumulative responses,
            (Ny x Ny x H), or H+1 steps with ``presample``

        Raises:
            ParameterError: If ``horizon`` is not a positive integer

        Examples:
            >>> result = ImpulseResponseEngine().respond(structural, 20)  # doctest: +SKIP
            >>> np.allclose(result.responses[:, :, 0], structural.B)  # doctest: +SKIP
            True
        """
        if not isinstance(horizon, (int, np.integer)) or isinstance(horizon, bool) or horizon < 1:
            raise ParameterError(
                "horizon must be a positive integer",
                param_name="horizon",
                param_value=horizon,
                constraint="horizon >= 1"
            )

        psi = ma_coefficients(structural_model.model.transition(), int(horizon))
        responses = np.moveaxis(psi @ np.asarray(structural_model.B), 0, 2)

        if presample:
            ny = structural_model.ny
            responses = np.concatenate([np.zeros((ny, ny, 1)), responses], axis=2)

        logger.debug(f"Computed impulse responses over {horizon} steps")
        return ImpulseResponseResult(
            responses=responses,
            cumulative=np.cumsum(responses, axis=2),
            names=structural_model.names,
            shock_names=structural_model.shock_names,
            presample=bool(presample),
        )


_default_engine = ImpulseResponseEngine()


def respond(structural_model: StructuralModel,
            horizon: int,
            presample: bool = False) -> ImpulseResponseResult:
    """Impulse responses; see ``ImpulseResponseEngine.respond``."""
    return _default_engine.respond(structural_model, horizon, presample)

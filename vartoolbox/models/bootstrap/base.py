# vartoolbox/models/bootstrap/base.py

"""
Abstract base class for residual bootstrap schemes in the VAR Toolbox.

This module defines the parameters shared by every residual bootstrap, the
container for resampled data and the abstract resampler that concrete
schemes implement. A resampler turns the T x Ny matrix of estimated residuals
into ``draws`` pseudo-residual matrices; the bootstrap engine then feeds them
through the VAR recursion and re-estimates the model on each regenerated
sample.
"""

import abc
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from vartoolbox.core.exceptions import DimensionError, ParameterError
from vartoolbox.core.panel import Panel
from vartoolbox.core.types import BootstrapMethod, PeriodLike


@dataclass
class BootstrapParameters:
    """Parameters for residual bootstrap runs.

    Attributes:
        draws: Number of bootstrap samples to generate
        method: Resampling scheme
        random_state: Seed or generator for reproducibility
        max_workers: Upper bound on re-estimation threads
    """

    draws: int = 500
    method: Union[str, BootstrapMethod] = BootstrapMethod.EFRON
    random_state: Optional[Union[int, np.random.Generator]] = None
    max_workers: int = 4

    def __post_init__(self) -> None:
        """Validate parameters after initialization.

        Raises:
            ParameterError: If parameters violate constraints
        """
        if not isinstance(self.draws, (int, np.integer)) or isinstance(self.draws, bool):
            raise ParameterError(
                "draws must be an integer",
                param_name="draws",
                param_value=self.draws
            )
        if self.draws <= 0:
            raise ParameterError(
                "draws must be positive",
                param_name="draws",
                param_value=self.draws
            )
        self.draws = int(self.draws)

        self.method = BootstrapMethod.from_name(self.method)

        if self.random_state is not None:
            if not isinstance(self.random_state, (int, np.integer, np.random.Generator)):
                raise ParameterError(
                    "random_state must be an integer or numpy.random.Generator",
                    param_name="random_state",
                    param_value=type(self.random_state)
                )

        if not isinstance(self.max_workers, (int, np.integer)) or self.max_workers < 1:
            raise ParameterError(
                "max_workers must be a positive integer",
                param_name="max_workers",
                param_value=self.max_workers
            )
        self.max_workers = int(self.max_workers)

    def generator(self) -> np.random.Generator:
        """Random generator built from ``random_state``."""
        return np.random.default_rng(self.random_state)


@dataclass(frozen=True)
class ResampledData:
    """Regenerated data sets from one bootstrap run.

    Attributes:
        panel: Wide panel holding every draw; draw ``d`` occupies columns
            ``d*Ny`` to ``(d+1)*Ny - 1``, named ``<variable>_<d>``. The first
            ``order`` rows are the common pre-sample.
        residuals: Pseudo-residuals driving each draw (T x Ny x draws)
        names: Endogenous variable names
        order: Lag order of the generating model
        method: Resampling scheme used
    """

    panel: Panel
    residuals: np.ndarray
    names: Tuple[str, ...]
    order: int
    method: BootstrapMethod

    @property
    def draws(self) -> int:
        return self.residuals.shape[2]

    @property
    def ny(self) -> int:
        return len(self.names)

    @property
    def sample_range(self) -> Tuple[PeriodLike, PeriodLike]:
        """Regenerated periods, following the common pre-sample."""
        return self.panel.period_at(self.order), self.panel.end

    def __len__(self) -> int:
        return self.draws

    def draw(self, i: int) -> Panel:
        """Panel of draw ``i`` with the original variable names.

        Raises:
            ParameterError: If ``i`` is not a valid draw index
        """
        if not 0 <= i < self.draws:
            raise ParameterError(
                f"Draw index {i} out of range",
                param_name="i",
                param_value=i,
                constraint=f"0 <= i < {self.draws}"
            )
        block = self.panel.select(self.panel.names[i * self.ny:(i + 1) * self.ny])
        return block.with_values(block.values, list(self.names))


class ResamplerBase(abc.ABC):
    """Abstract base class for residual resampling schemes.

    Subclasses implement ``generate`` to define how pseudo-residuals are
    drawn from the estimated residuals.
    """

    method: BootstrapMethod

    @abc.abstractmethod
    def generate(self,
                 residuals: np.ndarray,
                 draws: int,
                 rng: np.random.Generator) -> np.ndarray:
        """Generate pseudo-residuals.

        Args:
            residuals: Estimated residuals (T x Ny)
            draws: Number of draws
            rng: Random generator; every random number is taken from it

        Returns:
            np.ndarray: Pseudo-residuals (draws x T x Ny)
        """
        raise NotImplementedError("Subclasses must implement generate")

    def __call__(self, residuals: np.ndarray, draws: int, rng: np.random.Generator) -> np.ndarray:
        residuals = np.asarray(residuals, dtype=float)
        if residuals.ndim != 2:
            raise DimensionError(
                "Residuals must be a 2D array",
                array_name="residuals",
                expected_shape="(T, Ny)",
                actual_shape=residuals.shape
            )
        return self.generate(residuals, draws, rng)

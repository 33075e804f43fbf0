# vartoolbox/__init__.py
"""
VAR Toolbox - Vector Autoregression Analysis for Python

A Python suite for estimating and using reduced-form and structural vector
autoregressions on macroeconomic time series.

The toolbox provides tools for:
- Ordinary and restricted least-squares VAR estimation, with optional
  cointegration terms
- Unconditional and conditional forecasting, including conditioning on
  user-defined instruments
- Efron and wild residual bootstrap ensembles
- Recursive (Cholesky) structural identification and impulse responses
- Theoretical and sample autocovariance functions
- Resimulation and shock contribution decompositions

This module serves as the main entry point for the VAR Toolbox package.
"""

import importlib
import logging
import re
import warnings
from typing import Tuple, Union

# Set up package-wide logger; handlers are installed by the configuration manager
logger = logging.getLogger("vartoolbox")

from .version import __dependencies__, __description__, __license__, __title__, __version__  # noqa: E402

from . import core, models, utils  # noqa: E402

from .core.config import get_config, set_config, reset_config  # noqa: E402
from .core.exceptions import VARToolboxError, VARToolboxWarning  # noqa: E402
from .core.panel import Panel  # noqa: E402
from .core.types import BootstrapMethod, VARQuantity  # noqa: E402
from .models.bootstrap import BootstrapEngine  # noqa: E402
from .models.time_series import (  # noqa: E402
    AutoCovarianceEngine,
    ConditioningSet,
    ConstraintSet,
    ForecastEngine,
    ImpulseResponseEngine,
    SimulationEngine,
    StructuralIdentifier,
    StructuralModel,
    VARData,
    VAREnsemble,
    VAREstimator,
    VARModel,
    VARSpec,
)


def _version_tuple(version: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version)[:3])


def _check_dependencies() -> None:
    """Warn about installed dependencies older than the tested minimum."""
    for package, minimum in __dependencies__.items():
        installed = getattr(importlib.import_module(package), "__version__", None)
        if installed is None:
            logger.warning(f"Cannot determine version for {package}")
        elif _version_tuple(installed) < _version_tuple(minimum):
            warnings.warn(
                f"{package} {installed} is older than the tested minimum {minimum}",
                UserWarning
            )


def get_version() -> str:
    """Version string of the installed VAR Toolbox (MAJOR.MINOR.PATCH)."""
    return __version__


def set_log_level(level: Union[str, int]) -> None:
    """
    Set the level of the ``vartoolbox`` logger.

    Args:
        level: A level name such as 'DEBUG' or a ``logging`` constant
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger.setLevel(level)
    logger.info(f"Log level set to {logging.getLevelName(level)}")


_check_dependencies()
try:
    core.config.initialize_config()
except (VARToolboxError, OSError) as e:
    logger.warning(f"Failed to initialize configuration, using defaults: {e}")

# Define what's available when using "from vartoolbox import *"
__all__ = [
    # Subpackages
    'core',
    'models',
    'utils',

    # Main classes
    'Panel',
    'VARSpec',
    'VARModel',
    'VAREnsemble',
    'VARData',
    'VAREstimator',
    'ConstraintSet',
    'ConditioningSet',
    'ForecastEngine',
    'BootstrapEngine',
    'StructuralIdentifier',
    'StructuralModel',
    'ImpulseResponseEngine',
    'AutoCovarianceEngine',
    'SimulationEngine',
    'VARQuantity',
    'BootstrapMethod',
    'VARToolboxError',
    'VARToolboxWarning',

    # Public functions
    'get_version',
    'set_log_level',
    'get_config',
    'set_config',
    'reset_config',

    # Version info
    '__version__',
    '__license__',
]

logger.debug(f"VAR Toolbox v{__version__} initialized successfully")

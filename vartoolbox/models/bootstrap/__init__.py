"""
VAR Toolbox Bootstrap Module

This module provides residual bootstrap methods for VAR models. A bootstrap
run regenerates the estimation sample from resampled residuals and
re-estimates the model on every draw, producing a VAREnsemble that can be
filtered for stationarity and passed to the forecast, impulse response and
autocovariance engines.

All random draws are generated up front from a seeded NumPy generator;
re-estimation fans out over a thread pool.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models.bootstrap")

from .base import BootstrapParameters, ResampledData, ResamplerBase
from .residual_bootstrap import (
    BootstrapEngine,
    EfronResampler,
    WildResampler,
    get_resampler
)

__all__ = [
    'BootstrapParameters',
    'ResampledData',
    'ResamplerBase',
    'BootstrapEngine',
    'EfronResampler',
    'WildResampler',
    'get_resampler',
]

logger.debug("VAR Toolbox bootstrap module initialized")

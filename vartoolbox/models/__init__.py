# vartoolbox/models/__init__.py
"""
VAR Toolbox Models Module

This module groups the model families of the VAR Toolbox: the time series
subpackage holds the VAR model objects and the estimation, forecasting,
structural and simulation engines; the bootstrap subpackage holds the
residual bootstrap that produces model ensembles.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models")

# Import submodules to make them available at the package level
try:
    from . import time_series
    from . import bootstrap
except ImportError as e:
    logger.error(f"Error importing model components: {e}")
    raise ImportError(
        "Failed to import model components. Please ensure the package "
        "is correctly installed. You can install it using: "
        "pip install vartoolbox"
    ) from e

__all__ = ['time_series', 'bootstrap']

logger.debug("VAR Toolbox models module initialized")

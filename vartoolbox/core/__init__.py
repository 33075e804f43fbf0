"""
VAR Toolbox Core Module

This module provides the core functionality and base classes for the VAR Toolbox.
It defines the exception hierarchy, type aliases and enumerations, configuration
management, engine and result base classes, and the time-indexed observation panel
used throughout the toolbox.

Key components:
- Exception hierarchy for error handling
- Custom type definitions and typed selectors
- Configuration management
- Base classes for engines and result containers
- The Panel abstraction for time-indexed data
"""

import logging

# Set up module-level logger
logger = logging.getLogger("vartoolbox.core")

# Import core components to make them available at the package level
from .exceptions import (
    VARToolboxError,
    ParameterError,
    DimensionError,
    NumericError,
    DataError,
    EstimationError,
    ForecastError,
    SimulationError,
    BootstrapError,
    ConfigurationError,
    InsufficientHistoryError,
    InconsistentConstraintsError,
    NonStationaryModelError,
    NonPositiveDefiniteResidualCovarianceError,
    InvalidConditioningPeriodError,
    InvalidInstrumentSpecError,
    DimensionMismatchError,
    VARToolboxWarning,
    NumericWarning,
    ModelWarning,
)

from .types import (
    BootstrapMethod,
    VARQuantity,
    PeriodLike,
    RangeLike,
)

from .config import (
    ConfigManager,
    get_config,
    set_config,
    reset_config,
    save_config,
    get_config_manager,
)

from .base import (
    EngineBase,
    ResultBase,
)

from .panel import (
    Panel,
    as_panel,
)

__all__ = [
    # Exceptions
    'VARToolboxError',
    'ParameterError',
    'DimensionError',
    'NumericError',
    'DataError',
    'EstimationError',
    'ForecastError',
    'SimulationError',
    'BootstrapError',
    'ConfigurationError',
    'InsufficientHistoryError',
    'InconsistentConstraintsError',
    'NonStationaryModelError',
    'NonPositiveDefiniteResidualCovarianceError',
    'InvalidConditioningPeriodError',
    'InvalidInstrumentSpecError',
    'DimensionMismatchError',
    'VARToolboxWarning',
    'NumericWarning',
    'ModelWarning',

    # Types
    'BootstrapMethod',
    'VARQuantity',
    'PeriodLike',
    'RangeLike',

    # Configuration
    'ConfigManager',
    'get_config',
    'set_config',
    'reset_config',
    'save_config',
    'get_config_manager',

    # Base classes
    'EngineBase',
    'ResultBase',

    # Data
    'Panel',
    'as_panel',
]

logger.debug("VAR Toolbox core module initialized")

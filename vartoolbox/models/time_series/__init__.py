# vartoolbox/models/time_series/__init__.py
"""
VAR Toolbox Time Series Module

This module provides the vector autoregression tools of the toolbox: model
objects, restricted and unrestricted estimation, forecasting with optional
conditioning, recursive structural identification, impulse responses,
autocovariance functions and resimulation.

Key components:
- VARSpec, VARModel and VAREnsemble value objects
- ConstraintSet for fixed-value and general linear coefficient restrictions
- Instruments for conditioning forecasts on linear combinations of variables
- VAREstimator, ForecastEngine, StructuralIdentifier, ImpulseResponseEngine,
  AutoCovarianceEngine and SimulationEngine
"""

import logging

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models.time_series")

# Import core components
try:
    from .var import VARSpec, VARModel, VAREnsemble, information_criteria
    from .instruments import Instrument, InstrumentTerm, parse_instrument
    from .constraints import Coefficient, LinearConstraint, ConstraintSet
    from .estimation import VARData, VAREstimator, design_matrices, ols_fit, estimate
    from .structural import StructuralModel, StructuralIdentifier, identify
    from .correlation import ACFResult, AutoCovarianceEngine, acf, sample_acf
    from .impulse_response import ImpulseResponseResult, ImpulseResponseEngine, respond
    from .forecast import (
        ConditioningSet,
        ForecastResult,
        EnsembleForecastResult,
        ForecastEngine,
        forecast,
        forecast_ensemble
    )
    from .simulation import SimulationResult, SimulationEngine, simulate
except ImportError as e:
    logger.error(f"Error importing time series components: {e}")
    raise ImportError(
        "Failed to import time series components. Please ensure the package "
        "is correctly installed with all dependencies."
    ) from e

__all__ = [
    # Model objects
    'VARSpec',
    'VARModel',
    'VAREnsemble',
    'information_criteria',
    'Instrument',
    'InstrumentTerm',
    'parse_instrument',
    'Coefficient',
    'LinearConstraint',
    'ConstraintSet',
    'VARData',

    # Engines
    'VAREstimator',
    'StructuralIdentifier',
    'AutoCovarianceEngine',
    'ImpulseResponseEngine',
    'ForecastEngine',
    'SimulationEngine',

    # Results
    'StructuralModel',
    'ACFResult',
    'ImpulseResponseResult',
    'ForecastResult',
    'EnsembleForecastResult',
    'ConditioningSet',
    'SimulationResult',

    # Functions
    'design_matrices',
    'ols_fit',
    'estimate',
    'identify',
    'acf',
    'sample_acf',
    'respond',
    'forecast',
    'forecast_ensemble',
    'simulate',
]

logger.debug("VAR Toolbox time series module initialized")

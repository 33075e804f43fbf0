# vartoolbox/core/types.py

"""
Core type annotations and custom types for the VAR Toolbox.

This module defines the type system for the VAR Toolbox: array aliases that
document the expected shape of NumPy inputs, aliases for period-like values
accepted by the panel and date utilities, and the enumerations used as typed
selectors in place of free-form string queries.
"""

from enum import Enum, auto
from typing import Callable, Tuple, Union

import numpy as np
import pandas as pd

# NumPy array aliases documenting the expected shape
Matrix = np.ndarray  # 2D array
CovarianceMatrix = np.ndarray  # Symmetric, positive semi-definite
CorrelationMatrix = np.ndarray  # Symmetric with ones on diagonal
TriangularMatrix = np.ndarray  # Lower triangular Cholesky factor
CoefficientTensor = np.ndarray  # Ny x Ny x P lag coefficients

# Period-related types
PeriodLike = Union[pd.Period, int, np.integer]
RangeLike = Union[
    Tuple[PeriodLike, PeriodLike],
    pd.PeriodIndex,
    pd.Index,
    range,
    None
]

# Callback types
ProgressCallback = Callable[[float, str], None]


# Enum classes for type-safe options

class BootstrapMethod(Enum):
    """Enumeration of residual bootstrap schemes."""
    EFRON = auto()
    WILD = auto()

    @classmethod
    def from_name(cls, name: Union[str, "BootstrapMethod"]) -> "BootstrapMethod":
        """Resolve a case-insensitive method name."""
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).upper()]
        except KeyError:
            from vartoolbox.core.exceptions import ParameterError
            raise ParameterError(
                f"Unknown bootstrap method: {name}",
                param_name="method",
                param_value=name,
                constraint="one of 'efron', 'wild'"
            ) from None


class VARQuantity(Enum):
    """Quantities that can be read from a fitted VAR model or ensemble."""
    A = auto()
    K = auto()
    G = auto()
    OMEGA = auto()
    COV_PARAMETERS = auto()
    EIGENVALUES = auto()
    NAMES = auto()
    RESIDUAL_NAMES = auto()
    ORDER = auto()
    NOBS = auto()
    COINTEG = auto()
    INSTRUMENT_NAMES = auto()
    INSTRUMENT_EQUATIONS = auto()
    B = auto()

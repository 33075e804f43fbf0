"""
VAR Toolbox Utilities Module

This module provides utility functions used throughout the VAR Toolbox:
matrix helpers for companion forms and Cholesky factorizations, and period
arithmetic for panels indexed by a PeriodIndex or by consecutive integers.

Key components:
- Matrix operations (companion_matrix, permuted_cholesky, cov2corr, etc.)
- Date utilities for time series handling
"""

import logging

# Set up module-level logger
logger = logging.getLogger("vartoolbox.utils")

# Import matrix operations
from .matrix_ops import (
    companion_matrix,
    selection_matrix,
    cov2corr,
    ensure_symmetric,
    is_positive_definite,
    validate_ordering,
    permuted_cholesky,
)

# Import date utilities
from .date_utils import (
    to_period,
    period_offset,
    shift_period,
    period_range,
    index_frequency,
    is_contiguous,
    resolve_range,
)

__all__ = [
    # Matrix operations
    'companion_matrix',
    'selection_matrix',
    'cov2corr',
    'ensure_symmetric',
    'is_positive_definite',
    'validate_ordering',
    'permuted_cholesky',

    # Date utilities
    'to_period',
    'period_offset',
    'shift_period',
    'period_range',
    'index_frequency',
    'is_contiguous',
    'resolve_range',
]

logger.debug("VAR Toolbox utilities module initialized")

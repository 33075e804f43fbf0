# vartoolbox/utils/matrix_ops.py
"""
Matrix Operations Module

This module provides the matrix helpers used by the VAR engines: companion
form construction, covariance/correlation conversion, symmetry and positive
definiteness checks, and the permuted Cholesky factor used for structural
identification.

Functions:
    companion_matrix: Stack lag coefficient matrices into companion form
    selection_matrix: Matrix selecting the first block of a companion state
    cov2corr: Convert covariance matrix to correlation matrix
    ensure_symmetric: Ensure a matrix is symmetric
    is_positive_definite: Check if a matrix is positive definite
    permuted_cholesky: Cholesky factor computed under a variable ordering
"""

import logging
from typing import Optional, Sequence

import numpy as np
from scipy import linalg

from vartoolbox.core.types import (
    CoefficientTensor, CorrelationMatrix, CovarianceMatrix, Matrix, TriangularMatrix
)
from vartoolbox.core.exceptions import (
    DimensionError, NumericError, ParameterError
)

# Set up module-level logger
logger = logging.getLogger("vartoolbox.utils.matrix_ops")


def companion_matrix(coefficients: CoefficientTensor) -> Matrix:
    """
    Build the companion matrix of a VAR(P) from its lag coefficients.

    Args:
        coefficients: Array of shape (Ny, Ny, P) where ``coefficients[:, :, l]``
            multiplies ``y_{t-l-1}``

    Returns:
        Matrix of shape (Ny*P, Ny*P) with the lag matrices in the first block
        row and identity blocks on the first sub-diagonal

    Raises:
        DimensionError: If the coefficient array is not (Ny, Ny, P)

    Examples:
        >>> import numpy as np
        >>> from vartoolbox.utils.matrix_ops import companion_matrix
        >>> A = np.zeros((2, 2, 2))
        >>> A[:, :, 0] = [[0.5, 0.1], [0.0, 0.4]]
        >>> companion_matrix(A).shape
        (4, 4)
    """
    coefficients = np.asarray(coefficients, dtype=float)

    if coefficients.ndim != 3 or coefficients.shape[0] != coefficients.shape[1]:
        raise DimensionError(
            "Lag coefficients must have shape (Ny, Ny, P)",
            array_name="coefficients",
            expected_shape="(Ny, Ny, P)",
            actual_shape=coefficients.shape
        )

    k, _, p = coefficients.shape
    companion = np.zeros((k * p, k * p))

    # First block row holds the lag matrices
    for i in range(p):
        companion[:k, i * k:(i + 1) * k] = coefficients[:, :, i]

    # Identity blocks below the first row shift the state
    if p > 1:
        companion[k:, :-k] = np.eye(k * (p - 1))

    return companion


def selection_matrix(ny: int, order: int) -> Matrix:
    """Matrix J = [I, 0, ..., 0] that picks y_t out of the companion state."""
    selector = np.zeros((ny, ny * order))
    selector[:, :ny] = np.eye(ny)
    return selector


def cov2corr(cov: CovarianceMatrix) -> CorrelationMatrix:
    """
    Scale a covariance matrix to unit diagonal.

    Raises:
        DimensionError: If ``cov`` is not square
        NumericError: If a variance is not strictly positive

    Examples:
        >>> import numpy as np
        >>> cov2corr(np.array([[4.0, 2.0], [2.0, 9.0]]))
        array([[1.        , 0.33333333],
               [0.33333333, 1.        ]])
    """
    cov = np.asarray(cov, dtype=float)

    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise DimensionError(
            "Covariance must be a square matrix",
            array_name="cov",
            expected_shape="(n, n)",
            actual_shape=cov.shape
        )

    sd = np.sqrt(np.clip(np.diag(cov), 0.0, None))
    if np.any(sd == 0):
        raise NumericError(
            "Covariance has a zero or negative variance",
            operation="cov2corr",
            values=np.diag(cov),
            error_type="invalid_covariance"
        )

    corr = cov / np.outer(sd, sd)
    np.fill_diagonal(corr, 1.0)
    return (corr + corr.T) / 2


def ensure_symmetric(matrix: Matrix, tol: float = 1e-8) -> Matrix:
    """
    Symmetrise ``matrix`` as (M + M')/2 unless it is already symmetric within ``tol``.

    Raises:
        DimensionError: If ``matrix`` is not square
    """
    matrix = np.asarray(matrix)

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise DimensionError(
            "Only square matrices can be symmetrised",
            array_name="matrix",
            expected_shape="(n, n)",
            actual_shape=matrix.shape
        )

    if np.allclose(matrix, matrix.T, rtol=tol, atol=tol):
        return matrix
    return (matrix + matrix.T) / 2


def is_positive_definite(matrix: Matrix, tol: float = 1e-8) -> bool:
    """
    True when a Cholesky factorisation of the (symmetrised) matrix succeeds.

    Examples:
        >>> import numpy as np
        >>> is_positive_definite(np.array([[2, 1], [1, 2]]))
        True
        >>> is_positive_definite(np.array([[1, 2], [2, 1]]))
        False
    """
    matrix = np.asarray(matrix, dtype=float)

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    if not np.all(np.isfinite(matrix)):
        return False

    try:
        linalg.cholesky(ensure_symmetric(matrix, tol), lower=True, check_finite=False)
    except linalg.LinAlgError:
        return False
    return True


def validate_ordering(ordering: Optional[Sequence[int]], n: int) -> np.ndarray:
    """Return ``ordering`` as an index array after checking it permutes ``range(n)``.

    Raises:
        ParameterError: If ``ordering`` is not a permutation of 0..n-1
    """
    if ordering is None:
        return np.arange(n)

    perm = np.asarray(ordering)
    if (perm.ndim != 1 or perm.shape[0] != n
            or not np.issubdtype(perm.dtype, np.integer)
            or not np.array_equal(np.sort(perm), np.arange(n))):
        raise ParameterError(
            "Ordering must be a permutation of the variable positions",
            param_name="ordering",
            param_value=list(np.ravel(ordering)),
            constraint=f"permutation of 0..{n - 1}"
        )
    return perm.astype(np.intp)


def permuted_cholesky(cov: CovarianceMatrix,
                      ordering: Optional[Sequence[int]] = None) -> TriangularMatrix:
    """
    Cholesky factor of ``cov`` computed after reordering its variables.

    The returned B satisfies ``B @ B.T == cov`` and
    ``B[perm][:, perm]`` is lower triangular.

    Args:
        cov: Symmetric positive definite matrix
        ordering: Permutation of the variable positions (identity when None)

    Returns:
        The permuted lower-triangular factor B

    Raises:
        ParameterError: If ``ordering`` is not a permutation
        scipy.linalg.LinAlgError: If ``cov`` is not positive definite
    """
    cov = np.asarray(cov, dtype=float)
    n = cov.shape[0]
    perm = validate_ordering(ordering, n)

    lower = linalg.cholesky(cov[np.ix_(perm, perm)], lower=True)

    factor = np.zeros_like(cov)
    factor[np.ix_(perm, perm)] = lower
    return factor

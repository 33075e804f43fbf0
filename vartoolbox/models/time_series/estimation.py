'''
Least-squares estimation of reduced-form VAR models.

This module estimates VARs by ordinary least squares and, when restrictions
are supplied, by restricted least squares. Fixed-value restrictions are
eliminated from the problem up front; the remaining general restrictions
R theta = c are imposed through the symmetric Lagrange (KKT) system

    [ H_UU  R_U' ] [ theta_U ]   [ g_U - H_UF v ]
    [ R_U   0    ] [ lambda  ] = [ c - R_F v    ]

where H = I (x) X'X, g = vec(X'Y), U indexes the free coefficients and F the
fixed ones with values v. Without restrictions the estimator takes the plain
OLS path through a Cholesky solve of the normal equations.

Functions:
    design_matrices: Build the regressor and response matrices for a sample
    ols_fit: Ordinary least squares coefficients of Y on X
    estimate: Module-level shortcut for ``VAREstimator().estimate``

Classes:
    VARData: Endogenous and residual panels aligned with a fitted sample
    VAREstimator: Estimation engine
'''

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import linalg

from vartoolbox.core.base import EngineBase
from vartoolbox.core.config import get_config
from vartoolbox.core.exceptions import (
    DataError, DimensionError, EstimationError, InconsistentConstraintsError,
    InsufficientHistoryError, ParameterError, warn_numeric
)
from vartoolbox.core.panel import Panel, as_panel
from vartoolbox.core.types import PeriodLike, RangeLike
from vartoolbox.models.time_series._numba_core import lag_matrix
from vartoolbox.models.time_series.constraints import (
    CompiledConstraints, ConstraintSet, as_constraint_set
)
from vartoolbox.models.time_series.var import VARModel, VARSpec
from vartoolbox.utils.matrix_ops import ensure_symmetric

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models.time_series.estimation")

ConstraintsLike = Union[None, str, Sequence[str], ConstraintSet]


@dataclass(frozen=True)
class DesignMatrices:
    """
    Regression inputs for one estimation sample.

    Attributes:
        X: Regressors (T x n_regressors), columns in ``spec.regressor_names()`` order
        Y: Responses (T x Ny)
        start: First fitted period
        end: Last fitted period
        panel: Endogenous panel clipped to the pre-sample plus the fitted sample
    """
    X: np.ndarray
    Y: np.ndarray
    start: PeriodLike
    end: PeriodLike
    panel: Panel


@dataclass(frozen=True)
class VARData:
    """
    Endogenous and residual panels aligned over a fitted sample.

    Both panels share one index that starts ``order`` periods before the
    fitted sample. Residual columns are named ``res_<variable>`` and are NaN
    in the pre-sample rows.

    Attributes:
        endogenous: Clipped endogenous observations
        residuals: Estimated residuals
        order: Lag order P of the model that produced the residuals
    """
    endogenous: Panel
    residuals: Panel
    order: int

    @property
    def sample_range(self) -> Tuple[PeriodLike, PeriodLike]:
        """First and last period that carry residuals."""
        return self.endogenous.period_at(self.order), self.endogenous.end

    @property
    def presample(self) -> np.ndarray:
        """The ``order`` observations preceding the sample (P x Ny)."""
        return np.array(self.endogenous.values[:self.order])

    @property
    def fitted(self) -> Panel:
        """Fitted values y_t - e_t, NaN in the pre-sample."""
        return self.endogenous.with_values(self.endogenous.values - self.residuals.values)

    def combined(self) -> Panel:
        """Single panel holding the endogenous and residual columns."""
        return self.endogenous.join(self.residuals)

    def with_residuals(self, values: np.ndarray) -> "VARData":
        """Copy with the sample residuals replaced by ``values`` (T x Ny)."""
        values = np.asarray(values, dtype=float)
        full = np.array(self.residuals.values)
        if values.shape != full[self.order:].shape:
            raise DimensionError(
                "Replacement residuals do not match the sample",
                array_name="residuals",
                expected_shape=full[self.order:].shape,
                actual_shape=values.shape
            )
        full[self.order:] = values
        return VARData(self.endogenous, self.residuals.with_values(full), self.order)

    def with_residuals_zeroed(self, names: Iterable[str]) -> "VARData":
        """
        Copy with the named residual series set to zero over the sample.

        Names may be given with or without the ``res_`` prefix.

        Raises:
            ParameterError: If a name matches no residual series
        """
        full = np.array(self.residuals.values)
        for name in names:
            column = name if name in self.residuals else f"res_{name}"
            if column not in self.residuals:
                raise ParameterError(
                    f"No residual series called '{name}'",
                    param_name="names",
                    param_value=name,
                    constraint=f"one of {list(self.residuals.names)}"
                )
            full[self.order:, self.residuals.names.index(column)] = 0.0
        return VARData(self.endogenous, self.residuals.with_values(full), self.order)


def design_matrices(panel: Union[Panel, pd.DataFrame],
                    spec: VARSpec,
                    sample_range: RangeLike = None) -> DesignMatrices:
    """
    Build the VAR regression matrices over ``sample_range``.

    Args:
        panel: Observations containing at least ``spec.names``
        spec: Model structure
        sample_range: Fitted periods; defaults to the P-th period after the
            panel start through the panel end

    Returns:
        DesignMatrices: Regressors, responses and the clipped panel

    Raises:
        DimensionMismatchError: If the panel lacks a model variable
        InsufficientHistoryError: If fewer than P observed periods precede the sample
        DataError: If the sample contains missing observations or leaves the panel
    """
    panel = as_panel(panel).select(spec.names)
    p = spec.order

    default = (panel.period_at(p), panel.end) if len(panel) else None
    start, end = panel.resolve_range(sample_range, default)
    first, last = panel.position(start), panel.position(end)

    if first - p < 0:
        raise InsufficientHistoryError(
            f"Sample starting {start} needs {p} pre-sample periods",
            required=p,
            available=max(first, 0),
            index=start
        )
    if last >= len(panel):
        raise DataError(
            f"Sample end {end} lies beyond the panel end {panel.end}",
            data_name="panel",
            issue="sample range outside the data",
            index=end
        )

    window = np.array(panel.values[first - p:last + 1])
    missing = np.isnan(window)
    if missing[:p].any():
        raise InsufficientHistoryError(
            f"Pre-sample before {start} contains missing observations",
            required=p,
            available=int(np.sum(~missing[:p].any(axis=1))),
            index=start
        )
    if missing[p:].any():
        bad = panel.period_at(first + int(np.flatnonzero(missing[p:].any(axis=1))[0]))
        raise DataError(
            "Estimation sample contains missing observations",
            data_name="panel",
            issue="NaN inside the fitted range",
            index=bad
        )

    lags, Y = lag_matrix(window, p)
    nobs = Y.shape[0]

    blocks = []
    if spec.constant:
        blocks.append(np.ones((nobs, 1)))
    if spec.ng:
        blocks.append(lags[:, :spec.ny] @ spec.cointeg.T)
    blocks.append(lags)
    X = np.hstack(blocks)

    return DesignMatrices(X=X, Y=Y, start=start, end=end,
                          panel=panel.clip(panel.period_at(first - p), end))


def ols_fit(X: np.ndarray, Y: np.ndarray) -> np.ndarray:
    """
    Ordinary least squares coefficients of Y on X via the normal equations.

    Args:
        X: Regressors (T x k)
        Y: Responses (T x n)

    Returns:
        np.ndarray: Coefficients (k x n)

    Raises:
        EstimationError: If X'X is singular
    """
    rank = int(np.linalg.matrix_rank(X))
    if rank < X.shape[1]:
        raise EstimationError(
            "Regressors are collinear",
            model_type="VAR",
            estimation_method="ols",
            issue="rank deficient design matrix",
            details=f"rank {rank} of {X.shape[1]} regressors"
        )
    condition = float(np.linalg.cond(X))
    if condition > 1e8:
        warn_numeric(
            "Design matrix is ill-conditioned; coefficients may be inaccurate",
            operation="ols",
            issue="ill-conditioned regressors",
            value=condition
        )
    try:
        factor = linalg.cho_factor(X.T @ X, lower=True)
        return linalg.cho_solve(factor, X.T @ Y)
    except linalg.LinAlgError as e:
        raise EstimationError(
            "Regressor cross-product matrix is singular",
            model_type="VAR",
            estimation_method="ols",
            issue="X'X not positive definite",
            details=str(e)
        ) from e


def _restricted_fit(X: np.ndarray,
                    Y: np.ndarray,
                    compiled: CompiledConstraints,
                    rank_tol: float,
                    need_bread: bool) -> Tuple[np.ndarray, Optional[np.ndarray], np.ndarray, int]:
    """
    Restricted least squares over the stacked coefficient vector.

    Returns:
        Tuple of the coefficient matrix (k x n), the bread matrix M over the
        free coefficients (or None), the boolean free-coefficient mask and the
        number of free parameters net of general restrictions.
    """
    k, ny = X.shape[1], Y.shape[1]
    n = k * ny
    XtX = X.T @ X
    H = np.kron(np.eye(ny), XtX)
    g = (X.T @ Y).T.reshape(-1)

    free = np.ones(n, dtype=bool)
    free[compiled.fixed_index] = False
    v = compiled.fixed_values
    fixed_idx = compiled.fixed_index

    rhs = g[free] - H[np.ix_(free, ~free)] @ v if v.size else g[free]
    R_U = compiled.R[:, free]
    c_U = compiled.c - compiled.R[:, ~free] @ v if v.size else compiled.c.copy()

    # Rows that only involve fixed coefficients must already hold
    scale = float(np.max(np.abs(compiled.R), initial=1.0))
    empty = np.all(np.abs(R_U) <= rank_tol * scale, axis=1)
    if np.any(np.abs(c_U[empty]) > rank_tol * max(scale, float(np.max(np.abs(compiled.c), initial=1.0)))):
        raise InconsistentConstraintsError(
            "A general restriction contradicts the fixed coefficient values",
            n_constraints=compiled.n_linear
        )
    R_U, c_U = R_U[~empty], c_U[~empty]

    m = R_U.shape[0]
    n_free = int(free.sum())
    if m:
        rank = int(np.linalg.matrix_rank(R_U, tol=rank_tol))
        if rank < m:
            raise InconsistentConstraintsError(
                "General restrictions are linearly dependent",
                n_constraints=m,
                rank=rank
            )

    H_UU = H[np.ix_(free, free)]
    if m == 0:
        try:
            factor = linalg.cho_factor(H_UU, lower=True)
        except linalg.LinAlgError as e:
            raise EstimationError(
                "Regressor cross-product matrix is singular",
                model_type="VAR",
                estimation_method="restricted least squares",
                issue="X'X not positive definite",
                details=str(e)
            ) from e
        theta_U = linalg.cho_solve(factor, rhs)
        bread = linalg.cho_solve(factor, np.eye(n_free)) if need_bread else None
    else:
        kkt = np.zeros((n_free + m, n_free + m))
        kkt[:n_free, :n_free] = H_UU
        kkt[:n_free, n_free:] = R_U.T
        kkt[n_free:, :n_free] = R_U
        try:
            solution = linalg.solve(kkt, np.concatenate([rhs, c_U]), assume_a="sym")
            bread = linalg.inv(kkt)[:n_free, :n_free] if need_bread else None
        except linalg.LinAlgError as e:
            raise InconsistentConstraintsError(
                "Restricted least squares system is singular",
                n_constraints=m,
                details=str(e)
            ) from e
        theta_U = solution[:n_free]

    theta = np.zeros(n)
    theta[free] = theta_U
    theta[fixed_idx] = v
    beta = theta.reshape(ny, k).T

    return beta, bread, free, n_free - m


class VAREstimator(EngineBase):
    """
    Ordinary and restricted least-squares estimator for VAR models.

    The estimator is stateless; ``estimate`` returns a new ``VARModel`` and
    the aligned ``VARData`` on every call.

    Examples:
        >>> from vartoolbox.models.time_series import VAREstimator, VARSpec
        >>> spec = VARSpec(("yy", "pp", "r"), order=2)
        >>> model, data = VAREstimator().estimate(panel, spec)  # doctest: +SKIP
    """

    def __init__(self, name: str = "VAREstimator"):
        super().__init__(name)

    def estimate(self,
                 panel: Union[Panel, pd.DataFrame],
                 spec: VARSpec,
                 sample_range: RangeLike = None,
                 constraints: ConstraintsLike = None,
                 cov_parameters: bool = False) -> Tuple[VARModel, VARData]:
        """
        Estimate a VAR over ``sample_range``.

        Args:
            panel: Observations containing at least ``spec.names``
            spec: Model structure
            sample_range: Fitted periods; defaults to everything after the
                first P periods of the panel
            constraints: ``ConstraintSet`` or restriction text
            cov_parameters: Also compute the covariance of the coefficient
                estimates

        Returns:
            Tuple[VARModel, VARData]: The fitted model and the aligned
            endogenous and residual panels

        Raises:
            InsufficientHistoryError: If the pre-sample is missing or incomplete
            DataError: If the sample contains missing observations
            EstimationError: If the regressors are collinear
            InconsistentConstraintsError: If the restrictions are contradictory
                or linearly dependent
        """
        design = design_matrices(panel, spec, sample_range)
        X, Y = design.X, design.Y
        nobs, k = X.shape
        ny = spec.ny

        constraint_set = as_constraint_set(constraints, spec)
        logger.debug(
            f"Estimating VAR({spec.order}) for {ny} variables on {nobs} observations "
            f"({design.start} to {design.end}), {len(constraint_set)} restrictions"
        )

        if nobs < 1:
            raise DataError(
                "Estimation sample is empty",
                data_name="panel",
                issue="no observations in the sample range"
            )

        if constraint_set.is_empty:
            beta = ols_fit(X, Y)
            bread = None
            free = np.ones(ny * k, dtype=bool)
            n_free = ny * k
        else:
            rank_tol = get_config("numerical", "rank_tolerance", 1e-10)
            compiled = constraint_set.compile(spec)
            beta, bread, free, n_free = _restricted_fit(X, Y, compiled, rank_tol, cov_parameters)

        residuals = Y - X @ beta
        omega = ensure_symmetric(residuals.T @ residuals / nobs)

        sigma = None
        if cov_parameters:
            if bread is None:
                sigma = np.kron(omega, linalg.cho_solve(linalg.cho_factor(X.T @ X, lower=True),
                                                        np.eye(k)))
            else:
                meat = np.kron(omega, X.T @ X)[np.ix_(free, free)]
                sigma = np.zeros((ny * k, ny * k))
                sigma[np.ix_(free, free)] = bread @ meat @ bread
            sigma = ensure_symmetric(sigma)

        model = VARModel.from_coefficients(
            spec, beta, omega, nobs,
            sample_range=(design.start, design.end),
            cov_parameters=sigma,
            n_free=n_free,
            constraints=None if constraint_set.is_empty else constraint_set,
        )

        p = spec.order
        resid_full = np.full((nobs + p, ny), np.nan)
        resid_full[p:] = residuals
        data = VARData(
            endogenous=design.panel,
            residuals=design.panel.with_values(resid_full, list(spec.residual_names)),
            order=p,
        )

        if not model.is_stationary:
            logger.info(f"Estimated VAR has max eigenvalue modulus {model.max_modulus:.6f}")

        return model, data

    async def estimate_async(self, *args, **kwargs) -> Tuple[VARModel, VARData]:
        """Run ``estimate`` in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.estimate(*args, **kwargs))


_default_estimator = VAREstimator()


def estimate(panel: Union[Panel, pd.DataFrame],
             spec: VARSpec,
             sample_range: RangeLike = None,
             constraints: ConstraintsLike = None,
             cov_parameters: bool = False) -> Tuple[VARModel, VARData]:
    """Estimate a VAR; see ``VAREstimator.estimate``."""
    return _default_estimator.estimate(panel, spec, sample_range, constraints, cov_parameters)

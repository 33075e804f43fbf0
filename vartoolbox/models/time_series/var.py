'''
Vector Autoregression (VAR) Model Objects

This module defines the immutable value objects describing reduced-form VAR
models:

    y_t = K + G C y_{t-1} + A_1 y_{t-1} + ... + A_P y_{t-P} + e_t,
    e_t ~ N(0, Omega)

where C is an optional matrix of cointegrating vectors and G its estimated
loading. A ``VARSpec`` fixes the structure (variables, lag order, constant,
cointegration); a ``VARModel`` adds estimated coefficients and the residual
covariance; a ``VAREnsemble`` collects bootstrap re-estimates of one spec.

Derived quantities (companion matrix, eigenvalues, stationarity, asymptotic
mean, information criteria) are computed on demand from the stored arrays,
and every quantity is also reachable through the typed ``get`` accessor.

Classes:
    VARSpec: Structural description of a VAR
    VARModel: Estimated reduced-form VAR
    VAREnsemble: Ordered collection of VARModels sharing one VARSpec

Functions:
    information_criteria: Compute AIC, BIC and HQIC from a log-likelihood
'''

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import linalg

from vartoolbox.core.config import get_config
from vartoolbox.core.exceptions import (
    DimensionError, InvalidInstrumentSpecError, NonStationaryModelError, ParameterError
)
from vartoolbox.core.types import PeriodLike, VARQuantity
from vartoolbox.models.time_series.instruments import Instrument, as_instruments
from vartoolbox.utils.matrix_ops import companion_matrix, cov2corr

if TYPE_CHECKING:
    from vartoolbox.models.time_series.constraints import ConstraintSet

# Set up module-level logger
logger = logging.getLogger("vartoolbox.models.time_series.var")


def _readonly(array: Any, shape: Optional[Tuple[int, ...]] = None, name: str = "array") -> np.ndarray:
    """Float copy of ``array`` with the write flag cleared."""
    out = np.array(array, dtype=float, copy=True)
    if shape is not None and out.shape != shape:
        raise DimensionError(
            f"{name} has incorrect dimensions",
            array_name=name,
            expected_shape=shape,
            actual_shape=out.shape
        )
    out.setflags(write=False)
    return out


def information_criteria(log_likelihood: float,
                         nobs: int,
                         n_params: int) -> Tuple[float, float, float]:
    """
    Compute information criteria for VAR model selection.

    Args:
        log_likelihood: Gaussian log-likelihood of the model
        nobs: Number of fitted observations
        n_params: Number of freely estimated coefficients

    Returns:
        Tuple containing AIC, BIC and HQIC values
    """
    aic = -2 * log_likelihood + 2 * n_params
    bic = -2 * log_likelihood + n_params * np.log(nobs)
    hqic = -2 * log_likelihood + 2 * n_params * np.log(np.log(nobs))
    return aic, bic, hqic


@dataclass(frozen=True, eq=False)
class VARSpec:
    """
    Structural description of a VAR model.

    Attributes:
        names: Ordered, unique endogenous variable names
        order: Lag order P (positive)
        constant: Whether each equation includes an intercept
        cointeg: Optional cointegrating vectors C (Ng x Ny); the regressors
            of each equation become ``[1, C y_{t-1}, y_{t-1}, ..., y_{t-P}]``
    """

    names: Tuple[str, ...]
    order: int
    constant: bool = True
    cointeg: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        """Validate the specification after initialization."""
        if isinstance(self.names, str):
            raise ParameterError(
                "names must be a sequence of variable names, not a single string",
                param_name="names",
                param_value=self.names
            )
        names = tuple(str(n) for n in self.names)
        object.__setattr__(self, "names", names)

        if not names:
            raise ParameterError(
                "At least one variable name must be provided",
                param_name="names",
                constraint="Non-empty sequence"
            )
        if len(set(names)) != len(names):
            raise ParameterError(
                "Variable names must be unique",
                param_name="names",
                param_value=list(names),
                constraint="Unique names"
            )

        if not isinstance(self.order, (int, np.integer)) or isinstance(self.order, bool) or self.order < 1:
            raise ParameterError(
                f"Lag order must be a positive integer, got {self.order}",
                param_name="order",
                param_value=self.order,
                constraint="Positive integer"
            )
        object.__setattr__(self, "order", int(self.order))
        object.__setattr__(self, "constant", bool(self.constant))

        if self.cointeg is not None:
            cointeg = np.atleast_2d(np.array(self.cointeg, dtype=float))
            if cointeg.shape[1] != len(names):
                raise DimensionError(
                    "Cointegrating vectors must have one column per variable",
                    array_name="cointeg",
                    expected_shape=f"(Ng, {len(names)})",
                    actual_shape=cointeg.shape
                )
            if cointeg.shape[0] == 0:
                cointeg = None
            else:
                cointeg.setflags(write=False)
            object.__setattr__(self, "cointeg", cointeg)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VARSpec):
            return NotImplemented
        if (self.names, self.order, self.constant) != (other.names, other.order, other.constant):
            return False
        if self.cointeg is None or other.cointeg is None:
            return self.cointeg is None and other.cointeg is None
        return self.cointeg.shape == other.cointeg.shape and bool(np.all(self.cointeg == other.cointeg))

    def __hash__(self) -> int:
        return hash((self.names, self.order, self.constant, self.ng))

    @property
    def ny(self) -> int:
        """Number of endogenous variables."""
        return len(self.names)

    @property
    def ng(self) -> int:
        """Number of cointegrating vectors."""
        return 0 if self.cointeg is None else self.cointeg.shape[0]

    @property
    def n_regressors(self) -> int:
        """Regressors per equation: constant, cointegration terms, then lags."""
        return int(self.constant) + self.ng + self.ny * self.order

    @property
    def n_coefficients(self) -> int:
        """Total number of coefficients across all equations."""
        return self.ny * self.n_regressors

    @property
    def residual_names(self) -> Tuple[str, ...]:
        return tuple(f"res_{n}" for n in self.names)

    def regressor_names(self) -> List[str]:
        """Labels of the regressors in design-matrix column order."""
        labels = []
        if self.constant:
            labels.append("const")
        labels.extend(f"coint{g + 1}" for g in range(self.ng))
        for lag in range(1, self.order + 1):
            labels.extend(f"{n}{{-{lag}}}" for n in self.names)
        return labels

    def to_dict(self) -> Dict[str, Any]:
        return {
            "names": list(self.names),
            "order": self.order,
            "constant": self.constant,
            "cointeg": None if self.cointeg is None else self.cointeg.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VARSpec":
        return cls(tuple(data["names"]), int(data["order"]), bool(data.get("constant", True)),
                   data.get("cointeg"))


@dataclass(frozen=True, eq=False)
class VARModel:
    """
    Estimated reduced-form VAR model.

    All arrays are stored as read-only float copies. Models are never
    modified; methods such as ``with_instrument`` return new instances.

    Attributes:
        spec: The model structure
        A: Lag coefficients (Ny x Ny x P); ``A[:, :, l-1]`` multiplies y_{t-l}
        K: Intercepts (Ny,); zeros when the spec has no constant
        G: Cointegration loadings (Ny x Ng)
        omega: Residual covariance (Ny x Ny)
        nobs: Number of fitted observations
        sample_range: First and last fitted period
        cov_parameters: Optional covariance of the stacked coefficient vector,
            ordered one equation after another with regressors in
            ``spec.regressor_names()`` order
        instruments: Registered forecast conditioning instruments
        n_free: Number of freely estimated coefficients (all when None)
        constraints: Restrictions the model was estimated under (None when
            unrestricted)
    """

    spec: VARSpec
    A: np.ndarray
    K: np.ndarray
    G: np.ndarray
    omega: np.ndarray
    nobs: int
    sample_range: Optional[Tuple[PeriodLike, PeriodLike]] = None
    cov_parameters: Optional[np.ndarray] = None
    instruments: Tuple[Instrument, ...] = ()
    n_free: Optional[int] = None
    constraints: Optional["ConstraintSet"] = None

    def __post_init__(self) -> None:
        """Validate dimensions and freeze arrays."""
        ny, p, ng = self.spec.ny, self.spec.order, self.spec.ng

        object.__setattr__(self, "A", _readonly(self.A, (ny, ny, p), "A"))
        object.__setattr__(self, "K", _readonly(self.K, (ny,), "K"))
        object.__setattr__(self, "G", _readonly(np.reshape(self.G, (ny, ng)), (ny, ng), "G"))
        object.__setattr__(self, "omega", _readonly(self.omega, (ny, ny), "omega"))

        if not self.spec.constant and np.any(self.K != 0):
            raise ParameterError(
                "A model without a constant must have zero intercepts",
                param_name="K",
                constraint="K == 0 when constant=False"
            )

        if self.cov_parameters is not None:
            n = self.spec.n_coefficients
            object.__setattr__(self, "cov_parameters",
                               _readonly(self.cov_parameters, (n, n), "cov_parameters"))

        object.__setattr__(self, "nobs", int(self.nobs))
        object.__setattr__(self, "instruments", tuple(self.instruments))
        if self.sample_range is not None:
            object.__setattr__(self, "sample_range", tuple(self.sample_range))

    # ---- construction ----

    @classmethod
    def from_coefficients(cls,
                          spec: VARSpec,
                          beta: np.ndarray,
                          omega: np.ndarray,
                          nobs: int,
                          **kwargs: Any) -> "VARModel":
        """
        Build a model from a stacked (n_regressors x Ny) coefficient matrix.

        Rows of ``beta`` follow ``spec.regressor_names()``: constant,
        cointegration terms, then lag 1 through lag P blocks of Ny rows.
        """
        beta = np.asarray(beta, dtype=float)
        ny, p, ng = spec.ny, spec.order, spec.ng
        if beta.shape != (spec.n_regressors, ny):
            raise DimensionError(
                "Coefficient matrix has incorrect dimensions",
                array_name="beta",
                expected_shape=(spec.n_regressors, ny),
                actual_shape=beta.shape
            )

        row = 0
        K = np.zeros(ny)
        if spec.constant:
            K = beta[0].copy()
            row = 1
        G = beta[row:row + ng].T.copy()
        row += ng

        A = np.zeros((ny, ny, p))
        for lag in range(p):
            A[:, :, lag] = beta[row + lag * ny:row + (lag + 1) * ny].T

        return cls(spec=spec, A=A, K=K, G=G, omega=omega, nobs=nobs, **kwargs)

    def coefficient_matrix(self) -> np.ndarray:
        """Stacked (n_regressors x Ny) coefficient matrix, the inverse of ``from_coefficients``."""
        blocks = []
        if self.spec.constant:
            blocks.append(self.K[None, :])
        if self.spec.ng:
            blocks.append(self.G.T)
        for lag in range(self.order):
            blocks.append(self.A[:, :, lag].T)
        return np.vstack(blocks)

    def with_instrument(self, *definitions: Union[str, Instrument]) -> "VARModel":
        """
        Return a copy of the model with additional conditioning instruments.

        Args:
            *definitions: ``Instrument`` objects or definitions such as
                ``'nn := pp + yy'``

        Raises:
            InvalidInstrumentSpecError: If an instrument refers to unknown
                variables, uses a lag beyond the model order, or reuses a name
        """
        new = as_instruments(definitions)
        existing = {inst.name for inst in self.instruments}
        for inst in new:
            inst.validate(self.names, self.order)
            if inst.name in existing:
                raise InvalidInstrumentSpecError(
                    f"Instrument '{inst.name}' is already registered",
                    instrument=inst.name
                )
            existing.add(inst.name)
        return replace(self, instruments=self.instruments + new)

    def instrument(self, name: str) -> Optional[Instrument]:
        """Registered instrument called ``name``, or None."""
        for inst in self.instruments:
            if inst.name == name:
                return inst
        return None

    # ---- dimensions ----

    @property
    def ny(self) -> int:
        return self.spec.ny

    @property
    def order(self) -> int:
        return self.spec.order

    @property
    def names(self) -> Tuple[str, ...]:
        return self.spec.names

    @property
    def residual_names(self) -> Tuple[str, ...]:
        return self.spec.residual_names

    # ---- derived quantities ----

    def transition(self) -> np.ndarray:
        """
        Effective lag matrices (P x Ny x Ny) with the cointegration term folded in.

        ``transition()[l]`` multiplies y_{t-l-1}; the first lag includes G C.
        """
        trans = np.ascontiguousarray(np.moveaxis(np.array(self.A), 2, 0))
        if self.spec.ng:
            trans[0] += self.G @ self.spec.cointeg
        return trans

    @property
    def companion(self) -> np.ndarray:
        """Companion matrix of the effective lag structure (Ny*P x Ny*P)."""
        return companion_matrix(np.moveaxis(self.transition(), 0, 2))

    @property
    def eigenvalues(self) -> np.ndarray:
        """Companion eigenvalues sorted by decreasing modulus."""
        eig = np.linalg.eigvals(self.companion)
        return eig[np.argsort(-np.abs(eig), kind="stable")]

    @property
    def max_modulus(self) -> float:
        return float(np.max(np.abs(self.eigenvalues)))

    @property
    def is_stationary(self) -> bool:
        """True when every eigenvalue lies strictly inside the tolerance-shrunk unit circle."""
        tol = get_config("numerical", "stationarity_tolerance", 1e-8)
        return self.max_modulus < 1 - tol

    def require_stationary(self, operation: str) -> None:
        """Raise NonStationaryModelError unless the model is stationary."""
        if not self.is_stationary:
            raise NonStationaryModelError(
                f"{operation} requires a stationary model",
                max_modulus=self.max_modulus,
                operation=operation
            )

    @property
    def mean(self) -> np.ndarray:
        """
        Asymptotic mean (I - sum_l A_l)^{-1} K.

        Raises:
            NonStationaryModelError: If the model is not stationary
        """
        self.require_stationary("mean")
        total = np.eye(self.ny) - self.transition().sum(axis=0)
        return linalg.solve(total, self.K)

    @property
    def residual_correlation(self) -> np.ndarray:
        """Correlation matrix of the residuals."""
        return cov2corr(self.omega)

    @property
    def log_likelihood(self) -> float:
        """Gaussian log-likelihood evaluated at the residual covariance."""
        sign, logdet = np.linalg.slogdet(self.omega)
        if sign <= 0:
            return float("-inf")
        return float(-0.5 * self.nobs * (self.ny * np.log(2 * np.pi) + logdet + self.ny))

    @property
    def information_criteria(self) -> Dict[str, float]:
        """AIC, BIC and HQIC based on the number of freely estimated coefficients."""
        n_params = self.spec.n_coefficients if self.n_free is None else self.n_free
        aic, bic, hqic = information_criteria(self.log_likelihood, self.nobs, n_params)
        return {"aic": aic, "bic": bic, "hqic": hqic}

    @property
    def std_errors(self) -> Optional[np.ndarray]:
        """Coefficient standard errors as an (n_regressors x Ny) matrix, when available."""
        if self.cov_parameters is None:
            return None
        se = np.sqrt(np.clip(np.diag(self.cov_parameters), 0.0, None))
        return se.reshape(self.ny, self.spec.n_regressors).T

    # ---- typed accessors ----

    def get(self, quantity: VARQuantity) -> Any:
        """
        Read a model quantity by its typed tag.

        Raises:
            ParameterError: If the quantity is not defined for a reduced-form model
        """
        if not isinstance(quantity, VARQuantity):
            raise ParameterError(
                "Quantities are selected with VARQuantity members",
                param_name="quantity",
                param_value=quantity
            )
        getters = {
            VARQuantity.A: lambda: self.A,
            VARQuantity.K: lambda: self.K,
            VARQuantity.G: lambda: self.G,
            VARQuantity.OMEGA: lambda: self.omega,
            VARQuantity.COV_PARAMETERS: lambda: self.cov_parameters,
            VARQuantity.EIGENVALUES: lambda: self.eigenvalues,
            VARQuantity.NAMES: lambda: self.names,
            VARQuantity.RESIDUAL_NAMES: lambda: self.residual_names,
            VARQuantity.ORDER: lambda: self.order,
            VARQuantity.NOBS: lambda: self.nobs,
            VARQuantity.COINTEG: lambda: self.spec.cointeg,
            VARQuantity.INSTRUMENT_NAMES: lambda: tuple(i.name for i in self.instruments),
            VARQuantity.INSTRUMENT_EQUATIONS: lambda: tuple(i.equation for i in self.instruments),
        }
        if quantity not in getters:
            raise ParameterError(
                f"{quantity.name} is not defined for a reduced-form VAR",
                param_name="quantity",
                param_value=quantity.name
            )
        return getters[quantity]()

    # ---- presentation and persistence ----

    def summary(self) -> str:
        """
        Generate a text summary of the VAR model.

        Returns:
            str: A formatted string containing the model summary.
        """
        header = f"Model: VAR({self.order})\n"
        header += "=" * (len(header) - 1) + "\n\n"

        info = f"Variables: {', '.join(self.names)}\n"
        info += f"Number of observations: {self.nobs}\n"
        if self.sample_range is not None:
            info += f"Sample: {self.sample_range[0]} to {self.sample_range[1]}\n"
        info += f"Log-likelihood: {self.log_likelihood:.6f}\n"
        for key, value in self.information_criteria.items():
            info += f"{key.upper()}: {value:.6f}\n"
        info += f"Stationary: {'Yes' if self.is_stationary else 'No'}\n\n"

        beta = self.coefficient_matrix()
        se = self.std_errors
        labels = self.spec.regressor_names()

        coef_tables = ""
        for i, name in enumerate(self.names):
            coef_tables += f"Equation {name}:\n"
            coef_tables += "-" * 44 + "\n"
            coef_tables += f"{'Parameter':<15} {'Estimate':>12} {'Std. Error':>12}\n"
            coef_tables += "-" * 44 + "\n"
            for r, label in enumerate(labels):
                err = f"{se[r, i]:>12.6f}" if se is not None else f"{'':>12}"
                coef_tables += f"{label:<15} {beta[r, i]:>12.6f} {err}\n"
            coef_tables += "-" * 44 + "\n\n"

        cov_matrix = "Residual Covariance Matrix:\n"
        for i in range(self.ny):
            cov_matrix += " ".join(f"{self.omega[i, j]:>12.6f}" for j in range(self.ny)) + "\n"

        if self.instruments:
            cov_matrix += "\nInstruments:\n"
            cov_matrix += "\n".join(f"  {inst.equation}" for inst in self.instruments) + "\n"

        return header + info + coef_tables + cov_matrix

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"VARModel(names={list(self.names)}, order={self.order}, nobs={self.nobs})"

    def to_pandas(self) -> Dict[str, pd.DataFrame]:
        """
        Convert the model to Pandas DataFrames.

        Returns:
            Dict[str, pd.DataFrame]: ``coefficients`` (regressors x equations),
            ``residual_cov`` and, when available, ``std_errors``
        """
        labels = self.spec.regressor_names()
        results = {
            "coefficients": pd.DataFrame(self.coefficient_matrix(), index=labels,
                                         columns=list(self.names)),
            "residual_cov": pd.DataFrame(np.array(self.omega), index=list(self.residual_names),
                                         columns=list(self.residual_names)),
        }
        if self.cov_parameters is not None:
            results["std_errors"] = pd.DataFrame(self.std_errors, index=labels,
                                                 columns=list(self.names))
        return results

    def to_dict(self) -> Dict[str, Any]:
        """Plain-Python representation suitable for JSON persistence."""
        sample = None
        if self.sample_range is not None:
            start, end = self.sample_range
            if isinstance(start, pd.Period):
                sample = {"start": str(start), "end": str(end), "freq": start.freqstr}
            else:
                sample = {"start": int(start), "end": int(end), "freq": None}
        return {
            "spec": self.spec.to_dict(),
            "A": self.A.tolist(),
            "K": self.K.tolist(),
            "G": self.G.tolist(),
            "omega": self.omega.tolist(),
            "nobs": self.nobs,
            "sample_range": sample,
            "cov_parameters": None if self.cov_parameters is None else self.cov_parameters.tolist(),
            "instruments": [inst.to_dict() for inst in self.instruments],
            "n_free": self.n_free,
            "constraints": None if self.constraints is None else self.constraints.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VARModel":
        """Rebuild a model from the output of ``to_dict``."""
        from vartoolbox.models.time_series.constraints import ConstraintSet

        spec = VARSpec.from_dict(data["spec"])
        sample = data.get("sample_range")
        sample_range = None
        if sample is not None:
            if sample.get("freq"):
                sample_range = (pd.Period(sample["start"], freq=sample["freq"]),
                                pd.Period(sample["end"], freq=sample["freq"]))
            else:
                sample_range = (int(sample["start"]), int(sample["end"]))
        return cls(
            spec=spec,
            A=np.asarray(data["A"], dtype=float).reshape(spec.ny, spec.ny, spec.order),
            K=data["K"],
            G=np.asarray(data["G"], dtype=float).reshape(spec.ny, spec.ng),
            omega=data["omega"],
            nobs=data["nobs"],
            sample_range=sample_range,
            cov_parameters=data.get("cov_parameters"),
            instruments=tuple(Instrument.from_dict(d) for d in data.get("instruments", [])),
            n_free=data.get("n_free"),
            constraints=None if data.get("constraints") is None
            else ConstraintSet.from_dict(data["constraints"]),
        )


@dataclass(frozen=True, eq=False)
class VAREnsemble:
    """
    Ordered, immutable collection of VAR models sharing one VARSpec.

    Attributes:
        members: The models, in draw order
        residual_draws: Optional residual draw of each member (T x Ny x N)
        n_excluded: Number of bootstrap draws dropped because re-estimation failed
        draw_ids: Original draw index of each member
    """

    members: Tuple[VARModel, ...]
    residual_draws: Optional[np.ndarray] = None
    n_excluded: int = 0
    draw_ids: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        members = tuple(self.members)
        object.__setattr__(self, "members", members)

        if not members:
            raise ParameterError(
                "An ensemble needs at least one model",
                param_name="members",
                constraint="Non-empty"
            )
        spec = members[0].spec
        if any(m.spec != spec for m in members[1:]):
            raise ParameterError(
                "All ensemble members must share the same VARSpec",
                param_name="members"
            )

        n = len(members)
        if self.residual_draws is not None:
            draws = _readonly(self.residual_draws, name="residual_draws")
            if draws.ndim != 3 or draws.shape[1] != spec.ny or draws.shape[2] != n:
                raise DimensionError(
                    "Residual draws must be (T x Ny x N) with one slice per member",
                    array_name="residual_draws",
                    expected_shape=f"(T, {spec.ny}, {n})",
                    actual_shape=draws.shape
                )
            object.__setattr__(self, "residual_draws", draws)

        ids = np.arange(n) if self.draw_ids is None else np.asarray(self.draw_ids, dtype=np.int64)
        if ids.shape != (n,):
            raise DimensionError(
                "draw_ids must hold one index per member",
                array_name="draw_ids",
                expected_shape=(n,),
                actual_shape=ids.shape
            )
        ids = ids.copy()
        ids.setflags(write=False)
        object.__setattr__(self, "draw_ids", ids)
        object.__setattr__(self, "n_excluded", int(self.n_excluded))

    @property
    def spec(self) -> VARSpec:
        return self.members[0].spec

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    def __getitem__(self, key: Union[int, np.integer, slice, Sequence[int], np.ndarray]
                    ) -> Union[VARModel, "VAREnsemble"]:
        """Integer keys return a model; slices, index lists and boolean masks return an ensemble."""
        if isinstance(key, (int, np.integer)):
            return self.members[key]
        if isinstance(key, slice):
            positions = np.arange(len(self))[key]
        else:
            key = np.asarray(key)
            if key.dtype == bool:
                return self.filter(key)
            positions = np.arange(len(self))[key]
        return self._take(positions)

    def _take(self, positions: np.ndarray) -> "VAREnsemble":
        positions = np.asarray(positions, dtype=np.intp)
        if positions.size == 0:
            raise ParameterError(
                "Selection leaves no ensemble members",
                param_name="key",
                constraint="At least one member selected"
            )
        draws = None
        if self.residual_draws is not None:
            draws = self.residual_draws[:, :, positions]
        return VAREnsemble(
            members=tuple(self.members[i] for i in positions),
            residual_draws=draws,
            n_excluded=self.n_excluded,
            draw_ids=self.draw_ids[positions],
        )

    @property
    def is_stationary(self) -> np.ndarray:
        """Boolean stationarity flag of each member."""
        return np.array([m.is_stationary for m in self.members], dtype=bool)

    def filter(self, mask: Union[Sequence[bool], np.ndarray]) -> "VAREnsemble":
        """
        Keep the members where ``mask`` is True, preserving their order.

        Raises:
            DimensionError: If the mask length differs from the ensemble size
            ParameterError: If the mask selects nothing
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (len(self),):
            raise DimensionError(
                "Mask must have one entry per ensemble member",
                array_name="mask",
                expected_shape=(len(self),),
                actual_shape=mask.shape
            )
        return self._take(np.flatnonzero(mask))

    def stationary(self) -> "VAREnsemble":
        """Ensemble restricted to its stationary members."""
        return self.filter(self.is_stationary)

    def residuals(self, i: int) -> Optional[np.ndarray]:
        """Residual draw (T x Ny) of member ``i``."""
        if self.residual_draws is None:
            return None
        return self.residual_draws[:, :, i]

    def get(self, quantity: VARQuantity) -> Any:
        """
        Read a quantity from every member, stacked along a trailing axis.

        Shared descriptors (names, order, instruments) are returned once.
        """
        if quantity in (VARQuantity.NAMES, VARQuantity.RESIDUAL_NAMES, VARQuantity.ORDER,
                        VARQuantity.COINTEG, VARQuantity.INSTRUMENT_NAMES,
                        VARQuantity.INSTRUMENT_EQUATIONS):
            return self.members[0].get(quantity)
        values = [m.get(quantity) for m in self.members]
        if any(v is None for v in values):
            return None
        return np.stack([np.asarray(v) for v in values], axis=-1)

    def __repr__(self) -> str:
        return (f"VAREnsemble(n={len(self)}, names={list(self.spec.names)}, "
                f"order={self.spec.order}, n_excluded={self.n_excluded})")

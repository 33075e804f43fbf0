'''
Recursive (Cholesky) identification of structural VAR shocks.

Given a reduced-form VAR with residual covariance Omega, identification picks
an impact matrix B with B B' = Omega. For an ordering ``perm`` of the
variables, B is the permuted lower-triangular factor satisfying

    B[perm][:, perm] = chol(Omega[perm][:, perm])

so that the first variable in the ordering responds only to its own shock on
impact. Structural shocks are recovered from reduced-form residuals as
u_t = B^{-1} e_t and are reported in the original variable order.
'''

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import linalg

from vartoolbox.core.base import EngineBase
from vartoolbox.core.exceptions import (
    NonPositiveDefiniteResidualCovarianceError, ParameterError
)
from vartoolbox.core.panel import Panel
from vartoolbox.core.types import VARQuantity
from vartoolbox.models.time_series.estimation import VARData
from vartoolbox.models.time_series.var import VARModel, _readonly
from vartoolbox.utils.matrix_ops import is_positive_definite, permuted_cholesky, validate_ordering

logger = logging.getLogger("vartoolbox.models.time_series.structural")

OrderingLike = Optional[Sequence[Union[int, str]]]


@dataclass(frozen=True, eq=False)
class StructuralModel:
    """
    A reduced-form VAR together with its structural impact matrix.

    Attributes:
        model: The reduced-form model
        B: Impact matrix (Ny x Ny) with B B' = Omega
        ordering: Recursive ordering used for identification, as positions
        shock_names: Names of the structural shocks
    """
    model: VARModel
    B: np.ndarray
    ordering: Tuple[int, ...]
    shock_names: Tuple[str, ...]

    def __post_init__(self) -> None:
        ny = self.model.ny
        object.__setattr__(self, "B", _readonly(self.B, (ny, ny), "B"))
        object.__setattr__(self, "ordering", tuple(int(i) for i in self.ordering))
        object.__setattr__(self, "shock_names", tuple(self.shock_names))

    @property
    def ny(self) -> int:
        return self.model.ny

    @property
    def names(self) -> Tuple[str, ...]:
        return self.model.names

    @property
    def omega(self) -> np.ndarray:
        return self.model.omega

    @property
    def is_stationary(self) -> bool:
        return self.model.is_stationary

    def get(self, quantity: VARQuantity) -> Any:
        """Typed accessor; ``VARQuantity.B`` returns the impact matrix."""
        if quantity is VARQuantity.B:
            return self.B
        return self.model.get(quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.to_dict(),
            "B": self.B.tolist(),
            "ordering": list(self.ordering),
            "shock_names": list(self.shock_names),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuralModel":
        return cls(VARModel.from_dict(data["model"]), data["B"],
                   tuple(data["ordering"]), tuple(data["shock_names"]))

    def __repr__(self) -> str:
        return (f"StructuralModel(names={list(self.names)}, order={self.model.order}, "
                f"ordering={list(self.ordering)})")


def _ordering_positions(ordering: OrderingLike, names: Sequence[str]) -> np.ndarray:
    """Convert an ordering given by names or positions to a permutation array."""
    if ordering is None:
        return validate_ordering(None, len(names))
    items = list(ordering)
    if items and all(isinstance(item, str) for item in items):
        unknown = [item for item in items if item not in names]
        if unknown:
            raise ParameterError(
                "Ordering refers to unknown variables",
                param_name="ordering",
                param_value=items,
                constraint=f"permutation of {list(names)}"
            )
        items = [list(names).index(item) for item in items]
    return validate_ordering(items, len(names))


class StructuralIdentifier(EngineBase):
    """Recursive identification of structural shocks from a fitted VAR."""

    def __init__(self, name: str = "StructuralIdentifier"):
        super().__init__(name)

    def identify(self,
                 model: VARModel,
                 data: Optional[VARData] = None,
                 ordering: OrderingLike = None) -> Tuple[StructuralModel, Optional[Panel]]:
        """
        Identify structural shocks by a (possibly permuted) Cholesky factorization.

        Args:
            model: Reduced-form VAR
            data: Residual data from estimation; when given, the structural
                shocks are computed for every fitted period
            ordering: Recursive ordering as variable positions or names;
                the model order when None

        Returns:
            Tuple[StructuralModel, Optional[Panel]]: The structural model and
            the shock panel (None when ``data`` is None)

        Raises:
            ParameterError: If the ordering is not a permutation
            NonPositiveDefiniteResidualCovarianceError: If Omega is not
                strictly positive definite
        """
        perm = _ordering_positions(ordering, model.names)

        if not is_positive_definite(model.omega):
            raise NonPositiveDefiniteResidualCovarianceError(
                "Residual covariance is not positive definite",
                details=f"eigenvalues: {np.linalg.eigvalsh(model.omega)}"
            )
        try:
            B = permuted_cholesky(model.omega, perm)
        except linalg.LinAlgError as e:
            raise NonPositiveDefiniteResidualCovarianceError(
                "Residual covariance is not positive definite",
                details=str(e)
            ) from e

        structural = StructuralModel(model, B, tuple(perm), model.residual_names)
        logger.debug(f"Identified structural shocks with ordering {list(perm)}")

        if data is None:
            return structural, None

        residuals = np.array(data.residuals.values)
        shocks = np.full_like(residuals, np.nan)
        sample = residuals[data.order:]
        shocks[data.order:] = linalg.solve(B, sample.T).T
        return structural, data.residuals.with_values(shocks, list(structural.shock_names))


_default_identifier = StructuralIdentifier()


def identify(model: VARModel,
             data: Optional[VARData] = None,
             ordering: OrderingLike = None) -> Tuple[StructuralModel, Optional[Panel]]:
    """Identify structural shocks; see ``StructuralIdentifier.identify``."""
    return _default_identifier.identify(model, data, ordering)

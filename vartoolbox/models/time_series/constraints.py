'''
Linear equality restrictions on VAR coefficients.

Restrictions come in two kinds:

* fixed values, ``theta_i = v`` for a single coefficient, and
* general linear restrictions, ``sum_i w_i theta_i = c``.

A ``ConstraintSet`` can be built programmatically (``fix``, ``add_linear``),
from fixed-value arrays in which NaN marks a free coefficient
(``from_arrays``), or from text (``parse``), e.g.::

    A(3,1:2,:) = 0              # equation 3 ignores variables 1-2 at all lags
    A(3,1,1) + A(3,2,1) = -1    # a general restriction across two coefficients
    K(2) = 0                    # no intercept in equation 2

Indices in text are 1-based: ``A(row, column, lag)``, ``K(row)`` and
``G(row, cointegrating vector)``. An index may be a number, a range ``a:b``
or ``:`` for all positions. Ranges are only allowed in single-term
restrictions, which expand into one fixed value per coefficient.

Text is resolved against a ``VARSpec`` when parsed, so a constraint set
only ever holds concrete coefficient references.
'''

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from vartoolbox.core.exceptions import (
    DimensionError, InconsistentConstraintsError, ParameterError
)
from vartoolbox.models.time_series.var import VARSpec

logger = logging.getLogger("vartoolbox.models.time_series.constraints")

_NUMBER = r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
_TERM_RE = re.compile(
    rf"\s*(?P<sign>[+-])?\s*(?:(?P<weight>{_NUMBER})\s*\*\s*)?(?P<block>[AKG])\s*\((?P<args>[^()]*)\)\s*"
)
_RHS_RE = re.compile(rf"^\s*(?P<sign>[+-])?\s*(?P<value>{_NUMBER})\s*$")


@dataclass(frozen=True)
class Coefficient:
    """
    Reference to one VAR coefficient, with 0-based positions.

    Attributes:
        block: ``'A'`` (lag coefficients), ``'K'`` (intercepts) or ``'G'``
            (cointegration loadings)
        row: Equation position
        col: Variable position for ``A``, cointegrating vector for ``G``,
            0 for ``K``
        lag: Lag (1-based) for ``A``; ignored otherwise
    """
    block: str
    row: int
    col: int = 0
    lag: int = 1

    def index(self, spec: VARSpec) -> int:
        """
        Position of the coefficient in the stacked coefficient vector.

        The vector stacks equations one after another; within an equation the
        regressors follow ``spec.regressor_names()``.

        Raises:
            ParameterError: If the reference does not exist in ``spec``
        """
        ny, nreg, const = spec.ny, spec.n_regressors, int(spec.constant)

        if not 0 <= self.row < ny:
            self._out_of_range("row", self.row, ny)

        if self.block == "K":
            if not spec.constant:
                raise ParameterError(
                    "Intercepts cannot be restricted in a VAR without a constant",
                    param_name="K",
                    param_value=str(self)
                )
            reg = 0
        elif self.block == "G":
            if not 0 <= self.col < spec.ng:
                self._out_of_range("cointegrating vector", self.col, spec.ng)
            reg = const + self.col
        elif self.block == "A":
            if not 0 <= self.col < ny:
                self._out_of_range("column", self.col, ny)
            if not 1 <= self.lag <= spec.order:
                raise ParameterError(
                    f"Lag {self.lag} in {self} is outside 1..{spec.order}",
                    param_name="lag",
                    param_value=self.lag,
                    constraint=f"1 <= lag <= {spec.order}"
                )
            reg = const + spec.ng + (self.lag - 1) * ny + self.col
        else:
            raise ParameterError(
                f"Unknown coefficient block '{self.block}'",
                param_name="block",
                param_value=self.block,
                constraint="one of 'A', 'K', 'G'"
            )

        return self.row * nreg + reg

    def _out_of_range(self, what: str, value: int, size: int) -> None:
        raise ParameterError(
            f"{what.capitalize()} index in {self} is out of range",
            param_name=what,
            param_value=value + 1,
            constraint=f"1..{size}"
        )

    def __str__(self) -> str:
        if self.block == "A":
            return f"A({self.row + 1},{self.col + 1},{self.lag})"
        if self.block == "G":
            return f"G({self.row + 1},{self.col + 1})"
        return f"K({self.row + 1})"


@dataclass(frozen=True)
class LinearConstraint:
    """
    General restriction ``sum(weight * coefficient) = rhs``.

    Attributes:
        terms: ``(coefficient, weight)`` pairs
        rhs: Right-hand side value
    """
    terms: Tuple[Tuple[Coefficient, float], ...]
    rhs: float = 0.0

    def __str__(self) -> str:
        lhs = " + ".join(f"{w:g}*{c}" for c, w in self.terms)
        return f"{lhs} = {self.rhs:g}"


@dataclass(frozen=True)
class CompiledConstraints:
    """
    Constraint set resolved against a VARSpec.

    Attributes:
        fixed_index: Positions of fixed coefficients in the stacked vector
        fixed_values: Values of the fixed coefficients
        R: General restriction matrix (m x n_coefficients)
        c: General restriction right-hand side (m,)
    """
    fixed_index: np.ndarray
    fixed_values: np.ndarray
    R: np.ndarray
    c: np.ndarray

    @property
    def n_fixed(self) -> int:
        return int(self.fixed_index.size)

    @property
    def n_linear(self) -> int:
        return int(self.R.shape[0])


@dataclass(frozen=True)
class ConstraintSet:
    """
    Immutable collection of fixed-value and general linear restrictions.

    Builder methods return new sets; the empty set imposes nothing.

    Attributes:
        fixed: ``(coefficient, value)`` restrictions
        linear: General linear restrictions
    """
    fixed: Tuple[Tuple[Coefficient, float], ...] = ()
    linear: Tuple[LinearConstraint, ...] = ()

    def __len__(self) -> int:
        return len(self.fixed) + len(self.linear)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def fix(self, coefficient: Coefficient, value: float) -> "ConstraintSet":
        """Add ``coefficient = value``."""
        return ConstraintSet(self.fixed + ((coefficient, float(value)),), self.linear)

    def add_linear(self,
                   terms: Iterable[Tuple[Coefficient, float]],
                   rhs: float = 0.0) -> "ConstraintSet":
        """Add ``sum(weight * coefficient) = rhs``."""
        terms = tuple((c, float(w)) for c, w in terms)
        if not terms:
            raise ParameterError(
                "A linear restriction needs at least one term",
                param_name="terms",
                constraint="Non-empty"
            )
        return ConstraintSet(self.fixed, self.linear + (LinearConstraint(terms, float(rhs)),))

    def merge(self, other: "ConstraintSet") -> "ConstraintSet":
        return ConstraintSet(self.fixed + other.fixed, self.linear + other.linear)

    @classmethod
    def from_arrays(cls,
                    spec: VARSpec,
                    A: Optional[np.ndarray] = None,
                    K: Optional[np.ndarray] = None,
                    G: Optional[np.ndarray] = None) -> "ConstraintSet":
        """
        Build fixed-value restrictions from arrays where NaN marks a free coefficient.

        Args:
            spec: Model structure the arrays refer to
            A: (Ny x Ny x P) lag coefficient values
            K: (Ny,) intercept values
            G: (Ny x Ng) cointegration loading values

        Raises:
            DimensionError: If an array does not match ``spec``
        """
        ny, p, ng = spec.ny, spec.order, spec.ng
        fixed: List[Tuple[Coefficient, float]] = []

        if A is not None:
            A = _checked(A, (ny, ny, p), "A")
            for i, j, lag in zip(*np.nonzero(~np.isnan(A))):
                fixed.append((Coefficient("A", int(i), int(j), int(lag) + 1), float(A[i, j, lag])))
        if K is not None:
            K = _checked(K, (ny,), "K")
            for i in np.flatnonzero(~np.isnan(K)):
                fixed.append((Coefficient("K", int(i)), float(K[i])))
        if G is not None:
            G = _checked(G, (ny, ng), "G")
            for i, g in zip(*np.nonzero(~np.isnan(G))):
                fixed.append((Coefficient("G", int(i), int(g)), float(G[i, g])))

        return cls(tuple(fixed))

    @classmethod
    def parse(cls, text: Union[str, Sequence[str]], spec: VARSpec) -> "ConstraintSet":
        """
        Parse textual restrictions against ``spec``.

        Args:
            text: One restriction or a sequence of them; a single string may
                also hold several restrictions separated by ``;`` or newlines
            spec: Model structure used to resolve ``:`` and check indices

        Raises:
            ParameterError: If a restriction is malformed or out of range
        """
        if isinstance(text, str):
            items = [s for s in re.split(r"[;\n]", text)]
        else:
            items = list(text)

        result = cls()
        for item in items:
            if not item.strip():
                continue
            result = result.merge(_parse_one(item, spec))

        logger.debug(f"Parsed {len(result.fixed)} fixed and {len(result.linear)} linear restrictions")
        return result

    def compile(self, spec: VARSpec) -> CompiledConstraints:
        """
        Resolve the set against ``spec`` into index arrays and a restriction matrix.

        Raises:
            ParameterError: If a reference does not exist in ``spec``
            InconsistentConstraintsError: If a coefficient is fixed to two
                different values
        """
        n = spec.n_coefficients
        fixed: Dict[int, float] = {}
        for coef, value in self.fixed:
            idx = coef.index(spec)
            if idx in fixed and not np.isclose(fixed[idx], value, rtol=0.0, atol=1e-12):
                raise InconsistentConstraintsError(
                    f"{coef} is fixed to both {fixed[idx]:g} and {value:g}",
                    n_constraints=len(self)
                )
            fixed[idx] = value

        R = np.zeros((len(self.linear), n))
        c = np.zeros(len(self.linear))
        for k, lc in enumerate(self.linear):
            for coef, weight in lc.terms:
                R[k, coef.index(spec)] += weight
            c[k] = lc.rhs

        order = sorted(fixed)
        return CompiledConstraints(
            fixed_index=np.array(order, dtype=np.intp),
            fixed_values=np.array([fixed[i] for i in order], dtype=float),
            R=R,
            c=c,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-Python form; coefficients are ``[block, row, col, lag]`` lists."""
        return {
            "fixed": [[*_coefficient_key(c), v] for c, v in self.fixed],
            "linear": [{"terms": [[*_coefficient_key(c), w] for c, w in lc.terms], "rhs": lc.rhs}
                       for lc in self.linear],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConstraintSet":
        fixed = tuple((Coefficient(b, int(r), int(c), int(lag)), float(v))
                      for b, r, c, lag, v in data.get("fixed", []))
        linear = tuple(
            LinearConstraint(tuple((Coefficient(b, int(r), int(c), int(lag)), float(w))
                                   for b, r, c, lag, w in item["terms"]), float(item["rhs"]))
            for item in data.get("linear", [])
        )
        return cls(fixed, linear)

    def __str__(self) -> str:
        lines = [f"{c} = {v:g}" for c, v in self.fixed]
        lines.extend(str(lc) for lc in self.linear)
        return "\n".join(lines)


def as_constraint_set(constraints: Union[None, str, Sequence[str], ConstraintSet],
                      spec: VARSpec) -> ConstraintSet:
    """Normalise the ``constraints`` argument accepted by the estimator."""
    if constraints is None:
        return ConstraintSet()
    if isinstance(constraints, ConstraintSet):
        return constraints
    return ConstraintSet.parse(constraints, spec)


def _coefficient_key(coef: Coefficient) -> List[Any]:
    return [coef.block, coef.row, coef.col, coef.lag]


def _checked(values: np.ndarray, shape: Tuple[int, ...], name: str) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    if values.shape != shape:
        raise DimensionError(
            f"Fixed-value array {name} does not match the model",
            array_name=name,
            expected_shape=shape,
            actual_shape=values.shape
        )
    return values


def _parse_positions(token: str, size: int, text: str, base: int = 1) -> List[int]:
    """Expand a 1-based index token (``3``, ``1:2``, ``:``) into 0-based positions."""
    token = token.strip()
    try:
        if token == ":":
            return list(range(size))
        if ":" in token:
            lo, hi = (int(part) for part in token.split(":"))
            if lo > hi:
                raise ValueError(f"empty range {token}")
            return [k - base for k in range(lo, hi + 1)]
        return [int(token) - base]
    except ValueError as e:
        raise ParameterError(
            f"Invalid index '{token}' in restriction {text!r}",
            param_name="constraint",
            param_value=text,
            details=str(e)
        ) from e


def _expand(block: str, args: str, spec: VARSpec, text: str) -> List[Coefficient]:
    """All coefficients referenced by one ``X(...)`` term."""
    parts = [a for a in args.split(",")]
    expected = {"A": 3, "K": 1, "G": 2}[block]
    if len(parts) != expected:
        raise ParameterError(
            f"{block}(...) takes {expected} indices in restriction {text!r}",
            param_name="constraint",
            param_value=text
        )

    rows = _parse_positions(parts[0], spec.ny, text)
    if block == "K":
        return [Coefficient("K", r) for r in rows]
    if block == "G":
        cols = _parse_positions(parts[1], spec.ng, text)
        return [Coefficient("G", r, g) for r in rows for g in cols]

    cols = _parse_positions(parts[1], spec.ny, text)
    # Lags are 1-based positions themselves
    lags = [k + 1 for k in _parse_positions(parts[2], spec.order, text)]
    return [Coefficient("A", r, c, l) for r in rows for c in cols for l in lags]


def _parse_one(text: str, spec: VARSpec) -> ConstraintSet:
    """Parse a single ``lhs = rhs`` restriction."""
    if text.count("=") != 1:
        raise ParameterError(
            f"Restriction must contain exactly one '=': {text!r}",
            param_name="constraint",
            param_value=text
        )
    lhs, rhs_text = text.split("=")

    rhs_match = _RHS_RE.match(rhs_text)
    if rhs_match is None:
        raise ParameterError(
            f"Right-hand side must be a number in restriction {text!r}",
            param_name="constraint",
            param_value=text
        )
    rhs = float(rhs_match.group("value")) * (-1.0 if rhs_match.group("sign") == "-" else 1.0)

    terms: List[Tuple[List[Coefficient], float]] = []
    pos = 0
    lhs = lhs.rstrip()
    while pos < len(lhs):
        match = _TERM_RE.match(lhs, pos)
        if match is None or (pos > 0 and match.group("sign") is None):
            raise ParameterError(
                f"Cannot parse restriction {text!r} at {lhs[pos:]!r}",
                param_name="constraint",
                param_value=text,
                constraint="[weight*]A(i,j,l) | K(i) | G(i,g) terms joined by + or -"
            )
        weight = float(match.group("weight")) if match.group("weight") else 1.0
        if match.group("sign") == "-":
            weight = -weight
        terms.append((_expand(match.group("block"), match.group("args"), spec, text), weight))
        pos = match.end()

    if not terms:
        raise ParameterError(
            f"Restriction has no terms: {text!r}",
            param_name="constraint",
            param_value=text
        )

    for coefs, _ in terms:
        for coef in coefs:
            coef.index(spec)

    if len(terms) == 1:
        coefs, weight = terms[0]
        if weight == 0:
            raise ParameterError(
                f"Zero weight in restriction {text!r}",
                param_name="constraint",
                param_value=text
            )
        return ConstraintSet(tuple((c, rhs / weight) for c in coefs))

    if any(len(coefs) != 1 for coefs, _ in terms):
        raise ParameterError(
            f"Index ranges are only allowed in single-term restrictions: {text!r}",
            param_name="constraint",
            param_value=text
        )

    return ConstraintSet().add_linear(((coefs[0], weight) for coefs, weight in terms), rhs)

'''
Forecast conditioning instruments.

An instrument is a named linear combination of endogenous variables and
their lags, for example ``nn := pp + yy`` (nominal growth as the sum of
inflation and real growth). Instruments are registered on a fitted VAR and
can then be used as conditioning targets in a forecast exactly like an
endogenous variable.

Instruments are held as structured ``(variable, lag, coefficient)`` terms.
The textual form is parsed once, by ``parse_instrument``, when the
instrument is registered.
'''

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from vartoolbox.core.exceptions import InvalidInstrumentSpecError

logger = logging.getLogger("vartoolbox.models.time_series.instruments")

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"
_NUMBER = r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"

_DEFINITION_RE = re.compile(rf"^\s*({_NAME})\s*:?=\s*(.+?)\s*$")
# One signed term: [+-] [coef*] name [{-lag}]  or  [+-] number
_TOKEN_RE = re.compile(
    rf"\s*(?P<sign>[+-])?\s*(?:"
    rf"(?:(?P<coef>{_NUMBER})\s*\*\s*)?(?P<var>{_NAME})(?:\s*\{{\s*-\s*(?P<lag>\d+)\s*\}})?"
    rf"|(?P<const>{_NUMBER}))\s*"
)


@dataclass(frozen=True)
class InstrumentTerm:
    """One term ``coefficient * variable{-lag}`` of an instrument.

    Attributes:
        variable: Endogenous variable name
        lag: Non-negative lag (0 refers to the conditioned period itself)
        coefficient: Weight of the term
    """
    variable: str
    lag: int = 0
    coefficient: float = 1.0

    def __post_init__(self) -> None:
        if not isinstance(self.lag, int) or isinstance(self.lag, bool) or self.lag < 0:
            raise InvalidInstrumentSpecError(
                "Instrument lags must be non-negative integers",
                instrument=self.variable,
                constraint="lag >= 0"
            )
        object.__setattr__(self, "coefficient", float(self.coefficient))

    def __str__(self) -> str:
        lag = f"{{-{self.lag}}}" if self.lag else ""
        return f"{self.coefficient:g}*{self.variable}{lag}"


@dataclass(frozen=True)
class Instrument:
    """A named linear combination of endogenous variables and their lags.

    Attributes:
        name: Instrument name used in conditioning sets
        terms: Ordered terms
        constant: Constant added to the combination
    """
    name: str
    terms: Tuple[InstrumentTerm, ...]
    constant: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", tuple(self.terms))
        object.__setattr__(self, "constant", float(self.constant))
        if not re.fullmatch(_NAME, self.name or ""):
            raise InvalidInstrumentSpecError(
                f"Invalid instrument name: {self.name!r}",
                instrument=self.name,
                constraint="identifier"
            )
        if not self.terms:
            raise InvalidInstrumentSpecError(
                f"Instrument '{self.name}' has no terms",
                instrument=self.name
            )

    @property
    def max_lag(self) -> int:
        return max(term.lag for term in self.terms)

    @property
    def variables(self) -> Tuple[str, ...]:
        """Distinct variables referenced, in order of first appearance."""
        seen: Dict[str, None] = {}
        for term in self.terms:
            seen.setdefault(term.variable, None)
        return tuple(seen)

    @property
    def equation(self) -> str:
        """Canonical text of the instrument definition."""
        body = ""
        for term in self.terms:
            sign = "-" if term.coefficient < 0 else "+"
            lag = f"{{-{term.lag}}}" if term.lag else ""
            body += f" {sign} {abs(term.coefficient):g}*{term.variable}{lag}"
        if self.constant:
            body += f" {'-' if self.constant < 0 else '+'} {abs(self.constant):g}"
        # Leading sign is written without padding
        body = body[3:] if body.startswith(" + ") else "-" + body[3:]
        return f"{self.name} := {body}"

    def validate(self, names: Sequence[str], order: int) -> None:
        """Check the instrument against a model's variables and lag order.

        Raises:
            InvalidInstrumentSpecError: On unknown variables, a name clash
                with an endogenous variable, or a lag beyond ``order``
        """
        if self.name in names:
            raise InvalidInstrumentSpecError(
                f"Instrument name '{self.name}' clashes with an endogenous variable",
                instrument=self.name
            )
        unknown = [v for v in self.variables if v not in names]
        if unknown:
            raise InvalidInstrumentSpecError(
                f"Instrument '{self.name}' refers to unknown variables",
                instrument=self.name,
                constraint=f"variables in {list(names)}",
                details=f"unknown: {unknown}"
            )
        if self.max_lag > order:
            raise InvalidInstrumentSpecError(
                f"Instrument '{self.name}' uses lag {self.max_lag} beyond the VAR order {order}",
                instrument=self.name,
                constraint=f"lag <= {order}"
            )

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "terms": [[t.variable, t.lag, t.coefficient] for t in self.terms],
            "constant": self.constant,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Instrument":
        terms = tuple(InstrumentTerm(str(v), int(l), float(c)) for v, l, c in data["terms"])
        return cls(str(data["name"]), terms, float(data.get("constant", 0.0)))


def parse_instrument(text: str) -> Instrument:
    """Parse an instrument definition such as ``'nn := 0.5*pp - yy{-1} + 1'``.

    Terms are ``[coefficient*]variable[{-lag}]`` or numeric constants joined
    by ``+`` and ``-``. Both ``:=`` and ``=`` separate the name from the
    expression.

    Args:
        text: Instrument definition

    Returns:
        Instrument: The structured instrument

    Raises:
        InvalidInstrumentSpecError: If the text cannot be parsed

    Examples:
        >>> parse_instrument("nn := pp + yy").terms
        (InstrumentTerm(variable='pp', lag=0, coefficient=1.0), InstrumentTerm(variable='yy', lag=0, coefficient=1.0))
    """
    match = _DEFINITION_RE.match(text or "")
    if match is None:
        raise InvalidInstrumentSpecError(
            f"Cannot parse instrument definition: {text!r}",
            instrument=text,
            constraint="'name := expression'"
        )

    name, expression = match.groups()
    terms: List[InstrumentTerm] = []
    constant = 0.0

    pos = 0
    while pos < len(expression):
        token = _TOKEN_RE.match(expression, pos)
        # Every term after the first must carry an explicit sign
        if token is None or token.end() == pos or (pos > 0 and token.group("sign") is None):
            raise InvalidInstrumentSpecError(
                f"Cannot parse instrument expression at {expression[pos:]!r}",
                instrument=text,
                constraint="[coefficient*]variable[{-lag}] terms joined by + or -"
            )
        sign = -1.0 if token.group("sign") == "-" else 1.0
        if token.group("const") is not None:
            constant += sign * float(token.group("const"))
        else:
            coefficient = float(token.group("coef")) if token.group("coef") else 1.0
            lag = int(token.group("lag")) if token.group("lag") else 0
            terms.append(InstrumentTerm(token.group("var"), lag, sign * coefficient))
        pos = token.end()

    logger.debug(f"Parsed instrument {name} with {len(terms)} terms")
    return Instrument(name, tuple(terms), constant)


def as_instruments(definitions: Iterable) -> Tuple[Instrument, ...]:
    """Normalise a mix of ``Instrument`` objects and definition strings."""
    result = []
    for item in definitions:
        result.append(item if isinstance(item, Instrument) else parse_instrument(str(item)))
    return tuple(result)

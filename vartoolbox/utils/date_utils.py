'''
Period arithmetic for VAR panels.

Panels are indexed either by a regular ``pandas.PeriodIndex`` or by
consecutive integers. The helpers in this module hide the difference: they
convert user input into periods of the right kind, measure distances between
periods, enumerate ranges and resolve the range arguments accepted by the
estimation, forecast and simulation engines.
'''

import logging
from typing import Any, Optional, Tuple

import numpy as np
import pandas as pd

from vartoolbox.core.exceptions import DataError, ParameterError
from vartoolbox.core.types import PeriodLike, RangeLike

logger = logging.getLogger("vartoolbox.utils.date_utils")


def to_period(value: Any, freq: Optional[str] = None) -> PeriodLike:
    """Convert a user supplied period to a ``pd.Period`` or an ``int``.

    Args:
        value: A ``pd.Period``, a string such as ``"2001Q3"``, a timestamp or
            an integer position label
        freq: Frequency used when ``value`` is not already a period. When
            None, integers are returned unchanged

    Returns:
        PeriodLike: ``pd.Period`` when ``freq`` is given, ``int`` otherwise

    Raises:
        ParameterError: If the value cannot be interpreted as a period
    """
    if isinstance(value, pd.Period):
        if freq is not None and value.freqstr != freq:
            raise ParameterError(
                f"Period {value} does not match the panel frequency {freq}",
                param_name="period",
                param_value=value,
                constraint=f"frequency {freq}"
            )
        return value

    if freq is None:
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            return int(value)
        raise ParameterError(
            "Integer-indexed panels accept only integer periods",
            param_name="period",
            param_value=value,
            constraint="integer"
        )

    try:
        return pd.Period(value, freq=freq)
    except (TypeError, ValueError) as e:
        raise ParameterError(
            f"Could not convert {value!r} to a period with frequency '{freq}'",
            param_name="period",
            param_value=value,
            details=str(e)
        ) from e


def period_offset(start: PeriodLike, end: PeriodLike) -> int:
    """Number of periods from ``start`` to ``end`` (negative if ``end`` is earlier).

    Examples:
        >>> import pandas as pd
        >>> period_offset(pd.Period("2000Q1"), pd.Period("2001Q2"))
        5
        >>> period_offset(3, 1)
        -2
    """
    if isinstance(start, pd.Period) or isinstance(end, pd.Period):
        return (end - start).n
    return int(end) - int(start)


def shift_period(period: PeriodLike, n: int) -> PeriodLike:
    """Period ``n`` steps after ``period``."""
    if isinstance(period, pd.Period):
        return period + n
    return int(period) + n


def period_range(start: PeriodLike, end: PeriodLike) -> pd.Index:
    """Inclusive range of periods from ``start`` to ``end``.

    Returns:
        pd.Index: A ``PeriodIndex`` for periods, a ``RangeIndex`` for integers

    Raises:
        ParameterError: If ``end`` precedes ``start``
    """
    if period_offset(start, end) < 0:
        raise ParameterError(
            f"Range end {end} precedes range start {start}",
            param_name="range",
            param_value=(start, end),
            constraint="start <= end"
        )
    if isinstance(start, pd.Period):
        return pd.period_range(start=start, end=end, freq=start.freq)
    return pd.RangeIndex(int(start), int(end) + 1)


def index_frequency(index: pd.Index) -> Optional[str]:
    """Frequency string of a ``PeriodIndex`` or None for an integer index."""
    if isinstance(index, pd.PeriodIndex):
        return index.freqstr
    return None


def is_contiguous(index: pd.Index) -> bool:
    """Check that ``index`` is a gap-free, increasing period or integer index.

    Examples:
        >>> import pandas as pd
        >>> is_contiguous(pd.period_range("2000Q1", periods=4, freq="Q"))
        True
        >>> is_contiguous(pd.Index([0, 1, 3]))
        False
    """
    if len(index) == 0:
        return True
    if isinstance(index, pd.PeriodIndex):
        steps = np.array([(b - a).n for a, b in zip(index[:-1], index[1:])])
        return bool(np.all(steps == 1))
    if not pd.api.types.is_integer_dtype(index.dtype):
        return False
    values = np.asarray(index, dtype=np.int64)
    return bool(np.all(np.diff(values) == 1))


def resolve_range(index: pd.Index,
                  range_like: RangeLike,
                  default: Optional[Tuple[PeriodLike, PeriodLike]] = None
                  ) -> Tuple[PeriodLike, PeriodLike]:
    """Resolve a user range into inclusive ``(start, end)`` periods.

    The resolved periods use the kind of ``index`` (``pd.Period`` for a
    ``PeriodIndex``, ``int`` otherwise). They may lie outside ``index``, which
    is how forecast horizons beyond the end of the data are expressed.

    Args:
        index: Index of the panel the range refers to
        range_like: A ``(start, end)`` pair, a contiguous ``pd.Index`` or
            ``PeriodIndex``, a ``range`` with unit step, or None
        default: Range returned when ``range_like`` is None

    Returns:
        Tuple[PeriodLike, PeriodLike]: Inclusive first and last period

    Raises:
        ParameterError: If the range is malformed, empty or reversed
        DataError: If an index-valued range has gaps
    """
    freq = index_frequency(index)

    if range_like is None:
        if default is None:
            raise ParameterError(
                "A period range is required",
                param_name="range",
                constraint="(start, end) pair or index"
            )
        return default

    if isinstance(range_like, range):
        if range_like.step != 1 or len(range_like) == 0:
            raise ParameterError(
                "Integer ranges must be non-empty with unit step",
                param_name="range",
                param_value=range_like
            )
        start, end = range_like[0], range_like[-1]
    elif isinstance(range_like, pd.Index):
        if len(range_like) == 0:
            raise ParameterError("Period range is empty", param_name="range")
        if not is_contiguous(range_like):
            raise DataError(
                "Period range must be contiguous",
                data_name="range",
                issue="gaps in the supplied index"
            )
        start, end = range_like[0], range_like[-1]
    elif isinstance(range_like, (tuple, list)) and len(range_like) == 2:
        start, end = range_like
    else:
        raise ParameterError(
            "Unrecognised period range",
            param_name="range",
            param_value=range_like,
            constraint="(start, end) pair, contiguous index or range"
        )

    start = to_period(start, freq)
    end = to_period(end, freq)

    if period_offset(start, end) < 0:
        raise ParameterError(
            f"Range end {end} precedes range start {start}",
            param_name="range",
            param_value=(start, end),
            constraint="start <= end"
        )

    return start, end

'''
Time-indexed observation panels.

A ``Panel`` is the input and output currency of the VAR Toolbox: a
rectangular block of float observations with one named column per variable
and a contiguous period index. Missing observations are NaN, which is kept
distinct from zero. Panels never change after construction; accessors return
copies or read-only views and every transformation returns a new panel.
'''

import logging
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from vartoolbox.core.exceptions import (
    DataError, DimensionError, DimensionMismatchError, ParameterError
)
from vartoolbox.core.types import Matrix, PeriodLike, RangeLike
from vartoolbox.utils.date_utils import (
    index_frequency, is_contiguous, period_offset, period_range, resolve_range,
    shift_period, to_period
)

logger = logging.getLogger("vartoolbox.core.panel")


class Panel:
    """Immutable numeric panel with named columns and a contiguous period index.

    Args:
        data: DataFrame with a ``PeriodIndex`` or a consecutive integer index
            and unique column names
        copy: Whether to copy the data (panels built internally skip it)

    Raises:
        DataError: If the index has gaps or the values are not numeric
        DimensionError: If column names are duplicated or the panel is empty
    """

    def __init__(self, data: Union[pd.DataFrame, "Panel"], copy: bool = True):
        if isinstance(data, Panel):
            data = data._frame

        if not isinstance(data, pd.DataFrame):
            raise DataError(
                "Panel data must be a pandas DataFrame",
                data_name="data",
                issue=f"got {type(data).__name__}"
            )

        if data.shape[1] == 0:
            raise DimensionError(
                "Panel must have at least one column",
                array_name="data",
                actual_shape=data.shape
            )

        names = [str(c) for c in data.columns]
        if len(set(names)) != len(names):
            raise DimensionError(
                "Panel column names must be unique",
                array_name="data",
                details=f"columns: {names}"
            )

        index = data.index
        if isinstance(index, pd.DatetimeIndex):
            raise DataError(
                "Panel index must be a PeriodIndex or an integer index",
                data_name="index",
                issue="DatetimeIndex given; convert it with to_period()"
            )
        if not isinstance(index, pd.PeriodIndex):
            if len(index) and not pd.api.types.is_integer_dtype(index.dtype):
                raise DataError(
                    "Panel index must be a PeriodIndex or an integer index",
                    data_name="index",
                    issue=f"index dtype {index.dtype}"
                )
            index = pd.Index(np.asarray(index, dtype=np.int64))
        if not is_contiguous(index):
            raise DataError(
                "Panel index must be contiguous",
                data_name="index",
                issue="missing or repeated periods"
            )

        try:
            values = data.to_numpy(dtype=float, copy=copy)
        except (TypeError, ValueError) as e:
            raise DataError(
                "Panel values must be numeric",
                data_name="data",
                issue=str(e)
            ) from e

        values.setflags(write=False)
        self._frame = pd.DataFrame(values, index=index, columns=names, copy=False)
        self._values = values

    @classmethod
    def from_array(cls,
                   values: Matrix,
                   names: Sequence[str],
                   start: PeriodLike = 0,
                   freq: Optional[str] = None) -> "Panel":
        """Build a panel from a (T, Ny) array.

        Args:
            values: Observations, one row per period
            names: Column names
            start: First period, a ``pd.Period``, a period string (with
                ``freq``) or an integer
            freq: Pandas frequency when ``start`` is a string or timestamp

        Returns:
            Panel: The new panel

        Examples:
            >>> import numpy as np
            >>> p = Panel.from_array(np.zeros((4, 2)), ["yy", "pp"], start="2000Q1", freq="Q")
            >>> p.index[0]
            Period('2000Q1', 'Q-DEC')
        """
        values = np.asarray(values, dtype=float)
        if values.ndim == 1:
            values = values[:, None]
        if values.ndim != 2 or values.shape[1] != len(names):
            raise DimensionError(
                "Values must be a 2D array with one column per name",
                array_name="values",
                expected_shape=f"(T, {len(names)})",
                actual_shape=values.shape
            )

        if isinstance(start, pd.Period):
            index = pd.period_range(start=start, periods=values.shape[0], freq=start.freq)
        elif freq is not None:
            index = pd.period_range(start=pd.Period(start, freq=freq), periods=values.shape[0], freq=freq)
        else:
            first = int(start)
            index = pd.RangeIndex(first, first + values.shape[0])

        return cls(pd.DataFrame(values, index=index, columns=list(names)))

    # ---- basic properties ----

    @property
    def names(self) -> Tuple[str, ...]:
        """Column names in order."""
        return tuple(self._frame.columns)

    @property
    def index(self) -> pd.Index:
        return self._frame.index

    @property
    def freq(self) -> Optional[str]:
        """Frequency string of a period index, None for integer indices."""
        return index_frequency(self._frame.index)

    @property
    def values(self) -> np.ndarray:
        """Read-only (T, Ny) view of the observations."""
        return self._values

    @property
    def ny(self) -> int:
        return self._values.shape[1]

    @property
    def start(self) -> PeriodLike:
        return self._period(0)

    @property
    def end(self) -> PeriodLike:
        return self._period(len(self) - 1)

    def __len__(self) -> int:
        return self._values.shape[0]

    def __contains__(self, name: object) -> bool:
        return name in self._frame.columns

    def __getitem__(self, name: str) -> pd.Series:
        if name not in self._frame.columns:
            raise DimensionMismatchError(
                f"Variable '{name}' is not in the panel",
                missing=[name]
            )
        return self._frame[name].copy()

    def __repr__(self) -> str:
        if len(self):
            span = f"{self.start}..{self.end}"
        else:
            span = "empty"
        return f"Panel(names={list(self.names)}, periods={span})"

    def _period(self, pos: int) -> PeriodLike:
        label = self._frame.index[pos]
        if isinstance(label, pd.Period):
            return label
        return int(label)

    # ---- period arithmetic ----

    def to_period(self, period) -> PeriodLike:
        """Convert ``period`` to the index kind of this panel."""
        return to_period(period, self.freq)

    def position(self, period) -> int:
        """Row position of ``period``; may fall outside ``[0, len)``.

        Examples:
            >>> import numpy as np
            >>> p = Panel.from_array(np.zeros((4, 1)), ["x"], start=10)
            >>> p.position(12), p.position(20)
            (2, 10)
        """
        if len(self) == 0:
            raise DataError("Panel is empty", data_name="panel", issue="no periods")
        return period_offset(self.start, self.to_period(period))

    def period_at(self, pos: int) -> PeriodLike:
        """Period at row position ``pos``, extrapolating beyond the index."""
        return shift_period(self.start, int(pos))

    def resolve_range(self,
                      range_like: RangeLike,
                      default: Optional[Tuple[PeriodLike, PeriodLike]] = None
                      ) -> Tuple[PeriodLike, PeriodLike]:
        """Resolve a range argument against this panel's index."""
        return resolve_range(self._frame.index, range_like, default)

    # ---- selection ----

    def select(self, names: Iterable[str]) -> "Panel":
        """Panel holding only ``names``, in the given order.

        Raises:
            DimensionMismatchError: If any name is not a column
        """
        names = list(names)
        missing = [n for n in names if n not in self._frame.columns]
        if missing:
            raise DimensionMismatchError(
                "Panel does not contain all requested variables",
                missing=missing,
                expected_shape=f"columns {names}",
                actual_shape=(len(self), self.ny)
            )
        return Panel(self._frame.loc[:, names], copy=True)

    def clip(self, start=None, end=None) -> "Panel":
        """Panel restricted to the inclusive range ``start``..``end``.

        Raises:
            ParameterError: If the range is not inside the index
        """
        first = 0 if start is None else self.position(start)
        last = len(self) - 1 if end is None else self.position(end)
        if first < 0 or last >= len(self) or last < first:
            raise ParameterError(
                "Clip range must lie inside the panel index",
                param_name="range",
                param_value=(start, end),
                constraint=f"within {self.start}..{self.end}"
            )
        return Panel(self._frame.iloc[first:last + 1], copy=True)

    def window(self, start, end, names: Optional[Sequence[str]] = None) -> np.ndarray:
        """Observations for the inclusive range ``start``..``end`` as a new array.

        Rows for periods outside the index are NaN, so callers can check
        availability with a single ``np.isnan`` test.
        """
        columns = list(self.names) if names is None else list(names)
        missing = [n for n in columns if n not in self._frame.columns]
        if missing:
            raise DimensionMismatchError(
                "Panel does not contain all requested variables",
                missing=missing
            )
        cols = [self._frame.columns.get_loc(n) for n in columns]

        first = self.position(start)
        last = self.position(end)
        out = np.full((max(last - first + 1, 0), len(cols)), np.nan)
        lo = max(first, 0)
        hi = min(last, len(self) - 1)
        if hi >= lo:
            out[lo - first:hi - first + 1] = self._values[lo:hi + 1][:, cols]
        return out

    # ---- construction helpers ----

    def with_values(self, values: Matrix, names: Optional[Sequence[str]] = None) -> "Panel":
        """New panel on the same index with replaced values (and optionally names)."""
        names = list(self.names) if names is None else list(names)
        return Panel(pd.DataFrame(np.asarray(values, dtype=float), index=self._frame.index,
                                  columns=names))

    def join(self, other: "Panel") -> "Panel":
        """Column-wise union of two panels over the union of their periods.

        Raises:
            DimensionError: If the panels share a column name
        """
        overlap = set(self.names) & set(other.names)
        if overlap:
            raise DimensionError(
                "Joined panels must not share column names",
                array_name="panel",
                details=f"shared columns: {sorted(overlap)}"
            )
        start = self.start if period_offset(self.start, other.start) >= 0 else other.start
        end = self.end if period_offset(self.end, other.end) <= 0 else other.end
        index = period_range(start, end)
        frame = pd.concat([self._frame.reindex(index), other._frame.reindex(index)], axis=1)
        return Panel(frame)

    def to_frame(self) -> pd.DataFrame:
        """Writable copy of the panel as a DataFrame."""
        return self._frame.copy()


def as_panel(data: Union[pd.DataFrame, Panel]) -> Panel:
    """Return ``data`` as a Panel, wrapping DataFrames."""
    if isinstance(data, Panel):
        return data
    return Panel(data)

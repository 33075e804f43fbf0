'''
Abstract base classes for the VAR Toolbox.

This module defines the base classes that establish a common contract for the
analysis engines and their result containers. Engines are stateless: every
call takes its inputs explicitly and returns a new result object, so a single
engine instance can be shared freely between threads.
'''

import abc
from dataclasses import dataclass, fields
from typing import Any, Dict

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class ResultBase:
    """Base class for all result containers returned by the engines.

    Subclasses are frozen dataclasses. ``summary`` and ``to_dict`` walk the
    dataclass fields, so subclasses only override them when they need a
    richer presentation.
    """

    def summary(self) -> str:
        """Generate a text summary of the result.

        Returns:
            str: A formatted string listing every field and its shape or value.
        """
        header = f"{self.__class__.__name__}\n"
        header += "=" * (len(header) - 1) + "\n"

        lines = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (np.ndarray, pd.DataFrame)):
                lines.append(f"{f.name}: {type(value).__name__} with shape {value.shape}")
            elif value is None:
                lines.append(f"{f.name}: None")
            else:
                lines.append(f"{f.name}: {value}")

        return header + "\n".join(lines) + "\n"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result object to a dictionary.

        Returns:
            Dict[str, Any]: Dictionary representation of the result object.
        """
        return {f.name: getattr(self, f.name) for f in fields(self)}


class EngineBase(abc.ABC):
    """Abstract base class for all analysis engines in the VAR Toolbox.

    An engine wraps one family of operations on fitted VAR models (estimation,
    forecasting, bootstrapping and so on). It holds no per-call state.
    """

    def __init__(self, name: str = "Engine"):
        """Initialize the engine with a name.

        Args:
            name: A descriptive name for the engine
        """
        self._name = name

    @property
    def name(self) -> str:
        """Get the engine name.

        Returns:
            str: The engine name
        """
        return self._name

    def summary(self) -> str:
        """Generate a one-line description of the engine."""
        return f"Engine: {self._name}"

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self._name}')"

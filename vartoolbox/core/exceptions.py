'''
Custom exception classes for the VAR Toolbox.

This module defines the hierarchy of exception and warning classes used
throughout the VAR Toolbox. Every exception carries a primary message, optional
details and a context dictionary that is rendered into the final message
together with the location of the raising call, so that failures deep inside
an estimation or forecast remain easy to trace.

The hierarchy has two levels. Category classes (ParameterError, DataError,
EstimationError, ...) describe the broad kind of failure; domain classes
(InsufficientHistoryError, InconsistentConstraintsError, ...) describe the
specific VAR condition and derive from the matching category, so callers can
catch either granularity.

Each class names its structured keyword fields in ``_labels``. A field is
stored as an attribute and, when set, listed in the context under its label.
'''

from typing import Any, Dict, Optional, Sequence, Tuple, Union
import inspect
import warnings
import numpy as np
from pathlib import Path

ShapeLike = Union[Tuple[int, ...], str]


def _is_set(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple)) and len(value) == 0:
        return False
    return True


def _describe(value: Any) -> Any:
    """Summarise large arrays in context listings."""
    if isinstance(value, np.ndarray) and value.size > 10:
        return f"Array with shape {value.shape}"
    return value


def _caller_location() -> Optional[str]:
    """File and line of the first frame outside exception constructors."""
    frame = inspect.currentframe()
    try:
        frame = frame.f_back if frame else None
        while frame and frame.f_code.co_name in ("__init__", "_compose"):
            frame = frame.f_back
        if frame is None:
            return None
        return f"{Path(frame.f_code.co_filename).name}:{frame.f_lineno}"
    finally:
        del frame


def _compose(obj: Any,
             message: str,
             details: Optional[str],
             context: Optional[Dict[str, Any]],
             fields: Dict[str, Any],
             locate: bool) -> str:
    """Store fields on ``obj`` and build its full message."""
    obj.message = message
    obj.details = details
    obj.context = dict(context or {})

    for name, value in fields.items():
        setattr(obj, name, value)
        label = obj._labels.get(name)
        if label and _is_set(value):
            obj.context[label] = _describe(value)

    parts = [message]
    if details:
        parts.append(f"Details: {details}")
    if obj.context:
        parts.append("Context:\n" + "\n".join(f"  {k}: {v}" for k, v in obj.context.items()))
    if locate:
        location = _caller_location()
        if location:
            parts.append(f"Location: {location}")
    return "\n\n".join(parts)


class VARToolboxError(Exception):
    """Base exception class for all VAR Toolbox errors.

    Attributes:
        message: The error message
        details: Additional details about the error
        context: Dictionary containing contextual information about the error
    """

    _labels: Dict[str, str] = {}

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(_compose(self, message, details, context, fields, locate=True))


class ParameterError(VARToolboxError):
    """Exception raised for invalid arguments and model parameters."""

    _labels = {"param_name": "Parameter", "param_value": "Value", "constraint": "Constraint"}

    def __init__(self,
                 message: str,
                 param_name: Optional[str] = None,
                 param_value: Optional[Any] = None,
                 constraint: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, param_name=param_name,
                         param_value=param_value, constraint=constraint, **fields)


class DimensionError(VARToolboxError):
    """Exception raised when array shapes disagree.

    Attributes:
        array_name: The name of the array that caused the error
        expected_shape: The expected shape of the array
        actual_shape: The actual shape of the array
    """

    _labels = {"array_name": "Array", "expected_shape": "Expected Shape",
               "actual_shape": "Actual Shape"}

    def __init__(self,
                 message: str,
                 array_name: Optional[str] = None,
                 expected_shape: Optional[ShapeLike] = None,
                 actual_shape: Optional[Tuple[int, ...]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, array_name=array_name,
                         expected_shape=expected_shape, actual_shape=actual_shape, **fields)


class NumericError(VARToolboxError):
    """Exception raised for numerical computation errors."""

    _labels = {"operation": "Operation", "values": "Values", "error_type": "Error Type"}

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 values: Optional[Any] = None,
                 error_type: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, operation=operation, values=values,
                         error_type=error_type, **fields)


class DataError(VARToolboxError):
    """Exception raised for problems with input observations.

    Attributes:
        data_name: The name of the data that caused the error
        issue: Description of the issue with the data
        index: The index or period where the issue was detected
    """

    _labels = {"data_name": "Data", "issue": "Issue", "index": "Index"}

    def __init__(self,
                 message: str,
                 data_name: Optional[str] = None,
                 issue: Optional[str] = None,
                 index: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, data_name=data_name, issue=issue,
                         index=index, **fields)


class EstimationError(VARToolboxError):
    """Exception raised when a VAR cannot be estimated."""

    _labels = {"model_type": "Model Type", "estimation_method": "Estimation Method",
               "issue": "Issue"}

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 estimation_method: Optional[str] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, model_type=model_type,
                         estimation_method=estimation_method, issue=issue, **fields)


class ForecastError(VARToolboxError):
    """Exception raised for errors during forecasting.

    Attributes:
        model_type: The type of model being used for forecasting
        horizon: The forecast horizon that was requested
        issue: Description of the issue that occurred during forecasting
    """

    _labels = {"model_type": "Model Type", "horizon": "Horizon", "issue": "Issue"}

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 horizon: Optional[Any] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, model_type=model_type, horizon=horizon,
                         issue=issue, **fields)


class SimulationError(VARToolboxError):
    """Exception raised when a resimulation cannot be completed."""

    _labels = {"model_type": "Model Type", "n_periods": "Periods", "issue": "Issue"}

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 n_periods: Optional[int] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, model_type=model_type,
                         n_periods=n_periods, issue=issue, **fields)


class BootstrapError(VARToolboxError):
    """Exception raised when a bootstrap run produces no usable draws."""

    _labels = {"bootstrap_type": "Bootstrap Type", "n_bootstraps": "Replications",
               "issue": "Issue"}

    def __init__(self,
                 message: str,
                 bootstrap_type: Optional[str] = None,
                 n_bootstraps: Optional[int] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(message, details, context, bootstrap_type=bootstrap_type,
                         n_bootstraps=n_bootstraps, issue=issue, **fields)


class ConfigurationError(VARToolboxError):
    """Exception raised for unknown or invalid configuration settings.

    Attributes:
        config_file: The configuration file path
        setting: The setting that caused the error
        value: The invalid setting value
        issue: Description of the issue with the configuration
    """

    _labels = {"config_file": "Config File", "setting": "Setting", "value": "Value",
               "issue": "Issue"}

    def __init__(self,
                 message: str,
                 config_file: Optional[Union[str, Path]] = None,
                 setting: Optional[str] = None,
                 value: Optional[Any] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details, context,
                         config_file=None if config_file is None else str(config_file),
                         setting=setting, value=value, issue=issue)


# ---- VAR domain errors ----

class InsufficientHistoryError(DataError):
    """Raised when fewer than P observed periods precede a sample or horizon.

    Attributes:
        required: Number of pre-sample periods required (the lag order)
        available: Number of observed pre-sample periods found
    """

    _labels = {**DataError._labels, "required": "Required Periods",
               "available": "Available Periods"}

    def __init__(self,
                 message: str,
                 required: Optional[int] = None,
                 available: Optional[int] = None,
                 index: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, data_name="pre-sample", issue="insufficient history",
                         index=index, details=details, context=context,
                         required=required, available=available)


class InconsistentConstraintsError(EstimationError):
    """Raised when a restriction system is rank deficient or contradictory."""

    _labels = {**EstimationError._labels, "n_constraints": "Constraints", "rank": "Rank"}

    def __init__(self,
                 message: str,
                 n_constraints: Optional[int] = None,
                 rank: Optional[int] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, model_type="VAR", estimation_method="restricted least squares",
                         issue="inconsistent constraints", details=details, context=context,
                         n_constraints=n_constraints, rank=rank)


class NonStationaryModelError(NumericError):
    """Raised when an operation requires a stationary model and gets an explosive one.

    Attributes:
        max_modulus: Largest modulus among the companion eigenvalues
    """

    _labels = {**NumericError._labels, "max_modulus": "Max Eigenvalue Modulus"}

    def __init__(self,
                 message: str,
                 max_modulus: Optional[float] = None,
                 operation: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, operation=operation, error_type="non-stationary",
                         details=details, context=context, max_modulus=max_modulus)


class NonPositiveDefiniteResidualCovarianceError(EstimationError):
    """Raised when Cholesky identification of the residual covariance breaks down."""

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, model_type="SVAR", estimation_method="cholesky",
                         issue="residual covariance not positive definite",
                         details=details, context=context)


class InvalidConditioningPeriodError(ForecastError):
    """Raised when a condition falls outside the forecast horizon."""

    _labels = {**ForecastError._labels, "period": "Period"}

    def __init__(self,
                 message: str,
                 period: Optional[Any] = None,
                 horizon: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, model_type="VAR", horizon=horizon,
                         issue="invalid conditioning period", details=details, context=context,
                         period=period)


class InvalidInstrumentSpecError(ParameterError):
    """Raised for malformed instruments or unknown conditioning names.

    Attributes:
        instrument: Name or text of the offending instrument
    """

    def __init__(self,
                 message: str,
                 instrument: Optional[str] = None,
                 constraint: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, param_name="instrument", param_value=instrument,
                         constraint=constraint, details=details, context=context,
                         instrument=instrument)


class DimensionMismatchError(DimensionError):
    """Raised when a panel's variables disagree with a VAR specification.

    Attributes:
        missing: Variable names the specification needs but the panel lacks
    """

    _labels = {**DimensionError._labels, "missing": "Missing Variables"}

    def __init__(self,
                 message: str,
                 missing: Optional[Sequence[str]] = None,
                 expected_shape: Optional[ShapeLike] = None,
                 actual_shape: Optional[Tuple[int, ...]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, array_name="panel", expected_shape=expected_shape,
                         actual_shape=actual_shape, details=details, context=context,
                         missing=list(missing) if missing else [])


# ---- Warnings ----

class VARToolboxWarning(Warning):
    """Base warning class for all VAR Toolbox warnings."""

    _labels: Dict[str, str] = {}

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None,
                 **fields: Any) -> None:
        super().__init__(_compose(self, message, details, context, fields, locate=False))


class NumericWarning(VARToolboxWarning):
    """Warning for numerical issues that do not prevent computation."""

    _labels = {"operation": "Operation", "issue": "Issue", "value": "Value"}


class ModelWarning(VARToolboxWarning):
    """Warning for model issues that do not prevent estimation or use.

    Attributes:
        model_type: The type of model
        issue: Description of the model issue
        parameter: The parameter that may cause issues
        value: The parameter value that may cause issues
    """

    _labels = {"model_type": "Model Type", "issue": "Issue", "parameter": "Parameter",
               "value": "Value"}


# ---- Helper functions ----

def warn_numeric(message: str,
                 operation: Optional[str] = None,
                 issue: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None) -> None:
    """Issue a NumericWarning attributed to the caller."""
    warnings.warn(
        NumericWarning(message, details, operation=operation, issue=issue, value=value),
        stacklevel=2
    )


def warn_model(message: str,
               model_type: Optional[str] = None,
               issue: Optional[str] = None,
               parameter: Optional[str] = None,
               value: Optional[Any] = None,
               details: Optional[str] = None) -> None:
    """Issue a ModelWarning attributed to the caller."""
    warnings.warn(
        ModelWarning(message, details, model_type=model_type, issue=issue,
                     parameter=parameter, value=value),
        stacklevel=2
    )

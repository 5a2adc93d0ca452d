from numbers import Integral, Real
from typing import Any

import numpy as np

from ciaopts.errors import ConfigurationError

__all__ = [
    "_is_bool",
    "_is_int",
    "_is_real",
    "_is_pos_int",
    "_is_nonneg_float",
    "_is_pos_float",
    "_is_minibatch",
    "_is_stepsize",
]


def _is_bool(param: Any, param_name: str):
    if not isinstance(param, (bool, np.bool_)):
        raise ConfigurationError(
            f"{param_name} is of type {type(param).__name__}, but expected type bool"
        )


def _is_int(param: Any, param_name: str):
    if isinstance(param, (bool, np.bool_)) or not isinstance(param, Integral):
        raise ConfigurationError(
            f"{param_name} is of type {type(param).__name__}, but expected type int"
        )


def _is_real(param: Any, param_name: str):
    if isinstance(param, (bool, np.bool_)) or not isinstance(param, Real):
        raise ConfigurationError(
            f"{param_name} is of type {type(param).__name__}, but expected type float"
        )


def _is_pos_int(param: Any, param_name: str):
    _is_int(param, param_name)
    if param <= 0:
        raise ConfigurationError(f"{param_name} must be positive, but received {param}")


def _is_nonneg_float(param: Any, param_name: str):
    _is_real(param, param_name)
    if param < 0:
        raise ConfigurationError(
            f"{param_name} must be non-negative, but received {param}"
        )


def _is_pos_float(param: Any, param_name: str):
    _is_real(param, param_name)
    if param <= 0:
        raise ConfigurationError(f"{param_name} must be positive, but received {param}")


def _is_minibatch(param: Any, param_name: str):
    if not isinstance(param, tuple) or len(param) != 2:
        raise ConfigurationError(
            f"{param_name} must be a tuple (enabled, batch_size), but received {param}"
        )
    _is_bool(param[0], f"{param_name}[0]")
    _is_pos_int(param[1], f"{param_name}[1]")


def _is_stepsize(param: Any, param_name: str):
    """Accept a positive scalar or a one-dimensional sequence of positive values."""
    if param is None:
        return
    values = np.asarray(param)
    if values.ndim > 1 or values.size == 0:
        raise ConfigurationError(
            f"{param_name} must be a scalar or a one-dimensional sequence, but received shape {values.shape}"
        )
    if not np.issubdtype(values.dtype, np.number) or np.iscomplexobj(values):
        raise ConfigurationError(
            f"{param_name} must hold real numbers, but received dtype {values.dtype}"
        )
    if np.any(~np.isfinite(values)) or np.any(values <= 0):
        raise ConfigurationError(
            f"{param_name} must be positive and finite, but received {param}"
        )

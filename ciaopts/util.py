import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike


def default_floating_dtype():
    r"""Get default floating dtype.

    Returns:
      If double-precision mode is enabled in JAX, the function returns ``float64``, otherwise ``float32``.
    """
    if jax.config.jax_enable_x64:  # type: ignore
        return jnp.float64
    else:
        return jnp.float32


def inexact_asarray(x):
    r"""Convert the input array to an array of explicitly specified inexact dtype.

    The function converts the input to an array of default floating dtype if the current dtype of the input is not an inexact type.
    Otherwise the function converts the array to a strongly-typed one.

    Args:
      x: Input array.

    Returns:
      Converted strongly-typed array of inexact type.

    See Also:
        :class:`jax.numpy.inexact`
    """
    dtype = jnp.result_type(x)
    if not jnp.issubdtype(dtype, jnp.inexact):
        dtype = default_floating_dtype()
    return jnp.asarray(x, dtype=dtype)


def real_dtype(dtype):
    r"""Get the real counterpart of an inexact dtype.

    Args:
      dtype: Floating or complex dtype.

    Returns:
      ``float32`` for ``float32`` and ``complex64``, ``float64`` for ``float64`` and
      ``complex128`` (and the corresponding half-precision types).
    """
    return jnp.finfo(dtype).dtype


def real_asarray(x, dtype) -> Array:
    r"""Convert the input to an array of the real counterpart of ``dtype``."""
    return jnp.asarray(x, dtype=real_dtype(dtype))


def real_vdot(x: ArrayLike, y: ArrayLike, axis=None) -> Array:
    r"""Real inner product :math:`\operatorname{Re}\langle x, y \rangle`.

    For complex inputs this is the inner product of the underlying real vector space,
    which is the one appearing in descent conditions.
    """
    return jnp.sum(jnp.real(jnp.conj(x) * y), axis=axis)


def sq_norm(x: ArrayLike, axis=None) -> Array:
    r"""Squared :math:`\ell^2` norm (along ``axis`` if given)."""
    return jnp.sum(jnp.real(jnp.conj(x) * x), axis=axis)

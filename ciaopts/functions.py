"""Components and regularizers consumed by the incremental solvers.

The solvers only rely on a narrow interface:

- a component :math:`f_i` provides ``value(x)`` and ``gradient(x)``, the latter
  returning the pair ``(gradient, value)``, and may expose a Lipschitz constant of its
  gradient as ``lipschitz``;
- the regularizer :math:`g` provides ``prox(x, gamma)`` returning the pair
  ``(point, value at point)``.

Any object following this interface can be passed to a solver. This module provides
JAX-based implementations covering the common cases.
"""
from dataclasses import dataclass
from typing import Any, Callable, Optional

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from ciaopts import prox
from ciaopts.util import sq_norm

__all__ = [
    "SmoothFunction",
    "LeastSquares",
    "Regularizer",
    "Zero",
    "NormL1",
    "SqrNormL2",
    "ElasticNet",
    "NonNegative",
    "Box",
]


@dataclass(eq=False, kw_only=True)
class SmoothFunction:
    r"""Smooth component defined by a scalar-valued JAX function.

    The gradient is obtained with :func:`jax.value_and_grad` unless ``grad_fun`` is
    provided. For complex inputs JAX returns the conjugate of the steepest-ascent
    direction, so the gradient is conjugated back.

    Args:
      fun: Real scalar-valued function of a one-dimensional array.
      grad_fun: Optional gradient oracle of ``fun``.
      lipschitz: Optional Lipschitz constant of the gradient.
      jit: Whether to JIT-compile the value and gradient evaluation (default
        ``True``).
    """

    fun: Callable
    grad_fun: Optional[Callable] = None
    lipschitz: Optional[float] = None
    jit: bool = True

    def __post_init__(self):
        if not callable(self.grad_fun):
            value_and_grad_fun = jax.value_and_grad(self.fun)

            def value_and_grad(x):
                value, grad = value_and_grad_fun(x)
                if jnp.iscomplexobj(x):
                    grad = jnp.conj(grad)
                return value, grad

        else:

            def value_and_grad(x):
                return self.fun(x), self.grad_fun(x)  # type: ignore

        self._value = jax.jit(self.fun) if self.jit else self.fun
        self._value_and_grad = (
            jax.jit(value_and_grad) if self.jit else value_and_grad
        )

    def value(self, x: ArrayLike) -> Array:
        return self._value(x)

    def gradient(self, x: ArrayLike) -> tuple[Array, Array]:
        value, grad = self._value_and_grad(x)
        return grad, value


class LeastSquares(SmoothFunction):
    r"""Least squares component.

    .. math::

        f(x) = \frac{\mathrm{scale}}{2} \, \lVert A x - b \rVert_2^2, \qquad
        \nabla f(x) = \mathrm{scale} \cdot A^{H} (A x - b)

    with Lipschitz constant :math:`\mathrm{scale} \cdot \lVert A \rVert_2^2`.

    Example:
      .. highlight:: python
      .. code-block:: python

        # split 1/2 ||A x - b||^2 into N components f_i with (1/N) sum_i f_i
        F = [LeastSquares(A[i : i + 1], b[i : i + 1], scale=N) for i in range(N)]

    Args:
      A: Two-dimensional array.
      b: One-dimensional array.
      scale: Positive scaling factor (default ``1``).
      jit: Whether to JIT-compile the value and gradient evaluation (default
        ``True``).
    """

    def __init__(self, A: ArrayLike, b: ArrayLike, scale: float = 1.0, jit: bool = True):
        self.A = jnp.asarray(A)
        self.b = jnp.asarray(b)
        self.scale = scale
        lipschitz = scale * jnp.linalg.norm(self.A, ord=2) ** 2

        def fun(x):
            return 0.5 * scale * sq_norm(self.A @ x - self.b)

        def grad_fun(x):
            return scale * (jnp.conj(self.A.T) @ (self.A @ x - self.b))

        super().__init__(
            fun=fun, grad_fun=grad_fun, lipschitz=float(lipschitz), jit=jit
        )


class Regularizer:
    r"""Base class for regularizers accessed through their proximal operator.

    Subclasses set ``_prox_fun`` to one of the operators in :mod:`ciaopts.prox` (with
    signature ``prox_fun(x, hyperparams, scaling)``) together with ``hyperparams``,
    and implement :meth:`_value`.
    """

    _prox_fun: Callable = staticmethod(prox.prox_const)
    hyperparams: Any = None

    def _value(self, x: Array) -> Array:
        return jnp.zeros((), dtype=jnp.finfo(x.dtype).dtype)

    def value(self, x: ArrayLike) -> Array:
        return self._value(jnp.asarray(x))

    def prox(self, x: ArrayLike, gamma: ArrayLike) -> tuple[Array, Array]:
        r"""Evaluate :math:`\operatorname{prox}_{\gamma g}(x)` and :math:`g` there."""
        x = jnp.asarray(x)
        y = type(self)._prox_fun(x, self.hyperparams, gamma).astype(x.dtype)
        return y, self._value(y)


class Zero(Regularizer):
    """The zero function, whose proximal operator is the identity."""


class NormL1(Regularizer):
    r""":math:`g(x) = \lambda \lVert x \rVert_1`."""

    _prox_fun = staticmethod(prox.prox_l1)

    def __init__(self, lam: float = 1.0):
        self.hyperparams = lam

    def _value(self, x):
        return self.hyperparams * jnp.sum(jnp.abs(x))


class SqrNormL2(Regularizer):
    r""":math:`g(x) = (\lambda / 2) \lVert x \rVert_2^2`."""

    _prox_fun = staticmethod(prox.prox_l2_squared)

    def __init__(self, lam: float = 1.0):
        self.hyperparams = lam

    def _value(self, x):
        return 0.5 * self.hyperparams * sq_norm(x)


class ElasticNet(Regularizer):
    r""":math:`g(x) = \lambda_1 \lVert x \rVert_1 + (\lambda_2 / 2) \lVert x \rVert_2^2`."""

    _prox_fun = staticmethod(prox.prox_elastic_net)

    def __init__(self, l1reg: float = 1.0, l2reg: float = 1.0):
        self.hyperparams = (l1reg, l2reg)

    def _value(self, x):
        l1reg, l2reg = self.hyperparams
        return l1reg * jnp.sum(jnp.abs(x)) + 0.5 * l2reg * sq_norm(x)


class NonNegative(Regularizer):
    """Indicator of the nonnegative orthant."""

    _prox_fun = staticmethod(prox.prox_nonnegative)

    def _value(self, x):
        return jnp.where(jnp.all(x >= 0), 0.0, jnp.inf).astype(x.dtype)


class Box(Regularizer):
    """Indicator of the box ``lower <= x <= upper``."""

    _prox_fun = staticmethod(prox.prox_box)

    def __init__(self, lower: ArrayLike, upper: ArrayLike):
        self.hyperparams = (lower, upper)

    def _value(self, x):
        lower, upper = self.hyperparams
        inside = jnp.all((x >= lower) & (x <= upper))
        return jnp.where(inside, 0.0, jnp.inf).astype(x.dtype)

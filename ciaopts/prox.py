# Part of the proximal operator implementation is adapted from JAXopt with
# modifications.
# - Original JAXopt proximal operators implementation:
#   https://github.com/google/jaxopt/blob/main/jaxopt/_src/prox.py
# - Original JAXopt projections implementation:
#   https://github.com/google/jaxopt/blob/main/jaxopt/_src/projection.py
#
# Copyright license information:
#
# Copyright 2021 Google LLC
# Modifications copyright 2024 the CIAOpts authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import Any, Optional

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike


def _soft_threshold(u: ArrayLike, threshold: ArrayLike) -> Array:
    # jnp.sign(u) = u / |u| for complex u, so this also shrinks complex moduli
    return jnp.sign(u) * jax.nn.relu(jnp.abs(u) - threshold)


def prox_const(
    x: ArrayLike, hyperparams: Optional[Any] = None, scaling: float = 1.0
) -> ArrayLike:
    r"""Proximal operator for the constant function.

    For any constant function :math:`f(x) \equiv c` for some constant :math:`c`, and
    any positive scaling factor :math:`\operatorname{scaling}`, the resulting proximal
    operator is the identity operator

    .. math::

      \operatorname{prox}_{\operatorname{scaling} \cdot f}(x)
      = \underset{y}{\argmin}
      \bigg\{
        f(y)
        + \frac{1}{2 \cdot \operatorname{scaling}} \, \lVert y - x \rVert_2^2
      \bigg\}
      = x

    Args:
      x: Array input.
      hyperparams: Additional parameters of the proximal operator (for function
        signature consistency). Ignored here.
      scaling: Scaling factor for the proximal operator (for function signature
        consistency). Ignored here.
    Returns:
      The input ``x``.
    """
    del hyperparams, scaling
    return x


def prox_l1(x: ArrayLike, l1reg: Optional[Any] = None, scaling: float = 1.0) -> Array:
    r"""Proximal operator for the :math:`\ell^1` norm.

    The proximal operator of :math:`f(x) = \lVert x \rVert_1` is known as the
    soft-thresholding operator

    .. math::

      \big[
        \operatorname{prox}
        _{\operatorname{scaling} \cdot \operatorname{l1reg} \cdot f}(x)
      \big]_i
      =
      \begin{cases}
        ~ 0
          & \lvert x_i \rvert
          \leqslant \operatorname{scaling} \cdot \operatorname{l1reg} \\
        ~ x_i
        - \operatorname{scaling} \cdot \operatorname{l1reg} \cdot
        \operatorname{sign}(x_i)
          & \lvert x_i \rvert
          > \operatorname{scaling} \cdot \operatorname{l1reg} \\
      \end{cases}

    For complex entries :math:`\operatorname{sign}(x_i) = x_i / \lvert x_i \rvert`,
    *i.e.* the modulus is shrunk and the phase is kept.

    In lasso regression, the function is used as :math:`\ell^1`-regularization.

    Args:
      x: Array input.
      l1reg: Regularization strength. It could either be scalar or an array with the
        same shape as ``x`` (entry-wise strength).
      scaling: Scaling factor for the proximal operator.

    Returns:
      Output array, with the same shape and dtype as ``x``.
    """
    if l1reg is None:
        l1reg = 1.0

    return _soft_threshold(x, l1reg * scaling)


def prox_elastic_net(
    x: ArrayLike,
    hyperparams: Optional[tuple[Any, Any]] = None,
    scaling: float = 1.0,
) -> Array:
    r"""Proximal operator for the elastic net.

    The proximal operator of

    .. math::

      f_{\operatorname{hyperparams}}(x)
      = \operatorname{hyperparams}_0 \, \lVert x \rVert_1
      + \frac{\operatorname{hyperparams}_1}{2} \, \lVert x \rVert_2^2

    is given by soft-thresholding followed by multiplicative shrinkage

    .. math::

      \big[
        \operatorname{prox}
        _{\operatorname{scaling} \cdot f_{\operatorname{hyperparams}}}(x)
      \big]_i
      = \frac{
        \psi_{\operatorname{scaling} \cdot \operatorname{hyperparams}_0}(x_i)
      }{1 + \operatorname{scaling} \cdot \operatorname{hyperparams}_1}

    where :math:`\psi` is the soft-thresholding operator (see :func:`prox_l1`).

    Args:
      x: Array input.
      hyperparams: A tuple, where both ``hyperparams[0]`` and ``hyperparams[1]`` can be
        either floats or arrays with the same shape as ``x``.
      scaling: Scaling factor for the proximal operator.

    Returns:
      Output array, with the same shape and dtype as ``x``.
    """
    if hyperparams is None:
        hyperparams = (1.0, 1.0)

    lam, gam = hyperparams
    return _soft_threshold(x, scaling * lam) / (1.0 + scaling * gam)


def prox_l2_squared(
    x: ArrayLike, l2reg: Optional[float] = 1.0, scaling: float = 1.0
) -> Array:
    r"""Proximal operator for the squared :math:`\ell^2` norm.

    The proximal operator of :math:`f(x) = (1/2) \, \lVert x \rVert_2^2` is

    .. math::

      \operatorname{prox}
      _{\operatorname{scaling} \cdot \operatorname{l2reg} \cdot f}(x)
      = \frac{1}{1 + \operatorname{scaling} \cdot \operatorname{l2reg}} \, x

    In ridge regression, the function is used as :math:`\ell^2`-regularization.

    Args:
      x: Array input.
      l2reg: Regularization strength.
      scaling: Scaling factor for the proximal operator.

    Returns:
      Output array, with the same shape and dtype as ``x``.
    """
    if l2reg is None:
        l2reg = 1.0

    factor = 1.0 / (1.0 + scaling * l2reg)

    return factor * jnp.asarray(x)


def prox_nonnegative(
    x: ArrayLike, hyperparams: Optional[Any] = None, scaling: float = 1.0
) -> Array:
    r"""Proximal operator for indicator of the nonnegative orthant.

    The proximal operator of the indicator :math:`f(x) = \mathbb{1}_{\mathbb{R}_{+}^{d}}
    (x)` is the projection onto the nonnegative orthant, *i.e.* the element-wise
    positive part :math:`(x)_{+}`.

    Args:
      x: Real array input.
      hyperparams: Additional parameters of the proximal operator (for function
        signature consistency). Ignored here.
      scaling: Scaling factor for the proximal operator (for function signature
        consistency). Ignored here.
    Returns:
      Output array, with the same shape and dtype as ``x``.
    """
    del hyperparams, scaling
    return jax.nn.relu(x)


def prox_box(x: ArrayLike, hyperparams: tuple, scaling: float = 1.0) -> Array:
    r"""Proximal operator for indicator of a box (high-dimensional closed interval).

    The proximal operator of the indicator of
    :math:`\mathcal{C} = \{x \mid \operatorname{hyperparams}_0 \leqslant x \leqslant
    \operatorname{hyperparams}_1\}` is the projection onto :math:`\mathcal{C}`, which
    clamps :math:`x` into the interval entry-wise.

    Args:
      x: Real array input.
      hyperparams: A tuple ``(lower, upper)`` specifying lower and upper bounds of the
        box. Both bounds can be either scalar values or arrays of the same shape as
        ``x``.
      scaling: Scaling factor for the proximal operator (for function signature
        consistency). Ignored here.
    Returns:
      Output array, with the same shape and dtype as ``x``.
    """
    del scaling
    lower, upper = hyperparams
    return jnp.clip(jnp.asarray(x), lower, upper)

"""Step size policies.

A step size is resolved once, when an iterator is constructed, from exactly one of

- a user-supplied step size ``gamma`` (kept fixed),
- Lipschitz constants ``L`` of the components (algorithm-specific default fraction),
- an adaptive backtracking search on per-component Lipschitz estimates.

All step sizes and Lipschitz constants live in the real counterpart of the iterate's
dtype.
"""
from enum import Enum, auto
from typing import Any, Callable, NamedTuple, Optional, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array

from ciaopts.errors import ConfigurationError, DimensionMismatchError
from ciaopts.util import real_asarray, real_vdot, sq_norm

__all__ = [
    "StepsizeRule",
    "StepsizePolicy",
    "resolve_lipschitz",
    "resolve_stepsize",
    "secant_lipschitz",
    "descent_condition",
]


class StepsizeRule(Enum):
    """Enumeration for the source of the step size.

    Attributes:
        FIXED: User-supplied step size.
        LIPSCHITZ: Step size derived from supplied Lipschitz constants.
        ADAPTIVE: Step size derived from Lipschitz estimates found by backtracking.
    """

    FIXED = auto()
    LIPSCHITZ = auto()
    ADAPTIVE = auto()


class StepsizePolicy(NamedTuple):
    r"""Resolved step size configuration.

    Args:
      rule: Source of the step size.
      gamma: Step size, either a scalar or one entry per component. ``None`` for the
        adaptive rule without initial Lipschitz constants.
      lipschitz: Lipschitz constants (one per component) if available, otherwise
        ``None``. For the adaptive rule these are the initial estimates.
    """

    rule: StepsizeRule
    gamma: Optional[Array]
    lipschitz: Optional[Array]


def _per_component(value, num_components: int, dtype, name: str) -> Array:
    value = real_asarray(value, dtype)
    if jnp.ndim(value) == 0:
        return jnp.full((num_components,), value, dtype=value.dtype)
    if jnp.shape(value)[0] != num_components:
        raise DimensionMismatchError(
            name,
            jnp.shape(value)[0],
            num_components,
            custom_msg=f"Input {name} is expected to have {num_components} entries (one per component) but has {jnp.shape(value)[0]}.",
        )
    return value


def resolve_lipschitz(
    L: Any, components: Sequence[Any], dtype
) -> Optional[Array]:
    r"""Collect per-component Lipschitz constants.

    The explicitly supplied ``L`` (scalar or one value per component) takes precedence.
    Otherwise the ``lipschitz`` attributes of the components are used if every
    component exposes one.

    Returns:
      Array of shape ``(N,)`` in the real counterpart of ``dtype``, or ``None`` if no
      Lipschitz information is available.
    """
    num_components = len(components)
    if L is not None:
        return _per_component(L, num_components, dtype, "L")
    constants = [getattr(f, "lipschitz", None) for f in components]
    if all(c is not None for c in constants):
        return _per_component(np.asarray(constants), num_components, dtype, "L")
    return None


def resolve_stepsize(
    *,
    gamma: Any,
    lipschitz: Optional[Array],
    adaptive: bool,
    num_components: int,
    dtype,
    from_lipschitz: Callable[[Array, int], Array],
    per_component: bool = False,
) -> StepsizePolicy:
    r"""Resolve the step size of an iterator.

    Args:
      gamma: User-supplied step size or ``None``.
      lipschitz: Per-component Lipschitz constants (see :func:`resolve_lipschitz`) or
        ``None``.
      adaptive: Whether the step size is found by backtracking.
      num_components: Number of components :math:`N`.
      dtype: Dtype of the iterate.
      from_lipschitz: Algorithm-specific map from Lipschitz constants and :math:`N` to
        the step size.
      per_component: Whether the algorithm uses one step size per component.

    Returns:
      A :class:`StepsizePolicy`.
    """
    if gamma is not None and adaptive:
        raise ConfigurationError(
            "gamma and adaptive are mutually exclusive: a fixed step size cannot be adapted"
        )

    if gamma is not None:
        if per_component:
            gamma = _per_component(gamma, num_components, dtype, "gamma")
        else:
            if np.ndim(gamma) != 0:
                raise ConfigurationError(
                    "gamma must be a scalar for this solver, per-component step sizes are only supported by Finito"
                )
            gamma = real_asarray(gamma, dtype)
        return StepsizePolicy(StepsizeRule.FIXED, gamma, lipschitz)

    if adaptive:
        # without L the iterator derives gamma from estimates computed at x0
        gamma = (
            from_lipschitz(lipschitz, num_components)
            if lipschitz is not None
            else None
        )
        return StepsizePolicy(StepsizeRule.ADAPTIVE, gamma, lipschitz)

    if lipschitz is not None:
        return StepsizePolicy(
            StepsizeRule.LIPSCHITZ, from_lipschitz(lipschitz, num_components), lipschitz
        )

    raise ConfigurationError(
        "Cannot determine a step size: provide gamma, Lipschitz constants L, or set adaptive=True"
    )


def secant_lipschitz(component: Any, x: Array, grad: Array) -> Array:
    r"""Estimate the local Lipschitz constant of a component's gradient.

    The estimate is the secant ratio
    :math:`\lVert \nabla f(x + d) - \nabla f(x) \rVert / \lVert d \rVert` along the
    gradient direction :math:`d \propto \nabla f(x)`. It falls back to ``1`` when the
    gradient vanishes or the ratio is not a positive finite number.
    """
    grad_norm = jnp.sqrt(sq_norm(grad))
    if not grad_norm > 0:
        return real_asarray(1.0, x.dtype)
    length = 1e-3 * jnp.maximum(1.0, jnp.sqrt(sq_norm(x)))
    d = (length / grad_norm) * grad
    grad_shifted, _ = component.gradient(x + d)
    estimate = jnp.sqrt(sq_norm(grad_shifted - grad)) / jnp.sqrt(sq_norm(d))
    if not (jnp.isfinite(estimate) and estimate > 0):
        return real_asarray(1.0, x.dtype)
    return real_asarray(estimate, x.dtype)


def descent_condition(
    values_new: Array,
    values_old: Array,
    grads_old: Array,
    diffs: Array,
    lipschitz: Array,
) -> Array:
    r"""Check the descent lemma for a batch of components.

    For every row :math:`j` the function verifies

    .. math::

        f_j(z_j + d_j) \leqslant f_j(z_j)
        + \operatorname{Re}\langle \nabla f_j(z_j), d_j \rangle
        + \frac{L_j}{2} \lVert d_j \rVert_2^2

    up to a small multiple of the machine precision relative to :math:`|f_j(z_j)|`.

    Args:
      values_new: Values :math:`f_j(z_j + d_j)`, shape ``(b,)``.
      values_old: Values :math:`f_j(z_j)`, shape ``(b,)``.
      grads_old: Gradients :math:`\nabla f_j(z_j)`, shape ``(b, n)``.
      diffs: Displacements :math:`d_j`, shape ``(b, n)``.
      lipschitz: Current estimates :math:`L_j`, shape ``(b,)``.

    Returns:
      Boolean array of shape ``(b,)``.
    """
    eps = jnp.finfo(lipschitz.dtype).eps
    slack = 100 * eps * jnp.maximum(1.0, jnp.abs(values_old))
    upper = (
        values_old
        + real_vdot(grads_old, diffs, axis=-1)
        + 0.5 * lipschitz * sq_norm(diffs, axis=-1)
    )
    return values_new <= upper + slack

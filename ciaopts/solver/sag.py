from dataclasses import dataclass
from typing import Any, NamedTuple, Optional, Sequence

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from .base import IncrementalSolver
from .saga import SAGAIterator


class SAGState(NamedTuple):
    r"""The SAG state.

    Args:
      iter_num: Number of iterations performed.
      epoch: Number of completed epochs.
      z: Current iterate, the solution view of the state.
      grad_table: Table of gradients of each individual component, shape ``(N, n)``.
      av: Sum of the gradients in the table.
      gamma: Step size.
      z_epoch: Iterate at the end of the previous epoch.
      residual: Fixed-point residual of the last completed epoch.
    """

    iter_num: int
    epoch: int
    z: Array
    grad_table: Array
    av: Array
    gamma: Array
    z_epoch: Array
    residual: float

    @property
    def solution(self) -> Array:
        return self.z


def _sag_update(z, grad_table, av, idx, grads, gamma):
    N = grad_table.shape[0]
    av = av + jnp.sum(grads - grad_table[idx], axis=0)
    grad_table = grad_table.at[idx].set(grads)
    # plain table average after the update
    return z - (gamma / N) * av, grad_table, av


class SAGIterator(SAGAIterator):
    r"""Iterator of SAG.

    The step uses the table average after writing the fresh gradients of the
    minibatch, :math:`d = \frac{1}{N} \sum_i g_i`.
    """

    state_type = SAGState
    _update_fun = staticmethod(_sag_update)

    @staticmethod
    def _stepsize_from_lipschitz(lipschitz, num_components):
        return 1.0 / (16.0 * jnp.max(lipschitz))


@dataclass(eq=False, kw_only=True)
class SAG(IncrementalSolver):
    r"""The SAG solver.

    SAG [#f1]_ steps along the average of the most recent gradients of all
    components. The estimate is biased, which makes the method noticeably slower than
    SAGA with the conservative default step size :math:`\gamma = 1 / (16 \max_i L_i)`;
    a proximal term :math:`g` is applied as in SAGA although the convergence theory of
    SAG covers the smooth case.

    References:
      .. [#f1] M. Schmidt, N. Le Roux, and F. Bach, `Minimizing finite sums with the
        stochastic average gradient <https://arxiv.org/abs/1309.2388>`_. Mathematical
        Programming, 2017.

    Args:
      **kwargs: Options of :class:`IncrementalSolver`.
    """

    def iterator(
        self,
        x0: ArrayLike,
        *,
        F: Sequence[Any],
        g: Any,
        N: Optional[int] = None,
        L: Optional[Any] = None,
    ) -> SAGIterator:
        return SAGIterator(self, x0, F, g, N=N, L=L)

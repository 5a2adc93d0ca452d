from dataclasses import dataclass
from typing import Any, NamedTuple, Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from .base import IncrementalIterator, IncrementalSolver


class SAGAState(NamedTuple):
    r"""The SAGA state.

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


def _saga_update(z, grad_table, av, idx, grads, gamma):
    N = grad_table.shape[0]
    diff = grads - grad_table[idx]
    # unbiased estimate built from the table before the update
    direction = av / N + jnp.mean(diff, axis=0)
    av = av + jnp.sum(diff, axis=0)
    grad_table = grad_table.at[idx].set(grads)
    return z - gamma * direction, grad_table, av


class SAGAIterator(IncrementalIterator):
    r"""Iterator of (b-nice) SAGA.

    One iteration processes one minibatch :math:`B` of size :math:`b`:

    .. math::

        d = \frac{1}{N} \sum_{i} g_i + \frac{1}{b} \sum_{j \in B}
        \big(\nabla f_j(z) - g_j\big), \qquad
        g_j \leftarrow \nabla f_j(z), \qquad
        z \leftarrow \operatorname{prox}_{\gamma g}(z - \gamma d).
    """

    state_type = SAGAState
    _update_fun = staticmethod(_saga_update)

    def __init__(self, solver, x0, F, g, N=None, L=None):
        super().__init__(solver, x0, F, g, N=N, L=L)
        update_fun = type(self)._update_fun
        self._update = jax.jit(update_fun) if solver.jit else update_fun

    @staticmethod
    def _stepsize_from_lipschitz(lipschitz, num_components):
        return 1.0 / (3.0 * jnp.max(lipschitz))

    def _init_state(self):
        x = self._initial_point()
        grad_table, _ = self._evaluate(np.arange(self.num_components), x)
        return self.state_type(
            iter_num=0,
            epoch=0,
            z=x,
            grad_table=grad_table,
            av=jnp.sum(grad_table, axis=0),
            gamma=self.stepsize.gamma,
            z_epoch=x,
            residual=float("inf"),
        )

    def _advance(self, state, batch):
        idx = jnp.asarray(batch)
        grads, _ = self._evaluate(batch, state.z)
        z, grad_table, av = self._update(
            state.z, state.grad_table, state.av, idx, grads, state.gamma
        )
        z, _ = self._prox(z, state.gamma)
        return state._replace(z=z, grad_table=grad_table, av=av)

    def _end_epoch(self, state):
        residual = self._epoch_residual(state.z, state.z_epoch, state.gamma)
        return state._replace(
            epoch=state.epoch + 1, z_epoch=state.z, residual=residual
        )


@dataclass(eq=False, kw_only=True)
class SAGA(IncrementalSolver):
    r"""The SAGA solver.

    SAGA [#f1]_ keeps a table with the most recent gradient of every component and
    corrects the stochastic gradient of the sampled minibatch with the table average,
    which gives an unbiased, variance-reduced estimate of the full gradient. The
    minibatch version follows the b-nice sampling of [#f2]_. The default step size is
    :math:`\gamma = 1 / (3 \max_i L_i)`.

    References:
      .. [#f1] A. Defazio, F. Bach, and S. Lacoste-Julien, `SAGA: A fast incremental
        gradient method with support for non-strongly convex composite objectives
        <https://arxiv.org/abs/1407.0202>`_. Advances in Neural Information Processing
        Systems, 2014.
      .. [#f2] N. Gazagnadou, R. M. Gower, and J. Salmon, `Optimal mini-batch and step
        sizes for SAGA <https://proceedings.mlr.press/v97/gazagnadou19a.html>`_.
        Proceedings of the 36th International Conference on Machine Learning, 2019.

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
    ) -> SAGAIterator:
        return SAGAIterator(self, x0, F, g, N=N, L=L)

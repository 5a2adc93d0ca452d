from dataclasses import dataclass
from typing import Any, NamedTuple, Optional, Sequence

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from ciaopts.input_checkers import _is_bool, _is_pos_int

from .base import IncrementalIterator, IncrementalSolver


class SVRGState(NamedTuple):
    r"""The SVRG state.

    Args:
      iter_num: Number of outer iterations (epochs) performed.
      epoch: Number of completed epochs.
      z: Current inner iterate.
      z_full: Snapshot point, the solution view of the state.
      full_grad: Average of the component gradients at the snapshot.
      z_sum: Sum of the inner iterates of the current epoch (SVRG++ only).
      m: Number of inner steps of the next epoch.
      gamma: Step size.
      residual: Fixed-point residual of the last completed epoch.
    """

    iter_num: int
    epoch: int
    z: Array
    z_full: Array
    full_grad: Array
    z_sum: Array
    m: int
    gamma: Array
    residual: float

    @property
    def solution(self) -> Array:
        return self.z_full


def _svrg_update(z, grads, grads_full, full_grad, gamma):
    direction = jnp.mean(grads - grads_full, axis=0) + full_grad
    return z - gamma * direction


class SVRGIterator(IncrementalIterator):
    r"""Iterator of SVRG and SVRG++.

    One iteration is one outer epoch of ``m`` inner steps

    .. math::

        d = \frac{1}{b} \sum_{j \in B} \big(\nabla f_j(z) - \nabla f_j(\tilde z)\big)
        + \tilde\mu, \qquad
        z \leftarrow \operatorname{prox}_{\gamma g}(z - \gamma d),

    followed by a snapshot refresh: :math:`\tilde z` becomes the last inner iterate
    (SVRG) or the average of the inner iterates (SVRG++), and :math:`\tilde\mu` the
    average gradient there. SVRG++ doubles ``m`` after every epoch.
    """

    def __init__(self, solver: "SVRG", x0, F, g, N=None, L=None):
        super().__init__(solver, x0, F, g, N=N, L=L)
        self.plus = solver.plus
        if solver.m is not None:
            self.m = solver.m
        elif self.plus:
            self.m = max(1, self.num_components // 4)
        else:
            self.m = 2 * self.num_components
        self._update = jax.jit(_svrg_update) if solver.jit else _svrg_update

    @staticmethod
    def _stepsize_from_lipschitz(lipschitz, num_components):
        return 1.0 / (7.0 * jnp.max(lipschitz))

    def _full_gradient(self, x: Array) -> Array:
        return self._full_gradient_sum(x) / self.num_components

    def _init_state(self) -> SVRGState:
        x = self._initial_point()
        return SVRGState(
            iter_num=0,
            epoch=0,
            z=x,
            z_full=x,
            full_grad=self._full_gradient(x),
            z_sum=jnp.zeros_like(x),
            m=self.m,
            gamma=self.stepsize.gamma,
            residual=float("inf"),
        )

    def _inner_steps(self, state: SVRGState) -> int:
        return state.m

    def _epoch_complete(self, sampler) -> bool:
        return True

    def _advance(self, state: SVRGState, batch) -> SVRGState:
        grads, _ = self._evaluate(batch, state.z)
        grads_full, _ = self._evaluate(batch, state.z_full)
        z = self._update(state.z, grads, grads_full, state.full_grad, state.gamma)
        z, _ = self._prox(z, state.gamma)
        if self.plus:
            return state._replace(z=z, z_sum=state.z_sum + z)
        return state._replace(z=z)

    def _end_epoch(self, state: SVRGState) -> SVRGState:
        if self.plus:
            z_full = state.z_sum / state.m
            m = 2 * state.m
        else:
            z_full = state.z
            m = state.m

        residual = self._epoch_residual(z_full, state.z_full, state.gamma)
        return state._replace(
            epoch=state.epoch + 1,
            z_full=z_full,
            full_grad=self._full_gradient(z_full),
            z_sum=jnp.zeros_like(state.z_sum),
            m=m,
            residual=residual,
        )


@dataclass(eq=False, kw_only=True)
class SVRG(IncrementalSolver):
    r"""The SVRG solver.

    SVRG [#f1]_ computes the full gradient at a snapshot point once per epoch and uses
    it to reduce the variance of the minibatch gradients of the inner steps. With
    ``plus=True`` the solver runs SVRG++ [#f2]_, whose snapshot is the average of the
    inner iterates and whose epoch length doubles every epoch. The default step size
    is :math:`\gamma = 1 / (7 \max_i L_i)`.

    One iteration of the solver is one epoch, so ``maxit`` bounds the number of
    snapshot refreshes.

    References:
      .. [#f1] R. Johnson and T. Zhang, `Accelerating stochastic gradient descent using
        predictive variance reduction
        <https://papers.nips.cc/paper/4937-accelerating-stochastic-gradient-descent-using-predictive-variance-reduction>`_.
        Advances in Neural Information Processing Systems, 2013.
      .. [#f2] Z. Allen-Zhu and Y. Yuan, `Improved SVRG for non-strongly-convex or
        sum-of-non-convex objectives <https://arxiv.org/abs/1506.01972>`_.
        Proceedings of the 33rd International Conference on Machine Learning, 2016.

    Args:
      m: Number of inner steps per epoch (initial number for SVRG++). Defaults to
        :math:`2N` for SVRG and :math:`\max(1, \lfloor N/4 \rfloor)` for SVRG++.
      plus: Whether to run SVRG++ (default ``False``).
      **kwargs: Options of :class:`IncrementalSolver`.
    """

    m: Optional[int] = None
    plus: bool = False

    def __post_init__(self):
        super().__post_init__()
        _is_bool(self.plus, "plus")
        if self.m is not None:
            _is_pos_int(self.m, "m")

    def iterator(
        self,
        x0: ArrayLike,
        *,
        F: Sequence[Any],
        g: Any,
        N: Optional[int] = None,
        L: Optional[Any] = None,
    ) -> SVRGIterator:
        return SVRGIterator(self, x0, F, g, N=N, L=L)

from dataclasses import dataclass
from typing import Any, ClassVar, NamedTuple, Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from ciaopts.errors import ConfigurationError, NumericDomainError
from ciaopts.input_checkers import _is_bool, _is_pos_int
from ciaopts.sampling import Sweeping
from ciaopts.stepsize import descent_condition, secant_lipschitz

from .base import IncrementalIterator, IncrementalSolver


class FinitoState(NamedTuple):
    r"""The Finito/MISO/DIG state.

    Args:
      iter_num: Number of iterations performed.
      epoch: Number of completed epochs.
      z: Current prox point, the solution view of the state.
      av: Aggregate :math:`\sum_i z_i / \gamma_i - \nabla f_i(z_i) / N`.
      gammas: Per-component step sizes :math:`\gamma_i`.
      hat_gamma: Aggregate step size :math:`\hat\gamma = (\sum_i 1/\gamma_i)^{-1}`.
      lipschitz: Per-component Lipschitz estimates (adaptive mode), otherwise the
        supplied constants or ``None``.
      z_table: Surrogate points :math:`z_i`, shape ``(N, n)`` (``None`` for the
        limited-memory variant).
      grad_table: Gradients :math:`\nabla f_i(z_i)`, shape ``(N, n)`` (``None`` for the
        limited-memory variant).
      value_table: Values :math:`f_i(z_i)`, shape ``(N,)`` (``None`` for the
        limited-memory variant).
      anchor: Epoch anchor point :math:`\tilde z` (limited-memory variant only).
      cache: Anchor gradients of the active minibatch (limited-memory variant only).
      z_epoch: Prox point at the end of the previous epoch.
      residual: Fixed-point residual of the last completed epoch.
    """

    iter_num: int
    epoch: int
    z: Array
    av: Array
    gammas: Array
    hat_gamma: Array
    lipschitz: Optional[Array]
    z_table: Optional[Array]
    grad_table: Optional[Array]
    value_table: Optional[Array]
    anchor: Optional[Array]
    cache: Optional["ActiveBatchCache"]
    z_epoch: Array
    residual: float

    @property
    def solution(self) -> Array:
        return self.z


class ActiveBatchCache:
    r"""Gradients and values of the active minibatch at the epoch anchor.

    The limited-memory variant never stores per-component tables. Instead the cache
    holds :math:`\nabla f_j(\tilde z)` and :math:`f_j(\tilde z)` for the indices of the
    current minibatch only: entries are computed on first request and every entry
    outside the requested batch is evicted. Resetting the anchor clears the cache.

    The cache is scratch memory of a single run and is shared by all states of that
    run.
    """

    def __init__(self, evaluate):
        self._evaluate = evaluate
        self.anchor = None
        self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self, anchor: Array):
        self.anchor = anchor
        self._entries.clear()

    def fetch(self, indices: np.ndarray) -> tuple[Array, Array]:
        active = [int(i) for i in indices]
        for i in list(self._entries):
            if i not in active:
                del self._entries[i]

        missing = [i for i in active if i not in self._entries]
        if missing:
            grads, values = self._evaluate(missing, self.anchor)
            for k, i in enumerate(missing):
                self._entries[i] = (grads[k], values[k])

        grads = jnp.stack([self._entries[i][0] for i in active])
        values = jnp.stack([self._entries[i][1] for i in active])
        return grads, values


def _aggregate_update(av, z, old_points, grads, old_grads, inv_gammas, scale):
    delta = (z - old_points) * inv_gammas[:, None] - scale * (grads - old_grads)
    return av + jnp.sum(delta, axis=0)


def _table_update(z_table, grad_table, value_table, idx, z, grads, values):
    z_table = z_table.at[idx].set(jnp.broadcast_to(z, grads.shape))
    grad_table = grad_table.at[idx].set(grads)
    value_table = value_table.at[idx].set(values)
    return z_table, grad_table, value_table


class FinitoIterator(IncrementalIterator):
    r"""Iterator of Finito/MISO/DIG and its limited-memory variant.

    One iteration processes one minibatch. With the full tables, the step on a batch
    :math:`B` is

    .. math::

        \mathrm{av} \leftarrow \mathrm{av} + \sum_{j \in B}
        \frac{z - z_j}{\gamma_j} - \frac{\nabla f_j(z) - \nabla f_j(z_j)}{N},
        \qquad z_j \leftarrow z,
        \qquad z \leftarrow \operatorname{prox}_{\hat\gamma g}(\hat\gamma \, \mathrm{av}).

    The limited-memory variant replaces :math:`z_j` by the epoch anchor
    :math:`\tilde z` for every component not yet visited in the epoch, and recomputes
    the aggregate from a full pass at the anchor at the end of every epoch.
    """

    per_component_stepsize = True

    def __init__(self, solver: "Finito", x0, F, g, N=None, L=None):
        super().__init__(solver, x0, F, g, N=N, L=L)
        self.lfinito = solver.lfinito
        self.adaptive = solver.adaptive
        self.max_doublings = solver.max_doublings

        if solver.jit:
            self._aggregate_update = jax.jit(_aggregate_update)
            self._table_update = jax.jit(_table_update)
        else:
            self._aggregate_update = _aggregate_update
            self._table_update = _table_update

    @staticmethod
    def _stepsize_from_lipschitz(lipschitz, num_components):
        return 0.999 * num_components / lipschitz

    def _prox_point(self, av: Array, hat_gamma: Array) -> Array:
        z, _ = self._prox(hat_gamma * av, hat_gamma)
        return z

    def _initial_stepsizes(self, x: Array) -> tuple[Optional[Array], Array]:
        lipschitz = self.stepsize.lipschitz
        gammas = self.stepsize.gamma
        if gammas is None:
            # adaptive without supplied constants: secant estimates at x0
            estimates = []
            for i in range(self.num_components):
                grads, _ = self._evaluate([i], x)
                estimates.append(secant_lipschitz(self.F[i], x, grads[0]))
            lipschitz = jnp.stack(estimates)
            gammas = self._stepsize_from_lipschitz(lipschitz, self.num_components)
        return lipschitz, gammas

    def _anchor_aggregate(self, anchor: Array, gammas: Array) -> Array:
        grad_sum = self._full_gradient_sum(anchor)
        return jnp.sum(1.0 / gammas) * anchor - grad_sum / self.num_components

    def _init_state(self) -> FinitoState:
        x = self._initial_point()
        N = self.num_components
        lipschitz, gammas = self._initial_stepsizes(x)
        hat_gamma = 1.0 / jnp.sum(1.0 / gammas)

        z_table = grad_table = value_table = anchor = cache = None
        if self.lfinito:
            anchor = x
            av = self._anchor_aggregate(anchor, gammas)
            cache = ActiveBatchCache(self._evaluate)
            cache.reset(anchor)
        else:
            grad_table, value_table = self._evaluate(np.arange(N), x)
            z_table = jnp.tile(x, (N, 1))
            av = jnp.sum(1.0 / gammas) * x - jnp.sum(grad_table, axis=0) / N

        z = self._prox_point(av, hat_gamma)
        return FinitoState(
            iter_num=0,
            epoch=0,
            z=z,
            av=av,
            gammas=gammas,
            hat_gamma=hat_gamma,
            lipschitz=lipschitz,
            z_table=z_table,
            grad_table=grad_table,
            value_table=value_table,
            anchor=anchor,
            cache=cache,
            z_epoch=z,
            residual=float("inf"),
        )

    def _backtrack(self, state, batch, old_points, old_grads, old_values):
        r"""Find Lipschitz estimates of the batch satisfying the descent condition.

        Whenever the condition fails for a component, its estimate is doubled, its
        step size is updated, and the aggregate and prox point are recomputed.

        Returns:
          The updated ``(z, av, gammas, hat_gamma, lipschitz)`` together with the
          gradients and values of the batch at the accepted ``z``.
        """
        idx = jnp.asarray(batch)
        z, av = state.z, state.av
        gammas, hat_gamma, lipschitz = state.gammas, state.hat_gamma, state.lipschitz
        points = jnp.broadcast_to(old_points, old_grads.shape)

        for doublings in range(self.max_doublings + 1):
            grads, values = self._evaluate(batch, z)
            holds = np.asarray(
                descent_condition(
                    values, old_values, old_grads, z - points, lipschitz[idx]
                )
            )
            if holds.all():
                return z, av, gammas, hat_gamma, lipschitz, grads, values
            if doublings == self.max_doublings:
                break

            failed = idx[~holds]
            new_lipschitz = lipschitz.at[failed].multiply(2)
            new_gammas = self._stepsize_from_lipschitz(
                new_lipschitz, self.num_components
            )
            # the surrogate points of failed components are reweighted in av
            weights = 1.0 / new_gammas[failed] - 1.0 / gammas[failed]
            av = av + jnp.sum(weights[:, None] * points[~holds], axis=0)
            lipschitz, gammas = new_lipschitz, new_gammas
            hat_gamma = 1.0 / jnp.sum(1.0 / gammas)
            z = self._prox_point(av, hat_gamma)

        raise NumericDomainError(int(idx[~holds][0]), self.max_doublings)

    def _advance(self, state: FinitoState, batch: np.ndarray) -> FinitoState:
        idx = jnp.asarray(batch)
        if self.lfinito:
            old_points = state.anchor
            old_grads, old_values = state.cache.fetch(batch)
        else:
            old_points = state.z_table[idx]
            old_grads = state.grad_table[idx]
            old_values = state.value_table[idx]

        if self.adaptive:
            z, av, gammas, hat_gamma, lipschitz, grads, values = self._backtrack(
                state, batch, old_points, old_grads, old_values
            )
            state = state._replace(
                z=z, av=av, gammas=gammas, hat_gamma=hat_gamma, lipschitz=lipschitz
            )
        else:
            grads, values = self._evaluate(batch, state.z)

        av = self._aggregate_update(
            state.av,
            state.z,
            old_points,
            grads,
            old_grads,
            1.0 / state.gammas[idx],
            1.0 / self.num_components,
        )
        if not self.lfinito:
            z_table, grad_table, value_table = self._table_update(
                state.z_table,
                state.grad_table,
                state.value_table,
                idx,
                state.z,
                grads,
                values,
            )
            state = state._replace(
                z_table=z_table, grad_table=grad_table, value_table=value_table
            )

        return state._replace(av=av, z=self._prox_point(av, state.hat_gamma))

    def _end_epoch(self, state: FinitoState) -> FinitoState:
        if self.lfinito:
            # move the anchor and resynchronize the aggregate with a full pass
            anchor = state.z
            av = self._anchor_aggregate(anchor, state.gammas)
            state.cache.reset(anchor)
            state = state._replace(
                anchor=anchor, av=av, z=self._prox_point(av, state.hat_gamma)
            )

        residual = self._epoch_residual(state.z, state.z_epoch, state.hat_gamma)
        return state._replace(
            epoch=state.epoch + 1, z_epoch=state.z, residual=residual
        )


@dataclass(eq=False, kw_only=True)
class Finito(IncrementalSolver):
    r"""The Finito/MISO/DIG solver.

    Finito [#f1]_ (also known as MISO and DIG) is an incremental aggregated method for

    .. math::

        \underset{x}{\mathrm{minimize}} ~
        \frac{1}{N} \sum_{i=1}^{N} f_i(x) + g(x)

    that keeps, for every component, a surrogate point and the gradient there. Its
    iterates are prox points of a weighted average of the surrogate points shifted by
    the averaged gradients. Step sizes can differ across components; by default
    :math:`\gamma_i = 0.999 \, N / L_i`.

    The limited-memory variant (``lfinito=True``) replaces the tables by an epoch
    anchor, reducing the memory to :math:`O(b \, n)` at the cost of one full gradient
    pass per epoch. It requires a deterministic sweeping (cyclic or shuffled).

    With ``adaptive=True`` the Lipschitz constants are estimated by backtracking on
    the descent condition of each visited component, starting from the supplied
    constants or from secant estimates at the initial point.

    Example:
      .. highlight:: python
      .. code-block:: python

        from ciaopts.functions import LeastSquares, NormL1
        from ciaopts.solver import Finito

        F = [LeastSquares(A[i : i + 1], b[i : i + 1], scale=N) for i in range(N)]
        x, iters = Finito(tol=1e-6, sweeping="shuffled").run(x0, F=F, g=NormL1(lam))

    References:
      .. [#f1] P. Latafat, A. Themelis, and P. Patrinos, `Block-coordinate and
        incremental aggregated proximal gradient methods for nonsmooth nonconvex
        problems <https://link.springer.com/article/10.1007/s10107-020-01599-7>`_.
        Mathematical Programming, 2022.

    Args:
      lfinito: Whether to use the limited-memory variant (default ``False``).
      max_doublings: Maximum number of doublings of a Lipschitz estimate per step in
        adaptive mode (default ``50``).
      **kwargs: Options of :class:`IncrementalSolver`. ``gamma`` may be a scalar or
        one step size per component.
    """

    lfinito: bool = False
    max_doublings: int = 50

    supports_adaptive: ClassVar[bool] = True

    def __post_init__(self):
        super().__post_init__()
        _is_bool(self.lfinito, "lfinito")
        _is_pos_int(self.max_doublings, "max_doublings")

        if self.lfinito and self.sweeping == Sweeping.RANDOMIZED:
            raise ConfigurationError(
                "limited-memory Finito requires cyclic or shuffled sweeping"
            )

    def iterator(
        self,
        x0: ArrayLike,
        *,
        F: Sequence[Any],
        g: Any,
        N: Optional[int] = None,
        L: Optional[Any] = None,
    ) -> FinitoIterator:
        return FinitoIterator(self, x0, F, g, N=N, L=L)

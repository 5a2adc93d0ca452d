import abc
import itertools
from dataclasses import dataclass
from typing import Any, ClassVar, Iterator, Optional, Sequence, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from ciaopts.errors import ConfigurationError, DimensionMismatchError
from ciaopts.input_checkers import (
    _is_bool,
    _is_int,
    _is_minibatch,
    _is_nonneg_float,
    _is_pos_int,
    _is_stepsize,
)
from ciaopts.logger import Logger
from ciaopts.sampling import Sampler, Sweeping, make_sampler
from ciaopts.stepsize import StepsizePolicy, resolve_lipschitz, resolve_stepsize
from ciaopts.util import inexact_asarray, real_dtype, sq_norm


def solution(state: Any) -> Array:
    r"""Return the solution view of an algorithm state.

    This is the iterate for Finito, SAGA and SAG, and the snapshot for SVRG. The
    returned array is the state's own field, not a copy.
    """
    return state.solution


class IncrementalIterator(abc.ABC):
    r"""Base class for the iterators of incremental methods.

    An iterator holds the problem (initial point, components, regularizer) and the
    resolved step size. Iterating over it starts a run from ``x0`` with a freshly
    seeded sampler and lazily yields the algorithm states, without end. Each state is
    an immutable ``NamedTuple``; consecutive states share every buffer that a step does
    not touch.

    Subclasses implement ``_init_state``, ``_advance`` (one inner step on a batch of
    indices) and ``_end_epoch`` (epoch-scoped updates), and provide the default step
    size through ``_stepsize_from_lipschitz``.

    Args:
      solver: Solver holding the configuration.
      x0: Initial point, a one-dimensional array. Kept as given in attribute ``x0``.
      F: Sequence of the :math:`N` components.
      g: Regularizer.
      N: Optional number of components, checked against ``len(F)``.
      L: Optional Lipschitz constants (scalar or one per component). Overrides the
        solver's ``L`` and the components' ``lipschitz`` attributes.
    """

    per_component_stepsize: ClassVar[bool] = False

    def __init__(
        self,
        solver: "IncrementalSolver",
        x0: ArrayLike,
        F: Sequence[Any],
        g: Any,
        N: Optional[int] = None,
        L: Optional[Any] = None,
    ):
        self.solver = solver
        self.x0 = x0
        self.F = F
        self.g = g

        # dimension check
        x = inexact_asarray(x0)
        if jnp.ndim(x) != 1:
            raise DimensionMismatchError("x0", jnp.ndim(x), 1)
        if N is None:
            N = len(F)
        elif N != len(F):
            raise DimensionMismatchError(
                "F",
                len(F),
                N,
                custom_msg=f"Input F is expected to hold N = {N} components but has {len(F)}.",
            )
        if solver.batch_size > N:
            raise ConfigurationError(
                f"batch size {solver.batch_size} exceeds the number of components {N}"
            )

        self._prox = jax.jit(g.prox) if solver.jit else g.prox

        self.num_components = N
        self.dtype = x.dtype
        self.real_dtype = real_dtype(x.dtype)

        lipschitz = resolve_lipschitz(L if L is not None else solver.L, F, self.dtype)
        self.stepsize: StepsizePolicy = resolve_stepsize(
            gamma=solver.gamma,
            lipschitz=lipschitz,
            adaptive=solver.adaptive,
            num_components=N,
            dtype=self.dtype,
            from_lipschitz=self._stepsize_from_lipschitz,
            per_component=self.per_component_stepsize,
        )

    @staticmethod
    @abc.abstractmethod
    def _stepsize_from_lipschitz(lipschitz: Array, num_components: int) -> Array:
        pass

    @abc.abstractmethod
    def _init_state(self) -> Any:
        pass

    @abc.abstractmethod
    def _advance(self, state: Any, batch: np.ndarray) -> Any:
        pass

    @abc.abstractmethod
    def _end_epoch(self, state: Any) -> Any:
        pass

    def _inner_steps(self, state: Any) -> int:
        return 1

    def _epoch_complete(self, sampler: Sampler) -> bool:
        return sampler.epoch_complete

    def _make_sampler(self) -> Sampler:
        return make_sampler(
            self.solver.sweeping,
            self.num_components,
            self.solver.batch_size,
            self.solver.seed,
            replace=self.solver.replace,
        )

    def _initial_point(self) -> Array:
        return inexact_asarray(self.x0)

    def _evaluate(self, indices: ArrayLike, x: Array) -> tuple[Array, Array]:
        r"""Evaluate gradients and values of the indexed components at ``x``.

        Returns:
          Gradients of shape ``(len(indices), n)`` and values of shape
          ``(len(indices),)``.
        """
        grads = []
        values = []
        for i in np.asarray(indices):
            grad, value = self.F[int(i)].gradient(x)
            grad = jnp.asarray(grad)
            if jnp.shape(grad) != jnp.shape(x):
                raise DimensionMismatchError(
                    f"gradient of component {int(i)}",
                    jnp.shape(grad),
                    jnp.shape(x),
                    custom_msg=f"Gradient of component {int(i)} is expected to have shape {jnp.shape(x)} but has {jnp.shape(grad)}.",
                )
            grads.append(grad.astype(x.dtype))
            values.append(jnp.asarray(value, dtype=self.real_dtype))
        return jnp.stack(grads), jnp.stack(values)

    def _full_gradient_sum(self, x: Array) -> Array:
        r"""Sum of all component gradients at ``x``, accumulated one at a time."""
        total = jnp.zeros_like(x)
        for i in range(self.num_components):
            grads, _ = self._evaluate([i], x)
            total = total + grads[0]
        return total

    @staticmethod
    def _epoch_residual(x_new: Array, x_old: Array, gamma: ArrayLike) -> float:
        return float(jnp.sqrt(sq_norm(x_new - x_old)) / gamma)

    def __iter__(self) -> Iterator[Any]:
        sampler = self._make_sampler()
        state = self._init_state()
        while True:
            for _ in range(self._inner_steps(state)):
                state = self._advance(state, sampler.sample())
            state = state._replace(iter_num=state.iter_num + 1)
            if self._epoch_complete(sampler):
                state = self._end_epoch(state)
            yield state


@dataclass(eq=False, kw_only=True)
class IncrementalSolver(abc.ABC):
    r"""Base class for incremental solvers of finite-sum composite problems

    .. math::

        \underset{x}{\mathrm{minimize}} ~
        \frac{1}{N} \sum_{i=1}^{N} f_i(x) + g(x)

    where every :math:`f_i` is smooth and :math:`g` is accessed through its proximal
    operator.

    The solver holds the configuration; :meth:`iterator` builds the lazy sequence of
    algorithm states and :meth:`run` drives it until a stopping criterion is met.

    Args:
      maxit: Maximum number of iterations (default ``10000``). Expect a positive value.
      tol: Threshold of the epoch fixed-point residual used for terminating the solver
        (default ``1e-8``).
      gamma: Optional step size. When ``None``, the step size is derived from the
        Lipschitz constants or found adaptively.
      L: Optional Lipschitz constants of the component gradients, either a scalar or
        one value per component.
      sweeping: Index selection strategy, ``"randomized"`` (``1``), ``"cyclic"``
        (``2``) or ``"shuffled"`` (``3``) (default ``"randomized"``).
      minibatch: Tuple ``(enabled, batch_size)`` (default ``(False, 1)``).
      replace: Whether randomized minibatches are drawn with replacement (default
        ``False``). Repeated indices inside a batch are collapsed.
      adaptive: Whether to find the step size by backtracking (default ``False``).
      seed: Initial seed for the random number generator (default ``0``).
      verbose: Whether to print diagnostic message (default ``False``).
      log_freq: Number of iterations between two log entries (default ``100``).
      wandb_kwargs: Optional keyword arguments of :func:`wandb.init`. When given,
        metrics are also logged to Weights & Biases.
      jit: Whether to JIT-compile the per-step array updates (default ``True``).
    """

    maxit: int = 10000
    tol: float = 1e-8
    gamma: Optional[Any] = None
    L: Optional[Any] = None
    sweeping: Union[str, int, Sweeping] = "randomized"
    minibatch: tuple[bool, int] = (False, 1)
    replace: bool = False
    adaptive: bool = False
    seed: int = 0
    verbose: bool = False
    log_freq: int = 100
    wandb_kwargs: Optional[dict] = None
    jit: bool = True

    supports_adaptive: ClassVar[bool] = False

    def __post_init__(self):
        _is_pos_int(self.maxit, "maxit")
        _is_nonneg_float(self.tol, "tol")
        _is_stepsize(self.gamma, "gamma")
        _is_stepsize(self.L, "L")
        _is_minibatch(self.minibatch, "minibatch")
        _is_bool(self.replace, "replace")
        _is_bool(self.adaptive, "adaptive")
        _is_int(self.seed, "seed")
        _is_bool(self.verbose, "verbose")
        _is_pos_int(self.log_freq, "log_freq")
        _is_bool(self.jit, "jit")
        self.sweeping = Sweeping._from_str(self.sweeping, "sweeping")

        if self.adaptive and not self.supports_adaptive:
            raise ConfigurationError(
                f"adaptive step sizes are not supported by {self.__class__.__name__}"
            )

    @property
    def batch_size(self) -> int:
        enabled, batch_size = self.minibatch
        return batch_size if enabled else 1

    @abc.abstractmethod
    def iterator(
        self,
        x0: ArrayLike,
        *,
        F: Sequence[Any],
        g: Any,
        N: Optional[int] = None,
        L: Optional[Any] = None,
    ) -> IncrementalIterator:
        pass

    def run(
        self,
        x0: ArrayLike,
        *,
        F: Sequence[Any],
        g: Any,
        N: Optional[int] = None,
        L: Optional[Any] = None,
    ) -> tuple[Array, int]:
        r"""The function runs the optimization loop.

        Args:
          x0: Initial point, a one-dimensional array of a floating or complex dtype.
          F: Sequence of the :math:`N` smooth components.
          g: Regularizer.
          N: Optional number of components, checked against ``len(F)``.
          L: Optional Lipschitz constants (scalar or one per component).

        Returns:
          The solution view of the final state, with the same dtype as ``x0``, and the
          number of iterations performed.
        """
        iterator = self.iterator(x0, F=F, g=g, N=N, L=L)
        logger = Logger(
            self.log_freq, wandb_kwargs=self.wandb_kwargs, verbose=self.verbose
        )

        state = None
        num_iters = 0
        try:
            for state in itertools.islice(iterator, self.maxit):
                num_iters += 1
                logger._compute_log(num_iters, state)

                # break out of loop if tolerance has been reached
                if state.residual <= self.tol:
                    if self.verbose:
                        print(
                            "Info: early termination because error tolerance has been reached."
                        )
                    break
        finally:
            logger._terminate()

        return solution(state), num_iters

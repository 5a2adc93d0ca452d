"""Index sampling policies for incremental methods.

This module provides the :class:`Sweeping` enum, which selects how component indices
are visited (RANDOMIZED, CYCLIC, SHUFFLED), and the corresponding samplers. Every
sampler owns its pseudo-random generator, so that runs are reproducible from the seed
alone.
"""
import abc
import math
from enum import Enum

import numpy as np

from ciaopts.errors import ConfigurationError

__all__ = [
    "Sweeping",
    "Sampler",
    "RandomizedSampler",
    "CyclicSampler",
    "ShuffledSampler",
    "make_sampler",
]


class Sweeping(Enum):
    """Enumeration for sweeping strategies.

    Attributes:
        RANDOMIZED: Uniform sampling, independent across steps.
        CYCLIC: Deterministic round-robin over the components.
        SHUFFLED: Round-robin over a permutation redrawn every epoch.
    """

    RANDOMIZED = 1
    CYCLIC = 2
    SHUFFLED = 3

    @classmethod
    def _from_str(cls, value, param_name):
        if isinstance(value, cls):
            return value

        if isinstance(value, int) and not isinstance(value, bool):
            for member in cls:
                if member.value == value:
                    return member

        if isinstance(value, str):
            value = value.lower()
            if value == "randomized":
                return cls.RANDOMIZED
            elif value == "cyclic":
                return cls.CYCLIC
            elif value == "shuffled":
                return cls.SHUFFLED

        raise ConfigurationError(
            f"Invalid value for {param_name}: {value}. "
            "Expected 'randomized', 'cyclic', 'shuffled', 1, 2, 3, "
            "Sweeping.RANDOMIZED, Sweeping.CYCLIC, or Sweeping.SHUFFLED."
        )


class Sampler(abc.ABC):
    r"""Base class for index samplers.

    A sampler hands out one batch of component indices per step. An epoch consists of
    :math:`\lceil N / \mathrm{batch\_size} \rceil` steps; for the deterministic
    orderings the final batch of an epoch is truncated so that every index is visited
    exactly once per epoch.

    Args:
      num_components: Number of components :math:`N`.
      batch_size: Number of indices per step (default ``1``).
      seed: Seed of the sampler's random generator (default ``0``).
    """

    def __init__(self, num_components: int, batch_size: int = 1, seed: int = 0):
        if batch_size > num_components:
            raise ConfigurationError(
                f"batch size {batch_size} exceeds the number of components {num_components}"
            )
        self.num_components = num_components
        self.batch_size = batch_size
        self.rng = np.random.default_rng(seed)
        self._count = 0

    @property
    def epoch_length(self) -> int:
        return math.ceil(self.num_components / self.batch_size)

    @property
    def epoch(self) -> int:
        """Number of completed epochs."""
        return self._count // self.epoch_length

    @property
    def epoch_complete(self) -> bool:
        """Whether the last batch handed out closed an epoch."""
        return self._count > 0 and self._count % self.epoch_length == 0

    def sample(self) -> np.ndarray:
        r"""Return the indices to process at the next step."""
        position = self._count % self.epoch_length
        if position == 0:
            self._new_epoch()
        batch = self._draw(position)
        self._count += 1
        return batch

    def _new_epoch(self):
        pass

    def _block(self, position: int) -> slice:
        start = position * self.batch_size
        return slice(start, min(start + self.batch_size, self.num_components))

    @abc.abstractmethod
    def _draw(self, position: int) -> np.ndarray:
        pass


class RandomizedSampler(Sampler):
    """Uniform sampling.

    Batches are independent across steps. Within a batch indices are drawn without
    replacement unless ``replace`` is set, in which case repeated draws are collapsed.
    """

    def __init__(
        self,
        num_components: int,
        batch_size: int = 1,
        seed: int = 0,
        replace: bool = False,
    ):
        super().__init__(num_components, batch_size, seed)
        self.replace = replace

    def _draw(self, position: int) -> np.ndarray:
        if self.batch_size == 1:
            return self.rng.integers(self.num_components, size=1)
        batch = self.rng.choice(
            self.num_components, size=self.batch_size, replace=self.replace
        )
        if self.replace:
            batch = np.unique(batch)
        return batch


class CyclicSampler(Sampler):
    """Consecutive blocks ``0, 1, ..., N - 1`` in order, wrapping around every epoch."""

    def _draw(self, position: int) -> np.ndarray:
        return np.arange(self.num_components)[self._block(position)]


class ShuffledSampler(Sampler):
    """Consecutive blocks of a uniformly random permutation drawn once per epoch."""

    def _new_epoch(self):
        self._perm = self.rng.permutation(self.num_components)

    def _draw(self, position: int) -> np.ndarray:
        return self._perm[self._block(position)]


def make_sampler(
    sweeping,
    num_components: int,
    batch_size: int = 1,
    seed: int = 0,
    replace: bool = False,
) -> Sampler:
    sweeping = Sweeping._from_str(sweeping, "sweeping")

    if sweeping == Sweeping.RANDOMIZED:
        return RandomizedSampler(num_components, batch_size, seed, replace=replace)
    elif sweeping == Sweeping.CYCLIC:
        return CyclicSampler(num_components, batch_size, seed)
    else:
        return ShuffledSampler(num_components, batch_size, seed)

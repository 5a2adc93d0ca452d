import jax
import jax.numpy as jnp
import numpy as np
import pytest

from ciaopts import errors
from ciaopts.functions import LeastSquares
from ciaopts.stepsize import (
    StepsizeRule,
    descent_condition,
    resolve_lipschitz,
    resolve_stepsize,
    secant_lipschitz,
)
from tests.test_util import TestCase

jax.config.update("jax_enable_x64", True)


def _from_lipschitz(lipschitz, num_components):
    return 1.0 / jnp.max(lipschitz)


class _Component:
    def __init__(self, lipschitz=None):
        self.lipschitz = lipschitz


class TestResolveLipschitz(TestCase):

    def test_explicit_takes_precedence(self):
        """
        Test that explicit constants override the component attributes.
        """
        F = [_Component(1.0), _Component(2.0)]
        got = resolve_lipschitz([3.0, 4.0], F, jnp.float64)
        self.assertArraysAllClose(got, jnp.array([3.0, 4.0]))

    def test_scalar_broadcast(self):
        """
        Test that a scalar constant is broadcast to every component.
        """
        got = resolve_lipschitz(2.0, [_Component(), _Component(), _Component()], jnp.complex64)
        self.assertArraysEqual(got, jnp.full(3, 2.0, dtype=jnp.float32))

    def test_component_attributes(self):
        """
        Test that component constants are used when no constants are supplied.
        """
        F = [_Component(1.0), _Component(2.0)]
        got = resolve_lipschitz(None, F, jnp.float64)
        self.assertArraysAllClose(got, jnp.array([1.0, 2.0]))

        F = [_Component(1.0), _Component()]
        assert resolve_lipschitz(None, F, jnp.float64) is None

    def test_length_mismatch(self):
        """
        Test that a wrong number of constants is rejected.
        """
        with pytest.raises(errors.DimensionMismatchError):
            resolve_lipschitz([1.0, 2.0, 3.0], [_Component(), _Component()], jnp.float64)


class TestResolveStepsize(TestCase):

    def _resolve(self, **kwargs):
        options = dict(
            gamma=None,
            lipschitz=None,
            adaptive=False,
            num_components=2,
            dtype=jnp.float64,
            from_lipschitz=_from_lipschitz,
        )
        options.update(kwargs)
        return resolve_stepsize(**options)

    def test_fixed(self):
        """
        Test that a supplied step size is kept.
        """
        policy = self._resolve(gamma=0.5, lipschitz=jnp.array([1.0, 4.0]))
        assert policy.rule == StepsizeRule.FIXED
        self.assertAllClose(policy.gamma, jnp.asarray(0.5))

        policy = self._resolve(gamma=[0.5, 0.25], per_component=True)
        self.assertArraysAllClose(policy.gamma, jnp.array([0.5, 0.25]))

        with pytest.raises(errors.ConfigurationError):
            self._resolve(gamma=[0.5, 0.25])

    def test_lipschitz(self):
        """
        Test that the step size is derived from Lipschitz constants.
        """
        policy = self._resolve(lipschitz=jnp.array([1.0, 4.0]))
        assert policy.rule == StepsizeRule.LIPSCHITZ
        self.assertAllClose(policy.gamma, jnp.asarray(0.25))

    def test_adaptive(self):
        """
        Test the adaptive rule with and without initial constants.
        """
        policy = self._resolve(adaptive=True, lipschitz=jnp.array([1.0, 4.0]))
        assert policy.rule == StepsizeRule.ADAPTIVE
        self.assertAllClose(policy.gamma, jnp.asarray(0.25))

        policy = self._resolve(adaptive=True)
        assert policy.rule == StepsizeRule.ADAPTIVE
        assert policy.gamma is None

    def test_errors(self):
        """
        Test invalid step size configurations.
        """
        with pytest.raises(errors.ConfigurationError):
            self._resolve(gamma=0.5, adaptive=True)
        with pytest.raises(errors.ConfigurationError):
            self._resolve()


class TestBacktrackingHelpers(TestCase):

    def test_secant_lipschitz_quadratic(self):
        """
        Test that the secant estimate is exact for a rank-one least squares term.
        """
        A = jnp.array([[1.0, 2.0, -1.0]])
        f = LeastSquares(A, jnp.array([0.5]), scale=3.0)
        x = jnp.array([0.3, -0.2, 0.1])
        grad, _ = f.gradient(x)
        self.assertAllClose(
            secant_lipschitz(f, x, grad), jnp.asarray(f.lipschitz), rtol=1e-8
        )

    def test_secant_lipschitz_fallback(self):
        """
        Test the fallback for a vanishing gradient.
        """
        A = jnp.eye(2)
        f = LeastSquares(A, jnp.zeros(2))
        x = jnp.zeros(2, dtype=jnp.float32)
        grad, _ = f.gradient(x)
        got = secant_lipschitz(f, x, grad)
        self.assertArraysEqual(got, jnp.asarray(1.0, dtype=jnp.float32))

    def test_descent_condition(self):
        """
        Test the descent condition on a quadratic.
        """
        # f(x) = x^2 has gradient Lipschitz constant 2
        x = jnp.array([[1.0], [1.0]])
        d = jnp.array([[-0.5], [-0.5]])
        values_old = jnp.sum(x**2, axis=-1)
        values_new = jnp.sum((x + d) ** 2, axis=-1)
        grads_old = 2 * x
        got = descent_condition(
            values_new, values_old, grads_old, d, jnp.array([2.0, 1.0])
        )
        np.testing.assert_array_equal(np.asarray(got), [True, False])

import itertools

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from ciaopts import errors
from ciaopts.functions import LeastSquares, SmoothFunction
from ciaopts.solver import SAG, SAGA, SVRG, Finito, solution
from tests.test_util import TestCase, lasso_cost, lasso_problem, lasso_sol

jax.config.update("jax_enable_x64", True)

SOLVERS = [Finito, SAGA, SAG, SVRG]


class TestIncrementalSolvers(TestCase):

    def test_lasso_reference(self):
        """
        Test the solution against scikit-learn and the known minimizer.
        """
        problem = lasso_problem(jnp.float64)
        expected = lasso_sol(problem.A, problem.b, problem.lam)
        self.assertArraysAllClose(expected, problem.x_star, atol=1e-6)

        x, _ = Finito(sweeping="cyclic").run(problem.x0, F=problem.F, g=problem.g)
        self.assertArraysAllClose(np.asarray(x), expected, atol=1e-6)

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_early_termination(self, solver_cls, capsys):
        """
        Test that the solvers stop once the residual falls below the tolerance.
        """
        problem = lasso_problem(jnp.float64)
        solver = solver_cls(maxit=100000, tol=1e-6, verbose=True, log_freq=10)
        x, num_iters = solver.run(problem.x0, F=problem.F, g=problem.g)
        assert num_iters < 100000
        assert lasso_cost(problem, x) - problem.f_star < 1e-4

        captured = capsys.readouterr()
        assert (
            "Info: early termination because error tolerance has been reached."
            in captured.out
        )

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_maxit(self, solver_cls):
        """
        Test that at most maxit states are consumed.
        """
        problem = lasso_problem(jnp.float64)
        _, num_iters = solver_cls(maxit=5).run(problem.x0, F=problem.F, g=problem.g)
        assert num_iters == 5

    def test_integer_initial_point(self):
        """
        Test that an integer initial point is promoted to the default floating dtype.
        """
        problem = lasso_problem(jnp.float64)
        x, _ = Finito(maxit=3).run(np.zeros(3, dtype=int), F=problem.F, g=problem.g)
        assert x.dtype == jnp.float64

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_dimension_errors(self, solver_cls):
        """
        Test inputs with inconsistent dimensions.
        """
        problem = lasso_problem(jnp.float64)
        solver = solver_cls()

        with pytest.raises(errors.DimensionMismatchError):
            solver.run(jnp.zeros((3, 1)), F=problem.F, g=problem.g)

        with pytest.raises(errors.DimensionMismatchError):
            solver.run(problem.x0, F=problem.F, g=problem.g, N=5)

        F = [
            SmoothFunction(fun=jnp.sum, grad_fun=lambda x: x[:2], lipschitz=1.0)
            for _ in range(3)
        ]
        with pytest.raises(errors.DimensionMismatchError):
            solver.run(jnp.zeros(3), F=F, g=problem.g)

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    @pytest.mark.parametrize(
        "options",
        [
            dict(maxit=0),
            dict(maxit=1.5),
            dict(tol=-1.0),
            dict(gamma=-0.1),
            dict(gamma="0.1"),
            dict(L=[[1.0]]),
            dict(sweeping="random"),
            dict(minibatch=(True, 0)),
            dict(minibatch=[True, 2]),
            dict(seed=1.5),
            dict(verbose=1),
            dict(log_freq=0),
            dict(jit="yes"),
        ],
    )
    def test_configuration_errors(self, solver_cls, options):
        """
        Test invalid solver options.
        """
        with pytest.raises(errors.ConfigurationError):
            solver_cls(**options)

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_batch_size_exceeds_components(self, solver_cls):
        """
        Test that a batch larger than the number of components is rejected.
        """
        problem = lasso_problem(jnp.float64)
        with pytest.raises(errors.ConfigurationError):
            solver_cls(minibatch=(True, 7), sweeping="cyclic").iterator(
                problem.x0, F=problem.F, g=problem.g
            )

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_missing_stepsize(self, solver_cls):
        """
        Test that a step size is required when no Lipschitz constants are known.
        """
        problem = lasso_problem(jnp.float64)
        F = [SmoothFunction(fun=f.value) for f in problem.F]
        with pytest.raises(errors.ConfigurationError):
            solver_cls().run(problem.x0, F=F, g=problem.g)

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_lipschitz_precedence(self, solver_cls):
        """
        Test that call-time constants override the configured constants, which
        override the component attributes.
        """
        problem = lasso_problem(jnp.float64)
        iterator = solver_cls(L=100.0).iterator(
            problem.x0, F=problem.F, g=problem.g
        )
        self.assertArraysEqual(iterator.stepsize.lipschitz, jnp.full(6, 100.0))

        iterator = solver_cls(L=100.0).iterator(
            problem.x0, F=problem.F, g=problem.g, L=problem.L
        )
        self.assertArraysAllClose(iterator.stepsize.lipschitz, jnp.asarray(problem.L))

        iterator = solver_cls().iterator(problem.x0, F=problem.F, g=problem.g)
        self.assertArraysAllClose(
            iterator.stepsize.lipschitz,
            jnp.array([f.lipschitz for f in problem.F]),
            rtol=1e-12,
        )

    @pytest.mark.parametrize("solver_cls", SOLVERS)
    def test_without_jit(self, solver_cls):
        """
        Test that disabling compilation gives the same iterates.
        """
        problem = lasso_problem(jnp.float64)
        F = [LeastSquares(f.A, f.b, scale=6, jit=False) for f in problem.F]
        compiled = solver_cls(seed=4).iterator(problem.x0, F=problem.F, g=problem.g)
        eager = solver_cls(seed=4, jit=False).iterator(problem.x0, F=F, g=problem.g)
        for a, b in zip(itertools.islice(compiled, 3), itertools.islice(eager, 3)):
            self.assertArraysAllClose(solution(a), solution(b), atol=1e-12)

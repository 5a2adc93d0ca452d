# Part of the test utilities are adapted from JAX and JAXopt with modifications.
# - Original JAX type functions:
#   https://github.com/google/jax/blob/main/jax/_src/dtypes.py
# - Original JAXopt test utilities:
#   https://github.com/google/jaxopt/blob/main/jaxopt/_src/test_util.py
#
# Copyright license information:
#
# Copyright 2019 The JAX Authors.
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

from typing import Any, NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from sklearn.linear_model import Lasso

from ciaopts.functions import LeastSquares, NormL1

DTYPES = [jnp.float32, jnp.float64, jnp.complex64, jnp.complex128]


class LassoProblem(NamedTuple):
    """
    Lasso instance 1/2 ||A x - b||^2 + lam ||x||_1 split into N components.
    """

    A: np.ndarray
    b: np.ndarray
    lam: float
    x_star: np.ndarray
    f_star: float
    F: list
    g: Any
    L: np.ndarray
    x0: Any
    dtype: Any


def lasso_problem(dtype, N=6, n=3, seed=0, scale=1.0):
    """
    Build a lasso problem with known solution.

    The columns of A are orthogonal with norm ``scale``, so the objective is strongly
    convex. The residual at the solution is a unit vector whose correlation with the
    first two columns equals lam, while the correlation with the remaining columns is
    strictly smaller, which makes x_star = (1, 2, 0, ...) the unique minimizer.
    The data is generated in real arithmetic and cast to ``dtype``.
    """
    rng = np.random.default_rng(seed)
    Q, _ = np.linalg.qr(rng.standard_normal((N, N)))
    A = scale * Q[:, :n]

    coef = np.zeros(N)
    coef[:2] = 1.0
    coef[2:n] = 0.5
    coef[n] = 1.0
    y_star = Q @ coef / np.linalg.norm(coef)
    lam = scale / np.linalg.norm(coef)

    x_star = np.zeros(n)
    x_star[:2] = [1.0, 2.0]
    b = A @ x_star + y_star
    f_star = 0.5 * np.sum(y_star**2) + lam * np.sum(np.abs(x_star))

    A_t = jnp.asarray(A, dtype=dtype)
    b_t = jnp.asarray(b, dtype=dtype)
    F = [LeastSquares(A_t[i : i + 1], b_t[i : i + 1], scale=N) for i in range(N)]
    L = np.array([N * np.sum(A[i] ** 2) for i in range(N)])

    return LassoProblem(
        A=A,
        b=b,
        lam=lam,
        x_star=x_star,
        f_star=f_star,
        F=F,
        g=NormL1(lam),
        L=L,
        x0=jnp.zeros(n, dtype=dtype),
        dtype=dtype,
    )


def lasso_cost(problem, x):
    """
    Evaluate the lasso objective in double precision.
    """
    x = np.asarray(x).astype(np.complex128)
    residual = problem.A @ x - problem.b
    return 0.5 * np.sum(np.abs(residual) ** 2) + problem.lam * np.sum(np.abs(x))


def lasso_sol(X, y, lam):
    """
    Estimate the solution of 1/2 ||X beta - y||^2 + lam ||beta||_1
    (no bias/intercept term).
    """
    regr = Lasso(alpha=lam / X.shape[0], fit_intercept=False, tol=1e-10, max_iter=100000)
    regr.fit(X, y)
    return regr.coef_.reshape(-1)


_TO_32BIT = {
    np.dtype(np.float64): np.dtype(np.float32),
    np.dtype(np.complex128): np.dtype(np.complex64),
}

_TOLERANCE = {
    np.dtype(np.float32): 1e-6,
    np.dtype(np.float64): 1e-15,
    np.dtype(np.complex64): 1e-6,
    np.dtype(np.complex128): 1e-15,
}


def canonicalize_dtype(dtype):
    """
    Map a dtype to the one JAX uses under the current ``jax_enable_x64`` setting.
    """
    dtype = np.dtype(dtype)
    if jax.config.jax_enable_x64:
        return dtype
    return _TO_32BIT.get(dtype, dtype)


def _dtype(x):
    return np.dtype(x.dtype) if hasattr(x, "dtype") else np.asarray(x).dtype


def tolerance(dtype, tol=None):
    """
    Default tolerance of a dtype unless ``tol`` is given. Exact types get ``0``.
    """
    if tol is not None:
        return tol
    dtype = canonicalize_dtype(dtype)
    # single precision matmuls run at reduced precision on TPU
    if jax.default_backend() == "tpu" and dtype in (np.float32, np.complex64):
        return 1e-3
    return _TOLERANCE.get(dtype, 0)


class TestCase:
    """
    Base class for tests.
    """

    def assertArraysEqual(self, x, y, *, check_dtypes=True, err_msg=""):
        """
        Assert that x and y arrays are exactly equal.
        """
        if check_dtypes:
            self.assertDtypesMatch(x, y)
        np.testing.assert_array_equal(x, y, err_msg=err_msg)

    def assertArraysAllClose(
        self, x, y, *, check_dtypes=True, atol=None, rtol=None, err_msg=""
    ):
        """
        Assert that x and y are close up to the looser tolerance of their dtypes.
        """
        assert x.shape == y.shape
        atol = max(tolerance(_dtype(x), atol), tolerance(_dtype(y), atol))
        rtol = max(tolerance(_dtype(x), rtol), tolerance(_dtype(y), rtol))
        kw = {}
        if atol:
            kw["atol"] = atol
        if rtol:
            kw["rtol"] = rtol
        with np.errstate(invalid="ignore"):
            np.testing.assert_allclose(x, y, **kw, err_msg=err_msg)

        if check_dtypes:
            self.assertDtypesMatch(x, y)

    def assertDtypesMatch(self, x, y):
        assert canonicalize_dtype(_dtype(x)) == canonicalize_dtype(_dtype(y))

    def assertAllClose(
        self, x, y, *, check_dtypes=True, atol=None, rtol=None, err_msg=""
    ):
        """
        Like :meth:`assertArraysAllClose` for array scalars and other array-likes.
        """
        if check_dtypes:
            self.assertDtypesMatch(x, y)
        self.assertArraysAllClose(
            np.asarray(x),
            np.asarray(y),
            check_dtypes=False,
            atol=atol,
            rtol=rtol,
            err_msg=err_msg,
        )

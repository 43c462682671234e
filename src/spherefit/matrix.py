# Copyright (C) 2020-2021 Markus Wallerberger and others
# SPDX-License-Identifier: MIT
import numpy as np
from warnings import warn

from . import _fit


class FittingMatrix:
    """Real matrix `A` (m >= n) used as the model of a least squares fit.

    Subclasses implement `_lstsq`, which fits along the first axis.
    """
    def __init__(self, a):
        a = np.asarray(a)
        if a.ndim != 2:
            raise ValueError("a must be of matrix form")
        if a.size == 0:
            raise ValueError("a must not be empty")
        if np.iscomplexobj(a):
            raise ValueError("only real matrices are supported")
        m, n = a.shape
        if m < n:
            raise ValueError(
                "a must have at least as many rows as columns (got %d x %d)"
                % (m, n))
        self.a = a

    @property
    def shape(self):
        return self.a.shape

    def __matmul__(self, x):
        """Matrix-matrix multiplication along the first axis"""
        return np.einsum('ij,j...->i...', self.a, x, optimize=True)

    def matmul(self, x, axis=None):
        """Compute `A @ x` (optionally along specified axis of x)"""
        if axis is None:
            return self @ x

        x = np.moveaxis(np.asarray(x), axis, 0)
        return np.moveaxis(self @ x, 0, axis)

    def lstsq(self, x, axis=None):
        """Fit `y` to `x` (optionally along specified axis of x)"""
        x = np.asarray(x)
        if axis is None:
            axis = 0
        if x.ndim == 0 or x.shape[axis] != self.a.shape[0]:
            raise ValueError("right-hand side must have %d entries along axis"
                             % self.a.shape[0])

        x = np.moveaxis(x, axis, 0)
        return np.moveaxis(self._lstsq(x), 0, axis)

    def _lstsq(self, x):
        raise NotImplementedError()

    def __array__(self, dtype=None, copy=None):
        """Convert to numpy array."""
        return np.asarray(self.a, dtype=dtype)


class DecomposedMatrix(FittingMatrix):
    """Matrix in SVD decomposed form for fast and accurate fitting.

    Stores a matrix `A` together with its thin SVD truncated to the numerical
    rank `r`: `A ~= (u * s) @ vt`, where `u` is (m, r), `s` is (r,) and `vt`
    is (r, n).  Singular values at or below `rcond * s[0]` are discarded, so
    all retained singular values are strictly positive.

    Attributes:
    -----------
     - `a` : Original matrix
     - `u`, `s`, `vt` : Truncated SVD factors
     - `rank` : Numerical rank (number of retained singular values)
     - `cond` : Condition number of the truncated matrix, `s[0]/s[-1]`
    """
    @classmethod
    def default_rcond(cls, a):
        """Relative cutoff matching `numpy.linalg.matrix_rank`"""
        return max(a.shape) * np.finfo(a.dtype).eps

    @classmethod
    def get_svd_result(cls, a, rcond=None):
        """Construct truncated decomposition from matrix"""
        a = np.asarray(a)
        if not np.issubdtype(a.dtype, np.inexact):
            a = a.astype(np.float64)
        u, s, vt = np.linalg.svd(a, full_matrices=False)
        if rcond is None:
            rcond = cls.default_rcond(a)
        where = s > rcond * s[0]
        if not where.all():
            return u[:, where], s[where], vt[where]
        else:
            return u, s, vt

    def __init__(self, a, svd_result=None, rcond=None, warn_cond=True):
        super().__init__(a)
        if svd_result is None:
            u, s, vt = self.__class__.get_svd_result(self.a, rcond)
        else:
            u, s, vt = map(np.asarray, svd_result)

        if s.size == 0:
            raise ValueError("matrix has zero numerical rank")

        self.u = u
        self.s = s
        self.vt = vt

        self.cond = s[0] / s[-1]
        if warn_cond and self.cond > 1e8:
            warn("Fitting matrix is poorly conditioned (cond = %.2g)"
                 % self.cond, ConditioningWarning)

    @property
    def rank(self):
        return self.s.size

    def project(self, x):
        """Coefficients of `x` in the retained left singular basis, `u.T @ x`"""
        return np.einsum('ij,j...->i...', self.u.T, x, optimize=True)

    def expand(self, y):
        """Map reduced coefficients back to the domain, `vt.T @ y`"""
        return np.einsum('ij,j...->i...', self.vt.T, y, optimize=True)

    def _lstsq(self, x):
        r = self.project(x)
        r = np.einsum('i...,i->i...', r, 1/self.s)
        return self.expand(r)


class SphereConstrainedMatrix(FittingMatrix):
    """DecomposedMatrix with a spherical equality constraint

    For computing argmin_{x} |a @ x - b|, subject to |x| = alpha.

    The matrix is decomposed once; each right-hand side then only requires
    the solution of a scalar secular equation for the Lagrange multiplier,
    which makes this the preferred form for many fits against the same `a`.
    Each column along the fitting axis is solved independently.

    Attributes:
    -----------
     - `alpha` : Radius of the constraint sphere (default 1)
     - `method` : Bracketing method of `scipy.optimize.root_scalar`
     - `options` : Further keyword options passed on to the root finder
    """
    def __init__(self, a, alpha=None, rcond=None, warn_cond=True,
                 method="brentq", **options):
        super().__init__(a)
        self.alpha = _fit.check_alpha(alpha)
        self._decomposed_matrix = DecomposedMatrix(
            self.a, rcond=rcond, warn_cond=warn_cond)
        self.method = method
        self.options = options

    @property
    def s(self):
        return self._decomposed_matrix.s

    @property
    def rank(self):
        return self._decomposed_matrix.rank

    def _lstsq(self, x):
        """ Fit along the first axis """
        dmat = self._decomposed_matrix
        b_tilde = dmat.project(x)
        tail = b_tilde.shape[1:]
        b_tilde = b_tilde.reshape(dmat.rank, -1)

        y = np.empty_like(b_tilde, dtype=np.result_type(b_tilde, float))
        for j in range(b_tilde.shape[1]):
            y[:, j], _, _ = _fit.solve_reduced(
                dmat.s, b_tilde[:, j], self.alpha,
                method=self.method, **self.options)
        return dmat.expand(y.reshape((dmat.rank,) + tail))


class ConditioningWarning(RuntimeWarning):
    """Warns about a poorly conditioned problem.

    This warning is issued if the library detects a poorly conditioned fitting
    problem.  This essentially means there is a high degree of ambiguity in how
    to choose the solution.  One must therefore expect to lose significant
    precision in the solution.
    """
    pass

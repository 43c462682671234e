# Copyright (C) 2020-2021 Markus Wallerberger and others
# SPDX-License-Identifier: MIT
import numpy as np

from . import _fit
from .matrix import DecomposedMatrix


def _check_rhs(b, m):
    b = np.asarray(b)
    if b.shape != (m,):
        raise ValueError("b must be a vector of length %d, got shape %s"
                         % (m, b.shape))
    if np.iscomplexobj(b):
        raise ValueError("only real right-hand sides are supported")
    if not np.isfinite(b).all():
        raise ValueError("b must be finite")
    return b


def _decompose(a, b, alpha, rcond, warn_cond):
    alpha = _fit.check_alpha(alpha)
    dmat = DecomposedMatrix(a, rcond=rcond, warn_cond=warn_cond)
    b = _check_rhs(b, dmat.shape[0])
    return dmat, dmat.project(b), alpha


def lstsq_sphere(a, b, alpha=None, *, full_output=False, rcond=None,
                 warn_cond=True, method="brentq", **options):
    """Least squares on the surface of a sphere

    Compute argmin_{x} |a @ x - b|, subject to |x| = alpha.

    The problem is reduced by the truncated SVD of `a` to a scalar equation
    for the Lagrange multiplier `lambda`, whose root is enclosed by a
    closed-form bracket and found by `scipy.optimize.root_scalar`.  The
    constraint is always enforced: if the unconstrained minimum-norm
    solution is shorter than `alpha`, the solution is grown onto the sphere
    (`lambda <= 0`), otherwise it is shrunk (`lambda >= 0`).  The result is
    not merely a rescaled unconstrained solution.

    Attributes:
    -----------
     - `a` : (M, N) real array_like with M >= N
     - `b` : (M,) real array_like
     - `alpha` : Radius of the sphere, must be > 0 (`None` means 1)
     - `full_output` : Also return the Lagrange multiplier
     - `rcond` : Relative cutoff for small singular values; the default
        matches `numpy.linalg.matrix_rank`
     - `warn_cond` : Warn if the condition number is too large (>1e8)
     - `method` : Bracketing method of `scipy.optimize.root_scalar`
     - `options` : Passed on to `scipy.optimize.root_scalar`, e.g. `xtol`,
        `rtol` or `maxiter`

    Return `(x, flag)`, or `(x, lambda_, flag)` if `full_output` is set,
    where `flag` is the exit flag of the root finder (`"converged"` on
    success).  On failure, a `RootFindingWarning` is issued and `x` is built
    from the last available iterate.

    Raises `ValueError` on malformed input and `numpy.linalg.LinAlgError`
    if the SVD does not converge.
    """
    dmat, b_tilde, alpha = _decompose(a, b, alpha, rcond, warn_cond)
    y, lambda_, flag = _fit.solve_reduced(
        dmat.s, b_tilde, alpha, method=method, **options)
    x = dmat.expand(y)
    if full_output:
        return x, lambda_, flag
    return x, flag


def lstsq_ball(a, b, alpha=None, *, full_output=False, rcond=None,
               warn_cond=True, method="brentq", **options):
    """Least squares inside a ball

    Compute argmin_{x} |a @ x - b|, subject to |x| <= alpha.

    If the minimum-norm least squares solution lies inside the ball, it is
    returned as is with `lambda_ = 0`.  Otherwise the constraint is active
    and the problem is solved on the sphere as in `lstsq_sphere`.  Arguments
    and return values are the same as for `lstsq_sphere`.
    """
    dmat, b_tilde, alpha = _decompose(a, b, alpha, rcond, warn_cond)
    y = b_tilde / dmat.s
    if np.linalg.norm(y) <= alpha:
        lambda_, flag = 0.0, _fit.CONVERGED
    else:
        y, lambda_, flag = _fit.solve_reduced(
            dmat.s, b_tilde, alpha, method=method, **options)
    x = dmat.expand(y)
    if full_output:
        return x, lambda_, flag
    return x, flag

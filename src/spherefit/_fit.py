# Copyright (C) 2020-2021 Markus Wallerberger and others
# SPDX-License-Identifier: MIT
"""Secular equation of least squares on a sphere, in the reduced SVD basis.

With `A = u @ diag(s) @ vt` truncated to rank `r` and `b_tilde = u.T @ b`,
the stationarity condition of the Lagrangian

    |A @ x - b|^2 + lambda (|x|^2 - alpha^2)

gives `x(lambda) = vt.T @ (s * b_tilde / (s**2 + lambda))`, and the
constraint `|x| = alpha` becomes the scalar (secular) equation

    f(lambda) = sum_i (s_i b_tilde_i / (s_i**2 + lambda))**2 - alpha**2 = 0,

cf. Algorithm 6.2.1 of Golub and Van Loan, Matrix Computations (4th ed.).
"""
import numpy as np
from scipy import optimize
from warnings import warn

# Exit flags, as reported by `scipy.optimize.RootResults.flag`
CONVERGED = "converged"
CONVERGENCE_ERROR = "convergence error"
SIGN_ERROR = "sign error"


def check_alpha(alpha):
    """Return the sphere radius as float, defaulting to 1"""
    if alpha is None:
        return 1.0
    alpha = float(alpha)
    if not np.isfinite(alpha) or alpha <= 0:
        raise ValueError("alpha must be a positive finite number, got %r"
                         % alpha)
    return alpha


def secular_function(s, b_tilde, alpha):
    """Return the secular function `f(lambda)` whose zero is the multiplier

    `f` is strictly decreasing on each interval free of the poles
    `lambda = -s_i**2`, where it evaluates to `+inf`.  At zero,
    `f(0) = |x_0|^2 - alpha^2` with `x_0` the minimum-norm solution.
    """
    sb = s * b_tilde
    s2 = s**2
    alpha2 = alpha**2

    def objfun(lambda_):
        with np.errstate(divide='ignore', invalid='ignore'):
            terms = (sb / (s2 + lambda_))**2
        # vanishing components contribute nothing, even at their own pole
        terms = np.where(sb == 0, 0.0, terms)
        return float(terms.sum() - alpha2)

    return objfun


def sphere_bracket(s, b_tilde, alpha, x_norm=None):
    """Return `(lower, upper)` enclosing the root of the secular function

    Attributes:
    -----------
     - `s` : Retained (strictly positive) singular values
     - `b_tilde` : Right-hand side in the left singular basis
     - `alpha` : Radius of the sphere
     - `x_norm` : Norm of the minimum-norm solution (computed if omitted)
    """
    r = s.size
    sb = np.abs(s * b_tilde)
    if x_norm is None:
        x_norm = np.linalg.norm(b_tilde / s)

    if x_norm > alpha:
        # Solution has to shrink, so lambda >= 0 and f(0) > 0.  For the upper
        # end, let the largest term, scaled by r, reach alpha^2 on its own and
        # double the resulting lambda.
        lower = 0.0
        upper = 2 * np.max((sb * np.sqrt(r) - alpha * s**2) / alpha)
    else:
        # Solution has to grow, so lambda <= 0 and f(0) <= 0.  Going below
        # every pole -s_i^2 until a single term equals alpha^2 makes f > 0.
        # Vanishing components have no pole and are skipped.
        upper = 0.0
        poles = sb != 0
        if poles.any():
            lower = np.min(-s[poles]**2 - sb[poles] / alpha)
        else:
            lower = -np.max(s)**2
    return float(lower), float(upper)


def principal_bracket(s, b_tilde, alpha, bracket):
    """Restrict a bracket with `upper <= 0` to the right of all poles

    The minimiser on the sphere corresponds to the root of the secular
    function on which `s_i**2 + lambda > 0` for all components, where `f` is
    continuous and strictly decreasing.  Roots below a pole are stationary
    points of the Lagrangian, but not minima.  The lower end is moved to
    `-s_p**2 + |s_p b_tilde_p| / (2 alpha)`, with `s_p` the smallest singular
    value with a pole; there, the `p`-th term alone is `4 alpha**2`, hence
    `f > 0`.  Brackets with `upper > 0` are returned unchanged.
    """
    lower, upper = bracket
    sb = np.abs(s * b_tilde)
    poles = sb != 0
    if upper > 0 or not poles.any():
        return bracket

    p = np.argmin(np.where(poles, s, np.inf))
    pole = -s[p]**2
    candidate = pole + sb[p] / (2 * alpha)
    if candidate <= pole:
        candidate = np.nextafter(pole, 0)
    return float(max(lower, candidate)), float(upper)


def find_multiplier(objfun, bracket, method="brentq", **options):
    """Find the zero of `objfun` inside `bracket`, return `(lambda, flag)`

    `options` are passed on to `scipy.optimize.root_scalar` as they are.  If
    the bracket does not enclose a sign change, the root finder is not
    invoked; the end point with smaller residual is returned instead
    together with the flag `SIGN_ERROR`.
    """
    lower, upper = bracket
    f_lower = objfun(lower)
    f_upper = objfun(upper)
    if np.sign(f_lower) * np.sign(f_upper) > 0:
        lambda_ = lower if abs(f_lower) < abs(f_upper) else upper
        flag = SIGN_ERROR
    else:
        sol = optimize.root_scalar(objfun, bracket=[lower, upper],
                                   method=method, **options)
        lambda_, flag = float(sol.root), sol.flag

    if flag != CONVERGED:
        warn("Lagrange multiplier search in [%.6g, %.6g] failed: %s"
             % (lower, upper, flag), RootFindingWarning)
    return lambda_, flag


def reconstruct(s, b_tilde, lambda_):
    """Constrained solution in the reduced basis for given multiplier"""
    return (s * b_tilde) / (s**2 + lambda_)


def solve_reduced(s, b_tilde, alpha, bracket=None, method="brentq",
                  **options):
    """Solve least squares on the sphere in the reduced basis

    Returns `(y, lambda_, flag)` such that `x = vt.T @ y` is the solution,
    `lambda_` is the Lagrange multiplier and `flag` the unmodified exit flag
    of the root finder.
    """
    if bracket is None:
        bracket = principal_bracket(
            s, b_tilde, alpha, sphere_bracket(s, b_tilde, alpha))
    objfun = secular_function(s, b_tilde, alpha)
    lambda_, flag = find_multiplier(objfun, bracket, method, **options)
    return reconstruct(s, b_tilde, lambda_), lambda_, flag


class RootFindingWarning(RuntimeWarning):
    """Warns that the Lagrange multiplier could not be determined reliably.

    The returned solution then corresponds to the last iterate of the root
    finder (or the better end point of an invalid bracket) and need not
    satisfy the constraint.
    """
    pass

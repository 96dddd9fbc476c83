"""Linear-operator layer: the design matrix with a *logical* intercept.

Every loss in this package is written against the augmented design

    X̃ = [X  1]        (n × (p+1))

but X̃ is never built on the hot path.  Copying X to append a column
of ones costs ``O(np)`` memory traffic, which is exactly the cost of
the Hessian-vector product we are trying to keep cheap.  Instead the
helpers below special-case the trailing coordinate:

    X̃θ  = Xθ[:p] + θ[p]
    X̃'v = [X'v ; Σv]

The multinomial variants apply the same rule to every class block of
a class-major coefficient vector (see :mod:`~penalized_glr.glr`).

All ``apply_*`` functions write into a caller-supplied ``out`` buffer
(usually a :class:`~penalized_glr._scratch.Scratch` member) and return
it, so they compose without temporaries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy.sparse.linalg import LinearOperator

from ._typing import FloatArray

if TYPE_CHECKING:
    from .losses import LossEvaluator


# ------------------------------------------------------------------ #
# Products with X̃ and X̃'
# ------------------------------------------------------------------ #


def apply_X(
    out: FloatArray,
    X: FloatArray,
    theta: FloatArray,
    fit_intercept: bool,
) -> FloatArray:
    """``out = X̃θ`` for a single coefficient vector.

    Args:
        out: Buffer of length ``n``.
        X: Design matrix ``(n, p)``.
        theta: Coefficients, length ``p + 1`` (intercept last) or
            ``p``.
        fit_intercept: Whether ``theta`` carries an intercept.

    Returns:
        *out*.
    """
    p = X.shape[1]
    if fit_intercept:
        np.matmul(X, theta[:p], out=out)
        out += theta[p]
    else:
        np.matmul(X, theta, out=out)
    return out


def apply_X_multi(
    out: FloatArray,
    X: FloatArray,
    theta: FloatArray,
    n_classes: int,
    fit_intercept: bool,
) -> FloatArray:
    """``out[:, k] = X̃θ_k`` for every class block of a flat ``θ``.

    Args:
        out: Buffer ``(n, c)``.
        X: Design matrix ``(n, p)``.
        theta: Class-major coefficients, length ``c·(p+1)`` or
            ``c·p``.
        n_classes: Number of classes ``c``.
        fit_intercept: Whether each block ends with an intercept.

    Returns:
        *out*.
    """
    p = X.shape[1]
    W = theta.reshape(n_classes, -1)  # (c, p(+1)) view
    np.matmul(X, W[:, :p].T, out=out)
    if fit_intercept:
        out += W[:, p]
    return out


def apply_Xt(
    out: FloatArray,
    X: FloatArray,
    v: FloatArray,
    fit_intercept: bool,
) -> FloatArray:
    """``out = X̃'v``; the intercept entry is ``Σv``.

    Args:
        out: Buffer of length ``p + 1`` or ``p``.
        X: Design matrix ``(n, p)``.
        v: Vector of length ``n``.
        fit_intercept: Whether to fill the trailing intercept entry.

    Returns:
        *out*.
    """
    p = X.shape[1]
    np.matmul(X.T, v, out=out[:p])
    if fit_intercept:
        out[p] = v.sum()
    return out


def apply_Xt_multi(
    out: FloatArray,
    X: FloatArray,
    R: FloatArray,
    fit_intercept: bool,
) -> FloatArray:
    """``out[k] = X̃'R[:, k]`` for every class, in class-major layout.

    Args:
        out: Buffer ``(c, p(+1))``.
        X: Design matrix ``(n, p)``.
        R: Matrix ``(n, c)``.
        fit_intercept: Whether to fill the intercept column with the
            column sums of *R*.

    Returns:
        *out*.
    """
    p = X.shape[1]
    np.matmul(R.T, X, out=out[:, :p])
    if fit_intercept:
        R.sum(axis=0, out=out[:, p])
    return out


# ------------------------------------------------------------------ #
# Explicit Gram matrices
# ------------------------------------------------------------------ #
#
# The dense paths (closed-form ridge, full Newton) need X̃'X̃ or
# X̃' diag(w) X̃ materialised.  With the intercept last these are
#
#   ┌ X'WX   X'w ┐
#   └ w'X    Σw  ┘
#
# so the extra row/column is a column sum of WX and the corner is Σw,
# again no augmented copy of X.


def weighted_gram(
    out: FloatArray,
    X: FloatArray,
    w: FloatArray | None,
    fit_intercept: bool,
) -> FloatArray:
    """``out = X̃' diag(w) X̃`` (``w = None`` means unit weights).

    *out* may be a view into a larger matrix, e.g. one class-pair
    block of the multinomial Hessian.
    """
    n, p = X.shape
    # One n × p temporary; the dense Hessian is O(np²) anyway.
    WX = X if w is None else X * w[:, None]
    np.matmul(X.T, WX, out=out[:p, :p])
    if fit_intercept:
        col = WX.sum(axis=0)
        out[:p, p] = col
        out[p, :p] = col
        out[p, p] = n if w is None else w.sum()
    return out


def add_lambda_identity(
    H: FloatArray,
    lam: float,
    unpenalized: slice | None = None,
) -> FloatArray:
    """``H += λI``, skipping the diagonal entries selected by *unpenalized*."""
    if lam == 0:
        return H
    d = H.shape[0]
    H.flat[:: d + 1] += lam
    if unpenalized is not None:
        idx = np.arange(d)[unpenalized]
        H[idx, idx] -= lam
    return H


def form_XtX(
    X: FloatArray,
    fit_intercept: bool,
    lam: float = 0.0,
    penalize_intercept: bool = False,
) -> FloatArray:
    """Build the regularised Gram matrix ``X̃'X̃ + λI``.

    Args:
        X: Design matrix ``(n, p)``.
        fit_intercept: Append the ``X'1`` row/column and ``n`` corner.
        lam: L2 scale added to the diagonal.
        penalize_intercept: Whether the intercept diagonal entry also
            receives ``λ``.

    Returns:
        A fresh ``(p(+1), p(+1))`` array in X's dtype.
    """
    p_aug = X.shape[1] + int(fit_intercept)
    H = np.empty((p_aug, p_aug), dtype=X.dtype)
    weighted_gram(H, X, None, fit_intercept)
    unpenalized = (
        slice(p_aug - 1, None, p_aug)
        if fit_intercept and not penalize_intercept
        else None
    )
    return add_lambda_identity(H, lam, unpenalized)


# ------------------------------------------------------------------ #
# Matrix-free Hessian map
# ------------------------------------------------------------------ #


def hessian_operator(evaluator: LossEvaluator, theta: FloatArray) -> LinearOperator:
    """Wrap ``v ↦ H(θ)v`` as a symmetric :class:`~scipy.sparse.linalg.LinearOperator`.

    Each application costs one ``hessian_vector_product`` call —
    ``O(np)`` for binary losses, ``O(npc)`` for multinomial — and the
    Hessian itself is never formed.  The returned vector is freshly
    allocated because iterative solvers hold on to it across the next
    application.
    """
    d = theta.shape[0]

    def _matvec(v: FloatArray) -> FloatArray:
        out = np.empty(d, dtype=theta.dtype)
        evaluator.hessian_vector_product(out, theta, np.ravel(v))
        return out

    return LinearOperator(
        shape=(d, d),
        matvec=_matvec,
        rmatvec=_matvec,
        dtype=theta.dtype,
    )


__all__ = [
    "add_lambda_identity",
    "apply_X",
    "apply_X_multi",
    "apply_Xt",
    "apply_Xt_multi",
    "form_XtX",
    "hessian_operator",
    "weighted_gram",
]

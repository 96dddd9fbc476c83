"""Closed-form and conjugate-gradient solves for L2 least squares.

Fit a least squares regression either with no penalty (OLS) or with an
L2 penalty (ridge).

Complexity
~~~~~~~~~~
Assuming ``n`` dominates ``p``:

* full solve:                ``O(np²)`` — dominated by forming X̃'X̃.
* iterative (CG) solve:      ``O(κnp)`` — with κ ≤ p(+1) CG steps,
  each one Hessian-vector product.

Modes
~~~~~
``iterative=False``
    λ = 0: least squares on ``[X 1]`` (SVD-based ``lstsq``, which also
    copes with rank-deficient designs).  λ > 0: form the regularised
    Gram matrix, Cholesky-factor it in place and back-substitute
    against ``X̃'y``.  A failed factorisation is fatal — it means the
    system is not positive definite for this λ and no fallback is
    attempted.

``iterative=True``
    Matrix-free CG on the Hessian map of the squared-loss evaluator.
    The intercept column is applied logically, never copied.  CG
    converges in at most ``p(+1)`` steps in exact arithmetic; the
    iteration cap is ``min(max_inner, p(+1))`` and hitting it is not an
    error — the current iterate is returned.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.linalg import cho_factor, cho_solve
from scipy.sparse.linalg import cg

from ._operators import form_XtX, hessian_operator
from ._scratch import Scratch, allocate_scratch
from ._typing import FloatArray
from .glr import GLR, LossKind, PenaltyKind
from .losses import SquaredLossEvaluator, check_inputs

logger = logging.getLogger(__name__)


def _rhs(X: FloatArray, y: FloatArray, fit_intercept: bool) -> FloatArray:
    """``X̃'y`` with the intercept row ``Σy`` appended."""
    b = X.T @ y
    if fit_intercept:
        b = np.append(b, y.sum())
    return b


def closed_form_solve(
    glr: GLR,
    X: FloatArray,
    y: FloatArray,
    *,
    iterative: bool = False,
    max_inner: int = 200,
    rtol: float | None = None,
    scratch: Scratch | None = None,
) -> FloatArray:
    """Solve an L2-regularised least-squares problem directly.

    Args:
        glr: Squared-loss problem with ``gamma == 0``.
        X: Design matrix ``(n, p)``.
        y: Real response ``(n,)``.
        iterative: Use matrix-free conjugate gradient instead of a
            dense factorisation.
        max_inner: CG iteration cap (further capped at ``p(+1)``).
        rtol: CG relative residual tolerance; defaults to
            ``sqrt(eps)`` of X's dtype.
        scratch: Workspace for the CG path; allocated when ``None``.

    Returns:
        Coefficients of length ``p + 1`` (intercept last) or ``p``.

    Raises:
        ValueError: If *glr* is not a pure-L2 squared-loss problem or
            the inputs are inconsistent.
        numpy.linalg.LinAlgError: If the regularised Gram matrix is not
            positive definite.
    """
    if glr.loss is not LossKind.SQUARED or glr.penalty is not PenaltyKind.L2:
        raise ValueError(
            "closed_form_solve only handles squared loss with an L2 penalty, "
            f"got loss={glr.loss.value!r}, penalty={glr.penalty.value!r}."
        )
    X, y, _ = check_inputs(glr, X, y)
    n = X.shape[0]
    fi = glr.fit_intercept
    lam = glr.l2_scale(n)

    if not iterative:
        if lam == 0:
            X_aug = np.hstack([X, np.ones((n, 1), dtype=X.dtype)]) if fi else X
            theta, *_ = np.linalg.lstsq(X_aug, y, rcond=None)
            return theta
        H = form_XtX(X, fi, lam, glr.penalize_intercept)
        try:
            factor = cho_factor(H, lower=False, overwrite_a=True, check_finite=False)
        except np.linalg.LinAlgError as exc:
            raise np.linalg.LinAlgError(
                f"Cholesky factorisation of X'X + {lam:g}·I failed; the "
                "regularised Gram matrix is not positive definite "
                "(rank-deficient X with a vanishing penalty?)."
            ) from exc
        return cho_solve(factor, _rhs(X, y, fi), check_finite=False)

    # Iterative: no augmentation of X, it is applied implicitly in the
    # Hessian map.
    if scratch is None:
        scratch = allocate_scratch(X, fi)
    evaluator = SquaredLossEvaluator(glr, X, y, scratch)
    d = evaluator.n_coef
    max_cg_steps = min(max_inner, d)
    if rtol is None:
        rtol = float(np.sqrt(np.finfo(X.dtype).eps))

    # The squared-loss Hessian does not depend on θ; any point will do.
    H_map = hessian_operator(evaluator, np.zeros(d, dtype=X.dtype))
    theta, info = cg(H_map, _rhs(X, y, fi), rtol=rtol, atol=0.0, maxiter=max_cg_steps)
    if info > 0:
        logger.debug(
            "CG stopped at the iteration cap (%d) before reaching rtol=%.1e; "
            "returning the current iterate.",
            max_cg_steps,
            rtol,
        )
    else:
        logger.debug("CG converged within %d iterations.", max_cg_steps)
    return theta

"""Loss evaluators: objective, gradient, Hessian and Hessian-vector product.

The ``LossEvaluator`` protocol is the only boundary between this
package's numerics and whatever optimiser drives them.  An evaluator
is built once per fit from ``(glr, X, y, scratch)`` and then called
repeatedly; all temporaries live in the shared
:class:`~penalized_glr._scratch.Scratch` and all outputs are written
into buffers the caller owns.

Architecture
~~~~~~~~~~~~
Every concrete evaluator implements one cell of the dispatch table

    loss kind  ×  penalty kind  →  evaluator class

resolved once per fit by :func:`resolve_evaluator`:

=====================  ===========  ==============================
Loss                   Penalty      Evaluator
=====================  ===========  ==============================
squared                L2           ``SquaredLossEvaluator``
logistic               L2           ``LogisticLossEvaluator``
multinomial            L2           ``MultinomialLossEvaluator``
any                    elastic net  ``ElasticNetEvaluator``
=====================  ===========  ==============================

The elastic-net evaluator exposes only the *smooth* part of the
objective (loss + L2) to derivative-based callers; the L1 term is
handled by a proximal step in the driver.  It therefore wraps the L2
evaluator of the same loss rather than re-deriving anything.

Partial evaluation
~~~~~~~~~~~~~~~~~~
``value_gradient_hessian(theta, g, H, value=...)`` computes only what
is requested: pass ``g=None`` / ``H=None`` / ``value=False`` to skip
an output.  One evaluator therefore serves value-only line searches,
gradient-only quasi-Newton steps and full Newton steps, and the
shared work (``X̃θ``, the sigmoid or softmax weights) is computed
once per call.

Unpenalized intercept
~~~~~~~~~~~~~~~~~~~~~
The generic ``λθ`` / ``λI`` / ``λv`` term is added to the whole
output and then removed from the intercept coordinates when
``penalize_intercept`` is ``False``.  For the multinomial loss there
is one intercept per class block; the correction covers all of them
(see :meth:`~penalized_glr.glr.GLR.unpenalized_index`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np
from scipy.special import expit

from ._backends import resolve_backend
from ._operators import (
    add_lambda_identity,
    apply_X,
    apply_X_multi,
    apply_Xt,
    apply_Xt_multi,
    weighted_gram,
)
from ._scratch import Scratch, allocate_scratch
from ._typing import FloatArray
from .glr import GLR, LossKind, PenaltyKind

# ------------------------------------------------------------------ #
# LossEvaluator protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class LossEvaluator(Protocol):
    """Interface consumed by the solvers.

    Implementations hold references to ``X``, ``y``, the scratch
    workspace and the :class:`~penalized_glr.glr.GLR`; they keep no
    other state between calls.
    """

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        """Evaluate the requested subset of ``{f, ∇f, ∇²f}`` at *theta*.

        Args:
            theta: Flat coefficient vector.
            g: Gradient output buffer, same shape as *theta*, or
                ``None`` to skip the gradient.
            H: Hessian output buffer ``(d, d)`` or ``None``.
            value: Whether to compute and return the objective.

        Returns:
            The objective value, or ``None`` when ``value=False``.
        """
        ...

    def hessian_vector_product(
        self,
        Hv: FloatArray,
        theta: FloatArray,
        v: FloatArray,
    ) -> None:
        """Write ``∇²f(θ)·v`` into *Hv* without forming the Hessian."""
        ...

    def smooth_value_gradient(self, g: FloatArray, theta: FloatArray) -> float:
        """Value and gradient (into *g*) of the smooth sub-objective."""
        ...

    def objective(self, theta: FloatArray) -> float:
        """Full objective value, including any L1 term."""
        ...


# ------------------------------------------------------------------ #
# Input validation
# ------------------------------------------------------------------ #


def check_inputs(
    glr: GLR,
    X: FloatArray,
    y: np.ndarray,
) -> tuple[FloatArray, np.ndarray, int]:
    """Validate ``(X, y)`` against *glr* and normalise dtypes.

    Integer or boolean *X* is cast to float64.  *y* is cast to X's
    dtype for the squared and logistic losses.  Multinomial labels
    ``1..c`` are returned as ``intp`` row offsets ``0..c-1``, so the
    returned *y* must not be passed through this function again.

    Args:
        glr: Problem specification.
        X: Design matrix ``(n, p)``.
        y: Response of length ``n``.

    Returns:
        ``(X, y, n_classes)`` with ``n_classes = 0`` for non-multiclass
        losses.

    Raises:
        ValueError: On shape mismatch, non-numeric input, or labels
            outside the loss's domain.
    """
    X = np.asarray(X)
    if X.ndim != 2:
        raise ValueError(f"X must be 2-D (n, p), got shape {X.shape}.")
    if not (np.issubdtype(X.dtype, np.number) or X.dtype == np.bool_):
        raise ValueError(f"X must be numeric, got dtype {X.dtype}.")
    if not np.issubdtype(X.dtype, np.floating):
        X = X.astype(np.float64)
    n = X.shape[0]
    if n == 0:
        raise ValueError("X must contain at least one observation.")

    y = np.asarray(y)
    if y.ndim != 1 or y.shape[0] != n:
        raise ValueError(
            f"y must be 1-D with {n} entries to match X, got shape {y.shape}."
        )
    if not (np.issubdtype(y.dtype, np.number) or y.dtype == np.bool_):
        raise ValueError(f"y must be numeric, got dtype {y.dtype}.")

    if glr.loss is LossKind.SQUARED:
        return X, y.astype(X.dtype, copy=False), 0

    if glr.loss is LossKind.LOGISTIC:
        if not np.all(np.abs(y) == 1):
            raise ValueError("Logistic loss expects labels in {-1, +1}.")
        return X, y.astype(X.dtype, copy=False), 0

    # Multinomial: class labels 1..c, stored as row offsets 0..c-1.
    if not np.all(np.mod(y, 1) == 0) or np.any(y < 1):
        raise ValueError(
            "Multinomial loss expects positive integer class labels 1..c."
        )
    y_int = y.astype(np.intp)
    c = glr.n_classes if glr.n_classes is not None else int(y_int.max())
    if c < 2:
        raise ValueError(f"Multinomial loss needs at least 2 classes, got {c}.")
    if y_int.max() > c:
        raise ValueError(
            f"Class label {int(y_int.max())} out of range for n_classes={c}."
        )
    return X, y_int - 1, c


def _check_shape(name: str, arr: np.ndarray, shape: tuple[int, ...]) -> None:
    if arr.shape != shape:
        raise ValueError(f"{name} must have shape {shape}, got {arr.shape}.")


# ------------------------------------------------------------------ #
# Shared evaluator state
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class _EvaluatorBase:
    """Fields and penalty bookkeeping common to every NumPy evaluator."""

    glr: GLR
    X: FloatArray
    y: np.ndarray
    scratch: Scratch

    n: int = field(init=False)
    p: int = field(init=False)
    c: int = field(init=False)
    lam: float = field(init=False)
    n_coef: int = field(init=False)
    unpenalized: slice | None = field(init=False)

    def __post_init__(self) -> None:
        self.n, self.p = self.X.shape
        self.c = self.scratch.n_classes
        if not self.scratch.fits(self.X, self.c, self.glr.fit_intercept):
            raise ValueError(
                "Scratch workspace was allocated for a different problem "
                f"(n={self.scratch.n_samples}, p={self.scratch.n_features}, "
                f"c={self.scratch.n_classes}); got X of shape {self.X.shape}."
            )
        self.lam = self.glr.l2_scale(self.n)
        self.n_coef = self.glr.n_coef(self.p, self.c)
        self.unpenalized = self.glr.unpenalized_index(self.n_coef, max(self.c, 1))

    # ---- Argument checks -------------------------------------------

    def _check_theta(self, theta: FloatArray, *outs: tuple[str, np.ndarray | None]) -> None:
        d = self.n_coef
        _check_shape("theta", theta, (d,))
        for name, buf in outs:
            if buf is None:
                continue
            expected = (d, d) if name == "H" else (d,)
            _check_shape(name, buf, expected)

    # ---- Penalty contributions -------------------------------------

    def _penalty_value(self, theta: FloatArray) -> float:
        return self.glr.l2_penalty(theta, self.n, max(self.c, 1))

    def _add_penalty(self, out: FloatArray, vec: FloatArray) -> None:
        """``out += λ·vec`` with the unpenalized-intercept correction."""
        if self.lam == 0:
            return
        out += self.lam * vec
        if self.unpenalized is not None:
            out[self.unpenalized] -= self.lam * vec[self.unpenalized]

    def _add_penalty_hessian(self, H: FloatArray) -> None:
        add_lambda_identity(H, self.lam, self.unpenalized)

    # ---- Protocol conveniences -------------------------------------

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        raise NotImplementedError

    def smooth_value_gradient(self, g: FloatArray, theta: FloatArray) -> float:
        f = self.value_gradient_hessian(theta, g)
        assert f is not None
        return f

    def objective(self, theta: FloatArray) -> float:
        f = self.value_gradient_hessian(theta)
        assert f is not None
        return f


# ------------------------------------------------------------------ #
# Squared loss (L2)
# ------------------------------------------------------------------ #
# ->  f(θ)   = ½‖y − X̃θ‖² + λ‖θ‖²/2
# -> ∇f(θ)   = X̃'(X̃θ − y) + λθ
# -> ∇²f(θ)  = X̃'X̃ + λI
# -> ∇²f(θ)v = X̃'(X̃v) + λv      (independent of θ)
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class SquaredLossEvaluator(_EvaluatorBase):
    """Least squares with an L2 penalty.

    The analytical solver bypasses this class for the full solve but
    uses its Hessian-vector product for the conjugate-gradient path.
    """

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        self._check_theta(theta, ("g", g), ("H", H))
        fi = self.glr.fit_intercept
        r = self.scratch.n
        apply_X(r, self.X, theta, fi)
        r -= self.y  # residual X̃θ − y
        if g is not None:
            apply_Xt(g, self.X, r, fi)
            self._add_penalty(g, theta)
        if H is not None:
            weighted_gram(H, self.X, None, fi)
            self._add_penalty_hessian(H)
        if value:
            return 0.5 * float(np.dot(r, r)) + self._penalty_value(theta)
        return None

    def hessian_vector_product(
        self,
        Hv: FloatArray,
        theta: FloatArray,
        v: FloatArray,
    ) -> None:
        self._check_theta(theta, ("Hv", Hv), ("v", v))
        fi = self.glr.fit_intercept
        Xv = self.scratch.n
        apply_X(Xv, self.X, v, fi)
        apply_Xt(Hv, self.X, Xv, fi)
        self._add_penalty(Hv, v)


# ------------------------------------------------------------------ #
# Logistic loss (L2), labels y ∈ {±1}
# ------------------------------------------------------------------ #
# ->  f(θ)   = −Σ log σ(y⊙X̃θ) + λ‖θ‖²/2
# -> ∇f(θ)   = X̃'(y⊙(w − 1)) + λθ
# -> ∇²f(θ)  = X̃' Diag(w⊙(1 − w)) X̃ + λI
# with w = σ(y⊙X̃θ).  Because y² = 1 the curvature weight does not
# depend on the label sign, and −σ(−x) = σ(x) − 1 gives the gradient
# weight without a second sigmoid.
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class LogisticLossEvaluator(_EvaluatorBase):
    """Binary logistic regression with an L2 penalty.

    Scratch usage: ``n`` holds ``X̃θ`` and is then recycled for the
    per-output weight vector; ``n2`` holds the margins ``y⊙X̃θ``;
    ``n3`` holds ``w = σ(margin)``; ``p`` holds ``X'Λ1`` in the
    Hessian-vector product.
    """

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        self._check_theta(theta, ("g", g), ("H", H))
        fi = self.glr.fit_intercept
        s = self.scratch
        apply_X(s.n, self.X, theta, fi)  # X̃θ
        margin = np.multiply(s.n, self.y, out=s.n2)  # y⊙X̃θ
        w = expit(margin, out=s.n3)  # σ(y⊙X̃θ)

        f = None
        if value:
            # −log σ(m) = log(1 + e^{−m}), overflow-safe via logaddexp.
            t = np.negative(margin, out=s.n)
            np.logaddexp(0.0, t, out=t)
            f = float(t.sum()) + self._penalty_value(theta)

        if g is not None:
            t = np.subtract(w, 1.0, out=s.n)
            t *= self.y  # y⊙(w − 1)
            apply_Xt(g, self.X, t, fi)
            self._add_penalty(g, theta)

        if H is not None:
            t = np.subtract(1.0, w, out=s.n)
            t *= w  # w⊙(1 − w)
            # Intercept row/column (ΛX)'1 and corner 1'Λ1 come from
            # explicit sums inside weighted_gram.
            weighted_gram(H, self.X, t, fi)
            self._add_penalty_hessian(H)

        return f

    def hessian_vector_product(
        self,
        Hv: FloatArray,
        theta: FloatArray,
        v: FloatArray,
    ) -> None:
        self._check_theta(theta, ("Hv", Hv), ("v", v))
        s = self.scratch
        X, p = self.X, self.p
        apply_X(s.n, X, theta, self.glr.fit_intercept)
        w = np.multiply(s.n, self.y, out=s.n2)
        expit(w, out=w)
        w *= np.subtract(1.0, w, out=s.n3)  # Λ = w(1 − w)

        if not self.glr.fit_intercept:
            Xv = np.matmul(X, v, out=s.n)
            Xv *= w  # ΛXv
            np.matmul(X.T, Xv, out=Hv)  # X'ΛXv
            self._add_penalty(Hv, v)
            return

        # H = [X 1]'Λ[X 1] + λI, split as
        #   rows 1:p = [X'ΛX + λI | X'Λ1]
        #   last row = [1'ΛX      | Σw + λ']
        v_p, v_e = v[:p], v[p]
        XtL1 = np.matmul(X.T, w, out=s.p[:p])  # X'Λ1; O(np)
        Xv = np.matmul(X, v_p, out=s.n)
        Xv *= w  # ΛXvₚ
        Hv_p = Hv[:p]
        np.matmul(X.T, Xv, out=Hv_p)  # (X'ΛX)vₚ
        Hv_p += self.lam * v_p
        Hv_p += v_e * XtL1
        lam_e = self.lam if self.glr.penalize_intercept else 0.0
        Hv[p] = float(np.dot(XtL1, v_p)) + (float(w.sum()) + lam_e) * v_e


# ------------------------------------------------------------------ #
# Multinomial loss (L2), labels y ∈ {0, …, c−1}
# ------------------------------------------------------------------ #
# -> θ is class-major: Θ = θ.reshape(c, p+1), one row per class
# -> P = X̃Θ'                       (n × c logits)
# -> f(θ) = Σᵢ [log Σⱼ exp(Pᵢⱼ) − P_{i,yᵢ}] + λ‖θ‖²/2
# -> ∇f(θ) = vec((Λ − Q)'X̃) + λθ   Λ = softmax(P), Q = onehot(y)
# -> ∇²f(θ)v via the R-operator:
#      M = exp(P − m), Q = X̃V', ρ = 1/rowsum(M), κ = rowsum(M⊙Q),
#      γ = κρ², U = ρ⊙(M⊙Q) − γ⊙M,  Hv = vec(U'X̃) + λv
# Every exponential is shifted by the row max m; the softmax ratios
# and U are invariant to that shift.
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class MultinomialLossEvaluator(_EvaluatorBase):
    """Softmax regression over ``c`` classes with an L2 penalty.

    Scratch usage: ``nc`` logits, ``nc2`` shifted exponentials,
    ``nc3`` probabilities (or ``X̃v`` in the Hv path), ``nc4`` the
    residual / ``U`` matrix, ``pc`` the class-major gradient block,
    ``n``/``n2``/``n3`` row statistics.
    """

    _rows: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.c < 2:
            raise ValueError(
                "MultinomialLossEvaluator needs a scratch allocated with "
                f"n_classes >= 2, got {self.c}."
            )
        self._rows = np.arange(self.n)

    def _softmax_terms(self, theta: FloatArray) -> tuple[FloatArray, FloatArray, FloatArray]:
        """Fill logits, row max and shifted exponentials."""
        s = self.scratch
        P = apply_X_multi(s.nc, self.X, theta, self.c, self.glr.fit_intercept)
        m = P.max(axis=1, out=s.n)
        M = np.subtract(P, m[:, None], out=s.nc2)
        np.exp(M, out=M)
        return P, m, M

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        self._check_theta(theta, ("g", g), ("H", H))
        s = self.scratch
        fi = self.glr.fit_intercept
        P, m, M = self._softmax_terms(theta)
        Z = M.sum(axis=1, out=s.n2)  # shifted partition function

        f = None
        if value:
            lse = np.log(Z, out=s.n3)
            lse += m
            f = float(lse.sum() - P[self._rows, self.y].sum())
            f += self._penalty_value(theta)

        if g is None and H is None:
            return f

        L = np.divide(M, Z[:, None], out=s.nc3)  # softmax probabilities

        if g is not None:
            R = s.nc4
            np.copyto(R, L)
            R[self._rows, self.y] -= 1.0  # Λ − Q
            G = apply_Xt_multi(s.pc, self.X, R, fi)
            np.copyto(g, G.reshape(-1))
            self._add_penalty(g, theta)

        if H is not None:
            # Block (k, l) = X̃' Diag(Λₖ(δₖₗ − Λₗ)) X̃; symmetric, so
            # only the upper block triangle is computed.
            pa = self.n_coef // self.c
            w = s.n3
            for k in range(self.c):
                for j in range(k, self.c):
                    if j == k:
                        np.subtract(1.0, L[:, k], out=w)
                        w *= L[:, k]
                    else:
                        np.multiply(L[:, k], L[:, j], out=w)
                        np.negative(w, out=w)
                    blk = H[k * pa : (k + 1) * pa, j * pa : (j + 1) * pa]
                    weighted_gram(blk, self.X, w, fi)
                    if j != k:
                        H[j * pa : (j + 1) * pa, k * pa : (k + 1) * pa] = blk.T
            self._add_penalty_hessian(H)

        return f

    def hessian_vector_product(
        self,
        Hv: FloatArray,
        theta: FloatArray,
        v: FloatArray,
    ) -> None:
        self._check_theta(theta, ("Hv", Hv), ("v", v))
        s = self.scratch
        fi = self.glr.fit_intercept
        _, _, M = self._softmax_terms(theta)  # O(npc)
        Q = apply_X_multi(s.nc3, self.X, v, self.c, fi)  # Qᵢₖ = ⟨x̃ᵢ, vₖ⟩
        MQ = np.multiply(M, Q, out=s.nc4)
        rho = M.sum(axis=1, out=s.n2)
        np.reciprocal(rho, out=rho)  # ρᵢ = 1/Zᵢ
        kappa = MQ.sum(axis=1, out=s.n3)  # κᵢ = Σₖ Mᵢₖ Qᵢₖ
        gamma = np.multiply(kappa, rho, out=s.n)
        gamma *= rho  # γᵢ = κᵢ ρᵢ²
        MQ *= rho[:, None]
        M *= gamma[:, None]
        U = np.subtract(MQ, M, out=s.nc4)  # ρ⊙(M⊙Q) − γ⊙M
        G = apply_Xt_multi(s.pc, self.X, U, fi)  # O(npc)
        np.copyto(Hv, G.reshape(-1))
        self._add_penalty(Hv, v)


# ------------------------------------------------------------------ #
# Elastic net: smooth part
# ------------------------------------------------------------------ #
# ->  J(θ)  = f(θ) + r(θ)
# ->  f(θ)  = loss + λ‖θ‖²/2      // smooth
# ->  r(θ)  = γ‖θ‖₁                // non-smooth, handled by prox
# The derivative methods delegate to the L2 evaluator of the same
# loss built from ``glr.smooth()``.
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class ElasticNetEvaluator:
    """Smooth-part evaluator for elastic-net problems."""

    glr: GLR
    X: FloatArray
    y: np.ndarray
    scratch: Scratch

    smooth: LossEvaluator = field(init=False)

    def __post_init__(self) -> None:
        smooth_glr = self.glr.smooth()
        cls = lookup_evaluator(smooth_glr.loss, PenaltyKind.L2)
        self.smooth = cls(smooth_glr, self.X, self.y, self.scratch)

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        return self.smooth.value_gradient_hessian(theta, g, H, value=value)

    def hessian_vector_product(
        self,
        Hv: FloatArray,
        theta: FloatArray,
        v: FloatArray,
    ) -> None:
        self.smooth.hessian_vector_product(Hv, theta, v)

    def smooth_value_gradient(self, g: FloatArray, theta: FloatArray) -> float:
        return self.smooth.smooth_value_gradient(g, theta)

    def objective(self, theta: FloatArray) -> float:
        n = self.X.shape[0]
        c = max(self.scratch.n_classes, 1)
        return self.smooth.objective(theta) + self.glr.l1_penalty(theta, n, c)


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_EVALUATORS: dict[tuple[LossKind, PenaltyKind], type] = {
    (LossKind.SQUARED, PenaltyKind.L2): SquaredLossEvaluator,
    (LossKind.LOGISTIC, PenaltyKind.L2): LogisticLossEvaluator,
    (LossKind.MULTINOMIAL, PenaltyKind.L2): MultinomialLossEvaluator,
    (LossKind.SQUARED, PenaltyKind.ELASTIC_NET): ElasticNetEvaluator,
    (LossKind.LOGISTIC, PenaltyKind.ELASTIC_NET): ElasticNetEvaluator,
    (LossKind.MULTINOMIAL, PenaltyKind.ELASTIC_NET): ElasticNetEvaluator,
}


def register_evaluator(loss: LossKind | str, penalty: PenaltyKind | str, cls: type) -> None:
    """Register (or replace) the NumPy evaluator for a loss × penalty cell.

    Args:
        loss: Loss kind or its string value.
        penalty: Penalty kind or its string value.
        cls: Class constructed as ``cls(glr, X, y, scratch)``.

    Raises:
        TypeError: If *cls* does not implement :class:`LossEvaluator`.
    """
    if not (isinstance(cls, type) and issubclass(cls, LossEvaluator)):
        raise TypeError(f"{cls!r} does not implement the LossEvaluator protocol.")
    _EVALUATORS[(LossKind(loss), PenaltyKind(penalty))] = cls


def lookup_evaluator(loss: LossKind, penalty: PenaltyKind) -> type:
    """Return the NumPy evaluator class registered for ``(loss, penalty)``."""
    try:
        return _EVALUATORS[(loss, penalty)]
    except KeyError:
        raise ValueError(
            f"No evaluator registered for loss={loss.value!r}, "
            f"penalty={penalty.value!r}."
        ) from None


def resolve_evaluator(
    glr: GLR,
    X: FloatArray,
    y: np.ndarray,
    scratch: Scratch | None = None,
    backend: str | None = None,
) -> LossEvaluator:
    """Validate inputs and build the evaluator for *glr*.

    This is the single dispatch point: the loss × penalty cell and the
    compute backend are both resolved here, once per fit.

    Args:
        glr: Problem specification.
        X: Design matrix ``(n, p)``.
        y: Response of length ``n``.
        scratch: Workspace to reuse; allocated when ``None``.
        backend: ``"numpy"``, ``"jax"`` or ``None`` for the policy
            default (see :mod:`~penalized_glr._config`).

    Returns:
        An object implementing :class:`LossEvaluator`.
    """
    X, y, c = check_inputs(glr, X, y)
    if scratch is None:
        scratch = allocate_scratch(X, glr.fit_intercept, c)
    return resolve_backend(backend).make_evaluator(glr, X, y, scratch)


__all__ = [
    "ElasticNetEvaluator",
    "LogisticLossEvaluator",
    "LossEvaluator",
    "MultinomialLossEvaluator",
    "SquaredLossEvaluator",
    "check_inputs",
    "lookup_evaluator",
    "register_evaluator",
    "resolve_evaluator",
]

"""Optimizer drivers over the :class:`~penalized_glr.losses.LossEvaluator` protocol.

Each driver is a small frozen dataclass of options with a single
``solve(evaluator, glr, X, y)`` method returning the flat coefficient
vector.  Drivers own the iteration state (iterate, gradient and
Hessian buffers); the evaluator owns the loss-specific scratch.

=============  ==================  =====================================
Driver         Penalties           Method
=============  ==================  =====================================
``Analytical``  squared + L2        Cholesky or matrix-free CG
``Newton``      L2                  dense Newton + backtracking
``NewtonCG``    L2                  ``scipy.optimize`` Newton-CG (Hv)
``LBFGS``       L2                  ``scipy.optimize`` L-BFGS-B
``ProxGrad``    L2 or elastic net   ISTA / FISTA with backtracking
=============  ==================  =====================================

:func:`fit` is the one-call entry point: it validates the inputs,
builds the evaluator once and dispatches to the solver chosen by
:func:`default_solver` unless one is passed explicitly.

Convergence
~~~~~~~~~~~
Iterative drivers stop on the first of three criteria: gradient
infinity norm, step infinity norm, or relative change of the objective
below ``tol``.  A driver that exhausts its iteration budget returns
its last iterate and emits a single ``RuntimeWarning``; callers that
need a hard failure can escalate it with ``warnings.simplefilter``.
A line search that finds no acceptable step ends the run the same way,
without moving the iterate.

Driver buffers and the returned coefficients use X's floating dtype.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np
import scipy.linalg
from scipy.optimize import minimize

from ._backends import resolve_backend
from ._scratch import allocate_scratch
from ._typing import FloatArray
from .analytical import closed_form_solve
from .glr import GLR, LossKind, PenaltyKind
from .losses import LossEvaluator, check_inputs

logger = logging.getLogger(__name__)

# Armijo sufficient-decrease constant for the Newton line search.
_ARMIJO_C = 1e-4
_MIN_STEP = 1e-10
# Line-search slack, in ulps of the objective.
_F_SLACK = 16


@runtime_checkable
class Solver(Protocol):
    """Interface shared by every driver."""

    def solve(
        self,
        evaluator: LossEvaluator,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
    ) -> FloatArray: ...


def _problem_size(glr: GLR, X: FloatArray, y: np.ndarray) -> tuple[int, np.dtype]:
    """Coefficient count and working dtype (X's floating type)."""
    X, _, c = check_inputs(glr, X, y)
    return glr.n_coef(X.shape[1], c), X.dtype


def _tol_floor(tol: float, dtype: np.dtype, floor: float) -> float:
    # Tolerances below the dtype's resolution can never be met.
    return max(tol, floor * float(np.finfo(dtype).eps))


def _require_smooth(glr: GLR, driver: str) -> None:
    if glr.penalty is not PenaltyKind.L2:
        raise ValueError(
            f"{driver} only handles smooth (L2) objectives; use ProxGrad "
            f"for elastic-net problems (gamma={glr.gamma})."
        )


def _warn_not_converged(driver: str, n_iter: int, detail: str = "") -> None:
    msg = f"{driver} did not converge within {n_iter} iterations"
    if detail:
        msg += f" ({detail})"
    warnings.warn(msg + "; returning the last iterate.", RuntimeWarning, stacklevel=3)


def _relative_change(f_new: float, f_old: float) -> float:
    return abs(f_new - f_old) / max(abs(f_old), abs(f_new), 1.0)


# ------------------------------------------------------------------ #
# Analytical
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class Analytical:
    """Direct solve of L2 least squares (see :mod:`~penalized_glr.analytical`).

    Attributes:
        iterative: Conjugate gradient instead of Cholesky.
        max_inner: CG iteration cap.
        rtol: CG relative residual tolerance (``None`` = sqrt(eps)).
    """

    iterative: bool = False
    max_inner: int = 200
    rtol: float | None = None

    def solve(
        self,
        evaluator: LossEvaluator,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
    ) -> FloatArray:
        # The evaluator is not needed for the full solve; its scratch
        # is reused for the CG path when it has one.
        return closed_form_solve(
            glr,
            X,
            y,
            iterative=self.iterative,
            max_inner=self.max_inner,
            rtol=self.rtol,
            scratch=getattr(evaluator, "scratch", None),
        )


# ------------------------------------------------------------------ #
# Newton
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class Newton:
    """Dense Newton's method with an Armijo backtracking line search.

    One ``value_gradient_hessian`` call per iteration fills the
    preallocated ``g`` and ``H``; the step is a Cholesky solve.  When
    the Hessian is numerically singular (e.g. the shift direction of
    unpenalized multinomial intercepts) the solve falls back to a
    lightly damped system.
    """

    max_iter: int = 50
    tol: float = 1e-8

    def solve(
        self,
        evaluator: LossEvaluator,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
    ) -> FloatArray:
        _require_smooth(glr, "Newton")
        d, dtype = _problem_size(glr, X, y)
        tol = _tol_floor(self.tol, dtype, 4)
        theta = np.zeros(d, dtype=dtype)
        g = np.empty(d, dtype=dtype)
        H = np.empty((d, d), dtype=dtype)
        f_prev = np.inf

        for it in range(self.max_iter):
            f = evaluator.value_gradient_hessian(theta, g, H)
            assert f is not None
            if np.max(np.abs(g)) < tol or _relative_change(f, f_prev) < tol:
                logger.debug("Newton converged after %d iterations (f=%.6g).", it, f)
                return theta
            f_prev = f

            try:
                step = scipy.linalg.solve(H, g, assume_a="pos", check_finite=False)
            except np.linalg.LinAlgError:
                logger.debug("Newton: Hessian not positive definite, damping.")
                H.flat[:: d + 1] += 1e-8
                step = scipy.linalg.solve(H, g, assume_a="sym", check_finite=False)
            step = step.astype(dtype, copy=False)

            # Backtrack until the Armijo condition holds.
            slope = float(np.dot(g, step))
            t = 1.0
            while True:
                candidate = theta - t * step
                f_new = evaluator.value_gradient_hessian(candidate)
                assert f_new is not None
                if f_new <= f - _ARMIJO_C * t * slope:
                    break
                t *= 0.5
                if t < _MIN_STEP:
                    # No descent along the Newton direction; theta is
                    # the best point seen.
                    _warn_not_converged("Newton", it + 1, "line search failed")
                    return theta

            if t * np.max(np.abs(step)) < tol:
                logger.debug("Newton stalled at iteration %d (step below tol).", it)
                return candidate
            theta = candidate

        _warn_not_converged("Newton", self.max_iter)
        return theta


# ------------------------------------------------------------------ #
# scipy.optimize drivers
# ------------------------------------------------------------------ #


def _fun_and_grad(evaluator: LossEvaluator, d: int, dtype: np.dtype):
    """Wrap the evaluator as a ``jac=True`` objective for ``minimize``.

    scipy iterates in float64; the iterate is cast back to *dtype*
    before it reaches the evaluator.
    """
    g = np.empty(d, dtype=dtype)

    def fun(theta: FloatArray) -> tuple[float, FloatArray]:
        f = evaluator.smooth_value_gradient(g, theta.astype(dtype, copy=False))
        # minimize keeps references to returned gradients.
        return f, g.copy()

    return fun


@dataclass(frozen=True)
class NewtonCG:
    """Truncated Newton with Hessian-vector products.

    The Hessian is never formed: ``hessp`` calls the evaluator's
    ``hessian_vector_product``.
    """

    max_iter: int = 100
    tol: float = 1e-8

    def solve(
        self,
        evaluator: LossEvaluator,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
    ) -> FloatArray:
        _require_smooth(glr, "NewtonCG")
        d, dtype = _problem_size(glr, X, y)
        out = np.empty(d, dtype=dtype)

        def hessp(theta: FloatArray, v: FloatArray) -> FloatArray:
            evaluator.hessian_vector_product(
                out, theta.astype(dtype, copy=False), v.astype(dtype, copy=False)
            )
            return out.copy()

        # xtol bounds the average step, which float rounding of the
        # objective cannot resolve below ~sqrt(eps).
        xtol = max(self.tol, float(np.sqrt(np.finfo(dtype).eps)))
        res = minimize(
            _fun_and_grad(evaluator, d, dtype),
            np.zeros(d),
            jac=True,
            hessp=hessp,
            method="Newton-CG",
            options={"maxiter": self.max_iter, "xtol": xtol},
        )
        logger.debug("NewtonCG: %s (nit=%d, f=%.6g).", res.message, res.nit, res.fun)
        if not res.success:
            _warn_not_converged("NewtonCG", self.max_iter, str(res.message))
        return res.x.astype(dtype, copy=False)


@dataclass(frozen=True)
class LBFGS:
    """Limited-memory BFGS on the smooth objective."""

    max_iter: int = 1000
    tol: float = 1e-8

    def solve(
        self,
        evaluator: LossEvaluator,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
    ) -> FloatArray:
        _require_smooth(glr, "LBFGS")
        d, dtype = _problem_size(glr, X, y)
        res = minimize(
            _fun_and_grad(evaluator, d, dtype),
            np.zeros(d),
            jac=True,
            method="L-BFGS-B",
            options={
                "maxiter": self.max_iter,
                "maxls": 50,
                "gtol": _tol_floor(self.tol, dtype, 4),
                "ftol": 64 * float(np.finfo(dtype).eps),
            },
        )
        logger.debug("LBFGS: %s (nit=%d, f=%.6g).", res.message, res.nit, res.fun)
        if not res.success:
            _warn_not_converged("LBFGS", self.max_iter, str(res.message))
        return res.x.astype(dtype, copy=False)


# ------------------------------------------------------------------ #
# Proximal gradient
# ------------------------------------------------------------------ #
# -> minimise f(θ) + γ‖θ‖₁ with f smooth
# -> θ⁺ = prox_{tγ}(z − t∇f(z)),  prox = soft-threshold
# -> t shrinks by β until f(θ⁺) ≤ f(z) + ∇f(z)'(θ⁺ − z) + ‖θ⁺ − z‖²/2t
# -> FISTA: z = θ⁺ + ((τ − 1)/τ⁺)(θ⁺ − θ),  τ⁺ = (1 + √(1 + 4τ²))/2
# ------------------------------------------------------------------ #


def soft_threshold(
    out: FloatArray,
    z: FloatArray,
    threshold: float,
    unpenalized: slice | None = None,
) -> FloatArray:
    """``out = sign(z)·max(|z| − threshold, 0)``; *unpenalized* entries pass through."""
    np.abs(z, out=out)
    out -= threshold
    np.maximum(out, 0.0, out=out)
    out *= np.sign(z)
    if unpenalized is not None:
        out[unpenalized] = z[unpenalized]
    return out


@dataclass(frozen=True)
class ProxGrad:
    """ISTA (``accel=False``) or FISTA (``accel=True``).

    Attributes:
        accel: Use Nesterov momentum (FISTA).
        max_iter: Outer iteration cap.
        tol: Stop when the step's infinity norm falls below
            ``tol · max(1, ‖θ‖∞)``.
        max_inner: Backtracking steps per iteration.
        beta: Step shrink factor in ``(0, 1)``.
    """

    accel: bool = True
    max_iter: int = 1000
    tol: float = 1e-6
    max_inner: int = 100
    beta: float = 0.8

    def __post_init__(self) -> None:
        if not 0.0 < self.beta < 1.0:
            raise ValueError(f"beta must lie in (0, 1), got {self.beta}.")

    def solve(
        self,
        evaluator: LossEvaluator,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
    ) -> FloatArray:
        X, y, c = check_inputs(glr, X, y)
        d = glr.n_coef(X.shape[1], c)
        blocks = max(c, 1)
        gam = glr.l1_scale(X.shape[0])
        unpenalized = glr.unpenalized_index(d, blocks)
        name = "FISTA" if self.accel else "ISTA"

        tol = _tol_floor(self.tol, X.dtype, 16)
        f_slack = _F_SLACK * float(np.finfo(X.dtype).eps)
        theta = np.zeros(d, dtype=X.dtype)
        z = theta.copy()
        candidate = np.empty(d, dtype=X.dtype)
        g = np.empty(d, dtype=X.dtype)
        step = 1.0
        tau = 1.0

        for it in range(self.max_iter):
            f_z = evaluator.smooth_value_gradient(g, z)
            for _ in range(self.max_inner):
                soft_threshold(candidate, z - step * g, step * gam, unpenalized)
                diff = candidate - z
                f_c = evaluator.value_gradient_hessian(candidate)
                assert f_c is not None
                bound = f_z + float(np.dot(g, diff)) + float(np.dot(diff, diff)) / (2 * step)
                # Slack of a few ulps of f so rounding near the optimum
                # does not collapse the step size.
                if f_c <= bound + f_slack * abs(f_z):
                    break
                step *= self.beta
            else:
                # Keep the last accepted iterate.
                _warn_not_converged(name, it + 1, "line search failed")
                return theta

            delta = np.max(np.abs(candidate - theta))
            converged = delta < tol * max(1.0, float(np.max(np.abs(theta))))
            if self.accel:
                tau_next = 0.5 * (1.0 + np.sqrt(1.0 + 4.0 * tau * tau))
                z = candidate + ((tau - 1.0) / tau_next) * (candidate - theta)
                tau = tau_next
            else:
                z = candidate.copy()
            theta = candidate.copy()

            if converged:
                logger.debug(
                    "%s converged after %d iterations (step size %.3g).", name, it + 1, step
                )
                return theta

        _warn_not_converged(name, self.max_iter)
        return theta


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def default_solver(glr: GLR) -> Solver:
    """Pick a driver for *glr*.

    Squared loss with a pure L2 penalty is solved directly; other L2
    problems use L-BFGS; anything with an L1 term needs the proximal
    driver.
    """
    if glr.penalty is PenaltyKind.ELASTIC_NET:
        return ProxGrad()
    if glr.loss is LossKind.SQUARED:
        return Analytical()
    return LBFGS()


def fit(
    glr: GLR,
    X: FloatArray,
    y: np.ndarray,
    solver: Solver | None = None,
    backend: str | None = None,
) -> FloatArray:
    """Minimise the objective described by *glr* over ``(X, y)``.

    Args:
        glr: Problem specification.
        X: Design matrix ``(n, p)``.
        y: Response of length ``n`` (reals, ±1 labels, or class
            labels ``1..c`` depending on the loss).
        solver: Driver instance; :func:`default_solver` when ``None``.
        backend: Evaluator backend name; policy default when ``None``.

    Returns:
        Flat coefficient vector (intercept last in each class block).
    """
    Xc, yc, c = check_inputs(glr, X, y)
    scratch = allocate_scratch(Xc, glr.fit_intercept, c)
    evaluator = resolve_backend(backend).make_evaluator(glr, Xc, yc, scratch)
    if solver is None:
        solver = default_solver(glr)
    logger.debug(
        "fit: loss=%s penalty=%s solver=%s n=%d p=%d c=%d dtype=%s",
        glr.loss.value,
        glr.penalty.value,
        type(solver).__name__,
        Xc.shape[0],
        Xc.shape[1],
        c,
        Xc.dtype,
    )
    # Drivers receive the caller's (X, y); they re-derive sizes and
    # dtype through check_inputs.
    return solver.solve(evaluator, glr, X, y)


__all__ = [
    "LBFGS",
    "Analytical",
    "Newton",
    "NewtonCG",
    "ProxGrad",
    "Solver",
    "default_solver",
    "fit",
    "soft_threshold",
]

"""Problem specification: loss × penalty.

A :class:`GLR` (generalized linear regression) bundles everything that
defines the convex objective

    J(θ) = L(y, X̃θ) + λ‖θ‖₂²/2 + γ‖θ‖₁

where ``X̃`` is the design matrix, logically augmented with a trailing
column of ones when an intercept is fit.  The loss ``L`` is one of
:class:`LossKind`; the penalty kind is derived from ``gamma``: a zero
L1 scale means a pure L2 problem (``PenaltyKind.L2``), anything else
is elastic net (``PenaltyKind.ELASTIC_NET``).

The dataclass is frozen and carries no arrays.  It is resolved once per
fit into an evaluator (see :func:`~penalized_glr.losses.resolve_evaluator`)
and a solver (see :mod:`~penalized_glr.solvers`).

Coefficient layout
~~~~~~~~~~~~~~~~~~
* Squared and logistic losses: ``θ`` has length ``p + 1`` with the
  intercept **last** (length ``p`` without intercept).
* Multinomial loss: ``θ`` has length ``c · (p + 1)`` and is
  class-major, i.e. ``θ.reshape(c, p + 1)[k]`` is the block of class
  ``k`` and its final entry is that class's intercept.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

import numpy as np

from ._typing import FloatArray


class LossKind(str, Enum):
    """Loss families supported by the evaluators."""

    SQUARED = "squared"
    LOGISTIC = "logistic"
    MULTINOMIAL = "multinomial"


class PenaltyKind(str, Enum):
    """Penalty families: pure L2 or elastic net (L1 + L2)."""

    L2 = "l2"
    ELASTIC_NET = "elastic_net"


@dataclass(frozen=True)
class GLR:
    """Generalized linear regression problem.

    Attributes:
        loss: Loss family; a :class:`LossKind` or its string value.
        lambda_: L2 scale λ ≥ 0.
        gamma: L1 scale γ ≥ 0.  Any positive value makes the problem
            elastic net.
        fit_intercept: Whether ``θ`` carries an intercept coordinate
            (one per class block for the multinomial loss).
        penalize_intercept: Whether the intercept coordinates enter
            the penalty.  Ignored when ``fit_intercept`` is ``False``.
        scale_penalty_with_samples: Multiply λ and γ by the number of
            samples ``n`` at evaluation time.
        n_classes: Number of classes for the multinomial loss.
            ``None`` infers ``max(y)`` from the labels ``1..c``.
    """

    loss: LossKind = LossKind.SQUARED
    lambda_: float = 0.0
    gamma: float = 0.0
    fit_intercept: bool = True
    penalize_intercept: bool = False
    scale_penalty_with_samples: bool = False
    n_classes: int | None = None

    def __post_init__(self) -> None:
        try:
            loss = LossKind(self.loss)
        except ValueError:
            raise ValueError(
                f"Unknown loss {self.loss!r}. "
                f"Choose from: {sorted(k.value for k in LossKind)}"
            ) from None
        # Frozen dataclass: normalise the string form in place.
        object.__setattr__(self, "loss", loss)

        if self.lambda_ < 0:
            raise ValueError(f"lambda_ must be non-negative, got {self.lambda_}.")
        if self.gamma < 0:
            raise ValueError(f"gamma must be non-negative, got {self.gamma}.")
        if self.n_classes is not None:
            if loss is not LossKind.MULTINOMIAL:
                raise ValueError(
                    "n_classes is only meaningful for the multinomial loss."
                )
            if self.n_classes < 2:
                raise ValueError(
                    f"n_classes must be at least 2, got {self.n_classes}."
                )

    # ---- Derived properties ----------------------------------------

    @property
    def penalty(self) -> PenaltyKind:
        return PenaltyKind.ELASTIC_NET if self.gamma > 0 else PenaltyKind.L2

    @property
    def is_multiclass(self) -> bool:
        return self.loss is LossKind.MULTINOMIAL

    def smooth(self) -> GLR:
        """Return the smooth (L2-only) part of this problem."""
        return replace(self, gamma=0.0)

    def l2_scale(self, n_samples: int) -> float:
        """Effective λ, scaled by ``n`` when requested."""
        if self.scale_penalty_with_samples:
            return self.lambda_ * n_samples
        return self.lambda_

    def l1_scale(self, n_samples: int) -> float:
        """Effective γ, scaled by ``n`` when requested."""
        if self.scale_penalty_with_samples:
            return self.gamma * n_samples
        return self.gamma

    def n_coef(self, n_features: int, n_classes: int = 1) -> int:
        """Length of the flat coefficient vector."""
        return (n_features + int(self.fit_intercept)) * max(n_classes, 1)

    # ---- Penalty helpers -------------------------------------------
    #
    # The unpenalized-intercept convention touches every evaluator:
    # the generic ``λθ`` term is added to the whole gradient (and
    # ``λI`` to the whole Hessian) and the intercept coordinates are
    # then corrected.  ``unpenalized_index`` returns the strided slice
    # that selects those coordinates in a flat class-major vector, so
    # the correction is one vectorised statement for both the binary
    # (one block) and multinomial (c blocks) layouts.

    def unpenalized_index(self, n_coef: int, n_classes: int = 1) -> slice | None:
        """Slice of intercept coordinates excluded from the penalty.

        Args:
            n_coef: Length of the flat coefficient vector.
            n_classes: Number of class blocks (1 for binary losses).

        Returns:
            A strided slice into the flat vector, or ``None`` when
            every coordinate is penalized.
        """
        if not self.fit_intercept or self.penalize_intercept:
            return None
        block = n_coef // max(n_classes, 1)
        return slice(block - 1, None, block)

    def penalized_view(self, theta: FloatArray, n_classes: int = 1) -> FloatArray:
        """View of the coordinates of ``θ`` that enter the penalty."""
        if not self.fit_intercept or self.penalize_intercept:
            return theta
        return theta.reshape(max(n_classes, 1), -1)[:, :-1]

    def l2_penalty(self, theta: FloatArray, n_samples: int, n_classes: int = 1) -> float:
        """``λ‖θ‖²/2`` over the penalized coordinates."""
        lam = self.l2_scale(n_samples)
        if lam == 0:
            return 0.0
        view = self.penalized_view(theta, n_classes)
        return float(0.5 * lam * np.vdot(view, view))

    def l1_penalty(self, theta: FloatArray, n_samples: int, n_classes: int = 1) -> float:
        """``γ‖θ‖₁`` over the penalized coordinates."""
        gam = self.l1_scale(n_samples)
        if gam == 0:
            return 0.0
        return float(gam * np.abs(self.penalized_view(theta, n_classes)).sum())


# ------------------------------------------------------------------ #
# Convenience constructors
# ------------------------------------------------------------------ #


def linear_regression(fit_intercept: bool = True) -> GLR:
    """Ordinary least squares: squared loss, no penalty."""
    return GLR(LossKind.SQUARED, lambda_=0.0, fit_intercept=fit_intercept)


def ridge_regression(
    lambda_: float = 1.0,
    *,
    fit_intercept: bool = True,
    penalize_intercept: bool = False,
    scale_penalty_with_samples: bool = False,
) -> GLR:
    """Squared loss with an L2 penalty."""
    return GLR(
        LossKind.SQUARED,
        lambda_=lambda_,
        fit_intercept=fit_intercept,
        penalize_intercept=penalize_intercept,
        scale_penalty_with_samples=scale_penalty_with_samples,
    )


def lasso_regression(
    gamma: float = 1.0,
    *,
    fit_intercept: bool = True,
    penalize_intercept: bool = False,
    scale_penalty_with_samples: bool = False,
) -> GLR:
    """Squared loss with an L1 penalty."""
    return GLR(
        LossKind.SQUARED,
        lambda_=0.0,
        gamma=gamma,
        fit_intercept=fit_intercept,
        penalize_intercept=penalize_intercept,
        scale_penalty_with_samples=scale_penalty_with_samples,
    )


def elastic_net_regression(
    lambda_: float = 1.0,
    gamma: float = 1.0,
    *,
    fit_intercept: bool = True,
    penalize_intercept: bool = False,
    scale_penalty_with_samples: bool = False,
) -> GLR:
    """Squared loss with L1 and L2 penalties."""
    return GLR(
        LossKind.SQUARED,
        lambda_=lambda_,
        gamma=gamma,
        fit_intercept=fit_intercept,
        penalize_intercept=penalize_intercept,
        scale_penalty_with_samples=scale_penalty_with_samples,
    )


def logistic_regression(
    lambda_: float = 1.0,
    gamma: float = 0.0,
    *,
    fit_intercept: bool = True,
    penalize_intercept: bool = False,
    scale_penalty_with_samples: bool = False,
) -> GLR:
    """Binary logistic loss (labels ±1) with L2 or elastic-net penalty."""
    return GLR(
        LossKind.LOGISTIC,
        lambda_=lambda_,
        gamma=gamma,
        fit_intercept=fit_intercept,
        penalize_intercept=penalize_intercept,
        scale_penalty_with_samples=scale_penalty_with_samples,
    )


def multinomial_regression(
    lambda_: float = 1.0,
    gamma: float = 0.0,
    *,
    n_classes: int | None = None,
    fit_intercept: bool = True,
    penalize_intercept: bool = False,
    scale_penalty_with_samples: bool = False,
) -> GLR:
    """Softmax loss over ``c`` classes with L2 or elastic-net penalty."""
    return GLR(
        LossKind.MULTINOMIAL,
        lambda_=lambda_,
        gamma=gamma,
        fit_intercept=fit_intercept,
        penalize_intercept=penalize_intercept,
        scale_penalty_with_samples=scale_penalty_with_samples,
        n_classes=n_classes,
    )


__all__ = [
    "GLR",
    "LossKind",
    "PenaltyKind",
    "elastic_net_regression",
    "lasso_regression",
    "linear_regression",
    "logistic_regression",
    "multinomial_regression",
    "ridge_regression",
]

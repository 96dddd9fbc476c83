"""JAX autodiff backend for loss evaluators.

The NumPy evaluators in :mod:`penalized_glr.losses` carry hand-derived
gradients, Hessians and Hessian-vector products.  This backend derives
all three from the objective alone:

* gradient — ``jax.grad``;
* Hessian — ``jax.hessian``;
* Hessian-vector product — forward-over-reverse,
  ``jax.jvp(jax.grad(f), (θ,), (v,))``, which costs a small constant
  multiple of one gradient evaluation and never forms the Hessian.

It is useful as an independent check on the hand-written kernels and
as a drop-in when XLA compilation pays for itself (large ``n``,
accelerators).

NumPy ↔ JAX boundary convention
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Evaluators accept NumPy coefficient vectors and write NumPy output
buffers, exactly like the NumPy backend.  ``X`` and ``y`` are
converted once at construction; the intercept column **is**
materialised here (JAX has no cheap in-place logical augmentation),
which is one reason this backend is opt-in.

Float64 rationale
~~~~~~~~~~~~~~~~~
``jax_enable_x64`` is switched on at import.  The finite-difference
and ``Hv == H·v`` identities checked against the NumPy path only hold
to ~1e-10 in float64; float32 would put the comparison floor near
1e-4.

Graceful degradation
~~~~~~~~~~~~~~~~~~~~
If JAX is not installed, :class:`JaxBackend` can still be instantiated
(for introspection) but ``is_available`` returns ``False`` and
:func:`~penalized_glr._backends.resolve_backend` raises
``ImportError`` when this backend is requested.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from ..glr import GLR, LossKind
from ..losses import _check_shape

if TYPE_CHECKING:
    from .._scratch import Scratch
    from .._typing import FloatArray

# ------------------------------------------------------------------ #
# Optional JAX import
# ------------------------------------------------------------------ #
#
# If JAX is absent the module loads successfully but the objective
# builders are not defined; ``is_available`` returns ``False`` and
# resolve_backend() gates on that.

try:
    import jax

    jax.config.update("jax_enable_x64", True)

    import jax.numpy as jnp
    from jax import grad, hessian, jit, jvp

    _CAN_IMPORT_JAX = True
except ImportError:
    _CAN_IMPORT_JAX = False


if _CAN_IMPORT_JAX:
    # ============================================================== #
    # Loss terms (no penalty), over the augmented design X̃
    # ============================================================== #

    def _squared_loss(theta: jnp.ndarray, X: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        """½‖y − X̃θ‖²."""
        r = X @ theta - y
        return 0.5 * jnp.dot(r, r)

    def _logistic_loss(theta: jnp.ndarray, X: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        """Σ log(1 + exp(−yᵢ x̃ᵢ'θ)) for labels yᵢ ∈ {±1}."""
        return jnp.sum(jnp.logaddexp(0.0, -y * (X @ theta)))

    def _make_multinomial_loss(c: int) -> Callable[..., Any]:
        """Return the softmax cross-entropy for a class-major flat θ.

        ``jax.nn.log_softmax`` subtracts the row max internally, so
        the value is overflow-safe for arbitrary logits.
        """

        def _multinomial_loss(
            theta: jnp.ndarray,
            X: jnp.ndarray,
            y: jnp.ndarray,
        ) -> jnp.ndarray:
            W = theta.reshape(c, X.shape[1])  # (c, p(+1))
            log_probs = jax.nn.log_softmax(X @ W.T, axis=1)  # (n, c)
            return -jnp.sum(log_probs[jnp.arange(X.shape[0]), y])

        return _multinomial_loss


def _penalty_mask(glr: GLR, n_coef: int, n_classes: int) -> np.ndarray:
    """Ones on penalized coordinates, zeros on exempt intercepts."""
    mask = np.ones(n_coef)
    idx = glr.unpenalized_index(n_coef, n_classes)
    if idx is not None:
        mask[idx] = 0.0
    return mask


# ------------------------------------------------------------------ #
# Evaluator
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class JaxEvaluator:
    """Autodiff implementation of the ``LossEvaluator`` protocol.

    Elastic-net problems are handled the same way as on the NumPy
    path: every derivative is of the smooth (L2) part and
    :meth:`objective` adds ``γ‖θ‖₁``.
    """

    glr: GLR
    X: FloatArray
    y: np.ndarray
    n_classes: int = 0

    _f: Callable[..., Any] = field(init=False, repr=False)
    _g: Callable[..., Any] = field(init=False, repr=False)
    _h: Callable[..., Any] = field(init=False, repr=False)
    _hvp: Callable[..., Any] = field(init=False, repr=False)
    n_coef: int = field(init=False)

    def __post_init__(self) -> None:
        n, p = self.X.shape
        blocks = max(self.n_classes, 1)
        self.n_coef = self.glr.n_coef(p, self.n_classes)

        X_aug = self.X
        if self.glr.fit_intercept:
            X_aug = np.hstack([self.X, np.ones((n, 1), dtype=self.X.dtype)])
        X_j = jnp.asarray(X_aug, dtype=jnp.float64)
        if self.glr.loss is LossKind.MULTINOMIAL:
            y_j = jnp.asarray(self.y, dtype=jnp.int32)
            loss_fn = _make_multinomial_loss(self.n_classes)
        else:
            y_j = jnp.asarray(self.y, dtype=jnp.float64)
            loss_fn = (
                _logistic_loss if self.glr.loss is LossKind.LOGISTIC else _squared_loss
            )

        lam = self.glr.l2_scale(n)
        mask = jnp.asarray(_penalty_mask(self.glr, self.n_coef, blocks))

        def _smooth(theta: jnp.ndarray) -> jnp.ndarray:
            pen = theta * mask
            return loss_fn(theta, X_j, y_j) + 0.5 * lam * jnp.dot(pen, pen)

        grad_fn = grad(_smooth)
        self._f = jit(_smooth)
        self._g = jit(grad_fn)
        self._h = jit(hessian(_smooth))
        self._hvp = jit(lambda theta, v: jvp(grad_fn, (theta,), (v,))[1])

    def _to_jax(self, name: str, arr: FloatArray) -> jnp.ndarray:
        _check_shape(name, arr, (self.n_coef,))
        return jnp.asarray(arr, dtype=jnp.float64)

    def value_gradient_hessian(
        self,
        theta: FloatArray,
        g: FloatArray | None = None,
        H: FloatArray | None = None,
        *,
        value: bool = True,
    ) -> float | None:
        d = self.n_coef
        theta_j = self._to_jax("theta", theta)
        if g is not None:
            _check_shape("g", g, (d,))
            g[...] = np.asarray(self._g(theta_j))
        if H is not None:
            _check_shape("H", H, (d, d))
            H[...] = np.asarray(self._h(theta_j))
        if value:
            return float(self._f(theta_j))
        return None

    def hessian_vector_product(
        self,
        Hv: FloatArray,
        theta: FloatArray,
        v: FloatArray,
    ) -> None:
        _check_shape("Hv", Hv, (self.n_coef,))
        Hv[...] = np.asarray(self._hvp(self._to_jax("theta", theta), self._to_jax("v", v)))

    def smooth_value_gradient(self, g: FloatArray, theta: FloatArray) -> float:
        f = self.value_gradient_hessian(theta, g)
        assert f is not None
        return f

    def objective(self, theta: FloatArray) -> float:
        f = self.value_gradient_hessian(theta)
        assert f is not None
        n = self.X.shape[0]
        return f + self.glr.l1_penalty(theta, n, max(self.n_classes, 1))


# ------------------------------------------------------------------ #
# JaxBackend
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class JaxBackend:
    """JAX autodiff compute backend.

    The frozen dataclass has no mutable state — every evaluator it
    builds owns its own compiled closures.
    """

    @property
    def name(self) -> str:
        return "jax"

    @property
    def is_available(self) -> bool:  # noqa: PLR6301
        return _CAN_IMPORT_JAX

    def make_evaluator(  # noqa: PLR6301
        self,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
        scratch: Scratch,
    ) -> JaxEvaluator:
        # The scratch only contributes the resolved class count;
        # JAX manages its own device buffers.
        return JaxEvaluator(glr, X, y, n_classes=scratch.n_classes)

"""Scratch workspace — preallocated buffers reused across evaluations.

An iterative solver calls the objective, gradient, Hessian or
Hessian-vector product dozens to hundreds of times on the same
``(X, y)``.  Every one of those calls needs the same handful of
temporaries (``Xθ``, the sigmoid/softmax weights, an ``n × c`` logit
matrix, …).  A :class:`Scratch` allocates them once, sized to the
problem, and the evaluators write into them instead of allocating.

Lifecycle::

    ┌──────────────────────────────────────────────────┐
    │  fit(glr, X, y)                                  │
    │  ├─ scratch = allocate_scratch(X, …)             │
    │  ├─ evaluator = resolve_evaluator(…, scratch)    │
    │  ├─ solver loop                                  │
    │  │   ├─ evaluator.value_gradient_hessian(…)      │
    │  │   │   └─ writes scratch.n, scratch.n2, …      │
    │  │   └─ evaluator.hessian_vector_product(…)      │
    │  │       └─ overwrites the same buffers          │
    │  └─ return θ   (scratch goes out of scope)       │
    └──────────────────────────────────────────────────┘

Contract
~~~~~~~~
* A scratch belongs to exactly one in-flight fit.  It is not
  thread-safe; two concurrent fits need two scratches.
* No evaluator may read a buffer it has not fully written during the
  same call.  Contents left behind by a previous call are garbage.
* Buffers share X's floating dtype so that no evaluator silently
  upcasts.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ._typing import FloatArray


@dataclass(eq=False)
class Scratch:
    """Bundle of reusable buffers keyed by shape class.

    Sections
    --------
    **Shape** — ``n`` samples, ``p`` features, ``c`` classes and the
    intercept flag the buffers were sized for.

    **Size-n** — three length-``n`` vectors.

    **Size-p** — one length-``p(+1)`` vector.

    **Size-n×c / c×p** — multinomial buffers; ``None`` when ``c = 0``.
    """

    # ---- Shape ---------------------------------------------------
    n_samples: int
    n_features: int
    n_classes: int
    fit_intercept: bool
    dtype: np.dtype = field(default_factory=lambda: np.dtype(np.float64))

    # ---- Size-n --------------------------------------------------
    n: FloatArray = field(init=False, repr=False)
    n2: FloatArray = field(init=False, repr=False)
    n3: FloatArray = field(init=False, repr=False)

    # ---- Size-p --------------------------------------------------
    p: FloatArray = field(init=False, repr=False)
    """Length ``p + 1`` when an intercept is fit, ``p`` otherwise."""

    # ---- Size-n×c / c×p ------------------------------------------
    nc: FloatArray | None = field(init=False, default=None, repr=False)
    nc2: FloatArray | None = field(init=False, default=None, repr=False)
    nc3: FloatArray | None = field(init=False, default=None, repr=False)
    nc4: FloatArray | None = field(init=False, default=None, repr=False)
    pc: FloatArray | None = field(init=False, default=None, repr=False)
    """Class-major ``(c, p(+1))`` gradient block."""

    def __post_init__(self) -> None:
        self.dtype = np.dtype(self.dtype)
        n, p_aug, c = self.npc()
        self.n = np.empty(n, dtype=self.dtype)
        self.n2 = np.empty(n, dtype=self.dtype)
        self.n3 = np.empty(n, dtype=self.dtype)
        self.p = np.empty(p_aug, dtype=self.dtype)
        if c > 0:
            self.nc = np.empty((n, c), dtype=self.dtype)
            self.nc2 = np.empty((n, c), dtype=self.dtype)
            self.nc3 = np.empty((n, c), dtype=self.dtype)
            self.nc4 = np.empty((n, c), dtype=self.dtype)
            self.pc = np.empty((c, p_aug), dtype=self.dtype)

    def npc(self) -> tuple[int, int, int]:
        """Return ``(n, p(+1), c)`` — the augmented problem dimensions."""
        return (
            self.n_samples,
            self.n_features + int(self.fit_intercept),
            self.n_classes,
        )

    def fits(self, X: FloatArray, n_classes: int, fit_intercept: bool) -> bool:
        """Whether this scratch was sized for *X* and the given layout."""
        return (
            X.shape == (self.n_samples, self.n_features)
            and n_classes == self.n_classes
            and fit_intercept == self.fit_intercept
            and X.dtype == self.dtype
        )


def allocate_scratch(
    X: FloatArray,
    fit_intercept: bool = True,
    n_classes: int = 0,
) -> Scratch:
    """Allocate a :class:`Scratch` sized for *X*.

    Args:
        X: Design matrix ``(n, p)``; its dtype is reused.
        fit_intercept: Whether coefficient vectors carry an intercept.
        n_classes: Number of classes for multinomial problems; ``0``
            skips the ``n × c`` buffers.

    Returns:
        A freshly allocated scratch.
    """
    n, p = X.shape
    return Scratch(
        n_samples=n,
        n_features=p,
        n_classes=n_classes,
        fit_intercept=fit_intercept,
        dtype=X.dtype,
    )


__all__ = ["Scratch", "allocate_scratch"]

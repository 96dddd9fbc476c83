"""NumPy / SciPy backend (always available, the default).

The evaluators themselves live in :mod:`penalized_glr.losses`; this
backend only looks up the loss × penalty cell in the registry and
instantiates it over the shared scratch workspace.

The NumPy evaluators are the reference implementation: hand-derived
gradients, Hessians and Hessian-vector products, a logical (never
materialised) intercept column, and zero per-call allocation beyond
``p``-sized temporaries and the dense Hessian itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .._scratch import Scratch
    from .._typing import FloatArray
    from ..glr import GLR
    from ..losses import LossEvaluator


@dataclass(frozen=True)
class NumpyBackend:
    """NumPy compute backend.

    The class is a frozen dataclass with no instance state — it exists
    solely to namespace ``make_evaluator`` behind the
    :class:`BackendProtocol` interface.  Frozen = immutable = safe to
    cache in the module-level ``_BACKEND_CACHE`` singleton.
    """

    @property
    def name(self) -> str:
        return "numpy"

    @property
    def is_available(self) -> bool:  # noqa: PLR6301
        return True

    def make_evaluator(  # noqa: PLR6301
        self,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
        scratch: Scratch,
    ) -> LossEvaluator:
        from ..losses import lookup_evaluator

        cls = lookup_evaluator(glr.loss, glr.penalty)
        evaluator: LossEvaluator = cls(glr, X, y, scratch)
        return evaluator

"""Backend abstraction layer for loss evaluators.

Each backend implements the :class:`BackendProtocol` interface, whose
single factory method turns a problem ``(glr, X, y, scratch)`` into an
object satisfying :class:`~penalized_glr.losses.LossEvaluator`.
:func:`~penalized_glr.losses.resolve_evaluator` dispatches through
:func:`resolve_backend` rather than testing the backend name at every
call site.

Resolution follows the policy set by :mod:`._config`:

1. Programmatic override via :func:`~penalized_glr.set_backend`.
2. ``PENALIZED_GLR_BACKEND`` environment variable.
3. ``"numpy"``.

When ``"jax"`` is requested but JAX is not installed, an
:class:`ImportError` is raised — explicit requests are never silently
degraded to NumPy.

Adding a new backend (e.g. CuPy) requires:

1. A new module ``_backends/_cupy.py`` with a class implementing
   :class:`BackendProtocol`.
2. A branch in :func:`resolve_backend` mapping ``"cupy"`` to the new
   class.
3. Adding ``"cupy"`` to ``_VALID_BACKENDS`` in :mod:`._config`.

No changes to ``losses.py`` or ``solvers.py`` are needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from .._config import get_backend

if TYPE_CHECKING:
    from .._scratch import Scratch
    from .._typing import FloatArray
    from ..glr import GLR
    from ..losses import LossEvaluator

# ------------------------------------------------------------------ #
# BackendProtocol
# ------------------------------------------------------------------ #


@runtime_checkable
class BackendProtocol(Protocol):
    """Interface that every compute backend must implement.

    Attributes:
        name: Short identifier (e.g. ``"numpy"``, ``"jax"``).
    """

    @property
    def name(self) -> str: ...

    @property
    def is_available(self) -> bool:
        """Whether the backend's dependencies are importable."""
        ...

    def make_evaluator(
        self,
        glr: GLR,
        X: FloatArray,
        y: np.ndarray,
        scratch: Scratch,
    ) -> LossEvaluator:
        """Build the evaluator for *glr* over validated ``(X, y)``.

        Args:
            glr: Problem specification.
            X: Design matrix ``(n, p)`` — no intercept column.
            y: Response already validated by
                :func:`~penalized_glr.losses.check_inputs`.
            scratch: Workspace sized for ``(X, glr)``.  Backends that
                do not reuse buffers may ignore it.

        Returns:
            An object implementing the ``LossEvaluator`` protocol.
        """
        ...


# ------------------------------------------------------------------ #
# Backend resolution
# ------------------------------------------------------------------ #

# Singleton cache, one instance per backend name.
_BACKEND_CACHE: dict[str, BackendProtocol] = {}


def resolve_backend(name: str | None = None) -> BackendProtocol:
    """Return a :class:`BackendProtocol` instance for *name*.

    When *name* is ``None`` (the default), the policy from
    :func:`~penalized_glr._config.get_backend` is used.

    Args:
        name: ``"numpy"``, ``"jax"``, or ``None`` / ``"auto"`` for the
            policy default.

    Returns:
        A backend instance.

    Raises:
        ImportError: If ``"jax"`` is requested but JAX is not
            installed.
        ValueError: If *name* is not a recognised backend.
    """
    if name is None or name.strip().lower() == "auto":
        name = get_backend()
    name = name.strip().lower()

    if name in _BACKEND_CACHE:
        return _BACKEND_CACHE[name]

    if name == "numpy":
        from ._numpy import NumpyBackend

        backend: BackendProtocol = NumpyBackend()

    elif name == "jax":
        from ._jax import JaxBackend

        jax_backend = JaxBackend()
        if not jax_backend.is_available:
            msg = (
                "Backend 'jax' was explicitly requested but JAX is "
                "not installed.  Install JAX (`pip install jax`) or "
                "use set_backend('numpy')."
            )
            raise ImportError(msg)
        backend = jax_backend

    else:
        msg = f"Unknown backend {name!r}.  Choose 'numpy' or 'jax'."
        raise ValueError(msg)

    _BACKEND_CACHE[name] = backend
    return backend

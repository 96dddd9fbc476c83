"""Backend configuration for the penalized_glr package.

Controls whether loss evaluators are the hand-derived NumPy kernels
(scratch-buffer based, the default) or the JAX autodiff versions.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_backend`.
    2. The ``PENALIZED_GLR_BACKEND`` environment variable.
    3. ``"numpy"``.

Valid backend names are ``"jax"`` and ``"numpy"`` (case-insensitive).
Unlike the NumPy path, the JAX path is never chosen implicitly: its
evaluators materialise the intercept-augmented design and allocate on
every call, so it is opt-in.

Examples:
    Select JAX from the shell::

        export PENALIZED_GLR_BACKEND=jax

    Select JAX programmatically::

        import penalized_glr
        penalized_glr.set_backend("jax")

    Restore the default resolution::

        penalized_glr.set_backend("auto")
"""

from __future__ import annotations

import os

_VALID_BACKENDS = {"jax", "numpy", "auto"}

_ENV_VAR = "PENALIZED_GLR_BACKEND"

# Sentinel indicating "no programmatic override has been set".
_backend_override: str | None = None


def get_backend() -> str:
    """Return the active backend name (``"jax"`` or ``"numpy"``).

    Resolution order:
        1. Value set by :func:`set_backend` (unless ``"auto"``).
        2. ``PENALIZED_GLR_BACKEND`` environment variable.
        3. ``"numpy"``.

    Returns:
        ``"jax"`` or ``"numpy"``.
    """
    # 1. Programmatic override
    if _backend_override is not None and _backend_override != "auto":
        return _backend_override

    # 2. Environment variable
    env = os.environ.get(_ENV_VAR, "").strip().lower()
    if env in ("jax", "numpy"):
        return env

    # 3. Default
    return "numpy"


def set_backend(name: str) -> None:
    """Override the backend selection.

    Args:
        name: One of ``"jax"``, ``"numpy"``, or ``"auto"``
            (case-insensitive).  ``"auto"`` restores the default
            resolution order.

    Raises:
        ValueError: If *name* is not a recognised backend.
    """
    global _backend_override
    normalised = name.strip().lower()
    if normalised not in _VALID_BACKENDS:
        raise ValueError(
            f"Unknown backend '{name}'. Choose from: {sorted(_VALID_BACKENDS)}"
        )
    _backend_override = normalised

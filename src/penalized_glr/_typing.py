"""Shared type aliases for the penalized_glr package."""

from typing import Any

import numpy as np
import numpy.typing as npt

# Dense floating arrays: design matrices, coefficients, buffers.
FloatArray = npt.NDArray[np.floating[Any]]

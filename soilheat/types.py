"""Typing definitions for soilheat."""

from typing import Callable, TypeVar

import numpy as np

ArrayFloat32 = np.ndarray[tuple[int], np.dtype[np.float32]]
ArrayFloat64 = np.ndarray[tuple[int], np.dtype[np.float64]]
ArrayFloat = ArrayFloat32 | ArrayFloat64

State = TypeVar("State")

# Residual function for the root finder: (evaluation point, state) -> (state, residual)
ResidualFunction = Callable[[float, State], tuple[State, float]]

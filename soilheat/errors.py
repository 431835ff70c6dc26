"""Custom exceptions for the :mod:`soilheat` package."""

from __future__ import annotations


class SoilHeatError(Exception):
    """Base exception for soil heat conduction errors."""


class InvalidInputError(SoilHeatError, ValueError):
    """Input arrays or parameters violate a precondition of a solver."""


class BracketError(SoilHeatError, ValueError):
    """The interval given to the root finder does not bracket a root."""


class ConvergenceError(SoilHeatError, RuntimeError):
    """An iterative solver exceeded its maximum number of iterations."""


class BalanceError(SoilHeatError, AssertionError):
    """A conservation check (energy or mass) failed."""


class EnergyConservationError(BalanceError):
    """The change in soil heat storage does not match the boundary and phase change fluxes."""


__all__ = [
    "SoilHeatError",
    "InvalidInputError",
    "BracketError",
    "ConvergenceError",
    "BalanceError",
    "EnergyConservationError",
]

"""Vertical discretization and state of a soil column."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from soilheat.errors import InvalidInputError
from soilheat.types import ArrayFloat64


@dataclass
class SoilColumn:
    """Layered soil column.

    Depths are negative below the surface, which is at 0. Layer i extends from
    `z_plus_onehalf[i-1]` (0 for the top layer) down to `z_plus_onehalf[i]`.

    Attributes:
        z: Depth of the layer centers (m).
        z_plus_onehalf: Depth of the interface below each layer (m).
        dz: Layer thickness (m).
        dz_plus_onehalf: Distance between the centers of layer i and i+1 (m).
            The last entry is half the thickness of the bottom layer.
        tk: Thermal conductivity (W/m/K).
        cv: Volumetric heat capacity (J/m3/K).
        tsoi: Soil temperature (K).
        h2osoi_liq: Unfrozen water, liquid (kg H2O/m2).
        h2osoi_ice: Frozen water, ice (kg H2O/m2).
    """

    z: ArrayFloat64
    z_plus_onehalf: ArrayFloat64
    dz: ArrayFloat64
    dz_plus_onehalf: ArrayFloat64
    tk: ArrayFloat64
    cv: ArrayFloat64
    tsoi: ArrayFloat64
    h2osoi_liq: ArrayFloat64 = field(default_factory=lambda: np.zeros(0))
    h2osoi_ice: ArrayFloat64 = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self) -> None:
        """Store every array as float64 and default the water masses to zero."""
        for name in (
            "z",
            "z_plus_onehalf",
            "dz",
            "dz_plus_onehalf",
            "tk",
            "cv",
            "tsoi",
            "h2osoi_liq",
            "h2osoi_ice",
        ):
            setattr(self, name, np.array(getattr(self, name), dtype=np.float64))
        if self.h2osoi_liq.size == 0:
            self.h2osoi_liq = np.zeros_like(self.tsoi)
        if self.h2osoi_ice.size == 0:
            self.h2osoi_ice = np.zeros_like(self.tsoi)

    @property
    def n(self) -> int:
        """Number of soil layers."""
        return len(self.tsoi)

    @property
    def water_mass(self) -> ArrayFloat64:
        """Total soil water, liquid and ice (kg H2O/m2)."""
        return self.h2osoi_liq + self.h2osoi_ice


@dataclass(frozen=True)
class SnowMeltState:
    """Snow coupling of the top soil layer.

    Attributes:
        snow_water: Snow water (kg H2O/m2). Read by the soil solver.
        snow_melt: Snow melt (kg H2O/m2/s). Set by the soil solver.
        gsno: Snow melt energy flux (W/m2). Set by the soil solver.
    """

    snow_water: float = 0.0
    snow_melt: float = 0.0
    gsno: float = 0.0


def build_soil_column(
    dz: ArrayFloat64 | list[float],
    tsoi: ArrayFloat64 | list[float] | float,
    tk: ArrayFloat64 | list[float] | float | None = None,
    cv: ArrayFloat64 | list[float] | float | None = None,
    h2osoi_liq: ArrayFloat64 | list[float] | float | None = None,
    h2osoi_ice: ArrayFloat64 | list[float] | float | None = None,
) -> SoilColumn:
    """Build a soil column from layer thicknesses.

    Interfaces are stacked downward from the surface and layer centers are
    placed halfway between their interfaces.

    Args:
        dz: Layer thickness (m).
        tsoi: Soil temperature (K), per layer or one value for all layers.
        tk: Thermal conductivity (W/m/K). Defaults to zero, to be filled in by
            the thermal property parameterization.
        cv: Heat capacity (J/m3/K). Defaults to zero, see `tk`.
        h2osoi_liq: Liquid water (kg H2O/m2). Defaults to zero.
        h2osoi_ice: Ice (kg H2O/m2). Defaults to zero.

    Returns:
        The soil column.

    Raises:
        InvalidInputError: If `dz` is empty or not strictly positive.
    """
    dz = np.asarray(dz, dtype=np.float64)
    if dz.ndim != 1 or dz.size == 0:
        raise InvalidInputError("dz must be a non-empty one-dimensional array.")
    if not np.all(dz > 0):
        raise InvalidInputError("Layer thicknesses dz must be strictly positive.")

    n = dz.size

    z_plus_onehalf = -np.cumsum(dz)
    z_top_interfaces = np.concatenate(([0.0], z_plus_onehalf[:-1]))
    z = 0.5 * (z_top_interfaces + z_plus_onehalf)

    dz_plus_onehalf = np.empty(n, dtype=np.float64)
    dz_plus_onehalf[:-1] = z[:-1] - z[1:]
    dz_plus_onehalf[-1] = 0.5 * dz[-1]

    def per_layer(value: ArrayFloat64 | list[float] | float | None) -> ArrayFloat64:
        if value is None:
            return np.zeros(n, dtype=np.float64)
        return np.broadcast_to(np.asarray(value, dtype=np.float64), (n,)).copy()

    return SoilColumn(
        z=z,
        z_plus_onehalf=z_plus_onehalf,
        dz=dz.copy(),
        dz_plus_onehalf=dz_plus_onehalf,
        tk=per_layer(tk),
        cv=per_layer(cv),
        tsoi=per_layer(tsoi),
        h2osoi_liq=per_layer(h2osoi_liq),
        h2osoi_ice=per_layer(h2osoi_ice),
    )


def validate_soil_column(column: SoilColumn, dt: float) -> None:
    """Check that a soil column and time step can be given to the soil solvers.

    Args:
        column: The soil column.
        dt: Time step (s).

    Raises:
        InvalidInputError: If any precondition is violated.
    """
    if not dt > 0:
        raise InvalidInputError(f"Time step must be positive, got {dt}.")

    # Properties are refreshed by external code, possibly as lists or float32
    column.tsoi = np.asarray(column.tsoi, dtype=np.float64)
    if column.tsoi.ndim != 1 or column.n < 2:
        raise InvalidInputError(
            f"At least two soil layers are needed, got tsoi with shape {column.tsoi.shape}."
        )
    n = column.n

    for name in (
        "z",
        "z_plus_onehalf",
        "dz",
        "dz_plus_onehalf",
        "tk",
        "cv",
        "h2osoi_liq",
        "h2osoi_ice",
    ):
        array = np.asarray(getattr(column, name), dtype=np.float64)
        setattr(column, name, array)
        if array.shape != (n,):
            raise InvalidInputError(
                f"{name} has shape {array.shape}, expected ({n},) to match tsoi."
            )
        if not np.all(np.isfinite(array)):
            raise InvalidInputError(f"{name} contains non-finite values.")

    if not np.all(np.isfinite(column.tsoi)):
        raise InvalidInputError("tsoi contains non-finite values.")

    for name in ("dz", "dz_plus_onehalf", "tk", "cv"):
        if not np.all(getattr(column, name) > 0):
            raise InvalidInputError(f"{name} must be strictly positive.")

    if np.any(column.h2osoi_liq < 0) or np.any(column.h2osoi_ice < 0):
        raise InvalidInputError("Soil water and ice must not be negative.")

    if not column.z[0] < 0:
        raise InvalidInputError("The top layer center must lie below the surface.")
    if not (np.all(np.diff(column.z) < 0) and np.all(np.diff(column.z_plus_onehalf) < 0)):
        raise InvalidInputError("Soil depths must decrease strictly with layer index.")

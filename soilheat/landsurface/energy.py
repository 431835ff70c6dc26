r"""Soil heat conduction.

Soil temperatures at time n+1 follow from the heat diffusion equation

$$ c_v \frac{\partial T}{\partial t} = \frac{\partial}{\partial z}\left(k \frac{\partial T}{\partial z}\right) $$

discretized over the layers of a `SoilColumn` into a tridiagonal system.
Two surface boundary conditions are supported: a known surface temperature
(`soil_temperature`) and a surface energy flux that is linear in the
temperature of the top layer (`soil_temperature_flux`). The bottom of the
column is insulated.
"""

import logging
from dataclasses import replace

import numpy as np
from numba import njit

from soilheat.errors import EnergyConservationError, InvalidInputError
from soilheat.types import ArrayFloat64
from soilheat.workflows import balance_check
from soilheat.workflows.algebra import tdma_solver

from .column import SnowMeltState, SoilColumn, validate_soil_column
from .constants import (
    APPARENT_HEAT_CAPACITY,
    CRANK_NICOLSON,
    ENERGY_TOLERANCE_W_PER_M2,
    EXCESS_HEAT,
    HFUS_J_PER_KG,
    IMPLICIT,
    PHASE_CHANGE_METHODS,
    SOLUTIONS,
    TFRZ_K,
)
from .phase_change import phase_change

logger: logging.Logger = logging.getLogger(__name__)


@njit(cache=True)
def interface_thermal_conductivity(
    tk: ArrayFloat64,
    z: ArrayFloat64,
    z_plus_onehalf: ArrayFloat64,
) -> ArrayFloat64:
    """Calculate the thermal conductivity at the interfaces between layers [W/(m·K)].

    Harmonic mean of the conductivities of the two adjacent layers, weighted
    by the distance from each layer center to the interface (Eq. 5.16).

    Args:
        tk: Thermal conductivity of each layer (W/m/K).
        z: Depth of the layer centers (m).
        z_plus_onehalf: Depth of the interface below each layer (m).

    Returns:
        Conductivity at the n-1 interior interfaces (W/m/K).
    """
    n = len(tk)
    tk_plus_onehalf = np.empty(n - 1, dtype=np.float64)
    for i in range(n - 1):
        tk_plus_onehalf[i] = (
            tk[i]
            * tk[i + 1]
            * (z[i] - z[i + 1])
            / (
                tk[i] * (z_plus_onehalf[i] - z[i + 1])
                + tk[i + 1] * (z[i] - z_plus_onehalf[i])
            )
        )
    return tk_plus_onehalf


@njit(cache=True)
def assemble_soil_temperature_system(
    tsoi0: ArrayFloat64,
    tk: ArrayFloat64,
    tk_plus_onehalf: ArrayFloat64,
    cv: ArrayFloat64,
    dz: ArrayFloat64,
    z: ArrayFloat64,
    dz_plus_onehalf: ArrayFloat64,
    tsurf: float,
    dt: float,
    crank_nicolson: bool,
) -> tuple[ArrayFloat64, ArrayFloat64, ArrayFloat64, ArrayFloat64]:
    """Build the tridiagonal system for temperature with the surface temperature as boundary.

    Row i reads a[i] * T[i-1] + b[i] * T[i] + c[i] * T[i+1] = d[i] for the
    temperatures at time n+1. The surface temperature enters the top row
    through the conductance between the surface and the top layer center. The
    bottom layer has no flux below.

    With Crank-Nicolson the fluxes between layers are averaged between time n
    and time n+1: off-diagonal coefficients are halved and the right hand side
    carries half of the flux divergence at time n.

    Args:
        tsoi0: Soil temperature at time n (K).
        tk: Thermal conductivity (W/m/K).
        tk_plus_onehalf: Thermal conductivity at the interfaces (W/m/K).
        cv: Heat capacity (J/m3/K).
        dz: Layer thickness (m).
        z: Depth of the layer centers (m).
        dz_plus_onehalf: Distance between layer centers (m).
        tsurf: Surface temperature (K).
        dt: Time step (s).
        crank_nicolson: Use Crank-Nicolson instead of the fully implicit scheme.

    Returns:
        Tuple of (a, b, c, d) - tridiagonal system components.
    """
    n = len(tsoi0)

    a = np.zeros(n, dtype=np.float64)
    b = np.zeros(n, dtype=np.float64)
    c = np.zeros(n, dtype=np.float64)
    d = np.zeros(n, dtype=np.float64)

    weight = 0.5 if crank_nicolson else 1.0

    # Heat flux at time n (W/m2), only used by Crank-Nicolson
    f = np.zeros(n, dtype=np.float64)
    if crank_nicolson:
        for i in range(n - 1):
            f[i] = -tk_plus_onehalf[i] * (tsoi0[i] - tsoi0[i + 1]) / dz_plus_onehalf[i]

    surface_conductance = tk[0] / (0.0 - z[0])

    for i in range(n):
        m = cv[i] * dz[i] / dt
        if i == 0:
            a[i] = 0.0
            c[i] = -weight * tk_plus_onehalf[i] / dz_plus_onehalf[i]
            b[i] = m - c[i] + surface_conductance
            d[i] = m * tsoi0[i] + surface_conductance * tsurf
            if crank_nicolson:
                d[i] += 0.5 * f[i]
        elif i < n - 1:
            a[i] = -weight * tk_plus_onehalf[i - 1] / dz_plus_onehalf[i - 1]
            c[i] = -weight * tk_plus_onehalf[i] / dz_plus_onehalf[i]
            b[i] = m - a[i] - c[i]
            d[i] = m * tsoi0[i]
            if crank_nicolson:
                d[i] += 0.5 * (f[i] - f[i - 1])
        else:
            a[i] = -weight * tk_plus_onehalf[i - 1] / dz_plus_onehalf[i - 1]
            c[i] = 0.0
            b[i] = m - a[i]
            d[i] = m * tsoi0[i]
            if crank_nicolson:
                d[i] -= 0.5 * f[i - 1]

    return a, b, c, d


@njit(cache=True)
def solve_soil_temperature_increment(
    tsoi0: ArrayFloat64,
    tk_plus_onehalf: ArrayFloat64,
    cv: ArrayFloat64,
    dz: ArrayFloat64,
    dz_plus_onehalf: ArrayFloat64,
    f0: float,
    df0: float,
    dt: float,
    snow_water: float,
    tfrz: float,
    hfus: float,
) -> tuple[ArrayFloat64, float, float]:
    r"""Solve for the temperature change with a linearized surface energy flux.

    The energy flux into the soil is linear in the temperature of the top
    layer,

    $$ G = f_0 + \frac{df_0}{dT} (T_1^{n+1} - T_1^n) $$

    and the system is written in terms of the increment
    $\Delta T = T^{n+1} - T^n$. The elimination runs upward from the bottom
    layer so that the top layer is solved last. If the top layer would warm
    above freezing while snow is present, the excess energy melts snow, up to
    the snow that is available. The remaining layers are then solved by
    substitution downward.

    Args:
        tsoi0: Soil temperature at time n (K).
        tk_plus_onehalf: Thermal conductivity at the interfaces (W/m/K).
        cv: Heat capacity (J/m3/K).
        dz: Layer thickness (m).
        dz_plus_onehalf: Distance between layer centers (m).
        f0: Energy flux into the soil at time n (W/m2).
        df0: Temperature derivative of f0 (W/m2/K).
        dt: Time step (s).
        snow_water: Snow water (kg H2O/m2).
        tfrz: Freezing point of water (K).
        hfus: Heat of fusion (J/kg).

    Returns:
        Tuple of:
            - Soil temperature at time n+1 (K).
            - Snow melt (kg H2O/m2/s).
            - Snow melt energy flux (W/m2).
    """
    n = len(tsoi0)

    a = np.zeros(n, dtype=np.float64)
    b = np.zeros(n, dtype=np.float64)
    c = np.zeros(n, dtype=np.float64)
    d = np.zeros(n, dtype=np.float64)

    for i in range(n):
        m = cv[i] * dz[i] / dt
        if i == 0:
            a[i] = 0.0
            c[i] = -tk_plus_onehalf[i] / dz_plus_onehalf[i]
            b[i] = m - c[i] - df0
            d[i] = (
                -tk_plus_onehalf[i] * (tsoi0[i] - tsoi0[i + 1]) / dz_plus_onehalf[i]
                + f0
            )
        elif i < n - 1:
            a[i] = -tk_plus_onehalf[i - 1] / dz_plus_onehalf[i - 1]
            c[i] = -tk_plus_onehalf[i] / dz_plus_onehalf[i]
            b[i] = m - a[i] - c[i]
            d[i] = (
                tk_plus_onehalf[i - 1]
                * (tsoi0[i - 1] - tsoi0[i])
                / dz_plus_onehalf[i - 1]
                - tk_plus_onehalf[i] * (tsoi0[i] - tsoi0[i + 1]) / dz_plus_onehalf[i]
            )
        else:
            a[i] = -tk_plus_onehalf[i - 1] / dz_plus_onehalf[i - 1]
            c[i] = 0.0
            b[i] = m - a[i]
            d[i] = (
                tk_plus_onehalf[i - 1]
                * (tsoi0[i - 1] - tsoi0[i])
                / dz_plus_onehalf[i - 1]
            )

    # Elimination from the bottom layer upward: dT[i] = f[i] - e[i] * dT[i-1]
    e = np.zeros(n, dtype=np.float64)
    f = np.zeros(n, dtype=np.float64)
    e[n - 1] = a[n - 1] / b[n - 1]
    f[n - 1] = d[n - 1] / b[n - 1]
    for i in range(n - 2, 0, -1):
        den = b[i] - c[i] * e[i + 1]
        e[i] = a[i] / den
        f[i] = (d[i] - c[i] * f[i + 1]) / den

    # Top layer
    num = d[0] - c[0] * f[1]
    den = b[0] - c[0] * e[1]
    tsoi_test = tsoi0[0] + num / den

    # Melt driven by the temperature excess above freezing, limited to the snow present
    potential_snow_melt = max(0.0, (tsoi_test - tfrz) * den / hfus)
    maximum_snow_melt = snow_water / dt
    snow_melt = min(maximum_snow_melt, potential_snow_melt)
    gsno = snow_melt * hfus

    # Without melt the top layer reaches tsoi_test. While snow melts at the
    # potential rate it stays at freezing.
    dtsoi = np.zeros(n, dtype=np.float64)
    dtsoi[0] = (num - gsno) / den
    for i in range(1, n):
        dtsoi[i] = f[i] - e[i] * dtsoi[i - 1]

    return tsoi0 + dtsoi, snow_melt, gsno


def _validate_scalars(tfrz: float, hfus: float, **boundary: float) -> None:
    """Reject non-finite boundary values and non-positive physical constants."""
    for name, value in boundary.items():
        if not np.isfinite(value):
            raise InvalidInputError(f"{name} must be finite, got {value}.")
    for name, value in (("tfrz", tfrz), ("hfus", hfus)):
        if not (np.isfinite(value) and value > 0):
            raise InvalidInputError(f"{name} must be positive and finite, got {value}.")


def soil_temperature(
    column: SoilColumn,
    tsurf: float,
    dt: float,
    solution: str = IMPLICIT,
    method: str = APPARENT_HEAT_CAPACITY,
    tfrz: float = TFRZ_K,
    hfus: float = HFUS_J_PER_KG,
    tolerance: float = ENERGY_TOLERANCE_W_PER_M2,
    raise_on_error: bool = True,
) -> tuple[float, float]:
    """Solve for soil temperatures at time n+1 with the surface temperature as boundary condition.

    The column's `tsoi` is replaced by the new temperatures. With the excess
    heat method, layers crossing the freezing point are set back to freezing
    and `h2osoi_liq` and `h2osoi_ice` are updated. With the apparent heat
    capacity method, latent heat is part of `cv` and no water changes phase.

    After the solve, the change in heat storage of the column must equal the
    energy flux into the soil plus the phase change energy flux.

    Args:
        column: The soil column. Thermal properties must be current.
        tsurf: Surface temperature (K).
        dt: Time step (s).
        solution: "implicit" or "Crank-Nicolson".
        method: "apparent-heat-capacity" or "excess-heat".
        tfrz: Freezing point of water (K).
        hfus: Heat of fusion (J/kg).
        tolerance: Tolerance of the energy conservation check (W/m2).
        raise_on_error: Raise when energy is not conserved. If False, the
            imbalance is only logged.

    Returns:
        Tuple of:
            - Energy flux into the soil (W/m2).
            - Soil phase change energy flux (W/m2).

    Raises:
        InvalidInputError: If the column, time step, surface temperature, solution,
            method or physical constants are invalid.
        EnergyConservationError: If energy is not conserved and raise_on_error is True. The
            column is then left at its time n state.
    """
    if solution not in SOLUTIONS:
        raise InvalidInputError(
            f"Unknown solution '{solution}', expected one of {SOLUTIONS}."
        )
    if method not in PHASE_CHANGE_METHODS:
        raise InvalidInputError(
            f"Unknown phase change method '{method}', expected one of {PHASE_CHANGE_METHODS}."
        )
    validate_soil_column(column, dt)
    _validate_scalars(tfrz, hfus, tsurf=tsurf)

    tsoi0 = column.tsoi.copy()

    tk_plus_onehalf = interface_thermal_conductivity(
        column.tk, column.z, column.z_plus_onehalf
    )
    a, b, c, d = assemble_soil_temperature_system(
        tsoi0,
        column.tk,
        tk_plus_onehalf,
        column.cv,
        column.dz,
        column.z,
        column.dz_plus_onehalf,
        float(tsurf),
        float(dt),
        solution == CRANK_NICOLSON,
    )
    tsoi = tdma_solver(a, b, c, d)

    gsoi = float(column.tk[0] * (tsurf - tsoi[0]) / (0.0 - column.z[0]))

    if method == EXCESS_HEAT:
        tsoi, h2osoi_liq, h2osoi_ice, hfsoi = phase_change(
            tsoi,
            column.cv,
            column.dz,
            column.h2osoi_liq,
            column.h2osoi_ice,
            float(dt),
            float(tfrz),
            float(hfus),
        )
        hfsoi = float(hfsoi)
    else:
        # Latent heat is included in the heat capacity
        h2osoi_liq = column.h2osoi_liq
        h2osoi_ice = column.h2osoi_ice
        hfsoi = 0.0

    edif = column.cv * column.dz * (tsoi - tsoi0) / dt
    balance_check(
        name="soil temperature energy",
        influxes=[gsoi, hfsoi],
        outfluxes=[edif],
        tolerance=tolerance,
        raise_on_error=raise_on_error,
        exception=EnergyConservationError,
    )

    # Written back after the energy check so a rejected solve leaves the column at time n
    column.tsoi = tsoi
    column.h2osoi_liq = h2osoi_liq
    column.h2osoi_ice = h2osoi_ice

    logger.debug(
        f"Soil temperature ({solution}, {method}): gsoi={gsoi:.3f} W/m2, hfsoi={hfsoi:.3f} W/m2"
    )
    return gsoi, hfsoi


def soil_temperature_flux(
    column: SoilColumn,
    f0: float,
    df0: float,
    dt: float,
    snow: SnowMeltState | None = None,
    tfrz: float = TFRZ_K,
    hfus: float = HFUS_J_PER_KG,
) -> tuple[float, SnowMeltState]:
    """Solve for soil temperatures at time n+1 with the surface energy flux as boundary condition.

    The energy flux into the soil is ``f0 + df0 * (T1[n+1] - T1[n])``, with T1
    the top layer temperature. When snow is present and the top layer would
    warm above freezing, the excess energy melts snow instead.

    The column's `tsoi` is replaced by the new temperatures. Unlike
    `soil_temperature`, no energy conservation check is made here.

    Args:
        column: The soil column. Thermal properties must be current.
        f0: Energy flux into the soil with the top layer at its time n temperature (W/m2).
        df0: Temperature derivative of f0 (W/m2/K).
        dt: Time step (s).
        snow: Snow on top of the soil. None for bare soil.
        tfrz: Freezing point of water (K).
        hfus: Heat of fusion (J/kg).

    Returns:
        Tuple of:
            - Energy flux into the soil, net of snow melt (W/m2).
            - Snow state with the snow melt and snow melt energy flux of this step.

    Raises:
        InvalidInputError: If the column, time step, surface flux, snow or physical
            constants are invalid.
    """
    validate_soil_column(column, dt)
    if snow is None:
        snow = SnowMeltState()
    _validate_scalars(tfrz, hfus, f0=f0, df0=df0, snow_water=snow.snow_water)
    if snow.snow_water < 0:
        raise InvalidInputError(
            f"Snow water must not be negative, got {snow.snow_water}."
        )

    tsoi0 = column.tsoi.copy()

    tk_plus_onehalf = interface_thermal_conductivity(
        column.tk, column.z, column.z_plus_onehalf
    )
    tsoi, snow_melt, gsno = solve_soil_temperature_increment(
        tsoi0,
        tk_plus_onehalf,
        column.cv,
        column.dz,
        column.dz_plus_onehalf,
        float(f0),
        float(df0),
        float(dt),
        float(snow.snow_water),
        float(tfrz),
        float(hfus),
    )
    column.tsoi = tsoi

    gsoi = float(f0 + df0 * (tsoi[0] - tsoi0[0]) - gsno)

    logger.debug(
        f"Soil temperature (surface flux): gsoi={gsoi:.3f} W/m2, gsno={gsno:.3f} W/m2"
    )
    return gsoi, replace(snow, snow_melt=float(snow_melt), gsno=float(gsno))

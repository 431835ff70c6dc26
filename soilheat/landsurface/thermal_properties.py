"""Thermal properties of soil that freezes and thaws."""

import numpy as np
from numba import njit

from soilheat.config_schema import ThermalPropertiesConfig
from soilheat.errors import InvalidInputError
from soilheat.types import ArrayFloat64

from .column import SoilColumn
from .constants import (
    APPARENT_HEAT_CAPACITY,
    HFUS_J_PER_KG,
    PHASE_CHANGE_METHODS,
    RHO_ICE_KG_PER_M3,
    RHO_WATER_KG_PER_M3,
    TFRZ_K,
)


@njit(cache=True)
def calculate_thermal_properties(
    tsoi: ArrayFloat64,
    h2osoi_liq: ArrayFloat64,
    h2osoi_ice: ArrayFloat64,
    dz: ArrayFloat64,
    apparent_heat_capacity: bool,
    tk_unfrozen: float,
    tk_frozen: float,
    cv_unfrozen: float,
    cv_frozen: float,
    tinc: float,
    tfrz: float,
    hfus: float,
) -> tuple[ArrayFloat64, ArrayFloat64]:
    r"""Calculate thermal conductivity and heat capacity of each soil layer.

    Above $T_f + \Delta$ the soil is unfrozen and below $T_f - \Delta$ frozen.
    Inside the interval, conductivity is interpolated linearly and the heat
    capacity is the mean of frozen and unfrozen soil. With the apparent heat
    capacity method, the latent heat of the soil water is spread over the
    interval:

    $$ c_v = \frac{c_{v,f} + c_{v,u}}{2} + \frac{L_f (\rho_w \theta_{liq} + \rho_i \theta_{ice})}{2 \Delta} $$

    Args:
        tsoi: Soil temperature (K).
        h2osoi_liq: Liquid water (kg H2O/m2).
        h2osoi_ice: Ice (kg H2O/m2).
        dz: Layer thickness (m).
        apparent_heat_capacity: Include latent heat in the heat capacity.
        tk_unfrozen: Thermal conductivity of unfrozen soil (W/m/K).
        tk_frozen: Thermal conductivity of frozen soil (W/m/K).
        cv_unfrozen: Heat capacity of unfrozen soil (J/m3/K).
        cv_frozen: Heat capacity of frozen soil (J/m3/K).
        tinc: Half width of the freezing interval (K).
        tfrz: Freezing point of water (K).
        hfus: Heat of fusion (J/kg).

    Returns:
        Tuple of:
            - Thermal conductivity (W/m/K).
            - Heat capacity (J/m3/K).
    """
    n = len(tsoi)
    tk = np.empty(n, dtype=np.float64)
    cv = np.empty(n, dtype=np.float64)

    for i in range(n):
        if tsoi[i] > tfrz + tinc:
            tk[i] = tk_unfrozen
            cv[i] = cv_unfrozen
        elif tsoi[i] >= tfrz - tinc:
            tk[i] = tk_frozen + (tk_unfrozen - tk_frozen) * (
                tsoi[i] - tfrz + tinc
            ) / (2.0 * tinc)
            cv[i] = 0.5 * (cv_frozen + cv_unfrozen)
            if apparent_heat_capacity:
                watliq = h2osoi_liq[i] / (RHO_WATER_KG_PER_M3 * dz[i])
                watice = h2osoi_ice[i] / (RHO_ICE_KG_PER_M3 * dz[i])
                ql = hfus * (RHO_WATER_KG_PER_M3 * watliq + RHO_ICE_KG_PER_M3 * watice)
                cv[i] += ql / (2.0 * tinc)
        else:
            tk[i] = tk_frozen
            cv[i] = cv_frozen

    return tk, cv


def soil_thermal_properties(
    column: SoilColumn,
    method: str,
    properties: ThermalPropertiesConfig | None = None,
    tfrz: float = TFRZ_K,
    hfus: float = HFUS_J_PER_KG,
) -> None:
    """Refresh the thermal conductivity and heat capacity of a soil column.

    Args:
        column: The soil column. `tk` and `cv` are replaced.
        method: "apparent-heat-capacity" or "excess-heat".
        properties: Frozen and unfrozen soil properties. Defaults to ThermalPropertiesConfig().
        tfrz: Freezing point of water (K).
        hfus: Heat of fusion (J/kg).

    Raises:
        InvalidInputError: If the method is unknown.
    """
    if method not in PHASE_CHANGE_METHODS:
        raise InvalidInputError(
            f"Unknown phase change method '{method}', expected one of {PHASE_CHANGE_METHODS}."
        )
    if properties is None:
        properties = ThermalPropertiesConfig()

    column.tk, column.cv = calculate_thermal_properties(
        np.asarray(column.tsoi, dtype=np.float64),
        np.asarray(column.h2osoi_liq, dtype=np.float64),
        np.asarray(column.h2osoi_ice, dtype=np.float64),
        np.asarray(column.dz, dtype=np.float64),
        method == APPARENT_HEAT_CAPACITY,
        properties.tk_unfrozen,
        properties.tk_frozen,
        properties.cv_unfrozen,
        properties.cv_frozen,
        properties.freezing_interval,
        float(tfrz),
        float(hfus),
    )


def freezing_front_depth(
    column: SoilColumn,
    method: str,
    tfrz: float = TFRZ_K,
    tolerance: float = 1e-3,
) -> float:
    """Depth of the freezing front in a column freezing from the top (m, negative below surface).

    With the excess heat method the front is the mean depth of the layers held
    at the freezing point. Otherwise it is interpolated linearly between the
    first frozen layer and the unfrozen layer below it.

    Args:
        column: The soil column.
        method: "apparent-heat-capacity" or "excess-heat".
        tfrz: Freezing point of water (K).
        tolerance: Distance to freezing within which a layer is at freezing (K).

    Returns:
        Depth of the freezing front, 0 if no front is found.

    Raises:
        InvalidInputError: If the method is unknown.
    """
    if method not in PHASE_CHANGE_METHODS:
        raise InvalidInputError(
            f"Unknown phase change method '{method}', expected one of {PHASE_CHANGE_METHODS}."
        )

    tsoi = column.tsoi
    z = column.z

    if method == APPARENT_HEAT_CAPACITY:
        for i in range(1, column.n):
            if tsoi[i - 1] <= tfrz and tsoi[i] > tfrz:
                slope = (tsoi[i] - tsoi[i - 1]) / (z[i] - z[i - 1])
                intercept = tsoi[i] - slope * z[i]
                return float((tfrz - intercept) / slope)
        return 0.0

    at_freezing = np.abs(tsoi - tfrz) < tolerance
    if not at_freezing.any():
        return 0.0
    return float(z[at_freezing].mean())

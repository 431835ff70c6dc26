"""Freezing and thawing of soil water with the excess heat method."""

import numpy as np
from numba import njit

from soilheat.types import ArrayFloat64


@njit(cache=True)
def phase_change(
    tsoi: ArrayFloat64,
    cv: ArrayFloat64,
    dz: ArrayFloat64,
    h2osoi_liq: ArrayFloat64,
    h2osoi_ice: ArrayFloat64,
    dt: float,
    tfrz: float,
    hfus: float,
) -> tuple[ArrayFloat64, ArrayFloat64, ArrayFloat64, float]:
    r"""Adjust soil temperatures for phase change.

    Layers with ice above freezing, or with liquid water below freezing, are
    set to the freezing point. The energy needed to bring the layer to
    freezing,

    $$ H_f = (T_f - T) c_v \Delta z / \Delta t $$

    freezes or melts water. Phase change is limited by the available liquid
    water or ice. The energy that cannot be used for phase change is returned
    to the layer as a temperature change away from freezing.

    Args:
        tsoi: Provisional soil temperature after the diffusion step (K).
        cv: Heat capacity (J/m3/K).
        dz: Layer thickness (m).
        h2osoi_liq: Liquid water (kg H2O/m2).
        h2osoi_ice: Ice (kg H2O/m2).
        dt: Time step (s).
        tfrz: Freezing point of water (K).
        hfus: Heat of fusion (J/kg).

    Returns:
        Tuple of:
            - Soil temperature after phase change (K).
            - Liquid water after phase change (kg H2O/m2).
            - Ice after phase change (kg H2O/m2).
            - Phase change energy flux (W/m2). Positive when water freezes.
    """
    n = len(tsoi)

    tsoi_new = tsoi.copy()
    liq_new = h2osoi_liq.copy()
    ice_new = h2osoi_ice.copy()
    hfsoi = 0.0

    for i in range(n):
        wliq0 = h2osoi_liq[i]
        wice0 = h2osoi_ice[i]
        wmass0 = wliq0 + wice0
        tsoi0 = tsoi[i]

        melting = wice0 > 0.0 and tsoi0 > tfrz
        freezing = wliq0 > 0.0 and tsoi0 < tfrz
        if not (melting or freezing):
            continue

        # Energy needed to bring the layer to freezing (W/m2)
        heat_flux_pot = (tfrz - tsoi0) * cv[i] * dz[i] / dt

        # Ice change, limited to the water present
        ice_flux = heat_flux_pot / hfus
        ice = wice0 + ice_flux * dt
        ice = min(max(ice, 0.0), wmass0)
        ice_new[i] = ice
        liq_new[i] = max(0.0, wmass0 - ice)

        heat_flux = hfus * (ice - wice0) / dt
        hfsoi += heat_flux

        # Energy not used for phase change changes temperature
        residual = heat_flux_pot - heat_flux
        tsoi_new[i] = tfrz - residual * dt / (cv[i] * dz[i])

    return tsoi_new, liq_new, ice_new, hfsoi

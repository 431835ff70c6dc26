"""Shared physical constants for soil heat conduction and phase change.

Constants are stored as Python floats, which Numba treats as float64. The
energy conservation check resolves imbalances of 1e-3 W/m2 on heat storage
terms of order 1e4 W/m2, which needs double precision.
"""

from __future__ import annotations

# Freezing point of water [K]
TFRZ_K: float = 273.15

# Heat of fusion for water at 0 C [J/kg]
HFUS_J_PER_KG: float = 0.3337e6

# Densities [kg/m3]
RHO_WATER_KG_PER_M3: float = 1000.0
RHO_ICE_KG_PER_M3: float = 917.0

# Tolerance of the soil energy conservation check [W/m2]
ENERGY_TOLERANCE_W_PER_M2: float = 1e-3

# Time discretizations of the heat equation
IMPLICIT: str = "implicit"
CRANK_NICOLSON: str = "Crank-Nicolson"
SOLUTIONS: tuple[str, ...] = (IMPLICIT, CRANK_NICOLSON)

# Treatments of soil water phase change
APPARENT_HEAT_CAPACITY: str = "apparent-heat-capacity"
EXCESS_HEAT: str = "excess-heat"
PHASE_CHANGE_METHODS: tuple[str, ...] = (APPARENT_HEAT_CAPACITY, EXCESS_HEAT)

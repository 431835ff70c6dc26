"""Land surface physics: heat conduction and phase change in the soil column."""

from .column import SnowMeltState, SoilColumn, build_soil_column, validate_soil_column
from .energy import soil_temperature, soil_temperature_flux
from .phase_change import phase_change
from .thermal_properties import freezing_front_depth, soil_thermal_properties

__all__ = [
    "SnowMeltState",
    "SoilColumn",
    "build_soil_column",
    "validate_soil_column",
    "soil_temperature",
    "soil_temperature_flux",
    "phase_change",
    "freezing_front_depth",
    "soil_thermal_properties",
]

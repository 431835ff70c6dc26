"""Configuration schema for soilheat."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ThermalPropertiesConfig(BaseModel):
    """Thermal properties of frozen and unfrozen soil.

    Defaults are those of a saturated soil with a volumetric water content
    near 0.19 (Lunardini, 1981).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tk_unfrozen: float = Field(
        1.860, gt=0, description="Thermal conductivity of unfrozen soil (W/m/K)."
    )
    tk_frozen: float = Field(
        2.324, gt=0, description="Thermal conductivity of frozen soil (W/m/K)."
    )
    cv_unfrozen: float = Field(
        2.862e6, gt=0, description="Heat capacity of unfrozen soil (J/m3/K)."
    )
    cv_frozen: float = Field(
        1.966e6, gt=0, description="Heat capacity of frozen soil (J/m3/K)."
    )
    freezing_interval: float = Field(
        0.5,
        gt=0,
        description="Half width of the temperature interval around the freezing point in which phase change occurs (K).",
    )


class RootFinderConfig(BaseModel):
    """Configuration of the Brent root finder."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tolerance: float = Field(0.01, gt=0, description="Absolute tolerance of the root.")
    max_iterations: int = Field(50, ge=1, description="Maximum number of iterations.")


class SoilTemperatureConfig(BaseModel):
    """Configuration of the soil temperature solver."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    solution: Literal["implicit", "Crank-Nicolson"] = Field(
        "implicit", description="Time discretization of the heat equation."
    )
    method: Literal["apparent-heat-capacity", "excess-heat"] = Field(
        "apparent-heat-capacity",
        description="Treatment of soil water phase change.",
    )
    energy_tolerance: float = Field(
        1e-3, gt=0, description="Tolerance of the energy conservation check (W/m2)."
    )
    raise_on_energy_error: bool = Field(
        True,
        description="Raise when energy is not conserved. If false, the imbalance is logged.",
    )
    freezing_point: float = Field(
        273.15, gt=0, description="Freezing point of water (K)."
    )
    latent_heat_fusion: float = Field(
        0.3337e6, gt=0, description="Heat of fusion for water at 0 C (J/kg)."
    )
    thermal_properties: ThermalPropertiesConfig = Field(
        default_factory=ThermalPropertiesConfig,
        description="Thermal properties of frozen and unfrozen soil.",
    )


class Config(BaseModel):
    """Full soilheat configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    soil_temperature: SoilTemperatureConfig = Field(
        default_factory=SoilTemperatureConfig,
        description="Soil temperature solver configuration.",
    )
    root_finder: RootFinderConfig = Field(
        default_factory=RootFinderConfig,
        description="Root finder configuration.",
    )

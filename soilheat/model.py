"""Time stepping of a soil column with a fixed configuration."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Callable

from soilheat.config import load_config
from soilheat.config_schema import RootFinderConfig, SoilTemperatureConfig
from soilheat.landsurface import (
    SnowMeltState,
    SoilColumn,
    freezing_front_depth,
    soil_temperature,
    soil_temperature_flux,
    soil_thermal_properties,
    validate_soil_column,
)
from soilheat.workflows.algebra import root_brent

logger: logging.Logger = logging.getLogger(__name__)


class SoilTemperatureModel:
    """Soil temperature of one column.

    Holds the column state and the per-run configuration (time discretization
    and phase change method). The driving loop calls `update_properties` and
    one of the step methods every time step.
    """

    def __init__(
        self,
        column: SoilColumn,
        config: SoilTemperatureConfig | None = None,
        root_finder: RootFinderConfig | None = None,
    ) -> None:
        """Initialize the model.

        Args:
            column: The soil column. It is updated in place by every step.
            config: Solver configuration. Defaults to SoilTemperatureConfig().
            root_finder: Root finder configuration used by
                `step_surface_energy_balance`. Defaults to RootFinderConfig().
        """
        self.column: SoilColumn = column
        self.config: SoilTemperatureConfig = (
            config if config is not None else SoilTemperatureConfig()
        )
        self.root_finder: RootFinderConfig = (
            root_finder if root_finder is not None else RootFinderConfig()
        )
        self.n_steps: int = 0

    @classmethod
    def from_config_file(
        cls, column: SoilColumn, config_path: dict | Path | str
    ) -> SoilTemperatureModel:
        """Create the model from a YAML configuration file or dictionary.

        Args:
            column: The soil column.
            config_path: Path to the config file or a dict with the config.

        Returns:
            The model.
        """
        config = load_config(config_path)
        return cls(column, config.soil_temperature, config.root_finder)

    @property
    def name(self) -> str:
        """Return the name of the model."""
        return "soil_temperature"

    def update_properties(self) -> None:
        """Refresh thermal conductivity and heat capacity from the current temperature and water."""
        soil_thermal_properties(
            self.column,
            self.config.method,
            self.config.thermal_properties,
            tfrz=self.config.freezing_point,
            hfus=self.config.latent_heat_fusion,
        )

    def _solve(self, column: SoilColumn, tsurf: float, dt: float) -> tuple[float, float]:
        return soil_temperature(
            column,
            tsurf,
            dt,
            solution=self.config.solution,
            method=self.config.method,
            tfrz=self.config.freezing_point,
            hfus=self.config.latent_heat_fusion,
            tolerance=self.config.energy_tolerance,
            raise_on_error=self.config.raise_on_energy_error,
        )

    def step(self, tsurf: float, dt: float) -> tuple[float, float]:
        """Advance the soil temperature one time step with a known surface temperature.

        Args:
            tsurf: Surface temperature (K).
            dt: Time step (s).

        Returns:
            Tuple of:
                - Energy flux into the soil (W/m2).
                - Soil phase change energy flux (W/m2).
        """
        gsoi, hfsoi = self._solve(self.column, tsurf, dt)
        self.n_steps += 1
        logger.debug(
            f"{self.name} step {self.n_steps}: tsurf={tsurf:.2f} K, "
            f"top layer {self.column.tsoi[0]:.2f} K, gsoi={gsoi:.2f} W/m2"
        )
        return gsoi, hfsoi

    def step_surface_energy_balance(
        self,
        surface_flux: Callable[[float], float],
        dt: float,
        tsurf_low: float,
        tsurf_high: float,
    ) -> tuple[float, float, float]:
        """Advance one time step with the surface temperature that closes the surface energy balance.

        The surface temperature is the root of ``surface_flux(tsurf) - gsoi(tsurf)``,
        with gsoi the energy flux into the soil after a step with that surface
        temperature. Every trial solves a copy of the column. The temperatures
        and water masses of the copy belonging to the root are then stored on
        the model's column.

        Args:
            surface_flux: Energy available to the soil at a surface temperature (W/m2).
            dt: Time step (s).
            tsurf_low: Lower end of the surface temperature search interval (K).
            tsurf_high: Upper end of the surface temperature search interval (K).

        Returns:
            Tuple of:
                - Surface temperature (K).
                - Energy flux into the soil (W/m2).
                - Soil phase change energy flux (W/m2).

        Raises:
            BracketError: If the interval does not bracket the surface temperature.
            ConvergenceError: If the root finder does not converge.
        """

        def residual(
            tsurf: float, state: tuple[SoilColumn, float, float]
        ) -> tuple[tuple[SoilColumn, float, float], float]:
            trial = copy.deepcopy(state[0])
            gsoi, hfsoi = self._solve(trial, tsurf, dt)
            return (trial, gsoi, hfsoi), surface_flux(tsurf) - gsoi

        tsurf, (column, gsoi, hfsoi) = root_brent(
            residual,
            tsurf_low,
            tsurf_high,
            self.root_finder.tolerance,
            (self.column, 0.0, 0.0),
            max_iterations=self.root_finder.max_iterations,
        )
        self.column.tsoi = column.tsoi
        self.column.h2osoi_liq = column.h2osoi_liq
        self.column.h2osoi_ice = column.h2osoi_ice
        self.n_steps += 1
        logger.debug(
            f"{self.name} step {self.n_steps}: surface energy balance closed at "
            f"tsurf={tsurf:.2f} K, gsoi={gsoi:.2f} W/m2"
        )
        return tsurf, gsoi, hfsoi

    def step_flux(
        self,
        f0: float,
        df0: float,
        dt: float,
        snow: SnowMeltState | None = None,
    ) -> tuple[float, SnowMeltState]:
        """Advance the soil temperature one time step with a linearized surface energy flux.

        Args:
            f0: Energy flux into the soil at the time n top layer temperature (W/m2).
            df0: Temperature derivative of f0 (W/m2/K).
            dt: Time step (s).
            snow: Snow on top of the soil. None for bare soil.

        Returns:
            Tuple of:
                - Energy flux into the soil, net of snow melt (W/m2).
                - Snow state with the snow melt of this step.
        """
        gsoi, snow = soil_temperature_flux(
            self.column,
            f0,
            df0,
            dt,
            snow=snow,
            tfrz=self.config.freezing_point,
            hfus=self.config.latent_heat_fusion,
        )
        self.n_steps += 1
        logger.debug(
            f"{self.name} step {self.n_steps}: f0={f0:.2f} W/m2, "
            f"top layer {self.column.tsoi[0]:.2f} K, snow melt={snow.snow_melt:.3e} kg/m2/s"
        )
        return gsoi, snow

    def freezing_front_depth(self) -> float:
        """Depth of the freezing front (m, negative below surface)."""
        return freezing_front_depth(
            self.column, self.config.method, tfrz=self.config.freezing_point
        )

    def validate(self, dt: float) -> None:
        """Check the column against the solver preconditions for time step dt."""
        validate_soil_column(self.column, dt)

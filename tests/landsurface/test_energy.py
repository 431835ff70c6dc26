"""Tests for the soil temperature solvers."""

import copy
import logging

import numpy as np
import pytest

import soilheat.landsurface.energy as energy
from soilheat.errors import EnergyConservationError, InvalidInputError
from soilheat.landsurface import (
    SnowMeltState,
    build_soil_column,
    soil_temperature,
    soil_temperature_flux,
)
from soilheat.landsurface.constants import (
    APPARENT_HEAT_CAPACITY,
    CRANK_NICOLSON,
    EXCESS_HEAT,
    HFUS_J_PER_KG,
    IMPLICIT,
    TFRZ_K,
)
from soilheat.landsurface.energy import interface_thermal_conductivity
from soilheat.workflows.algebra import root_brent

DT = 3600.0


def uniform_column(n: int = 5, tsoi: float = 280.0, **kwargs):
    """Column of 0.1 m layers with tk = 1.5 W/m/K and cv = 2e6 J/m3/K."""
    return build_soil_column(
        dz=np.full(n, 0.1), tsoi=tsoi, tk=1.5, cv=2.0e6, **kwargs
    )


def random_column(rng: np.random.Generator, n: int):
    return build_soil_column(
        dz=rng.uniform(0.02, 0.3, n),
        tsoi=TFRZ_K + rng.uniform(-5.0, 5.0, n),
        tk=rng.uniform(0.3, 3.0, n),
        cv=rng.uniform(1.0e6, 3.0e6, n),
        h2osoi_liq=rng.uniform(0.0, 20.0, n),
        h2osoi_ice=rng.uniform(0.0, 20.0, n),
    )


def stored_energy_change(column, tsoi0: np.ndarray, dt: float) -> float:
    return float(np.sum(column.cv * column.dz * (column.tsoi - tsoi0) / dt))


def test_interface_thermal_conductivity() -> None:
    """Uniform conductivity is kept and two layers give the weighted harmonic mean."""
    column = uniform_column(4)
    np.testing.assert_allclose(
        interface_thermal_conductivity(column.tk, column.z, column.z_plus_onehalf),
        np.full(3, 1.5),
    )

    column = build_soil_column(dz=[0.1, 0.1], tsoi=280.0, tk=[1.0, 3.0], cv=2.0e6)
    np.testing.assert_allclose(
        interface_thermal_conductivity(column.tk, column.z, column.z_plus_onehalf),
        [1.5],
    )


def test_cooling_from_the_surface() -> None:
    """A colder surface cools the top layers and energy leaves the soil."""
    column = uniform_column(5, tsoi=280.0)

    gsoi, hfsoi = soil_temperature(
        column, tsurf=270.0, dt=DT, solution=IMPLICIT, method=APPARENT_HEAT_CAPACITY
    )

    assert column.tsoi[0] < 279.0
    assert np.all(column.tsoi > 270.0)
    assert np.all(column.tsoi <= 280.0)
    # cooling weakens with depth
    assert np.all(np.diff(column.tsoi) > 0)
    # the surface is colder than the top layer, so the flux into the soil is negative
    assert gsoi < 0
    assert hfsoi == 0.0


@pytest.mark.parametrize("solution", [IMPLICIT, CRANK_NICOLSON])
@pytest.mark.parametrize("method", [APPARENT_HEAT_CAPACITY, EXCESS_HEAT])
def test_steady_state(solution: str, method: str) -> None:
    """A column at the surface temperature stays there with no energy flux."""
    column = uniform_column(6, tsoi=285.0, h2osoi_liq=10.0)

    for _ in range(5):
        gsoi, hfsoi = soil_temperature(
            column, tsurf=285.0, dt=DT, solution=solution, method=method
        )
        assert abs(gsoi) < 1e-9
        assert hfsoi == 0.0

    np.testing.assert_allclose(column.tsoi, 285.0, rtol=0, atol=1e-9)


@pytest.mark.parametrize("solution", [IMPLICIT, CRANK_NICOLSON])
@pytest.mark.parametrize("method", [APPARENT_HEAT_CAPACITY, EXCESS_HEAT])
def test_energy_conservation_random_columns(solution: str, method: str) -> None:
    """Change in heat storage equals the flux into the soil plus phase change."""
    rng = np.random.default_rng(42)

    for _ in range(50):
        n = int(rng.integers(2, 25))
        column = random_column(rng, n)
        water0 = column.water_mass.copy()
        tsoi0 = column.tsoi.copy()
        dt = float(rng.uniform(60.0, 7200.0))
        tsurf = TFRZ_K + float(rng.uniform(-15.0, 15.0))

        gsoi, hfsoi = soil_temperature(
            column, tsurf=tsurf, dt=dt, solution=solution, method=method
        )

        np.testing.assert_allclose(
            stored_energy_change(column, tsoi0, dt), gsoi + hfsoi, rtol=0, atol=1e-3
        )
        np.testing.assert_allclose(column.water_mass, water0, rtol=1e-12)
        if method == APPARENT_HEAT_CAPACITY:
            assert hfsoi == 0.0


def test_excess_heat_freezes_water() -> None:
    """Cooling below freezing turns liquid water into ice and releases latent heat."""
    column = uniform_column(5, tsoi=TFRZ_K + 0.5, h2osoi_liq=50.0)

    gsoi, hfsoi = soil_temperature(
        column, tsurf=TFRZ_K - 10.0, dt=DT, method=EXCESS_HEAT
    )

    assert hfsoi > 0
    assert gsoi < 0
    assert column.h2osoi_ice[0] > 0
    np.testing.assert_allclose(column.tsoi[0], TFRZ_K, rtol=0, atol=1e-9)
    np.testing.assert_allclose(column.water_mass, 50.0)


def test_apparent_heat_capacity_keeps_water() -> None:
    column = uniform_column(5, tsoi=TFRZ_K + 0.5, h2osoi_liq=50.0)

    soil_temperature(column, tsurf=TFRZ_K - 10.0, dt=DT, method=APPARENT_HEAT_CAPACITY)

    np.testing.assert_array_equal(column.h2osoi_liq, 50.0)
    np.testing.assert_array_equal(column.h2osoi_ice, 0.0)


def test_time_n_temperature_is_not_aliased() -> None:
    """The caller's temperature array is replaced, not overwritten."""
    column = uniform_column(5)
    tsoi_before = column.tsoi

    soil_temperature(column, tsurf=270.0, dt=DT)

    assert column.tsoi is not tsoi_before
    np.testing.assert_array_equal(tsoi_before, 280.0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"solution": "explicit"},
        {"method": "enthalpy"},
        {"dt": 0.0},
        {"dt": -DT},
        {"tsurf": float("nan")},
        {"tsurf": float("inf")},
        {"tfrz": 0.0},
        {"hfus": -1.0},
        {"hfus": float("nan")},
    ],
)
def test_soil_temperature_invalid_input(kwargs: dict) -> None:
    """Invalid input is rejected before the column is touched."""
    column = uniform_column(3)
    arguments = {"tsurf": 270.0, "dt": DT, **kwargs}

    with pytest.raises(InvalidInputError):
        soil_temperature(column, **arguments)

    np.testing.assert_array_equal(column.tsoi, 280.0)


def test_soil_temperature_energy_error(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    """A solve that does not conserve energy raises, or only logs when asked to."""
    tdma_solver = energy.tdma_solver

    def biased_solver(a, b, c, d):
        return tdma_solver(a, b, c, d) + 1.0

    monkeypatch.setattr(energy, "tdma_solver", biased_solver)

    # a rejected solve leaves temperatures and water masses at time n
    column = uniform_column(5, tsoi=TFRZ_K + 0.5, h2osoi_liq=50.0)
    with pytest.raises(EnergyConservationError):
        soil_temperature(column, tsurf=TFRZ_K - 10.0, dt=DT, method=EXCESS_HEAT)
    np.testing.assert_array_equal(column.tsoi, TFRZ_K + 0.5)
    np.testing.assert_array_equal(column.h2osoi_liq, 50.0)
    np.testing.assert_array_equal(column.h2osoi_ice, 0.0)

    column = uniform_column(5)
    with caplog.at_level(logging.WARNING):
        gsoi, hfsoi = soil_temperature(
            column, tsurf=270.0, dt=DT, raise_on_error=False
        )
    assert "soil temperature energy" in caplog.text
    assert np.isfinite(gsoi)
    # with raise_on_error=False the step is kept
    assert column.tsoi[0] != 280.0


def test_flux_no_snow_energy_closure() -> None:
    """Without snow, the heat storage change equals the linearized surface flux."""
    rng = np.random.default_rng(1)

    for _ in range(50):
        n = int(rng.integers(2, 25))
        column = random_column(rng, n)
        tsoi0 = column.tsoi.copy()
        dt = float(rng.uniform(60.0, 7200.0))
        f0 = float(rng.uniform(-200.0, 200.0))
        df0 = float(rng.uniform(-30.0, 0.0))

        gsoi, snow = soil_temperature_flux(column, f0=f0, df0=df0, dt=dt)

        assert snow.snow_melt == 0.0
        assert snow.gsno == 0.0
        np.testing.assert_allclose(
            gsoi, f0 + df0 * (column.tsoi[0] - tsoi0[0]), rtol=1e-12
        )
        np.testing.assert_allclose(
            stored_energy_change(column, tsoi0, dt), gsoi, rtol=0, atol=1e-6
        )


def test_flux_snow_melt_holds_top_layer_at_freezing() -> None:
    """With plenty of snow, warming above freezing melts snow instead."""
    column = uniform_column(5, tsoi=TFRZ_K)
    tsoi0 = column.tsoi.copy()
    snow = SnowMeltState(snow_water=100.0)

    gsoi, snow_out = soil_temperature_flux(column, f0=200.0, df0=-10.0, dt=DT, snow=snow)

    np.testing.assert_allclose(column.tsoi[0], TFRZ_K, rtol=0, atol=1e-9)
    assert 0 < snow_out.snow_melt < snow.snow_water / DT
    np.testing.assert_allclose(snow_out.gsno, snow_out.snow_melt * HFUS_J_PER_KG)
    # snow water itself is bookkept elsewhere
    assert snow_out.snow_water == 100.0
    np.testing.assert_allclose(
        stored_energy_change(column, tsoi0, DT), gsoi, rtol=0, atol=1e-6
    )
    np.testing.assert_allclose(gsoi, 200.0 - snow_out.gsno, rtol=1e-9)


def test_flux_snow_melt_limited_by_snow() -> None:
    """All snow melts and the rest of the energy warms the top layer."""
    column = uniform_column(5, tsoi=TFRZ_K)
    tsoi0 = column.tsoi.copy()
    snow = SnowMeltState(snow_water=0.01)

    gsoi, snow_out = soil_temperature_flux(column, f0=200.0, df0=-10.0, dt=DT, snow=snow)

    np.testing.assert_allclose(snow_out.snow_melt, 0.01 / DT)
    assert column.tsoi[0] > TFRZ_K
    np.testing.assert_allclose(
        stored_energy_change(column, tsoi0, DT), gsoi, rtol=0, atol=1e-6
    )


def test_flux_cooling_melts_no_snow() -> None:
    column = uniform_column(5, tsoi=TFRZ_K - 1.0)

    gsoi, snow_out = soil_temperature_flux(
        column, f0=-100.0, df0=-5.0, dt=DT, snow=SnowMeltState(snow_water=10.0)
    )

    assert snow_out.snow_melt == 0.0
    assert snow_out.gsno == 0.0
    assert gsoi < 0
    assert column.tsoi[0] < TFRZ_K - 1.0


def test_flux_negative_snow_water() -> None:
    with pytest.raises(InvalidInputError):
        soil_temperature_flux(
            uniform_column(3), f0=0.0, df0=0.0, dt=DT, snow=SnowMeltState(snow_water=-1.0)
        )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"f0": float("nan")},
        {"df0": float("inf")},
        {"dt": 0.0},
        {"snow": SnowMeltState(snow_water=float("nan"))},
        {"snow": SnowMeltState(snow_water=float("inf"))},
        {"tfrz": -273.15},
        {"hfus": 0.0},
    ],
)
def test_flux_invalid_input(kwargs: dict) -> None:
    """Invalid input to the flux variant is rejected before the column is touched."""
    column = uniform_column(3)
    arguments = {"f0": 50.0, "df0": -5.0, "dt": DT, **kwargs}

    with pytest.raises(InvalidInputError):
        soil_temperature_flux(column, **arguments)

    np.testing.assert_array_equal(column.tsoi, 280.0)


def test_flux_variant_has_no_energy_check(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only the surface temperature variant runs the energy conservation check."""

    def fail(*args, **kwargs):
        raise AssertionError("balance check called")

    monkeypatch.setattr(energy, "balance_check", fail)

    soil_temperature_flux(uniform_column(5), f0=50.0, df0=-5.0, dt=DT)

    with pytest.raises(AssertionError, match="balance check called"):
        soil_temperature(uniform_column(5), tsurf=270.0, dt=DT)


def test_surface_temperature_for_target_flux() -> None:
    """The root finder finds the surface temperature giving a target flux into the soil.

    The state passed through the root finder is the column after the solve, so
    the returned state belongs to the returned surface temperature.
    """
    column = uniform_column(5, tsoi=280.0)
    target = -20.0

    def residual(tsurf: float, state):
        trial = copy.deepcopy(state)
        gsoi, _ = soil_temperature(trial, tsurf=tsurf, dt=DT)
        return trial, gsoi - target

    tsurf, solved = root_brent(residual, 250.0, 300.0, 1e-6, column)

    assert 250.0 < tsurf < 280.0
    # the caller's column is untouched
    np.testing.assert_array_equal(column.tsoi, 280.0)

    check = copy.deepcopy(column)
    gsoi, _ = soil_temperature(check, tsurf=tsurf, dt=DT)
    assert abs(gsoi - target) < 1e-3
    np.testing.assert_allclose(solved.tsoi, check.tsoi, rtol=0, atol=1e-12)

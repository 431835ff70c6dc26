"""Workflow helpers used in soilheat."""

import logging

import numpy as np

from soilheat.errors import BalanceError
from soilheat.types import ArrayFloat

logger: logging.Logger = logging.getLogger(__name__)


def balance_check(
    name: str,
    influxes: list[ArrayFloat | float] | tuple[ArrayFloat | float, ...] = (),
    outfluxes: list[ArrayFloat | float] | tuple[ArrayFloat | float, ...] = (),
    prestorages: list[ArrayFloat | float] | tuple[ArrayFloat | float, ...] = (),
    poststorages: list[ArrayFloat | float] | tuple[ArrayFloat | float, ...] = (),
    tolerance: float = 1e-10,
    raise_on_error: bool = False,
    exception: type[BalanceError] = BalanceError,
) -> bool:
    """Check the balance of a soil column, usually for energy.

    Essentially checks that influxes + prestorages = outfluxes + poststorages,
    within a given tolerance. Each term may be a scalar or a per-layer array,
    arrays are summed over the column before the comparison.

    Args:
        name: Name of the balance check, used for logging.
        influxes: List of influxes.
        outfluxes: List of outfluxes.
        prestorages: List of storages before the step.
        poststorages: List of storages after the step.
        tolerance: Tolerance for the balance check.
        raise_on_error: Whether to raise an error if the balance check fails.
        exception: Exception class raised when the check fails and raise_on_error is True.

    Returns:
        True if the balance check passes, False otherwise.

    Raises:
        ValueError: If NaN values are found in the balance calculation.
        BalanceError: If the balance check fails and raise_on_error is True. The
            class raised is the one given in `exception`.
    """
    income = 0.0
    out = 0.0
    store = 0.0

    for influx in influxes:
        income += np.sum(influx)
    for outflux in outfluxes:
        out += np.sum(outflux)
    for prestorage in prestorages:
        store += np.sum(prestorage)
    for poststorage in poststorages:
        store -= np.sum(poststorage)

    balance = income + store - out
    if np.isnan(balance):
        raise ValueError(f"{name} balance check failed, NaN values found.")

    if abs(balance) > tolerance:
        text = f"{name}: imbalance {balance} is larger than tolerance {tolerance}"
        logger.warning(text)
        if raise_on_error:
            raise exception(text)
        return False
    return True

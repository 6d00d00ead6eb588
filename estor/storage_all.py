# Constraints shared by every storage resource regardless of topology:
# state of charge recurrence, energy and discharge limits, and the
# regulation/reserve proxy accounting.

from pyomo.environ import *
import logging

from estor.classification import (
    ReserveParticipation,
    participation_label,
    storage_subset,
)

logger = logging.getLogger(__name__)


def storage_all(m):
    """State of charge balance and discharge limits for all storage.

    Start timesteps of long duration resources are left to
    ``long_duration_storage``; every other resource wraps onto the last
    timestep of its own representative period.
    """
    time = m.storage_time

    @m.Expression(m.storageResources)
    def storageLosses(m, y):
        # Energy lost to round trip inefficiency and self discharge
        return sum(
            time.weights[t] * (m.storageCharge[y, t] - m.storageDischarge[y, t])
            for t in m.timesteps
        )

    @m.Constraint(m.storageResources, m.timesteps)
    def soc_max(m, y, t):
        return m.stateOfCharge[y, t] <= m.totalEnergyCapacity[y]

    def soc_balance(m, y, t, t_prev):
        return m.stateOfCharge[y, t] == (
            m.stateOfCharge[y, t_prev]
            - m.storageDischarge[y, t] / m.dischargeEfficiency[y]
            + m.chargeEfficiency[y] * m.storageCharge[y, t]
            - m.selfDischargeRate[y] * m.stateOfCharge[y, t_prev]
        )

    @m.Constraint(m.storageResources, m.interiorTimesteps)
    def soc_balance_interior(m, y, t):
        return soc_balance(m, y, t, t - 1)

    @m.Constraint(m.shortDurationStorage, m.startTimesteps)
    def soc_balance_start(m, y, t):
        return soc_balance(m, y, t, time.previous(t))

    if m.storage_config.reserves:
        storage_all_reserves(m)
        return

    @m.Constraint(m.storageResources, m.timesteps)
    def discharge_power_limit(m, y, t):
        return m.storageDischarge[y, t] <= m.totalCapacity[y]

    @m.Constraint(m.storageResources, m.timesteps)
    def discharge_soc_limit(m, y, t):
        return m.storageDischarge[y, t] <= m.stateOfCharge[y, time.previous(t)]


def _charge_proxies(m, participation, y, t):
    """Regulation and reserve provided while charging, for floor constraints."""
    terms = 0
    if participation.regulation:
        terms += m.regulationCharge[y, t]
    if participation.reserve:
        terms += m.reserveCharge[y, t]
    return terms


def _discharge_proxies(m, participation, y, t):
    terms = 0
    if participation.regulation:
        terms += m.regulationDischarge[y, t]
    if participation.reserve:
        terms += m.reserveDischarge[y, t]
    return terms


def storage_all_reserves(m):
    """Reserve-aware limits for all storage, one constraint family per
    reserve participation subset.

    Families are suffixed with the participation label, e.g.
    ``charge_headroom_RegOnly``. Subsets without members add nothing.
    """
    time = m.storage_time

    for participation in ReserveParticipation:
        resources = storage_subset(m, participation=participation)
        label = participation_label(participation)
        if len(resources) == 0:
            logger.debug("No storage with reserve participation %s", label)
            continue

        def add(name, rule):
            m.add_component(
                f"{name}_{label}",
                Constraint(resources, m.timesteps, rule=rule),
            )

        if participation.regulation:

            def regulation_total(m, y, t):
                return m.regulationTotal[y, t] == (
                    m.regulationCharge[y, t] + m.regulationDischarge[y, t]
                )

            def regulation_max(m, y, t):
                return (
                    m.regulationTotal[y, t]
                    <= m.regulationMax[y] * m.totalCapacity[y]
                )

            add("regulation_total", regulation_total)
            add("regulation_max", regulation_max)

        if participation.reserve:

            def reserve_total(m, y, t):
                return m.reserveTotal[y, t] == (
                    m.reserveCharge[y, t] + m.reserveDischarge[y, t]
                )

            def reserve_max(m, y, t):
                return m.reserveTotal[y, t] <= m.reserveMax[y] * m.totalCapacity[y]

            add("reserve_total", reserve_total)
            add("reserve_max", reserve_max)

        if participation is not ReserveParticipation.NO_RES:

            def charge_reserve_floor(m, y, t):
                return (
                    m.storageCharge[y, t] - _charge_proxies(m, participation, y, t)
                    >= 0
                )

            def discharge_reserve_floor(m, y, t):
                return (
                    m.storageDischarge[y, t]
                    - _discharge_proxies(m, participation, y, t)
                    >= 0
                )

            add("charge_reserve_floor", charge_reserve_floor)
            add("discharge_reserve_floor", discharge_reserve_floor)

        def charge_headroom(m, y, t):
            # Charging plus regulation down must fit in the remaining energy capacity
            charge = m.storageCharge[y, t]
            if participation.regulation:
                charge = charge + m.regulationCharge[y, t]
            return charge <= (
                m.totalEnergyCapacity[y] - m.stateOfCharge[y, time.previous(t)]
            )

        def discharge_power_limit(m, y, t):
            return (
                m.storageDischarge[y, t] + _discharge_proxies(m, participation, y, t)
                <= m.totalCapacity[y]
            )

        def discharge_soc_limit(m, y, t):
            return (
                m.storageDischarge[y, t] + _discharge_proxies(m, participation, y, t)
                <= m.stateOfCharge[y, time.previous(t)]
            )

        add("charge_headroom", charge_headroom)
        add("discharge_power_limit", discharge_power_limit)
        add("discharge_soc_limit", discharge_soc_limit)
        logger.debug(
            "Added reserve constraints for %d storage resource(s) in %s",
            len(resources),
            label,
        )

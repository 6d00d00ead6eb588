# Charge and discharge power limits that depend on whether a storage resource
# has one shared power rating (symmetric) or separate charge and discharge
# ratings (asymmetric).

from pyomo.environ import *
import logging

from estor.classification import (
    ReserveParticipation,
    Topology,
    participation_label,
    storage_subset,
)

logger = logging.getLogger(__name__)


def storage_symmetric(m):
    """Symmetric storage shares one power rating between charging and
    discharging; simultaneous charge and discharge is allowed up to that rating.
    """
    if m.storage_config.reserves:
        storage_symmetric_reserves(m)
        return

    @m.Constraint(m.symmetricStorage, m.timesteps)
    def symmetric_charge_limit(m, y, t):
        return m.storageCharge[y, t] <= m.totalCapacity[y]

    @m.Constraint(m.symmetricStorage, m.timesteps)
    def symmetric_simultaneous_limit(m, y, t):
        return m.storageCharge[y, t] + m.storageDischarge[y, t] <= m.totalCapacity[y]


def storage_symmetric_reserves(m):
    """Symmetric power limits including the regulation and reserve proxies of
    each participation subset."""
    for participation in ReserveParticipation:
        resources = storage_subset(m, Topology.SYMMETRIC, participation)
        label = participation_label(participation)
        if len(resources) == 0:
            logger.debug("No symmetric storage with reserve participation %s", label)
            continue

        def charge_limit(m, y, t):
            charge = m.storageCharge[y, t]
            if participation.regulation:
                charge = charge + m.regulationCharge[y, t]
            return charge <= m.totalCapacity[y]

        def simultaneous_limit(m, y, t):
            total = m.storageCharge[y, t] + m.storageDischarge[y, t]
            if participation.regulation:
                total = total + m.regulationCharge[y, t] + m.regulationDischarge[y, t]
            if participation.reserve:
                total = total + m.reserveDischarge[y, t]
            return total <= m.totalCapacity[y]

        m.add_component(
            f"symmetric_charge_limit_{label}",
            Constraint(resources, m.timesteps, rule=charge_limit),
        )
        m.add_component(
            f"symmetric_simultaneous_limit_{label}",
            Constraint(resources, m.timesteps, rule=simultaneous_limit),
        )


def storage_asymmetric(m):
    """Asymmetric storage charges against its own charge power rating."""
    if m.storage_config.reserves:
        storage_asymmetric_reserves(m)
        return

    @m.Constraint(m.asymmetricStorage, m.timesteps)
    def asymmetric_charge_limit(m, y, t):
        return m.storageCharge[y, t] <= m.totalChargeCapacity[y]


def storage_asymmetric_reserves(m):
    # Regulation down while charging competes with charging for charge capacity
    for participation in ReserveParticipation:
        resources = storage_subset(m, Topology.ASYMMETRIC, participation)
        label = participation_label(participation)
        if len(resources) == 0:
            logger.debug("No asymmetric storage with reserve participation %s", label)
            continue

        def charge_limit(m, y, t):
            charge = m.storageCharge[y, t]
            if participation.regulation:
                charge = charge + m.regulationCharge[y, t]
            return charge <= m.totalChargeCapacity[y]

        m.add_component(
            f"asymmetric_charge_limit_{label}",
            Constraint(resources, m.timesteps, rule=charge_limit),
        )

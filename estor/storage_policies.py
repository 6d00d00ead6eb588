# Storage contributions to system-wide expressions: power balance, objective,
# energy share requirements and capacity reserve margins.

import logging

logger = logging.getLogger(__name__)


def add_to_expression(expression, term):
    """Append ``term`` to a named Pyomo expression, keeping what it already holds."""
    if expression.expr is None:
        expression.set_value(term)
    else:
        expression.set_value(expression.expr + term)


def storage_policy_expressions(m, data):
    """Fold storage terms into the shared expressions of the surrounding model.

    Each contribution is added once per build; terms already present in the
    shared expressions are left untouched.
    """
    config = m.storage_config
    time = m.storage_time

    resources_by_zone = {}
    for y in m.storageResources:
        resources_by_zone.setdefault(m.storageZone[y], []).append(y)

    # Net storage injection into each zone
    for t in m.timesteps:
        for z, resources in resources_by_zone.items():
            add_to_expression(
                m.ePowerBalance[t, z],
                sum(
                    m.storageDischarge[y, t] - m.storageCharge[y, t]
                    for y in resources
                ),
            )

    # Variable O&M of charging and discharging
    add_to_expression(
        m.eObj,
        sum(
            time.weights[t]
            * (
                m.chargeVarOMCost[y] * m.storageCharge[y, t]
                + m.dischargeVarOMCost[y] * m.storageDischarge[y, t]
            )
            for y in m.storageResources
            for t in m.timesteps
        ),
    )

    if config.energy_share_requirement:
        energy_share_requirement_losses(m, data.system["esr"], resources_by_zone)

    if config.capacity_reserve_margin:
        capacity_reserve_margin_contribution(
            m, data.system["capacity_reserve_margin_programs"]
        )


def energy_share_requirement_losses(m, esr_weights, resources_by_zone):
    """Subtract storage losses, scaled by the loss accounting factor and zone
    weight, from each energy share requirement balance."""
    storage_losses = m.storage_config.storage_losses
    for esr, weights in sorted(esr_weights.items()):
        stor_losses = sum(
            weight
            * storage_losses
            * sum(m.storageLosses[y] for y in resources_by_zone.get(z, []))
            for z, weight in weights.items()
            if weight > 0
        )
        add_to_expression(m.eESR[esr], -stor_losses)
        logger.debug("Added storage losses to energy share requirement %s", esr)


def capacity_reserve_margin_contribution(m, num_programs):
    """Add derated net storage output to each capacity reserve margin balance."""
    for res in range(1, num_programs + 1):
        for t in m.timesteps:
            add_to_expression(
                m.eCapResMarBalance[res, t],
                sum(
                    m.capacityReserveDerating[res, y]
                    * (m.storageDischarge[y, t] - m.storageCharge[y, t])
                    for y in m.storageResources
                ),
            )

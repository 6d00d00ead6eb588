# Inter-period state of charge tracking for long duration storage when the
# horizon is represented by a subset of representative periods.

from pyomo.environ import *
from pyomo.environ import units as u
import logging

from estor.exceptions import StorageConfigurationError

logger = logging.getLogger(__name__)


def resolve_period_map(system, num_periods):
    """Return the modeled-to-representative period map and, for each
    representative period, the modeled period it was drawn from.

    Without a configured map every modeled period represents itself.
    """
    period_map = system.get("period_map")
    if period_map is None:
        period_map = {w: w for w in range(1, num_periods + 1)}

    represented = set(period_map.values())
    unknown = sorted(w for w in represented if not 1 <= w <= num_periods)
    if unknown:
        raise StorageConfigurationError(
            f"Period map refers to representative periods {unknown}, but only "
            f"{num_periods} representative period(s) are modeled"
        )
    if len(represented) != num_periods:
        raise StorageConfigurationError(
            f"Period map uses {len(represented)} representative period(s), but "
            f"the time index has {num_periods}"
        )

    rep_periods = system.get("representative_periods")
    if rep_periods is None:
        rep_periods = {}
        for r in sorted(period_map):
            rep_periods.setdefault(period_map[r], r)
    for w, r in rep_periods.items():
        if period_map.get(r) != w:
            raise StorageConfigurationError(
                f"Modeled period {r} is listed as the source of representative "
                f"period {w}, but the period map assigns it to {period_map.get(r)}"
            )
    return period_map, rep_periods


def long_duration_storage(m, period_map, rep_periods):
    """Link state of charge across modeled periods for long duration storage.

    Each representative period may end with a different state of charge than
    it started with (``periodStorageChange``). The change is carried
    chronologically through the modeled periods via ``periodStartStorage``.

    :param period_map: modeled period -> representative period
    :param rep_periods: representative period -> modeled period it was drawn from
    """
    time = m.storage_time
    modeled = sorted(period_map)

    m.representativePeriods = RangeSet(time.num_periods, doc="Representative periods")
    m.modeledPeriods = Set(
        initialize=modeled, ordered=True, doc="Chronological modeled periods"
    )

    m.periodStorageChange = Var(
        m.longDurationStorage,
        m.representativePeriods,
        domain=Reals,
        initialize=0,
        units=u.MW * u.hr,
        doc="Change in state of charge over a representative period",
    )
    m.periodStartStorage = Var(
        m.longDurationStorage,
        m.modeledPeriods,
        domain=NonNegativeReals,
        initialize=0,
        units=u.MW * u.hr,
        doc="State of charge at the start of each modeled period",
    )

    @m.Constraint(m.longDurationStorage, m.representativePeriods)
    def lds_soc_balance_start(m, y, w):
        t_start = time.period_start(w)
        t_end = time.period_end(w)
        return m.stateOfCharge[y, t_start] == (
            (1 - m.selfDischargeRate[y])
            * (m.stateOfCharge[y, t_end] - m.periodStorageChange[y, w])
            - m.storageDischarge[y, t_start] / m.dischargeEfficiency[y]
            + m.chargeEfficiency[y] * m.storageCharge[y, t_start]
        )

    @m.Constraint(m.longDurationStorage, m.modeledPeriods)
    def lds_soc_link(m, y, r):
        r_next = m.modeledPeriods.nextw(r)
        return m.periodStartStorage[y, r_next] == (
            m.periodStartStorage[y, r] + m.periodStorageChange[y, period_map[r]]
        )

    @m.Constraint(m.longDurationStorage, m.modeledPeriods)
    def lds_soc_max(m, y, r):
        return m.periodStartStorage[y, r] <= m.totalEnergyCapacity[y]

    @m.Constraint(m.longDurationStorage, sorted(rep_periods.values()))
    def lds_soc_initial(m, y, r):
        w = period_map[r]
        return m.periodStartStorage[y, r] == (
            m.stateOfCharge[y, time.period_end(w)] - m.periodStorageChange[y, w]
        )

    logger.info(
        "Linked %d long duration storage resource(s) across %d modeled period(s)",
        len(m.longDurationStorage),
        len(modeled),
    )

# Storage operations formulation for capacity expansion planning
# Builds storage variables, constraints and shared-expression contributions
# onto a (possibly host-owned) Pyomo model.

from pyomo.environ import *
from pyomo.environ import units as u
from pyomo.common.timing import TicTocTimer
from pyomo.repn import generate_standard_repn
import json
import logging

from estor.classification import (
    ReserveParticipation,
    Topology,
    classify_storage,
    participation_label,
)
from estor.config_options import (
    _get_model_config,
    _add_reserve_configs,
    _add_policy_configs,
)
from estor.estor_data import validate_storage_data
from estor.long_duration_storage import long_duration_storage, resolve_period_map
from estor.storage_all import storage_all
from estor.storage_policies import add_to_expression, storage_policy_expressions
from estor.storage_topology import storage_asymmetric, storage_symmetric
from estor.time_period_data import TimePeriodData

logger = logging.getLogger(__name__)


class StorageOperationsModel:
    """Storage charge, discharge and state-of-charge formulation for a
    capacity expansion model."""

    def __init__(self, config=None, data=None, **kwds):
        """Initialize the storage formulation object.

        :param config: dict or ConfigBlock of options (see config_options)
        :param data: StorageData object holding resource and system data
        :param kwds: individual config options, applied after ``config``
        """
        self.data = data
        self.config = _get_model_config()
        _add_reserve_configs(self.config)
        _add_policy_configs(self.config)
        if config is not None:
            self.config.set_value(config)
        self.config.set_value(kwds)
        self.timer = TicTocTimer(logger=logger)
        self.model = None
        self.classification = None
        self.time = None
        self.period_map = None

    def create_model(self, model=None):
        """Add the storage formulation to ``model``, or to a new ConcreteModel.

        When ``model`` is given, shared expressions it already owns
        (``ePowerBalance``, ``eObj``, ``eESR``, ``eCapResMarBalance``) are
        added to rather than replaced. When no model is given, a cost
        minimization objective over ``eObj`` is also declared.

        :return: the Pyomo model
        """
        self.timer.tic("Creating storage model")
        if self.data is None:
            raise ValueError("StorageOperationsModel requires a StorageData object")

        sets = self.data.storage_sets()
        self.time = self._resolve_time()
        long_duration = self._resolve_long_duration(sets["STOR_LONG_DURATION"])
        self.classification = classify_storage(
            sets["STOR_ALL"],
            sets["STOR_SYMMETRIC"],
            sets["STOR_ASYMMETRIC"],
            regulation=sets["REG"],
            reserve=sets["RSV"],
            long_duration=long_duration,
        )
        validate_storage_data(self.data, self.classification, self.config)
        self.period_map = None
        if self.classification.long_duration:
            self.period_map = resolve_period_map(
                self.data.system, self.time.num_periods
            )
        self.timer.toc("Classified %d storage resources", len(self.classification.all))

        owns_model = model is None
        m = ConcreteModel() if owns_model else model
        m.storage_config = self.config
        m.storage_time = self.time
        m.storage_classification = self.classification

        model_set_declaration(m, self.classification, self.time)
        model_data_references(m, self.data)
        declare_shared_expressions(m, self.data, self.config)
        add_storage_variables(m)

        if self.classification.all:
            investment_discharge(m)
            investment_energy(m)
            storage_all(m)
            if self.classification.long_duration:
                long_duration_storage(m, *self.period_map)
        if self.classification.topology(Topology.ASYMMETRIC):
            investment_charge(m)
            storage_asymmetric(m)
        if self.classification.topology(Topology.SYMMETRIC):
            storage_symmetric(m)

        storage_policy_expressions(m, self.data)
        self.timer.toc("Added storage constraints")

        if owns_model:
            create_objective_function(m)

        self.model = m
        return m

    def _resolve_time(self):
        if self.config.operation_wrapping:
            hours_per_subperiod = self.config.hours_per_subperiod
        else:
            hours_per_subperiod = None
        time = TimePeriodData(
            self.config.timesteps,
            hours_per_subperiod,
            weights=self.data.system.get("time_weights"),
        )
        return time

    def _resolve_long_duration(self, flagged):
        active = (
            self.config.long_duration_storage
            and self.config.operation_wrapping
            and len(flagged) > 0
        )
        if flagged and self.config.long_duration_storage and not active:
            logger.warning(
                "Long duration storage requires operation wrapping; "
                "treating %d resource(s) as short duration",
                len(flagged),
            )
        return flagged if active else ()

    def report_model(self, outfile="pretty_storage_model_output.txt"):
        """Pretty prints Pyomo model to outfile.

        :outfile: (str or file-like, optional) Defaults to "pretty_storage_model_output.txt".
        """
        if hasattr(outfile, "write"):
            self.model.pprint(ostream=outfile)
            return
        with open(outfile, "w") as outf:
            self.model.pprint(ostream=outf)

    def report_large_coefficients(self, outfile, magnitude_cutoff=1e5):
        """Dump very large magnitude (>= 1e5) constraint coefficients to a json file.

        :outfile: filename to write
        :magnitude_cutoff: magnitude above which to report coefficients
        """
        var_coef_dict = {}
        for con in self.model.component_data_objects(Constraint, active=True):
            repn = generate_standard_repn(con.body, compute_values=True)
            for var, coef in zip(repn.linear_vars, repn.linear_coefs):
                # Keep the largest magnitude seen for each variable
                if abs(coef) > abs(var_coef_dict.get(var.name, 0)):
                    var_coef_dict[var.name] = coef

        really_bad_var_coef_dict = {
            key: value
            for (key, value) in var_coef_dict.items()
            if abs(value) >= magnitude_cutoff
        }
        really_bad_var_coef_list = sorted(
            really_bad_var_coef_dict.items(), key=lambda x: x[1]
        )
        with open(outfile, "w") as fil:
            json.dump(really_bad_var_coef_list, fil)
        return really_bad_var_coef_list


####################################
## Model Building Functions Below ##
####################################


def model_set_declaration(m, classification, time):
    """
    Creates Pyomo Sets for the storage formulation.

    :m: Pyomo model object
    :classification: StorageClassification of the storage resources
    :time: TimePeriodData for the modeled horizon
    """

    def ordered(resources):
        return sorted(resources, key=str)

    m.timesteps = RangeSet(time.T, doc="Modeled timesteps")
    m.startTimesteps = Set(
        within=m.timesteps,
        initialize=time.start_subperiods,
        doc="First timestep of each representative period",
    )
    m.interiorTimesteps = Set(
        within=m.timesteps,
        initialize=time.interior_subperiods,
        doc="All timesteps except the first of each representative period",
    )

    m.storageResources = Set(
        initialize=ordered(classification.all), doc="All storage resources"
    )
    m.longDurationStorage = Set(
        within=m.storageResources,
        initialize=ordered(classification.long_duration),
        doc="Storage linked across representative periods",
    )
    m.shortDurationStorage = Set(
        within=m.storageResources,
        initialize=ordered(classification.short_duration),
        doc="Storage wrapping within each representative period",
    )
    m.regulationStorage = Set(
        within=m.storageResources,
        initialize=ordered(classification.regulation),
        doc="Storage eligible for regulation",
    )
    m.reserveStorage = Set(
        within=m.storageResources,
        initialize=ordered(classification.reserve),
        doc="Storage eligible for spinning reserve",
    )

    for topology in Topology:
        m.add_component(
            f"{topology.value}Storage",
            Set(
                within=m.storageResources,
                initialize=ordered(classification.topology(topology)),
                doc=f"Storage with {topology.value} charge and discharge capacity",
            ),
        )

    for participation in ReserveParticipation:
        label = participation_label(participation)
        m.add_component(
            f"storage{label}",
            Set(
                within=m.storageResources,
                initialize=ordered(classification.subset(participation=participation)),
                doc=f"Storage with reserve participation {participation.value}",
            ),
        )
        for topology in Topology:
            m.add_component(
                f"{topology.value}Storage{label}",
                Set(
                    within=m.storageResources,
                    initialize=ordered(classification.subset(topology, participation)),
                    doc=f"{topology.value.capitalize()} storage with reserve participation {participation.value}",
                ),
            )


def model_data_references(m, data):
    """Creates and labels data for the storage formulation; ties input data
    to model directly.

    :param m: Pyomo model object
    :param data: StorageData object
    """
    res = data.resources

    def column(name, resources=None):
        resources = m.storageResources if resources is None else resources
        return {y: res[y][name] for y in resources}

    m.storageZone = column("Zone")

    m.chargeEfficiency = column("Eff_Up")
    m.dischargeEfficiency = column("Eff_Down")
    m.selfDischargeRate = column("Self_Disch")

    if m.storage_config.reserves:
        # Fractions of discharge capacity available to each reserve product
        m.regulationMax = column("Reg_Max", m.regulationStorage)
        m.reserveMax = column("Rsv_Max", m.reserveStorage)

    m.existingCapacity = column("Existing_Cap_MW")
    m.existingEnergyCapacity = column("Existing_Cap_MWh")
    m.existingChargeCapacity = column("Existing_Charge_Cap_MW", m.asymmetricStorage)

    m.newBuildStatus = column("New_Build")
    m.capacityLimits = {
        y: (res[y]["Min_Cap_MW"], res[y]["Max_Cap_MW"]) for y in m.storageResources
    }
    m.energyCapacityLimits = {
        y: (res[y]["Min_Cap_MWh"], res[y]["Max_Cap_MWh"]) for y in m.storageResources
    }
    m.chargeCapacityLimits = {
        y: (res[y]["Min_Charge_Cap_MW"], res[y]["Max_Charge_Cap_MW"])
        for y in m.asymmetricStorage
    }
    m.durationLimits = {
        y: (res[y]["Min_Duration"], res[y]["Max_Duration"]) for y in m.storageResources
    }

    m.investmentCost = column("Inv_Cost_per_MWyr")
    m.energyInvestmentCost = column("Inv_Cost_per_MWhyr")
    m.chargeInvestmentCost = column("Inv_Cost_Charge_per_MWyr", m.asymmetricStorage)
    m.fixedOMCost = column("Fixed_OM_Cost_per_MWyr")
    m.energyFixedOMCost = column("Fixed_OM_Cost_per_MWhyr")
    m.chargeFixedOMCost = column("Fixed_OM_Cost_Charge_per_MWyr", m.asymmetricStorage)
    m.dischargeVarOMCost = column("Var_OM_Cost_per_MWh")
    m.chargeVarOMCost = column("Var_OM_Cost_per_MWh_In")

    if m.storage_config.capacity_reserve_margin:
        m.capacityReserveDerating = {
            (r, y): res[y][f"CapRes_{r}"]
            for r in range(1, data.system["capacity_reserve_margin_programs"] + 1)
            for y in m.storageResources
        }


def declare_shared_expressions(m, data, config):
    """Declare the system-wide expressions storage contributes to, unless the
    host model already owns them."""

    if m.component("ePowerBalance") is None:
        m.storageZones = Set(initialize=data.system["zones"], doc="Load zones")
        m.ePowerBalance = Expression(m.timesteps, m.storageZones, initialize=0)

    if m.component("eObj") is None:
        m.eObj = Expression(initialize=0)

    if config.energy_share_requirement and m.component("eESR") is None:
        m.esrPrograms = Set(
            initialize=sorted(data.system["esr"]),
            doc="Energy share requirement programs",
        )
        m.eESR = Expression(m.esrPrograms, initialize=0)

    if config.capacity_reserve_margin and m.component("eCapResMarBalance") is None:
        m.capacityReserveMarginPrograms = RangeSet(
            data.system["capacity_reserve_margin_programs"],
            doc="Capacity reserve margin programs",
        )
        m.eCapResMarBalance = Expression(
            m.capacityReserveMarginPrograms, m.timesteps, initialize=0
        )


def add_storage_variables(m):
    """Add charge, discharge, state of charge and reserve proxy variables."""

    m.storageDischarge = Var(
        m.storageResources,
        m.timesteps,
        domain=NonNegativeReals,
        initialize=0,
        units=u.MW,
    )
    m.storageCharge = Var(
        m.storageResources,
        m.timesteps,
        domain=NonNegativeReals,
        initialize=0,
        units=u.MW,
    )
    m.stateOfCharge = Var(
        m.storageResources,
        m.timesteps,
        domain=NonNegativeReals,
        initialize=0,
        units=u.MW * u.hr,
    )

    if not m.storage_config.reserves:
        return

    # Portions of regulation and reserve provided while charging or discharging
    m.regulationCharge = Var(
        m.regulationStorage, m.timesteps, domain=NonNegativeReals, initialize=0, units=u.MW
    )
    m.regulationDischarge = Var(
        m.regulationStorage, m.timesteps, domain=NonNegativeReals, initialize=0, units=u.MW
    )
    m.reserveCharge = Var(
        m.reserveStorage, m.timesteps, domain=NonNegativeReals, initialize=0, units=u.MW
    )
    m.reserveDischarge = Var(
        m.reserveStorage, m.timesteps, domain=NonNegativeReals, initialize=0, units=u.MW
    )

    m.regulationTotal = Var(
        m.regulationStorage, m.timesteps, domain=NonNegativeReals, initialize=0, units=u.MW
    )
    m.reserveTotal = Var(
        m.reserveStorage, m.timesteps, domain=NonNegativeReals, initialize=0, units=u.MW
    )


def _declare_capacity(
    m, resources, name, existing, limits, investment_cost, fixed_om_cost, units
):
    """Declare new build and retirement variables, the total capacity
    expression, limit constraints and fixed costs for one kind of capacity.

    New build is allowed where New_Build == 1; retirement where
    New_Build != -1 and there is existing capacity.
    """
    include_investment = m.storage_config.include_investment
    new_build = [
        y for y in resources if include_investment and m.newBuildStatus[y] == 1
    ]
    retirement = [
        y
        for y in resources
        if include_investment and m.newBuildStatus[y] != -1 and existing[y] > 0
    ]
    cap_name = name[0].upper() + name[1:]

    new_var = Var(
        new_build, domain=NonNegativeReals, initialize=0, units=units
    )
    m.add_component(f"new{cap_name}", new_var)

    def retirement_limits(b, y):
        return (0, existing[y])

    ret_var = Var(
        retirement,
        domain=NonNegativeReals,
        bounds=retirement_limits,
        initialize=0,
        units=units,
    )
    m.add_component(f"retired{cap_name}", ret_var)

    def total_rule(b, y):
        total = existing[y]
        if y in new_var:
            total += new_var[y]
        if y in ret_var:
            total -= ret_var[y]
        return total

    total = Expression(resources, rule=total_rule)
    m.add_component(f"total{cap_name}", total)

    def has_decision(y):
        return y in new_var or y in ret_var

    def max_rule(b, y):
        cap_max = limits[y][1]
        if cap_max is None or cap_max <= 0 or not has_decision(y):
            return Constraint.Skip
        return total[y] <= cap_max

    def min_rule(b, y):
        cap_min = limits[y][0]
        if cap_min is None or cap_min <= 0 or not has_decision(y):
            return Constraint.Skip
        return total[y] >= cap_min

    m.add_component(f"max_{name}", Constraint(resources, rule=max_rule))
    m.add_component(f"min_{name}", Constraint(resources, rule=min_rule))

    fixed_cost = sum(investment_cost[y] * new_var[y] for y in new_var) + sum(
        fixed_om_cost[y] * total[y] for y in resources
    )
    add_to_expression(m.eObj, fixed_cost)
    logger.debug(
        "%s: %d new build and %d retirement candidates",
        cap_name,
        len(new_build),
        len(retirement),
    )


def investment_discharge(m):
    """Total discharge power capacity (shared with charging for symmetric storage)."""
    _declare_capacity(
        m,
        m.storageResources,
        "capacity",
        m.existingCapacity,
        m.capacityLimits,
        m.investmentCost,
        m.fixedOMCost,
        u.MW,
    )


def investment_energy(m):
    """Total energy capacity, with energy-to-power duration limits."""
    _declare_capacity(
        m,
        m.storageResources,
        "energyCapacity",
        m.existingEnergyCapacity,
        m.energyCapacityLimits,
        m.energyInvestmentCost,
        m.energyFixedOMCost,
        u.MW * u.hr,
    )

    @m.Constraint(m.storageResources)
    def min_duration(m, y):
        min_duration = m.durationLimits[y][0]
        if min_duration <= 0:
            return Constraint.Skip
        return m.totalEnergyCapacity[y] >= min_duration * m.totalCapacity[y]

    @m.Constraint(m.storageResources)
    def max_duration(m, y):
        max_duration = m.durationLimits[y][1]
        if max_duration <= 0:
            return Constraint.Skip
        return m.totalEnergyCapacity[y] <= max_duration * m.totalCapacity[y]


def investment_charge(m):
    """Total charge power capacity for asymmetric storage."""
    _declare_capacity(
        m,
        m.asymmetricStorage,
        "chargeCapacity",
        m.existingChargeCapacity,
        m.chargeCapacityLimits,
        m.chargeInvestmentCost,
        m.chargeFixedOMCost,
        u.MW,
    )


def create_objective_function(m):
    """Minimize the storage cost terms collected in ``eObj``."""
    m.total_cost_objective_rule = Objective(expr=m.eObj, sense=minimize)

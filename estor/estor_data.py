# Storage operations formulation for capacity expansion planning
# Input data container and validation

import logging

import pandas as pd
from egret.data.model_data import ModelData

from estor.classification import Topology
from estor.exceptions import StorageConfigurationError, StorageDataError

logger = logging.getLogger(__name__)

# STOR column codes
SYMMETRIC = 1
ASYMMETRIC = 2

REQUIRED_ATTRIBUTES = (
    "Zone",
    "STOR",
    "Existing_Cap_MW",
    "Existing_Cap_MWh",
    "Eff_Up",
    "Eff_Down",
    "Self_Disch",
)

# Optional attributes and the values used when absent
DEFAULT_ATTRIBUTES = {
    "LDS": 0,
    "New_Build": 0,
    "Max_Cap_MW": -1,
    "Min_Cap_MW": -1,
    "Max_Cap_MWh": -1,
    "Min_Cap_MWh": -1,
    "Max_Charge_Cap_MW": -1,
    "Min_Charge_Cap_MW": -1,
    "Min_Duration": 0,
    "Max_Duration": 0,
    "Inv_Cost_per_MWyr": 0,
    "Inv_Cost_per_MWhyr": 0,
    "Inv_Cost_Charge_per_MWyr": 0,
    "Fixed_OM_Cost_per_MWyr": 0,
    "Fixed_OM_Cost_per_MWhyr": 0,
    "Fixed_OM_Cost_Charge_per_MWyr": 0,
    "Var_OM_Cost_per_MWh": 0,
    "Var_OM_Cost_per_MWh_In": 0,
}


def is_missing(value):
    return value is None or (pd.api.types.is_scalar(value) and pd.isna(value))


class StorageData:
    """Standard data storage class for the storage operations formulation.

    Resources are held as ``storage`` elements of an Egret ModelData object,
    keyed by resource identifier. System-level inputs (zones, energy share
    requirement weights, period map, capacity reserve margin programs) live
    under ``md.data["system"]``.
    """

    def __init__(self):
        self.md = ModelData()

    @property
    def resources(self):
        return self.md.data["elements"].get("storage", {})

    @property
    def system(self):
        return self.md.data["system"]

    def load_dataframe(
        self,
        resources,
        esr=None,
        period_map=None,
        regulation=None,
        reserve=None,
        num_capacity_reserve_margin=None,
        time_weights=None,
    ):
        """Load storage resources from a resource table.

        :param resources: DataFrame with one row per storage resource, keyed
            by an ``R_ID`` column (or the index if the column is absent)
        :param esr: DataFrame indexed by zone with one ``ESR_<n>`` column per
            energy share requirement program
        :param period_map: DataFrame with ``Period_Index``, ``Rep_Period`` and
            ``Rep_Period_Index`` columns mapping modeled to representative periods
        :param regulation: identifiers eligible for regulation; defaults to the
            ``Reg`` column, or ``Reg_Max > 0`` if that column is absent
        :param reserve: identifiers eligible for reserves; as ``regulation``
            with the ``Rsv`` and ``Rsv_Max`` columns
        :param num_capacity_reserve_margin: number of capacity reserve margin
            programs; defaults to the number of ``CapRes_<n>`` columns
        :param time_weights: per-timestep weights (omega); defaults to 1
        """
        if "R_ID" in resources.columns:
            resources = resources.set_index("R_ID")

        storage = {}
        for r_id, row in resources.iterrows():
            storage[r_id] = {k: v for k, v in row.items() if not is_missing(v)}
        self.md.data["elements"]["storage"] = storage

        if num_capacity_reserve_margin is None:
            num_capacity_reserve_margin = sum(
                1 for col in resources.columns if str(col).startswith("CapRes_")
            )

        self.system["regulation"] = self._eligible(storage, regulation, "Reg", "Reg_Max")
        self.system["reserve"] = self._eligible(storage, reserve, "Rsv", "Rsv_Max")
        self.system["capacity_reserve_margin_programs"] = num_capacity_reserve_margin

        if esr is not None:
            self.system["esr"] = {
                int(str(col).split("_")[-1]): {
                    zone: float(w) for zone, w in esr[col].items() if not is_missing(w)
                }
                for col in esr.columns
                if str(col).startswith("ESR_")
            }
        else:
            self.system["esr"] = {}

        if period_map is not None:
            self.load_period_map(period_map)

        if time_weights is not None:
            self.system["time_weights"] = [float(w) for w in time_weights]

        self.load_default_data_settings()

    def load_model_data(self, md):
        """Load storage resources from an Egret ModelData object.

        Expects ``md.data["elements"]["storage"]`` with the same attribute
        names as the resource table columns. Missing system entries are
        derived from the resources.
        """
        self.md = md
        storage = self.md.data["elements"].setdefault("storage", {})
        self.system.setdefault(
            "regulation", self._eligible(storage, None, "Reg", "Reg_Max")
        )
        self.system.setdefault(
            "reserve", self._eligible(storage, None, "Rsv", "Rsv_Max")
        )
        self.system.setdefault(
            "capacity_reserve_margin_programs",
            len(
                {
                    key
                    for attrs in storage.values()
                    for key in attrs
                    if key.startswith("CapRes_")
                }
            ),
        )
        self.system.setdefault("esr", {})
        self.load_default_data_settings()

    def load_period_map(self, period_map):
        """Store the modeled-to-representative period map for long duration storage."""
        self.system["period_map"] = {
            int(r): int(w)
            for r, w in zip(period_map["Period_Index"], period_map["Rep_Period_Index"])
        }
        self.system["representative_periods"] = {
            int(w): int(rep)
            for rep, w in zip(period_map["Rep_Period"], period_map["Rep_Period_Index"])
        }

    def load_default_data_settings(self):
        """Fills in optional but unspecified resource data."""
        for y, attrs in self.resources.items():
            for key, default in DEFAULT_ATTRIBUTES.items():
                attrs.setdefault(key, default)
        self.system.setdefault(
            "zones",
            sorted(
                {attrs["Zone"] for attrs in self.resources.values() if "Zone" in attrs}
                | {z for weights in self.system.get("esr", {}).values() for z in weights}
            ),
        )

    @staticmethod
    def _eligible(storage, declared, flag, fraction):
        if declared is not None:
            return sorted(declared, key=str)
        eligible = []
        for y, attrs in storage.items():
            if flag in attrs:
                if attrs[flag]:
                    eligible.append(y)
            elif attrs.get(fraction, 0) > 0:
                eligible.append(y)
        return eligible

    def storage_sets(self):
        """Named resource-identifier sets consumed by the classifier."""
        return {
            "STOR_ALL": list(self.resources),
            "STOR_SYMMETRIC": [
                y for y, a in self.resources.items() if a.get("STOR") == SYMMETRIC
            ],
            "STOR_ASYMMETRIC": [
                y for y, a in self.resources.items() if a.get("STOR") == ASYMMETRIC
            ],
            "STOR_LONG_DURATION": [
                y for y, a in self.resources.items() if a.get("LDS", 0) == 1
            ],
            "REG": list(self.system.get("regulation", [])),
            "RSV": list(self.system.get("reserve", [])),
        }


def _require(resources, y, attribute):
    value = resources[y].get(attribute)
    if is_missing(value):
        raise StorageDataError(y, attribute)
    return value


def _check_unit_interval(y, attribute, value):
    if not 0 <= value <= 1:
        raise StorageDataError(
            y,
            attribute,
            f"Storage resource {y!r} has {attribute} = {value}; expected a value in [0, 1]",
        )


def validate_storage_data(data, classification, config):
    """Check that every resource carries what the enabled formulation needs.

    Raises StorageDataError for missing or out-of-range values and
    StorageConfigurationError for settings that would make the formulation
    undefined.
    """
    resources = data.resources
    for y in sorted(classification.all, key=str):
        if y not in resources:
            raise StorageDataError(y, "R_ID", f"Storage resource {y!r} has no data")
        for attribute in REQUIRED_ATTRIBUTES:
            _require(resources, y, attribute)

        if _require(resources, y, "Eff_Down") == 0:
            raise StorageConfigurationError(
                f"Storage resource {y!r} has a discharge efficiency of zero"
            )
        for attribute in ("Eff_Up", "Eff_Down", "Self_Disch"):
            _check_unit_interval(y, attribute, resources[y][attribute])
        for attribute in ("Existing_Cap_MW", "Existing_Cap_MWh"):
            if resources[y][attribute] < 0:
                raise StorageDataError(
                    y, attribute, f"Storage resource {y!r} has negative {attribute}"
                )

    for y in sorted(classification.topology(Topology.ASYMMETRIC), key=str):
        if _require(resources, y, "Existing_Charge_Cap_MW") < 0:
            raise StorageDataError(
                y,
                "Existing_Charge_Cap_MW",
                f"Storage resource {y!r} has negative Existing_Charge_Cap_MW",
            )

    if config.reserves:
        for eligible, attribute, product in (
            (classification.regulation, "Reg_Max", "regulation"),
            (classification.reserve, "Rsv_Max", "reserves"),
        ):
            for y in sorted(eligible, key=str):
                fraction = resources[y].get(attribute)
                if is_missing(fraction):
                    raise StorageConfigurationError(
                        f"Storage resource {y!r} is eligible for {product} but has no {attribute}"
                    )
                _check_unit_interval(y, attribute, fraction)

    if config.capacity_reserve_margin:
        for res in range(1, data.system["capacity_reserve_margin_programs"] + 1):
            for y in sorted(classification.all, key=str):
                _require(resources, y, f"CapRes_{res}")

    logger.debug("Validated data for %d storage resources", len(classification.all))

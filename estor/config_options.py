from pyomo.common.config import (
    ConfigBlock,
    ConfigValue,
    NonNegativeFloat,
    PositiveInt,
    Bool,
)


def _unit_interval(val):
    """Domain for factors that must lie in [0, 1]."""
    val = NonNegativeFloat(val)
    if val > 1:
        raise ValueError(f"Expected a value in [0, 1], received {val}")
    return val


def _get_model_config():
    CONFIG = ConfigBlock("StorageModelConfig")

    CONFIG.declare(
        "include_investment",
        ConfigValue(
            default=True,
            domain=Bool,
            description="Allow new build and retirement of storage power, energy and charge capacity.",
        ),
    )

    CONFIG.declare(
        "timesteps",
        ConfigValue(
            default=8760,
            domain=PositiveInt,
            description="Total number of modeled timesteps.",
        ),
    )

    CONFIG.declare(
        "hours_per_subperiod",
        ConfigValue(
            default=None,
            domain=PositiveInt,
            description="Length of each representative period (timesteps). Defaults to the full horizon.",
        ),
    )

    CONFIG.declare(
        "operation_wrapping",
        ConfigValue(
            default=False,
            domain=Bool,
            description="Model the horizon as several representative periods, each wrapping onto itself.",
        ),
    )
    return CONFIG


def _add_reserve_configs(CONFIG):
    CONFIG.declare(
        "reserves",
        ConfigValue(
            default=False,
            domain=Bool,
            description="Model storage contributions to regulation and spinning reserves.",
        ),
    )


def _add_policy_configs(CONFIG):
    CONFIG.declare(
        "long_duration_storage",
        ConfigValue(
            default=False,
            domain=Bool,
            description="Link state of charge across representative periods for long duration storage.",
        ),
    )
    CONFIG.declare(
        "energy_share_requirement",
        ConfigValue(
            default=False,
            domain=Bool,
            description="Account for storage losses in energy share requirement balances.",
        ),
    )
    CONFIG.declare(
        "storage_losses",
        ConfigValue(
            default=1.0,
            domain=_unit_interval,
            description="Share of storage round-trip losses counted against energy share requirements (0 = ignore, 1 = full).",
        ),
    )
    CONFIG.declare(
        "capacity_reserve_margin",
        ConfigValue(
            default=False,
            domain=Bool,
            description="Add net storage output to capacity reserve margin balances.",
        ),
    )

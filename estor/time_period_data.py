import logging

from estor.exceptions import StorageConfigurationError

logger = logging.getLogger(__name__)


class TimePeriodData(object):
    """Chronology of the storage formulation: timesteps ``1..T`` split into
    representative periods of ``hours_per_subperiod`` timesteps each.

    The first timestep of every period is a *start* timestep; all others are
    *interior*. ``previous(t)`` wraps a start timestep onto the last timestep
    of its own period.
    """

    def __init__(self, timesteps, hours_per_subperiod=None, weights=None):
        """
        Parameters
        ----------
        timesteps: int
            Total number of modeled timesteps, T
        hours_per_subperiod: int or None
            Length of each representative period; None means a single period
            spanning the whole horizon
        weights: sequence of float, dict, or None
            Per-timestep weights (omega) used to scale annual quantities;
            defaults to 1 for every timestep
        """
        if hours_per_subperiod is None:
            hours_per_subperiod = timesteps
        if timesteps % hours_per_subperiod != 0:
            raise StorageConfigurationError(
                f"Total timesteps ({timesteps}) must be a multiple of the "
                f"period length ({hours_per_subperiod})"
            )
        self.T = timesteps
        self.hours_per_subperiod = hours_per_subperiod
        self.num_periods = timesteps // hours_per_subperiod

        if weights is None:
            self.weights = {t: 1.0 for t in self.timesteps}
        elif isinstance(weights, dict):
            missing = [t for t in self.timesteps if t not in weights]
            if missing:
                raise StorageConfigurationError(
                    f"Timestep weights are missing for timesteps {missing}"
                )
            self.weights = {t: float(weights[t]) for t in self.timesteps}
        else:
            weights = list(weights)
            if len(weights) != timesteps:
                raise StorageConfigurationError(
                    f"Expected {timesteps} timestep weights, received {len(weights)}"
                )
            self.weights = {t: float(w) for t, w in zip(self.timesteps, weights)}

        logger.debug(
            "Time index with %d timesteps in %d period(s) of length %d",
            self.T,
            self.num_periods,
            self.hours_per_subperiod,
        )

    @property
    def timesteps(self):
        return range(1, self.T + 1)

    @property
    def start_subperiods(self):
        return list(range(1, self.T + 1, self.hours_per_subperiod))

    @property
    def interior_subperiods(self):
        starts = set(self.start_subperiods)
        return [t for t in self.timesteps if t not in starts]

    def is_start(self, t):
        return (t - 1) % self.hours_per_subperiod == 0

    def previous(self, t):
        """Timestep whose state of charge precedes ``t``."""
        if self.is_start(t):
            return t + self.hours_per_subperiod - 1
        return t - 1

    def period_start(self, w):
        return self.hours_per_subperiod * (w - 1) + 1

    def period_end(self, w):
        return self.hours_per_subperiod * w

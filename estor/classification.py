"""Partition storage resources by capacity topology and reserve participation.

Each resource receives exactly one tag, a pair of
(:class:`Topology`, :class:`ReserveParticipation`). Constraint generators
iterate over the subsets sharing a tag instead of testing set membership at
each call site.
"""

import enum
import logging
from collections import namedtuple

from estor.exceptions import StorageConfigurationError

logger = logging.getLogger(__name__)


class Topology(enum.Enum):
    SYMMETRIC = "symmetric"
    ASYMMETRIC = "asymmetric"


class ReserveParticipation(enum.Enum):
    REG_RSV = "reg_rsv"
    REG_ONLY = "reg_only"
    RSV_ONLY = "rsv_only"
    NO_RES = "no_res"

    @property
    def regulation(self):
        return self in (ReserveParticipation.REG_RSV, ReserveParticipation.REG_ONLY)

    @property
    def reserve(self):
        return self in (ReserveParticipation.REG_RSV, ReserveParticipation.RSV_ONLY)


StorageTag = namedtuple("StorageTag", ["topology", "participation"])

_PARTICIPATION_LABELS = {
    ReserveParticipation.REG_RSV: "RegRsv",
    ReserveParticipation.REG_ONLY: "RegOnly",
    ReserveParticipation.RSV_ONLY: "RsvOnly",
    ReserveParticipation.NO_RES: "NoRes",
}


def participation_label(participation):
    return _PARTICIPATION_LABELS[participation]


def storage_subset(m, topology=None, participation=None):
    """Pyomo Set of storage resources declared for a classification tag."""
    name = "storage" if topology is None else f"{topology.value}Storage"
    if participation is not None:
        name += participation_label(participation)
    return m.component(name)


def participation_for(resource, regulation, reserve):
    if resource in regulation and resource in reserve:
        return ReserveParticipation.REG_RSV
    if resource in regulation:
        return ReserveParticipation.REG_ONLY
    if resource in reserve:
        return ReserveParticipation.RSV_ONLY
    return ReserveParticipation.NO_RES


class StorageClassification:
    """Disjoint storage subsets derived from the declared resource sets."""

    def __init__(self, tags, long_duration=()):
        self.tags = dict(tags)
        self.long_duration = frozenset(long_duration) & frozenset(self.tags)

    @property
    def all(self):
        return frozenset(self.tags)

    @property
    def short_duration(self):
        return self.all - self.long_duration

    @property
    def regulation(self):
        return frozenset(y for y, tag in self.tags.items() if tag.participation.regulation)

    @property
    def reserve(self):
        return frozenset(y for y, tag in self.tags.items() if tag.participation.reserve)

    def topology(self, topology):
        return frozenset(y for y, tag in self.tags.items() if tag.topology is topology)

    def subset(self, topology=None, participation=None):
        """Resources with the given topology and/or reserve participation.

        Passing None for either dimension leaves that dimension unrestricted.
        """
        return frozenset(
            y
            for y, tag in self.tags.items()
            if (topology is None or tag.topology is topology)
            and (participation is None or tag.participation is participation)
        )

    def __eq__(self, other):
        if not isinstance(other, StorageClassification):
            return NotImplemented
        return self.tags == other.tags and self.long_duration == other.long_duration

    def __repr__(self):
        counts = {
            f"{top.value}/{part.value}": len(self.subset(top, part))
            for top in Topology
            for part in ReserveParticipation
        }
        return f"StorageClassification({counts})"


def classify_storage(
    stor_all, symmetric, asymmetric, regulation=(), reserve=(), long_duration=()
):
    """Tag every storage resource with its topology and reserve participation.

    :param stor_all: identifiers of all storage resources
    :param symmetric: identifiers declared with one shared power rating
    :param asymmetric: identifiers declared with separate charge and discharge ratings
    :param regulation: identifiers eligible for regulation
    :param reserve: identifiers eligible for spinning reserve
    :param long_duration: identifiers linked across representative periods
    :return: StorageClassification
    """
    symmetric = frozenset(symmetric)
    asymmetric = frozenset(asymmetric)
    regulation = frozenset(regulation)
    reserve = frozenset(reserve)

    both = sorted(symmetric & asymmetric, key=str)
    if both:
        raise StorageConfigurationError(
            f"Storage resources {both} are declared both symmetric and asymmetric"
        )

    tags = {}
    for y in stor_all:
        if y in symmetric:
            topology = Topology.SYMMETRIC
        elif y in asymmetric:
            topology = Topology.ASYMMETRIC
        else:
            raise StorageConfigurationError(
                f"Storage resource {y!r} is declared neither symmetric nor asymmetric"
            )
        tags[y] = StorageTag(topology, participation_for(y, regulation, reserve))

    stray = sorted((symmetric | asymmetric) - frozenset(tags), key=str)
    if stray:
        logger.warning(
            "Ignoring topology declarations for non-storage resources %s", stray
        )

    classification = StorageClassification(tags, long_duration)
    logger.debug("%s", classification)
    return classification

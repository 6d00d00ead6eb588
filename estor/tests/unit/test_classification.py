import pyomo.common.unittest as unittest

from estor.classification import (
    ReserveParticipation,
    StorageClassification,
    Topology,
    classify_storage,
    participation_for,
)
from estor.exceptions import StorageConfigurationError


def example_classification():
    return classify_storage(
        ["bat1", "bat2", "bat3", "pumped", "h2"],
        symmetric=["bat1", "bat2", "bat3"],
        asymmetric=["pumped", "h2"],
        regulation=["bat1", "bat2", "pumped"],
        reserve=["bat1", "bat3"],
        long_duration=["pumped"],
    )


class TestClassification(unittest.TestCase):
    def test_participation(self):
        self.assertIs(
            participation_for("a", {"a"}, {"a"}), ReserveParticipation.REG_RSV
        )
        self.assertIs(participation_for("a", {"a"}, set()), ReserveParticipation.REG_ONLY)
        self.assertIs(participation_for("a", set(), {"a"}), ReserveParticipation.RSV_ONLY)
        self.assertIs(participation_for("a", set(), set()), ReserveParticipation.NO_RES)

        self.assertTrue(ReserveParticipation.REG_RSV.regulation)
        self.assertTrue(ReserveParticipation.REG_RSV.reserve)
        self.assertFalse(ReserveParticipation.REG_ONLY.reserve)
        self.assertFalse(ReserveParticipation.RSV_ONLY.regulation)
        self.assertFalse(ReserveParticipation.NO_RES.regulation)
        self.assertFalse(ReserveParticipation.NO_RES.reserve)

    def test_subsets(self):
        c = example_classification()
        self.assertEqual(
            c.subset(Topology.SYMMETRIC, ReserveParticipation.REG_RSV), {"bat1"}
        )
        self.assertEqual(
            c.subset(Topology.SYMMETRIC, ReserveParticipation.REG_ONLY), {"bat2"}
        )
        self.assertEqual(
            c.subset(Topology.SYMMETRIC, ReserveParticipation.RSV_ONLY), {"bat3"}
        )
        self.assertEqual(c.subset(Topology.SYMMETRIC, ReserveParticipation.NO_RES), set())
        self.assertEqual(
            c.subset(Topology.ASYMMETRIC, ReserveParticipation.REG_ONLY), {"pumped"}
        )
        self.assertEqual(c.subset(Topology.ASYMMETRIC, ReserveParticipation.NO_RES), {"h2"})
        self.assertEqual(c.subset(participation=ReserveParticipation.REG_ONLY), {"bat2", "pumped"})

        self.assertEqual(c.regulation, {"bat1", "bat2", "pumped"})
        self.assertEqual(c.reserve, {"bat1", "bat3"})
        self.assertEqual(c.long_duration, {"pumped"})
        self.assertEqual(c.short_duration, {"bat1", "bat2", "bat3", "h2"})

    def test_subsets_partition_each_topology(self):
        c = example_classification()
        for topology in Topology:
            subsets = [c.subset(topology, p) for p in ReserveParticipation]
            union = frozenset().union(*subsets)
            self.assertEqual(union, c.topology(topology))
            self.assertEqual(sum(len(s) for s in subsets), len(union))

    def test_idempotent(self):
        self.assertEqual(example_classification(), example_classification())

    def test_empty(self):
        c = classify_storage([], [], [])
        self.assertEqual(c.all, set())
        for topology in Topology:
            for participation in ReserveParticipation:
                self.assertEqual(c.subset(topology, participation), set())

    def test_long_duration_restricted_to_storage(self):
        c = StorageClassification(
            {"a": (Topology.SYMMETRIC, ReserveParticipation.NO_RES)},
            long_duration=["a", "thermal"],
        )
        self.assertEqual(c.long_duration, {"a"})

    def test_both_topologies(self):
        with self.assertRaisesRegex(
            StorageConfigurationError, "declared both symmetric and asymmetric"
        ):
            classify_storage(["a"], symmetric=["a"], asymmetric=["a"])

    def test_no_topology(self):
        with self.assertRaisesRegex(
            StorageConfigurationError, "'b' is declared neither"
        ):
            classify_storage(["a", "b"], symmetric=["a"], asymmetric=[])

    def test_stray_declarations(self):
        with self.assertLogs("estor.classification", level="WARNING") as cm:
            c = classify_storage(["a"], symmetric=["a", "gen"], asymmetric=[])
        self.assertIn("gen", cm.output[0])
        self.assertEqual(c.all, {"a"})

"""Tests for canonical serialization and the determinism check."""

import unittest

from scenedig.fingerprint import canonicalize, first_difference, fingerprint, verify_determinism
from scenedig.models import ConnectionRecord, Provenance, SceneGraph
from scenedig.recovery import recover

from tests.builders import embedded_buffer, null_terminated_buffer, sample_tree


def build_scene(order: list[str]) -> SceneGraph:
    scene = SceneGraph()
    for name in order:
        node = scene.get_or_create_node(name, "transform")
        node.set_attr(".v", ["1"], "bool", Provenance.HEURISTIC)
    return scene


class TestCanonical(unittest.TestCase):

    def test_independent_of_insertion_order(self):
        left = build_scene(["b", "a", "c"])
        right = build_scene(["c", "b", "a"])
        self.assertEqual(canonicalize(left), canonicalize(right))
        self.assertEqual(fingerprint(left), fingerprint(right))

    def test_connections_grouped_under_source_node(self):
        scene = build_scene(["a"])
        scene.connections.append(ConnectionRecord("a.out", "b.in"))
        scene.connections.append(ConnectionRecord("ghost.out", "a.in", force=True))
        lines = canonicalize(scene).splitlines()

        node_line = next(i for i, line in enumerate(lines) if line.startswith('node "a"'))
        self.assertIn('  conn "a.out" -> "b.in"', lines[node_line + 1 :])
        self.assertIn('conn "ghost.out" -> "a.in" force', lines)

    def test_attribute_change_changes_fingerprint(self):
        scene = build_scene(["a"])
        before = fingerprint(scene)
        scene.nodes["a"].set_attr(".v", ["0"], "bool", Provenance.HEURISTIC)
        self.assertNotEqual(before, fingerprint(scene))

    def test_first_difference(self):
        self.assertIsNone(first_difference("a\nb\n", "a\nb\n"))
        self.assertEqual(first_difference("a\nb\n", "a\nc\n"), (2, "b", "c"))
        self.assertEqual(first_difference("a\n", "a\nb\n"), (2, "<missing>", "b"))


class TestDeterminism(unittest.TestCase):

    def test_recovery_is_deterministic(self):
        for buffer in (sample_tree(), embedded_buffer(), null_terminated_buffer(), b"\xff" * 10_000):
            report = verify_determinism(buffer, runs=3)
            self.assertTrue(report.deterministic)
            self.assertEqual(len(report.fingerprints), 3)
            self.assertIsNone(report.first_difference)

    def test_same_bytes_same_fingerprint(self):
        self.assertEqual(fingerprint(recover(sample_tree())), fingerprint(recover(sample_tree())))

    def test_different_bytes_different_fingerprint(self):
        self.assertNotEqual(fingerprint(recover(sample_tree())), fingerprint(recover(embedded_buffer())))


if __name__ == "__main__":
    unittest.main()

"""Tests for the mesh assignment cache."""

import unittest

from scenedig.cache import MeshAssignment, SceneCache


class TestSceneCache(unittest.TestCase):

    def test_rejects_empty_capacity(self):
        with self.assertRaises(ValueError):
            SceneCache(0)

    def test_get_counts_hits_and_misses(self):
        cache = SceneCache()
        self.assertIsNone(cache.get("missing"))
        cache.put("scene", {"m": MeshAssignment("m")})
        self.assertEqual(cache.get("scene")["m"].mesh, "m")
        self.assertEqual((cache.hits, cache.misses), (1, 1))

    def test_evicts_least_recently_used(self):
        cache = SceneCache(max_scenes=2)
        cache.put("a", {})
        cache.put("b", {})
        cache.get("a")
        cache.put("c", {})

        self.assertIn("a", cache)
        self.assertNotIn("b", cache)
        self.assertIn("c", cache)
        self.assertEqual(len(cache), 2)

    def test_assignment_created_once(self):
        cache = SceneCache()
        first = cache.assignment("scene", "|grp|bodyShape")
        first.material = "bodyMat"
        second = cache.assignment("scene", "|grp|bodyShape")

        self.assertIs(first, second)
        self.assertEqual(cache.get("scene")["|grp|bodyShape"].material, "bodyMat")

    def test_clear(self):
        cache = SceneCache()
        cache.put("a", {})
        cache.clear()
        self.assertEqual(len(cache), 0)


if __name__ == "__main__":
    unittest.main()

"""Tests for recovery options."""

import json
import os
import tempfile
import unittest

from scenedig.config import RecoveryOptions


class TestRecoveryOptions(unittest.TestCase):

    def test_defaults_keep_threshold_order(self):
        options = RecoveryOptions()
        self.assertLess(options.embedded_min_statements, options.embedded_hard_min_statements)
        self.assertLess(options.embedded_min_score, options.embedded_hard_min_score)

    def test_from_mapping(self):
        options = RecoveryOptions.from_mapping({"max_chunks": 10, "extra_container_tags": ["ZZZZ"]})
        self.assertEqual(options.max_chunks, 10)
        self.assertEqual(options.extra_container_tags, ("ZZZZ",))

    def test_unknown_keys_rejected(self):
        with self.assertRaises(ValueError) as ctx:
            RecoveryOptions.from_mapping({"max_chunk": 10})
        self.assertIn("max_chunk", str(ctx.exception))

    def _write(self, content: str) -> str:
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as f:
            f.write(content)
        self.addCleanup(os.unlink, f.name)
        return f.name

    def test_from_json_file(self):
        path = self._write(json.dumps({"create_chunk_placeholders": False}))
        self.assertFalse(RecoveryOptions.from_json_file(path).create_chunk_placeholders)

    def test_json_must_be_object(self):
        path = self._write("[1, 2]")
        with self.assertRaises(ValueError):
            RecoveryOptions.from_json_file(path)


if __name__ == "__main__":
    unittest.main()

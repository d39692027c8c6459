"""Tests for the chunk tree reader."""

import time
import unittest

from scenedig.models import DecodedKind, RecoveryLog
from scenedig.readers import ChunkTreeReader, build_index

from tests.builders import container, floats, leaf, sample_tree, stringz


def assert_contained(test: unittest.TestCase, chunks) -> None:
    """Every non-root chunk lies inside the nearest preceding shallower container."""
    for i, chunk in enumerate(chunks):
        if chunk.depth == 0:
            continue
        parent = next(c for c in reversed(chunks[:i]) if c.depth == chunk.depth - 1)
        test.assertTrue(parent.is_container)
        test.assertGreaterEqual(chunk.offset, parent.data_offset)
        test.assertLessEqual(chunk.data_end, parent.data_end)


class TestSampleTree(unittest.TestCase):
    """Unregistered root tag recognised by its span."""

    def setUp(self):
        self.index = build_index(sample_tree())

    def test_three_chunks_in_preorder(self):
        self.assertEqual([c.tag for c in self.index.chunks], ["AAAA", "CCCC", "DDDD"])
        self.assertEqual([c.depth for c in self.index.chunks], [0, 1, 1])
        self.assertEqual(self.index.header_tag, "AAAA")
        self.assertEqual(self.index.file_size, 50)

    def test_root_is_container_with_form_type(self):
        root = self.index.chunks[0]
        self.assertTrue(root.is_container)
        self.assertEqual(root.form_type, "BBBB")

    def test_string_leaf(self):
        chunk = self.index.chunks[1]
        self.assertEqual(chunk.offset, 12)
        self.assertEqual(chunk.decoded_kind, DecodedKind.STRINGZ)
        self.assertEqual(chunk.decoded_strings, ["hello"])
        self.assertIn("hello", self.index.extracted_strings)

    def test_float_leaf(self):
        chunk = self.index.chunks[2]
        self.assertEqual(chunk.offset, 26)
        self.assertEqual(chunk.decoded_kind, DecodedKind.FLOAT32_BE)
        self.assertEqual(chunk.decoded_floats, [1.0, 2.0, 3.0, 4.0])

    def test_containment(self):
        assert_contained(self, self.index.chunks)


class TestNesting(unittest.TestCase):

    def test_nested_containers(self):
        inner = container(b"LIST", b"SUBS", [leaf(b"NAME", stringz("abc")), leaf(b"SIZE", b"\x00\x00\x00\x07")])
        data = container(b"FORM", b"TEST", [leaf(b"VERS", stringz("1.0")), inner, leaf(b"ETIM", b"\x00\x00\x00\x01")])
        index = build_index(data)

        self.assertEqual([c.tag for c in index.chunks], ["FORM", "VERS", "LIST", "NAME", "SIZE", "ETIM"])
        self.assertEqual([c.depth for c in index.chunks], [0, 1, 1, 2, 2, 1])
        self.assertEqual(index.chunks[4].decoded_ints, [7])
        self.assertEqual(index.chunks[5].decoded_kind, DecodedKind.UINT32_BE)
        assert_contained(self, index.chunks)

    def test_cat_has_no_form_type(self):
        data = container(b"CAT ", b"", [leaf(b"NAME", stringz("abc"))])
        index = build_index(data)

        self.assertEqual(index.chunks[0].form_type, None)
        self.assertEqual(index.chunks[1].offset, 8)
        self.assertEqual(index.chunks[1].decoded_strings, ["abc"])

    def test_eight_byte_alignment_after_for8(self):
        first = container(b"FOR8", b"TEST", [leaf(b"NAME", b"abcde\x00")], alignment=8)
        second = container(b"FORM", b"NEXT", [leaf(b"NAME", stringz("xyz"))])
        self.assertEqual(len(first), 32)
        index = build_index(first + second)

        self.assertEqual([c.tag for c in index.chunks], ["FOR8", "NAME", "FORM", "NAME"])
        self.assertEqual(index.chunks[2].offset, 32)

    def test_depth_limit(self):
        data = leaf(b"NAME", stringz("abc"))
        for _ in range(4):
            data = container(b"FORM", b"NEST", [data])
        log = RecoveryLog()
        index = ChunkTreeReader(max_depth=2).read(data, log)

        self.assertEqual(len(index.chunks), 3)
        self.assertTrue(any("Maximum depth" in w for w in log.warnings))


class TestDamagedInput(unittest.TestCase):

    def test_four_byte_buffer(self):
        log = RecoveryLog()
        index = build_index(b"FORM", log=log)

        self.assertEqual(index.chunks, [])
        self.assertEqual(index.file_size, 4)
        self.assertTrue(any("too small" in w for w in log.warnings))

    def test_ff_buffer_terminates_empty(self):
        log = RecoveryLog()
        index = build_index(b"\xff" * 10_000, log=log)

        self.assertEqual(index.chunks, [])
        self.assertEqual(index.extracted_strings, [])
        self.assertTrue(any("No container chunk" in w for w in log.warnings))

    def test_repeated_oversized_roots_terminate(self):
        index = build_index(b"FORM\xff\xff\xff\xff" * 100)
        self.assertEqual(index.chunks, [])

    def test_resync_over_large_buffer_is_fast(self):
        data = b"FORM\xff\xff\xff\xff" * 50_000
        started = time.perf_counter()
        index = build_index(data)
        elapsed = time.perf_counter() - started

        self.assertEqual(index.chunks, [])
        self.assertLess(elapsed, 10.0)

    def test_resync_finds_leftmost_tag(self):
        good = container(b"LIST", b"ITEM", [leaf(b"AAAA", b"abcd")])
        data = b"FORM\xff\xff\xff\xffxxCAT8" + b"\xff" * 6 + good
        index = build_index(data)
        self.assertEqual([c.tag for c in index.chunks], ["LIST", "AAAA"])

    def test_child_past_end_of_buffer(self):
        data = b"FORM\x00\x00\x00\x18TEST" + leaf(b"AAAA", b"abcd") + b"BBBB\x00\x00\x00\x64"
        log = RecoveryLog()
        index = build_index(data, log=log)

        self.assertEqual([c.tag for c in index.chunks], ["FORM", "AAAA"])
        self.assertTrue(any("past end of buffer" in w for w in log.warnings))

    def test_child_escaping_parent(self):
        data = (b"FORM\x00\x00\x00\x18TEST" + leaf(b"AAAA", b"abcd")
                + b"BBBB\x00\x00\x00\x08" + b"zzzzzzzz")
        log = RecoveryLog()
        index = build_index(data, log=log)

        self.assertEqual([c.tag for c in index.chunks], ["FORM", "AAAA"])
        self.assertTrue(any("escapes parent" in w for w in log.warnings))

    def test_resync_after_garbage_prefix(self):
        prefix = b"\x01\x02junk!!"
        data = prefix + container(b"FORM", b"TEST", [leaf(b"NAME", stringz("abc"))])
        index = build_index(data)

        self.assertEqual(index.chunks[0].offset, len(prefix))
        self.assertEqual(index.chunks[1].decoded_strings, ["abc"])

    def test_chunk_limit(self):
        children = [leaf(b"ITEM", floats(float(i) + 1.0)) for i in range(10)]
        log = RecoveryLog()
        index = build_index(container(b"FORM", b"TEST", children), max_chunks=5, log=log)

        self.assertEqual(len(index.chunks), 5)
        self.assertTrue(any("Chunk limit" in w for w in log.warnings))

    def test_extra_container_tag(self):
        data = b"\x01" * 4 + container(b"ZZZZ", b"TEST", [leaf(b"NAME", stringz("abc"))])
        index = build_index(data, container_tags=["ZZZZ"])

        self.assertEqual([c.tag for c in index.chunks], ["ZZZZ", "NAME"])
        self.assertEqual(index.chunks[0].offset, 4)

    def test_unknown_payload_is_scavenged(self):
        data = container(b"FORM", b"TEST", [leaf(b"XXXX", b"\x01\x02pCubeShape1\x03\x04\x05")])
        index = build_index(data)

        self.assertEqual(index.chunks[1].decoded_kind, DecodedKind.UNKNOWN)
        self.assertEqual(index.extracted_strings, ["pCubeShape1"])


if __name__ == "__main__":
    unittest.main()

"""End-to-end tests for staged recovery."""

import os
import tempfile
import unittest

from scenedig.cache import SceneCache
from scenedig.config import RecoveryOptions
from scenedig.merge import PROVENANCE_ATTR
from scenedig.models import BinaryIndex, Provenance, SceneGraph, SourceKind
from scenedig.parsers import CommandTextParser
from scenedig.recovery import STAGES, Stage, recover, recover_file

from tests.builders import (
    container,
    embedded_buffer,
    floats,
    leaf,
    null_terminated_buffer,
    sample_tree,
    stringz,
)


class FailingParser:
    """Text parser that always raises."""

    def parse_text(self, label, text, options):
        raise RuntimeError("boom")


class RecordingParser:
    """Text parser that records what it was handed and delegates."""

    def __init__(self):
        self.calls = []

    def parse_text(self, label, text, options):
        self.calls.append((label, len(text)))
        return CommandTextParser().parse_text(label, text, options)


def mesh_file() -> bytes:
    return container(b"FORM", b"SCNE", [
        leaf(b"NAME", stringz("|grp|body|bodyShape", "mesh")),
        leaf(b"XSHD", stringz("shadingEngine", "bodySG", "surfaceShader", "bodyMat", "body_diffuse.png")),
        leaf(b"PNTS", floats(-1.0, 0.5, 2.0, 3.0, -4.0, 1.0, 0.0, 2.5, -0.5, 1.5, 2.0, -3.0)),
        leaf(b"SIZE", b"\x00\x00\x00\x05\x00\x00\x00\x06\x00\x00\x00\x07"),
    ])


class TestEmbeddedText(unittest.TestCase):

    def test_nodes_and_parent(self):
        scene = recover(embedded_buffer())

        self.assertIn("A", scene.nodes)
        self.assertIn("B", scene.nodes)
        self.assertEqual(scene.nodes["B"].parent_name, "A")
        for name in ("A", "B"):
            self.assertEqual(scene.nodes[name].provenance, Provenance.EMBEDDED_TEXT)
            self.assertIn("binary:embeddedText", scene.nodes[name].tokens(PROVENANCE_ATTR))

    def test_counters_and_audit(self):
        scene = recover(embedded_buffer())

        self.assertTrue(scene.embedded_text_parsed)
        self.assertEqual(scene.extracted_statement_count, 2)
        self.assertEqual(scene.extracted_confidence, 2)
        self.assertTrue(scene.extracted_text.startswith("createNode transform"))
        self.assertIn("embeddedText", [s.command for s in scene.raw_statements])
        self.assertFalse(scene.used_chunk_placeholders)

    def test_accepted_by_thresholds_without_low_confidence(self):
        options = RecoveryOptions(
            allow_low_confidence_embedded_text=False,
            embedded_min_statements=2,
            embedded_min_score=2,
        )
        scene = recover(embedded_buffer(), options)
        self.assertEqual(scene.nodes["B"].parent_name, "A")

    def test_rejected_by_thresholds(self):
        options = RecoveryOptions(allow_low_confidence_embedded_text=False)
        scene = recover(embedded_buffer(), options)

        self.assertNotIn("A", scene.nodes)
        self.assertTrue(any("rejected by threshold" in i for i in scene.log.infos))

    def test_stage_disabled(self):
        scene = recover(embedded_buffer(), RecoveryOptions(extract_embedded_text=False))

        self.assertNotIn("A", scene.nodes)
        self.assertIn("embedded-text: disabled", scene.log.infos)

    def test_enumerate_reads_text_extracted_earlier(self):
        by_name = {stage.name: stage for stage in STAGES}
        stages = [by_name["index"], by_name["embedded-text"], by_name["enumerate"]]
        scene = recover(embedded_buffer(), text_parser=FailingParser(), stages=stages)

        self.assertEqual(scene.nodes["B"].parent_name, "A")
        self.assertEqual(scene.nodes["B"].provenance, Provenance.EMBEDDED_TEXT)
        self.assertTrue(any("embedded-text failed" in w for w in scene.log.warnings))


class TestNullTerminated(unittest.TestCase):

    def test_reconstructed_statements_merged(self):
        scene = recover(null_terminated_buffer())

        node = scene.nodes["pCube1"]
        self.assertEqual(node.node_type, "transform")
        self.assertEqual(node.provenance, Provenance.NULL_TERMINATED)
        self.assertEqual(node.tokens(".t"), ["1.5", "2.0", "3.0"])
        self.assertIn("binary:nullTerminated(s=2,score=11)", node.tokens(PROVENANCE_ATTR))
        self.assertEqual(scene.null_terminated_statement_count, 2)
        self.assertEqual(scene.null_terminated_score, 11)

    def test_rejected_without_low_confidence(self):
        options = RecoveryOptions(allow_low_confidence_null_terminated=False)
        scene = recover(null_terminated_buffer(), options)
        self.assertNotIn("pCube1", scene.nodes)

    def test_text_handed_to_parser_is_capped(self):
        statements = b"\x00".join([b"setAttr", b".tx", b"1.5"] * 2000)
        buffer = b"\x00" * 8 + statements + b"\x00" * 8
        options = RecoveryOptions(max_extracted_chars=1000, extract_embedded_text=False)
        parser = RecordingParser()
        scene = recover(buffer, options, text_parser=parser)

        self.assertIn("buffer::nullTerminated", [label for label, _ in parser.calls])
        for _, size in parser.calls:
            self.assertLessEqual(size, 1000)
        self.assertTrue(any("capped at 1000" in w for w in scene.log.warnings))

    def test_short_buffer_skipped(self):
        buffer = b"\x00".join([b"createNode", b"transform", b"-n", b"pCube1"])
        scene = recover(buffer)
        self.assertEqual(scene.null_terminated_statement_count, 0)
        self.assertNotIn("pCube1", scene.nodes)


class TestStructuredFile(unittest.TestCase):

    def setUp(self):
        self.cache = SceneCache()
        self.scene = recover(mesh_file(), cache=self.cache)

    def test_dag_path_enumerated(self):
        nodes = self.scene.nodes
        self.assertEqual(list(nodes)[:3], ["|grp", "|grp|body", "|grp|body|bodyShape"])
        self.assertEqual(nodes["|grp|body|bodyShape"].node_type, "mesh")
        self.assertEqual(nodes["|grp"].provenance, Provenance.STRING_TABLE)
        self.assertEqual(nodes["|grp|body|bodyShape"].provenance, Provenance.STRUCTURED)

    def test_shape_links(self):
        nodes = self.scene.nodes
        self.assertEqual(nodes["|grp|body"].tokens(".shapeChild"), ["|grp|body|bodyShape"])
        self.assertEqual(nodes["|grp|body|bodyShape"].tokens(".parentTransform"), ["|grp|body"])

    def test_shading_and_texture_tags(self):
        shape = self.scene.nodes["|grp|body|bodyShape"]
        self.assertEqual(shape.tokens(".shadingGroupName"), ["bodySG"])
        self.assertEqual(shape.tokens(".materialName"), ["bodyMat"])
        self.assertEqual(shape.tokens(".textureHint"), ["body_diffuse.png"])

    def test_mesh_chunk_refs_and_cache(self):
        shape = self.scene.nodes["|grp|body|bodyShape"]
        self.assertEqual(shape.tokens(".meshFloatChunkRef"),
                         ["TAG=PNTS;OFF=114;DATA=122;SIZE=48;KIND=float32;DEPTH=1"])
        self.assertEqual(shape.tokens(".meshUIntChunkRef"),
                         ["TAG=SIZE;OFF=170;DATA=178;SIZE=12;KIND=uint32;DEPTH=1"])

        assignment = self.cache.get(self.scene.raw_sha256)["|grp|body|bodyShape"]
        self.assertEqual(assignment.float_chunk_offsets, [114])
        self.assertEqual(assignment.uint_chunk_offsets, [170])
        self.assertEqual(assignment.shading_group, "bodySG")
        self.assertEqual(assignment.material, "bodyMat")
        self.assertEqual(assignment.texture, "body_diffuse.png")

    def test_mesh_hints(self):
        self.assertIn("body_diffuse.png", self.scene.string_table)
        self.assertTrue(all(h.chunk_tag for h in self.scene.mesh_hints))


class TestRobustness(unittest.TestCase):

    def test_four_byte_buffer(self):
        scene = recover(b"FORM")

        self.assertIsInstance(scene, SceneGraph)
        self.assertEqual(scene.binary_index.file_size, 4)
        self.assertTrue(any("too small" in w for w in scene.log.warnings))
        self.assertEqual(scene.nodes, {})

    def test_non_empty_for_arbitrary_bytes(self):
        for buffer in (b"\xff" * 10_000, bytes(range(256)) * 4, b"\x00" * 12, sample_tree()):
            scene = recover(buffer)
            self.assertTrue(scene.nodes, f"no nodes for {buffer[:16]!r}")

    def test_chunk_placeholders_for_sample_tree(self):
        scene = recover(sample_tree())

        self.assertTrue(scene.used_chunk_placeholders)
        self.assertIn("|__chunks|d01|00001_CCCC_0000000C", scene.nodes)
        self.assertEqual(scene.nodes["|__chunks"].provenance, Provenance.CHUNK_PLACEHOLDER)

    def test_failing_stage_is_isolated(self):
        scene = recover(embedded_buffer(), text_parser=FailingParser())

        self.assertTrue(any(
            w.startswith("embedded-text failed (continue): RuntimeError: boom")
            for w in scene.log.warnings
        ))
        self.assertTrue(scene.nodes)
        self.assertEqual(scene.source_kind, SourceKind.BINARY)

    def test_index_failure_installs_stub(self):
        def broken(ctx):
            raise ValueError("bad index")

        stages = [Stage("index", broken)] + [s for s in STAGES if s.name != "index"]
        scene = recover(sample_tree(), stages=stages)

        self.assertIsInstance(scene.binary_index, BinaryIndex)
        self.assertEqual(scene.binary_index.file_size, 50)
        self.assertEqual(scene.binary_index.chunks, [])
        self.assertTrue(any(w.startswith("index failed (continue): ValueError") for w in scene.log.warnings))


class TestRecoverFile(unittest.TestCase):

    def test_missing_file(self):
        scene = recover_file("/nonexistent/scene.bin")

        self.assertTrue(scene.log.has_errors)
        self.assertEqual(scene.nodes, {})
        self.assertEqual(scene.source_path, "/nonexistent/scene.bin")

    def test_reads_file(self):
        with tempfile.NamedTemporaryFile(suffix=".bin", delete=False) as f:
            f.write(embedded_buffer())
            path = f.name
        self.addCleanup(os.unlink, path)

        scene = recover_file(path)
        self.assertEqual(scene.source_path, path)
        self.assertEqual(scene.nodes["B"].parent_name, "A")


if __name__ == "__main__":
    unittest.main()

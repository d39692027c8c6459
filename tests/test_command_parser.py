"""Tests for the command text parser."""

import unittest

from scenedig.config import RecoveryOptions
from scenedig.models import Provenance, SourceKind
from scenedig.parsers import CommandTextParser, split_statements, tokenize
from scenedig.parsers.command_text import is_flag
from scenedig.protocols import TextSceneParser


def parse(text: str, **options):
    return CommandTextParser().parse_text("test", text, RecoveryOptions(**options))


class TestSplitting(unittest.TestCase):

    def test_semicolon_inside_quotes(self):
        statements = split_statements('setAttr ".note" -type "string" "a;b"; createNode mesh -n "m";')
        self.assertEqual(len(statements), 2)
        self.assertEqual(statements[0].text, 'setAttr ".note" -type "string" "a;b"')

    def test_line_spans(self):
        statements = split_statements('createNode transform\n  -n "A";\n\nsetAttr ".v" 1;')
        self.assertEqual((statements[0].line_start, statements[0].line_end), (1, 2))
        self.assertEqual((statements[1].line_start, statements[1].line_end), (4, 4))

    def test_trailing_fragment_kept(self):
        statements = split_statements("createNode mesh -n m; select m")
        self.assertEqual([s.text for s in statements], ["createNode mesh -n m", "select m"])

    def test_tokenize_unquotes(self):
        self.assertEqual(tokenize('createNode transform -n "my node"'),
                         ["createNode", "transform", "-n", "my node"])

    def test_tokenize_unbalanced_quotes(self):
        self.assertEqual(tokenize('setAttr "a.b 1'), ["setAttr", "a.b", "1"])

    def test_is_flag(self):
        self.assertTrue(is_flag("-n"))
        self.assertFalse(is_flag("-1.5"))
        self.assertFalse(is_flag("-.5"))
        self.assertFalse(is_flag("-"))


class TestParser(unittest.TestCase):

    def test_protocol(self):
        self.assertIsInstance(CommandTextParser(), TextSceneParser)

    def test_create_with_parent(self):
        scene = parse('createNode transform -n "A"; createNode mesh -n "AShape" -p "A";')
        self.assertEqual(list(scene.nodes), ["A", "AShape"])
        self.assertEqual(scene.nodes["AShape"].node_type, "mesh")
        self.assertEqual(scene.nodes["AShape"].parent_name, "A")
        self.assertEqual(scene.nodes["A"].provenance, Provenance.TEXT_COMMANDS)
        self.assertEqual(scene.source_kind, SourceKind.TEXT)
        self.assertEqual(scene.source_path, "test")

    def test_parent_created_on_demand(self):
        scene = parse('createNode mesh -n "s" -p "t";')
        self.assertEqual(list(scene.nodes), ["t", "s"])
        self.assertEqual(scene.nodes["t"].provenance, Provenance.TEXT_COMMANDS)

    def test_create_without_name_warns(self):
        scene = parse("createNode transform;")
        self.assertEqual(scene.nodes, {})
        self.assertTrue(any("missing -n" in w for w in scene.log.warnings))

    def test_set_attr_on_current_node(self):
        scene = parse('createNode transform -n "A"; setAttr ".t" -type "double3" 1 2 3;')
        value = scene.nodes["A"].get(".t")
        self.assertEqual(value.tokens, ["1", "2", "3"])
        self.assertEqual(value.type_name, "double3")
        self.assertEqual(value.provenance, Provenance.TEXT_COMMANDS)

    def test_set_attr_with_flags_and_full_plug(self):
        scene = parse('createNode transform -n "A"; createNode transform -n "B"; setAttr -k off "A.v" no;')
        self.assertEqual(scene.nodes["A"].tokens(".v"), ["no"])
        self.assertEqual(scene.nodes["A"].get(".v").type_name, "raw")
        self.assertFalse(scene.nodes["B"].has(".v"))

    def test_connect_attr(self):
        scene = parse('connectAttr -f "a.outMesh" "b.inMesh"; connectAttr "a.x" "b.y";')
        self.assertEqual([(c.source, c.destination, c.force) for c in scene.connections],
                         [("a.outMesh", "b.inMesh", True), ("a.x", "b.y", False)])

    def test_connect_attr_missing_args(self):
        scene = parse('connectAttr "a.x";')
        self.assertEqual(scene.connections, [])
        self.assertEqual(len(scene.log.warnings), 1)

    def test_parent_to_world(self):
        scene = parse('createNode transform -n "A"; createNode transform -n "B" -p "A"; parent -w "B";')
        self.assertIsNone(scene.nodes["B"].parent_name)

    def test_parent_cycle_refused(self):
        scene = parse('createNode transform -n "A"; createNode transform -n "B" -p "A"; parent "A" "B";')
        self.assertIsNone(scene.nodes["A"].parent_name)
        self.assertTrue(any("cycle" in w for w in scene.log.warnings))

    def test_rename_keeps_order_and_children(self):
        scene = parse('createNode transform -n "A"; createNode transform -n "C" -p "A"; rename "A" "Z";')
        self.assertEqual(list(scene.nodes), ["Z", "C"])
        self.assertEqual(scene.nodes["C"].parent_name, "Z")
        self.assertEqual(scene.nodes["Z"].name, "Z")

    def test_rename_collision_refused(self):
        scene = parse('createNode transform -n "A"; createNode transform -n "B"; rename "A" "B";')
        self.assertEqual(list(scene.nodes), ["A", "B"])
        self.assertTrue(any("name exists" in w for w in scene.log.warnings))

    def test_raw_statements(self):
        scene = parse('requires maya "2024"; createNode transform -n "A";')
        self.assertEqual([s.command for s in scene.raw_statements], ["requires", "createNode"])
        self.assertEqual(scene.raw_statements[0].tokens, ["requires", "maya", "2024"])

    def test_raw_statements_disabled(self):
        scene = parse('createNode transform -n "A";', keep_raw_statements=False)
        self.assertEqual(scene.raw_statements, [])
        self.assertIn("A", scene.nodes)

    def test_raw_statement_cap(self):
        scene = parse("select a; select b; select c;", max_raw_statements=2)
        self.assertEqual(len(scene.raw_statements), 2)


if __name__ == "__main__":
    unittest.main()

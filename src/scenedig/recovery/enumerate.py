"""Deterministic node enumeration from string evidence."""

import re

from scenedig.models import Provenance
from scenedig.models.scene import split_dag_segments
from scenedig.recovery.context import RecoveryContext

_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_:]*$")

_CREATE_NODE = re.compile(
    r'\bcreateNode\s+(?P<type>\S+)\s+.*?-n\s+"(?P<name>[^"]+)"'
    r'(?:\s+-p\s+"(?P<parent>[^"]+)")?.*?;',
    re.DOTALL,
)


def normalize_dag_candidate(raw: str) -> str:
    """Return '|a|b|c' for a clean DAG path with at least two segments, else ''."""
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    if len(text) < 3 or text[0] != "|" or any(ch in text for ch in " \t\r\n"):
        return ""
    segments = split_dag_segments(text.rstrip("|"))
    if len(segments) < 2:
        return ""
    if any(len(s) > 128 or not _SEGMENT.match(s) for s in segments):
        return ""
    return "|" + "|".join(segments)


def _mark(node, source: str, dag_path: str) -> None:
    node.set_default(".enumerated", ["true"], "bool", Provenance.STRING_TABLE)
    node.set_default(".enumeratedSource", [source], "string", Provenance.STRING_TABLE)
    node.set_default(".enumeratedDagPath", [dag_path], "string", Provenance.STRING_TABLE)


def enumerate_nodes(ctx: RecoveryContext) -> None:
    """Create nodes from createNode statements and DAG paths in the string table.

    Additive only: existing nodes are never removed and only placeholder
    types are filled in.
    """
    scene = ctx.scene
    options = ctx.options
    max_nodes = options.max_enumerated_nodes
    created = 0

    # extracted_text is only set here when text extraction ran earlier in a custom stage list
    if scene.extracted_text:
        for match in _CREATE_NODE.finditer(scene.extracted_text):
            if created >= max_nodes:
                break
            name = match.group("name")
            if name in scene.nodes:
                continue
            node = scene.get_or_create_node(name, match.group("type"), match.group("parent"))
            scene.mark_provenance(name, Provenance.EMBEDDED_TEXT, "createNode")
            _mark(node, "createNode", name)
            created += 1

    considered = accepted = skipped = 0
    seen = set()
    for raw in scene.string_table:
        if created >= max_nodes or considered >= options.max_dag_paths:
            break
        if "|" not in raw:
            continue
        considered += 1
        path = normalize_dag_candidate(raw)
        if not path or path in seen:
            continue
        seen.add(path)
        accepted += 1

        segments = split_dag_segments(path)
        for i in range(1, len(segments) + 1):
            if created >= max_nodes:
                break
            prefix = "|" + "|".join(segments[:i])
            leaf_type = _leaf_type(segments[i - 1]) if i == len(segments) else "transform"
            new = scene.ensure_dag_path(prefix, Provenance.STRING_TABLE, leaf_type=leaf_type)
            if new:
                _mark(scene.nodes[prefix], "stringTableDagPath", path)
                created += len(new)
            else:
                skipped += 1

    ctx.log.info(f"Enumerate: created={created}, acceptedDag={accepted}, skippedExisting={skipped}")


def _leaf_type(segment: str) -> str:
    return "mesh" if segment.endswith("Shape") else "transform"

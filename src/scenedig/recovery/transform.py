"""Translate/rotate/scale confirmation from leaf chunks that name a node."""

import re
from typing import Optional

from scenedig.models import Chunk, NodeRecord, Provenance, read_float
from scenedig.models.scene import normalize_dag
from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.evidence import looks_like_dag_path, looks_like_node_leaf


TRS_CHANNELS = ((".t", "translate"), (".r", "rotate"), (".s", "scale"))


def _build_hints() -> dict[str, tuple[str, int]]:
    """Hint string -> (attribute key, value count)."""
    hints = {}
    for key, base in TRS_CHANNELS:
        for name in (key[1:], base, base.capitalize(), base + "3"):
            hints[name] = hints["." + name] = (key, 3)
        for axis in "xyz":
            for name in (key[1:] + axis, base + axis.upper(), base.capitalize() + axis.upper()):
                hints[name] = hints["." + name] = (key + axis, 1)
    return hints


TRS_HINTS = _build_hints()

TRANSFORM_LIKE_TYPES = frozenset({"transform", "joint", "camera", "unknown", "mesh"})

_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def _target(ctx: RecoveryContext, strings: list[str], leaf_map: dict[str, list[str]]) -> Optional[str]:
    for text in strings:
        if looks_like_dag_path(text):
            path = normalize_dag(text)
            if path in ctx.scene.nodes:
                return path
            break
    for text in strings:
        if looks_like_node_leaf(text) and text in leaf_map:
            return leaf_map[text][0]
    return None


def _values(chunk: Chunk, count: int) -> Optional[list[float]]:
    if chunk.decoded_floats and len(chunk.decoded_floats) >= count:
        return chunk.decoded_floats[:count]
    parsed = [float(text) for text in chunk.decoded_strings or [] if _NUMBER.match(text)]
    if len(parsed) >= count:
        return parsed[:count]
    return None


def compose_channels(node: NodeRecord) -> int:
    """Fill missing compound .t/.r/.s values from three known axis channels.

    Axis values are read from either the short (".tx") or long
    (".translateX") attribute name.

    Returns:
        Number of compound attributes written
    """
    composed = 0
    for key, base in TRS_CHANNELS:
        if node.has(key):
            continue
        values = [read_float(node, (key + axis, f".{base}{axis.upper()}")) for axis in "xyz"]
        if any(v is None for v in values):
            continue
        node.set_attr(key, [format(v, ".9g") for v in values], "float3", Provenance.STRUCTURED)
        composed += 1
    return composed


def confirm_transforms(ctx: RecoveryContext) -> None:
    """Write TRS attributes at STRUCTURED confidence where a chunk names both node and channel."""
    scene = ctx.scene
    leaf_map = scene.leaf_map()
    applied = 0
    touched = set()

    for chunk in ctx.chunks:
        if chunk.is_container or not chunk.decoded_strings:
            continue
        name = _target(ctx, chunk.decoded_strings, leaf_map)
        if name is None:
            continue
        node = scene.nodes[name]
        if node.node_type not in TRANSFORM_LIKE_TYPES:
            continue

        for text in chunk.decoded_strings:
            hint = TRS_HINTS.get(text)
            if hint is None:
                continue
            key, count = hint
            values = _values(chunk, count)
            if values is None:
                continue
            tokens = [format(v, ".9g") for v in values]
            type_name = "float3" if count == 3 else "float"
            if node.set_attr(key, tokens, type_name, Provenance.STRUCTURED):
                node.set_default(".trsChunkId", [chunk.tag], "string", Provenance.STRUCTURED)
                node.set_default(".trsChunkOffset", [str(chunk.offset)], "long", Provenance.STRUCTURED)
                node.set_default(".trsAttr", [key], "string", Provenance.STRUCTURED)
                applied += 1
                touched.add(name)

    composed = sum(compose_channels(scene.nodes[name]) for name in sorted(touched))
    ctx.log.info(f"Transforms: applied={applied}, composed={composed}")

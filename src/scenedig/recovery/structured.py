"""Node and connection confirmation from tagged chunk payloads."""

from typing import Optional

from scenedig.models import Chunk, Provenance, RawStatement
from scenedig.models.scene import normalize_dag
from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.evidence import (
    KNOWN_NODE_TYPES,
    looks_like_dag_path,
    looks_like_node_name,
    looks_like_plug,
)

MAX_STRUCTURED_CONNECTIONS = 20_000


def _named_type(strings: list[str]) -> Optional[tuple[str, str]]:
    """(type, name) for the first known type token with a usable name nearby."""
    for i, text in enumerate(strings):
        if text not in KNOWN_NODE_TYPES:
            continue
        if i + 1 < len(strings) and looks_like_node_name(strings[i + 1]):
            return text, strings[i + 1]
        for other in strings:
            if other != text and other not in KNOWN_NODE_TYPES and looks_like_node_name(other):
                return text, other
    return None


def _stamp(node, chunk: Chunk) -> None:
    level = Provenance.STRUCTURED
    node.set_default(".chunkId", [chunk.tag], "string", level)
    node.set_default(".chunkOffset", [str(chunk.offset)], "long", level)
    if chunk.preview:
        node.set_default(".chunkPreview", [chunk.preview], "string", level)


def confirm_structured(ctx: RecoveryContext) -> None:
    """Type nodes named alongside a known type token and link consecutive plugs."""
    scene = ctx.scene
    leaf_map = scene.leaf_map()
    keys = scene.connection_keys()
    confirmed = created = linked = 0

    for chunk in ctx.chunks:
        strings = chunk.decoded_strings
        if not strings:
            continue

        found = _named_type(strings)
        if found:
            node_type, name = found
            if looks_like_dag_path(name):
                path = normalize_dag(name)
                new = scene.ensure_dag_path(path, Provenance.STRUCTURED, leaf_type=node_type)
                created += len(new)
                targets = [path]
            else:
                targets = leaf_map.get(name, [])
            for target in targets:
                node = scene.nodes[target]
                node.offer_type(node_type, Provenance.STRUCTURED)
                scene.mark_provenance(target, Provenance.STRUCTURED, "binary:structured")
                _stamp(node, chunk)
                confirmed += 1

        for source, destination in zip(strings, strings[1:]):
            if linked >= MAX_STRUCTURED_CONNECTIONS:
                break
            if source == destination or not (looks_like_plug(source) and looks_like_plug(destination)):
                continue
            if scene.add_connection(source, destination, existing=keys):
                scene.raw_statements.append(RawStatement(
                    command="connectStructured",
                    text=f'connectAttr "{source}" "{destination}"; // chunk {chunk.tag} @ {chunk.offset}',
                    tokens=["connectAttr", source, destination],
                ))
                linked += 1

    ctx.log.info(f"Structured: confirmed={confirmed}, created={created}, connections={linked}")

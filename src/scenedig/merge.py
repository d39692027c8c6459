"""Fold a secondary scene into a primary one with provenance tracking."""

from dataclasses import dataclass
from typing import Optional

from scenedig.models import AttributeValue, NodeRecord, Provenance, SceneGraph

PROVENANCE_ATTR = ".provenance"

# Tag prefix -> provenance level, first match wins
TAG_PROVENANCE: list[tuple[str, Provenance]] = [
    ("binary:embeddedText", Provenance.EMBEDDED_TEXT),
    ("binary:nullTerminated", Provenance.NULL_TERMINATED),
    ("binary:structured", Provenance.STRUCTURED),
    ("binary:stringTable", Provenance.STRING_TABLE),
    ("binary:heuristic", Provenance.HEURISTIC),
    ("binary:chunk", Provenance.CHUNK_PLACEHOLDER),
    ("text", Provenance.TEXT_COMMANDS),
]


@dataclass
class MergeStats:
    nodes_added: int = 0
    nodes_upgraded: int = 0
    attrs_written: int = 0
    connections_added: int = 0

    def __str__(self) -> str:
        return (
            f"nodesAdded={self.nodes_added}, nodesUpgraded={self.nodes_upgraded}, "
            f"attrsWritten={self.attrs_written}, connsAdded={self.connections_added}"
        )


def provenance_for_tag(tag: str) -> Provenance:
    """Derive the provenance level from a merge tag such as 'binary:embeddedText'."""
    for prefix, level in TAG_PROVENANCE:
        if tag.startswith(prefix):
            return level
    return Provenance.HEURISTIC


def merge_into(
    primary: SceneGraph,
    secondary: SceneGraph,
    provenance_tag: str,
    provenance: Optional[Provenance] = None,
) -> MergeStats:
    """Merge secondary into primary in place.

    Missing nodes are inserted with the merge provenance (parents first).
    Existing nodes get their type and parent filled only when those are
    placeholder-ish, and attributes are written key by key unless the
    primary holds a higher-confidence value. Connections are unioned by
    (source, destination). Every touched node is stamped with the tag in
    its '.provenance' attribute.

    Args:
        primary: Scene receiving the data
        secondary: Scene produced by a lower- or higher-confidence route
        provenance_tag: Audit tag recorded on touched nodes
        provenance: Level for merged data; derived from the tag if omitted

    Returns:
        Counters describing what changed
    """
    level = provenance if provenance is not None else provenance_for_tag(provenance_tag)
    stats = MergeStats()

    for name, incoming in secondary.nodes.items():
        if name not in primary.nodes:
            _insert_with_ancestors(primary, secondary, name, level, provenance_tag, stats)
            continue

        node = primary.nodes[name]
        if node.offer_type(incoming.node_type, level):
            stats.nodes_upgraded += 1
        if not node.parent_name and incoming.parent_name:
            if incoming.parent_name not in primary.nodes and incoming.parent_name in secondary.nodes:
                _insert_with_ancestors(
                    primary, secondary, incoming.parent_name, level, provenance_tag, stats
                )
            if primary.set_parent(name, incoming.parent_name):
                stats.nodes_upgraded += 1

        for key, value in incoming.attributes.items():
            if key == PROVENANCE_ATTR:
                continue
            if node.set_attr(key, value.tokens, value.type_name, min(value.provenance, level)):
                stats.attrs_written += 1

        primary.mark_provenance(name, level, provenance_tag)
        stamp_provenance(node, provenance_tag, level)

    existing = primary.connection_keys()
    for connection in secondary.connections:
        if primary.add_connection(connection.source, connection.destination,
                                  connection.force, existing):
            stats.connections_added += 1

    primary.raw_statements.extend(secondary.raw_statements)
    primary.log.info(f"SceneMerge({provenance_tag}): {stats}")
    return stats


def _insert_with_ancestors(
    primary: SceneGraph,
    secondary: SceneGraph,
    name: str,
    level: Provenance,
    tag: str,
    stats: MergeStats,
) -> None:
    # Collect the chain of ancestors missing from primary, nearest first
    chain = []
    seen = set()
    current: Optional[str] = name
    while current and current not in primary.nodes and current not in seen:
        seen.add(current)
        chain.append(current)
        source = secondary.nodes.get(current)
        current = source.parent_name if source is not None else None

    for missing in reversed(chain):
        source = secondary.nodes.get(missing)
        node = NodeRecord(name=missing, provenance=level, provenance_detail=tag)
        if source is not None:
            node.node_type = source.node_type
            for key, value in source.attributes.items():
                if key == PROVENANCE_ATTR:
                    continue
                copied = value.copy()
                copied.provenance = min(value.provenance, level)
                node.attributes[key] = copied
                stats.attrs_written += 1
        primary.nodes[missing] = node
        if source is not None and source.parent_name and source.parent_name != missing:
            primary.set_parent(missing, source.parent_name)
        stamp_provenance(node, tag, level)
        stats.nodes_added += 1


def stamp_provenance(node: NodeRecord, tag: str, level: Provenance = Provenance.UNKNOWN) -> None:
    """Append tag to the node's '.provenance' attribute (once)."""
    current = node.attributes.get(PROVENANCE_ATTR)
    if current is None:
        node.attributes[PROVENANCE_ATTR] = AttributeValue("string", [tag], level)
        return
    if tag not in current.tokens:
        current.tokens.append(tag)
    if level > current.provenance:
        current.provenance = level

"""Scene graph models shared by every recovery pass."""

import hashlib
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Iterable, Optional

from scenedig.models.chunk import BinaryIndex
from scenedig.models.log import RecoveryLog

PLACEHOLDER_TYPES = frozenset({"", "unknown", "transform"})


class SourceKind(Enum):
    UNKNOWN = "unknown"
    TEXT = "text"
    BINARY = "binary"


class Provenance(IntEnum):
    """Recovery route that produced or confirmed a node or attribute.

    Values are ordered by confidence: a higher value is never overwritten
    by a lower one.
    """

    UNKNOWN = 0
    CHUNK_PLACEHOLDER = 10
    HEURISTIC = 20
    STRING_TABLE = 30
    STRUCTURED = 40
    NULL_TERMINATED = 50
    EMBEDDED_TEXT = 60
    TEXT_COMMANDS = 70


@dataclass
class AttributeValue:
    """Raw attribute value: ordered string tokens plus a type hint."""

    type_name: str
    tokens: list[str] = field(default_factory=list)
    provenance: Provenance = Provenance.UNKNOWN

    def copy(self) -> "AttributeValue":
        return AttributeValue(self.type_name, list(self.tokens), self.provenance)


@dataclass
class NodeRecord:
    """A scene node keyed by its unique name."""

    name: str
    node_type: str = "unknown"
    parent_name: Optional[str] = None
    provenance: Provenance = Provenance.UNKNOWN
    provenance_detail: Optional[str] = None
    attributes: dict[str, AttributeValue] = field(default_factory=dict)

    def get(self, key: str) -> Optional[AttributeValue]:
        return self.attributes.get(key)

    def tokens(self, key: str) -> list[str]:
        value = self.attributes.get(key)
        return list(value.tokens) if value else []

    def has(self, key: str) -> bool:
        return key in self.attributes

    def set_attr(
        self,
        key: str,
        tokens: Iterable[str],
        type_name: str = "string",
        provenance: Provenance = Provenance.HEURISTIC,
    ) -> bool:
        """Write an attribute unless a higher-confidence value is present.

        Returns:
            True if the attribute was written
        """
        existing = self.attributes.get(key)
        if existing is not None and existing.provenance > provenance:
            return False
        self.attributes[key] = AttributeValue(type_name, [str(t) for t in tokens], provenance)
        return True

    def set_default(
        self,
        key: str,
        tokens: Iterable[str],
        type_name: str = "string",
        provenance: Provenance = Provenance.HEURISTIC,
    ) -> bool:
        """Write an attribute only if the key is absent."""
        if key in self.attributes:
            return False
        return self.set_attr(key, tokens, type_name, provenance)

    def offer_type(self, node_type: str, provenance: Provenance) -> bool:
        """Upgrade a placeholder-ish node type.

        Only applies when the current type carries no real information and
        the node was not produced by a higher-confidence route.
        """
        if not node_type or node_type == "unknown":
            return False
        if self.node_type not in PLACEHOLDER_TYPES:
            return False
        if self.provenance > provenance:
            return False
        if self.node_type == node_type:
            return False
        self.node_type = node_type
        return True

    @property
    def leaf(self) -> str:
        """Short name: last segment of a '|'-separated path."""
        return leaf_of_dag(self.name)


@dataclass(frozen=True)
class ConnectionRecord:
    """Directed edge between two attribute plugs."""

    source: str
    destination: str
    force: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.destination)


@dataclass
class RawStatement:
    """A statement kept for audit: parsed text or a recovery-stage note."""

    command: str
    text: str
    tokens: Optional[list[str]] = None
    line_start: int = -1
    line_end: int = -1


@dataclass(frozen=True)
class MeshHint:
    """Chunk whose decoded strings mention a mesh-related keyword."""

    chunk_tag: str
    form_type: Optional[str]
    offset: int
    data_offset: int
    data_size: int
    keyword: str
    token_preview: str


@dataclass
class SceneGraph:
    """Shared mutable state threaded through one recovery run."""

    source_path: str = ""
    source_kind: SourceKind = SourceKind.UNKNOWN
    raw_bytes: bytes = b""
    raw_sha256: str = ""
    nodes: dict[str, NodeRecord] = field(default_factory=dict)
    connections: list[ConnectionRecord] = field(default_factory=list)
    raw_statements: list[RawStatement] = field(default_factory=list)
    binary_index: Optional[BinaryIndex] = None

    string_table: list[str] = field(default_factory=list)
    mesh_hints: list[MeshHint] = field(default_factory=list)

    extracted_text: Optional[str] = None
    extracted_statement_count: int = 0
    extracted_confidence: int = 0
    null_terminated_statement_count: int = 0
    null_terminated_score: int = 0
    embedded_text_parsed: bool = False
    used_chunk_placeholders: bool = False

    log: RecoveryLog = field(default_factory=RecoveryLog)

    def set_raw_binary(self, source_path: str, content: bytes) -> None:
        self.source_path = source_path
        self.source_kind = SourceKind.BINARY
        self.raw_bytes = content
        self.raw_sha256 = hashlib.sha256(content).hexdigest()

    def set_raw_text(self, source_path: str, text: str) -> None:
        self.source_path = source_path
        self.source_kind = SourceKind.TEXT
        self.raw_bytes = b""
        self.raw_sha256 = hashlib.sha256(text.encode("utf-8")).hexdigest()

    # Node management

    def get_or_create_node(
        self,
        name: str,
        node_type: Optional[str] = None,
        parent_name: Optional[str] = None,
    ) -> NodeRecord:
        """Return the node, creating it (and a missing parent) if needed.

        A missing parent is inserted first so that a parent always precedes
        its children in insertion order.
        """
        if not name:
            raise ValueError("node name is empty")

        node = self.nodes.get(name)
        if node is None:
            if parent_name and parent_name != name and parent_name not in self.nodes:
                self.get_or_create_node(parent_name)
            node = NodeRecord(name=name, node_type=node_type or "unknown")
            self.nodes[name] = node
            if parent_name and parent_name != name:
                node.parent_name = parent_name
            return node

        if node_type and node.node_type in ("", "unknown"):
            node.node_type = node_type
        if parent_name and not node.parent_name:
            self.set_parent(name, parent_name)
        return node

    def set_parent(self, child: str, parent: Optional[str]) -> bool:
        """Re-parent a node, refusing edges that would create a cycle."""
        node = self.nodes.get(child)
        if node is None:
            return False
        if parent is None:
            node.parent_name = None
            return True
        if parent == child or self.is_ancestor(child, parent):
            return False
        if parent not in self.nodes:
            self.get_or_create_node(parent)
        node.parent_name = parent
        return True

    def is_ancestor(self, ancestor: str, name: str) -> bool:
        """True if ancestor appears on name's parent chain."""
        seen = set()
        current = self.nodes.get(name)
        while current is not None and current.parent_name:
            if current.parent_name == ancestor:
                return True
            if current.parent_name in seen:
                return False
            seen.add(current.parent_name)
            current = self.nodes.get(current.parent_name)
        return False

    def ensure_dag_path(
        self,
        dag_path: str,
        provenance: Provenance,
        leaf_type: Optional[str] = None,
    ) -> list[str]:
        """Create every prefix of a '|a|b|c' path as a node chain.

        Returns:
            Names of nodes that did not exist before
        """
        created = []
        parent = None
        current = ""
        segments = split_dag_segments(dag_path)
        for i, segment in enumerate(segments):
            current = f"{current}|{segment}"
            is_leaf = i == len(segments) - 1
            node_type = (leaf_type or guess_type_for_segment(segment)) if is_leaf else "transform"
            existed = current in self.nodes
            node = self.get_or_create_node(current, node_type, parent)
            if not existed:
                node.provenance = provenance
                created.append(current)
            parent = current
        return created

    def mark_provenance(
        self, name: str, provenance: Provenance, detail: Optional[str] = None
    ) -> None:
        """Raise a node's provenance; never lowers it."""
        node = self.nodes.get(name)
        if node is None or provenance is Provenance.UNKNOWN:
            return
        if provenance > node.provenance:
            node.provenance = provenance
        if detail and not node.provenance_detail:
            node.provenance_detail = detail

    # Connections and statements

    def connection_keys(self) -> set[tuple[str, str]]:
        return {c.key for c in self.connections}

    def add_connection(
        self,
        source: str,
        destination: str,
        force: bool = False,
        existing: Optional[set[tuple[str, str]]] = None,
    ) -> bool:
        """Append a connection unless the (source, destination) pair exists."""
        keys = existing if existing is not None else self.connection_keys()
        if (source, destination) in keys:
            return False
        self.connections.append(ConnectionRecord(source, destination, force))
        keys.add((source, destination))
        return True

    def add_audit_statement(self, command: str, text: str) -> None:
        self.raw_statements.append(RawStatement(command=command, text=text))

    def count_node_types(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for node in self.nodes.values():
            counts[node.node_type] = counts.get(node.node_type, 0) + 1
        return counts

    def leaf_map(self) -> dict[str, list[str]]:
        """Short name -> full node names, in insertion order."""
        mapping: dict[str, list[str]] = {}
        for name in self.nodes:
            leaf = leaf_of_dag(name)
            if leaf:
                mapping.setdefault(leaf, []).append(name)
        return mapping


def leaf_of_dag(name: str) -> str:
    if not name:
        return name
    last = name.rfind("|")
    if 0 <= last < len(name) - 1:
        return name[last + 1 :]
    return name


def split_dag_segments(path: str) -> list[str]:
    return [segment for segment in path.split("|") if segment]


def normalize_dag(path: str) -> str:
    """Ensure a leading '|' and strip trailing ones."""
    if not path:
        return path
    if not path.startswith("|"):
        path = "|" + path
    while len(path) > 1 and path.endswith("|"):
        path = path[:-1]
    return path


def guess_type_for_segment(segment: str) -> str:
    if segment.endswith("Shape"):
        return "mesh"
    if "joint" in segment.lower():
        return "joint"
    return "transform"


def read_float(node: NodeRecord, candidate_keys: Iterable[str]) -> Optional[float]:
    """Return the first attribute among candidate_keys that parses as a float.

    Args:
        node: Node to read from
        candidate_keys: Attribute keys tried in order (e.g. ".tx", ".translateX")

    Returns:
        The parsed value, or None when no candidate holds a number
    """
    for key in candidate_keys:
        value = node.attributes.get(key)
        if value is None or not value.tokens:
            continue
        try:
            return float(value.tokens[0])
        except ValueError:
            continue
    return None

"""Canonical scene serialization and the determinism check built on it."""

import hashlib
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from scenedig.models import ConnectionRecord, SceneGraph

if TYPE_CHECKING:
    from scenedig.config import RecoveryOptions
    from scenedig.protocols import TextSceneParser


def _q(text: Optional[str]) -> str:
    return json.dumps(text if text is not None else "", ensure_ascii=True)


def _plug_node(plug: str) -> str:
    dot = plug.find(".")
    return plug[:dot] if dot > 0 else plug


def _connection_line(connection: ConnectionRecord, indent: str = "") -> str:
    force = " force" if connection.force else ""
    return f"{indent}conn {_q(connection.source)} -> {_q(connection.destination)}{force}"


def canonicalize(scene: SceneGraph) -> str:
    """Serialize a scene into sorted, line-oriented text.

    Nodes are sorted by name, each followed by its sorted attributes and
    outgoing connections; connections whose source node is unknown are
    listed afterwards, then the chunk index in its canonical pre-order.
    """
    lines = [
        f"sourceKind {scene.source_kind.value}",
        f"sha256 {scene.raw_sha256}",
        f"counters extracted={scene.extracted_statement_count} "
        f"confidence={scene.extracted_confidence} "
        f"nullTerminated={scene.null_terminated_statement_count} "
        f"nullTerminatedScore={scene.null_terminated_score} "
        f"embeddedParsed={int(scene.embedded_text_parsed)} "
        f"placeholders={int(scene.used_chunk_placeholders)}",
    ]

    statements = hashlib.sha256()
    for statement in scene.raw_statements:
        statements.update(statement.command.encode("utf-8", "replace") + b"\x00")
        statements.update(statement.text.encode("utf-8", "replace") + b"\x00")
    lines.append(f"rawStatements {len(scene.raw_statements)} {statements.hexdigest()}")

    outgoing: dict[str, list[ConnectionRecord]] = {}
    orphans: list[ConnectionRecord] = []
    for connection in scene.connections:
        owner = _plug_node(connection.source)
        if owner in scene.nodes:
            outgoing.setdefault(owner, []).append(connection)
        else:
            orphans.append(connection)

    for name in sorted(scene.nodes):
        node = scene.nodes[name]
        lines.append(
            f"node {_q(name)} type={_q(node.node_type)} parent={_q(node.parent_name)} "
            f"provenance={node.provenance.name}"
        )
        for key in sorted(node.attributes):
            value = node.attributes[key]
            tokens = " ".join(_q(t) for t in value.tokens)
            lines.append(f"  attr {_q(key)} {_q(value.type_name)} {value.provenance.name} [{tokens}]")
        for line in sorted(_connection_line(c, "  ") for c in outgoing.get(name, [])):
            lines.append(line)

    lines.extend(sorted(_connection_line(c) for c in orphans))

    index = scene.binary_index
    if index is not None:
        lines.append(f"index size={index.file_size} header={_q(index.header_tag)} "
                     f"chunks={len(index.chunks)} strings={len(index.extracted_strings)}")
        for chunk in index.chunks:
            lines.append(
                f"chunk {chunk.depth} {_q(chunk.tag)} {chunk.offset} {chunk.size} "
                f"{_q(chunk.form_type)} {chunk.decoded_kind.value} {_q(chunk.preview)}"
            )

    return "\n".join(lines) + "\n"


def fingerprint(scene: SceneGraph) -> str:
    """SHA-256 hex digest of the canonical serialization."""
    return hashlib.sha256(canonicalize(scene).encode("utf-8")).hexdigest()


@dataclass
class DeterminismReport:
    """Outcome of running recovery repeatedly over the same bytes."""

    fingerprints: list[str] = field(default_factory=list)
    first_difference: Optional[tuple[int, str, str]] = None

    @property
    def deterministic(self) -> bool:
        return len(set(self.fingerprints)) <= 1


def first_difference(left: str, right: str) -> Optional[tuple[int, str, str]]:
    """Return (line number, left line, right line) of the first mismatch."""
    a = left.splitlines()
    b = right.splitlines()
    for i in range(max(len(a), len(b))):
        line_a = a[i] if i < len(a) else "<missing>"
        line_b = b[i] if i < len(b) else "<missing>"
        if line_a != line_b:
            return i + 1, line_a, line_b
    return None


def verify_determinism(
    buffer: bytes,
    options: Optional["RecoveryOptions"] = None,
    runs: int = 2,
    text_parser: Optional["TextSceneParser"] = None,
) -> DeterminismReport:
    """Recover the same bytes several times and compare fingerprints.

    Args:
        buffer: Input bytes
        options: Recovery options shared by every run
        runs: Number of independent runs (at least 2)
        text_parser: Parser override passed to every run

    Returns:
        Report with one fingerprint per run and the first differing line
    """
    from scenedig.recovery import recover

    report = DeterminismReport()
    baseline = None
    for _ in range(max(2, runs)):
        scene = recover(buffer, options, text_parser=text_parser)
        text = canonicalize(scene)
        report.fingerprints.append(hashlib.sha256(text.encode("utf-8")).hexdigest())
        if baseline is None:
            baseline = text
        elif report.first_difference is None and text != baseline:
            report.first_difference = first_difference(baseline, text)
    return report

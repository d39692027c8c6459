"""Data models for scenedig."""

from scenedig.models.chunk import BinaryIndex, Chunk, DecodedKind, DecodedValue
from scenedig.models.log import RecoveryLog
from scenedig.models.scene import (
    AttributeValue,
    ConnectionRecord,
    MeshHint,
    NodeRecord,
    Provenance,
    RawStatement,
    SceneGraph,
    SourceKind,
    read_float,
)

__all__ = [
    "AttributeValue",
    "BinaryIndex",
    "Chunk",
    "ConnectionRecord",
    "DecodedKind",
    "DecodedValue",
    "MeshHint",
    "NodeRecord",
    "Provenance",
    "RawStatement",
    "RecoveryLog",
    "SceneGraph",
    "SourceKind",
    "read_float",
]

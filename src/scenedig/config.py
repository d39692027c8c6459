"""Recovery options: thresholds, hard caps and stage switches."""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping


@dataclass
class RecoveryOptions:
    """Plain configuration consumed by the reader, decoders and stages.

    Confidence thresholds are tunable defaults. What matters is their
    relative order, not the literal numbers.
    """

    # Chunk reader
    max_chunks: int = 50_000
    max_depth: int = 256
    max_strings: int = 2000
    scan_safety_limit: int = 2_000_000
    extra_container_tags: tuple[str, ...] = ()

    # Audit
    keep_raw_statements: bool = True
    max_raw_statements: int = 50_000

    # Deterministic enumeration from the string table
    enumerate_nodes: bool = True
    max_enumerated_nodes: int = 50_000
    max_dag_paths: int = 250_000

    # String-evidence tagging
    tag_shading_from_strings: bool = True
    tag_textures_from_strings: bool = True
    max_mesh_hints: int = 512

    # Embedded command text
    extract_embedded_text: bool = True
    allow_low_confidence_embedded_text: bool = True
    embedded_min_segment_chars: int = 16
    embedded_hard_min_statements: int = 30
    embedded_min_statements: int = 12
    embedded_min_score: int = 24
    embedded_hard_min_score: int = 60
    max_extracted_chars: int = 4 * 1024 * 1024

    # Null-terminated reconstruction
    extract_null_terminated_text: bool = True
    allow_low_confidence_null_terminated: bool = True
    null_terminated_hard_min_statements: int = 10
    null_terminated_max_statements: int = 200_000

    # Placeholders
    create_chunk_placeholders: bool = True
    max_placeholder_nodes: int = 20_000

    # Mesh assignment cache
    cache_max_scenes: int = 8

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "RecoveryOptions":
        """Build options from a plain mapping.

        Raises:
            ValueError: If the mapping contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown option(s): {', '.join(unknown)}")

        kwargs = dict(values)
        if "extra_container_tags" in kwargs:
            kwargs["extra_container_tags"] = tuple(kwargs["extra_container_tags"])
        return cls(**kwargs)

    @classmethod
    def from_json_file(cls, path: Path | str) -> "RecoveryOptions":
        """Load options from a JSON object file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Options file must contain a JSON object: {path}")
        return cls.from_mapping(data)

"""Last-resort nodes so a recovered scene is never empty."""

import re

from scenedig.models import Chunk, Provenance
from scenedig.models.scene import split_dag_segments
from scenedig.recovery.context import RecoveryContext

CHUNKS_ROOT = "|__chunks"
MIN_PLACEHOLDER_BYTES = 12

_SEGMENT = re.compile(r"^[A-Za-z0-9_:\-]+$")
_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def dag_path_candidate(raw: str) -> str:
    """Return a normalized '|a|b' path for a pool string that looks like one, else ''."""
    text = raw.strip()
    if not (5 <= len(text) <= 160) or "|" not in text:
        return ""
    if any(ch in text for ch in " \t/\\.") or text.lower().startswith("http"):
        return ""
    if ":" in text[text.index("|") :]:
        return ""
    if not text.startswith("|"):
        text = "|" + text

    segments = split_dag_segments(text)
    if len(segments) < 2:
        return ""
    for segment in segments:
        if len(segment) > 80 or not _SEGMENT.match(segment):
            return ""
        if not any(ch.isalpha() for ch in segment):
            return ""
    return "|" + "|".join(segments)


def _segment_type(segment: str) -> str:
    if segment.endswith("Shape"):
        return "mesh"
    if segment == "joint":
        return "joint"
    return "transform"


def dag_placeholders(ctx: RecoveryContext) -> None:
    """Create node chains from DAG-looking strings when nothing else produced nodes."""
    scene = ctx.scene
    if scene.nodes:
        return
    index = scene.binary_index
    if index is None or not index.extracted_strings:
        ctx.log.warn("DAG placeholders: no recovered strings to build paths from")
        return

    paths = []
    seen = set()
    for raw in index.extracted_strings:
        path = dag_path_candidate(raw)
        if path and path not in seen:
            seen.add(path)
            paths.append(path)

    if not paths:
        ctx.log.warn("DAG placeholders: no DAG-like paths among recovered strings")
        return

    for path in paths:
        leaf = split_dag_segments(path)[-1]
        scene.ensure_dag_path(path, Provenance.HEURISTIC, leaf_type=_segment_type(leaf))
        node = scene.nodes[path]
        node.set_default(".leaf", [leaf], "string", Provenance.HEURISTIC)
        node.set_default(".dagPath", [path], "string", Provenance.HEURISTIC)
    ctx.log.info(f"DAG placeholders: {len(paths)} path(s), {len(scene.nodes)} node(s)")


def sanitize_tag(tag: str) -> str:
    return _UNSAFE.sub("_", tag) or "chunk"


def chunk_node_name(parent: str, ordinal: int, chunk: Chunk) -> str:
    return f"{parent}|{ordinal:05d}_{sanitize_tag(chunk.tag)}_{chunk.offset:08X}"


def chunk_placeholders(ctx: RecoveryContext) -> None:
    """Mirror the chunk tree as nodes under '|__chunks' when the scene is still empty."""
    scene = ctx.scene
    options = ctx.options
    if scene.nodes or not options.create_chunk_placeholders:
        return
    if len(ctx.buffer) < MIN_PLACEHOLDER_BYTES:
        return

    level = Provenance.CHUNK_PLACEHOLDER
    root = scene.get_or_create_node(CHUNKS_ROOT, "transform")
    scene.mark_provenance(CHUNKS_ROOT, level, "chunkPlaceholder")
    root.set_default(".placeholder", ["true"], "bool", level)
    root.set_default(".placeholderReason", ["no scene nodes recovered"], "string", level)
    root.set_default(".rawSha256", [scene.raw_sha256], "string", level)
    root.set_default(".rawByteCount", [str(len(ctx.buffer))], "long", level)

    chunks = list(ctx.chunks)
    created = 1
    if not chunks:
        name = f"{CHUNKS_ROOT}|rawBinary"
        node = scene.get_or_create_node(name, "transform", CHUNKS_ROOT)
        scene.mark_provenance(name, level, "chunkPlaceholder")
        node.set_default(".chunkId", ["(no-index)"], "string", level)
        created += 1
        ctx.log.warn("Chunk placeholders: no chunk index, created a single raw-binary node")
    else:
        chunks.sort(key=lambda c: (c.offset, c.depth, c.tag))
        depth_nodes = {}
        for ordinal, chunk in enumerate(chunks):
            if created >= options.max_placeholder_nodes:
                ctx.log.warn(f"Chunk placeholders: capped at {options.max_placeholder_nodes} nodes")
                break

            depth_name = depth_nodes.get(chunk.depth)
            if depth_name is None:
                depth_name = depth_nodes[chunk.depth] = f"{CHUNKS_ROOT}|d{chunk.depth:02d}"
                depth_node = scene.get_or_create_node(depth_name, "transform", CHUNKS_ROOT)
                scene.mark_provenance(depth_name, level, "chunkPlaceholder")
                depth_node.set_default(".chunkDepth", [str(chunk.depth)], "long", level)
                created += 1
                if created >= options.max_placeholder_nodes:
                    ctx.log.warn(f"Chunk placeholders: capped at {options.max_placeholder_nodes} nodes")
                    break

            name = chunk_node_name(depth_name, ordinal, chunk)
            node = scene.get_or_create_node(name, "transform", depth_name)
            scene.mark_provenance(name, level, "chunkPlaceholder")
            node.set_default(".chunkId", [chunk.tag], "string", level)
            node.set_default(".chunkFormType", [chunk.form_type or ""], "string", level)
            node.set_default(".chunkOffset", [str(chunk.offset)], "long", level)
            node.set_default(".chunkDataOffset", [str(chunk.data_offset)], "long", level)
            node.set_default(".chunkDataSize", [str(chunk.data_size)], "long", level)
            node.set_default(".chunkDepth", [str(chunk.depth)], "long", level)
            node.set_default(".chunkIsContainer", [str(chunk.is_container).lower()], "bool", level)
            node.set_default(".chunkDecodedKind", [chunk.decoded_kind.value], "string", level)
            if chunk.preview:
                node.set_default(".chunkPreview", [chunk.preview], "string", level)
            created += 1

    if options.keep_raw_statements:
        scene.add_audit_statement(
            "chunkPlaceholder", f"// Created {created} chunk placeholder node(s) under {CHUNKS_ROOT}"
        )
    scene.used_chunk_placeholders = True
    ctx.log.info(f"Chunk placeholders: created={created}")

"""Rank payload chunks near each mesh reference as vertex/index buffer candidates.

For every mesh node an anchor chunk is found (the last chunk whose strings
reference the mesh). Leaf chunks in a window around the anchor are scored:

* float32 payloads by size, distance, depth and how position/normal/uv-like
  their sampled values look;
* uint32 payloads by size, distance and depth, penalising flag-like or
  huge values.

The best references are written as '.meshFloatChunkRef', '.meshUIntChunkRef'
slots and mirrored into the caller's SceneCache, if one was supplied.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from scenedig.models import Chunk, DecodedKind, Provenance
from scenedig.models.scene import leaf_of_dag, normalize_dag
from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.evidence import looks_like_dag_path, mesh_keys
from scenedig.recovery.tagging import MATERIAL_KEY, SHADING_GROUP_KEY, TEXTURE_KEY

WINDOW_BEFORE = 64
WINDOW_AFTER = 512
DEPTH_BELOW = 2
DEPTH_ABOVE = 8

MIN_FLOAT_BYTES = 36
MIN_UINT_BYTES = 12
MAX_FLOAT_REFS = 10
MAX_UINT_REFS = 8
SAMPLE_VALUES = 16


@dataclass
class Anchor:
    first_index: int
    best_index: int
    best_depth: int
    hits: int


@dataclass
class Candidate:
    chunk: Chunk
    score: float


def position_score(values: np.ndarray) -> float:
    """Wide range and some negatives look like vertex positions."""
    if values.size == 0:
        return 0.0
    spread = float(values.max() - values.min())
    negatives = int(np.count_nonzero(values < 0))
    unit = int(np.count_nonzero((values >= 0) & (values <= 1)))
    return math.log1p(abs(spread)) + negatives * 0.15 - unit * 0.1


def normal_score(values: np.ndarray) -> float:
    return int(np.count_nonzero((values >= -1.2) & (values <= 1.2))) * 0.08


def uv_score(values: np.ndarray) -> float:
    return int(np.count_nonzero((values >= -0.25) & (values <= 1.25))) * 0.05


def _placement_score(chunk: Chunk, index: int, anchor: Anchor) -> float:
    distance = abs(index - anchor.best_index)
    depth_diff = abs(chunk.depth - anchor.best_depth)
    return math.log1p(chunk.data_size) * 2.0 - distance * 0.01 - depth_diff * 0.15


def score_float_chunk(chunk: Chunk, index: int, anchor: Anchor) -> float:
    score = _placement_score(chunk, index, anchor)
    sample = np.asarray(chunk.decoded_floats or [], dtype=np.float64)[:SAMPLE_VALUES]
    sample = sample[np.isfinite(sample)]
    if sample.size:
        score += position_score(sample) + normal_score(sample) * 0.5 + uv_score(sample) * 0.5
    return score


def score_uint_chunk(chunk: Chunk, index: int, anchor: Anchor) -> float:
    score = _placement_score(chunk, index, anchor)
    sample = np.asarray(chunk.decoded_ints or [], dtype=np.uint64)[:SAMPLE_VALUES]
    if sample.size:
        score -= int(np.count_nonzero(sample <= 3)) * 0.05
        score -= int(np.count_nonzero(sample > 10_000_000)) * 0.1
    return score


def chunk_ref(chunk: Chunk) -> str:
    return (
        f"TAG={chunk.tag};OFF={chunk.offset};DATA={chunk.data_offset};"
        f"SIZE={chunk.data_size};KIND={chunk.decoded_kind.value};DEPTH={chunk.depth}"
    )


def _is_float_candidate(chunk: Chunk) -> bool:
    return (
        chunk.decoded_kind is DecodedKind.FLOAT32_BE
        and chunk.data_size >= MIN_FLOAT_BYTES
        and chunk.data_size % 4 == 0
        and any(math.isfinite(v) for v in chunk.decoded_floats or [])
    )


def _is_uint_candidate(chunk: Chunk) -> bool:
    return chunk.decoded_kind is DecodedKind.UINT32_BE and chunk.data_size >= MIN_UINT_BYTES


def find_anchors(chunks: list[Chunk], keys: list[str], leaf_map: dict[str, list[str]]) -> dict[str, Anchor]:
    """Chunks whose decoded strings reference each mesh key."""
    key_set = set(keys)
    anchors: dict[str, Anchor] = {}
    for i, chunk in enumerate(chunks):
        if not chunk.decoded_strings:
            continue
        referenced = set()
        for text in chunk.decoded_strings:
            if looks_like_dag_path(text):
                path = normalize_dag(text)
                if path in key_set:
                    referenced.add(path)
                    continue
                text = leaf_of_dag(path)
            referenced.update(name for name in leaf_map.get(text, []) if name in key_set)

        for key in sorted(referenced):
            anchor = anchors.get(key)
            if anchor is None:
                anchors[key] = Anchor(first_index=i, best_index=i, best_depth=chunk.depth, hits=1)
            else:
                anchor.best_index = i
                anchor.best_depth = chunk.depth
                anchor.hits += 1
    return anchors


def rank_candidates(chunks: list[Chunk], anchor: Anchor) -> tuple[list[Candidate], list[Candidate]]:
    """Float and uint candidates in the anchor window, best first."""
    start = max(0, anchor.best_index - WINDOW_BEFORE)
    end = min(len(chunks) - 1, anchor.best_index + WINDOW_AFTER)
    floats, uints = [], []
    for i in range(start, end + 1):
        chunk = chunks[i]
        if chunk.is_container:
            continue
        if not (anchor.best_depth - DEPTH_BELOW <= chunk.depth <= anchor.best_depth + DEPTH_ABOVE):
            continue
        if _is_float_candidate(chunk):
            floats.append(Candidate(chunk, score_float_chunk(chunk, i, anchor)))
        elif _is_uint_candidate(chunk):
            uints.append(Candidate(chunk, score_uint_chunk(chunk, i, anchor)))

    # sort() is stable: ties keep file order
    floats.sort(key=lambda c: c.score, reverse=True)
    uints.sort(key=lambda c: c.score, reverse=True)
    return floats, uints


def _slot_key(base: str, i: int) -> str:
    return base if i == 0 else f"{base}{i + 1}"


def _first_token(node, key: str) -> Optional[str]:
    tokens = node.tokens(key)
    return tokens[0] if tokens else None


def locate_mesh_chunks(ctx: RecoveryContext) -> None:
    """Attach ranked payload chunk references to every mesh node."""
    scene = ctx.scene
    chunks = ctx.chunks

    for name in mesh_keys(scene):
        node = scene.nodes[name]
        if node.node_type in ("", "unknown", "transform") and node.leaf.endswith("Shape"):
            node.node_type = "mesh"

    keys = mesh_keys(scene)
    if not keys:
        ctx.log.info("Mesh locate: no mesh nodes")
        return
    if not chunks:
        ctx.log.info("Mesh locate: no chunk index")
        return

    index = scene.binary_index
    pool = set(index.extracted_strings) if index is not None else set()
    anchors = find_anchors(chunks, keys, scene.leaf_map())

    touched = float_refs = uint_refs = 0
    level = Provenance.HEURISTIC
    for key in keys:
        node = scene.nodes[key]
        anchor = anchors.get(key)
        if anchor is None:
            if node.leaf not in pool and key not in pool:
                continue
            anchor = Anchor(first_index=0, best_index=0, best_depth=0, hits=0)

        floats, uints = rank_candidates(chunks, anchor)
        floats, uints = floats[:MAX_FLOAT_REFS], uints[:MAX_UINT_REFS]
        for i, candidate in enumerate(floats):
            node.set_attr(_slot_key(".meshFloatChunkRef", i), [chunk_ref(candidate.chunk)], "string", level)
        for i, candidate in enumerate(uints):
            node.set_attr(_slot_key(".meshUIntChunkRef", i), [chunk_ref(candidate.chunk)], "string", level)

        start = max(0, anchor.best_index - WINDOW_BEFORE)
        end = min(len(chunks) - 1, anchor.best_index + WINDOW_AFTER)
        node.set_attr(
            ".meshChunkAnchor",
            [f"anchorIndex={anchor.best_index};anchorDepth={anchor.best_depth};"
             f"hits={anchor.hits};window=[{start}..{end}]"],
            "string",
            level,
        )
        node.set_attr(
            ".meshChunkNote",
            [f"floatRefs={len(floats)};uintRefs={len(uints)}"],
            "string",
            level,
        )

        if ctx.cache is not None:
            assignment = ctx.cache.assignment(scene.raw_sha256, key)
            assignment.float_chunk_offsets = [c.chunk.offset for c in floats]
            assignment.uint_chunk_offsets = [c.chunk.offset for c in uints]
            assignment.shading_group = _first_token(node, SHADING_GROUP_KEY)
            assignment.material = _first_token(node, MATERIAL_KEY)
            assignment.texture = _first_token(node, TEXTURE_KEY)

        touched += 1
        float_refs += len(floats)
        uint_refs += len(uints)

    ctx.log.info(
        f"Mesh locate: meshes={len(keys)}, anchors={len(anchors)}, touched={touched}, "
        f"floatRefs={float_refs}, uintRefs={uint_refs}"
    )

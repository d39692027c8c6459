"""Derived hint tables: the sorted string table and mesh keyword hints."""

import re

from scenedig.models import MeshHint
from scenedig.recovery.context import RecoveryContext

MAX_TOKEN_LENGTH = 256
MAX_TOKENS = 20_000

MESH_KEYWORDS = (
    "polyFaces", "pnts", "vrts", "vtx", "norm", "normal", "uv", "uvst", "map",
    "face", "edge", "crease", "tangent", "binormal", "colorSet", "vertexColor",
)

# Word characters plus the punctuation found in node, attribute and file names
_TABLE_TOKEN = re.compile(r"^[A-Za-z0-9_|:./\\\-@#$\[\]{},+*]+$")


def table_token(raw: str) -> str:
    """Normalize a candidate for the string table; '' when rejected."""
    text = raw.strip()[:MAX_TOKEN_LENGTH]
    if len(text) < 2 or not _TABLE_TOKEN.match(text):
        return ""
    if not any(ch.isalnum() or ch == "_" for ch in text):
        return ""
    return text


def populate_string_table(ctx: RecoveryContext) -> None:
    """Build scene.string_table from the string pool and per-chunk strings.

    The table is deduplicated, sorted by code point and capped, so it does
    not depend on the order in which strings were found.
    """
    scene = ctx.scene
    index = scene.binary_index
    if index is None:
        return

    unique = set()
    for raw in index.extracted_strings:
        token = table_token(raw)
        if token:
            unique.add(token)
    for chunk in index.chunks:
        for raw in chunk.decoded_strings or ():
            token = table_token(raw)
            if token:
                unique.add(token)

    scene.string_table = sorted(unique)[:MAX_TOKENS]
    ctx.log.info(f"String table: {len(scene.string_table)} tokens")


def populate_mesh_hints(ctx: RecoveryContext) -> None:
    """Record chunks whose decoded strings mention mesh keywords."""
    scene = ctx.scene
    scene.mesh_hints = []
    index = scene.binary_index
    if index is None:
        return

    limit = ctx.options.max_mesh_hints
    hints = []
    for chunk in index.chunks:
        for token in chunk.decoded_strings or ():
            for keyword in MESH_KEYWORDS:
                if keyword not in token:
                    continue
                hints.append(MeshHint(
                    chunk_tag=chunk.tag,
                    form_type=chunk.form_type,
                    offset=chunk.offset,
                    data_offset=chunk.data_offset,
                    data_size=chunk.data_size,
                    keyword=keyword,
                    token_preview=token[:64],
                ))
                if len(hints) >= limit:
                    break
            if len(hints) >= limit:
                break
        if len(hints) >= limit:
            break

    hints.sort(key=lambda h: (h.offset, h.keyword, h.chunk_tag))
    scene.mesh_hints = hints
    ctx.log.info(f"Mesh hints: {len(hints)} candidates")

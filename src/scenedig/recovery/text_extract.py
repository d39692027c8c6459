"""Recover command text hidden in the raw bytes and merge its scene.

Two routes of decreasing confidence:

* embedded text: long runs of text bytes containing ';'-terminated
  statements and command names;
* null-terminated reconstruction: NUL-delimited strings stitched back into
  one statement per command anchor.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from scenedig.config import RecoveryOptions
from scenedig.merge import PROVENANCE_ATTR, merge_into
from scenedig.models import Provenance, SceneGraph
from scenedig.parsers import CommandTextParser
from scenedig.recovery.context import RecoveryContext

COMMAND_HINTS = (
    "createNode", "setAttr", "connectAttr", "disconnectAttr", "parent", "rename", "currentUnit",
    "fileInfo", "requires", "namespace", "workspace", "addAttr", "deleteAttr", "lockNode",
    "setKeyframe", "setDrivenKeyframe", "animLayer", "connectDynamic", "scriptNode",
    "evalDeferred", "expression", "select", "sets", "shadingNode", "connectAttr -f",
    "skinCluster", "blendShape",
)

COMMAND_ANCHORS = frozenset(hint for hint in COMMAND_HINTS if " " not in hint)

SCORE_FLAGS = frozenset({"-n", "-p", "-type", "-f", "-l", "-k"})

MAX_SEGMENTS = 20_000
MAX_TOKEN_LENGTH = 256
ANCHOR_LOOKAHEAD = 4096
FALLBACK_STATEMENT_TOKENS = 64
MAX_LINE_CHARS = 2048
MAX_NULL_TERMINATED_TOKENS = 2_000_000
MIN_NULL_TERMINATED_BYTES = 64

_TEXT_RUN = re.compile(rb"[\t\n\r\x20-\x7e]+")


@dataclass
class Extraction:
    """Recovered command text and its confidence counters."""

    text: str
    segments: int
    statements: int
    score: int
    truncated: bool = False


def command_hits(segment: str) -> int:
    """Confidence score of a segment: 2 per distinct command hint present."""
    return sum(2 for hint in COMMAND_HINTS if hint in segment)


def _first_hint(segment: str) -> int:
    positions = [p for p in (segment.find(hint) for hint in COMMAND_HINTS) if p >= 0]
    return min(positions) if positions else 0


def extract_embedded_text(buffer: bytes, options: RecoveryOptions) -> Optional[Extraction]:
    """Collect command-like text segments from the raw bytes.

    A segment is a run of text bytes at least embedded_min_segment_chars
    long that contains ';' and a command hint; anything before its first
    command hint is dropped. The joined text is hard capped at
    max_extracted_chars.

    Returns:
        The extraction, or None when no segment qualifies
    """
    max_chars = options.max_extracted_chars
    parts = []
    total = segments = statements = score = 0

    for match in _TEXT_RUN.finditer(buffer):
        if total >= max_chars or segments >= MAX_SEGMENTS:
            break
        if match.end() - match.start() < options.embedded_min_segment_chars:
            continue

        segment = match.group().decode("ascii")
        if ";" not in segment:
            continue
        hits = command_hits(segment)
        if not hits:
            continue

        segment = segment[_first_hint(segment):].replace("\r", "\n")
        remaining = max_chars - total
        if len(segment) + 1 > remaining:
            segment = segment[: max(0, remaining - 1)]

        parts.append(segment)
        total += len(segment) + 1
        segments += 1
        score += hits
        statements += segment.count(";")

    text = "\n".join(parts)
    if not text.strip():
        return None
    return Extraction(text=text + "\n", segments=segments, statements=statements, score=score)


def should_parse(extraction: Extraction, options: RecoveryOptions) -> bool:
    """Confidence gate for embedded text (overrides not applied here)."""
    if extraction.statements >= options.embedded_hard_min_statements:
        return True
    if extraction.score >= options.embedded_hard_min_score:
        return True
    return (
        extraction.statements >= options.embedded_min_statements
        and extraction.score >= options.embedded_min_score
    )


def null_terminated_tokens(buffer: bytes, max_tokens: int = MAX_NULL_TERMINATED_TOKENS) -> list[str]:
    """Printable runs split at NUL and other binary bytes, trimmed and filtered."""
    tokens = []
    for match in _TEXT_RUN.finditer(buffer):
        if len(tokens) >= max_tokens:
            break
        token = match.group()[:MAX_TOKEN_LENGTH].decode("ascii").strip()
        if len(token) < 2:
            continue
        digits = sum(ch.isdigit() for ch in token)
        if len(token) >= 8 and digits >= len(token) - 1:
            continue
        tokens.append(token)
    return tokens


def _quote(token: str) -> str:
    if any(ch.isspace() for ch in token) and ";" not in token:
        return '"' + token.replace('"', '\\"') + '"'
    return token


def reconstruct_null_terminated(buffer: bytes, options: RecoveryOptions) -> Optional[Extraction]:
    """Rebuild one statement per command anchor from NUL-delimited strings.

    A statement runs from an anchor to the next anchor (or a fixed number of
    tokens when none follows closely). Each statement scores 4, plus 1 per
    common flag or '.attr' token and 2 per token carrying ';'.

    Returns:
        The reconstructed text (at most max_extracted_chars long), or None
        when no anchor was found or no statement fits the cap
    """
    tokens = null_terminated_tokens(buffer)
    anchors = [i for i, token in enumerate(tokens) if token in COMMAND_ANCHORS]
    if not anchors:
        return None

    lines = []
    total = 0
    score = 0
    truncated = False
    for k, start in enumerate(anchors):
        if len(lines) >= options.null_terminated_max_statements:
            break
        following = anchors[k + 1] if k + 1 < len(anchors) else None
        if following is not None and following - start <= ANCHOR_LOOKAHEAD:
            end = following
        else:
            end = min(len(tokens), start + FALLBACK_STATEMENT_TOKENS)

        parts = []
        length = 0
        local = 0
        for token in tokens[start:end]:
            parts.append(_quote(token))
            length += len(token) + 1
            if token in SCORE_FLAGS:
                local += 1
            if token.startswith("."):
                local += 1
            if ";" in token:
                local += 2
            if length > MAX_LINE_CHARS:
                break

        line = " ".join(parts).strip()
        if not line:
            continue
        if ";" not in line:
            line += ";"
        # Every line is followed by a newline in the joined text
        if total + len(line) + 1 > options.max_extracted_chars:
            truncated = True
            break
        lines.append(line)
        total += len(line) + 1
        score += 4 + local

    if not lines:
        return None
    return Extraction(text="\n".join(lines) + "\n", segments=len(lines),
                      statements=len(lines), score=score, truncated=truncated)


def _label(scene: SceneGraph) -> str:
    return Path(scene.source_path).name if scene.source_path else "buffer"


def _parser(ctx: RecoveryContext):
    return ctx.text_parser if ctx.text_parser is not None else CommandTextParser()


def recover_embedded_text(ctx: RecoveryContext) -> None:
    """Extract embedded command text, parse it and merge the result."""
    scene = ctx.scene
    options = ctx.options

    extraction = extract_embedded_text(ctx.buffer, options)
    if extraction is None:
        ctx.log.info("Embedded text: not detected")
        return

    summary = (f"segments={extraction.segments}, statements~={extraction.statements}, "
               f"score={extraction.score}")
    if not should_parse(extraction, options):
        if not options.allow_low_confidence_embedded_text:
            ctx.log.info(f"Embedded text rejected by threshold: {summary}")
            return
        ctx.log.info(f"Embedded text: low confidence but allowed: {summary}")

    scene.extracted_text = extraction.text
    scene.extracted_statement_count = extraction.statements
    scene.extracted_confidence = extraction.score
    if options.keep_raw_statements:
        scene.add_audit_statement("embeddedText", f"// Extracted embedded command text ({summary})")

    secondary = _parser(ctx).parse_text(f"{_label(scene)}::embedded", extraction.text, options)
    merge_into(scene, secondary, "binary:embeddedText")
    scene.embedded_text_parsed = True


def backfill_provenance(scene: SceneGraph, tag_prefix: str, level: Provenance) -> int:
    """Raise node provenance wherever the '.provenance' audit mentions tag_prefix."""
    raised = 0
    for name, node in scene.nodes.items():
        if any(tag_prefix in tag for tag in node.tokens(PROVENANCE_ATTR)):
            before = node.provenance
            scene.mark_provenance(name, level, tag_prefix)
            raised += int(node.provenance != before)
    return raised


def recover_null_terminated(ctx: RecoveryContext) -> None:
    """Fallback reconstruction when embedded text yielded few statements."""
    scene = ctx.scene
    options = ctx.options

    enough = max(200, options.null_terminated_hard_min_statements * 10)
    if scene.extracted_statement_count >= enough:
        ctx.log.info(f"Null-terminated: skipped, embedded text has {scene.extracted_statement_count} statements")
        return

    if len(ctx.buffer) < MIN_NULL_TERMINATED_BYTES:
        ctx.log.info(f"Null-terminated: skipped, buffer has {len(ctx.buffer)} bytes")
        return

    extraction = reconstruct_null_terminated(ctx.buffer, options)
    if extraction is None:
        ctx.log.info("Null-terminated: no command anchors found")
        return

    if (extraction.statements < options.null_terminated_hard_min_statements
            and not options.allow_low_confidence_null_terminated):
        ctx.log.info(f"Null-terminated rejected: statements={extraction.statements}")
        return
    if extraction.truncated:
        ctx.log.warn(f"Null-terminated text capped at {options.max_extracted_chars} chars "
                     f"after {extraction.statements} statements")

    secondary = _parser(ctx).parse_text(f"{_label(scene)}::nullTerminated", extraction.text, options)
    tag = f"binary:nullTerminated(s={extraction.statements},score={extraction.score})"
    merge_into(scene, secondary, tag)
    backfill_provenance(scene, "binary:nullTerminated", Provenance.NULL_TERMINATED)

    scene.null_terminated_statement_count = extraction.statements
    scene.null_terminated_score = extraction.score

"""CLI entry point for scenedig."""

import argparse
import json
import logging
import sys
from pathlib import Path

from scenedig.cache import SceneCache
from scenedig.config import RecoveryOptions
from scenedig.fingerprint import canonicalize, fingerprint, verify_determinism
from scenedig.models import SceneGraph
from scenedig.readers import build_index
from scenedig.recovery import recover_file

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def load_options(args: argparse.Namespace) -> RecoveryOptions:
    """Options from --config plus the command-line switches."""
    try:
        options = RecoveryOptions.from_json_file(args.config) if args.config else RecoveryOptions()
    except (OSError, ValueError) as e:
        logger.error(f"Invalid config {args.config}: {e}")
        sys.exit(1)

    if args.no_embedded:
        options.extract_embedded_text = False
    if args.no_null_terminated:
        options.extract_null_terminated_text = False
    if args.no_placeholders:
        options.create_chunk_placeholders = False
    if args.strict:
        options.allow_low_confidence_embedded_text = False
        options.allow_low_confidence_null_terminated = False
    return options


def read_input(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        sys.exit(1)


def index(source: str, options: RecoveryOptions, as_json: bool = False) -> None:
    """Print the chunk tree of a file.

    Args:
        source: Path to the binary file
        options: Reader limits
        as_json: Emit one JSON object per chunk instead of an indented listing
    """
    result = build_index(
        read_input(source),
        options.max_chunks,
        container_tags=options.extra_container_tags,
        max_depth=options.max_depth,
        max_strings=options.max_strings,
        scan_safety_limit=options.scan_safety_limit,
    )

    for chunk in result.chunks:
        if as_json:
            print(json.dumps({
                "tag": chunk.tag,
                "formType": chunk.form_type,
                "offset": chunk.offset,
                "size": chunk.size,
                "depth": chunk.depth,
                "container": chunk.is_container,
                "kind": chunk.decoded_kind.value,
                "preview": chunk.preview,
            }))
            continue
        label = f"{chunk.tag}:{chunk.form_type}" if chunk.form_type else chunk.tag
        preview = f"  {chunk.preview}" if chunk.preview else ""
        print(f"{'  ' * chunk.depth}{label} @{chunk.offset:#010x} size={chunk.size}{preview}")

    if not as_json:
        print(f"")
        print(f"{len(result.chunks)} chunks, {len(result.extracted_strings)} strings")


def print_summary(scene: SceneGraph) -> None:
    print(f"Scene: {scene.source_path}")
    print(f"  sha256: {scene.raw_sha256}")
    print(f"  Nodes: {len(scene.nodes)}")
    for node_type, count in sorted(scene.count_node_types().items()):
        print(f"    {node_type}: {count}")
    print(f"  Connections: {len(scene.connections)}")
    print(f"  Raw statements: {len(scene.raw_statements)}")
    print(f"  Embedded statements: {scene.extracted_statement_count}")
    print(f"  Null-terminated statements: {scene.null_terminated_statement_count}")
    if scene.used_chunk_placeholders:
        print(f"  (chunk placeholders only)")
    print(f"  Fingerprint: {fingerprint(scene)}")
    if scene.log.warnings:
        print(f"")
        print(f"Warnings:")
        for warning in scene.log.warnings:
            print(f"  {warning}")


def recover(sources: list[str], options: RecoveryOptions, output: str | None = None) -> None:
    """Recover scene graphs and print a summary per file.

    Args:
        sources: Paths to binary scene files
        options: Recovery options
        output: Optional path for the canonical dump (single source only)
    """
    if output and len(sources) > 1:
        logger.error("--output needs exactly one input file")
        sys.exit(1)

    cache = SceneCache(options.cache_max_scenes)
    failed = False
    for source in sources:
        scene = recover_file(source, options, cache=cache)
        if scene.log.has_errors:
            for error in scene.log.errors:
                logger.error(error)
            failed = True
            continue

        print_summary(scene)
        assignments = cache.get(scene.raw_sha256) or {}
        for mesh, assignment in assignments.items():
            material = assignment.material or assignment.shading_group or "-"
            print(f"  mesh {mesh}: material={material}, "
                  f"floatChunks={len(assignment.float_chunk_offsets)}, "
                  f"uintChunks={len(assignment.uint_chunk_offsets)}")

        if output:
            Path(output).write_text(canonicalize(scene), encoding="utf-8")
            logger.info(f"Canonical dump -> {output}")

    if failed:
        sys.exit(1)


def strings(source: str, options: RecoveryOptions) -> None:
    """Print the recovered string table of a file."""
    scene = recover_file(source, options)
    if scene.log.has_errors:
        sys.exit(1)
    for text in scene.string_table:
        print(text)


def verify(source: str, options: RecoveryOptions, runs: int = 2) -> None:
    """Recover the same file several times and compare fingerprints."""
    report = verify_determinism(read_input(source), options, runs=runs)
    for i, digest in enumerate(report.fingerprints, start=1):
        print(f"  run {i}: {digest}")

    if not report.deterministic:
        logger.error("Recovery is not deterministic")
        if report.first_difference:
            line, left, right = report.first_difference
            logger.error(f"  first difference at line {line}:")
            logger.error(f"    - {left}")
            logger.error(f"    + {right}")
        sys.exit(1)
    print(f"Deterministic across {len(report.fingerprints)} runs")


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="scenedig",
        description="scenedig - scene graph recovery from binary chunk files",
    )
    parser.add_argument("--config", help="JSON file with recovery options")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-stage details")
    parser.add_argument("--no-embedded", action="store_true", help="Skip embedded command text")
    parser.add_argument(
        "--no-null-terminated",
        action="store_true",
        help="Skip null-terminated statement reconstruction",
    )
    parser.add_argument("--no-placeholders", action="store_true", help="Never create chunk placeholders")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject low-confidence text recovery",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # index command
    index_parser = subparsers.add_parser("index", help="Show the chunk tree of a file")
    index_parser.add_argument("source", help="Input binary file")
    index_parser.add_argument("--json", action="store_true", help="One JSON object per chunk")

    # recover command
    recover_parser = subparsers.add_parser("recover", help="Recover the scene graph of one or more files")
    recover_parser.add_argument("sources", nargs="+", help="Input binary file(s)")
    recover_parser.add_argument("-o", "--output", help="Write the canonical scene dump here")

    # strings command
    strings_parser = subparsers.add_parser("strings", help="Print the recovered string table")
    strings_parser.add_argument("source", help="Input binary file")

    # verify command
    verify_parser = subparsers.add_parser("verify", help="Check that recovery is deterministic")
    verify_parser.add_argument("source", help="Input binary file")
    verify_parser.add_argument(
        "--runs",
        type=int,
        default=2,
        help="Number of recovery runs to compare (default: 2)",
    )

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger("scenedig").setLevel(logging.DEBUG)
    options = load_options(args)

    if args.command == "index":
        index(args.source, options, as_json=args.json)
    elif args.command == "recover":
        recover(args.sources, options, args.output)
    elif args.command == "strings":
        strings(args.source, options)
    elif args.command == "verify":
        verify(args.source, options, args.runs)


if __name__ == "__main__":
    main()

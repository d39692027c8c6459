"""Run the recovery stages in a fixed order, each in its own isolation boundary."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from scenedig.cache import SceneCache
from scenedig.config import RecoveryOptions
from scenedig.models import BinaryIndex, SceneGraph
from scenedig.protocols import TextSceneParser
from scenedig.readers import build_index
from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.dag_post import post_process_dag
from scenedig.recovery.enumerate import enumerate_nodes
from scenedig.recovery.graph import enrich_graph
from scenedig.recovery.mesh_locate import locate_mesh_chunks
from scenedig.recovery.placeholders import chunk_placeholders, dag_placeholders
from scenedig.recovery.strings import populate_mesh_hints, populate_string_table
from scenedig.recovery.structured import confirm_structured
from scenedig.recovery.tagging import tag_shading, tag_textures
from scenedig.recovery.text_extract import recover_embedded_text, recover_null_terminated
from scenedig.recovery.transform import confirm_transforms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """A named recovery step, optionally switched by a boolean option."""

    name: str
    run: Callable[[RecoveryContext], None]
    option: Optional[str] = None

    def enabled(self, options: RecoveryOptions) -> bool:
        return self.option is None or bool(getattr(options, self.option))


def index_stage(ctx: RecoveryContext) -> None:
    options = ctx.options
    ctx.scene.binary_index = build_index(
        ctx.buffer,
        options.max_chunks,
        container_tags=options.extra_container_tags,
        max_depth=options.max_depth,
        max_strings=options.max_strings,
        scan_safety_limit=options.scan_safety_limit,
        log=ctx.log,
    )


STAGES: list[Stage] = [
    Stage("index", index_stage),
    Stage("string-table", populate_string_table),
    Stage("enumerate", enumerate_nodes, "enumerate_nodes"),
    Stage("shading-tags", tag_shading, "tag_shading_from_strings"),
    Stage("texture-tags", tag_textures, "tag_textures_from_strings"),
    Stage("mesh-hints", populate_mesh_hints),
    Stage("embedded-text", recover_embedded_text, "extract_embedded_text"),
    Stage("null-terminated", recover_null_terminated, "extract_null_terminated_text"),
    Stage("dag-placeholders", dag_placeholders),
    Stage("chunk-placeholders", chunk_placeholders),
    Stage("graph-enrich", enrich_graph),
    Stage("structured", confirm_structured),
    Stage("transform", confirm_transforms),
    Stage("dag-post", post_process_dag),
    Stage("mesh-locate", locate_mesh_chunks),
]


def run_stage(stage: Stage, ctx: RecoveryContext) -> bool:
    """Run one stage; a failure becomes a warning and partial changes are kept.

    Returns:
        True if the stage completed
    """
    try:
        stage.run(ctx)
        return True
    except Exception as e:
        ctx.log.warn(f"{stage.name} failed (continue): {type(e).__name__}: {e}")
        logger.debug(f"Stage {stage.name} traceback", exc_info=True)
        return False


def recover(
    buffer: bytes,
    options: Optional[RecoveryOptions] = None,
    *,
    source_path: str = "",
    text_parser: Optional[TextSceneParser] = None,
    cache: Optional[SceneCache] = None,
    stages: Optional[list[Stage]] = None,
) -> SceneGraph:
    """Recover a scene graph from an opaque binary buffer.

    Never raises for malformed input: every problem ends up in scene.log and
    whatever the stages managed to recover is returned.

    Args:
        buffer: Raw file content
        options: Thresholds, caps and stage switches
        source_path: Recorded on the scene and used in parse labels
        text_parser: Parser for recovered command text (defaults to CommandTextParser)
        cache: Caller-owned mesh assignment cache to fill
        stages: Stage list to run instead of STAGES

    Returns:
        The recovered SceneGraph
    """
    options = options or RecoveryOptions()
    scene = SceneGraph()
    scene.set_raw_binary(source_path, bytes(buffer))
    ctx = RecoveryContext(scene=scene, options=options, text_parser=text_parser, cache=cache)

    for stage in stages if stages is not None else STAGES:
        if not stage.enabled(options):
            ctx.log.info(f"{stage.name}: disabled")
            continue
        completed = run_stage(stage, ctx)
        if stage.name == "index" and (not completed or scene.binary_index is None):
            scene.binary_index = BinaryIndex(file_size=len(scene.raw_bytes))

    counts = scene.count_node_types()
    summary = ", ".join(f"{t}={n}" for t, n in sorted(counts.items()))
    ctx.log.info(
        f"Recovered {len(scene.nodes)} nodes, {len(scene.connections)} connections"
        + (f" ({summary})" if summary else "")
    )
    return scene


def recover_file(
    path: Path | str,
    options: Optional[RecoveryOptions] = None,
    **kwargs,
) -> SceneGraph:
    """Read a file and recover its scene graph.

    An unreadable file is the only fatal condition; it is logged as an error
    and an empty SceneGraph is returned.
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        scene = SceneGraph(source_path=str(path))
        scene.log.error(f"Failed to read {path}: {e}")
        return scene
    return recover(content, options, source_path=str(path), **kwargs)

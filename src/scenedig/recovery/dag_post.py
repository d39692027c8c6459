"""Final DAG cleanup: short names and shape/transform cross links."""

from scenedig.models import Provenance
from scenedig.recovery.context import RecoveryContext


def post_process_dag(ctx: RecoveryContext) -> None:
    scene = ctx.scene
    shapes = 0
    for node in scene.nodes.values():
        leaf = node.leaf
        node.set_default(".shortName", [leaf], "string", Provenance.HEURISTIC)
        if not leaf.endswith("Shape"):
            continue

        node.offer_type("mesh", Provenance.HEURISTIC)
        parent = scene.nodes.get(node.parent_name) if node.parent_name else None
        if parent is None:
            continue
        if not parent.set_default(".shapeChild", [node.name], "string", Provenance.HEURISTIC):
            if parent.tokens(".shapeChild") != [node.name]:
                parent.set_default(".shapeChild2", [node.name], "string", Provenance.HEURISTIC)
        node.set_default(".parentTransform", [parent.name], "string", Provenance.HEURISTIC)
        shapes += 1

    ctx.log.info(f"DAG post: nodes={len(scene.nodes)}, shapes={shapes}")

"""Heuristic graph enrichment from the order of recovered strings."""

from scenedig.models import Provenance, RawStatement
from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.evidence import guess_type_token, looks_like_node_leaf, looks_like_plug

TYPE_LOOKAHEAD = 18
TYPE_LOOKBEHIND = 10
PLUG_PAIR_DISTANCE = 6
MAX_HEURISTIC_CONNECTIONS = 20_000


def _guess_near(pool: list[str], i: int) -> tuple[str, str]:
    """Type token near pool[i]: ahead first, then behind. Returns (type, token) or ('', '')."""
    for j in range(i + 1, min(len(pool), i + TYPE_LOOKAHEAD)):
        found = guess_type_token(pool[j])
        if found:
            return found, pool[j]
    for j in range(i - 1, max(-1, i - TYPE_LOOKBEHIND - 1), -1):
        found = guess_type_token(pool[j])
        if found:
            return found, pool[j]
    return "", ""


def enrich_graph(ctx: RecoveryContext) -> None:
    """Guess node types from nearby type tokens and pair up plug-looking strings.

    Plug pairs only become connections when no earlier route recovered any.
    """
    scene = ctx.scene
    index = scene.binary_index
    pool = index.extracted_strings if index is not None else []
    if not pool or not scene.nodes:
        return

    leaf_map = scene.leaf_map()
    typed = 0
    for i, text in enumerate(pool):
        if not looks_like_node_leaf(text) or text not in leaf_map:
            continue
        found, token = _guess_near(pool, i)
        if not found:
            continue
        for name in leaf_map[text]:
            node = scene.nodes[name]
            if node.offer_type(found, Provenance.HEURISTIC):
                typed += 1
            node.set_default(".heuristicType", [found], "string", Provenance.HEURISTIC)
            node.set_default(".heuristicTypeFrom", [token], "string", Provenance.HEURISTIC)

    paired = 0
    if not scene.connections:
        plugs = [(i, text) for i, text in enumerate(pool) if looks_like_plug(text)]
        keys = scene.connection_keys()
        for (i, source), (j, destination) in zip(plugs, plugs[1:]):
            if paired >= MAX_HEURISTIC_CONNECTIONS:
                break
            if j - i > PLUG_PAIR_DISTANCE or source == destination:
                continue
            if scene.add_connection(source, destination, existing=keys):
                scene.raw_statements.append(RawStatement(
                    command="connectHeuristic",
                    text=f'connectAttr "{source}" "{destination}";',
                    tokens=["connectAttr", source, destination],
                ))
                paired += 1
        if not paired:
            ctx.log.warn("Graph enrich: no plug pairs found for heuristic connections")

    ctx.log.info(f"Graph enrich: typed={typed}, connections={paired}")

"""String-evidence predicates shared by the recovery passes."""

import re
from typing import Iterable, Optional

from scenedig.models import NodeRecord, Provenance, SceneGraph
from scenedig.models.scene import leaf_of_dag, normalize_dag
from scenedig.utils.binary import is_numeric_like

KNOWN_NODE_TYPES = (
    "transform", "mesh", "joint", "camera",
    "directionalLight", "pointLight", "spotLight", "areaLight",
    "shadingEngine", "lambert", "blinn", "phong",
    "skinCluster", "blendShape",
)

_NAME_CHARS = re.compile(r"^[A-Za-z0-9_:\-]+$")


def looks_like_dag_path(text: str) -> bool:
    """'|a|b' style path: leading '|' and at least one more separator."""
    return 3 <= len(text) <= 200 and text[0] == "|" and text.find("|", 1) > 0


def _is_name(text: str, min_len: int, max_len: int) -> bool:
    if not (min_len <= len(text) <= max_len):
        return False
    return bool(_NAME_CHARS.match(text)) and any(ch.isalpha() for ch in text)


def looks_like_node_leaf(text: str) -> bool:
    """Short node name without path, plug or file separators."""
    return _is_name(text, 2, 80)


def looks_like_identifier(text: str) -> bool:
    return _is_name(text, 2, 120)


def looks_like_node_name(text: str) -> bool:
    """Short node name or '|a|b' path."""
    if not (2 <= len(text) <= 128) or "/" in text or "\\" in text:
        return False
    if text[0] == "|" and text.find("|", 1) > 0:
        return True
    return _is_name(text, 2, 128)


def _has_identifier_char(text: str) -> bool:
    return any(ch.isalpha() or ch in "_|:" for ch in text)


def looks_like_plug(text: str) -> bool:
    """'node.attr' with identifier characters on both sides of the dot."""
    if not (4 <= len(text) <= 160):
        return False
    dot = text.find(".")
    if dot <= 0 or dot >= len(text) - 1:
        return False
    if is_numeric_like(text) or "/" in text or "\\" in text:
        return False
    return _has_identifier_char(text[:dot]) and _has_identifier_char(text[dot + 1 :])


def guess_type_token(token: str) -> Optional[str]:
    """Map a string to a node type when it names or strongly implies one."""
    if token in KNOWN_NODE_TYPES:
        return token
    if token.endswith("Light"):
        return token
    if token.endswith("Shape"):
        return "mesh"
    lowered = token.lower()
    if "camera" in lowered:
        return "camera"
    if "joint" in lowered:
        return "joint"
    return None


def mesh_keys(scene: SceneGraph) -> list[str]:
    """Names of mesh nodes (typed mesh or '...Shape' leaves), in insertion order."""
    return [
        name for name, node in scene.nodes.items()
        if node.node_type == "mesh" or leaf_of_dag(name).endswith("Shape")
    ]


def find_mesh_key(keys: Iterable[str], strings: Optional[list[str]]) -> Optional[str]:
    """First mesh referenced by a chunk's strings, by DAG path then by Shape leaf."""
    if not strings:
        return None
    keys = list(keys)
    key_set = set(keys)
    for text in strings:
        if looks_like_dag_path(text):
            path = normalize_dag(text)
            if path in key_set:
                return path
    for text in strings:
        if not text.endswith("Shape"):
            continue
        for key in keys:
            if leaf_of_dag(key) == text:
                return key
    return None


def set_slot(
    node: NodeRecord,
    base_key: str,
    value: str,
    max_slots: int,
    provenance: Provenance = Provenance.HEURISTIC,
) -> bool:
    """Store value in the first free slot base_key, base_key2, ... once.

    Returns:
        True if a new slot was written
    """
    keys = [base_key if i == 1 else f"{base_key}{i}" for i in range(1, max_slots + 1)]
    for key in keys:
        if node.tokens(key)[:1] == [value]:
            return False
    for key in keys:
        if not node.has(key):
            node.set_attr(key, [value], "string", provenance)
            return True
    return False

"""Tag mesh nodes with shading and texture names found near them."""

from typing import Optional

from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.evidence import find_mesh_key, looks_like_identifier, mesh_keys, set_slot

SHADING_GROUP_KEY = ".shadingGroupName"
MATERIAL_KEY = ".materialName"
TEXTURE_KEY = ".textureHint"

TEXTURE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".tga", ".tif", ".tiff", ".bmp", ".exr", ".hdr")

# A mesh context ends when a chunk this much shallower is reached
CONTEXT_DEPTH_SLACK = 2


def looks_like_shading_group(text: str) -> bool:
    if not looks_like_identifier(text):
        return False
    return text.endswith("SG") or "shadinggroup" in text.lower()


def looks_like_material(text: str) -> bool:
    if not looks_like_identifier(text) or text.endswith("SG"):
        return False
    return len(text) >= 4 or "mat" in text.lower()


def looks_like_texture_file(text: str) -> bool:
    return 5 <= len(text) <= 260 and text.lower().endswith(TEXTURE_EXTENSIONS)


def _name_near(strings: list[str], marker: str) -> Optional[str]:
    for i, text in enumerate(strings):
        if text != marker:
            continue
        if i + 1 < len(strings) and looks_like_identifier(strings[i + 1]):
            return strings[i + 1]
        if i > 0 and looks_like_identifier(strings[i - 1]):
            return strings[i - 1]
    return None


def _mesh_contexts(ctx: RecoveryContext):
    """Yield (mesh node, leaf chunk strings) for chunks following a mesh reference."""
    scene = ctx.scene
    keys = mesh_keys(scene)
    if not keys:
        return

    current = None
    current_depth = -1
    for chunk in ctx.chunks:
        if chunk.is_container:
            continue
        found = find_mesh_key(keys, chunk.decoded_strings)
        if found:
            current, current_depth = found, chunk.depth
        if current is None:
            continue
        if chunk.depth < current_depth - CONTEXT_DEPTH_SLACK:
            current, current_depth = None, -1
            continue
        node = scene.nodes.get(current)
        if node is not None and chunk.decoded_strings:
            yield node, chunk.decoded_strings


def tag_shading(ctx: RecoveryContext) -> None:
    """Record shading group and material names seen in a mesh's chunk context."""
    groups = materials = 0
    for node, strings in _mesh_contexts(ctx):
        if "shadingEngine" in strings:
            name = _name_near(strings, "shadingEngine")
            if name and looks_like_shading_group(name) and set_slot(node, SHADING_GROUP_KEY, name, 4):
                groups += 1

        for text in strings:
            if looks_like_shading_group(text) and set_slot(node, SHADING_GROUP_KEY, text, 4):
                groups += 1

        if "surfaceShader" in strings or "material" in strings:
            name = _name_near(strings, "surfaceShader") or _name_near(strings, "material")
            if name and looks_like_material(name) and set_slot(node, MATERIAL_KEY, name, 2):
                materials += 1

    ctx.log.info(f"Shading tags: groups={groups}, materials={materials}")


def tag_textures(ctx: RecoveryContext) -> None:
    """Record texture file names seen in a mesh's chunk context."""
    tagged = 0
    for node, strings in _mesh_contexts(ctx):
        for text in strings:
            if looks_like_texture_file(text) and set_slot(node, TEXTURE_KEY, text, 4):
                tagged += 1
    ctx.log.info(f"Texture hints: tagged={tagged}")

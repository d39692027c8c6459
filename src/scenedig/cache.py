"""Bounded LRU cache of per-scene mesh assignments."""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class MeshAssignment:
    """Material and payload evidence recovered for one mesh node."""

    mesh: str
    shading_group: Optional[str] = None
    material: Optional[str] = None
    texture: Optional[str] = None
    float_chunk_offsets: list[int] = field(default_factory=list)
    uint_chunk_offsets: list[int] = field(default_factory=list)


class SceneCache:
    """Mesh assignments keyed by the scene's raw content hash.

    Owned by the caller and passed into recovery runs; the least recently
    used scene is evicted once more than max_scenes are held.
    """

    def __init__(self, max_scenes: int = 8):
        if max_scenes < 1:
            raise ValueError("max_scenes must be at least 1")
        self.max_scenes = max_scenes
        self._entries: "OrderedDict[str, dict[str, MeshAssignment]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[dict[str, MeshAssignment]]:
        """Return the assignments for a scene and mark it recently used."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return entry

    def put(self, key: str, assignments: dict[str, MeshAssignment]) -> None:
        """Store assignments for a scene, evicting the oldest when full."""
        self._entries[key] = assignments
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_scenes:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted mesh assignments for scene {evicted[:12]}")

    def assignment(self, key: str, mesh: str) -> MeshAssignment:
        """Return (creating if needed) the assignment of one mesh in a scene."""
        entry = self._entries.get(key)
        if entry is None:
            entry = {}
            self.put(key, entry)
        else:
            self._entries.move_to_end(key)
        found = entry.get(mesh)
        if found is None:
            found = entry[mesh] = MeshAssignment(mesh=mesh)
        return found

    def clear(self) -> None:
        self._entries.clear()

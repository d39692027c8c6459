"""State threaded explicitly through every recovery stage."""

from dataclasses import dataclass, field
from typing import Optional

from scenedig.cache import SceneCache
from scenedig.config import RecoveryOptions
from scenedig.models import RecoveryLog, SceneGraph
from scenedig.protocols import TextSceneParser


@dataclass
class RecoveryContext:
    """Everything a stage may read or write during one run."""

    scene: SceneGraph
    options: RecoveryOptions = field(default_factory=RecoveryOptions)
    text_parser: Optional[TextSceneParser] = None
    cache: Optional[SceneCache] = None

    @property
    def log(self) -> RecoveryLog:
        return self.scene.log

    @property
    def buffer(self) -> bytes:
        return self.scene.raw_bytes

    @property
    def chunks(self):
        index = self.scene.binary_index
        return index.chunks if index is not None else []

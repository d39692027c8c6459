"""Protocol definitions for extensible components."""

from scenedig.protocols.decoder import LeafDecoder
from scenedig.protocols.text_parser import TextSceneParser

__all__ = ["LeafDecoder", "TextSceneParser"]

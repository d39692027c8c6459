"""Protocol for the text-grammar scene parser."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from scenedig.models import SceneGraph

if TYPE_CHECKING:
    from scenedig.config import RecoveryOptions


@runtime_checkable
class TextSceneParser(Protocol):
    """Parser turning recovered command text into a secondary scene.

    The recovery pipeline only relies on this contract, not on the grammar
    behind it.
    """

    def parse_text(self, label: str, text: str, options: "RecoveryOptions") -> SceneGraph:
        """Parse command text into a new SceneGraph labelled with label."""
        ...

"""Protocol for leaf decode strategies."""

from typing import Optional, Protocol, runtime_checkable

from scenedig.models import DecodedValue


@runtime_checkable
class LeafDecoder(Protocol):
    """One step of the leaf decode cascade.

    Implementations must be pure: the same tag and payload always yield the
    same result, and no decoder may look at sibling or ancestor chunks.
    """

    @property
    def name(self) -> str:
        """Return identifier for this strategy (e.g., 'tagged', 'stringz-guess')."""
        ...

    def decode(self, tag: str, payload: bytes) -> Optional[DecodedValue]:
        """Return a decoded value, or None to fall through to the next strategy."""
        ...

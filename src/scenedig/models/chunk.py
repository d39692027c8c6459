"""Data models for the chunk tree and leaf decode results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from scenedig.utils.binary import align

CHUNK_HEADER_SIZE = 8
FORM_TYPE_SIZE = 4

MAX_SAMPLE_STRINGS = 8
MAX_SAMPLE_STRING_LENGTH = 512
MAX_SAMPLE_NUMBERS = 16


class DecodedKind(Enum):
    """Value kind recovered from a leaf payload."""

    UNKNOWN = "unknown"
    STRINGZ = "stringZ"
    UINT32_BE = "uint32"
    FLOAT32_BE = "float32"


@dataclass
class DecodedValue:
    """Output of a single decode strategy."""

    kind: DecodedKind
    strings: list[str] = field(default_factory=list)
    ints: list[int] = field(default_factory=list)
    floats: list[float] = field(default_factory=list)

    def preview(self) -> Optional[str]:
        """Short human-readable summary used in chunk listings."""
        if self.kind is DecodedKind.STRINGZ:
            values = [_trim_preview(s) for s in self.strings]
        elif self.kind is DecodedKind.UINT32_BE:
            values = [str(v) for v in self.ints]
        elif self.kind is DecodedKind.FLOAT32_BE:
            values = [format(v, ".9g") for v in self.floats]
        else:
            return None

        label = self.kind.value
        if not values:
            return f"{label}: (empty)"
        if len(values) == 1:
            return f"{label}: {values[0]}"
        return f"{label}[{len(values)}]: {values[0]} ..."


def _trim_preview(text: str) -> str:
    text = text.replace("\r", "").replace("\n", "")
    if len(text) > 80:
        return text[:80] + "..."
    return text


@dataclass
class Chunk:
    """One chunk of the container tree (container or leaf)."""

    tag: str
    offset: int
    size: int
    is_container: bool
    form_type: Optional[str] = None
    depth: int = 0
    alignment: int = 2

    decoded_kind: DecodedKind = DecodedKind.UNKNOWN
    preview: Optional[str] = None
    decoded_strings: Optional[list[str]] = None
    decoded_floats: Optional[list[float]] = None
    decoded_ints: Optional[list[int]] = None

    @property
    def data_offset(self) -> int:
        return self.offset + CHUNK_HEADER_SIZE

    @property
    def data_size(self) -> int:
        return self.size

    @property
    def data_end(self) -> int:
        return self.data_offset + self.size

    @property
    def next_offset(self) -> int:
        """Aligned offset where the next sibling header starts."""
        return align(self.data_end, self.alignment)

    @property
    def child_offset(self) -> int:
        """Aligned offset of the first child header (containers only)."""
        start = self.data_offset
        if self.form_type is not None:
            start += FORM_TYPE_SIZE
        return align(start, self.alignment)

    def apply(self, value: DecodedValue) -> None:
        """Store a successful decode as capped samples on this chunk."""
        self.decoded_kind = value.kind
        self.preview = value.preview()
        if value.strings:
            self.decoded_strings = [
                s[:MAX_SAMPLE_STRING_LENGTH] for s in value.strings[:MAX_SAMPLE_STRINGS]
            ]
        if value.floats:
            self.decoded_floats = list(value.floats[:MAX_SAMPLE_NUMBERS])
        if value.ints:
            self.decoded_ints = list(value.ints[:MAX_SAMPLE_NUMBERS])


@dataclass
class BinaryIndex:
    """Pre-order chunk listing plus the global recovered string pool."""

    file_size: int = 0
    header_tag: Optional[str] = None
    chunks: list[Chunk] = field(default_factory=list)
    extracted_strings: list[str] = field(default_factory=list)
    max_strings: int = 2000
    _seen: set[str] = field(default_factory=set, repr=False, compare=False)

    def add_strings(self, strings: list[str]) -> int:
        """Append new strings to the pool, keeping order and the cap.

        Returns:
            Number of strings actually added
        """
        added = 0
        for s in strings:
            if len(self.extracted_strings) >= self.max_strings:
                break
            if not s:
                continue
            s = s[:MAX_SAMPLE_STRING_LENGTH]
            if s in self._seen:
                continue
            self._seen.add(s)
            self.extracted_strings.append(s)
            added += 1
        return added

    @property
    def pool_full(self) -> bool:
        return len(self.extracted_strings) >= self.max_strings

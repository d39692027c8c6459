"""Strict decode for chunk tags whose value kind is known."""

from typing import Optional

import numpy as np

from scenedig.models import DecodedKind, DecodedValue

# Static tag -> kind table
TAG_KINDS: dict[str, DecodedKind] = {
    "INFO": DecodedKind.STRINGZ,
    "VERS": DecodedKind.STRINGZ,
    "MADE": DecodedKind.STRINGZ,
    "CHNG": DecodedKind.STRINGZ,
    "CHNM": DecodedKind.STRINGZ,
    "NAME": DecodedKind.STRINGZ,
    "ETIM": DecodedKind.UINT32_BE,
    "STIM": DecodedKind.UINT32_BE,
    "SIZE": DecodedKind.UINT32_BE,
    "FLT3": DecodedKind.FLOAT32_BE,
}

MAX_STRING_CHARS = 1024
MAX_STRING_ITEMS = 256
MAX_NUMERIC_VALUES = 4096


def decode_stringz(payload: bytes) -> list[str]:
    """Split a payload into NUL-terminated strings.

    Strings are decoded as Latin-1 so that every byte maps to one character;
    each is capped at MAX_STRING_CHARS and at most MAX_STRING_ITEMS are kept.
    """
    strings = []
    for raw in payload.split(b"\x00"):
        if not raw:
            continue
        strings.append(raw[:MAX_STRING_CHARS].decode("latin-1"))
        if len(strings) >= MAX_STRING_ITEMS:
            break
    return strings


def decode_uint32_be(payload: bytes) -> Optional[list[int]]:
    """Big-endian uint32 array, or None unless the size is a multiple of 4."""
    if len(payload) % 4 != 0:
        return None
    count = min(len(payload) // 4, MAX_NUMERIC_VALUES)
    values = np.frombuffer(payload, dtype=">u4", count=count)
    return [int(v) for v in values]


def decode_float32_be(payload: bytes) -> Optional[list[float]]:
    """Big-endian float32 array, or None unless the size is a multiple of 4.

    Non-finite values are replaced by 0.0.
    """
    if len(payload) % 4 != 0:
        return None
    count = min(len(payload) // 4, MAX_NUMERIC_VALUES)
    values = np.frombuffer(payload, dtype=">f4", count=count).astype(np.float64)
    values = np.where(np.isfinite(values), values, 0.0)
    return [float(v) for v in values]


class TaggedDecoder:
    """Decode via the static tag table; never guesses."""

    name = "tagged"

    def __init__(self, tag_kinds: Optional[dict[str, DecodedKind]] = None):
        self.tag_kinds = dict(TAG_KINDS if tag_kinds is None else tag_kinds)

    def decode(self, tag: str, payload: bytes) -> Optional[DecodedValue]:
        kind = self.tag_kinds.get(tag)
        if kind is None:
            return None

        if kind is DecodedKind.STRINGZ:
            return DecodedValue(kind, strings=decode_stringz(payload))

        if kind is DecodedKind.UINT32_BE:
            ints = decode_uint32_be(payload)
            return None if ints is None else DecodedValue(kind, ints=ints)

        if kind is DecodedKind.FLOAT32_BE:
            floats = decode_float32_be(payload)
            return None if floats is None else DecodedValue(kind, floats=floats)

        return None

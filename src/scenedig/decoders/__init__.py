"""Leaf decode cascade: ordered strategies, first success wins."""

from typing import Optional

from scenedig.decoders.guess import Float32Guesser, StringZGuesser
from scenedig.decoders.scavenger import scavenge_tokens
from scenedig.decoders.tagged import TAG_KINDS, TaggedDecoder
from scenedig.models import BinaryIndex, Chunk, DecodedKind
from scenedig.protocols import LeafDecoder

# Registry of decode strategies, highest confidence first
_DECODERS: list[LeafDecoder] = [
    TaggedDecoder(),
    StringZGuesser(),
    Float32Guesser(),
]


def get_decoders() -> list[LeafDecoder]:
    """Return the cascade in priority order."""
    return list(_DECODERS)


def register_decoder(decoder: LeafDecoder) -> None:
    """Register a custom strategy, tried after the built-in ones.

    Args:
        decoder: An object implementing the LeafDecoder protocol
    """
    _DECODERS.append(decoder)


def decode_leaf(
    buffer: bytes,
    chunk: Chunk,
    index: Optional[BinaryIndex] = None,
    decoders: Optional[list[LeafDecoder]] = None,
) -> Optional[str]:
    """Annotate a leaf chunk with the first successful decode.

    Decoded strings, or scavenged tokens when every strategy declines, are
    appended to the index's string pool.

    Args:
        buffer: Complete input buffer
        chunk: Leaf chunk whose data range lies inside buffer
        index: Index owning the global string pool (optional)
        decoders: Cascade override; defaults to the registry

    Returns:
        Name of the strategy that decoded the chunk, or None if it fell
        through to the scavenger
    """
    payload = bytes(buffer[chunk.data_offset : chunk.data_end])
    for decoder in decoders if decoders is not None else _DECODERS:
        value = decoder.decode(chunk.tag, payload)
        if value is None:
            continue
        chunk.apply(value)
        if index is not None and value.strings:
            index.add_strings(value.strings)
        return decoder.name

    chunk.decoded_kind = DecodedKind.UNKNOWN
    if index is not None and not index.pool_full:
        index.add_strings(scavenge_tokens(payload, limit=index.max_strings))
    return None


__all__ = [
    "TAG_KINDS",
    "Float32Guesser",
    "StringZGuesser",
    "TaggedDecoder",
    "decode_leaf",
    "get_decoders",
    "register_decoder",
    "scavenge_tokens",
]

"""Byte classification helpers shared by the reader, decoders and extractors."""

# Bytes allowed inside scavenged identifier-like tokens
IDENTIFIER_BYTES = frozenset(
    b"abcdefghijklmnopqrstuvwxyz"
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    b"0123456789"
    b"_|:.-/\\"
)

NOISE_RUN_LENGTH = 10


def align(value: int, boundary: int) -> int:
    """Round value up to the next multiple of boundary."""
    if boundary <= 1:
        return value
    remainder = value % boundary
    return value if remainder == 0 else value + (boundary - remainder)


def is_printable_or_null(byte: int) -> bool:
    return byte == 0 or 32 <= byte <= 126


def printable_ratio(content: bytes, sample_size: int = 512) -> float:
    """Fraction of printable (or NUL) bytes in the leading sample.

    Args:
        content: Raw payload
        sample_size: Number of bytes to sample from the start

    Returns:
        Ratio in [0, 1]; 0.0 for empty content
    """
    sample = content[:sample_size]
    if not sample:
        return 0.0
    printable = sum(1 for byte in sample if is_printable_or_null(byte))
    return printable / len(sample)


def is_valid_tag(raw: bytes) -> bool:
    """A chunk tag is exactly four printable ASCII bytes."""
    return len(raw) == 4 and all(32 <= byte <= 126 for byte in raw)


def has_letter(text: str) -> bool:
    return any(ch.isalpha() for ch in text)


def looks_like_noise(text: str) -> bool:
    """Detect strings that are mostly one repeated character.

    A long run of the same character, or a single character making up more
    than half of a string of four or more characters, marks binary padding
    that happens to fall into the printable range.
    """
    if not text:
        return True

    run = 1
    for prev, cur in zip(text, text[1:]):
        run = run + 1 if cur == prev else 1
        if run >= NOISE_RUN_LENGTH:
            return True

    if len(text) >= 4:
        most_common = max(text.count(ch) for ch in set(text))
        if most_common * 2 > len(text):
            return True

    return False


def is_numeric_like(text: str) -> bool:
    """True for strings such as '0.5', '-1e3' or '12'."""
    return bool(text) and all(ch.isdigit() or ch in "+-.eE" for ch in text)

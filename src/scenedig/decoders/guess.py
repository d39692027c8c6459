"""Content-sniffing decoders for leaves with unknown tags."""

import math
from typing import Optional

import numpy as np

from scenedig.decoders.tagged import decode_float32_be, decode_stringz
from scenedig.models import DecodedKind, DecodedValue
from scenedig.utils.binary import has_letter, looks_like_noise, printable_ratio


class StringZGuesser:
    """Accept payloads that read as NUL-terminated identifier or path text."""

    name = "stringz-guess"

    MIN_PRINTABLE_RATIO = 0.65
    MIN_COVERAGE = 0.60
    MIN_LENGTH = 2

    def decode(self, tag: str, payload: bytes) -> Optional[DecodedValue]:
        if b"\x00" not in payload:
            return None
        if printable_ratio(payload) < self.MIN_PRINTABLE_RATIO:
            return None

        kept = [s for s in decode_stringz(payload) if self._plausible(s)]
        if not kept:
            return None

        # Terminators count toward coverage
        covered = sum(len(s) + 1 for s in kept)
        if covered < self.MIN_COVERAGE * len(payload):
            return None
        return DecodedValue(DecodedKind.STRINGZ, strings=kept)

    def _plausible(self, text: str) -> bool:
        if len(text) < self.MIN_LENGTH:
            return False
        if not all(32 <= ord(ch) <= 126 or ch in "\t\r\n" for ch in text):
            return False
        return has_letter(text) and not looks_like_noise(text)


class Float32Guesser:
    """Accept payloads that read as a plausible big-endian float array."""

    name = "float32-guess"

    MIN_SIZE = 12
    SAMPLE_VALUES = 64
    MIN_FINITE_RATIO = 0.85
    MIN_PLAUSIBLE_RATIO = 0.70
    MAX_MAGNITUDE = 1e6
    MIN_MAGNITUDE = 1e-30

    def decode(self, tag: str, payload: bytes) -> Optional[DecodedValue]:
        if len(payload) < self.MIN_SIZE or len(payload) % 4 != 0:
            return None

        count = min(len(payload) // 4, self.SAMPLE_VALUES)
        sample = np.frombuffer(payload, dtype=">f4", count=count).astype(np.float64)
        finite = sample[np.isfinite(sample)]
        if len(finite) < self.MIN_FINITE_RATIO * count:
            return None

        magnitude = np.abs(finite)
        plausible = (magnitude == 0.0) | (
            (magnitude >= self.MIN_MAGNITUDE) & (magnitude <= self.MAX_MAGNITUDE)
        )
        if int(plausible.sum()) < self.MIN_PLAUSIBLE_RATIO * count:
            return None
        if not np.any(magnitude > 0.0):
            return None

        floats = decode_float32_be(payload)
        if floats is None:
            return None
        return DecodedValue(DecodedKind.FLOAT32_BE, floats=[_clean(v) for v in floats])


def _clean(value: float) -> float:
    # Negative zero canonicalizes to zero
    return 0.0 if value == 0.0 or not math.isfinite(value) else value

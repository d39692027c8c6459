"""Last-resort scan for identifier-like ASCII runs in opaque payloads."""

from scenedig.utils.binary import IDENTIFIER_BYTES, has_letter, looks_like_noise

MIN_TOKEN_LENGTH = 4
MAX_TOKEN_LENGTH = 128


def scavenge_tokens(payload: bytes, limit: int = 0) -> list[str]:
    """Collect runs of identifier bytes from a payload.

    Args:
        payload: Raw chunk bytes
        limit: Stop after this many tokens (0 = no limit)

    Returns:
        Tokens in byte order, each truncated to MAX_TOKEN_LENGTH
    """
    tokens: list[str] = []
    start = -1
    for i in range(len(payload) + 1):
        inside = i < len(payload) and payload[i] in IDENTIFIER_BYTES
        if inside:
            if start < 0:
                start = i
            continue
        if start < 0:
            continue
        if i - start >= MIN_TOKEN_LENGTH:
            token = payload[start : min(i, start + MAX_TOKEN_LENGTH)].decode("ascii")
            if has_letter(token) and not looks_like_noise(token):
                tokens.append(token)
                if limit and len(tokens) >= limit:
                    break
        start = -1
    return tokens

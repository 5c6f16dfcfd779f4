"""Token estimates and prompt trimming.

Search contents and learnings are untrusted in size; they are trimmed to a
token budget before being placed in a prompt.
"""

# Shortest prefix worth sending when a text has to be cut hard
MIN_CHUNK_SIZE = 140

# Characters per token used when converting a token overflow into characters
CHARS_PER_TOKEN = 3


def count_tokens(text: str) -> int:
    """Estimate tokens in text.

    Conservative character-based estimate (1 token ≈ 4 chars); budget
    enforcement is approximate and avoids per-call API round-trips.
    """
    if not text:
        return 0
    return max(1, len(text) // 4)


def _find_break(text: str, limit: int) -> int:
    """Find the last natural break at or before ``limit`` characters."""
    for sep in ("\n\n", "\n", " "):
        pos = text.rfind(sep, 0, limit)
        if pos > 0:
            return pos
    return limit


def trim_prompt(text: str, context_size: int) -> str:
    """Trim text so its estimated token count fits ``context_size``.

    Cuts at a paragraph, line or word boundary where possible, and never
    returns less than MIN_CHUNK_SIZE characters of a non-empty text.

    Args:
        text: Content to potentially trim.
        context_size: Maximum allowed tokens.

    Returns:
        Original text if within budget, a trimmed prefix otherwise.
    """
    while text:
        length = count_tokens(text)
        if length <= context_size:
            return text

        overflow = length - context_size
        chunk_size = len(text) - overflow * CHARS_PER_TOKEN
        if chunk_size < MIN_CHUNK_SIZE:
            return text[:MIN_CHUNK_SIZE]

        trimmed = text[:_find_break(text, chunk_size)].rstrip()
        if not trimmed or len(trimmed) >= len(text):
            trimmed = text[:chunk_size]
        text = trimmed
    return ""

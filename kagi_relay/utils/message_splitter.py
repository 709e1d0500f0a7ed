"""Fit text into the chat platform's fixed-size messages."""

from __future__ import annotations

CODE_FENCE = "```"
DEFAULT_CHUNK_LENGTH = 1900
TRUNCATION_NOTICE = "... (response truncated due to length)"


def truncate(text: str, max_chars: int, *, ellipsis: str = "...") -> str:
    """Cut ``text`` to at most ``max_chars`` characters, ending in ``ellipsis``.

    Examples:
        >>> truncate("abcdef", 5)
        'ab...'
        >>> truncate("abc", 5)
        'abc'
    """
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(ellipsis)] + ellipsis


def split_message(message: str, max_length: int = DEFAULT_CHUNK_LENGTH) -> list[str]:
    """Split a message on line boundaries into chunks of at most ``max_length``.

    Messages containing a code fence are returned whole: splitting inside a
    fence breaks rendering, so the caller decides how to shorten them. A
    single line longer than ``max_length`` becomes its own oversized chunk.

    Args:
        message: Text to split.
        max_length: Target maximum chunk length.

    Returns:
        list[str]: One or more chunks, in order.
    """
    if len(message) <= max_length or CODE_FENCE in message:
        return [message]

    chunks: list[str] = []
    current = ""
    # A chunk may legitimately start with an empty line
    started = False

    for line in message.split("\n"):
        if started and len(current) + len(line) + 1 > max_length:
            chunks.append(current)
            current = line
        elif started:
            current += "\n" + line
        else:
            current = line
            started = True

    if started:
        chunks.append(current)

    return chunks


def fit_message(message: str, limit: int, max_length: int = DEFAULT_CHUNK_LENGTH) -> list[str]:
    """Split ``message`` for sending, truncating when it cannot be split.

    Args:
        message: Text to send.
        limit: Hard per-message limit of the chat platform.
        max_length: Preferred chunk length (kept below ``limit``).

    Returns:
        list[str]: Messages to send in order, each within ``limit``.
    """
    chunks = split_message(message, min(max_length, limit))
    if all(len(chunk) <= limit for chunk in chunks):
        return chunks

    # Unsplittable (code fence or one huge line): truncate each oversize chunk
    keep = max(limit - 50, 0)
    return [
        chunk if len(chunk) <= limit else chunk[:keep] + TRUNCATION_NOTICE
        for chunk in chunks
    ]

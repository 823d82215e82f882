"""
Message chunking for chatrelay

Game chat rejects lines longer than 254 bytes, so outbound text is cut
into fragments under that bound. Cuts are made on UTF-8 byte offsets and
moved back to the nearest character boundary, so every fragment is valid
text. ASCII input is cut into fixed 254-byte fragments.
"""

from typing import List


MAX_CHAT_BYTES = 254

# Longest UTF-8 encoded character
_MAX_CHAR_BYTES = 4


def _is_continuation(byte: int) -> bool:
    return (byte & 0xC0) == 0x80


def split_utf8(text: str, limit: int = MAX_CHAT_BYTES) -> List[str]:
    """
    Split text into fragments of at most ``limit`` UTF-8 bytes.

    Args:
        text: Text to split
        limit: Maximum encoded size of a fragment in bytes

    Returns:
        Non-empty list of fragments whose concatenation equals ``text``

    Raises:
        ValueError: If ``limit`` cannot hold every possible character
    """
    if limit < _MAX_CHAR_BYTES:
        raise ValueError(f"Chunk limit must be at least {_MAX_CHAR_BYTES} bytes, got {limit}")

    data = text.encode('utf-8')
    if len(data) <= limit:
        return [text]

    fragments = []
    while len(data) > limit:
        cut = limit
        # data[cut] exists because len(data) > limit
        while cut > 0 and _is_continuation(data[cut]):
            cut -= 1
        fragments.append(data[:cut].decode('utf-8'))
        data = data[cut:]

    fragments.append(data.decode('utf-8'))
    return fragments


def chunk_message(prefix: str, body: str, limit: int = MAX_CHAT_BYTES) -> List[str]:
    """
    Format ``prefix: body`` and split it into chat-sized fragments.

    Only the first fragment carries the prefix; later fragments continue
    the text where the previous one stopped.
    """
    return split_utf8(f"{prefix}: {body}", limit)

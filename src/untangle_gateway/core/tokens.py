"""
Token estimation used when an upstream does not report usage.

Roughly four characters per token, counted in UTF-16 code units. This is
a usage approximation, not a tokenizer, and it is known to undercount
non-Latin scripts.
"""

import json
import math
from typing import Any


def utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def estimate_tokens(text: str) -> int:
    """ceil(utf16_length(text) / 4)."""
    if not text:
        return 0
    return math.ceil(utf16_length(text) / 4)


def estimate_message_tokens(messages: Any) -> int:
    """Estimate input tokens from the compact JSON serialization of a message list."""
    serialized = json.dumps(messages, separators=(",", ":"), ensure_ascii=False)
    return estimate_tokens(serialized)

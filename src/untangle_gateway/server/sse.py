"""
Incremental decoding of upstream event streams.

Upstream bytes arrive in arbitrary pieces; the decoder buffers them and
hands out complete event payloads. Two framings are supported:

- sse: blank-line separated blocks; the `data:` lines of a block are
  joined with newlines to form the payload
- json-lines: every non-empty line is one payload
"""

from typing import List, Optional

SSE = "sse"
JSON_LINES = "json-lines"


def parse_block(block: str) -> Optional[str]:
    """
    Extract the payload of one SSE block.

    Args:
        block: Text between two blank lines

    Returns:
        Joined data lines, or None when the block has no data line
    """
    data_lines = []
    for line in block.split("\n"):
        if line.startswith("data:"):
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)

    if not data_lines:
        return None
    return "\n".join(data_lines)


class EventDecoder:
    """
    Buffering decoder for one upstream stream.

    Example:
        decoder = EventDecoder()
        for text in pieces:
            for payload in decoder.feed(text):
                ...
        for payload in decoder.flush():
            ...
    """

    def __init__(self, stream_format: str = SSE):
        if stream_format not in (SSE, JSON_LINES):
            raise ValueError(f"Unsupported stream format: {stream_format}")
        self.stream_format = stream_format
        self._buffer = ""

    def feed(self, text: str) -> List[str]:
        """Add decoded text and return the payloads completed by it."""
        self._buffer = (self._buffer + text).replace("\r\n", "\n")

        separator = "\n\n" if self.stream_format == SSE else "\n"
        parts = self._buffer.split(separator)
        self._buffer = parts.pop()
        return self._payloads(parts)

    def flush(self) -> List[str]:
        """Return payloads left in the buffer when the stream ends without a final separator."""
        remaining, self._buffer = self._buffer, ""
        if not remaining.strip():
            return []
        if self.stream_format == SSE:
            return self._payloads([remaining])
        return self._payloads(remaining.split("\n"))

    def _payloads(self, parts: List[str]) -> List[str]:
        payloads = []
        for part in parts:
            if self.stream_format == SSE:
                payload = parse_block(part)
            else:
                payload = part.strip() or None
            if payload is not None:
                payloads.append(payload)
        return payloads

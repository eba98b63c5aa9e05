"""
Tests for the incremental event decoder.
"""

import pytest

from untangle_gateway.server.sse import EventDecoder, parse_block


class TestParseBlock:

    def test_data_line(self):
        assert parse_block('data: {"a": 1}') == '{"a": 1}'

    def test_multiple_data_lines_joined_with_newline(self):
        assert parse_block("event: x\ndata: first\ndata: second") == "first\nsecond"

    def test_no_space_after_colon(self):
        assert parse_block("data:[DONE]") == "[DONE]"

    def test_block_without_data(self):
        assert parse_block(": keep-alive\nevent: ping") is None


class TestSSEDecoder:

    def test_complete_blocks(self):
        decoder = EventDecoder()

        assert decoder.feed("data: one\n\ndata: two\n\n") == ["one", "two"]
        assert decoder.flush() == []

    def test_block_split_across_pieces(self):
        decoder = EventDecoder()

        assert decoder.feed("data: hel") == []
        assert decoder.feed("lo\n") == []
        assert decoder.feed("\ndata: [DONE]\n\n") == ["hello", "[DONE]"]

    def test_crlf_line_endings(self):
        decoder = EventDecoder()

        assert decoder.feed("data: a\r\n\r\ndata: b\r") == ["a"]
        assert decoder.feed("\n\r\n") == ["b"]

    def test_trailing_block_flushed(self):
        decoder = EventDecoder()

        assert decoder.feed("data: one\n\ndata: tail") == ["one"]
        assert decoder.flush() == ["tail"]
        assert decoder.flush() == []

    def test_comment_blocks_skipped(self):
        decoder = EventDecoder()

        assert decoder.feed(": ping\n\nevent: message_stop\ndata: {}\n\n") == ["{}"]


class TestJSONLinesDecoder:

    def test_lines(self):
        decoder = EventDecoder("json-lines")

        assert decoder.feed('{"a": 1}\n\n{"b"') == ['{"a": 1}']
        assert decoder.feed(': 2}\n') == ['{"b": 2}']

    def test_trailing_line_flushed(self):
        decoder = EventDecoder("json-lines")

        assert decoder.feed('{"a": 1}') == []
        assert decoder.flush() == ['{"a": 1}']


def test_unknown_format():
    with pytest.raises(ValueError):
        EventDecoder("xml")

"""
Unit tests for the streaming chunk buffer.
"""

import pytest

from graphlit.streaming.chunk_buffer import ChunkBuffer, split_graphemes


class TestGraphemes:
    """Tests for grapheme splitting."""

    def test_plain_text(self):
        assert split_graphemes("abc") == ["a", "b", "c"]

    def test_combining_mark_stays_with_base(self):
        """Test a combining accent is not split from its letter."""
        assert split_graphemes("e\u0301x") == ["e\u0301", "x"]

    def test_zwj_sequence_is_one_cluster(self):
        """Test a ZWJ family emoji stays together."""
        family = "\U0001F468\u200d\U0001F469\u200d\U0001F467"

        assert split_graphemes(family + "!") == [family, "!"]

    def test_flag_pairs(self):
        """Test regional indicator pairs form one flag each."""
        assert split_graphemes("\U0001F1FA\U0001F1F8\U0001F1EF\U0001F1F5x") == [
            "\U0001F1FA\U0001F1F8",
            "\U0001F1EF\U0001F1F5",
            "x",
        ]

    def test_crlf_and_hangul_jamo(self):
        assert split_graphemes("a\r\nb") == ["a", "\r\n", "b"]
        assert split_graphemes("\u1100\u1161\u11a8!") == ["\u1100\u1161\u11a8", "!"]


class TestChunkBuffer:
    """Tests for ChunkBuffer."""

    def test_unknown_strategy(self):
        """Test an unknown strategy is rejected."""
        with pytest.raises(ValueError):
            ChunkBuffer("paragraph")

    def test_character_keeps_last_grapheme(self):
        """Test the last character is held back until flush."""
        buf = ChunkBuffer("character")

        assert buf.add_token("ab") == ["a"]
        assert buf.buffer == "b"
        assert buf.flush() == ["b"]

    def test_character_keeps_flags_whole(self):
        buf = ChunkBuffer("character")

        assert buf.add_token("\U0001F1FA\U0001F1F8\U0001F1EF\U0001F1F5x") == [
            "\U0001F1FA\U0001F1F8",
            "\U0001F1EF\U0001F1F5",
        ]
        assert buf.flush() == ["x"]

    def test_reset_drops_buffer(self):
        buf = ChunkBuffer("word")
        buf.add_token("partial")

        buf.reset()

        assert buf.buffer == ""
        assert buf.flush() == []

    def test_word_waits_for_boundary(self):
        """Test a word is released once the next word starts."""
        buf = ChunkBuffer("word")

        assert buf.add_token("Hello ") == []
        assert buf.add_token("world") == ["Hello "]
        assert buf.flush() == ["world"]

    def test_word_split_across_deltas(self):
        """Test a word split over two deltas is released whole."""
        buf = ChunkBuffer("word")

        chunks = buf.add_token("Stre") + buf.add_token("aming is ") + buf.add_token("fun")

        assert chunks == ["Streaming ", "is "]
        assert buf.flush() == ["fun"]

    def test_long_word_is_force_broken(self):
        """Test words longer than max_word_len are released early."""
        buf = ChunkBuffer("word", max_word_len=5)

        assert buf.add_token("abcdefgh ") == ["abcdefgh"]

    def test_long_run_without_whitespace(self):
        """Test buffers without whitespace are cut at max_buffer_no_break."""
        buf = ChunkBuffer("word", max_buffer_no_break=10)

        chunks = buf.add_token("a" * 25)

        assert chunks == ["a" * 10]
        assert buf.buffer == "a" * 15

    def test_sentence(self):
        """Test sentences are released at terminal punctuation."""
        buf = ChunkBuffer("sentence")

        assert buf.add_token("Hi there. How") == ["Hi there. "]
        assert buf.add_token(" are you") == []
        assert buf.flush() == ["How are you"]

    def test_flush_empty(self):
        assert ChunkBuffer().flush() == []

    def test_no_text_is_lost(self):
        """Test every strategy reproduces the input exactly."""
        text = "First sentence! Second, with a comma? Third\nline."
        for strategy in ("character", "word", "sentence"):
            buf = ChunkBuffer(strategy)
            out = []
            for i in range(0, len(text), 4):
                out.extend(buf.add_token(text[i:i + 4]))
            out.extend(buf.flush())

            assert "".join(out) == text

    def test_custom_chunker(self):
        """Test a custom chunker receives the buffer and keeps the remainder."""

        def by_pipe(text):
            parts = text.split("|")
            return parts[:-1], parts[-1]

        buf = ChunkBuffer(by_pipe)

        assert buf.add_token("a|b|c") == ["a", "b"]
        assert buf.buffer == "c"
        assert buf.flush() == ["c"]

    def test_failing_custom_chunker_flushes_buffer(self):
        """Test a chunker error releases the whole buffer."""

        def broken(text):
            raise RuntimeError("boom")

        buf = ChunkBuffer(broken)

        assert buf.add_token("abc") == ["abc"]
        assert buf.buffer == ""

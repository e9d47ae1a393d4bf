"""
Chunk buffer for streaming token deltas.

Breaks an LLM's streaming token deltas into character, word or sentence
chunks, or hands them to a custom chunker.

Example:
    >>> buf = ChunkBuffer("sentence")
    >>> for delta in deltas:
    ...     for chunk in buf.add_token(delta):
    ...         push_to_ui(chunk)
    >>> for chunk in buf.flush():
    ...     push_to_ui(chunk)
"""

import logging
import re
from typing import Callable, List, Tuple, Union

import regex

logger = logging.getLogger("graphlit.streaming")


CustomChunker = Callable[[str], Tuple[List[str], str]]
ChunkingStrategy = Union[str, CustomChunker]

WORD_PATTERN = re.compile(r"\w+(?:['’]\w+)*")
SENTENCE_BOUNDARY = re.compile(r".*?[.?!。！？](?:\s+|\Z)")
WHITESPACE = re.compile(r"\s")
GRAPHEME_PATTERN = regex.compile(r"\X")


def split_graphemes(text: str) -> List[str]:
    """Split text into user-perceived characters (extended grapheme clusters)."""
    return GRAPHEME_PATTERN.findall(text)


def _split_words(text: str) -> List[Tuple[str, bool]]:
    """Split text into ``(segment, is_word)`` pairs."""
    segments: List[Tuple[str, bool]] = []
    pos = 0
    for match in WORD_PATTERN.finditer(text):
        if match.start() > pos:
            segments.append((text[pos:match.start()], False))
        segments.append((match.group(), True))
        pos = match.end()
    if pos < len(text):
        segments.append((text[pos:], False))
    return segments


class ChunkBuffer:
    """
    Accumulates token deltas and releases them in display-sized chunks.

    Args:
        strategy: ``"character"``, ``"word"``, ``"sentence"`` or a callable
            returning ``(chunks, remainder)`` for the buffered text
        max_word_len: Force-break "words" longer than this
        max_buffer_no_break: Force a break after this many characters with
            no whitespace
    """

    def __init__(
        self,
        strategy: ChunkingStrategy = "word",
        max_word_len: int = 50,
        max_buffer_no_break: int = 400,
    ) -> None:
        if callable(strategy):
            self._custom_chunker = strategy
            self.strategy = "custom"
        else:
            if strategy not in ("character", "word", "sentence"):
                raise ValueError(f"Unknown chunking strategy: {strategy}")
            self._custom_chunker = None
            self.strategy = strategy

        self.max_word_len = max_word_len
        self.max_buffer_no_break = max_buffer_no_break
        self._buffer = ""

    @property
    def buffer(self) -> str:
        return self._buffer

    def add_token(self, token: str) -> List[str]:
        """Feed one LLM delta; receive zero or more flushed chunks."""
        self._buffer += token

        if self._custom_chunker is not None:
            return self._flush_custom()

        forced = self._flush_long_runs()
        return forced + self._flush_strategy()

    def reset(self) -> None:
        """Drop buffered text without emitting it."""
        self._buffer = ""

    def flush(self) -> List[str]:
        """Emit everything that is left; call when the stream closes."""
        if not self._buffer:
            return []

        if self._custom_chunker is not None:
            chunks, remainder = self._custom_chunker(self._buffer)
            self._buffer = ""
            return [c for c in [*chunks, remainder] if c]

        out: List[str] = []
        while True:
            fresh = self._flush_strategy()
            if not fresh:
                break
            out.extend(fresh)
        if self._buffer:
            out.append(self._buffer)
        self._buffer = ""
        return out

    def _flush_strategy(self) -> List[str]:
        if self.strategy == "character":
            return self._flush_graphemes()
        if self.strategy == "word":
            return self._flush_words()
        return self._flush_sentences()

    def _flush_graphemes(self) -> List[str]:
        segments = split_graphemes(self._buffer)

        # Keep one segment buffered; it may still be extended
        if len(segments) <= 1:
            return []

        self._buffer = segments[-1]
        return segments[:-1]

    def _flush_words(self) -> List[str]:
        chunks: List[str] = []
        lead_non_word = ""
        word = ""
        tail_non_word = ""

        for segment, is_word in _split_words(self._buffer):
            if is_word:
                if word and tail_non_word:
                    chunks.append(word + tail_non_word)
                    word = tail_non_word = ""
                word += segment
                if len(word) > self.max_word_len:
                    chunks.append(word + tail_non_word)
                    word = tail_non_word = ""
            elif not word:
                lead_non_word += segment
            else:
                tail_non_word += segment

        if lead_non_word and word:
            chunks.append(lead_non_word)
            lead_non_word = ""

        self._buffer = lead_non_word + word + tail_non_word
        return [c for c in chunks if c]

    def _flush_sentences(self) -> List[str]:
        ends = [m.end() for m in SENTENCE_BOUNDARY.finditer(self._buffer) if m.end() > m.start()]
        if not ends:
            return []

        last = ends[-1]
        completed = self._buffer[:last]
        self._buffer = self._buffer[last:]

        sentences = []
        start = 0
        for end in ends:
            sentences.append(completed[start:end])
            start = end
        return [s for s in sentences if s]

    def _flush_long_runs(self) -> List[str]:
        if len(self._buffer) > self.max_buffer_no_break and not WHITESPACE.search(self._buffer):
            head = self._buffer[: self.max_buffer_no_break]
            self._buffer = self._buffer[self.max_buffer_no_break:]
            return [head]
        return []

    def _flush_custom(self) -> List[str]:
        try:
            chunks, remainder = self._custom_chunker(self._buffer)
        except Exception as e:
            logger.error(f"Custom chunker failed, flushing whole buffer: {e}")
            whole = self._buffer
            self._buffer = ""
            return [whole]
        self._buffer = remainder
        return list(chunks)

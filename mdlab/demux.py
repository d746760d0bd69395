"""
OutputDemultiplexer: splits a process's combined output into per-cell segments.

Segment 0 is whatever the toolchain printed before the first sentinel
(compiler chatter, build errors). Segment ``i`` is the output of the ``i``-th
synthesized cell.
"""

import codecs
import re

from mdlab.languages.base import SENTINEL

_SPLIT_RE = re.compile(re.escape(SENTINEL) + r"\r?[\n ]?")


def _held_back(text: str) -> int:
    """Length of a trailing partial sentinel in ``text``."""
    for size in range(min(len(SENTINEL) - 1, len(text)), 0, -1):
        if SENTINEL.startswith(text[-size:]):
            return size
    return 0


class OutputDemultiplexer:
    """
    Accumulates raw bytes and reports the segment of one target cell.

    The whole buffer is decoded and split again on every chunk, because a
    sentinel (or a multibyte character) may be cut in half between chunks.
    """

    def __init__(self, target: int):
        if target < 1:
            raise ValueError("target segment is 1-based")
        self.target = target
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> str:
        """
        Add a chunk and return the current text of the target segment.

        A trailing partial sentinel or incomplete character is held back
        until the next chunk decides what it is.
        """
        self._buffer.extend(chunk)
        text = self._decode(final=False)
        held = _held_back(text)
        if held:
            text = text[:-held]
        segments = _SPLIT_RE.split(text)
        if len(segments) > self.target:
            return segments[self.target]
        return ""

    def finish(self) -> str:
        """
        Final text for the target cell once the process has exited.

        If the target segment never started, the program stopped early
        (a build error or a crash in an earlier cell): the last segment
        holds that diagnostic and is returned instead.
        """
        segments = self.segments
        if len(segments) > self.target:
            return segments[self.target]
        return segments[-1]

    @property
    def segments(self) -> list[str]:
        return _SPLIT_RE.split(self._decode(final=True))

    @property
    def segment_count(self) -> int:
        """Number of sentinels seen so far."""
        return len(self.segments) - 1

    @property
    def has_output(self) -> bool:
        """True if anything other than sentinels was printed."""
        return bool("".join(self.segments).strip())

    def _decode(self, final: bool) -> str:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        return decoder.decode(bytes(self._buffer), final=final)

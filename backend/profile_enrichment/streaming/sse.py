"""Incremental Server-Sent Events parsing and encoding.

Upstream bytes arrive in arbitrary chunks. ``SSEParser`` keeps both the
partial trailing line and the half-built frame between calls to ``feed``,
so the frames it yields do not depend on where chunk boundaries fall.
"""

import codecs
from dataclasses import dataclass

PHASE_EVENT = "phase"
DONE_EVENT = "done"
ERROR_EVENT = "error"

_EVENT_PREFIX = "event:"
_DATA_PREFIX = "data:"


@dataclass(frozen=True)
class SSEFrame:
    """One complete (event name, data value) pair."""

    event: str
    data: str


def encode_frame(frame: SSEFrame) -> bytes:
    """Serialize a frame for a ``text/event-stream`` body."""
    return f"event: {frame.event}\ndata: {frame.data}\n\n".encode()


class SSEParser:
    """Line-buffered parser for ``event:``/``data:`` frames."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._event = ""
        self._data = ""

    def feed(self, chunk: bytes | str) -> list[SSEFrame]:
        """Consume one chunk and return every frame it completed."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        frames: list[SSEFrame] = []
        for raw_line in lines:
            line = raw_line.removesuffix("\r")
            if line.startswith(_EVENT_PREFIX):
                self._event = line[len(_EVENT_PREFIX):].strip()
            elif line.startswith(_DATA_PREFIX):
                self._data = line[len(_DATA_PREFIX):].strip()
            elif line == "" and self._event and self._data:
                frames.append(SSEFrame(event=self._event, data=self._data))
                self._event = ""
                self._data = ""
            # anything else (comments, id:, retry:) is ignored
        return frames

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a newline."""
        return self._buffer

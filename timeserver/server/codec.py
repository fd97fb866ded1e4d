"""Newline framing for the text protocol.

Inbound lines may end in ``\\n`` or ``\\r\\n``; outbound lines always end in
``\\n``.  Bytes are split on the terminator *before* decoding so multi-byte
characters cut across reads are reassembled intact.
"""

from __future__ import annotations

__all__ = ["LineDecoder", "encode_line"]

_LF = b"\n"
_CR = b"\r"


def encode_line(text: str, encoding: str = "utf-8") -> bytes:
    return (text + "\n").encode(encoding)


class LineDecoder:
    """Incremental decoder turning raw socket reads into text lines.

    Lines longer than *max_line_length* bytes are dropped up to the next
    terminator; the number of dropped lines is collected via
    :meth:`take_overflows` so the caller can report them.
    """

    def __init__(self, max_line_length: int = 1024, encoding: str = "utf-8") -> None:
        if max_line_length <= 0:
            raise ValueError("max_line_length must be positive")
        self._max = max_line_length
        self._encoding = encoding
        self._buf = bytearray()
        self._discarding = False
        self._overflows = 0

    @property
    def pending(self) -> int:
        """Bytes buffered while waiting for a terminator."""
        return len(self._buf)

    def feed(self, data: bytes) -> list[str]:
        """Buffer *data* and return every line it completes, in order."""
        self._buf.extend(data)
        lines: list[str] = []
        while True:
            idx = self._buf.find(_LF)
            if idx < 0:
                # +1 leaves room for a trailing CR of a line that is exactly max long
                if len(self._buf) > self._max + 1:
                    if not self._discarding:
                        self._overflows += 1
                        self._discarding = True
                    self._buf.clear()
                break

            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            if self._discarding:
                # tail of an overlong line
                self._discarding = False
                continue
            if raw.endswith(_CR):
                raw = raw[:-1]
            if len(raw) > self._max:
                self._overflows += 1
                continue
            lines.append(raw.decode(self._encoding, errors="replace"))
        return lines

    def take_overflows(self) -> int:
        """Return the number of lines dropped since the last call and reset it."""
        count, self._overflows = self._overflows, 0
        return count

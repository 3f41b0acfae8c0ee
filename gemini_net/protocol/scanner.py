"""Incremental scanner for the ``<status> <meta>\\r\\n`` response line.

The transport reads the socket in chunks rather than one byte at a time, so
the scanner is fed whatever arrived and hands back the bytes that follow
the CRLF; those are the start of the body.
"""

from __future__ import annotations

import enum

from gemini_net.core.constants import MAX_RESPONSE_LINE_LENGTH
from gemini_net.core.errors import ProtocolFormatError


class ScanState(enum.Enum):
    READING_LINE = "reading_line"
    SAW_CR = "saw_cr"
    TERMINATED = "terminated"


class ResponseLineScanner:
    """Three-state CRLF scanner with a length ceiling.

    Usage::

        scanner = ResponseLineScanner()
        while not scanner.terminated:
            chunk = await reader.read(4096)
            if not chunk:
                scanner.close()  # raises
            leftover = scanner.feed(chunk)
        line = scanner.line
    """

    def __init__(self, max_length: int = MAX_RESPONSE_LINE_LENGTH) -> None:
        self.max_length = max_length
        self.state = ScanState.READING_LINE
        self._buffer = bytearray()

    @property
    def terminated(self) -> bool:
        return self.state is ScanState.TERMINATED

    @property
    def line(self) -> str:
        """The line decoded as UTF-8, legacy tabs not yet normalized."""
        return self._buffer.decode("utf-8", errors="replace")

    def feed(self, data: bytes) -> bytes:
        """Consume *data*; return whatever follows the CRLF once found."""
        if self.terminated:
            return data
        for index, byte in enumerate(data):
            if self.state is ScanState.SAW_CR:
                if byte != 0x0A:
                    raise ProtocolFormatError(
                        "Malformed Gemini header - missing LF after CR"
                    )
                self.state = ScanState.TERMINATED
                return data[index + 1 :]
            if byte == 0x0D:
                self.state = ScanState.SAW_CR
                continue
            if len(self._buffer) >= self.max_length:
                raise ProtocolFormatError(
                    "Invalid Gemini response line. Header too long: did not "
                    f"find \\r\\n within {self.max_length} bytes"
                )
            self._buffer.append(byte)
        return b""

    def close(self) -> None:
        """Signal end of stream.  Raises unless the line was terminated."""
        if not self.terminated:
            raise ProtocolFormatError(
                "Invalid Gemini response line. Missing \\r\\n terminator "
                "before connection closed"
            )

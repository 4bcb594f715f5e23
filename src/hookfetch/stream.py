"""Incremental segmentation and decoding of streamed response bodies.

A streamed body arrives as arbitrary byte slices. Turning it into typed
values happens in two phases:

1. :class:`Segmenter` decodes bytes to text with an incremental decoder (a
   multi-byte character split across slices is never mangled), splits the
   text on a boundary, and carries the trailing partial piece over to the
   next slice. How the input was sliced never changes which segments come
   out.
2. :class:`SegmentDecoder` turns each segment into zero or more values:
   optional line splitting, prefix stripping, JSON parsing with a plain
   string fallback, and a done sentinel that ends the stream.

:func:`decode_stream` chains both phases over an async byte iterator and is
what :class:`~hookfetch.plugins.sse.SSEDecoderPlugin` installs as a
``before_stream`` handler.
"""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from hookfetch.models import SSEOptions


@dataclass
class StreamChunk:
    """One item of a streamed response.

    Attributes:
        result: The decoded value (bytes when no decoder is installed).
        source: Raw bytes the value was decoded from.
        error: Set when a ``transform_stream_chunk`` handler failed on this
            chunk. The sequence continues after such a chunk.
    """

    result: Any = None
    source: bytes = b""
    error: Optional[BaseException] = None


class Segmenter:
    """Split a byte stream on a text boundary, carrying partial segments over.

    Blank segments (whitespace only) are dropped; emitted segments are not
    trimmed.

    Args:
        separator: Segment boundary, ``"\\n\\n"`` for server-sent events.
        encoding: Text encoding of the byte stream.

    Example::

        seg = Segmenter()
        seg.feed(b"data: 1\\n\\nda")   # ["data: 1"]
        seg.feed(b"ta: 2\\n\\n")       # ["data: 2"]
        seg.flush()                    # []
    """

    def __init__(self, separator: str = "\n\n", encoding: str = "utf-8") -> None:
        if not separator:
            raise ValueError("separator must not be empty")
        self._separator = separator
        self._decoder = codecs.getincrementaldecoder(encoding)()
        self._buffer = ""

    def feed(self, data: bytes) -> list[str]:
        """Append *data* and return every segment it completed."""
        self._buffer += self._decoder.decode(data)
        parts = self._buffer.split(self._separator)
        self._buffer = parts.pop()
        return [part for part in parts if part.strip()]

    def flush(self) -> list[str]:
        """Finish the stream and return the carried-over segment, if any.

        Raises:
            UnicodeDecodeError: If the stream ended inside a multi-byte
                character.
        """
        rest = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return [rest] if rest.strip() else []


class SegmentDecoder:
    """Turn segments into values according to :class:`~hookfetch.models.SSEOptions`.

    Once the done sentinel is seen :attr:`done` becomes true and every later
    call returns nothing.
    """

    def __init__(self, options: Optional[SSEOptions] = None) -> None:
        self._options = options or SSEOptions()
        self.done = False

    def decode(self, segment: str) -> list[Any]:
        if self.done:
            return []
        opts = self._options
        lines = segment.split(opts.line_separator) if opts.line_separator else [segment]

        values: list[Any] = []
        for line in lines:
            if opts.parse_json:
                try:
                    values.append(json.loads(self._payload(line)))
                    continue
                except ValueError:
                    pass
            if self._is_done(line):
                self.done = True
                break
            values.append(line.strip() if opts.trim else line)
        return values

    def _payload(self, line: str) -> str:
        text = line.lstrip()
        prefix = self._options.prefix
        if prefix and text.startswith(prefix):
            text = text[len(prefix):]
        return text.strip()

    def _is_done(self, line: str) -> bool:
        done = self._options.done
        return bool(done) and self._payload(line) == done


async def decode_stream(
    source: AsyncIterator[bytes], options: Optional[SSEOptions] = None
) -> AsyncIterator[StreamChunk]:
    """Decode an async byte iterator into :class:`StreamChunk` values.

    Each chunk's ``source`` holds the encoded bytes of the segment it came
    from. Iteration stops at the done sentinel or when *source* is exhausted;
    the source is closed in both cases.
    """
    options = options or SSEOptions()
    segmenter = Segmenter(options.separator, options.encoding)
    decoder = SegmentDecoder(options)

    try:
        async for data in source:
            for segment in segmenter.feed(data):
                raw = segment.encode(options.encoding)
                for value in decoder.decode(segment):
                    yield StreamChunk(result=value, source=raw)
                if decoder.done:
                    return
        for segment in segmenter.flush():
            raw = segment.encode(options.encoding)
            for value in decoder.decode(segment):
                yield StreamChunk(result=value, source=raw)
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()

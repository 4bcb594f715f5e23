"""Server-sent event decoding as a ``before_stream`` plugin.

Installs :func:`~hookfetch.stream.decode_stream` over the response body so
that ``handle.stream()`` yields decoded values instead of raw byte slices.
A request opts out with ``extra={"sse_able": False}``.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional

from hookfetch.models import SSEOptions
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.hooks import HookContext
from hookfetch.stream import StreamChunk, decode_stream


class SSEDecoderPlugin(Plugin):
    """Decode streamed bodies into segments.

    Args:
        options: Segmenter and decoder settings.
        priority: Optional priority override.

    Example::

        client.use(SSEDecoderPlugin(SSEOptions(parse_json=True, prefix="data:", done="[DONE]")))
    """

    name = "sse"
    description = "Decode server-sent event streams into typed chunks"

    def __init__(self, options: Optional[SSEOptions] = None, *, priority: Optional[int] = None) -> None:
        super().__init__(priority=priority)
        self.options = options or SSEOptions()

    def before_stream(
        self, body: AsyncIterator[Any], ctx: HookContext
    ) -> Optional[AsyncIterator[StreamChunk]]:
        if not ctx.config.extra.get("sse_able", True):
            return None
        return decode_stream(body, self.options)


def sse_decoder_plugin(**kwargs: Any) -> SSEDecoderPlugin:
    """Build an :class:`SSEDecoderPlugin` from :class:`~hookfetch.models.SSEOptions` fields."""
    return SSEDecoderPlugin(SSEOptions(**kwargs))

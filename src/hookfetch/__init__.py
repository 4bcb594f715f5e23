"""hookfetch -- plugin-driven async HTTP requests.

Every call returns a lazy :class:`~hookfetch.client.request.RequestHandle`
that drives one request through an ordered pipeline of plugin stages
(``before_request``, ``before_stream``, ``transform_stream_chunk``,
``after_response``, ``on_error``, ``on_finally``), supports abort and
timeouts, exposes buffered decode accessors or a live chunk stream, and can
be retried with the same plugin set.

Typical usage::

    import hookfetch
    from hookfetch.plugins import sse_decoder_plugin

    api = hookfetch.create(base_url="https://api.example.com", timeout=30)
    api.use(sse_decoder_plugin(parse_json=True, prefix="data:", done="[DONE]"))

    async for chunk in api.post("/chat", data={"prompt": "hi"}).stream():
        print(chunk.result)

Modules:
    client: Client instances, request handles, retry context and transport.
    plugins: Plugin base class, hook registry and built-in plugins.
    stream: Incremental segmenting and decoding of streamed bodies.
    cancel: Cooperative cancellation tokens.
    models: Pydantic models and enums shared across the package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer command line entry point.
"""

__version__ = "0.3.0"

from hookfetch.client import (  # noqa: E402
    HookFetch,
    RequestHandle,
    RetryContext,
    create,
    delete,
    get,
    head,
    options,
    patch,
    post,
    put,
    request,
    upload,
)
from hookfetch.exceptions import ErrorKind, HookFetchError, ResponseError  # noqa: E402
from hookfetch.models import ClientOptions, RequestConfig, SSEOptions  # noqa: E402
from hookfetch.plugins import Plugin  # noqa: E402
from hookfetch.stream import StreamChunk  # noqa: E402

__all__ = [
    "ClientOptions",
    "ErrorKind",
    "HookFetch",
    "HookFetchError",
    "Plugin",
    "RequestConfig",
    "RequestHandle",
    "ResponseError",
    "RetryContext",
    "SSEOptions",
    "StreamChunk",
    "create",
    "delete",
    "get",
    "head",
    "options",
    "patch",
    "post",
    "put",
    "request",
    "upload",
    "__version__",
]

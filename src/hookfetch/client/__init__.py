"""Request lifecycle and HTTP client for hookfetch.

Classes:
    :class:`HookFetch` -- configured client with defaults, plugins and verb
    helpers; every call returns a :class:`RequestHandle`.
    :class:`RequestHandle` -- lazy handle on one request attempt with decode
    accessors, streaming, abort and retry.
    :class:`RetryContext` -- retry controls handed to ``on_error`` handlers.
    :class:`HttpxTransport` -- dispatches configs through
    :class:`httpx.AsyncClient`.

Example::

    from hookfetch.client import create

    async with create(base_url="https://api.example.com") as client:
        user = await client.get("/users/1").json()
"""

from hookfetch.client.instance import (
    HookFetch,
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
from hookfetch.client.request import Blob, RequestHandle
from hookfetch.client.retry import RetryContext
from hookfetch.client.transport import (
    HttpxTransport,
    Transport,
    build_url,
    encode_body,
    encode_params,
    merge_headers,
)

__all__ = [
    "Blob",
    "HookFetch",
    "HttpxTransport",
    "RequestHandle",
    "RetryContext",
    "Transport",
    "build_url",
    "create",
    "delete",
    "encode_body",
    "encode_params",
    "get",
    "head",
    "merge_headers",
    "options",
    "patch",
    "post",
    "put",
    "request",
    "upload",
]

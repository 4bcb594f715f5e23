"""httpx-backed transport and the request-building glue around it.

The lifecycle engine only needs something with ``async send(config)``
returning an :class:`httpx.Response` whose body is not yet read, plus
``aclose()``. :class:`HttpxTransport` provides that on top of
:class:`httpx.AsyncClient`; tests inject an :class:`httpx.MockTransport`.

The helpers here turn a :class:`~hookfetch.models.RequestConfig` into
httpx arguments: URL joining, query encoding per
:class:`~hookfetch.models.ArrayFormat`, body encoding by content type, and
case-insensitive header merging.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Mapping, Optional, Protocol

import httpx

from hookfetch.models import ArrayFormat, ContentType, HTTPMethod, RequestConfig

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What a :class:`~hookfetch.client.request.RequestHandle` dispatches through."""

    async def send(self, config: RequestConfig) -> httpx.Response: ...

    async def aclose(self) -> None: ...


# ------------------------------------------------------------------ #
# Request building helpers
# ------------------------------------------------------------------ #


def build_url(base_url: str, url: str) -> str:
    """Join *url* onto *base_url* unless *url* is already absolute."""
    if not base_url or (url and httpx.URL(url).is_absolute_url):
        return url
    if not url:
        return base_url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return str(value.value)
    return str(value)


def encode_params(
    params: Mapping[str, Any], array_format: ArrayFormat = ArrayFormat.REPEAT
) -> list[tuple[str, str]]:
    """Flatten *params* into query pairs.

    ``None`` values are dropped, booleans become ``true``/``false`` and
    list values are spread according to *array_format*.

    Example::

        encode_params({"id": [1, 2]}, ArrayFormat.BRACKETS)
        # [("id[]", "1"), ("id[]", "2")]
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if not isinstance(value, (list, tuple)):
            pairs.append((key, _scalar(value)))
            continue

        items = [_scalar(item) for item in value if item is not None]
        if array_format is ArrayFormat.COMMA:
            pairs.append((key, ",".join(items)))
        elif array_format is ArrayFormat.BRACKETS:
            pairs.extend((f"{key}[]", item) for item in items)
        elif array_format is ArrayFormat.INDICES:
            pairs.extend((f"{key}[{i}]", item) for i, item in enumerate(items))
        else:
            pairs.extend((key, item) for item in items)
    return pairs


def merge_headers(*sources: Optional[Mapping[str, Any]]) -> dict[str, str]:
    """Merge header mappings case-insensitively; later sources win.

    A ``None`` value removes the header. The casing of the winning key is
    kept.
    """
    merged: dict[str, str] = {}
    keys: dict[str, str] = {}
    for source in sources:
        for key, value in (source or {}).items():
            previous = keys.pop(key.lower(), None)
            if previous is not None:
                del merged[previous]
            if value is None:
                continue
            merged[key] = str(value)
            keys[key.lower()] = key
    return merged


def _pop_header(headers: dict[str, str], name: str) -> Optional[str]:
    for key in list(headers):
        if key.lower() == name:
            return headers.pop(key)
    return None


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def encode_body(config: RequestConfig, headers: dict[str, str]) -> dict[str, Any]:
    """Return the httpx body keyword arguments for *config*.

    ``str`` and ``bytes`` bodies are sent as is. Otherwise the
    ``Content-Type`` header decides: form-urlencoded sends form fields,
    multipart (or any ``files``) sends a multipart body and drops the header
    so httpx can set the boundary, and everything else is sent as JSON.
    GET and HEAD requests never carry a body. *headers* may be modified.
    """
    if config.method in (HTTPMethod.GET, HTTPMethod.HEAD):
        return {}

    data = config.data
    content_type = (_get_header(headers, "content-type") or "").lower()

    if config.files or content_type.startswith(ContentType.FORM_DATA.value):
        _pop_header(headers, "content-type")
        return {"data": data or {}, "files": config.files or {}}
    if data is None:
        return {}
    if isinstance(data, (str, bytes, bytearray)):
        return {"content": data}
    if content_type.startswith(ContentType.FORM_URLENCODED.value):
        return {"data": data}
    return {"json": data}


# ------------------------------------------------------------------ #
# Transport
# ------------------------------------------------------------------ #


class HttpxTransport:
    """Dispatch :class:`~hookfetch.models.RequestConfig` objects through httpx.

    Args:
        client: An existing :class:`httpx.AsyncClient`. It is not closed by
            :meth:`aclose`.
        transport: Low-level httpx transport for an owned client, e.g. an
            :class:`httpx.MockTransport` in tests.
        verify: Verify TLS certificates (owned client only).
        follow_redirects: Follow redirects (owned client only).

    Example::

        transport = HttpxTransport(transport=httpx.MockTransport(handler))
        response = await transport.send(RequestConfig(url="https://x.test/"))
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
        follow_redirects: bool = True,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._verify = verify
        self._follow_redirects = follow_redirects

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                verify=self._verify,
                follow_redirects=self._follow_redirects,
                timeout=None,
            )
        return self._client

    def build_request(self, config: RequestConfig) -> httpx.Request:
        headers = dict(config.headers)
        body = encode_body(config, headers)
        extensions: dict[str, Any] = {}
        if config.timeout is not None:
            extensions["timeout"] = httpx.Timeout(config.timeout).as_dict()

        request = self.client.build_request(
            config.method.value,
            build_url(config.base_url, config.url),
            params=encode_params(config.params, config.array_format) or None,
            headers=headers,
            extensions=extensions or None,
            **body,
        )
        if not config.with_credentials:
            request.headers.pop("cookie", None)
        return request

    async def send(self, config: RequestConfig) -> httpx.Response:
        """Send *config* and return the response with its body unread."""
        request = self.build_request(config)
        logger.debug("Dispatching %s %s", request.method, request.url)
        return await self.client.send(request, stream=True)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

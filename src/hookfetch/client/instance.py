"""Client instances -- defaults, plugins, and verb helpers.

:class:`HookFetch` holds instance-wide :class:`~hookfetch.models.ClientOptions`,
a :class:`~hookfetch.plugins.manager.PluginManager` and a transport. Every call
merges the defaults into a fresh :class:`~hookfetch.models.RequestConfig` and
returns a lazy :class:`~hookfetch.client.request.RequestHandle`.

The module-level :func:`request`, :func:`get`, :func:`post` and friends use a
throwaway instance whose transport closes once the handle settles.

Example::

    async with create(base_url="https://api.example.com", timeout=10) as api:
        api.use(sse_decoder_plugin(parse_json=True, prefix="data:"))
        users = await api.get("/users", params={"page": 2}).json()
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from hookfetch.client.request import RequestHandle
from hookfetch.client.transport import HttpxTransport, Transport, merge_headers
from hookfetch.models import ClientOptions, ContentType, HTTPMethod, RequestConfig
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class HookFetch:
    """A configured client.

    Args:
        options: Instance defaults. Keyword arguments are applied on top.
        plugins: Plugins registered in order.
        transport: Dispatch transport; defaults to a new
            :class:`~hookfetch.client.transport.HttpxTransport`.
        **kwargs: :class:`~hookfetch.models.ClientOptions` fields.

    The instance is callable with the same arguments as :meth:`request`.
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        *,
        plugins: Iterable[Plugin] = (),
        transport: Optional[Transport] = None,
        **kwargs: Any,
    ) -> None:
        if options is None:
            options = ClientOptions(**kwargs)
        elif kwargs:
            options = ClientOptions.model_validate({**dict(options), **kwargs})
        self._options = options
        self._plugins = PluginManager()
        for plugin in plugins:
            self._plugins.use(plugin)
        self._transport: Transport = transport or HttpxTransport()
        self._inflight: set[RequestHandle] = set()

    @property
    def defaults(self) -> ClientOptions:
        """Instance-wide defaults merged into every request."""
        return self._options

    @property
    def plugins(self) -> PluginManager:
        return self._plugins

    def use(self, plugin: Plugin) -> HookFetch:
        """Register *plugin*, replacing any earlier plugin of the same name.

        Handles created before this call keep the plugin set they were
        created with.
        """
        self._plugins.use(plugin)
        return self

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def build_config(
        self,
        url: str,
        *,
        method: HTTPMethod | str = HTTPMethod.GET,
        params: Optional[Mapping[str, Any]] = None,
        data: Any = None,
        files: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        extra: Optional[Mapping[str, Any]] = None,
        **overrides: Any,
    ) -> RequestConfig:
        """Merge instance defaults with call arguments into a request config."""
        opts = self._options
        values: dict[str, Any] = {
            "url": url,
            "base_url": opts.base_url,
            "method": method,
            "params": {**opts.params, **(params or {})},
            "data": data,
            "files": dict(files) if files is not None else None,
            "headers": merge_headers(opts.headers, headers),
            "timeout": timeout if timeout is not None else opts.timeout,
            "with_credentials": opts.with_credentials,
            "extra": {**opts.extra, **(extra or {})},
            "array_format": opts.array_format,
            "max_attempts": opts.max_attempts,
        }
        values.update(overrides)
        return RequestConfig.model_validate(values)

    def request(self, url: str, **kwargs: Any) -> RequestHandle:
        """Create a handle for a request to *url*.

        Accepts the keyword arguments of :meth:`build_config`. Nothing is
        sent until the handle is consumed.
        """
        handle = RequestHandle(
            self.build_config(url, **kwargs),
            registry=self._plugins.get_registry(),
            transport=self._transport,
            on_spawn=self._track,
        )
        self._track(handle)
        return handle

    def __call__(self, url: str, **kwargs: Any) -> RequestHandle:
        return self.request(url, **kwargs)

    def _track(self, handle: RequestHandle) -> None:
        self._inflight.add(handle)
        handle.add_done_callback(self._inflight.discard)

    def get(self, url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.GET, params=params, **kwargs)

    def head(self, url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.HEAD, params=params, **kwargs)

    def options(self, url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.OPTIONS, params=params, **kwargs)

    def delete(self, url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.DELETE, params=params, **kwargs)

    def post(self, url: str, data: Any = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.POST, data=data, **kwargs)

    def put(self, url: str, data: Any = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.PUT, data=data, **kwargs)

    def patch(self, url: str, data: Any = None, **kwargs: Any) -> RequestHandle:
        return self.request(url, method=HTTPMethod.PATCH, data=data, **kwargs)

    def upload(
        self,
        url: str,
        files: Mapping[str, Any],
        data: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> RequestHandle:
        """POST a multipart body.

        Args:
            url: Target URL.
            files: httpx-style file mapping, e.g.
                ``{"file": ("a.txt", b"...", "text/plain")}``.
            data: Additional form fields.
        """
        headers = merge_headers(
            kwargs.pop("headers", None), {"Content-Type": ContentType.FORM_DATA.value}
        )
        return self.request(
            url, method=HTTPMethod.POST, data=data, files=files, headers=headers, **kwargs
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def abort_all(self) -> int:
        """Abort every in-flight handle of this instance.

        Returns:
            The number of handles signalled.
        """
        handles = list(self._inflight)
        for handle in handles:
            handle.abort()
        if handles:
            logger.debug("Aborted %d in-flight request(s)", len(handles))
        return len(handles)

    async def aclose(self) -> None:
        """Close the transport and clean up plugins."""
        await self._transport.aclose()
        self._plugins.cleanup()

    async def __aenter__(self) -> HookFetch:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def create(options: Optional[ClientOptions] = None, **kwargs: Any) -> HookFetch:
    """Create a :class:`HookFetch` instance.

    Accepts the same arguments as :class:`HookFetch`.
    """
    return HookFetch(options, **kwargs)


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _ephemeral(
    method: HTTPMethod,
    url: str,
    *,
    plugins: Iterable[Plugin] = (),
    transport: Optional[Transport] = None,
    **kwargs: Any,
) -> RequestHandle:
    client = HookFetch(plugins=plugins, transport=transport)
    kwargs.setdefault("method", method)
    handle = client.request(url, **kwargs)

    async def _close(_: RequestHandle) -> None:
        await client.aclose()

    handle.add_done_callback(_close)
    return handle


def request(url: str, **kwargs: Any) -> RequestHandle:
    """One-off request through a throwaway client.

    Accepts ``plugins`` and ``transport`` besides the arguments of
    :meth:`HookFetch.request`.
    """
    return _ephemeral(HTTPMethod.GET, url, **kwargs)


def get(url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.GET, url, params=params, **kwargs)


def head(url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.HEAD, url, params=params, **kwargs)


def options(url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.OPTIONS, url, params=params, **kwargs)


def delete(url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.DELETE, url, params=params, **kwargs)


def post(url: str, data: Any = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.POST, url, data=data, **kwargs)


def put(url: str, data: Any = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.PUT, url, data=data, **kwargs)


def patch(url: str, data: Any = None, **kwargs: Any) -> RequestHandle:
    return _ephemeral(HTTPMethod.PATCH, url, data=data, **kwargs)


def upload(
    url: str,
    files: Mapping[str, Any],
    data: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> RequestHandle:
    headers = merge_headers(
        kwargs.pop("headers", None), {"Content-Type": ContentType.FORM_DATA.value}
    )
    return _ephemeral(
        HTTPMethod.POST, url, data=data, files=files, headers=headers, **kwargs
    )

"""Reject a request while an identical one is still in flight.

Two requests are identical when their URL, method, params and body match.
The first one acquires the key in ``before_request``; a duplicate fails
immediately with a ``Dedupe`` :class:`~hookfetch.exceptions.ResponseError`
(status 400) without dispatching. The key is released when the owning
attempt fails (``on_error``, so a retry spawned by a later handler is not
rejected as its own duplicate) or settles (``on_finally``).

A request opts out with ``extra={"dedupe_able": False}``.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from hookfetch.client.transport import build_url
from hookfetch.exceptions import ErrorKind, ResponseError
from hookfetch.models import RequestConfig
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.hooks import HookContext

_KEY = "dedupe.key"


class InFlightRequests:
    """Set of request keys currently owned by a running attempt."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def acquire(self, key: str) -> bool:
        """Claim *key*; ``False`` if it is already claimed."""
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def release(self, key: str) -> None:
        self._keys.discard(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


def request_key(config: RequestConfig) -> str:
    """``url::method::params-json::data-json`` signature of a request."""
    params = json.dumps(config.params, sort_keys=True, default=str)
    data = json.dumps(config.data, sort_keys=True, default=str)
    url = build_url(config.base_url, config.url)
    return f"{url}::{config.method.value}::{params}::{data}"


class DedupePlugin(Plugin):
    """Fail fast on duplicate concurrent requests.

    Args:
        state: Shared in-flight set; pass the same instance to several
            clients to deduplicate across them.
        priority: Optional priority override. The default of ``-100`` puts
            the plugin ahead of ordinary error handlers, which matters for
            releasing the key before a retry is spawned.
    """

    name = "dedupe"
    priority = -100
    description = "Reject requests identical to one already in flight"

    def __init__(
        self, state: Optional[InFlightRequests] = None, *, priority: Optional[int] = None
    ) -> None:
        super().__init__(priority=priority)
        self.state = state if state is not None else InFlightRequests()

    def before_request(self, config: RequestConfig, ctx: HookContext) -> None:
        if not config.extra.get("dedupe_able", True):
            return
        key = request_key(config)
        if not self.state.acquire(key):
            raise ResponseError(
                f"Duplicate request in flight: {config.method.value} {config.url}",
                kind=ErrorKind.DEDUPE,
                config=config,
            )
        ctx.data[_KEY] = key

    def on_error(self, error: BaseException, ctx: HookContext, retry: Any) -> None:
        self._release(ctx)

    def on_finally(self, ctx: HookContext) -> None:
        self._release(ctx)

    def _release(self, ctx: HookContext) -> None:
        key = ctx.data.pop(_KEY, None)
        if key is not None:
            self.state.release(key)


def is_dedupe_error(error: Any) -> bool:
    """Whether *error* is the rejection raised for a duplicate request."""
    return isinstance(error, ResponseError) and error.kind == ErrorKind.DEDUPE

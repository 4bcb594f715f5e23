"""Hook contexts, outcomes, and the registry that runs plugin stages.

This module provides the pieces the request lifecycle threads through every
plugin call:

* :class:`HookContext` -- per-attempt state handed to every handler.
* :class:`ResponseContext` -- the value reduced by ``after_response``.
* :class:`Outcome` -- how an ``on_error`` chain settled.
* :class:`HookRegistry` -- merges a plugin list into six ordered stage
  lists and executes them.

Four stages are reductions: each handler receives the previous handler's
output, and returning ``None`` keeps the current value. ``on_error`` is a
first-short-circuit chain, and ``on_finally`` runs every handler no matter
what the others do.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Iterable, Optional

import httpx

from hookfetch.cancel import CancelToken
from hookfetch.exceptions import PluginError
from hookfetch.models import AttemptState, RequestConfig, ResponseType
from hookfetch.plugins.base import STAGES, Plugin
from hookfetch.stream import StreamChunk

if TYPE_CHECKING:
    from hookfetch.client.retry import RetryContext

logger = logging.getLogger(__name__)


@dataclass
class HookContext:
    """Per-attempt context passed to every stage handler.

    Attributes:
        config: The attempt's request config. Replaced by ``before_request``
            handlers that return a new one.
        attempt: Zero-based attempt index; retries increment it.
        token: The attempt's cancellation token.
        response: The dispatched :class:`httpx.Response`, once available.
        error: The error being handled, once the attempt failed.
        state: Current lifecycle state of the attempt.
        data: Scratch space for plugins, scoped to this attempt. Plugins
            should namespace their keys by plugin name.
    """

    config: RequestConfig
    attempt: int = 0
    token: CancelToken = field(default_factory=CancelToken)
    response: Optional[httpx.Response] = None
    error: Optional[BaseException] = None
    state: AttemptState = AttemptState.IDLE
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResponseContext:
    """Decoded response threaded through ``after_response`` handlers."""

    config: RequestConfig
    response: httpx.Response
    response_type: ResponseType
    result: Any = None


@dataclass
class Outcome:
    """How an attempt settles after its ``on_error`` chain.

    Exactly one of three shapes: a failure (``error`` set), a forced value
    (``has_value`` true), or a deferred awaitable whose result the attempt
    adopts (``deferred`` set, e.g. a spawned retry handle).
    """

    error: Optional[BaseException] = None
    value: Any = None
    has_value: bool = False
    deferred: Optional[Awaitable[Any]] = None

    @classmethod
    def fail(cls, error: BaseException) -> Outcome:
        return cls(error=error)

    @classmethod
    def resolved(cls, value: Any) -> Outcome:
        return cls(value=value, has_value=True)

    @classmethod
    def defer(cls, awaitable: Awaitable[Any]) -> Outcome:
        return cls(deferred=awaitable)


async def _call(handler: Any, *args: Any) -> Any:
    result = handler(*args)
    if inspect.iscoroutine(result):
        result = await result
    return result


class HookRegistry:
    """Ordered per-stage dispatch lists built from a plugin list.

    Plugins are deduplicated by name, keeping the last registration, and
    sorted by ``(priority, registration index)`` where the index is that of
    the kept registration. The registry is an immutable snapshot: a handle
    keeps the registry it was created with even if the client later gains
    plugins.

    Args:
        plugins: Plugins in registration order.

    Raises:
        PluginError: If a plugin has an empty name.
    """

    def __init__(self, plugins: Iterable[Plugin] = ()) -> None:
        latest: dict[str, tuple[int, Plugin]] = {}
        for index, plugin in enumerate(plugins):
            if not plugin.name:
                raise PluginError(f"Plugin {plugin!r} has no name")
            latest[plugin.name] = (index, plugin)

        ordered = sorted(latest.values(), key=lambda item: (item[1].priority, item[0]))
        self._plugins: list[Plugin] = [plugin for _, plugin in ordered]
        self._stages: dict[str, list[Plugin]] = {
            stage: [p for p in self._plugins if p.has_stage(stage)] for stage in STAGES
        }

    @property
    def plugins(self) -> list[Plugin]:
        """Effective plugins in execution order."""
        return list(self._plugins)

    def handlers(self, stage: str) -> list[Plugin]:
        """Plugins providing *stage*, in execution order."""
        return list(self._stages[stage])

    def __len__(self) -> int:
        return len(self._plugins)

    # ------------------------------------------------------------------ #
    # Reductions
    # ------------------------------------------------------------------ #

    async def _reduce(self, stage: str, value: Any, ctx: HookContext) -> Any:
        for plugin in self._stages[stage]:
            result = await _call(getattr(plugin, stage), value, ctx)
            if result is not None:
                value = result
        return value

    async def run_before_request(self, ctx: HookContext) -> RequestConfig:
        """Run ``before_request`` handlers and store the result on ``ctx.config``.

        An exception from a handler propagates; the caller treats it as an
        immediate failure of the attempt.
        """
        ctx.config = await self._reduce("before_request", ctx.config, ctx)
        return ctx.config

    async def run_before_stream(
        self, body: AsyncIterator[Any], ctx: HookContext
    ) -> AsyncIterator[Any]:
        """Run ``before_stream`` handlers over the body iterator."""
        return await self._reduce("before_stream", body, ctx)

    async def run_transform_chunk(self, chunk: StreamChunk, ctx: HookContext) -> StreamChunk:
        """Run ``transform_stream_chunk`` handlers over one chunk.

        A handler that returns something other than a
        :class:`~hookfetch.stream.StreamChunk` replaces the chunk's
        ``result``.
        """
        for plugin in self._stages["transform_stream_chunk"]:
            result = await _call(plugin.transform_stream_chunk, chunk, ctx)
            if result is None:
                continue
            if isinstance(result, StreamChunk):
                chunk = result
            else:
                chunk.result = result
        return chunk

    async def run_after_response(
        self, rctx: ResponseContext, ctx: HookContext
    ) -> ResponseContext:
        """Run ``after_response`` handlers over the decoded response."""
        return await self._reduce("after_response", rctx, ctx)

    # ------------------------------------------------------------------ #
    # Error and finally chains
    # ------------------------------------------------------------------ #

    async def run_error(
        self, error: BaseException, ctx: HookContext, retry: RetryContext
    ) -> Outcome:
        """Run ``on_error`` handlers until one short-circuits.

        Per handler:

        * calling ``retry.retry()``, ``retry.resolve()`` or ``retry.reject()``
          short-circuits with the recorded outcome;
        * returning ``None`` continues with the same error;
        * returning or raising an exception continues with that exception;
        * returning a non-coroutine awaitable (a future, task or request
          handle) short-circuits and the attempt adopts its result;
        * returning any other value continues unchanged. Forcing a value
          requires ``retry.resolve(value)``.

        Returns:
            The short-circuit outcome, or a failure with the final error.
        """
        current = error
        for plugin in self._stages["on_error"]:
            ctx.error = current
            retry.error = current
            try:
                result = await _call(plugin.on_error, current, ctx, retry)
            except Exception as exc:
                logger.debug("on_error handler of '%s' raised %r", plugin.name, exc)
                result = exc

            if retry.outcome is not None:
                return retry.outcome
            if result is None:
                continue
            if isinstance(result, BaseException):
                current = result
                continue
            if inspect.isawaitable(result):
                return Outcome.defer(result)
            logger.debug(
                "on_error handler of '%s' returned %s; ignoring it",
                plugin.name,
                type(result).__name__,
            )

        ctx.error = current
        return Outcome.fail(current)

    async def run_finally(self, ctx: HookContext) -> None:
        """Run every ``on_finally`` handler; failures are logged, not raised."""
        for plugin in self._stages["on_finally"]:
            try:
                await _call(plugin.on_finally, ctx)
            except Exception as exc:
                logger.warning("on_finally handler of '%s' failed: %s", plugin.name, exc)

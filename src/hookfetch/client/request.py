"""Request handles -- the lifecycle of one request attempt.

A :class:`RequestHandle` owns exactly one attempt. Nothing happens until the
handle is consumed: the first decode accessor, ``await handle`` or pull from
:meth:`RequestHandle.stream` triggers dispatch, and every later consumer of
the same handle reuses that single dispatch.

Lifecycle::

    IDLE -> DISPATCHING -> RESOLVING  -> RESOLVED | REJECTED | ABORTED
                        -> STREAMING  ->

Failures from any step are folded into a
:class:`~hookfetch.exceptions.ResponseError` and handed once to the
``on_error`` chain; its outcome is memoized so every accessor settles the
same way. The ``on_finally`` chain and done callbacks run exactly once, when
the attempt settles.

Example::

    handle = client.get("/events")
    async for chunk in handle.stream():
        print(chunk.result)

    data = await client.get("/users").json()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Generator, Optional

import httpx

from hookfetch.cancel import AttemptCancelled, CancelReason, CancelToken
from hookfetch.client.retry import RetryContext
from hookfetch.client.transport import Transport, build_url
from hookfetch.exceptions import (
    ErrorKind,
    InvalidStateError,
    ResponseError,
    StreamConsumedError,
    normalize_error,
)
from hookfetch.models import AttemptState, HTTPMethod, RequestConfig, ResponseType
from hookfetch.plugins.hooks import HookContext, HookRegistry, Outcome, ResponseContext
from hookfetch.stream import StreamChunk

logger = logging.getLogger(__name__)

_NO_BODY_STATUSES = (204, 304)


@dataclass(frozen=True)
class Blob:
    """Buffered body together with its media type, returned by :meth:`RequestHandle.blob`."""

    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def _as_response(value: Any, config: RequestConfig) -> httpx.Response:
    """Wrap the return value of ``config.resolve`` in a response."""
    if isinstance(value, httpx.Response):
        return value
    request = httpx.Request(config.method.value, build_url(config.base_url, config.url))
    if isinstance(value, (bytes, bytearray)):
        return httpx.Response(200, content=bytes(value), request=request)
    if isinstance(value, str):
        return httpx.Response(200, text=value, request=request)
    return httpx.Response(200, json=value, request=request)


def _body_absent(response: httpx.Response, config: RequestConfig) -> bool:
    if config.method is HTTPMethod.HEAD:
        return True
    if response.status_code in _NO_BODY_STATUSES:
        return True
    return response.headers.get("content-length") == "0"


def _decode(response: httpx.Response, kind: ResponseType) -> Any:
    if kind is ResponseType.JSON:
        return response.json()
    if kind is ResponseType.TEXT:
        return response.text
    if kind is ResponseType.BYTES:
        return response.content
    if kind is ResponseType.ARRAY_BUFFER:
        return memoryview(response.content)
    if kind is ResponseType.BLOB:
        return Blob(response.content, response.headers.get("content-type", ""))
    if kind is ResponseType.FORM_DATA:
        return httpx.QueryParams(response.text)
    return response


async def _next_item(iterator: AsyncIterator[Any]) -> Any:
    return await iterator.__anext__()


async def _flatten(result: Any) -> AsyncIterator[Any]:
    if inspect.isasyncgen(result):
        async for item in result:
            yield item
    else:
        for item in result:
            yield item


def _is_generator(value: Any) -> bool:
    return inspect.isgenerator(value) or inspect.isasyncgen(value)


def _source_bytes(item: Any) -> bytes:
    if isinstance(item, (bytes, bytearray, memoryview)):
        return bytes(item)
    if isinstance(item, str):
        return item.encode()
    return b""


class RequestHandle:
    """Handle on one request attempt.

    Created by :class:`~hookfetch.client.instance.HookFetch`; not usually
    instantiated directly.

    Args:
        config: The request config. Copied; the handle never mutates the
            caller's instance.
        registry: Plugin stages to run.
        transport: Where to dispatch.
        attempt: Zero-based attempt index.
        delay: Seconds to wait before dispatching (retries with backoff).
        on_spawn: Called with every handle spawned by a retry.
    """

    def __init__(
        self,
        config: RequestConfig,
        *,
        registry: HookRegistry,
        transport: Transport,
        attempt: int = 0,
        delay: float = 0.0,
        on_spawn: Optional[Callable[[RequestHandle], None]] = None,
    ) -> None:
        self._initial = config.copy_with()
        self._ctx = HookContext(config=config.copy_with(), attempt=attempt, token=CancelToken())
        self._registry = registry
        self._transport = transport
        self._delay = delay
        self._on_spawn = on_spawn

        self._dispatch: Optional[asyncio.Task[httpx.Response]] = None
        self._body: Optional[asyncio.Task[bytes]] = None
        self._adopted: Optional[RequestHandle] = None
        self._abort = CancelToken()
        self._results: dict[ResponseType, asyncio.Task[Any]] = {}
        self._last_kind = ResponseType.RESPONSE
        self._recovery: Optional[asyncio.Task[Outcome]] = None
        self._stream_claimed = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._finalized = False
        self._callbacks: list[Callable[[RequestHandle], Any]] = []

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> RequestConfig:
        return self._ctx.config

    @property
    def context(self) -> HookContext:
        return self._ctx

    @property
    def attempt(self) -> int:
        return self._ctx.attempt

    @property
    def state(self) -> AttemptState:
        return self._ctx.state

    @property
    def settled(self) -> bool:
        return self._finalized

    @property
    def error(self) -> Optional[BaseException]:
        return self._ctx.error

    def __repr__(self) -> str:
        return (
            f"<RequestHandle {self._ctx.config.method.value} "
            f"{self._ctx.config.url!r} attempt={self.attempt} state={self.state.value}>"
        )

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def start(self) -> asyncio.Task[httpx.Response]:
        """Dispatch the attempt, once.

        Awaiting the task alone does not settle the attempt: ``on_finally``
        and done callbacks run, and plugin state such as the dedupe key is
        released, only once a decode accessor, ``await handle`` or
        :meth:`stream` consumes the handle. A failed dispatch is likewise
        routed through ``on_error`` by those consumers, not here.

        Returns:
            The task resolving to the response with its body unread. Every
            call returns the same task.
        """
        if self._dispatch is None:
            self._dispatch = asyncio.ensure_future(self._run_dispatch())
        return self._dispatch

    async def _run_dispatch(self) -> httpx.Response:
        ctx = self._ctx
        ctx.state = AttemptState.DISPATCHING
        if self._delay > 0:
            await ctx.token.guard(asyncio.sleep(self._delay))
        ctx.token.raise_if_cancelled()

        # The retry backoff above is not part of the attempt's time budget.
        self._arm_timer(ctx.config.timeout)
        config = await ctx.token.guard(self._registry.run_before_request(ctx))
        self._arm_timer(config.timeout)
        ctx.token.raise_if_cancelled()

        resolve = config.resolve
        if resolve is not None:
            logger.debug("Resolving %s %s without dispatch", config.method.value, config.url)
            response = await ctx.token.guard(self._resolve_response(resolve, config))
        else:
            response = await ctx.token.guard(self._transport.send(config))
        ctx.response = response
        ctx.token.raise_if_cancelled()

        if not response.is_success:
            await ctx.token.guard(response.aread())
            raise ResponseError(
                f"Request failed with status {response.status_code}",
                kind=ErrorKind.HTTP_STATUS,
                config=config,
                response=response,
            )
        return response

    async def _resolve_response(
        self, resolve: Callable[[], Any], config: RequestConfig
    ) -> httpx.Response:
        value = resolve()
        if inspect.isawaitable(value):
            value = await value
        return _as_response(value, config)

    def _arm_timer(self, timeout: Optional[float]) -> None:
        if timeout is None or timeout <= 0 or self._timer is not None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(timeout, self._ctx.token.cancel, CancelReason.TIMEOUT)

    # ------------------------------------------------------------------ #
    # Buffered accessors
    # ------------------------------------------------------------------ #

    async def json(self) -> Any:
        return await self._result(ResponseType.JSON)

    async def text(self) -> str:
        return await self._result(ResponseType.TEXT)

    async def bytes(self) -> bytes:
        return await self._result(ResponseType.BYTES)

    async def array_buffer(self) -> memoryview:
        return await self._result(ResponseType.ARRAY_BUFFER)

    async def blob(self) -> Blob:
        return await self._result(ResponseType.BLOB)

    async def form_data(self) -> httpx.QueryParams:
        """Decode an ``application/x-www-form-urlencoded`` body."""
        return await self._result(ResponseType.FORM_DATA)

    def __await__(self) -> Generator[Any, None, Any]:
        """``await handle`` yields the response, or the last accessor's result."""
        return self._result(self._last_kind).__await__()

    def _result(self, kind: ResponseType) -> asyncio.Task[Any]:
        if kind is not ResponseType.RESPONSE:
            self._last_kind = kind
        task = self._results.get(kind)
        if task is None:
            task = asyncio.ensure_future(self._resolve(kind))
            self._results[kind] = task
        return task

    async def _resolve(self, kind: ResponseType) -> Any:
        ctx = self._ctx
        try:
            response = await self.start()
            if ctx.state is not AttemptState.RESOLVED:
                ctx.state = AttemptState.RESOLVING
            await ctx.token.guard(asyncio.shield(self._read_body(response)))
            ctx.token.raise_if_cancelled()
            rctx = ResponseContext(
                config=ctx.config,
                response=response,
                response_type=kind,
                result=_decode(response, kind),
            )
            rctx = await self._registry.run_after_response(rctx, ctx)
        except Exception as exc:
            if ctx.state is AttemptState.RESOLVED:
                raise normalize_error(exc, ctx.config, ctx.response) from exc
            outcome = await self._recover(exc)
            return await self._adopt(outcome, kind)

        await self._settle(AttemptState.RESOLVED)
        return rctx.result

    def _read_body(self, response: httpx.Response) -> asyncio.Task[bytes]:
        """Buffer the body once; concurrent accessors share the read."""
        if self._body is None:
            self._body = asyncio.ensure_future(response.aread())
        return self._body

    # ------------------------------------------------------------------ #
    # Streaming
    # ------------------------------------------------------------------ #

    def stream(self) -> AsyncIterator[StreamChunk]:
        """Return an async iterator over the decoded body.

        Raises:
            StreamConsumedError: If the body stream of this attempt was
                already claimed.
        """
        if self._stream_claimed:
            raise StreamConsumedError("The body stream of this attempt was already consumed")
        self._stream_claimed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamChunk]:
        ctx = self._ctx
        iterator: Optional[AsyncIterator[Any]] = None
        try:
            try:
                response = await self.start()
                if _body_absent(response, ctx.config):
                    raise ResponseError(
                        "Response has no body to stream",
                        kind=ErrorKind.BODY_NULL,
                        config=ctx.config,
                        response=response,
                    )
                ctx.state = AttemptState.STREAMING
                body = await self._registry.run_before_stream(response.aiter_bytes(), ctx)
                iterator = body.__aiter__()
            except Exception as exc:
                outcome = await self._recover(exc)
                async for chunk in self._adopt_stream(outcome):
                    yield chunk
                return

            while True:
                try:
                    item = await ctx.token.guard(_next_item(iterator))
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    outcome = await self._recover(exc)
                    async for chunk in self._adopt_stream(outcome):
                        yield chunk
                    return

                chunk = item if isinstance(item, StreamChunk) else StreamChunk(
                    result=item, source=_source_bytes(item)
                )
                try:
                    chunk = await self._registry.run_transform_chunk(chunk, ctx)
                except Exception as exc:
                    logger.debug("Chunk transform failed: %r", exc)
                    yield StreamChunk(result=None, source=chunk.source, error=exc)
                    continue

                if _is_generator(chunk.result):
                    async for value in _flatten(chunk.result):
                        yield StreamChunk(result=value, source=chunk.source)
                else:
                    yield chunk

            await self._settle(AttemptState.RESOLVED)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
            if not self._finalized:
                # Consumer stopped early; the attempt ends where it stands.
                await self._settle(AttemptState.RESOLVED)

    async def _adopt_stream(self, outcome: Outcome) -> AsyncIterator[StreamChunk]:
        if outcome.deferred is not None:
            deferred = outcome.deferred
            try:
                if isinstance(deferred, RequestHandle):
                    self._follow(deferred)
                    async for chunk in deferred.stream():
                        yield chunk
                else:
                    yield StreamChunk(result=await self._abort.guard(deferred))
            except AttemptCancelled as exc:
                await self._settle(AttemptState.ABORTED)
                raise normalize_error(exc, self._ctx.config, self._ctx.response) from exc
            except Exception as exc:
                await self._settle(self._failure_state(exc))
                raise
        elif outcome.has_value:
            yield StreamChunk(result=outcome.value)
        else:
            error = self._outcome_error(outcome)
            await self._settle(self._failure_state(error))
            raise error
        await self._settle(AttemptState.RESOLVED)

    # ------------------------------------------------------------------ #
    # Error handling
    # ------------------------------------------------------------------ #

    async def _recover(self, exc: BaseException) -> Outcome:
        if self._recovery is None:
            self._recovery = asyncio.ensure_future(self._run_recovery(exc))
        return await self._recovery

    async def _run_recovery(self, exc: BaseException) -> Outcome:
        ctx = self._ctx
        # The attempt itself is over; a retry it spawns runs on its own timer.
        self._cancel_timer()
        error = normalize_error(exc, ctx.config, ctx.response)
        ctx.error = error
        logger.debug("Attempt %d of %s failed: %s", ctx.attempt, ctx.config.url, error.name)
        retry = RetryContext(
            error,
            attempt=ctx.attempt,
            max_attempts=ctx.config.max_attempts,
            config=ctx.config,
            spawn=self._spawn,
        )
        return await self._registry.run_error(error, ctx, retry)

    async def _adopt(self, outcome: Outcome, kind: ResponseType) -> Any:
        deferred = outcome.deferred
        if deferred is not None:
            try:
                if isinstance(deferred, RequestHandle):
                    self._follow(deferred)
                    value = await deferred._result(kind)
                else:
                    value = await self._abort.guard(deferred)
            except AttemptCancelled as exc:
                await self._settle(AttemptState.ABORTED)
                raise normalize_error(exc, self._ctx.config, self._ctx.response) from exc
            except Exception as exc:
                await self._settle(self._failure_state(exc))
                raise
        elif outcome.has_value:
            value = outcome.value
        else:
            error = self._outcome_error(outcome)
            await self._settle(self._failure_state(error))
            raise error

        await self._settle(AttemptState.RESOLVED)
        return value

    def _follow(self, handle: RequestHandle) -> None:
        """Adopt *handle* as this attempt's continuation; aborts are forwarded to it."""
        self._adopted = handle
        if self._abort.cancelled:
            handle.abort()

    def _outcome_error(self, outcome: Outcome) -> BaseException:
        if outcome.error is not None:
            return outcome.error
        return ResponseError("Error chain ended without an outcome", config=self._ctx.config)

    def _failure_state(self, error: BaseException) -> AttemptState:
        if isinstance(error, ResponseError) and error.kind == ErrorKind.ABORTED:
            return AttemptState.ABORTED
        return AttemptState.REJECTED

    # ------------------------------------------------------------------ #
    # Settlement
    # ------------------------------------------------------------------ #

    async def _settle(self, state: AttemptState) -> None:
        if self._finalized:
            return
        self._finalized = True
        ctx = self._ctx
        ctx.state = state
        self._cancel_timer()
        if self._body is not None and not self._body.done():
            self._body.cancel()
        logger.debug("Attempt %d of %s settled: %s", ctx.attempt, ctx.config.url, state.value)

        if ctx.response is not None:
            await ctx.response.aclose()
        await self._registry.run_finally(ctx)
        for callback in self._callbacks:
            try:
                result = callback(self)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("Done callback %r failed: %s", callback, exc)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def add_done_callback(self, callback: Callable[[RequestHandle], Any]) -> None:
        """Register *callback* to run after the ``on_finally`` chain.

        The callback receives the handle and may be a coroutine function.
        Callbacks added after settlement are not called.
        """
        self._callbacks.append(callback)

    # ------------------------------------------------------------------ #
    # Control
    # ------------------------------------------------------------------ #

    def abort(self) -> None:
        """Cancel the attempt. A no-op once it has settled.

        If the error chain already handed the attempt over to a retry, the
        retry is aborted too and this attempt settles ``ABORTED``.
        """
        if self._finalized:
            return
        self._abort.cancel(CancelReason.ABORT)
        if self._ctx.token.cancel(CancelReason.ABORT):
            logger.debug("Aborting %s", self._ctx.config.url)
        if self._adopted is not None:
            self._adopted.abort()

    def retry(self, **overrides: Any) -> RequestHandle:
        """Spawn a fresh attempt of the same request.

        The new handle starts from the config this handle was created with
        (before any ``before_request`` changes) with *overrides* applied, and
        shares the plugin registry and transport.

        Raises:
            InvalidStateError: If this attempt has neither failed nor been
                aborted.
        """
        state = self._ctx.state
        if state not in (AttemptState.REJECTED, AttemptState.ABORTED) and not self._ctx.token.cancelled:
            raise InvalidStateError(f"Cannot retry an attempt that is {state.value}")
        return self._spawn(0.0, overrides)

    def _spawn(self, delay: float, overrides: dict[str, Any]) -> RequestHandle:
        handle = RequestHandle(
            self._initial.copy_with(**overrides),
            registry=self._registry,
            transport=self._transport,
            attempt=self._ctx.attempt + 1,
            delay=delay,
            on_spawn=self._on_spawn,
        )
        if self._on_spawn is not None:
            self._on_spawn(handle)
        return handle

"""Cooperative cancellation for request attempts.

Every attempt owns one :class:`CancelToken`. ``abort()`` and the timeout
timer both fire it; anything that suspends on the network (dispatch, body
reads, stream reads, retry delays) goes through :meth:`CancelToken.guard`,
which races the awaited operation against the token and raises
:class:`AttemptCancelled` when the token wins.
"""

from __future__ import annotations

import asyncio
import enum
from typing import Any, Awaitable, Optional, TypeVar, cast

T = TypeVar("T")


class CancelReason(str, enum.Enum):
    """Why a token fired."""

    ABORT = "abort"
    TIMEOUT = "timeout"


class AttemptCancelled(Exception):
    """Raised at a suspension point once the attempt's token has fired."""

    def __init__(self, reason: CancelReason) -> None:
        super().__init__(f"attempt cancelled ({reason.value})")
        self.reason = reason


class CancelToken:
    """One-shot cancellation signal shared by everything an attempt awaits.

    The first :meth:`cancel` wins; later calls are ignored, so the reason
    recorded is always the one that actually stopped the attempt.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[CancelReason] = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[CancelReason]:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.ABORT) -> bool:
        """Fire the token.

        Returns:
            ``True`` if this call fired it, ``False`` if it had already fired.
        """
        if self._reason is not None:
            return False
        self._reason = reason
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise AttemptCancelled(self._reason)

    async def wait(self) -> CancelReason:
        await self._event.wait()
        return cast(CancelReason, self._reason)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token fires first.

        If the operation completes in the same iteration the token fires,
        its result wins; callers re-check the token before acting on it.

        Raises:
            AttemptCancelled: If the token fired before the operation
                completed. The operation is cancelled and awaited.
        """
        if self._reason is not None:
            _discard(awaitable)
            raise AttemptCancelled(self._reason)

        task: asyncio.Future[T] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise AttemptCancelled(cast(CancelReason, self._reason))


def _discard(awaitable: Any) -> None:
    """Close an un-awaited coroutine so it does not warn on garbage collection."""
    close = getattr(awaitable, "close", None)
    if asyncio.iscoroutine(awaitable) and close is not None:
        close()

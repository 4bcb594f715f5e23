"""Automatic retry of transient failures with exponential backoff.

Network errors, timeouts and 5xx responses are retried through the
``on_error`` retry context; every other error passes through untouched.
Once ``max_attempts`` is used up the attempt fails with an ``Exceeded``
error whose cause is the last failure.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from hookfetch.exceptions import ErrorKind, ResponseError
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.hooks import HookContext

if TYPE_CHECKING:
    from hookfetch.client.retry import RetryContext

logger = logging.getLogger(__name__)

_TRANSIENT_KINDS = (ErrorKind.NETWORK_ERROR, ErrorKind.TIMEOUT)


class RetryPlugin(Plugin):
    """Retry transient failures.

    Args:
        base_delay: Delay before the first retry, in seconds; doubles on each
            further attempt.
        max_delay: Upper bound of the delay.
        statuses: HTTP statuses to retry. Defaults to every 5xx.
        priority: Optional priority override. The default of ``100`` lets
            other error handlers run first.
    """

    name = "retry"
    priority = 100
    description = "Retry network errors, timeouts and 5xx responses with backoff"

    def __init__(
        self,
        *,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        statuses: Optional[Iterable[int]] = None,
        priority: Optional[int] = None,
    ) -> None:
        super().__init__(priority=priority)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.statuses = frozenset(statuses) if statuses is not None else None

    def should_retry(self, error: BaseException) -> bool:
        if not isinstance(error, ResponseError):
            return False
        if error.kind in _TRANSIENT_KINDS:
            return True
        if error.kind != ErrorKind.HTTP_STATUS or error.status is None:
            return False
        if self.statuses is not None:
            return error.status in self.statuses
        return 500 <= error.status < 600

    def on_error(
        self, error: BaseException, ctx: HookContext, retry: RetryContext
    ) -> None:
        if not self.should_retry(error):
            return
        delay = retry.backoff(self.base_delay, self.max_delay)
        logger.debug(
            "Retrying %s after %s (attempt %d of %d)",
            ctx.config.url,
            getattr(error, "name", type(error).__name__),
            retry.attempt + 2,
            retry.max_attempts,
        )
        retry.retry(delay=delay)

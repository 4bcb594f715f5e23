"""The retry helper handed to ``on_error`` handlers.

A :class:`RetryContext` lets a handler decide how a failed attempt settles:
spawn a new attempt (:meth:`RetryContext.retry`), force a value
(:meth:`RetryContext.resolve`) or fail with a specific error
(:meth:`RetryContext.reject`). The first decision is recorded as the
chain's :class:`~hookfetch.plugins.hooks.Outcome` and short-circuits the
remaining handlers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from hookfetch.exceptions import ErrorKind, InvalidStateError, ResponseError
from hookfetch.models import RequestConfig
from hookfetch.plugins.hooks import Outcome

if TYPE_CHECKING:
    from hookfetch.client.request import RequestHandle

logger = logging.getLogger(__name__)


class RetryContext:
    """Retry controls for one failed attempt.

    Args:
        error: The error being handled.
        attempt: Zero-based index of the failed attempt.
        max_attempts: Total attempts allowed, including the first.
        config: Config of the failed attempt.
        spawn: Creates the follow-up attempt from a delay and config
            overrides.
    """

    def __init__(
        self,
        error: BaseException,
        *,
        attempt: int,
        max_attempts: int,
        config: RequestConfig,
        spawn: Callable[[float, dict[str, Any]], RequestHandle],
    ) -> None:
        self.error = error
        self.attempt = attempt
        self.max_attempts = max_attempts
        self.config = config
        self.outcome: Optional[Outcome] = None
        self._spawn = spawn

    @property
    def exhausted(self) -> bool:
        """Whether another attempt would exceed ``max_attempts``."""
        return self.attempt + 1 >= self.max_attempts

    def _decide(self, outcome: Outcome) -> None:
        if self.outcome is not None:
            raise InvalidStateError("The outcome of this attempt was already decided")
        self.outcome = outcome

    def retry(self, delay: float = 0.0, **overrides: Any) -> Optional[RequestHandle]:
        """Settle the failed attempt with the result of a new one.

        The new attempt starts from the original request config with
        *overrides* applied, waits *delay* seconds before dispatching, and
        shares the plugin registry and transport.

        Returns:
            The new handle, or ``None`` if ``max_attempts`` is exhausted; the
            attempt then fails with an ``Exceeded`` error instead.
        """
        if self.exhausted:
            status = getattr(self.error, "status", None)
            exceeded = ResponseError(
                f"Retry limit exceeded after {self.attempt + 1} attempt(s): {self.error}",
                kind=ErrorKind.EXCEEDED,
                status=status,
                config=self.config,
                response=getattr(self.error, "response", None),
                cause=self.error,
            )
            self._decide(Outcome.fail(exceeded))
            logger.debug("Retry refused: %d of %d attempts used", self.attempt + 1, self.max_attempts)
            return None

        handle = self._spawn(delay, overrides)
        self._decide(Outcome.defer(handle))
        logger.debug("Retrying as attempt %d after %.2fs", self.attempt + 1, delay)
        return handle

    def resolve(self, value: Any) -> Any:
        """Settle the failed attempt successfully with *value*."""
        self._decide(Outcome.resolved(value))
        return value

    def reject(self, error: Optional[BaseException] = None) -> BaseException:
        """Settle the failed attempt with *error* (default: the current error)."""
        error = error if error is not None else self.error
        self._decide(Outcome.fail(error))
        return error

    def backoff(self, base: float = 0.5, cap: float = 30.0) -> float:
        """Exponential delay for the next attempt: ``base * 2 ** attempt``, capped."""
        return min(cap, base * (2**self.attempt))

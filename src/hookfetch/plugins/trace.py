"""Logs each request, its response status, failures and settlement."""

from __future__ import annotations

import logging
from typing import Any

from hookfetch.exceptions import error_kind
from hookfetch.models import RequestConfig
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.hooks import HookContext, ResponseContext

logger = logging.getLogger(__name__)


class TracePlugin(Plugin):
    """Log request lifecycle events through :mod:`logging`.

    Runs last in every stage so it sees the final config and result.
    """

    name = "trace"
    priority = 1000
    description = "Log requests, responses and errors"

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__()
        self.level = level

    def before_request(self, config: RequestConfig, ctx: HookContext) -> None:
        logger.log(
            self.level, "-> %s %s (attempt %d)", config.method.value, config.url, ctx.attempt
        )

    def after_response(self, rctx: ResponseContext, ctx: HookContext) -> None:
        response = rctx.response
        logger.log(
            self.level,
            "<- %s %s [%s]",
            response.status_code,
            response.reason_phrase,
            rctx.response_type.value,
        )

    def on_error(self, error: BaseException, ctx: HookContext, retry: Any) -> None:
        logger.log(self.level, "!! %s: %s", error_kind(error) or type(error).__name__, error)

    def on_finally(self, ctx: HookContext) -> None:
        logger.log(self.level, "== %s %s", ctx.config.url, ctx.state.value)

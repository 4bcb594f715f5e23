"""Base class for hookfetch plugins.

A plugin is a named bundle of optional stage handlers. Every stage attribute
defaults to ``None``; the :class:`~hookfetch.plugins.hooks.HookRegistry`
only dispatches to stages a plugin actually provides, so plugins implement
just the hooks they need.

Plugins come in two shapes. Subclasses define stage methods::

    class RequestIdPlugin(Plugin):
        name = "request-id"

        def before_request(self, config, ctx):
            config.headers["X-Request-Id"] = uuid.uuid4().hex

Ad-hoc plugins pass handlers as keyword arguments::

    Plugin("auth", before_request=add_token, priority=-10)

Handler signatures (each may be a plain function or a coroutine function):

* ``before_request(config, ctx)`` -- return a replacement
  :class:`~hookfetch.models.RequestConfig` or ``None`` to keep the
  (possibly mutated) one.
* ``before_stream(body, ctx)`` -- receives the async byte iterator of the
  body; return a replacement async iterator or ``None``.
* ``transform_stream_chunk(chunk, ctx)`` -- receives a
  :class:`~hookfetch.stream.StreamChunk`; return a replacement or ``None``.
* ``after_response(rctx, ctx)`` -- receives a
  :class:`~hookfetch.plugins.hooks.ResponseContext`; return a replacement
  or ``None``.
* ``on_error(error, ctx, retry)`` -- see
  :meth:`~hookfetch.plugins.hooks.HookRegistry.run_error`.
* ``on_finally(ctx)`` -- runs once when the attempt settles.

Plugins are registered as entry points in the ``hookfetch.plugins`` group
and discovered at runtime by :class:`~hookfetch.plugins.manager.PluginManager`.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from hookfetch.exceptions import PluginError

STAGES = (
    "before_request",
    "before_stream",
    "transform_stream_chunk",
    "after_response",
    "on_error",
    "on_finally",
)
"""Stage names in lifecycle order."""


class Plugin:
    """Base class for all hookfetch plugins.

    Args:
        name: Unique plugin name. Overrides the class-level ``name``.
        priority: Sort key; lower runs first. Ties keep registration order.
        version: Version string shown by ``hookfetch plugins``.
        description: One-line description.
        **handlers: Stage handlers keyed by stage name.

    Raises:
        PluginError: If a keyword does not name a stage.
    """

    name: str = ""
    priority: int = 0
    version: str = "0.1.0"
    description: str = ""

    before_request: Optional[Callable[..., Any]] = None
    before_stream: Optional[Callable[..., Any]] = None
    transform_stream_chunk: Optional[Callable[..., Any]] = None
    after_response: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_finally: Optional[Callable[..., Any]] = None

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        priority: Optional[int] = None,
        version: Optional[str] = None,
        description: Optional[str] = None,
        **handlers: Callable[..., Any],
    ) -> None:
        if name is not None:
            self.name = name
        if priority is not None:
            self.priority = priority
        if version is not None:
            self.version = version
        if description is not None:
            self.description = description
        for stage, handler in handlers.items():
            if stage not in STAGES:
                raise PluginError(f"Unknown hook stage '{stage}' for plugin '{self.name}'")
            setattr(self, stage, handler)

    def has_stage(self, stage: str) -> bool:
        """Return whether this plugin provides a handler for *stage*."""
        return getattr(self, stage, None) is not None

    def cleanup(self) -> None:
        """Called once when the owning client closes.

        Override to close file handles or caches opened by the plugin.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"

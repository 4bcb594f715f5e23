"""Plugin system for hookfetch.

Re-exports the plugin base class, the hook registry and its context types,
the :class:`PluginManager`, and the built-in plugins so consumers can write
``from hookfetch.plugins import Plugin, DedupePlugin``.
"""

from hookfetch.plugins.base import STAGES, Plugin
from hookfetch.plugins.hooks import HookContext, HookRegistry, Outcome, ResponseContext
from hookfetch.plugins.manager import PluginManager
from hookfetch.plugins.cache import CachePlugin
from hookfetch.plugins.dedupe import DedupePlugin, InFlightRequests, is_dedupe_error, request_key
from hookfetch.plugins.retry import RetryPlugin
from hookfetch.plugins.sse import SSEDecoderPlugin, sse_decoder_plugin
from hookfetch.plugins.trace import TracePlugin

__all__ = [
    "STAGES",
    "CachePlugin",
    "DedupePlugin",
    "HookContext",
    "HookRegistry",
    "InFlightRequests",
    "Outcome",
    "Plugin",
    "PluginManager",
    "ResponseContext",
    "RetryPlugin",
    "SSEDecoderPlugin",
    "TracePlugin",
    "is_dedupe_error",
    "request_key",
    "sse_decoder_plugin",
]

"""Plugin manager -- registration, discovery, and lifecycle management.

:class:`PluginManager` keeps the ordered list of plugins registered on a
client, hands out a lazily-cached
:class:`~hookfetch.plugins.hooks.HookRegistry` snapshot of it, and discovers
plugins registered as Python entry points.

The entry-point group used for discovery is ``hookfetch.plugins``.
Third-party packages register plugins by declaring an entry point under this
group in their ``pyproject.toml``::

    [project.entry-points."hookfetch.plugins"]
    my-plugin = "my_package.plugin:MyPlugin"
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any, Optional

from hookfetch.exceptions import PluginError
from hookfetch.models import GlobalConfig
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.hooks import HookRegistry

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "hookfetch.plugins"
"""The entry-point group name used for plugin discovery."""


class PluginManager:
    """Registers plugins and builds the hook registry for a client.

    Registering a plugin whose name is already taken is allowed: the
    registry keeps only the most recent registration of each name.

    Example:
        Typical usage::

            manager = PluginManager()
            manager.use(DedupePlugin())
            manager.discover(global_config)
            registry = manager.get_registry()
    """

    def __init__(self) -> None:
        self._plugins: list[Plugin] = []
        self._registry: Optional[HookRegistry] = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def use(self, plugin: Plugin) -> None:
        """Register *plugin* after all previously registered ones.

        Raises:
            PluginError: If the plugin has no name.
        """
        if not plugin.name:
            raise PluginError(f"Plugin {plugin!r} has no name")
        self._plugins.append(plugin)
        # Invalidate cached registry so it picks up the new plugin.
        self._registry = None
        logger.debug("Registered plugin '%s' v%s", plugin.name, plugin.version)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self, config: GlobalConfig) -> list[str]:
        """Discover and register plugins via Python entry points.

        When ``config.plugins.enabled`` is non-empty only those plugins are
        loaded; otherwise every discovered plugin not listed in
        ``config.plugins.disabled`` is loaded.

        Returns:
            Names of the plugins that were registered. Plugins that fail to
            load are logged as warnings and skipped.
        """
        loaded_names: list[str] = []
        enabled_set = set(config.plugins.enabled)
        disabled_set = set(config.plugins.disabled)

        for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            name = ep.name
            if enabled_set and name not in enabled_set:
                logger.debug("Plugin '%s' not in enabled list, skipping", name)
                continue
            if name in disabled_set:
                logger.debug("Plugin '%s' is disabled, skipping", name)
                continue

            try:
                plugin_cls = ep.load()
                plugin: Plugin = plugin_cls()
                self.use(plugin)
                loaded_names.append(name)
            except Exception as exc:
                logger.warning("Failed to load plugin '%s': %s", name, exc)

        return loaded_names

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def get_plugin(self, name: str) -> Plugin:
        """Return the effective (most recently registered) plugin called *name*.

        Raises:
            PluginError: If no plugin with the given *name* is registered.
        """
        for plugin in reversed(self._plugins):
            if plugin.name == name:
                return plugin
        raise PluginError(f"Plugin '{name}' is not registered")

    def list_plugins(self) -> list[dict[str, Any]]:
        """List effective plugins in execution order with their metadata."""
        return [
            {
                "name": plugin.name,
                "version": plugin.version,
                "priority": plugin.priority,
                "description": plugin.description,
            }
            for plugin in self.get_registry().plugins
        ]

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_registry(self) -> HookRegistry:
        """Return the :class:`~hookfetch.plugins.hooks.HookRegistry` for all plugins.

        The registry is built lazily and cached until the next :meth:`use`.
        """
        if self._registry is None:
            self._registry = HookRegistry(self._plugins)
        return self._registry

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cleanup(self) -> None:
        """Call ``cleanup()`` on every registered plugin and reset state.

        Exceptions from individual plugins are logged so that one plugin's
        failure does not prevent the others from cleaning up.
        """
        seen: set[int] = set()
        for plugin in self._plugins:
            if id(plugin) in seen:
                continue
            seen.add(id(plugin))
            try:
                plugin.cleanup()
            except Exception as exc:
                logger.warning("Error cleaning up plugin '%s': %s", plugin.name, exc)
        self._plugins.clear()
        self._registry = None

"""The ``hookfetch plugins`` command -- list installed entry-point plugins."""

from __future__ import annotations

from hookfetch.output import info, print_table


def plugins_command() -> None:
    """List plugins registered under the ``hookfetch.plugins`` entry-point group.

    Plugins excluded by ``plugins.enabled``/``plugins.disabled`` in the global
    config are not shown.
    """
    from hookfetch.config import load_global_config
    from hookfetch.plugins import PluginManager

    manager = PluginManager()
    if not manager.discover(load_global_config()):
        info("No plugins found.")
        return

    rows = [
        [p["name"], p["version"], str(p["priority"]), p["description"]]
        for p in manager.list_plugins()
    ]
    print_table(["name", "version", "priority", "description"], rows, title="Plugins")
    manager.cleanup()

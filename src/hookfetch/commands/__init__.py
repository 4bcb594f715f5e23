"""Built-in ``hookfetch`` sub-commands."""

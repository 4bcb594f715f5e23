"""Profile commands -- manage named sets of client defaults.

A profile pins the base URL, default headers, query parameters and timeout
for one API, so ``hookfetch -p github request /user`` needs only the path.
"""

from __future__ import annotations

from typing import Optional

import typer

from hookfetch.exit_codes import EXIT_INVALID_USAGE
from hookfetch.output import error, info, print_table, success

profile_app = typer.Typer(no_args_is_help=True)


def parse_pairs(pairs: Optional[list[str]], sep: str, what: str) -> dict[str, str]:
    """Parse ``KEY<sep>VALUE`` strings into a dict.

    Raises:
        typer.Exit: With code 2 when an item lacks the separator.
    """
    result: dict[str, str] = {}
    for item in pairs or []:
        key, found, value = item.partition(sep)
        if not found or not key.strip():
            error(f"Invalid {what} '{item}', expected KEY{sep}VALUE")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        result[key.strip()] = value.strip()
    return result


@profile_app.command("list")
def profile_list() -> None:
    """List saved profiles."""
    from hookfetch.config import list_profiles, load_global_config, load_profile

    names = list_profiles()
    if not names:
        info("No profiles. Create one with 'hookfetch profile add NAME BASE_URL'.")
        return

    default = load_global_config().default_profile
    rows = []
    for name in names:
        profile = load_profile(name)
        rows.append([
            name,
            profile.base_url,
            "" if profile.timeout is None else f"{profile.timeout:g}",
            "*" if name == default else "",
        ])
    print_table(["name", "base_url", "timeout", "default"], rows, title="Profiles")


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    base_url: str = typer.Argument(help="Base URL prepended to relative request URLs."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Default header 'Key: Value' (repeatable)."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Default query parameter 'key=value' (repeatable)."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Default timeout in seconds."
    ),
    max_attempts: int = typer.Option(
        3, "--max-attempts", min=1, help="Attempts allowed per request, including the first."
    ),
    default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile."),
) -> None:
    """Create or overwrite a profile.

    Example::

        hookfetch profile add github https://api.github.com \\
            -H "Accept: application/vnd.github+json" --timeout 10 --default
    """
    from hookfetch.config import (
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from hookfetch.models import Profile

    if profile_exists(name) and not force:
        error(f"Profile '{name}' already exists. Use --force to overwrite.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    profile = Profile(
        name=name,
        base_url=base_url,
        headers=parse_pairs(header, ":", "header"),
        params=parse_pairs(param, "=", "parameter"),
        timeout=timeout,
        max_attempts=max_attempts,
    )
    save_profile(profile)

    if default:
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)

    success(f"Saved profile '{name}'.")


@profile_app.command("remove")
def profile_remove(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a profile, clearing it as the default if it was one."""
    from hookfetch.config import delete_profile, load_global_config, save_global_config

    delete_profile(name)

    config = load_global_config()
    if config.default_profile == name:
        config.default_profile = None
        save_global_config(config)

    success(f"Removed profile '{name}'.")

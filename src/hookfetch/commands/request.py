"""The ``hookfetch request`` command -- send one request from the shell.

Builds a :class:`~hookfetch.client.instance.HookFetch` client from the active
profile, registers the built-in plugins selected by flags, and prints the
decoded body or, with ``--stream``/``--sse``, one line per stream chunk.

Example::

    hookfetch request https://httpbin.org/get -P page=2
    hookfetch -p openai request /chat/completions -X POST -d @- --sse-json \\
        --prefix "data:" --done "[DONE]"
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Optional

import typer

from hookfetch.client.instance import HookFetch
from hookfetch.commands.profile import parse_pairs
from hookfetch.models import ClientOptions, GlobalConfig, Profile, SSEOptions
from hookfetch.output import debug, format_response, info, print_chunk, warning
from hookfetch.plugins import (
    CachePlugin,
    DedupePlugin,
    PluginManager,
    RetryPlugin,
    SSEDecoderPlugin,
    TracePlugin,
)
from hookfetch.plugins.base import Plugin

logger = logging.getLogger(__name__)


def parse_params(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Parse repeated ``key=value`` options; a repeated key becomes a list."""
    params: dict[str, Any] = {}
    for item in pairs or []:
        single = parse_pairs([item], "=", "parameter")
        for key, value in single.items():
            if key not in params:
                params[key] = value
            elif isinstance(params[key], list):
                params[key].append(value)
            else:
                params[key] = [params[key], value]
    return params


def parse_body(data: Optional[str]) -> Any:
    """Decode ``--data``: ``@-`` reads stdin, JSON is parsed, anything else is sent raw."""
    if data is None:
        return None
    if data == "@-":
        data = sys.stdin.read()
    try:
        return json.loads(data)
    except ValueError:
        return data


def build_plugins(
    global_cfg: GlobalConfig,
    *,
    sse: Optional[SSEOptions],
    dedupe: bool,
    cache: bool,
    retries: int,
    verbose: bool,
) -> list[Plugin]:
    """Select the built-in plugins requested on the command line.

    Entry-point plugins are added as well when ``plugins.enabled`` in the
    global config names any.
    """
    plugins: list[Plugin] = []
    if global_cfg.plugins.enabled:
        manager = PluginManager()
        manager.discover(global_cfg)
        plugins.extend(manager.get_registry().plugins)
    if sse is not None:
        plugins.append(SSEDecoderPlugin(sse))
    if dedupe:
        plugins.append(DedupePlugin())
    if cache and global_cfg.cache.enabled:
        plugins.append(CachePlugin(global_cfg.cache))
    if retries > 0:
        plugins.append(RetryPlugin())
    if verbose:
        plugins.append(TracePlugin())
    return plugins


def client_options(profile: Optional[Profile], retries: int) -> ClientOptions:
    values: dict[str, Any] = {}
    if profile is not None:
        values = profile.model_dump(include=set(ClientOptions.model_fields))
    if retries > 0:
        values["max_attempts"] = retries + 1
    return ClientOptions.model_validate(values)


async def _send(
    client: HookFetch,
    url: str,
    *,
    streaming: bool,
    **kwargs: Any,
) -> None:
    async with client:
        handle = client.request(url, **kwargs)
        if streaming:
            async for chunk in handle.stream():
                if chunk.error is not None:
                    warning(f"Dropped chunk: {chunk.error}")
                    continue
                print_chunk(chunk.result)
            return

        text = await handle.text()
        response = handle.context.response
        if response is not None:
            info(f"HTTP {response.status_code} {response.reason_phrase}")
        if text:
            format_response(text)


def request_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or a path relative to the profile's base URL."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Header 'Key: Value' (repeatable)."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter 'key=value' (repeatable)."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body; JSON when it parses, '@-' reads stdin."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Attempt timeout in seconds."
    ),
    retries: int = typer.Option(
        0, "--retries", min=0, help="Retry network errors, timeouts and 5xx this many times."
    ),
    stream: bool = typer.Option(False, "--stream", help="Print the body as it arrives."),
    sse: bool = typer.Option(False, "--sse", help="Split the stream into events."),
    sse_json: bool = typer.Option(False, "--sse-json", help="Parse each event line as JSON."),
    prefix: str = typer.Option("", "--prefix", help="Line prefix stripped before parsing, e.g. 'data:'."),
    done: Optional[str] = typer.Option(None, "--done", help="Sentinel line that ends the stream."),
    dedupe: bool = typer.Option(False, "--dedupe", help="Reject duplicate in-flight requests."),
    cache: bool = typer.Option(False, "--cache", help="Serve GET responses from the local cache."),
) -> None:
    """Send an HTTP request and print the response.

    Failures exit with a code derived from the error kind: 4 for 4xx, 5 for
    5xx, 6 for network errors, 7 for timeouts.
    """
    from hookfetch.config import resolve_config

    obj = ctx.obj or {}
    verbose = bool(obj.get("verbose"))
    global_cfg, profile = resolve_config(obj.get("profile"))
    if profile is not None:
        debug(f"Using profile '{profile.name}' ({profile.base_url})")

    sse_options: Optional[SSEOptions] = None
    if sse or sse_json or prefix or done is not None:
        sse_options = SSEOptions(parse_json=sse_json, prefix=prefix, done=done)

    client = HookFetch(
        client_options(profile, retries),
        plugins=build_plugins(
            global_cfg,
            sse=sse_options,
            dedupe=dedupe,
            cache=cache,
            retries=retries,
            verbose=verbose,
        ),
    )
    debug(f"Plugins: {', '.join(p['name'] for p in client.plugins.list_plugins()) or 'none'}")

    asyncio.run(
        _send(
            client,
            url,
            streaming=stream or sse_options is not None,
            method=method,
            headers=parse_pairs(header, ":", "header"),
            params=parse_params(param),
            data=parse_body(data),
            timeout=timeout,
        )
    )

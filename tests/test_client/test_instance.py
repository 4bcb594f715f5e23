"""Tests for HookFetch instances, verb helpers and the module-level API."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

import hookfetch
from hookfetch.client import HookFetch, HttpxTransport, create
from hookfetch.exceptions import ErrorKind, ResponseError
from hookfetch.models import ArrayFormat, AttemptState, ClientOptions, HTTPMethod
from hookfetch.plugins import Plugin


class _EchoServer:
    """Answers with a JSON description of each request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            200,
            json={
                "method": request.method,
                "url": str(request.url),
                "content_type": request.headers.get("content-type"),
                "body": request.content.decode("utf-8", errors="replace"),
            },
        )

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


async def _never(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(5)
    return httpx.Response(200)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_keyword_options(self) -> None:
        client = HookFetch(base_url="https://api.test", timeout=3)
        assert client.defaults.base_url == "https://api.test"
        assert client.defaults.timeout == 3

    def test_keywords_override_options_model(self) -> None:
        client = HookFetch(ClientOptions(base_url="https://a.test", timeout=1), timeout=9)
        assert client.defaults.base_url == "https://a.test"
        assert client.defaults.timeout == 9

    def test_create_is_constructor(self) -> None:
        assert isinstance(create(base_url="https://api.test"), HookFetch)

    def test_build_config_merges_defaults(self) -> None:
        client = HookFetch(
            base_url="https://api.test",
            headers={"Accept": "application/json", "X-Client": "hf"},
            params={"key": "k"},
            max_attempts=5,
            array_format=ArrayFormat.COMMA,
            extra={"sse_able": False},
        )
        config = client.build_config(
            "/users",
            method="post",
            params={"page": 2},
            headers={"accept": "text/plain", "X-Client": None},
            extra={"dedupe_able": False},
        )
        assert config.method is HTTPMethod.POST
        assert config.base_url == "https://api.test"
        assert config.params == {"key": "k", "page": 2}
        assert config.headers == {"accept": "text/plain"}
        assert config.extra == {"sse_able": False, "dedupe_able": False}
        assert config.max_attempts == 5
        assert config.array_format is ArrayFormat.COMMA

    def test_build_config_overrides(self) -> None:
        client = HookFetch(max_attempts=5)
        assert client.build_config("/x", max_attempts=1).max_attempts == 1

    async def test_defaults_reach_the_wire(self, make_client) -> None:
        server = _EchoServer()
        client = make_client(
            server,
            base_url="https://api.test/v1/",
            headers={"X-Api-Key": "secret"},
            params={"lang": "en"},
        )
        await client.get("/items", params={"tags": ["a", "b"]}).json()
        request = server.last
        assert request.url.path == "/v1/items"
        assert request.url.params.get_list("tags") == ["a", "b"]
        assert request.url.params["lang"] == "en"
        assert request.headers["x-api-key"] == "secret"
        await client.aclose()


# ---------------------------------------------------------------------------
# Verbs
# ---------------------------------------------------------------------------


class TestVerbs:
    @pytest.mark.parametrize("verb", ["get", "head", "options", "delete"])
    async def test_query_verbs(self, make_client, verb: str) -> None:
        server = _EchoServer()
        client = make_client(server)
        handle = getattr(client, verb)("https://api.test/x", {"q": "1"})
        await handle
        assert server.last.method == verb.upper()
        assert server.last.url.params["q"] == "1"
        await client.aclose()

    @pytest.mark.parametrize("verb", ["post", "put", "patch"])
    async def test_body_verbs_send_json(self, make_client, verb: str) -> None:
        client = make_client(_EchoServer())
        echo = await getattr(client, verb)("https://api.test/x", {"name": "hf"}).json()
        assert echo["method"] == verb.upper()
        assert echo["content_type"] == "application/json"
        assert json.loads(echo["body"]) == {"name": "hf"}
        await client.aclose()

    async def test_form_urlencoded_body(self, make_client) -> None:
        client = make_client(_EchoServer())
        echo = await client.post(
            "https://api.test/x",
            {"a": "1", "b": "2"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        ).json()
        assert echo["body"] == "a=1&b=2"
        await client.aclose()

    async def test_raw_string_body(self, make_client) -> None:
        client = make_client(_EchoServer())
        echo = await client.post("https://api.test/x", "plain text").json()
        assert echo["body"] == "plain text"
        await client.aclose()

    async def test_upload_sends_multipart(self, make_client) -> None:
        client = make_client(_EchoServer())
        echo = await client.upload(
            "https://api.test/upload",
            files={"file": ("a.txt", b"hello", "text/plain")},
            data={"note": "n"},
        ).json()
        assert echo["method"] == "POST"
        assert echo["content_type"].startswith("multipart/form-data; boundary=")
        assert 'filename="a.txt"' in echo["body"]
        assert "hello" in echo["body"]
        assert 'name="note"' in echo["body"]
        await client.aclose()

    async def test_instance_is_callable(self, make_client) -> None:
        server = _EchoServer()
        client = make_client(server)
        await client("https://api.test/x", method="DELETE")
        assert server.last.method == "DELETE"
        await client.aclose()


# ---------------------------------------------------------------------------
# Plugins and lifecycle
# ---------------------------------------------------------------------------


class TestPluginsAndLifecycle:
    async def test_use_replaces_plugin_with_same_name(self, make_client) -> None:
        calls: list[str] = []
        client = make_client(_EchoServer())
        returned = client.use(Plugin("tag", on_finally=lambda ctx: calls.append("old")))
        assert returned is client
        client.use(Plugin("tag", on_finally=lambda ctx: calls.append("new")))
        await client.get("https://api.test/x").json()
        assert calls == ["new"]
        await client.aclose()

    async def test_handle_keeps_registry_it_was_created_with(self, make_client) -> None:
        calls: list[str] = []
        client = make_client(_EchoServer())
        handle = client.get("https://api.test/x")
        client.use(Plugin("late", on_finally=lambda ctx: calls.append("late")))
        await handle.json()
        assert calls == []
        await client.aclose()

    async def test_abort_all(self, make_client) -> None:
        client = make_client(_never)
        handles = [client.get(f"https://api.test/{i}") for i in range(2)]
        pending = [asyncio.ensure_future(h.json()) for h in handles]
        await asyncio.sleep(0.01)

        assert client.abort_all() == 2
        results = await asyncio.gather(*pending, return_exceptions=True)
        assert all(isinstance(r, ResponseError) and r.kind is ErrorKind.ABORTED for r in results)
        assert all(h.state is AttemptState.ABORTED for h in handles)
        assert client.abort_all() == 0
        await client.aclose()

    async def test_context_manager_closes_transport_and_plugins(self) -> None:
        cleaned: list[str] = []

        class Closing(Plugin):
            name = "closing"

            def cleanup(self) -> None:
                cleaned.append(self.name)

        transport = HttpxTransport(transport=httpx.MockTransport(_EchoServer()))
        async with HookFetch(transport=transport, plugins=[Closing()]) as client:
            await client.get("https://api.test/x").json()
            assert transport._client is not None
        assert transport._client is None
        assert cleaned == ["closing"]


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


class TestModuleHelpers:
    async def test_get_closes_transport_when_settled(self) -> None:
        transport = HttpxTransport(transport=httpx.MockTransport(_EchoServer()))
        echo = await hookfetch.get("https://api.test/x", {"a": 1}, transport=transport).json()
        assert echo["url"] == "https://api.test/x?a=1"
        assert transport._client is None

    async def test_post_with_plugins(self) -> None:
        seen: list[str] = []
        transport = HttpxTransport(transport=httpx.MockTransport(_EchoServer()))
        handle = hookfetch.post(
            "https://api.test/x",
            {"k": "v"},
            transport=transport,
            plugins=[Plugin("spy", before_request=lambda c, ctx: seen.append(c.method.value))],
        )
        await handle.json()
        assert seen == ["POST"]

    async def test_request_defaults_to_get(self) -> None:
        server = _EchoServer()
        transport = HttpxTransport(transport=httpx.MockTransport(server))
        await hookfetch.request("https://api.test/x", transport=transport)
        assert server.last.method == "GET"

    async def test_module_upload(self) -> None:
        server = _EchoServer()
        transport = HttpxTransport(transport=httpx.MockTransport(server))
        await hookfetch.upload(
            "https://api.test/up", files={"f": ("f.bin", b"\x00")}, transport=transport
        ).json()
        assert server.last.headers["content-type"].startswith("multipart/form-data")

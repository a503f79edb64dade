"""Interceptor chains and the replaceable hook pairs a client installs."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from RequestGuard.cancellation import CancellationRegistry
from RequestGuard.errors import TransportError
from RequestGuard.interceptors import InterceptorManager, InterceptorSet
from RequestGuard.models import RequestConfig
from RequestGuard.transport import InterceptorChain, Interceptors, run_chain
from tests.fixtures.http_mocking import ScriptedHandler


class _ChainOnlyTransport:
    def __init__(self) -> None:
        self.interceptors = Interceptors()


def test_chain_use_and_eject():
    chain = InterceptorChain()
    first = chain.use(lambda v: v + 1)
    second = chain.use(lambda v: v * 2)

    assert first != second
    assert len(chain) == 2
    assert chain.eject(first) is True
    assert chain.eject(first) is False
    assert asyncio.run(run_chain(chain, 3)) == (6, None)


def test_rejected_hook_recovers_and_fulfilled_failure_propagates():
    chain = InterceptorChain()
    chain.use(None, lambda error: "recovered")
    chain.use(lambda value: value.upper())

    assert asyncio.run(run_chain(chain, None, ValueError("boom"))) == ("RECOVERED", None)

    def explode(value):
        raise KeyError("bad")

    failing = InterceptorChain()
    failing.use(explode)
    failing.use(lambda value: "never")
    value, error = asyncio.run(run_chain(failing, "x"))
    assert value is None
    assert isinstance(error, KeyError)


def test_async_hooks_are_awaited():
    async def add_header(config: RequestConfig) -> RequestConfig:
        await asyncio.sleep(0)
        config.headers["X-Async"] = "1"
        return config

    chain = InterceptorChain()
    chain.use(add_header)
    value, error = asyncio.run(run_chain(chain, RequestConfig()))
    assert error is None
    assert value.headers == {"X-Async": "1"}


def test_interceptor_set_defaults():
    hooks = InterceptorSet(on_request=None, on_response="not callable").resolved()  # type: ignore[arg-type]
    assert hooks.on_request("v") == "v"
    assert hooks.on_response("v") == "v"
    with pytest.raises(ValueError):
        hooks.on_response_error(ValueError("kept"))


def test_replacing_hooks_never_stacks_pairs():
    transport = _ChainOnlyTransport()
    manager = InterceptorManager(transport, CancellationRegistry())
    manager.install()

    manager.set_request_hooks(lambda c: c)
    manager.set_request_hooks(lambda c: c)
    manager.set_response_hooks(lambda r: r)
    manager.set_response_hooks(lambda r: r)

    assert len(transport.interceptors.request) == 1
    assert len(transport.interceptors.response) == 1


def test_replacing_one_pair_keeps_the_other():
    transport = _ChainOnlyTransport()

    def on_request(config):
        return config

    manager = InterceptorManager(transport, CancellationRegistry(), InterceptorSet(on_request=on_request))
    manager.install()
    manager.set_response_hooks(lambda r: r)

    assert manager.hooks.on_request is on_request


def test_response_hooks_release_only_the_matching_handle():
    transport = _ChainOnlyTransport()
    registry = CancellationRegistry()
    manager = InterceptorManager(transport, registry)
    manager.install()

    stale = registry.register("k")
    current = registry.register("k")

    stale_config = RequestConfig(dispatch_key="k", handle=stale)
    error = TransportError("late", config=stale_config)
    value, raised = asyncio.run(run_chain(transport.interceptors.response, None, error))
    assert raised is error
    assert registry.get("k") is current

    class _Response:
        config = RequestConfig(dispatch_key="k", handle=current)

    asyncio.run(run_chain(transport.interceptors.response, _Response()))
    assert "k" not in registry


@pytest.mark.asyncio
async def test_hooks_run_once_per_attempt_after_replacement(make_client):
    handler = ScriptedHandler(httpx.Response(200, json={"ok": True}))
    seen: list[str] = []

    def tag(label):
        def hook(config):
            seen.append(label)
            return config

        return hook

    async with make_client(handler) as client:
        client.set_request_interceptor(tag("first"))
        client.set_request_interceptor(tag("second"))
        await client.get("/ping")

    assert seen == ["second"]


@pytest.mark.asyncio
async def test_request_hook_can_rewrite_config(make_client):
    handler = ScriptedHandler(httpx.Response(200, json={}))

    def add_auth(config: RequestConfig) -> RequestConfig:
        config.headers["Authorization"] = "Bearer token"
        return config

    async with make_client(handler, interceptors={"on_request": add_auth}) as client:
        await client.get("/me")

    assert handler.requests[0].headers["Authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_response_hook_transforms_result(make_client):
    handler = ScriptedHandler(httpx.Response(200, json={"value": 41}))

    async def unwrap(response):
        response.data = response.data["value"] + 1
        return response

    async with make_client(handler) as client:
        client.set_response_interceptor(unwrap)
        response = await client.get("/answer")
        assert response.data == 42
        assert len(client.registry) == 0


@pytest.mark.asyncio
async def test_response_error_hook_can_recover(make_client):
    handler = ScriptedHandler(httpx.Response(404, json={"detail": "missing"}))

    def fallback(error):
        return {"fallback": True, "status": error.status_code}

    async with make_client(handler) as client:
        client.set_response_interceptor(None, fallback)
        result = await client.get("/missing")
        assert result == {"fallback": True, "status": 404}
        assert len(client.registry) == 0


@pytest.mark.asyncio
async def test_request_hook_failure_skips_dispatch(make_client):
    handler = ScriptedHandler()

    def refuse(config):
        raise PermissionError("blocked")

    async with make_client(handler, interceptors={"on_request": refuse}) as client:
        with pytest.raises(PermissionError, match="blocked"):
            await client.get("/nope")
        assert len(client.registry) == 0

    assert handler.calls == 0

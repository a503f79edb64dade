"""Cancellation handles and the per-client registry."""

from __future__ import annotations

import asyncio

import pytest

from RequestGuard.cancellation import CancellationHandle, CancellationRegistry
from RequestGuard.errors import CancellationError


def test_handle_abort_is_single_use():
    handle = CancellationHandle("k")
    seen: list[str | None] = []
    handle.add_abort_callback(lambda h: seen.append(h.reason))

    assert handle.abort("first") is True
    assert handle.abort("second") is False
    assert handle.aborted
    assert handle.signal.is_set()
    assert handle.reason == "first"
    assert seen == ["first"]


def test_handle_default_reason_and_late_callback():
    handle = CancellationHandle()
    handle.abort()
    late: list[CancellationHandle] = []
    handle.add_abort_callback(late.append)

    assert handle.reason == "Request cancelled"
    assert late == [handle]
    with pytest.raises(CancellationError, match="Request cancelled"):
        handle.raise_if_aborted()


def test_handle_wait_returns_reason():
    async def scenario() -> str | None:
        handle = CancellationHandle("k")
        waiter = asyncio.ensure_future(handle.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        handle.abort("stop")
        return await waiter

    assert asyncio.run(scenario()) == "stop"


def test_register_supersedes_existing_handle():
    registry = CancellationRegistry()
    aborts: list[CancellationHandle] = []

    first = registry.register("k")
    first.add_abort_callback(aborts.append)
    second = registry.register("k")

    assert aborts == [first]
    assert first.aborted and not second.aborted
    assert registry.get("k") is second
    assert len(registry) == 1


def test_cancel_reports_presence():
    registry = CancellationRegistry()
    handle = registry.register("k")

    assert registry.cancel("k", "user") is True
    assert handle.reason == "user"
    assert "k" not in registry
    assert registry.cancel("k") is False


def test_cancel_all_aborts_each_handle_once_and_empties_registry():
    registry = CancellationRegistry()
    handles = [registry.register(f"k{i}") for i in range(3)]
    abort_counts = {id(h): 0 for h in handles}

    def resurrect(handle: CancellationHandle) -> None:
        abort_counts[id(handle)] += 1
        registry.register(handle.key)

    for handle in handles:
        handle.add_abort_callback(resurrect)

    assert registry.cancel_all("shutdown") == 3
    assert len(registry) == 0
    assert all(count == 1 for count in abort_counts.values())
    assert all(h.reason == "shutdown" for h in handles)


def test_cancel_all_on_empty_registry():
    assert CancellationRegistry().cancel_all() == 0


def test_release_is_identity_checked():
    registry = CancellationRegistry()
    stale = registry.register("k")
    current = registry.register("k")

    assert registry.release("k", stale) is False
    assert registry.get("k") is current
    assert registry.release("k", current) is True
    assert registry.release("k", current) is False
    assert not current.aborted


def test_release_without_handle_drops_entry():
    registry = CancellationRegistry()
    registry.register("k")
    assert registry.release("k") is True
    assert len(registry) == 0


def test_sentinel_keys_are_distinct():
    registry = CancellationRegistry()
    sym1, sym2 = object(), object()
    first = registry.register(sym1)
    second = registry.register(sym2)

    assert not first.aborted and not second.aborted
    assert set(registry.keys()) == {sym1, sym2}


def test_registries_are_independent():
    left, right = CancellationRegistry(), CancellationRegistry()
    handle = left.register("k")
    right.register("k")
    right.cancel_all()

    assert not handle.aborted
    assert "k" in left

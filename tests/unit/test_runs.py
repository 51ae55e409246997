"""Unit tests for the active run registry."""

import asyncio

import pytest

from helium_server.services.runs import ActiveRunRegistry


async def wait_forever():
    await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_cancel_running_task():
    registry = ActiveRunRegistry()
    task = asyncio.ensure_future(wait_forever())
    registry.register("s1", task)

    assert registry.active_sessions() == ["s1"]
    assert registry.cancel("s1") is True

    with pytest.raises(asyncio.CancelledError):
        await task
    assert registry.active_sessions() == []


@pytest.mark.asyncio
async def test_cancel_unknown_session_is_noop():
    registry = ActiveRunRegistry()
    assert registry.cancel("missing") is False


@pytest.mark.asyncio
async def test_cancel_finished_task_returns_false():
    registry = ActiveRunRegistry()
    task = asyncio.ensure_future(asyncio.sleep(0))
    await task
    registry.register("s1", task)

    assert registry.cancel("s1") is False


@pytest.mark.asyncio
async def test_unregister_ignores_newer_run():
    """Test that a finished run cannot remove the task that replaced it."""
    registry = ActiveRunRegistry()
    old = asyncio.ensure_future(wait_forever())
    new = asyncio.ensure_future(wait_forever())
    registry.register("s1", old)
    registry.register("s1", new)

    registry.unregister("s1", old)
    assert registry.active_sessions() == ["s1"]

    registry.unregister("s1", new)
    assert registry.active_sessions() == []

    old.cancel()
    new.cancel()
    await asyncio.gather(old, new, return_exceptions=True)

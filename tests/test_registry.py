"""Tests for the in-flight registry — single-flight per key and release on failure."""

import asyncio

import pytest

from energyvault.workflows.registry import (
    InFlightRegistry,
    OperationCancelledError,
    OperationInFlightError,
)


class TestInFlightRegistry:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_run(self) -> None:
        registry = InFlightRegistry()
        release = asyncio.Event()
        runs = 0

        async def operation() -> int:
            nonlocal runs
            runs += 1
            await release.wait()
            return 42

        first = asyncio.ensure_future(registry.run("energy-1", operation))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(registry.run("energy-1", operation))
        await asyncio.sleep(0)
        assert registry.is_pending("energy-1")

        release.set()
        assert await asyncio.gather(first, second) == [42, 42]
        assert runs == 1
        assert not registry.is_pending("energy-1")

    @pytest.mark.asyncio
    async def test_distinct_keys_run_independently(self) -> None:
        registry = InFlightRegistry()
        calls: list[str] = []

        async def operation(key: str) -> str:
            calls.append(key)
            await asyncio.sleep(0)
            return key

        results = await asyncio.gather(
            registry.run("a", lambda: operation("a")),
            registry.run("b", lambda: operation("b")),
        )
        assert results == ["a", "b"]
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_exception_releases_marker(self) -> None:
        registry = InFlightRegistry()

        async def boom() -> None:
            await asyncio.sleep(0)
            raise RuntimeError("proof engine crashed")

        with pytest.raises(RuntimeError):
            await registry.run("energy-1", boom)
        assert not registry.is_pending("energy-1")

        async def ok() -> str:
            return "fine"

        assert await registry.run("energy-1", ok) == "fine"

    @pytest.mark.asyncio
    async def test_joiner_sees_owner_exception(self) -> None:
        registry = InFlightRegistry()
        release = asyncio.Event()

        async def boom() -> None:
            await release.wait()
            raise RuntimeError("ledger down")

        first = asyncio.ensure_future(registry.run("k", boom))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(registry.run("k", boom))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)
        assert registry.pending_keys == []

    @pytest.mark.asyncio
    async def test_joiner_takes_over_when_owner_cancelled(self) -> None:
        registry = InFlightRegistry()
        runs = 0

        async def operation() -> str:
            nonlocal runs
            runs += 1
            if runs == 1:
                await asyncio.Event().wait()
            return "second run"

        owner = asyncio.ensure_future(registry.run("k", operation))
        await asyncio.sleep(0)
        joiner = asyncio.ensure_future(registry.run("k", operation))
        await asyncio.sleep(0)

        owner.cancel()
        assert await joiner == "second run"
        with pytest.raises(asyncio.CancelledError):
            await owner
        assert runs == 2
        assert registry.pending_keys == []

    @pytest.mark.asyncio
    async def test_cancelled_owner_marks_shared_future(self) -> None:
        registry = InFlightRegistry()
        started = asyncio.Event()
        shared = []

        async def operation() -> None:
            shared.append(registry._pending["k"])
            started.set()
            await asyncio.Event().wait()

        owner = asyncio.ensure_future(registry.run("k", operation))
        await started.wait()
        owner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await owner

        (future,) = shared
        assert isinstance(future.exception(), OperationCancelledError)
        assert not registry.is_pending("k")

    @pytest.mark.asyncio
    async def test_hold_rejects_second_holder(self) -> None:
        registry = InFlightRegistry()
        with registry.hold("k"):
            with pytest.raises(OperationInFlightError):
                with registry.hold("k"):
                    pass
        assert not registry.is_pending("k")

"""Unit tests for ContextBuilder and ApplicationContext."""

import asyncio
from typing import List

import pytest

from src.bootstrap import ApplicationContext, ContextBuilder, has_active_context
from src.core import ComponentWiringException, LifecycleException


@pytest.fixture
def events() -> List[str]:
    return []


def tracked(events: List[str], name: str, fail: bool = False):
    """Factory/closer pair recording build and close order."""

    def factory(resolver: ContextBuilder):
        if fail:
            raise RuntimeError(f"{name} exploded")
        events.append(f"build:{name}")
        return {"name": name}

    def close(component) -> None:
        events.append(f"close:{component['name']}")

    return factory, close


class TestBuild:
    async def test_builds_in_registration_order(self, settings, events) -> None:
        builder = ContextBuilder(settings, ["--flag"])
        for name in ("a", "b", "c"):
            factory, close = tracked(events, name)
            builder.register(name, factory, close=close)

        context = await builder.build()
        try:
            assert events == ["build:a", "build:b", "build:c"]
            assert context.names == ("a", "b", "c")
            assert context["b"] == {"name": "b"}
            assert "c" in context
            assert context.args == ("--flag",)
            assert context.settings is settings
        finally:
            await context.close()

    async def test_async_factories_and_dependencies(self, settings) -> None:
        async def build_pool(resolver):
            return ["conn"]

        def build_repo(resolver):
            return {"pool": resolver.get("pool")}

        context = await (
            ContextBuilder(settings)
            .register("pool", build_pool)
            .register("repo", build_repo)
            .build()
        )
        try:
            assert context.get("repo") == {"pool": ["conn"]}
        finally:
            await context.close()

    async def test_components_are_read_only(self, settings) -> None:
        context = await ContextBuilder(settings).register("a", lambda r: 1).build()
        try:
            with pytest.raises(TypeError):
                context.components["b"] = 2
            with pytest.raises(KeyError):
                context.get("missing")
        finally:
            await context.close()

    def test_duplicate_registration_is_rejected(self, settings) -> None:
        builder = ContextBuilder(settings).register("a", lambda r: 1)

        with pytest.raises(ComponentWiringException) as exc_info:
            builder.register("a", lambda r: 2)
        assert exc_info.value.component == "a"

    async def test_build_runs_once(self, settings) -> None:
        builder = ContextBuilder(settings).register("a", lambda r: 1)
        context = await builder.build()
        try:
            with pytest.raises(LifecycleException):
                await builder.build()
            with pytest.raises(LifecycleException):
                builder.register("b", lambda r: 2)
        finally:
            await context.close()


class TestAllOrNothing:
    async def test_failure_closes_built_components_in_reverse(self, settings, events) -> None:
        builder = ContextBuilder(settings)
        for name, fail in (("a", False), ("b", False), ("c", True), ("d", False)):
            factory, close = tracked(events, name, fail=fail)
            builder.register(name, factory, close=close)

        with pytest.raises(ComponentWiringException) as exc_info:
            await builder.build()

        assert exc_info.value.component == "c"
        assert "c exploded" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert events == ["build:a", "build:b", "close:b", "close:a"]
        assert not has_active_context()

    async def test_unknown_dependency_fails_wiring(self, settings) -> None:
        builder = ContextBuilder(settings).register("repo", lambda r: r.get("pool"))

        with pytest.raises(ComponentWiringException) as exc_info:
            await builder.build()

        assert exc_info.value.component == "repo"
        assert "not registered" in exc_info.value.message
        cause = exc_info.value.__cause__
        assert isinstance(cause, ComponentWiringException)
        assert cause.component == "pool"

    async def test_dependency_built_later_is_attributed_to_requester(self, settings) -> None:
        builder = (
            ContextBuilder(settings)
            .register("repo", lambda r: r.get("pool"))
            .register("pool", lambda r: ["conn"])
        )

        with pytest.raises(ComponentWiringException) as exc_info:
            await builder.build()

        assert exc_info.value.component == "repo"
        assert "not built yet" in exc_info.value.message

    async def test_cancelled_build_closes_built_components(self, settings, events) -> None:
        entered = asyncio.Event()

        async def hang(resolver):
            entered.set()
            await asyncio.sleep(60)

        factory, close = tracked(events, "a")
        builder = ContextBuilder(settings).register("a", factory, close=close).register("b", hang)

        task = asyncio.create_task(builder.build())
        await asyncio.wait_for(entered.wait(), 5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert events == ["build:a", "close:a"]
        assert not has_active_context()

    async def test_close_failure_does_not_mask_wiring_error(self, settings) -> None:
        def broken_close(component):
            raise RuntimeError("close failed")

        builder = (
            ContextBuilder(settings)
            .register("a", lambda r: 1, close=broken_close)
            .register("b", lambda r: 1 / 0)
        )

        with pytest.raises(ComponentWiringException) as exc_info:
            await builder.build()
        assert exc_info.value.component == "b"


class TestSingleContext:
    async def test_second_context_is_rejected_while_first_is_live(self, settings) -> None:
        first = await ContextBuilder(settings).register("a", lambda r: 1).build()
        try:
            assert has_active_context()
            with pytest.raises(LifecycleException):
                await ContextBuilder(settings).register("a", lambda r: 1).build()
        finally:
            await first.close()

        assert not has_active_context()

    async def test_new_context_after_close(self, settings) -> None:
        first = await ContextBuilder(settings).build()
        await first.close()

        second = await ContextBuilder(settings).build()
        try:
            assert isinstance(second, ApplicationContext)
        finally:
            await second.close()

    async def test_close_is_idempotent(self, settings, events) -> None:
        factory, close = tracked(events, "a")
        context = await ContextBuilder(settings).register("a", factory, close=close).build()

        await context.close()
        await context.close()

        assert events == ["build:a", "close:a"]
        assert context.is_closed
        assert not has_active_context()

"""Tests for the awaiting dispatch variants."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from posplug.plugins.errors import CallableFailure, ContractViolation
from posplug.plugins.registry import ExtensionRegistry


class TestApplyFiltersAsync:
    def test_mixed_sync_and_async_filters_keep_order(self, registry: ExtensionRegistry) -> None:
        async def slow_a(value: str, params: Any) -> str:
            await asyncio.sleep(0.01)
            return value + ":A"

        def sync_b(value: str, params: Any) -> str:
            return value + ":B"

        async def fast_c(value: str, params: Any) -> str:
            return value + ":C"

        registry.register_filter("x", slow_a)
        registry.register_filter("x", sync_b)
        registry.register_filter("x", fast_c)

        assert asyncio.run(registry.apply_filters_async("x", "start", {})) == "start:A:B:C"

    def test_empty_chain_returns_input(self, registry: ExtensionRegistry) -> None:
        value = object()
        assert asyncio.run(registry.apply_filters_async("none", value)) is value

    def test_async_failure_halts_chain(self, registry: ExtensionRegistry) -> None:
        calls: list[str] = []

        async def boom(value: str, params: Any) -> str:
            await asyncio.sleep(0)
            msg = "upstream timeout"
            raise ConnectionError(msg)

        async def after(value: str, params: Any) -> str:
            calls.append("after")
            return value

        registry.register_filter("y", boom)
        registry.register_filter("y", after)

        with pytest.raises(CallableFailure) as excinfo:
            asyncio.run(registry.apply_filters_async("y", "v"))

        assert calls == []
        assert excinfo.value.index == 0
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_contract_checked_after_await(self, registry: ExtensionRegistry) -> None:
        async def wrong(value: str, params: Any) -> int:
            return 1

        registry.declare("after_invoice", str)
        registry.register_filter("after_invoice", wrong)
        with pytest.raises(ContractViolation):
            asyncio.run(registry.apply_filters_async("after_invoice", "text"))


class TestDoActionsAsync:
    def test_each_action_completes_before_next(self, registry: ExtensionRegistry) -> None:
        events: list[str] = []

        async def first(params: Any) -> None:
            events.append("first:start")
            await asyncio.sleep(0.01)
            events.append("first:end")

        def second(params: Any) -> None:
            events.append("second")

        registry.register_action("after_invoice", first)
        registry.register_action("after_invoice", second)
        asyncio.run(registry.do_actions_async("after_invoice", {"model": {"id": 42}}))

        assert events == ["first:start", "first:end", "second"]

    def test_async_action_failure_propagates(self, registry: ExtensionRegistry) -> None:
        calls: list[str] = []

        async def broken(params: Any) -> None:
            raise ValueError("bad order")

        registry.register_action("a", broken, plugin="flaky")
        registry.register_action("a", lambda params: calls.append("later"))

        with pytest.raises(CallableFailure) as excinfo:
            asyncio.run(registry.do_actions_async("a", {}))

        assert calls == []
        assert excinfo.value.registration.plugin == "flaky"

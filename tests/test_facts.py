"""
Tests for facts and the in-memory fact registry.
"""

import asyncio

import pytest

from backend.jsonrules import (
    Fact,
    FactRegistry,
    RuleConfigurationError,
    UndefinedFactError,
)


class TestFact:
    """Tests for Fact."""

    def test_constant(self):
        """Test a constant fact."""
        fact = Fact("temp", 21)
        assert fact.is_constant
        assert fact.priority == 1
        assert fact.cache is True

    def test_callable(self):
        """Test that callables are dynamic facts."""
        assert not Fact("now", lambda params, registry: 0).is_constant

    @pytest.mark.parametrize("priority", [0, -1, "x"])
    def test_invalid_priority(self, priority):
        """Test that fact priorities must be positive integers."""
        with pytest.raises(RuleConfigurationError):
            Fact("temp", 21, priority=priority)

    def test_requires_name(self):
        """Test that a fact needs a name."""
        with pytest.raises(RuleConfigurationError):
            Fact("", 1)


class TestFactRegistry:
    """Tests for FactRegistry."""

    def test_constant_facts_from_mapping(self):
        """Test constructing a registry from constant values."""
        registry = FactRegistry({"a": 1, "b": "two"})
        assert len(registry) == 2
        assert "a" in registry
        assert registry.lookup("b").value == "two"
        assert registry.lookup("c") is None

    def test_add_fact_instance(self):
        """Test registering a Fact object."""
        registry = FactRegistry()
        fact = registry.add_fact(Fact("score", 9, priority=4))
        assert registry.lookup("score") is fact
        assert fact.priority == 4

    def test_remove_fact(self):
        """Test removing facts."""
        registry = FactRegistry({"a": 1})
        assert registry.remove_fact("a") is True
        assert registry.remove_fact("a") is False
        assert registry.lookup("a") is None

    @pytest.mark.asyncio
    async def test_resolve_constant(self):
        """Test resolving a constant fact."""
        assert await FactRegistry({"a": 1}).resolve("a") == 1

    @pytest.mark.asyncio
    async def test_resolve_unknown(self):
        """Test that resolving an unknown fact raises."""
        with pytest.raises(UndefinedFactError) as exc_info:
            await FactRegistry().resolve("ghost")
        assert exc_info.value.fact == "ghost"

    @pytest.mark.asyncio
    async def test_resolve_sync_callable(self):
        """Test a synchronous computed fact."""
        registry = FactRegistry({"base": 10})
        registry.add_fact("double", lambda params, reg: params["n"] * 2)
        assert await registry.resolve("double", {"n": 4}) == 8

    @pytest.mark.asyncio
    async def test_resolve_async_callable_using_registry(self):
        """Test an async computed fact that depends on another fact."""
        async def total(params, registry):
            base = await registry.resolve("base")
            return base + params.get("extra", 0)

        registry = FactRegistry({"base": 10})
        registry.add_fact("total", total)
        assert await registry.resolve("total", {"extra": 5}) == 15

    @pytest.mark.asyncio
    async def test_cached_per_params(self):
        """Test that computed values are cached per params."""
        calls = []

        def compute(params, registry):
            calls.append(params)
            return len(calls)

        registry = FactRegistry()
        registry.add_fact("counter", compute)
        assert await registry.resolve("counter", {"k": 1}) == 1
        assert await registry.resolve("counter", {"k": 1}) == 1
        assert await registry.resolve("counter", {"k": 2}) == 2
        assert len(calls) == 2

        registry.clear_cache()
        assert await registry.resolve("counter", {"k": 1}) == 3

    @pytest.mark.asyncio
    async def test_uncached(self):
        """Test that cache=False recomputes every time."""
        calls = []

        def compute(params, registry):
            calls.append(1)
            return len(calls)

        registry = FactRegistry()
        registry.add_fact("counter", compute, cache=False)
        await registry.resolve("counter")
        await registry.resolve("counter")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_replacing_fact_drops_cache(self):
        """Test that re-registering a fact clears its cached values."""
        registry = FactRegistry()
        registry.add_fact("v", lambda params, reg: "old")
        assert await registry.resolve("v") == "old"
        registry.add_fact("v", lambda params, reg: "new")
        assert await registry.resolve("v") == "new"

    @pytest.mark.asyncio
    async def test_concurrent_lookups_share_computation(self):
        """Test that concurrent lookups of one value run the fact once."""
        calls = []
        release = asyncio.Event()

        async def slow(params, registry):
            calls.append(params)
            await release.wait()
            return "done"

        registry = FactRegistry()
        registry.add_fact("slow", slow)
        first = asyncio.ensure_future(registry.resolve("slow", {"k": 1}))
        second = asyncio.ensure_future(registry.resolve("slow", {"k": 1}))
        await asyncio.sleep(0)
        release.set()
        assert await asyncio.gather(first, second) == ["done", "done"]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_failure_is_not_cached(self):
        """Test that a failure shared by concurrent lookups is retried later."""
        attempts = []

        async def flaky(params, registry):
            attempts.append(1)
            await asyncio.sleep(0)
            if len(attempts) == 1:
                raise ConnectionError("temporary")
            return "ok"

        registry = FactRegistry()
        registry.add_fact("flaky", flaky)
        results = await asyncio.gather(
            registry.resolve("flaky"), registry.resolve("flaky"), return_exceptions=True
        )
        assert all(isinstance(r, ConnectionError) for r in results)
        assert len(attempts) == 1
        assert await registry.resolve("flaky") == "ok"

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        """Test that a failing computation is retried on the next resolve."""
        attempts = []

        def flaky(params, registry):
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("temporary")
            return "ok"

        registry = FactRegistry()
        registry.add_fact("flaky", flaky)
        with pytest.raises(ConnectionError):
            await registry.resolve("flaky")
        assert await registry.resolve("flaky") == "ok"

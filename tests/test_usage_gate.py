"""Tests for the per-workspace usage gate."""

from prowrite.service.usage import UsageGate


async def test_may_proceed_below_limit(memory_store):
    ws = memory_store.create_workspace("Acme", 2, usage_count=1)
    gate = UsageGate(memory_store)
    assert await gate.may_proceed(ws.id) is True


async def test_denied_at_limit(memory_store):
    ws = memory_store.create_workspace("Acme", 2, usage_count=2)
    gate = UsageGate(memory_store)
    assert await gate.may_proceed(ws.id) is False


async def test_zero_limit_always_denied(memory_store):
    ws = memory_store.create_workspace("Acme", 0)
    assert await UsageGate(memory_store).may_proceed(ws.id) is False


async def test_settle_increments_once(memory_store):
    ws = memory_store.create_workspace("Acme", 5)
    gate = UsageGate(memory_store)
    assert await gate.settle(ws.id) == 1
    assert memory_store.get_usage_count(ws.id) == 1


async def test_check_does_not_reserve(memory_store):
    """Two checks before any settle both pass; the gate is check-then-act."""
    ws = memory_store.create_workspace("Acme", 1)
    gate = UsageGate(memory_store)
    assert await gate.may_proceed(ws.id)
    assert await gate.may_proceed(ws.id)
    assert memory_store.get_usage_count(ws.id) == 0


def test_usage_stats(memory_store):
    ws = memory_store.create_workspace("Acme", 8, usage_count=3)
    stats = UsageGate(memory_store).usage_stats(ws.id)
    assert stats.to_dict() == {
        "usage_count": 3,
        "usage_limit": 8,
        "remaining": 5,
        "percentage_used": 38,
    }


def test_usage_stats_over_limit_and_zero_limit(memory_store):
    over = memory_store.create_workspace("Over", 2, usage_count=3)
    zero = memory_store.create_workspace("Zero", 0)
    gate = UsageGate(memory_store)
    assert gate.usage_stats(over.id).remaining == 0
    assert gate.usage_stats(zero.id).percentage_used == 0

"""Per-workspace generation quota.

The gate is check-then-act: ``may_proceed`` reads count and limit, and
``settle`` increments afterwards. Two concurrent sessions for the same
workspace can both pass the check before either settles, so the limit can
be overshot by the number of in-flight sessions. The increment itself is
atomic in the store.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from prowrite.logging import get_logger

logger = get_logger(__name__)

QUOTA_EXCEEDED_MESSAGE = (
    "Usage limit reached. Please upgrade your plan to continue generating content."
)


@dataclass(frozen=True)
class UsageStats:
    usage_count: int
    usage_limit: int
    remaining: int
    percentage_used: int

    def to_dict(self) -> dict:
        return {
            "usage_count": self.usage_count,
            "usage_limit": self.usage_limit,
            "remaining": self.remaining,
            "percentage_used": self.percentage_used,
        }


class UsageGate:
    def __init__(self, store) -> None:
        self.store = store

    async def may_proceed(self, workspace_id: str) -> bool:
        count = await asyncio.to_thread(self.store.get_usage_count, workspace_id)
        limit = await asyncio.to_thread(self.store.get_usage_limit, workspace_id)
        allowed = count < limit
        if not allowed:
            logger.info(
                "usage_limit_reached",
                workspace_id=workspace_id,
                usage_count=count,
                usage_limit=limit,
            )
        return allowed

    async def settle(self, workspace_id: str) -> int:
        """Record one successful generation; returns the new count."""
        count = await asyncio.to_thread(self.store.increment_usage, workspace_id)
        logger.info("usage_settled", workspace_id=workspace_id, usage_count=count)
        return count

    def usage_stats(self, workspace_id: str) -> UsageStats:
        count = self.store.get_usage_count(workspace_id)
        limit = self.store.get_usage_limit(workspace_id)
        remaining = max(0, limit - count)
        # Round half up
        percentage = int(count / limit * 100 + 0.5) if limit > 0 else 0
        return UsageStats(
            usage_count=count,
            usage_limit=limit,
            remaining=remaining,
            percentage_used=percentage,
        )

"""Clock implementation."""

import asyncio
from datetime import datetime, timezone

from publish_worker.domain.ports import ClockPort
from publish_worker.domain.types import Timestamp


class SystemClock(ClockPort):
    """System clock implementation."""

    def now(self) -> Timestamp:
        """Get current UTC timestamp, naive."""
        return datetime.now(timezone.utc).replace(tzinfo=None)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

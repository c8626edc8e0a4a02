"""Expiry reminder timers.

One asyncio task per food report, sleeping until ``expiry - lead``. Timers are
ephemeral (lost on restart) and cancelled when the report leaves
{new, assigned}. The callback re-checks the report when it fires.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from foodshare.core.config import settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ExpiryReminderScheduler:
    """Cancellable fire-and-forget reminder timers keyed by report id."""

    def __init__(
        self,
        on_due: Callable[[int], Awaitable[Any]],
        clock: Clock = utcnow,
        lead: Optional[timedelta] = None,
    ):
        self._on_due = on_due
        self._clock = clock
        self.lead = lead or timedelta(minutes=settings.expiry_reminder_lead_minutes)
        self._tasks: Dict[int, asyncio.Task] = {}

    def schedule(self, report_id: int, expiry_time: Optional[datetime]) -> bool:
        """Arm (or re-arm) the reminder for ``report_id``.

        Returns False when there is nothing to remind about: no expiry time,
        or the food has already expired. A reminder whose due time has passed
        fires on the next loop iteration.
        """
        self.cancel(report_id)
        if expiry_time is None:
            return False

        expiry = as_utc(expiry_time)
        now = self._clock()
        if now >= expiry:
            logger.debug(f"Food report {report_id} already expired, no reminder armed")
            return False

        delay = max(0.0, (expiry - self.lead - now).total_seconds())
        self._tasks[report_id] = asyncio.create_task(
            self._fire(report_id, delay), name=f"expiry-reminder-{report_id}"
        )
        logger.debug(f"Expiry reminder for food report {report_id} armed in {delay:.0f}s")
        return True

    def cancel(self, report_id: int) -> bool:
        task = self._tasks.pop(report_id, None)
        if task is None:
            return False
        task.cancel()
        logger.debug(f"Expiry reminder for food report {report_id} cancelled")
        return True

    def pending(self) -> set:
        return {rid for rid, task in self._tasks.items() if not task.done()}

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _fire(self, report_id: int, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._tasks.get(report_id) is asyncio.current_task():
            del self._tasks[report_id]
        try:
            await self._on_due(report_id)
        except Exception as e:
            logger.error(f"Expiry reminder for food report {report_id} failed: {e}", exc_info=True)

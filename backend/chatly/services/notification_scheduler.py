"""Notification Scheduler — dispatch queue around the pure smart-timing decision.

Invariants:
    - At most one pending job per queue key (topic): a new deferred job REPLACES it
    - An immediate job for a topic cancels that topic's pending job before rendering
    - cancel() succeeds up to the moment of dispatch; after that it is a no-op
    - Render failures are logged and dropped — no retries, never raised to the caller
    - shutdown() cancels every pending timer

Design Decisions:
    - asyncio tasks as cancellable timers over a persistent job table: deferred jobs are
      device-local and do not survive a restart (ADR: no delivery guarantees)
    - Clock injected: tests and the configured notification timezone decide "now"
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from chatly.core.domain_types import DeliveryKind
from chatly.core.repository_protocols import NotificationRenderer
from chatly.core.smart_timing import (
    DEFAULT_POLICY, Delivery, NotificationJob, SmartTimingPolicy, decide,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationScheduler:
    """Decides and dispatches notification jobs, one pending job per topic."""

    def __init__(
        self,
        renderer: NotificationRenderer,
        policy: SmartTimingPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.renderer = renderer
        self.policy = policy
        self.clock = clock
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    def has_pending(self, key: str) -> bool:
        return key in self._pending

    async def schedule(
        self,
        job: NotificationJob,
        *,
        battery_level: float | None = None,
        smart_notifications_enabled: bool = True,
        now: datetime | None = None,
    ) -> Delivery:
        now = now or self.clock()
        delivery = decide(
            job, now, battery_level, smart_notifications_enabled, self.policy,
        )
        extra = {"topic": job.topic, "delivery": delivery.kind.value}

        if delivery.kind == DeliveryKind.IMMEDIATE:
            self.cancel(job.queue_key)
            await self._render(job)
        elif delivery.kind == DeliveryKind.DEFERRED:
            replaced = self.cancel(job.queue_key)
            delay = max((delivery.at - now).total_seconds(), 0.0)
            self._pending[job.queue_key] = asyncio.create_task(
                self._dispatch_later(job, delay),
            )
            logger.info(
                f"Notification deferred until {delivery.at.isoformat()}"
                + (" (replaced pending job)" if replaced else ""),
                extra=extra,
            )
        else:
            logger.info("Notification suppressed by preference", extra=extra)
        return delivery

    def cancel(self, key: str) -> bool:
        """Cancel the pending job for key. False if nothing was pending."""
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info(f"Cancelled {len(tasks)} pending notifications on shutdown")

    async def _dispatch_later(self, job: NotificationJob, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._pending.get(job.queue_key) is asyncio.current_task():
            del self._pending[job.queue_key]
        await self._render(job)

    async def _render(self, job: NotificationJob) -> None:
        try:
            await self.renderer.render(job)
        except Exception as e:
            logger.error(
                f"Notification render failed, dropped: {e}",
                extra={"topic": job.topic},
            )

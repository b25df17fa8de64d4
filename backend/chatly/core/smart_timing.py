"""Smart Timing — pure delivery decision for outbound notifications.

Invariants:
    - decide is PURE and total: same (job, now, battery, preference) -> same Delivery
    - HIGH priority is always IMMEDIATE, even with smart notifications disabled
    - Precedence for NORMAL jobs: night window, then low battery, then immediate
    - A deferred target less than min_defer ahead collapses to IMMEDIATE
    - Deferred targets keep now's tzinfo (local wall-clock semantics)

Design Decisions:
    - Thresholds live in a frozen SmartTimingPolicy built by the shell from settings,
      so the core stays free of configuration imports
    - battery_level None means "unknown" and never triggers batching
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from chatly.core.domain_types import DeliveryKind, Priority


@dataclass(frozen=True)
class SmartTimingPolicy:
    night_start_hour: int = 22
    night_end_hour: int = 6
    morning_delivery_hour: int = 9
    low_battery_threshold: float = 0.20
    battery_batch_delay: timedelta = timedelta(minutes=30)
    min_defer: timedelta = timedelta(minutes=1)


DEFAULT_POLICY = SmartTimingPolicy()


@dataclass(frozen=True)
class NotificationJob:
    title: str
    body: str
    requested_at: datetime
    priority: Priority = Priority.NORMAL
    payload: Any = None
    topic: str | None = None
    job_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def queue_key(self) -> str:
        """Same-topic jobs share a key; untopiced jobs never replace each other."""
        return self.topic or self.job_id


@dataclass(frozen=True)
class Delivery:
    kind: DeliveryKind
    at: datetime | None = None

    @classmethod
    def immediate(cls) -> "Delivery":
        return cls(DeliveryKind.IMMEDIATE)

    @classmethod
    def deferred(cls, at: datetime) -> "Delivery":
        return cls(DeliveryKind.DEFERRED, at)

    @classmethod
    def suppressed(cls) -> "Delivery":
        return cls(DeliveryKind.SUPPRESSED)


def is_night(hour: int, policy: SmartTimingPolicy = DEFAULT_POLICY) -> bool:
    if policy.night_start_hour <= policy.night_end_hour:
        return policy.night_start_hour <= hour < policy.night_end_hour
    return hour >= policy.night_start_hour or hour < policy.night_end_hour


def is_low_battery(
    battery_level: float | None, policy: SmartTimingPolicy = DEFAULT_POLICY,
) -> bool:
    return battery_level is not None and battery_level < policy.low_battery_threshold


def next_day_morning(now: datetime, policy: SmartTimingPolicy = DEFAULT_POLICY) -> datetime:
    """Next calendar day at the morning delivery hour, same tzinfo as now."""
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(
        hour=policy.morning_delivery_hour, minute=0, second=0, microsecond=0,
    )


def decide(
    job: NotificationJob,
    now: datetime,
    battery_level: float | None,
    smart_notifications_enabled: bool,
    policy: SmartTimingPolicy = DEFAULT_POLICY,
) -> Delivery:
    if job.priority == Priority.HIGH:
        return Delivery.immediate()
    if not smart_notifications_enabled:
        return Delivery.suppressed()

    if is_night(now.hour, policy):
        target = next_day_morning(now, policy)
    elif is_low_battery(battery_level, policy):
        target = now + policy.battery_batch_delay
    else:
        return Delivery.immediate()

    if target - now < policy.min_defer:
        return Delivery.immediate()
    return Delivery.deferred(target)

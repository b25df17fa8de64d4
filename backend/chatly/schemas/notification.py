"""Notification Schemas — scheduling requests, delivery verdicts and preferences.

Invariants:
    - battery_level, when given, is a fraction in [0, 1]
    - Delivery.at is present only for deferred verdicts
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from chatly.core.domain_types import DeliveryKind, Priority


class ScheduleRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(max_length=4000)
    priority: Priority = Priority.NORMAL
    topic: str | None = Field(None, max_length=128)
    payload: dict[str, Any] | None = None
    battery_level: float | None = Field(None, ge=0.0, le=1.0)


class DeliveryView(BaseModel):
    job_id: str
    topic: str | None
    kind: DeliveryKind
    at: datetime | None = None


class NotificationPreferences(BaseModel):
    smart_notifications_enabled: bool
    smart_notifications_overridden: bool
    theme: str | None = None
    onboarding_complete: bool = False


class NotificationPreferencesUpdate(BaseModel):
    smart_notifications_enabled: bool | None = None
    theme: str | None = None
    onboarding_complete: bool | None = None

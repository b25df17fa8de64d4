"""Notification Routes — schedule, cancel and per-client smart-notification preferences.

Invariants:
    - The smart-notification flag is read from the client's preferences (tier default
      when the user never chose); HIGH priority bypasses it
    - DELETE /pending/{topic} returns 404 when nothing is pending for the topic
    - PUT /preferences with smart_notifications_enabled marks the choice as a user override
"""

import logging

from fastapi import APIRouter, Depends, status

from chatly.api.dependencies import (
    get_auth_session, get_notification_scheduler, require_authenticated,
)
from chatly.core.errors import ProfileValidationError, ResourceNotFoundError
from chatly.core.profile import Profile
from chatly.core.smart_timing import NotificationJob
from chatly.core.tier_catalog import is_theme_available
from chatly.schemas.notification import (
    DeliveryView, NotificationPreferences, NotificationPreferencesUpdate, ScheduleRequest,
)
from chatly.services.auth_session import AuthSession
from chatly.services.notification_scheduler import NotificationScheduler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


async def _preferences_view(auth: AuthSession, profile: Profile) -> NotificationPreferences:
    prefs = auth.preferences
    return NotificationPreferences(
        smart_notifications_enabled=await prefs.smart_notifications_enabled(profile.tier),
        smart_notifications_overridden=await prefs.smart_notifications_overridden(),
        theme=await prefs.theme(),
        onboarding_complete=await prefs.onboarding_complete(),
    )


@router.post("/schedule", response_model=DeliveryView)
async def schedule_notification(
    body: ScheduleRequest,
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
):
    now = scheduler.clock()
    job = NotificationJob(
        title=body.title, body=body.body, requested_at=now,
        priority=body.priority, payload=body.payload, topic=body.topic,
    )
    enabled = await auth.preferences.smart_notifications_enabled(profile.tier)
    delivery = await scheduler.schedule(
        job, battery_level=body.battery_level,
        smart_notifications_enabled=enabled, now=now,
    )
    return DeliveryView(
        job_id=job.job_id, topic=job.topic, kind=delivery.kind, at=delivery.at,
    )


@router.delete("/pending/{topic}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_pending(
    topic: str,
    profile: Profile = Depends(require_authenticated),
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
):
    if not scheduler.cancel(topic):
        raise ResourceNotFoundError("Pending notification", topic)


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
):
    return await _preferences_view(auth, profile)


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    body: NotificationPreferencesUpdate,
    profile: Profile = Depends(require_authenticated),
    auth: AuthSession = Depends(get_auth_session),
):
    prefs = auth.preferences
    if body.theme is not None:
        if not is_theme_available(profile.tier, body.theme):
            raise ProfileValidationError([
                f"Theme '{body.theme}' is not available on the {profile.tier.value} tier",
            ])
        await prefs.set_theme(body.theme)
    if body.smart_notifications_enabled is not None:
        await prefs.set_smart_notifications(body.smart_notifications_enabled)
    if body.onboarding_complete is not None:
        await prefs.set_onboarding_complete(body.onboarding_complete)
    return await _preferences_view(auth, profile)

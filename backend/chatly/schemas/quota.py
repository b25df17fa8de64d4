"""Quota Schemas — metering requests and usage reports.

Invariants:
    - char_count is never negative
    - limit/remaining are None where the tier is unlimited
"""

from pydantic import BaseModel, Field

from chatly.core.domain_types import QuotaError, Tier


class AnonymousPostRequest(BaseModel):
    char_count: int = Field(ge=0, le=100_000)


class MeteredUsage(BaseModel):
    used: int
    limit: int | None
    remaining: int | None


class AnonymousUsage(MeteredUsage):
    max_chars: int


class UsageView(BaseModel):
    tier: Tier
    messages: MeteredUsage
    anonymous_posts: AnonymousUsage
    groups: MeteredUsage


class QuotaOutcomeView(BaseModel):
    allowed: bool
    reason: QuotaError | None = None
    usage: UsageView

"""Pydantic request/response models for the Notifications API.

API schemas are separate from Protean commands (anti-corruption pattern).
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------
class RaiseEventRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=50, examples=["COMMENT"])
    resource_id: str | None = None
    actor_id: str | None = None
    recipient_ids: list[str] = Field(default_factory=list)
    title: str = Field(..., min_length=1, max_length=500)
    body: str | None = None
    link: str | None = None
    dedupe_key: str | None = None
    dedupe_window_minutes: int | None = Field(default=None, ge=0)
    notify_actor: bool = False
    payload: dict | None = None


class PushKeys(BaseModel):
    p256dh: str
    auth: str


class RegisterPushSubscriptionRequest(BaseModel):
    user_id: str
    endpoint: str = Field(..., min_length=1, max_length=2000)
    keys: PushKeys
    expires_at: datetime | None = None


class NotificationSelectionRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)
    all: bool = False


class FlushDigestsRequest(BaseModel):
    frequency: str | None = Field(default=None, examples=["Daily"])
    as_of: datetime | None = None


class PurgeRequest(BaseModel):
    older_than_days: int | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class DispatchResponse(BaseModel):
    event_type: str
    created: dict[str, str]
    deduplicated: list[str]
    muted: list[str] = []
    held: list[str]
    suppressed: list[str]
    queued: int
    rejected: int


class PreferencesResponse(BaseModel):
    preference_id: str | None = None
    user_id: str
    in_app_enabled: bool
    email_enabled: bool
    chat_enabled: bool
    sms_enabled: bool
    push_enabled: bool
    notify_on_new_letter: bool = True
    notify_on_comment: bool = True
    notify_on_status_change: bool = True
    notify_on_assignment: bool = True
    notify_on_deadline: bool = True
    notify_on_system: bool = True
    quiet_hours_enabled: bool
    quiet_hours_start: str
    quiet_hours_end: str
    quiet_mode: str
    timezone: str
    digest_frequency: str
    group_similar: bool
    show_previews: bool
    routing_matrix: dict


class SubscriptionResponse(BaseModel):
    subscription_id: str


class CountResponse(BaseModel):
    count: int


class NotificationResponse(BaseModel):
    notification_id: str
    user_id: str
    notification_type: str
    priority: str
    title: str
    body: str | None = None
    link: str | None = None
    resource_id: str | None = None
    actor_id: str | None = None
    delivery_mode: str
    channels: list[str]
    read: bool
    read_at: str | None = None
    created_at: str | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread: int
    page: int
    page_size: int
    pages: int


class DigestReportResponse(BaseModel):
    users: int
    items: int
    messages: int
    failed: int

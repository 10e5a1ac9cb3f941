"""FastAPI routes for the Notifications domain.

Thin adapters that translate HTTP requests into engine calls and domain
commands. No business logic — just schema→engine→response translation.
"""

from fastapi import APIRouter, Query
from notifications.api.schemas import (
    CountResponse,
    DigestReportResponse,
    DispatchResponse,
    FlushDigestsRequest,
    NotificationListResponse,
    NotificationSelectionRequest,
    PreferencesResponse,
    PurgeRequest,
    RaiseEventRequest,
    RegisterPushSubscriptionRequest,
    SubscriptionResponse,
)
from notifications.domain import notifications
from notifications.engine import get_engine
from notifications.notification.digest import ProcessDigests
from protean.utils.globals import current_domain

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.post("/events", status_code=202, response_model=DispatchResponse)
async def raise_event(body: RaiseEventRequest) -> DispatchResponse:
    """Raise a domain event. Never fails because of delivery problems."""
    report = get_engine().raise_event(body.model_dump())
    return DispatchResponse(
        event_type=report.event_type,
        created=report.created,
        deduplicated=report.deduplicated,
        held=report.held,
        suppressed=report.suppressed,
        queued=report.queued,
        rejected=report.rejected,
    )


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
@router.get("/preferences/{user_id}", response_model=PreferencesResponse)
async def get_preferences(user_id: str) -> PreferencesResponse:
    """Get a user's notification profile (defaults if none saved)."""
    return PreferencesResponse(**get_engine().get_preference_profile(user_id))


@router.patch("/preferences/{user_id}", response_model=PreferencesResponse)
async def update_preferences(user_id: str, patch: dict) -> PreferencesResponse:
    """Merge a partial update into the user's profile."""
    return PreferencesResponse(**get_engine().update_preference_profile(user_id, patch))


# ---------------------------------------------------------------------------
# Push subscriptions
# ---------------------------------------------------------------------------
@router.post("/push-subscriptions", status_code=201, response_model=SubscriptionResponse)
async def register_push_subscription(body: RegisterPushSubscriptionRequest) -> SubscriptionResponse:
    subscription_id = get_engine().register_push_subscription(
        user_id=body.user_id,
        endpoint=body.endpoint,
        keys=body.keys.model_dump(),
        expires_at=body.expires_at,
    )
    return SubscriptionResponse(subscription_id=subscription_id)


@router.delete("/push-subscriptions/{user_id}", response_model=CountResponse)
async def unregister_push_subscription(user_id: str, endpoint: str = Query(..., min_length=1)) -> CountResponse:
    return CountResponse(count=get_engine().unregister_push_subscription(user_id, endpoint))


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------
@router.get("/inbox/{user_id}", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str,
    read: bool | None = None,
    type: str | None = None,
    resource_id: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
) -> NotificationListResponse:
    """A page of the user's inbox, newest first. Page size is capped at 100."""
    page_result = get_engine().list_notifications(
        user_id,
        read=read,
        notification_type=type,
        resource_id=resource_id,
        page=page,
        page_size=page_size,
    )
    return NotificationListResponse(**page_result.to_dict())


@router.post("/inbox/{user_id}/read", response_model=CountResponse)
async def mark_read(user_id: str, body: NotificationSelectionRequest) -> CountResponse:
    return CountResponse(count=get_engine().mark_read(user_id, ids=body.ids, all=body.all))


@router.post("/inbox/{user_id}/delete", response_model=CountResponse)
async def delete_notifications(user_id: str, body: NotificationSelectionRequest) -> CountResponse:
    return CountResponse(count=get_engine().delete(user_id, ids=body.ids, all=body.all))


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
@router.post("/maintenance/flush-digests", response_model=DigestReportResponse)
async def flush_digests(body: FlushDigestsRequest) -> DigestReportResponse:
    """Flush pending digests. Intended for a scheduled job."""
    with notifications.domain_context():
        report = current_domain.process(
            ProcessDigests(frequency=body.frequency, as_of=body.as_of),
            asynchronous=False,
        )
    return DigestReportResponse(**report.to_dict())


@router.post("/maintenance/purge", response_model=CountResponse)
async def purge_notifications(body: PurgeRequest) -> CountResponse:
    """Retention sweep of read notifications."""
    return CountResponse(count=get_engine().purge_notifications(body.older_than_days))


@router.get("/maintenance/diagnostics")
async def channel_diagnostics() -> dict:
    """Channel availability and outcome counters for administrators."""
    return get_engine().channel_diagnostics()

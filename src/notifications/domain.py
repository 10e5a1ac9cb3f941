"""Notifications bounded context — notification dispatch and preference resolution.

Receives domain events raised by the correspondence tracker (letters,
comments, status changes, assignments, deadlines), decides per recipient
whether, on which channels, at what priority and when to deliver, and keeps
the in-app inbox as the authoritative record. Owns user notification
preferences and push subscriptions.
"""

import structlog
from protean.domain import Domain

notifications = Domain(name="notifications")

logger = structlog.get_logger(__name__)

"""Preference management command + handler — partial profile updates."""

import json

import structlog
from notifications.domain import notifications
from notifications.preference.preference import NotificationPreference
from protean.exceptions import ValidationError
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

logger = structlog.get_logger(__name__)


def find_preference(user_id):
    """Return the user's NotificationPreference, or None if they have none."""
    repo = current_domain.repository_for(NotificationPreference)
    prefs = repo._dao.query.filter(user_id=str(user_id)).all().items
    return prefs[0] if prefs else None


def load_snapshot(user_id):
    """Loader for the preference cache: snapshot or None."""
    preference = find_preference(user_id)
    return preference.snapshot() if preference else None


@notifications.command(part_of="NotificationPreference")
class UpdatePreferenceProfile:
    """Merge a partial patch into a user's notification profile."""

    user_id: Identifier(required=True)
    patch: Text(required=True)  # JSON object


@notifications.command_handler(part_of=NotificationPreference)
class ManagePreferencesHandler:
    @handle(UpdatePreferenceProfile)
    def update_profile(self, command: UpdatePreferenceProfile):
        try:
            patch = json.loads(command.patch)
        except json.JSONDecodeError:
            raise ValidationError({"patch": ["Patch must be valid JSON"]}) from None

        repo = current_domain.repository_for(NotificationPreference)
        preference = find_preference(command.user_id)
        if preference is None:
            preference = NotificationPreference.create_default(user_id=str(command.user_id))

        changed = preference.apply_patch(patch)
        repo.add(preference)

        _invalidate_cached_profile(str(command.user_id))

        logger.info(
            "Preference profile updated",
            user_id=str(command.user_id),
            changed_fields=changed,
        )
        return changed


def _invalidate_cached_profile(user_id):
    from notifications.engine import peek_engine

    engine = peek_engine()
    if engine is not None:
        engine.preference_cache.invalidate(user_id)

"""Cache key and bus topic conventions.

Readers and invalidators derive keys from these same functions.
"""

from uuid import UUID

KEY_PREFIX_MEETING = "meeting:"
KEY_PREFIX_PERMISSION = "has_perm:"
CHANNEL_PREFIX_MEETING_EVENTS = "events:meeting:"


def meeting_key(meeting_id: UUID) -> str:
    return f"{KEY_PREFIX_MEETING}{meeting_id}"


def meeting_increments_key(meeting_id: UUID) -> str:
    return f"{KEY_PREFIX_MEETING}{meeting_id}:increments"


def meeting_external_key(external_type: str, external_id: str) -> str:
    return f"{KEY_PREFIX_MEETING}external:{external_type}:{external_id}"


def has_permission_key(
    actor_id: UUID,
    org_id: UUID,
    resource_kind: str,
    resource_id: UUID | None,
    activity: str,
) -> str:
    resource = str(resource_id) if resource_id is not None else "nil"
    return f"{KEY_PREFIX_PERMISSION}{actor_id}:{org_id}:{resource_kind}:{resource}:{activity}"


def meeting_events_channel(meeting_id: UUID) -> str:
    return f"{CHANNEL_PREFIX_MEETING_EVENTS}{meeting_id}"

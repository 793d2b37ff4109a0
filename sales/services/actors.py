"""
Resolution of the acting profile passed into workflow operations.
"""
import uuid
from typing import Optional

from sales.models import Profile


def resolve_actor(actor_id) -> Optional[Profile]:
    """Load the acting profile, or None when the id is unknown or malformed."""
    if isinstance(actor_id, Profile):
        return actor_id
    try:
        actor_uuid = uuid.UUID(str(actor_id))
    except (TypeError, ValueError):
        return None
    return Profile.objects.filter(pk=actor_uuid).first()

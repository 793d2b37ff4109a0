"""
Actor authentication for the API.

Credentials are handled by the identity gateway in front of this
service; it forwards the authenticated profile id in a request header.
"""
import logging

from django.conf import settings
from rest_framework import authentication, exceptions

from sales.services.actors import resolve_actor

logger = logging.getLogger(__name__)


class ActorHeaderAuthentication(authentication.BaseAuthentication):
    """Resolve the ``X-Actor-Id`` header to a Profile."""

    def authenticate(self, request):
        actor_id = request.META.get(settings.ACTOR_HEADER)
        if not actor_id:
            return None

        profile = resolve_actor(actor_id)
        if profile is None:
            logger.warning(f"Unknown actor id in request header: {actor_id}")
            raise exceptions.AuthenticationFailed('Unknown actor.')
        return profile, None

    def authenticate_header(self, request):
        return 'X-Actor-Id'

"""
Django signals for chat presence.

Marks a user active when they log in and inactive when they log out.
Both the JWT token view (chat.views.LoginView / LogoutView) and Django's
session login send these signals.

Related files:
    - apps.py: Signal import in ready()
    - presence.py: PresenceTracker.set_active
"""

import logging

from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(user_logged_in)
def mark_user_active(sender, request, user, **kwargs):
    """Set the user active and broadcast presence.changed."""
    from chat.services import get_conversation_service

    result = get_conversation_service().set_presence(user.pk, True)
    if not result.success:
        logger.warning(f"Could not mark user {user.pk} active: {result.error}")


@receiver(user_logged_out)
def mark_user_inactive(sender, request, user, **kwargs):
    """Set the user inactive; their open conversation is kept."""
    if user is None or not user.is_authenticated:
        return

    from chat.services import get_conversation_service

    result = get_conversation_service().set_presence(user.pk, False)
    if not result.success:
        logger.warning(f"Could not mark user {user.pk} inactive: {result.error}")

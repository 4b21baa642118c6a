"""
Infrastructure endpoints that are not part of the chat domain.
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for Docker, Kubernetes probes and load balancers.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - channel_layer: "connected", "disconnected" or "not_configured"

    HTTP Status Codes:
        200: Database reachable (a channel layer outage only degrades)
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "channel_layer": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "channel_layer": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Realtime fan-out failing is degraded, not down: REST keeps working
    channel_layer = get_channel_layer()
    if channel_layer is None:
        health_status["channel_layer"] = "not_configured"
    else:
        try:
            async_to_sync(channel_layer.group_send)(
                "health_check", {"type": "health.ping"}
            )
            health_status["channel_layer"] = "connected"
        except Exception:
            logger.warning("Health check: channel layer unreachable", exc_info=True)
            health_status["channel_layer"] = "disconnected"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)

"""
URL configuration for the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Token endpoints
        token/                     - Obtain access/refresh pair (marks user active)
        token/refresh/             - Refresh access token
        logout/                    - Mark user inactive
    /api/v1/chat/                  - Chat endpoints
        messages/                  - Send message (POST)
        messages/{id}/             - Edit (PATCH) / delete (DELETE) message
        conversations/{user_id}/   - Conversation history with a user
        search/                    - Search own messages
        contacts/                  - Other users with unread counts and presence
        focus/                     - Open / close a conversation
        presence/                  - Set own active flag
        presence/status-message/   - Update own status message
    /ws/chat/                      - WebSocket (see chat.routing)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenRefreshView

from chat.views import LoginView, LogoutView
from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", LoginView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations, counters and presence"

"""
URL configuration for chat API.

URL Structure:
    Messages:
        /messages/                          POST
        /messages/{id}/                     PATCH, DELETE

    Conversations:
        /conversations/{user_id}/           GET
        /search/                            GET
        /contacts/                          GET

    Presence:
        /focus/                             POST
        /presence/                          POST
        /presence/status-message/           PUT

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import path

from chat.views import (
    ContactListView,
    ConversationHistoryView,
    FocusView,
    MessageCreateView,
    MessageDetailView,
    MessageSearchView,
    PresenceView,
    StatusMessageView,
)

app_name = "chat"

urlpatterns = [
    # Messages
    path("messages/", MessageCreateView.as_view(), name="message-create"),
    path("messages/<int:pk>/", MessageDetailView.as_view(), name="message-detail"),
    # Conversations
    path(
        "conversations/<int:user_id>/",
        ConversationHistoryView.as_view(),
        name="conversation-history",
    ),
    path("search/", MessageSearchView.as_view(), name="message-search"),
    path("contacts/", ContactListView.as_view(), name="contact-list"),
    # Presence
    path("focus/", FocusView.as_view(), name="focus"),
    path("presence/", PresenceView.as_view(), name="presence"),
    path(
        "presence/status-message/",
        StatusMessageView.as_view(),
        name="presence-status-message",
    ),
]

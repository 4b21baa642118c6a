"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures for the two sides of a conversation (plus a third user)
- API client helpers for JWT-authenticated requests
- A ConversationService wired to in-memory stores for database-free tests
- Publisher fixtures that record realtime events

Usage:
    def test_example(alice, bob, alice_client):
        response = alice_client.get(f"/api/v1/chat/conversations/{bob.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from chat.locks import KeyedLock
from chat.services import ConversationService
from chat.tests.factories import UserFactory
from chat.tests.fakes import (
    FakeClock,
    InMemoryCounterStore,
    InMemoryMessageStore,
    InMemoryPresenceStore,
    InMemoryUserDirectory,
    RecordingPublisher,
)

# Ids used by the in-memory directory
ALICE, BOB, CAROL = 1, 2, 3


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Create the user who usually sends."""
    return UserFactory(first_name="Alice", last_name="Archer")


@pytest.fixture
def bob(db):
    """Create the user who usually receives."""
    return UserFactory(first_name="Bob", last_name="Baker")


@pytest.fixture
def carol(db):
    """Create a third user for focus switching and privacy checks."""
    return UserFactory(first_name="Carol", last_name="Cook")


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client_factory():
    """Factory for API clients carrying a user's access token."""

    def make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return make_client


@pytest.fixture
def alice_client(alice, authenticated_client_factory):
    return authenticated_client_factory(alice)


@pytest.fixture
def bob_client(bob, authenticated_client_factory):
    return authenticated_client_factory(bob)


# =============================================================================
# Realtime Fixtures
# =============================================================================


@pytest.fixture
def publisher():
    """Publisher that records every event instead of sending it."""
    return RecordingPublisher()


@pytest.fixture
def recorded_events(monkeypatch):
    """
    Capture what the ORM-wired service publishes.

    Replaces the channel layer publisher built by get_conversation_service.
    """
    recorder = RecordingPublisher()
    monkeypatch.setattr(
        "chat.services.ChannelLayerPublisher", lambda *args, **kwargs: recorder
    )
    return recorder


# =============================================================================
# In-memory Service Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def counter_store():
    return InMemoryCounterStore()


@pytest.fixture
def presence_store():
    return InMemoryPresenceStore()


@pytest.fixture
def locks():
    return KeyedLock(timeout=2.0)


@pytest.fixture
def memory_service(
    message_store, counter_store, presence_store, publisher, locks, clock
):
    """
    ConversationService over in-memory stores with users 1, 2 and 3.

    Needs no database; the fake clock only moves when a test moves it.
    """
    return ConversationService(
        messages=message_store,
        counters=counter_store,
        presence=presence_store,
        users=InMemoryUserDirectory([ALICE, BOB, CAROL]),
        publisher=publisher,
        locks=locks,
        clock=clock,
    )

"""
Chat app for real-time direct messaging.

This app handles:
- Sending, editing and deleting direct messages
- Unread counters per (sender, receiver) pair
- Presence and the conversation each user has open
- WebSocket fan-out of every change

WebSocket Support:
    Uses Django Channels. See consumers.py for the handler and routing.py
    for the URL.

Usage:
    from chat.services import get_conversation_service

    service = get_conversation_service()
    result = service.send_message(sender.id, receiver.id, content="Hello!")
    if result.success:
        message = result.data
"""

"""
Realtime WebSocket app.

This app contains:
- A Channels consumer for `/ws/relay/` shared by fellows and coaches
- The in-process connection registry, message logs and roster publishing
- The bridge to the external assistant (chat-completion) service
"""

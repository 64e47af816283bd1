"""Authentication for REST calls and WebSocket upgrades.

Three kinds of evidence:
1. Bearer JWT (HS256, shared secret with the main site) for REST calls
2. Short-lived HMAC ticket for a single WebSocket handshake
3. Dev-only bridge: trusted Origin + numeric x-user-id query param
"""

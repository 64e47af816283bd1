"""Real-time layer — three WebSocket hubs in one process.

1. Chat hub: presence registry, typing, read receipts, direct messages
2. Likes hub: per-socket product subscriptions, live like counts
3. Analytics hub: dashboard sockets fed by the in-memory aggregator

Everything here is process-local; a second process has its own hubs.
"""

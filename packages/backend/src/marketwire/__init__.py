"""Marketwire — real-time engagement backend for the marketplace.

Direct chat with presence, live product-like counters and a live
analytics dashboard, all pushed over WebSockets next to a small REST API.
"""

__version__ = "0.1.0"

"""
Package: event_relay
Description: Webhook delivery and API admission control for the indexer API.

Turns indexed domain events into signed, retried HTTP callbacks to
subscriber endpoints, and gates the read API with per-identity
fixed-window rate limiting.
"""

__version__ = "0.3.0"

"""
Module: handlers
Description: Package initialization for API endpoint handlers.

This package contains FastAPI route handlers for the Event Relay API:
- webhooks: Subscription CRUD and delivery history endpoints

Handlers resolve the caller with require_identity and reach stores
through the Services bundle on the application state.
"""

__all__ = []

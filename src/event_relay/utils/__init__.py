"""
Module: utils
Description: Package initialization for utility functions.

This package contains shared helpers used throughout the Event Relay:
- logger: Structured logging configuration and helpers
- filters: Subscription filter evaluation
- metrics: Best-effort CloudWatch metrics
- telemetry: Best-effort background writes
"""

__all__ = []

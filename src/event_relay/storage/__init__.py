"""
Module: storage
Description: Package initialization for the persistence layer.

This package contains the storage interfaces and their implementations:
- base: Repository / ledger / key store interfaces
- memory: In-process implementations for tests and local runs
- dynamodb: DynamoDB implementations for production

All storage implementations follow async interfaces for consistency.
"""

__all__ = []

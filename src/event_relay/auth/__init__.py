"""
Module: auth
Description: Package initialization for authentication and admission control.

This package contains:
- api_key: API key generation, hashing and the stored key record
- dependencies: FastAPI dependency resolving the caller and applying
  the rate limit

Submodules are imported directly to keep storage free of API imports.
"""

__all__ = []

"""
API v1 package.

Contains versioned API routes for registration, sessions and password recovery.
"""

from src.api.v1.routes import router

__all__ = ["router"]

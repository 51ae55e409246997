"""FastAPI routers for API endpoints.

This package contains all route handlers organized by resource type.
Each router module defines endpoints for a specific domain (health, inference, providers, tools).
"""

from helium_server.routers import health, inference, providers, tools

__all__ = [
    "health",
    "inference",
    "providers",
    "tools",
]

"""REST API layer for BoxWatch.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by boxwatch.app bootstrap).
"""

from boxwatch.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]

"""HTTP API layer for diffwatch.

Exposes:
    create_app -- FastAPI application factory (health, readiness, status,
                  Prometheus metrics).
"""

from diffwatch.api.app import create_app

__all__ = ["create_app"]

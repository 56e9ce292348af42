"""
GRAPHVAULT v1.0 — API Dependencies.
Shared dependencies for FastAPI routes.
"""

from __future__ import annotations

from fastapi import Header, Request

from graphvault.engine import GraphVaultEngine


def get_engine(request: Request) -> GraphVaultEngine:
    """Inject the engine from app state."""
    return request.app.state.engine


def get_actor_id(x_actor_id: int = Header(..., ge=1, description="Pre-authorized acting user id")) -> int:
    """Acting identity, resolved and authorized upstream."""
    return x_actor_id

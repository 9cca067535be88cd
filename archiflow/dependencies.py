"""
FastAPI dependency providers. Everything is read from ``app.state`` so
tests can build isolated apps with their own collaborators.
"""

from fastapi import Depends, Header, Request

from .auth import Principal
from .config import Settings
from .errors import UpstreamUnavailable
from .gate import AccessGate
from .services.database import Database
from .services.openrouter import OpenRouterClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gate(request: Request) -> AccessGate:
    return request.app.state.gate


def get_database(request: Request) -> Database:
    database = request.app.state.database
    if database is None:
        raise UpstreamUnavailable("database", "Database not configured")
    return database


def get_ai_client(request: Request) -> OpenRouterClient:
    client = request.app.state.ai_client
    if client is None or not client.configured:
        raise UpstreamUnavailable("ai provider", "API key not configured")
    return client


async def get_current_user(
    authorization: str | None = Header(default=None),
    gate: AccessGate = Depends(get_gate),
) -> Principal:
    """Verify the Firebase ID token from the Authorization header"""
    return await gate.authenticate(authorization)

"""Repository layer for Vubly."""

from .session_repository import (
    SessionRepository,
    RedisSessionRepository,
    InMemorySessionRepository,
    encode_session,
    decode_session,
    generate_session_id,
)

__all__ = [
    "SessionRepository",
    "RedisSessionRepository",
    "InMemorySessionRepository",
    "encode_session",
    "decode_session",
    "generate_session_id",
]

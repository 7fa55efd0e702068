"""Repository for job sessions: a TTL-backed key/value record per job."""

import asyncio
import base64
import json
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from redis.asyncio import Redis

from ..models import BINARY_FIELDS, JobSession, VideoInfo
from ..models.session import utcnow
from ..utils.logging import get_logger

logger = get_logger("session_repository")


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def encode_session(session: JobSession) -> str:
    """Serialize a session to JSON, base64-encoding the binary fields."""
    data = session.to_dict()
    for name in BINARY_FIELDS:
        value = data.get(name)
        data[name] = base64.b64encode(value).decode("ascii") if value is not None else None
    return json.dumps(data)


def decode_session(payload: Any) -> JobSession:
    """Inverse of :func:`encode_session`."""
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    data: Dict[str, Any] = json.loads(payload)
    for name in BINARY_FIELDS:
        value = data.get(name)
        data[name] = base64.b64decode(value) if value is not None else None
    return JobSession.from_dict(data)


class SessionRepository(ABC):
    """
    Point-lookup store for job sessions.

    Every write replaces the whole record and refreshes its expiry. Partial
    updates are read-modify-write, so concurrent writers to one session are
    last-write-wins.
    """

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl_seconds = ttl_seconds

    async def create(self, video_id: str, video_info: Optional[VideoInfo] = None, **fields: Any) -> JobSession:
        """Create a new ``processing`` session and persist it."""
        session = JobSession(
            session_id=generate_session_id(),
            video_id=video_id,
            video_info=video_info or VideoInfo(video_id=video_id),
        ).merged(**fields)
        await self.save(session)
        logger.info(f"Created session {session.session_id} for video {video_id}")
        return session

    async def save(self, session: JobSession) -> JobSession:
        """
        Persist ``session`` under its own id, replacing any existing record.

        Raises:
            InvalidSessionStateError: if the session breaks an invariant
        """
        session.validate()
        await self._write(session)
        return session

    async def get(self, session_id: str) -> Optional[JobSession]:
        """Return the stored session or None when missing or expired."""
        return await self._read(session_id)

    async def update(self, session_id: str, **fields: Any) -> Optional[JobSession]:
        """
        Merge ``fields`` into the stored session.

        Returns:
            The updated session, or None if the session no longer exists

        Raises:
            InvalidSessionStateError: if the merged record breaks an invariant;
                nothing is written in that case
        """
        current = await self._read(session_id)
        if current is None:
            logger.warning(f"Cannot update missing session {session_id}")
            return None

        updated = current.merged(**fields)
        updated.validate()
        await self._write(updated)
        logger.debug(f"Updated session {session_id}: {', '.join(sorted(fields))}")
        return updated

    async def delete(self, session_id: str) -> bool:
        """Delete a session. Returns True if it existed."""
        deleted = await self._delete(session_id)
        if deleted:
            logger.info(f"Deleted session {session_id}")
        return deleted

    async def start(self) -> None:
        """Start any background work the backend needs."""

    async def close(self) -> None:
        """Release backend resources."""

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def _read(self, session_id: str) -> Optional[JobSession]:
        ...

    @abstractmethod
    async def _write(self, session: JobSession) -> None:
        ...

    @abstractmethod
    async def _delete(self, session_id: str) -> bool:
        ...


class RedisSessionRepository(SessionRepository):
    """Sessions stored as JSON strings in Redis with native key expiry."""

    def __init__(self, client: Redis, ttl_seconds: int = 3600, key_prefix: str = "vubly:session:"):
        super().__init__(ttl_seconds)
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 3600, key_prefix: str = "vubly:session:") -> "RedisSessionRepository":
        return cls(Redis.from_url(url), ttl_seconds=ttl_seconds, key_prefix=key_prefix)

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def _read(self, session_id: str) -> Optional[JobSession]:
        payload = await self.client.get(self._key(session_id))
        if payload is None:
            return None
        return decode_session(payload)

    async def _write(self, session: JobSession) -> None:
        await self.client.set(self._key(session.session_id), encode_session(session), ex=self.ttl_seconds)

    async def _delete(self, session_id: str) -> bool:
        return bool(await self.client.delete(self._key(session_id)))

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()


@dataclass
class _Entry:
    payload: str
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return utcnow() >= self.expires_at


class InMemorySessionRepository(SessionRepository):
    """
    Process-local session store.

    Records are kept in their encoded form so reads return independent copies.
    Expired entries are hidden on read and removed by a periodic sweep.
    """

    def __init__(self, ttl_seconds: int = 3600, sweep_interval: float = 60):
        super().__init__(ttl_seconds)
        self.sweep_interval = sweep_interval
        self._entries: Dict[str, _Entry] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    async def _read(self, session_id: str) -> Optional[JobSession]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if entry.is_expired:
            self._entries.pop(session_id, None)
            return None
        return decode_session(entry.payload)

    async def _write(self, session: JobSession) -> None:
        self._entries[session.session_id] = _Entry(
            payload=encode_session(session),
            expires_at=utcnow() + timedelta(seconds=self.ttl_seconds),
        )

    async def _delete(self, session_id: str) -> bool:
        return self._entries.pop(session_id, None) is not None

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        expired = [key for key, entry in self._entries.items() if entry.is_expired]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)

    async def _periodic_sweep(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    async def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._periodic_sweep())

    async def close(self) -> None:
        if self._sweep_task and not self._sweep_task.done():
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
        self._sweep_task = None

    def __len__(self) -> int:
        return len(self._entries)

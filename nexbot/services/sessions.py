import asyncio
import logging
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from nexbot.config.settings import SESSION_IDLE_TTL, SESSION_MAX_USERS, SESSION_SERIALIZE
from nexbot.models.session import UserSession

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory conversation sessions keyed by credential or client host.

    Sessions are created lazily by ``get``. The store evicts the least recently
    used session once ``max_users`` is exceeded and, when ``idle_ttl`` is set,
    drops sessions that have been idle for longer than that many seconds.

    Requests for the same key are not serialized unless ``serialize`` is set;
    without it two in-flight messages from one user race on the session and
    the last writer wins.
    """

    def __init__(
        self,
        max_users: int = SESSION_MAX_USERS,
        idle_ttl: float = SESSION_IDLE_TTL,
        serialize: bool = SESSION_SERIALIZE,
    ):
        self.max_users = max_users
        self.idle_ttl = idle_ttl
        self.serialize = serialize
        self._sessions: "OrderedDict[str, UserSession]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        return key in self._sessions

    def get(self, key: str) -> UserSession:
        self._expire()
        session = self._sessions.get(key)
        if session is None:
            session = UserSession()
            self._sessions[key] = session
            logger.debug(f"Created session for {key[:12]}")
            self._trim()
        else:
            self._sessions.move_to_end(key)
        session.last_seen = time.monotonic()
        return session

    def upsert(self, key: str, session: UserSession) -> None:
        session.last_seen = time.monotonic()
        self._sessions[key] = session
        self._sessions.move_to_end(key)
        self._trim()

    def evict(self, key: str) -> Optional[UserSession]:
        self._locks.pop(key, None)
        return self._sessions.pop(key, None)

    @asynccontextmanager
    async def guard(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key lock when serialization is enabled, otherwise a no-op."""
        if not self.serialize:
            yield
            return
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            yield

    def _trim(self) -> None:
        while self.max_users and len(self._sessions) > self.max_users:
            key, _ = self._sessions.popitem(last=False)
            self._locks.pop(key, None)
            logger.info(f"Evicted least recently used session {key[:12]}")

    def _expire(self) -> None:
        if not self.idle_ttl:
            return
        cutoff = time.monotonic() - self.idle_ttl
        while self._sessions:
            key, oldest = next(iter(self._sessions.items()))
            if oldest.last_seen >= cutoff:
                break
            self._sessions.popitem(last=False)
            self._locks.pop(key, None)
            logger.info(f"Expired idle session {key[:12]}")

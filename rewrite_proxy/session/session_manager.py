from abc import ABC, abstractmethod
import logging
import time
from typing import Callable

from rewrite_proxy.session.cookie_jar import CookieJar
from rewrite_proxy.vars import SESSION_IDLE_TIMEOUT, SESSION_MANAGER

logger = logging.getLogger("uvicorn.error")


class SessionManagerBase(ABC):
    # Whether callers need a proxy-owned cookie to be told apart
    per_client = True

    @abstractmethod
    def get_or_create(self, session_id: str | None) -> CookieJar:
        pass


def session_manager(name: str = SESSION_MANAGER) -> SessionManagerBase:
    if name == "InMemorySessionManager":
        return InMemorySessionManager()
    cls = globals().get(name)
    if isinstance(cls, type) and issubclass(cls, SessionManagerBase):
        return cls()
    else:
        raise ValueError(f"Unknown session manager type: {name}")


class SharedSessionManager(SessionManagerBase):
    """One cookie jar for every caller of the process."""

    per_client = False

    def __init__(self):
        self._jar = CookieJar()

    def get_or_create(self, session_id: str | None) -> CookieJar:
        return self._jar


class InMemorySessionManager(SessionManagerBase):
    """
    Cookie jars keyed by browser session id.

    A jar is created the first time its id is seen and dropped once it has not been
    touched for ``idle_timeout`` seconds. Expired jars are swept whenever the manager
    is accessed.
    """

    def __init__(
        self,
        idle_timeout: float = SESSION_IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, tuple[CookieJar, float]] = {}

    def _evict_idle(self, now: float) -> None:
        expired = [
            sid
            for sid, (_, last_seen) in self._sessions.items()
            if now - last_seen > self.idle_timeout
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"[Session] Evicted {len(expired)} idle session(s)")

    def get_or_create(self, session_id: str | None) -> CookieJar:
        if not session_id:
            raise ValueError("A session id is required")
        now = self._clock()
        self._evict_idle(now)
        entry = self._sessions.get(session_id)
        jar = entry[0] if entry else CookieJar()
        if entry is None:
            logger.debug(f"[Session] Created cookie jar for session {session_id[:8]}")
        self._sessions[session_id] = (jar, now)
        return jar

    def __len__(self) -> int:
        return len(self._sessions)

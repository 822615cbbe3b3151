from .cookie_jar import CookieJar
from .session_manager import (
    SessionManagerBase,
    SharedSessionManager,
    InMemorySessionManager,
    session_manager,
)
from .session_token import new_session_id, sign_session_id, verify_session_token

__all__ = [
    "CookieJar",
    "SessionManagerBase",
    "SharedSessionManager",
    "InMemorySessionManager",
    "session_manager",
    "new_session_id",
    "sign_session_id",
    "verify_session_token",
]

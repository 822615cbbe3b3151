import logging
import uuid
from typing import Optional

import jwt

from rewrite_proxy.vars import SESSION_SECRET

logger = logging.getLogger("uvicorn.error")

_ALGORITHM = "HS256"


def new_session_id() -> str:
    return uuid.uuid4().hex


def sign_session_id(session_id: str, secret: str = SESSION_SECRET) -> str:
    """Wrap a browser session id in a signed token for the proxy-owned cookie."""
    return jwt.encode({"sid": session_id}, secret, algorithm=_ALGORITHM)


def verify_session_token(
    token: Optional[str], secret: str = SESSION_SECRET
) -> Optional[str]:
    """
    Return the session id carried by ``token``, or None when the token is missing,
    malformed or signed with another secret.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except jwt.exceptions.InvalidTokenError as e:
        logger.info(f"[Session] Rejecting session token: {e}")
        return None
    sid = payload.get("sid")
    if not isinstance(sid, str) or not sid:
        return None
    return sid

import logging
from typing import Iterable

logger = logging.getLogger("uvicorn.error")


class CookieJar:
    """
    Upstream cookies collected on behalf of one caller.

    Only the ``name=value`` pair of each ``Set-Cookie`` header is kept. Attributes
    such as ``Path``, ``Expires`` or ``Max-Age`` are dropped, so entries never expire
    on their own. A cookie observed again under the same name replaces the old entry
    and moves to the end of the insertion order.
    """

    def __init__(self):
        self._cookies: dict[str, str] = {}

    def record(self, set_cookie_headers: Iterable[str]) -> None:
        for header in set_cookie_headers:
            if not header:
                continue
            pair = header.split(";", 1)[0].strip()
            name = pair.split("=", 1)[0]
            if not name:
                logger.debug(f"[Session] Ignoring nameless Set-Cookie: {header}")
                continue
            self._cookies.pop(name, None)
            self._cookies[name] = pair

    def serialize(self) -> str:
        return "; ".join(self._cookies.values())

    def get(self, name: str) -> str | None:
        """Return the stored ``name=value`` pair for ``name``."""
        return self._cookies.get(name)

    def names(self) -> list[str]:
        return list(self._cookies)

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

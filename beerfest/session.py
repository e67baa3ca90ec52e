"""
Who the current visitor is: event, attendee, host flag and secret token.

The session lives under a single key in whatever string mapping the caller
hands over (a cookie jar in the web app, a plain dict in tests). Saving or
clearing it notifies subscribers, which is how the web layer keeps the
response cookie in sync.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import asdict, dataclass
from typing import Callable, List, MutableMapping, Optional

logger = logging.getLogger(__name__)

SESSION_KEY = "beerfest.session.v1"

Listener = Callable[[Optional["CurrentSession"]], None]


@dataclass(frozen=True)
class CurrentSession:
    event_id: str
    attendee_id: str
    attendee_name: str
    is_host: bool
    token: str
    event_code: str = ""
    event_name: str = ""


def encode_session(session: CurrentSession) -> str:
    raw = json.dumps(asdict(session), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_session(value: str) -> Optional[CurrentSession]:
    if not value:
        return None
    try:
        raw = base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
        return CurrentSession(**json.loads(raw))
    except (binascii.Error, ValueError, TypeError):
        return None


class SessionContext:
    def __init__(self, storage: Optional[MutableMapping[str, str]] = None):
        self.storage = storage if storage is not None else {}
        self._listeners: List[Listener] = []

    def load(self) -> Optional[CurrentSession]:
        return decode_session(self.storage.get(SESSION_KEY, ""))

    def save(self, session: CurrentSession) -> None:
        self.storage[SESSION_KEY] = encode_session(session)
        self._notify(session)

    def clear(self) -> None:
        self.storage.pop(SESSION_KEY, None)
        self._notify(None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, session: Optional[CurrentSession]) -> None:
        logger.debug("Session %s", "saved" if session else "cleared")
        for listener in list(self._listeners):
            listener(session)

"""Server-side sessions.

The browser cookie only carries an opaque token. The identity and role live
here, so they are never re-read from the database while the session is alive:
a role change made by an admin applies on the user's next login.
"""

import secrets
import threading
import time
from dataclasses import dataclass

from flask_login import UserMixin


@dataclass(frozen=True)
class Identity:
    id: int
    username: str
    role: str


class SessionUser(UserMixin):
    """What Flask-Login exposes as ``current_user`` for a live session."""

    def __init__(self, token, identity):
        self.token = token
        self.id = identity.id
        self.username = identity.username
        self.role = identity.role

    def get_id(self):
        return self.token


class SessionStore:
    """In-memory token -> Identity map with expiry."""

    def __init__(self, lifetime_seconds, clock=time.monotonic):
        self.lifetime = lifetime_seconds
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def create(self, identity):
        # Sessions that are never looked up again are dropped here
        self.purge_expired()
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._entries[token] = (identity, self._clock() + self.lifetime)
        return token

    def get(self, token):
        if not token:
            return None
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            identity, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[token]
                return None
            return identity

    def delete(self, token):
        with self._lock:
            self._entries.pop(token, None)

    def purge_expired(self):
        now = self._clock()
        with self._lock:
            expired = [t for t, (_, exp) in self._entries.items() if exp <= now]
            for token in expired:
                del self._entries[token]
        return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._entries)

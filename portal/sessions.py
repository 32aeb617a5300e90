"""
In-memory session tokens.

Sessions live only as long as the process: a restart logs everybody out.
Each token expires a fixed time after creation; resolving it does not extend it.
"""
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 12 * 60 * 60


@dataclass(frozen=True)
class Identity:
    id: str
    name: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class SessionStore:
    def __init__(self, ttl: float = SESSION_TTL_SECONDS, clock: Callable[[], float] = time.time,
                 purge_interval: float = 300.0):
        self.ttl = ttl
        self._clock = clock
        self._purge_interval = purge_interval
        self._sessions: Dict[str, Tuple[Identity, float]] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._reaper: Optional[threading.Thread] = None

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def create(self, identity: Identity) -> str:
        token = secrets.token_hex(32)
        expires_at = self._clock() + self.ttl
        with self._lock:
            self._sessions[token] = (identity, expires_at)
        return token

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            identity, expires_at = entry
            if self._clock() >= expires_at:
                del self._sessions[token]
                return None
            return identity

    def revoke(self, token: Optional[str]) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def revoke_identity(self, identity_id: str) -> int:
        """Drop every session held by one identity and return how many were removed."""
        with self._lock:
            tokens = [t for t, (identity, _) in self._sessions.items() if identity.id == identity_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def purge(self) -> int:
        """Drop every expired session and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, (_, expires_at) in self._sessions.items() if now >= expires_at]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def _reaper_runloop(self):
        while not self._stopped.wait(self._purge_interval):
            removed = self.purge()
            if removed:
                logger.info("Purged %s expired sessions", removed)

    def start(self):
        if self._reaper is None:
            self._stopped.clear()
            self._reaper = threading.Thread(target=self._reaper_runloop, name="session-reaper", daemon=True)
            self._reaper.start()

    def stop(self):
        self._stopped.set()
        if self._reaper is not None:
            self._reaper.join(timeout=5)
            self._reaper = None
        with self._lock:
            self._sessions.clear()

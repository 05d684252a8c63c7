from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Dict, Optional

from loguru import logger

from services.discovery import DiscoveryPoolManager


class SessionManager:
    """In-memory registry of discovery sessions, one pool manager each."""

    def __init__(
        self,
        factory: Callable[[], DiscoveryPoolManager],
        ttl_sec: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._factory = factory
        self._sessions: Dict[str, DiscoveryPoolManager] = {}
        self._last_access: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.ttl_sec = ttl_sec

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self) -> str:
        manager = self._factory()
        session_id = uuid.uuid4().hex
        with self._lock:
            self._cleanup()
            self._sessions[session_id] = manager
            self._last_access[session_id] = self._clock()
        logger.debug("Created discovery session {}", session_id)
        return session_id

    def get(self, session_id: str) -> Optional[DiscoveryPoolManager]:
        if not session_id:
            return None
        with self._lock:
            self._cleanup()
            manager = self._sessions.get(session_id)
            if manager is not None:
                self._last_access[session_id] = self._clock()
            return manager

    def drop(self, session_id: str) -> bool:
        with self._lock:
            self._last_access.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = self._clock()
        expired = [sid for sid, last in self._last_access.items() if now - last > self.ttl_sec]
        for sid in expired:
            del self._sessions[sid]
            del self._last_access[sid]
        if expired:
            logger.debug("Expired {} idle discovery sessions", len(expired))

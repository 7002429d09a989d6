"""Connected-session registry for real-time events.

The transport (websocket server, socket gateway) registers a sender per
connected user. emit() is best-effort: unknown users and sender errors are
logged, never raised.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context

logger = get_logger(__name__)

Sender = Callable[[str, dict[str, Any]], None]


class SessionRegistry:
    """Maps user id -> sender callable for that user's live session."""

    def __init__(self) -> None:
        self._sessions: dict[str, Sender] = {}
        self._lock = threading.Lock()

    def connect(self, user_id: str, sender: Sender) -> None:
        with self._lock:
            self._sessions[user_id] = sender

    def disconnect(self, user_id: str) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)

    def is_connected(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._sessions

    def emit(self, user_id: str, event: str, payload: dict[str, Any]) -> bool:
        """Send event to user_id's session if connected.

        Returns:
            True if a sender accepted the event.
        """
        with self._lock:
            sender = self._sessions.get(user_id)

        if sender is None:
            logger.info(
                "realtime emit skipped: user not connected",
                extra={"extra_fields": safe_log_context(user_id=user_id, event=event)},
            )
            return False

        try:
            sender(event, payload)
        except Exception as e:
            logger.warning(
                "realtime emit failed",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id, event=event, error_type=type(e).__name__
                    )
                },
            )
            return False
        return True


# Module-level registry (singleton)
_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    """Get session registry (allows override in tests)."""
    return _registry

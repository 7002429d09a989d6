"""Notification dispatcher - inbox rows plus best-effort push delivery.

Called strictly after the triggering transaction committed. Nothing here
raises to the caller: storage and push failures are logged and dropped.
"""

from __future__ import annotations

from dataclasses import dataclass

import psycopg2
import requests

from hubcare.infra.db import txn
from hubcare.infra.repositories.notifications_repository import insert_notification
from hubcare.observability.correlation import CORRELATION_ID_HEADER, get_correlation_id
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context
from hubcare.settings import get_settings

logger = get_logger(__name__)

PUSH_TIMEOUT_SECONDS = 5


@dataclass(frozen=True)
class Recipient:
    """The slice of a user record the dispatcher needs."""

    id: str
    name: str | None = None
    device_token: str | None = None

    @classmethod
    def from_user(cls, user: dict) -> Recipient:
        return cls(
            id=user["id"],
            name=user.get("name"),
            device_token=user.get("device_token"),
        )


@dataclass(frozen=True)
class Notification:
    recipient: Recipient
    title: str
    message: str
    type: str = "BOOKING"
    booking_id: str | None = None


class NotificationDispatcher:
    """Stores each notification in user_notifications and pushes it.

    Push is skipped when no gateway is configured or the recipient has no
    device token.
    """

    def __init__(
        self,
        gateway_url: str | None = None,
        api_key: str | None = None,
        timeout: int = PUSH_TIMEOUT_SECONDS,
    ) -> None:
        self._gateway_url = gateway_url
        self._api_key = api_key
        self._timeout = timeout

    def _gateway(self) -> tuple[str | None, str | None]:
        if self._gateway_url:
            return self._gateway_url, self._api_key
        settings = get_settings()
        return settings.push_gateway_url, settings.push_api_key

    def notify(
        self,
        recipient: Recipient | None,
        title: str,
        message: str,
        type: str = "BOOKING",
        *,
        booking_id: str | None = None,
    ) -> bool:
        """Fire-and-forget delivery to one recipient.

        Returns:
            True if the inbox row was stored (push outcome is not reflected).
        """
        if recipient is None:
            logger.warning(
                "notification skipped: no recipient",
                extra={"extra_fields": safe_log_context(title=title, booking_id=booking_id)},
            )
            return False

        stored = self._store(recipient, title, message, type, booking_id)
        self._push(recipient, title, message, type, booking_id)
        return stored

    def notify_many(self, notifications: list[Notification]) -> int:
        """Deliver a batch; one failing recipient never blocks the rest.

        Returns:
            Number of inbox rows stored.
        """
        stored = 0
        for n in notifications:
            if self.notify(n.recipient, n.title, n.message, n.type, booking_id=n.booking_id):
                stored += 1
        return stored

    def _store(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        kind: str,
        booking_id: str | None,
    ) -> bool:
        try:
            with txn() as cur:
                insert_notification(
                    cur,
                    user_id=recipient.id,
                    title=title,
                    message=message,
                    type=kind,
                    booking_id=booking_id,
                )
            return True
        except (psycopg2.Error, RuntimeError) as e:
            logger.warning(
                "notification store failed",
                extra={
                    "extra_fields": safe_log_context(
                        recipient_id=recipient.id,
                        booking_id=booking_id,
                        error_type=type(e).__name__,
                    )
                },
            )
            return False

    def _push(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        kind: str,
        booking_id: str | None,
    ) -> bool:
        url, api_key = self._gateway()
        if not url or not recipient.device_token:
            logger.info(
                "push skipped",
                extra={
                    "extra_fields": safe_log_context(
                        recipient_id=recipient.id,
                        gateway_configured=bool(url),
                        has_device_token=bool(recipient.device_token),
                    )
                },
            )
            return False

        headers = {
            "Content-Type": "application/json",
            CORRELATION_ID_HEADER: get_correlation_id(),
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        payload = {
            "token": recipient.device_token,
            "title": title,
            "body": message,
            "data": {"type": kind, "bookingId": booking_id or ""},
        }

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self._timeout)
            response.raise_for_status()
            logger.info(
                "push sent",
                extra={"extra_fields": safe_log_context(recipient_id=recipient.id, booking_id=booking_id)},
            )
            return True
        except requests.RequestException as e:
            logger.warning(
                "push failed",
                extra={
                    "extra_fields": safe_log_context(
                        recipient_id=recipient.id,
                        booking_id=booking_id,
                        error_type=type(e).__name__,
                    )
                },
            )
            return False

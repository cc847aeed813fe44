# backend/agenda/services/notification_service.py
"""
Fire-and-forget notifications for booking events.

Delivery itself belongs to an external service. This module only hands an
event to a provider and guarantees that a delivery failure never reaches the
caller: bookings and status changes are already committed by the time a
notification is sent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from ..core.config import settings
from ..core.request_context import REQUEST_ID_HEADER, get_request_id
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class NotificationDeliveryError(RuntimeError):
    """Raised by providers when the downstream service rejects an event."""


@dataclass(frozen=True)
class NotificationEvent:
    user_id: str
    event: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "event": self.event,
            "payload": self.payload,
            "occurredAt": self.occurred_at,
        }


class NotificationProvider(Protocol):
    def send(self, notification: NotificationEvent) -> None: ...


class LoggingNotificationProvider:
    """Default provider: records the event in the application log."""

    def send(self, notification: NotificationEvent) -> None:
        logger.info(
            "notification_emitted",
            extra={
                "user_id": notification.user_id,
                "event": notification.event,
                "payload": notification.payload,
            },
        )


class WebhookNotificationProvider:
    """POSTs each event as JSON to a configured URL."""

    def __init__(self, url: str, timeout: float = 5.0):
        self._url = url
        self._timeout = timeout

    def send(self, notification: NotificationEvent) -> None:
        headers = {"Content-Type": "application/json"}
        request_id = get_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(self._url, json=notification.to_dict(), headers=headers)
        except httpx.TransportError as exc:
            raise NotificationDeliveryError(f"Notification endpoint unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise NotificationDeliveryError(
                f"Notification endpoint returned {response.status_code}: {response.text[:200]}"
            )


def build_default_provider() -> NotificationProvider:
    if settings.notification_webhook_url:
        return WebhookNotificationProvider(
            settings.notification_webhook_url, timeout=settings.notification_timeout_seconds
        )
    return LoggingNotificationProvider()


class NotificationService:
    """Dispatch booking events without ever failing the caller."""

    def __init__(self, provider: Optional[NotificationProvider] = None):
        self.provider = provider or build_default_provider()

    def notify(self, user_id: str, event: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Send one event. Returns False when delivery failed."""
        notification = NotificationEvent(user_id=user_id, event=event, payload=payload or {})
        try:
            self.provider.send(notification)
        except Exception as exc:
            prometheus_metrics.record_notification(event, "failed")
            logger.warning(
                "notification_failed",
                extra={
                    "user_id": user_id,
                    "event": event,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False
        prometheus_metrics.record_notification(event, "sent")
        return True

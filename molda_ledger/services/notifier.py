"""
Outbound notifications (verification, login code and welcome messages).

Rendering and delivery belong to an external mail service; this module only
hands it a template kind and a payload. The webhook variant POSTs JSON to
NOTIFIER_WEBHOOK_URL, the logging variant just records the message.
"""
from typing import Any, Dict, Optional
from typing_extensions import Protocol
from uuid import uuid4
import json

import requests

from molda_ledger.config import get_settings
from molda_ledger.db.core import NotificationError
from molda_ledger.logging_config import get_logger

logger = get_logger(__name__)

VERIFY_EMAIL = "verify_email"
WELCOME = "welcome"
LOGIN_OTP = "login_otp"


class Notifier(Protocol):
    def send(self, address: str, template_kind: str, payload: Dict[str, Any]) -> str:
        """Deliver a message and return a delivery id."""
        ...


class LoggingNotifier:
    """Writes notifications to the log instead of delivering them."""

    def send(self, address: str, template_kind: str, payload: Dict[str, Any]) -> str:
        delivery_id = uuid4().hex
        logger.info(f"Notification {delivery_id} ({template_kind}) to {address}: {json.dumps(payload, default=str)}")
        return delivery_id


class WebhookNotifier:
    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, address: str, template_kind: str, payload: Dict[str, Any]) -> str:
        body = {
            "to": address,
            "template": template_kind,
            "payload": payload,
        }
        try:
            json_data = json.dumps(body, default=str)
            response = self.session.post(
                self.url,
                data=json_data,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.error(f"Notifier returned HTTP {e.response.status_code} for {template_kind} to {address}")
            raise NotificationError(f"Notification service rejected the message: HTTP {e.response.status_code}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Could not reach notifier for {template_kind} to {address}: {e}")
            raise NotificationError("Notification service unavailable") from e

        delivery_id = None
        if response.text:
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict):
                delivery_id = data.get("id")
        return delivery_id or uuid4().hex


def get_notifier() -> Notifier:
    """The webhook notifier when a URL is configured, else the logging one"""
    settings = get_settings()
    if settings.notifier_webhook_url:
        return WebhookNotifier(settings.notifier_webhook_url, timeout=settings.notifier_timeout_secs)
    return LoggingNotifier()


def notify_quietly(notifier: Notifier, address: str, template_kind: str, payload: Dict[str, Any]) -> Optional[str]:
    """Send a notification whose failure must not undo the caller's work"""
    try:
        return notifier.send(address, template_kind, payload)
    except NotificationError as e:
        logger.error(f"Dropped {template_kind} notification to {address}: {e}")
        return None

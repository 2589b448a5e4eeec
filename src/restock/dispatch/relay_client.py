"""HTTP client for the outbound email relay.

``send`` never raises: every failure comes back as an unsuccessful
``SendEmailResponse`` with a human-readable message.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from restock.config import Config
from restock.io.validators import is_valid_email
from restock.utils.errors import NETWORK_ERROR_MESSAGE

logger = logging.getLogger(__name__)

# Error code for a relay that could not be reached at all
NETWORK_ERROR_CODE = "NETWORK_ERROR"


@dataclass
class SendEmailRequest:
    to: str = ""
    reply_to: str = ""
    subject: str = ""
    text: str = ""
    items: list[dict] = field(default_factory=list)
    store_name: Optional[str] = None

    def to_payload(self) -> dict:
        payload = {
            "to": self.to,
            "replyTo": self.reply_to,
            "subject": self.subject,
            "text": self.text,
        }
        if self.items:
            payload["items"] = list(self.items)
        if self.store_name:
            payload["storeName"] = self.store_name
        return payload


@dataclass
class SendEmailResponse:
    success: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    message_id: Optional[str] = None


def _failure(message: str, error: str) -> SendEmailResponse:
    return SendEmailResponse(success=False, message=message, error=error)


class EmailRelayClient:
    """Posts one order email per call to the relay endpoint."""

    def __init__(self, base_url: str = None, timeout: float = None,
                 device_id: str = None, client: httpx.Client = None):
        self.base_url = base_url or Config.SEND_EMAIL_API_URL
        self.device_id = device_id
        self._http = client or httpx.Client(
            timeout=httpx.Timeout(
                timeout if timeout is not None else Config.HTTP_TIMEOUT
            ),
        )

    def close(self):
        self._http.close()

    def send(self, request: SendEmailRequest) -> SendEmailResponse:
        if not is_valid_email(request.to):
            return _failure("Invalid supplier email format", "INVALID_EMAIL")
        if not is_valid_email(request.reply_to):
            return _failure("Invalid reply-to email format", "INVALID_REPLY_TO")

        payload = request.to_payload()
        payload["deviceId"] = self.device_id or Config.get_device_id()

        try:
            response = self._http.post(self.base_url, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Email relay unreachable: {e}")
            return _failure(NETWORK_ERROR_MESSAGE, NETWORK_ERROR_CODE)

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            return _failure(
                data.get("message")
                or f"Email send failed: {response.status_code}",
                data.get("error") or "SEND_FAILED",
            )

        if data.get("success") is not True:
            return _failure(
                data.get("message") or "Email send failed",
                data.get("error") or "UNKNOWN_ERROR",
            )

        return SendEmailResponse(
            success=True,
            message=data.get("message"),
            message_id=data.get("messageId"),
        )

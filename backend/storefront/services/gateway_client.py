"""
Gateway Client — Outbound checkout creation against API Nepal.

The gateway takes a form-encoded POST and answers with JSON:
``{"status": "success", "redirect_url": ...}`` or
``{"status": "error", "message": ["..."]}``.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from storefront.config import Settings
from storefront.exceptions import GatewayUnreachable

logger = logging.getLogger(__name__)


@dataclass
class GatewayResponse:
    ok: bool
    redirect_url: Optional[str] = None
    message: str = ""
    raw: dict = field(default_factory=dict)


class GatewayClient:
    """Thin synchronous wrapper around the gateway's initiate endpoint."""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.endpoint = settings.gateway_endpoint
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.settings.GATEWAY_PUBLIC_KEY and self.settings.GATEWAY_SECRET_KEY)

    def credentials(self) -> dict:
        return {
            "public_key": self.settings.GATEWAY_PUBLIC_KEY,
            "secret_key": self.settings.GATEWAY_SECRET_KEY,
        }

    def initiate(self, fields: dict) -> GatewayResponse:
        """POST the checkout fields. Raises GatewayUnreachable on transport errors and timeouts."""
        try:
            with httpx.Client(
                timeout=self.settings.GATEWAY_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = client.post(self.endpoint, data={**self.credentials(), **fields})
        except httpx.TimeoutException as e:
            logger.warning("Gateway timed out for %s: %s", fields.get("identifier"), e)
            raise GatewayUnreachable("Payment gateway timed out")
        except httpx.TransportError as e:
            logger.warning("Gateway unreachable for %s: %s", fields.get("identifier"), e)
            raise GatewayUnreachable("Could not reach payment gateway")

        try:
            body = response.json()
        except ValueError:
            logger.error("Gateway returned non-JSON body (HTTP %s)", response.status_code)
            return GatewayResponse(
                ok=False,
                message="Invalid response from payment gateway",
                raw={"http_status": response.status_code, "body": response.text[:2000]},
            )
        if not isinstance(body, dict):
            return GatewayResponse(ok=False, message="Invalid response from payment gateway", raw={"body": body})

        if body.get("status") == "success" and body.get("redirect_url"):
            return GatewayResponse(ok=True, redirect_url=body["redirect_url"], raw=body)

        return GatewayResponse(ok=False, message=_first_message(body.get("message")), raw=body)


def _first_message(message) -> str:
    if isinstance(message, (list, tuple)):
        return str(message[0]) if message else ""
    return str(message or "")

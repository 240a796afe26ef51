import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from . import config

logger = logging.getLogger(__name__)

RAZORPAY_ORDERS_URL = "https://api.razorpay.com/v1/orders"


class PaymentError(Exception):
    """Raised when the payment gateway rejects or fails a request."""


class PaymentConfigError(PaymentError):
    """Raised when the gateway credentials are missing."""


def to_subunits(amount: float) -> int:
    """Rupees to paise."""
    return int(round(amount * 100))


class RazorpayClient:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self._transport = transport

    def _require_keys(self) -> None:
        if not self.key_id or not self.key_secret:
            raise PaymentConfigError("Razorpay env vars are not set!")

    async def create_order(
        self, amount: float, currency: str = "INR", receipt: Optional[str] = None
    ) -> Dict[str, Any]:
        self._require_keys()

        payload: Dict[str, Any] = {"amount": to_subunits(amount), "currency": currency}
        if receipt:
            payload["receipt"] = receipt

        async with httpx.AsyncClient(
            timeout=30.0,
            auth=(self.key_id, self.key_secret),
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(RAZORPAY_ORDERS_URL, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                try:
                    detail = exc.response.json()
                    msg = detail.get("error", {}).get("description", str(exc))
                except ValueError:
                    msg = str(exc)
                raise PaymentError(
                    f"Razorpay API error ({exc.response.status_code}): {msg}"
                ) from exc
            except httpx.HTTPError as exc:
                raise PaymentError(f"Could not reach Razorpay: {exc}") from exc

        order = response.json()
        logger.info("Created order %s for %s %s", order.get("id"), order.get("amount"), currency)
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout signature Razorpay hands back to the client."""
        self._require_keys()
        expected = hmac.new(
            self.key_secret.encode("utf-8"),
            f"{order_id}|{payment_id}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


def get_payment_client() -> RazorpayClient:
    return RazorpayClient(config.RAZORPAY_KEY, config.RAZORPAY_SECRET)

"""IfthenPay service - Multibanco and MB WAY payment requests"""

import asyncio
import hmac
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ...config import (
    FRONTEND_URL,
    IFTHENPAY_ANTI_PHISHING_KEY,
    IFTHENPAY_API_URL,
    IFTHENPAY_ENVIRONMENT,
    IFTHENPAY_MB_EXPIRY_DAYS,
    IFTHENPAY_MB_KEY,
    IFTHENPAY_MBWAY_KEY,
    PUBLIC_API_URL,
)
from ...exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 0.5

MULTIBANCO_CALLBACK_FIELDS = ("orderId", "amount", "requestId", "entity", "reference")
MBWAY_CALLBACK_FIELDS = ("orderId", "amount", "requestId")


def format_amount(amount) -> str:
    return f"{Decimal(str(amount)):.2f}"


class IfthenPayService:
    """Client for the IfthenPay payment API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        mb_key: Optional[str] = None,
        mbway_key: Optional[str] = None,
        anti_phishing_key: Optional[str] = None,
        environment: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or IFTHENPAY_API_URL).rstrip("/")
        self.mb_key = mb_key if mb_key is not None else IFTHENPAY_MB_KEY
        self.mbway_key = mbway_key if mbway_key is not None else IFTHENPAY_MBWAY_KEY
        self.anti_phishing_key = anti_phishing_key if anti_phishing_key is not None else IFTHENPAY_ANTI_PHISHING_KEY
        self.environment = environment or IFTHENPAY_ENVIRONMENT
        self.transport = transport
        self.retry_backoff = RETRY_BACKOFF_SECONDS

        if not self.mb_key and not self.mbway_key:
            logger.warning("IFTHENPAY keys not set; payment requests will fail until configured")

    def is_available(self, method: str = "multibanco") -> bool:
        if method == "mbway":
            return bool(self.mbway_key)
        return bool(self.mb_key)

    @staticmethod
    def callback_url() -> str:
        return f"{PUBLIC_API_URL}/billing/webhooks/ifthenpay"

    @staticmethod
    def return_url(order_id: str) -> str:
        return f"{FRONTEND_URL}/billing/payments/{quote(order_id)}"

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict[str, Any]:
        """
        Call the API, retrying timeouts, connection errors and 5xx responses.

        Raises:
            PaymentGatewayError: on 4xx responses, invalid JSON or when retries run out
        """
        url = f"{self.base_url}{path}"
        last_error: Optional[str] = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                    response = await client.request(
                        method,
                        url,
                        json=payload,
                        headers={"Accept": "application/json"},
                    )
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"⚠️ IfthenPay {path} attempt {attempt} failed: {last_error}")
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(self.retry_backoff * attempt)
                continue

            if response.status_code >= 500:
                last_error = f"HTTP error: {response.status_code}"
                logger.warning(f"⚠️ IfthenPay {path} returned {response.status_code} on attempt {attempt}")
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(self.retry_backoff * attempt)
                continue

            if response.status_code >= 400:
                logger.error(f"❌ IfthenPay {path} rejected the request: {response.status_code} {response.text[:200]}")
                raise PaymentGatewayError(f"HTTP error: {response.status_code}")

            try:
                return response.json()
            except ValueError as e:
                raise PaymentGatewayError("Invalid JSON response from IfthenPay") from e

        logger.error(f"❌ IfthenPay {path} failed after {MAX_RETRIES} attempts: {last_error}")
        raise PaymentGatewayError(f"Payment gateway unavailable ({last_error})")

    async def create_multibanco_payment(
        self, amount, order_id: str, customer_email: Optional[str] = None
    ) -> dict[str, Any]:
        """Generate a Multibanco entity/reference pair"""
        if not self.mb_key:
            raise PaymentGatewayError("Multibanco payments are not configured")

        expires_at = (datetime.utcnow() + timedelta(days=IFTHENPAY_MB_EXPIRY_DAYS)).date()
        payload = {
            "chave": self.mb_key,
            "valor": format_amount(amount),
            "idpedido": order_id,
            "validade": expires_at.isoformat(),
            "backoffice": self.callback_url(),
            "url_retorno": self.return_url(order_id),
        }
        if customer_email:
            payload["email"] = customer_email

        logger.info(f"💳 Requesting Multibanco reference for order {order_id} ({format_amount(amount)})")
        response = await self._request("POST", "/multibanco/create", payload)

        if not response or "entidade" not in response or "referencia" not in response:
            raise PaymentGatewayError("Invalid response from IfthenPay API")

        request_id = str(response.get("idpedido") or order_id)
        return {
            "method": "multibanco",
            "entity": str(response["entidade"]),
            "reference": str(response["referencia"]),
            "amount": format_amount(amount),
            "expires_at": response.get("validade") or expires_at.isoformat(),
            "request_id": request_id,
            "external_payment_id": request_id,
            "raw": response,
        }

    async def create_mbway_payment(
        self, amount, phone: str, order_id: str, customer_email: Optional[str] = None
    ) -> dict[str, Any]:
        """Push an MB WAY payment request to the customer's phone"""
        if not self.mbway_key:
            raise PaymentGatewayError("MB WAY payments are not configured")

        payload = {
            "chave": self.mbway_key,
            "valor": format_amount(amount),
            "idpedido": order_id,
            "telemovel": phone,
            "email": customer_email or "",
            "backoffice": self.callback_url(),
            "url_retorno": self.return_url(order_id),
        }

        logger.info(f"📱 Requesting MB WAY payment for order {order_id} ({format_amount(amount)})")
        response = await self._request("POST", "/mbway/create", payload)

        if not response or "idpedido" not in response:
            raise PaymentGatewayError("Invalid response from IfthenPay API")

        request_id = str(response["idpedido"])
        return {
            "method": "mbway",
            "phone": phone,
            "amount": format_amount(amount),
            "expires_at": (datetime.utcnow() + timedelta(minutes=30)).isoformat(timespec="minutes"),
            "request_id": request_id,
            "external_payment_id": request_id,
            "raw": response,
        }

    async def check_payment_status(self, request_id: str) -> Optional[dict[str, Any]]:
        """Status reported by IfthenPay, None when it cannot be fetched"""
        try:
            return await self._request("GET", f"/status/{quote(request_id)}")
        except PaymentGatewayError as e:
            logger.warning(f"⚠️ Could not check IfthenPay status of {request_id}: {e}")
            return None

    def validate_callback(self, data: dict[str, Any]) -> bool:
        """Check the anti-phishing key sent with a callback"""
        received = str(data.get("key") or "")
        if not self.anti_phishing_key:
            # Without a configured key only sandbox callbacks are accepted
            return self.environment != "production"
        return hmac.compare_digest(self.anti_phishing_key, received)

    def parse_callback(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Validate a payment callback and normalize its fields.

        Raises:
            PaymentGatewayError: invalid key or missing fields
        """
        if not self.validate_callback(data):
            logger.error("❌ IfthenPay callback with invalid anti-phishing key")
            raise PaymentGatewayError("Invalid callback key")

        method = "multibanco" if data.get("entity") or data.get("reference") else "mbway"
        required = MULTIBANCO_CALLBACK_FIELDS if method == "multibanco" else MBWAY_CALLBACK_FIELDS
        missing = [field for field in required if data.get(field) in (None, "")]
        if missing:
            logger.error(f"❌ IfthenPay {method} callback missing fields: {missing}")
            raise PaymentGatewayError(f"Missing required field: {missing[0]}")

        try:
            amount = Decimal(str(data["amount"]).replace(",", "."))
        except ArithmeticError as e:
            raise PaymentGatewayError("Invalid amount in callback") from e

        logger.info(f"📩 IfthenPay {method} callback for order {data['orderId']} ({amount})")
        return {
            "method": method,
            "order_id": str(data["orderId"]),
            "request_id": str(data["requestId"]),
            "amount": amount,
            "entity": data.get("entity"),
            "reference": data.get("reference"),
        }


# Singleton instance
ifthenpay_service = IfthenPayService()

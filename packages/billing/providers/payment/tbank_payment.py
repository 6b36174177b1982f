"""
T-Bank (Tinkoff) acquiring API implementation of the payment gateway.
"""

import hashlib
from typing import Any, Dict, Optional
import httpx

from common.core.config import settings
from common.core.exceptions import GatewayError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.charge import (
    ChargeIntent,
    ChargeState,
    SettlementResult,
)
from packages.billing.providers.payment.interface import PaymentGatewayInterface

logger = get_logger(__name__)


def generate_token(payload: Dict[str, Any], password: str) -> str:
    """
    Build the request signature.

    Takes every scalar top-level field (nested objects such as Receipt and
    DATA are excluded) plus Password, sorts by key and hashes the concatenated
    values with SHA-256.
    """
    values: Dict[str, str] = {"Password": password}
    for key, value in payload.items():
        if key == "Token" or value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, bool):
            values[key] = "true" if value else "false"
        else:
            values[key] = str(value)

    concatenated = "".join(values[key] for key in sorted(values))
    return hashlib.sha256(concatenated.encode("utf-8")).hexdigest()


class TBankPaymentGateway(PaymentGatewayInterface):
    """T-Bank acquiring gateway over httpx."""

    def __init__(
        self,
        terminal_key: Optional[str] = None,
        password: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.terminal_key = terminal_key or settings.tbank_terminal_key
        self.password = password or settings.tbank_password
        self.api_url = (api_url or settings.tbank_api_url).rstrip("/")
        self.timeout = timeout or settings.tbank_timeout_seconds
        self._transport = transport

    def _build_receipt(self, amount: int, description: str, email: str, phone: str):
        return {
            "Email": email,
            "Phone": phone,
            "Taxation": settings.receipt_taxation,
            "Items": [
                {
                    "Name": description,
                    "Price": amount,
                    "Quantity": 1,
                    "Amount": amount,
                    "Tax": settings.receipt_tax,
                    "PaymentMethod": "full_payment",
                    "PaymentObject": "service",
                }
            ],
        }

    async def _post(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Sign and send a request; raises GatewayError on transport failures."""
        body = {"TerminalKey": self.terminal_key, **payload}
        body["Token"] = generate_token(body, self.password)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.api_url}/{method}",
                    headers={"Content-Type": "application/json"},
                    json=body,
                )
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Gateway {method} timed out: {e}")
            raise GatewayError(f"Gateway {method} timed out", status="TIMEOUT") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Gateway {method} returned HTTP {e.response.status_code}",
                extra={"method": method},
            )
            raise GatewayError(
                f"Gateway {method} returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Gateway {method} request failed: {e}")
            raise GatewayError(f"Gateway {method} request failed: {e}") from e

    @staticmethod
    def _raise_for_failure(method: str, data: Dict[str, Any]) -> None:
        if not data.get("Success"):
            error_code = data.get("ErrorCode")
            message = data.get("Message") or data.get("Details") or "unknown error"
            raise GatewayError(
                f"Gateway {method} failed: {message}",
                error_code=str(error_code) if error_code is not None else None,
                status=data.get("Status"),
            )

    @trace_span
    async def create_charge(
        self,
        amount: int,
        order_id: str,
        description: str,
        email: str,
        phone: Optional[str] = None,
        recurrent: bool = False,
        customer_key: Optional[str] = None,
        notification_url: Optional[str] = None,
    ) -> ChargeIntent:
        payload: Dict[str, Any] = {
            "Amount": amount,
            "OrderId": order_id,
            "Description": description,
            "Receipt": self._build_receipt(
                amount,
                description,
                email,
                phone or settings.receipt_default_phone,
            ),
        }
        if recurrent:
            payload["Recurrent"] = "Y"
        if customer_key:
            payload["CustomerKey"] = customer_key
        if notification_url:
            payload["NotificationURL"] = notification_url

        data = await self._post("Init", payload)
        self._raise_for_failure("Init", data)

        logger.info(
            "Gateway charge created",
            extra={"order_id": order_id, "payment_id": str(data.get("PaymentId"))},
        )
        return ChargeIntent(
            payment_id=str(data["PaymentId"]),
            payment_url=data.get("PaymentURL"),
            status=data.get("Status"),
        )

    @trace_span
    async def settle_recurrent_charge(
        self, payment_id: str, rebill_id: str
    ) -> SettlementResult:
        data = await self._post(
            "Charge", {"PaymentId": payment_id, "RebillId": rebill_id}
        )
        error_code = data.get("ErrorCode")
        result = SettlementResult(
            success=bool(data.get("Success")),
            status=data.get("Status"),
            payment_id=str(data.get("PaymentId") or payment_id),
            error_code=(
                str(error_code) if error_code not in (None, "0", 0) else None
            ),
            message=data.get("Message") or data.get("Details"),
        )
        logger.info(
            f"Gateway charge settled: success={result.success} status={result.status}",
            extra={"payment_id": payment_id},
        )
        return result

    @trace_span
    async def get_charge_state(self, payment_id: str) -> ChargeState:
        data = await self._post("GetState", {"PaymentId": payment_id})
        self._raise_for_failure("GetState", data)
        rebill_id = data.get("RebillId")
        card_id = data.get("CardId")
        return ChargeState(
            payment_id=str(data.get("PaymentId") or payment_id),
            status=data.get("Status", ""),
            success=bool(data.get("Success")),
            order_id=data.get("OrderId"),
            amount=data.get("Amount"),
            rebill_id=str(rebill_id) if rebill_id is not None else None,
            card_id=str(card_id) if card_id is not None else None,
        )

    async def health_check(self) -> bool:
        return bool(self.terminal_key and self.password)

"""
Typed gateway notifications.

Inbound bodies are parsed into a closed union: a `RebillNotification` when
the gateway sent a rebill token, otherwise a `PaymentNotification`. Anything
that does not fit either shape is rejected at the boundary.
"""

import json
from typing import Annotated, Any, Dict, Literal, Optional, Union
from urllib.parse import parse_qsl

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from common.core.exceptions import NotificationParseError
from packages.billing.models.domain.enums import GatewayPaymentStatus


class BaseNotification(BaseModel):
    """Fields common to every gateway notification."""

    terminal_key: Optional[str] = Field(None, alias="TerminalKey")
    order_id: Optional[str] = Field(None, alias="OrderId")
    payment_id: str = Field(..., alias="PaymentId")
    status: str = Field(..., alias="Status")
    success: bool = Field(False, alias="Success")
    amount: Optional[int] = Field(None, alias="Amount")  # minor units
    error_code: Optional[str] = Field(None, alias="ErrorCode")
    card_id: Optional[str] = Field(None, alias="CardId")
    pan: Optional[str] = Field(None, alias="Pan")
    exp_date: Optional[str] = Field(None, alias="ExpDate")
    email: Optional[str] = Field(None, alias="Email")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator(
        "order_id", "payment_id", "card_id", "error_code", "terminal_key",
        mode="before",
    )
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return str(int(value))
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("pan", mode="before")
    @classmethod
    def keep_last_four(cls, value: Any) -> Any:
        if value is None:
            return None
        digits = str(value).strip()
        return digits[-4:] if digits else None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @property
    def rebill_token(self) -> Optional[str]:
        return None

    @property
    def notification_key(self) -> str:
        """Idempotency key: one logical event per (payment, status, rebill)."""
        return f"wh_{self.payment_id}_{self.status}_{self.rebill_token or 'none'}"

    @property
    def amount_major(self) -> Optional[int]:
        """Amount in whole roubles. Kopecks are truncated; ledger amounts are integers."""
        if self.amount is None:
            return None
        return self.amount // 100

    def has_fractional_amount(self) -> bool:
        return self.amount is not None and self.amount % 100 != 0

    def is_settled(self) -> bool:
        """Successful and captured/held by the gateway."""
        return self.success and GatewayPaymentStatus.is_settled(self.status)

    def to_payload(self) -> Dict[str, Any]:
        """Serializable copy for the event, pending and error stores."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PaymentNotification(BaseNotification):
    kind: Literal["payment"] = "payment"


class RebillNotification(BaseNotification):
    kind: Literal["rebill"] = "rebill"
    rebill_id: str = Field(..., alias="RebillId")

    @field_validator("rebill_id", mode="before")
    @classmethod
    def coerce_rebill_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def rebill_token(self) -> Optional[str]:
        return self.rebill_id


GatewayNotification = Annotated[
    Union[PaymentNotification, RebillNotification], Field(discriminator="kind")
]

_notification_adapter = TypeAdapter(GatewayNotification)


class MalformedNotification(BaseModel):
    """A body that could not be parsed; kept for the error store."""

    error: str
    raw_body: str
    content_type: Optional[str] = None


def _decode_body(body: bytes, content_type: Optional[str]) -> Dict[str, Any]:
    try:
        text = body.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise NotificationParseError(f"Body is not valid UTF-8: {e}") from e

    if not text:
        raise NotificationParseError("Empty notification body")

    is_json = (content_type and "json" in content_type) or text.startswith("{")
    if is_json:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise NotificationParseError(f"Invalid JSON body: {e}") from e
        if not isinstance(data, dict):
            raise NotificationParseError("JSON body is not an object")
        return data

    pairs = parse_qsl(text, keep_blank_values=True)
    if not pairs:
        raise NotificationParseError("Body is neither JSON nor form-encoded")
    return dict(pairs)


def parse_notification(
    body: bytes, content_type: Optional[str] = None
) -> Union[PaymentNotification, RebillNotification]:
    """
    Parse a raw notification body (JSON or form-encoded).

    Raises:
        NotificationParseError: If the body cannot be decoded or lacks
            PaymentId/Status
    """
    data = _decode_body(body, content_type)
    rebill_id = data.get("RebillId")
    has_rebill = rebill_id is not None and str(rebill_id).strip() != ""
    if not has_rebill:
        data.pop("RebillId", None)
    data["kind"] = "rebill" if has_rebill else "payment"

    try:
        return _notification_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise NotificationParseError(f"Unrecognized notification shape: {e}") from e

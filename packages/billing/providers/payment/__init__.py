"""Payment gateways - charge creation, settlement and state queries."""

from packages.billing.providers.payment.interface import PaymentGatewayInterface
from packages.billing.providers.payment.factory import get_payment_gateway

__all__ = [
    "PaymentGatewayInterface",
    "get_payment_gateway",
]

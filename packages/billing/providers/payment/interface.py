"""
Interface for payment gateways.

Abstracts the acquiring API away from a specific bank. Amounts crossing this
interface are in minor units (kopecks).
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.billing.models.domain.charge import (
    ChargeIntent,
    ChargeState,
    SettlementResult,
)


class PaymentGatewayInterface(ABC):
    """Abstract interface for payment gateways."""

    @abstractmethod
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
        """
        Create a charge intent (payment) with the gateway.

        Args:
            amount: Amount in minor units
            order_id: Gateway order id, unique per charge
            description: Payment description shown to the customer
            email: Receipt email
            phone: Receipt phone
            recurrent: Ask the gateway to issue a rebill token on success
            customer_key: Customer key to bind the card to
            notification_url: Where the gateway should post notifications

        Returns:
            ChargeIntent with the gateway payment id and payment URL

        Raises:
            GatewayError: If the gateway rejects the request or is unreachable
        """
        pass

    @abstractmethod
    async def settle_recurrent_charge(
        self, payment_id: str, rebill_id: str
    ) -> SettlementResult:
        """
        Settle a created charge against a stored rebill token.

        Args:
            payment_id: Payment id returned by create_charge
            rebill_id: Rebill token from the first successful payment

        Returns:
            SettlementResult; success=False carries the gateway's error code/message

        Raises:
            GatewayError: If the gateway is unreachable or times out
        """
        pass

    @abstractmethod
    async def get_charge_state(self, payment_id: str) -> ChargeState:
        """
        Query the current state of a payment.

        Args:
            payment_id: Gateway payment id

        Returns:
            ChargeState with status and, when known, rebill id, card id and amount

        Raises:
            GatewayError: If the request fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check whether the gateway is configured and reachable."""
        pass

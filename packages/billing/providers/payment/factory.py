"""
Factory for getting payment gateway instance.
"""

from packages.billing.providers.payment.interface import PaymentGatewayInterface
from packages.billing.providers.payment.tbank_payment import TBankPaymentGateway


def get_payment_gateway() -> PaymentGatewayInterface:
    """
    Get payment gateway instance based on configuration.

    Returns:
        PaymentGatewayInterface: Configured payment gateway
    """
    return TBankPaymentGateway()

"""
Payment initiation endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from common.core.exceptions import GatewayError, NotFoundError
from common.core.otel_axiom_exporter import get_logger
from common.providers.rate_limiter.limiter import limiter
from packages.orders.models.schemas.payments import (
    PaymentCheckRequest,
    PaymentCheckResponse,
    PaymentInitRequest,
    PaymentInitResponse,
)
from packages.orders.services.payment_initiation_service import (
    PaymentInitiationService,
)

logger = get_logger(__name__)

router = APIRouter()


def get_payment_initiation_service() -> PaymentInitiationService:
    return PaymentInitiationService()


@router.post("/init", response_model=PaymentInitResponse)
@limiter.limit("30/minute")
async def init_payment(
    request: Request,
    payload: PaymentInitRequest,
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
):
    """Start a payment; set `recurrent` to bind the card for subscription billing."""
    try:
        return await service.init_payment(
            user_id=payload.user_id,
            order_id=payload.order_id,
            amount=payload.amount,
            email=payload.email,
            description=payload.description,
            phone=payload.phone,
            recurrent=payload.recurrent,
        )
    except GatewayError as e:
        logger.error(f"Payment init failed for order {payload.order_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        )


@router.post("/check", response_model=PaymentCheckResponse)
async def check_payment(
    payload: PaymentCheckRequest,
    service: PaymentInitiationService = Depends(get_payment_initiation_service),
):
    """Fetch a payment's current state from the gateway."""
    try:
        state = await service.check_payment(payload.payment_id, payload.order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return PaymentCheckResponse(
        payment_id=state.payment_id,
        status=state.status,
        success=state.success,
        amount=state.amount,
        rebill_id=state.rebill_id,
        card_id=state.card_id,
    )

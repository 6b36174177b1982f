"""
Subscription management routes.

Consumed by the admin tool: look up, cancel, charge early, list active.
"""

import math

from fastapi import APIRouter, Depends, HTTPException, Request, status

from common.core.exceptions import (
    GatewayError,
    SubscriptionNotActiveError,
    SubscriptionNotFoundError,
)
from common.core.otel_axiom_exporter import get_logger
from common.providers.rate_limiter.limiter import limiter
from packages.billing.dependencies import (
    get_billing_scheduler,
    get_subscription_service,
)
from packages.billing.models.schemas.billing import (
    AdminSubscriptionItem,
    AdminSubscriptionListResponse,
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    ChargeNowRequest,
    ChargeNowResponse,
    SubscriptionResponse,
    UserSubscriptionResponse,
)
from packages.billing.services.billing_scheduler import BillingScheduler
from packages.billing.services.subscription_service import SubscriptionService

logger = get_logger(__name__)

router = APIRouter()
admin_router = APIRouter()


# ============================================================================
# Subscription lookup and lifecycle
# ============================================================================


@router.get("/{user_id}", response_model=UserSubscriptionResponse)
async def get_user_subscription(
    user_id: str,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
    scheduler: BillingScheduler = Depends(get_billing_scheduler),
):
    """Get the user's active subscription (or latest, if none is active)."""
    subscription = await subscription_service.get_for_user(user_id)
    if subscription is None:
        return UserSubscriptionResponse()

    return UserSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(subscription.model_dump()),
        has_scheduled_payment=scheduler.has_job(user_id, subscription.id),
    )


@router.post("/cancel", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    payload: CancelSubscriptionRequest,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel a subscription and drop its scheduled charge."""
    try:
        subscription = await subscription_service.cancel(
            payload.user_id, payload.subscription_id
        )
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return CancelSubscriptionResponse(
        success=True,
        subscription_id=subscription.id,
        status=subscription.status,
        cancelled_at=subscription.cancelled_at,
    )


@router.post("/charge-now", response_model=ChargeNowResponse)
@limiter.limit("10/minute")
async def charge_now(
    request: Request,
    payload: ChargeNowRequest,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Charge an active subscription immediately (schedule unchanged)."""
    try:
        result = await subscription_service.charge_now(
            payload.user_id, payload.subscription_id, payload.amount
        )
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SubscriptionNotActiveError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GatewayError as e:
        logger.error(
            f"Early charge failed for {payload.subscription_id}: {e.message}",
            extra={"user_id": payload.user_id},
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return ChargeNowResponse(
        success=result.success,
        payment_id=result.payment_id,
        order_id=result.order_id,
        status=result.status,
        amount=result.amount,
    )


# ============================================================================
# Admin
# ============================================================================


@admin_router.get("/subscriptions", response_model=AdminSubscriptionListResponse)
async def list_active_subscriptions(
    subscription_service: SubscriptionService = Depends(get_subscription_service),
    scheduler: BillingScheduler = Depends(get_billing_scheduler),
):
    """List active subscriptions with their scheduling state."""
    subscriptions = await subscription_service.list_active()
    now = scheduler.clock()

    items = []
    for subscription in subscriptions:
        seconds = (subscription.next_payment_date - now).total_seconds()
        items.append(
            AdminSubscriptionItem(
                **subscription.model_dump(),
                days_until_payment=math.ceil(seconds / 86400),
                has_scheduled_job=scheduler.has_job(
                    subscription.user_id, subscription.id
                ),
            )
        )

    return AdminSubscriptionListResponse(
        count=len(items),
        scheduled_jobs=scheduler.job_count,
        subscriptions=items,
    )

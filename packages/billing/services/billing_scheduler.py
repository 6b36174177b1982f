"""
Timer-driven billing scheduler.

Owns every in-memory charge timer. Timers are derived state: the due date is
persisted on the subscription and `restore()` rebuilds the timers from the
subscriptions table at startup.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set

from common.core.clock import Clock, add_months, to_naive_utc, utc_now
from common.core.config import settings
from common.core.exceptions import AppException, GatewayError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.retry import with_persistence_retry
from packages.billing.models.domain.charge import ChargeResult
from packages.billing.models.domain.enums import (
    CancellationReason,
    SubscriptionStatus,
)
from packages.billing.models.domain.subscription import (
    InvariantRepairResult,
    Subscription,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.charge_service import ChargeService

logger = get_logger(__name__)


def make_job_id(user_id: str, subscription_id: str) -> str:
    return f"sub_{user_id}_{subscription_id}"


@dataclass
class ScheduledJob:
    """Handle for one pending charge timer."""

    job_id: str
    user_id: str
    subscription_id: str
    due_date: datetime
    rebill_token: str
    amount: int
    handle: Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


class BillingScheduler:
    """
    Schedules, fires, cancels and restores subscription charge timers.

    `schedule`, `unschedule`, `cancel` and `restore` are the only operations
    that mutate the job arena. A fired timer leaves the arena before its
    charge starts, so a concurrent `cancel` never interrupts a charge already
    sent to the gateway.
    """

    def __init__(
        self,
        charge_service: Optional[ChargeService] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        clock: Clock = utc_now,
        interval_months: Optional[int] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.charge_service = charge_service or ChargeService(
            subscription_repo=self.subscription_repo, clock=clock
        )
        self.clock = clock
        self.interval_months = interval_months or settings.billing_interval_months
        self._jobs: Dict[str, ScheduledJob] = {}
        self._in_flight: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Arena queries
    # ------------------------------------------------------------------

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    def has_job(self, user_id: str, subscription_id: str) -> bool:
        return make_job_id(user_id, subscription_id) in self._jobs

    def get_job(self, user_id: str, subscription_id: str) -> Optional[ScheduledJob]:
        return self._jobs.get(make_job_id(user_id, subscription_id))

    def _discard(self, job_id: str) -> bool:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        job.cancel()
        return True

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(
        self,
        user_id: str,
        subscription_id: str,
        next_payment_date: datetime,
        rebill_token: str,
        amount: int,
    ) -> Optional[ScheduledJob]:
        """
        Register a one-shot charge timer, replacing any existing one.

        Returns:
            The scheduled job, or None if the date is not in the future
        """
        job_id = make_job_id(user_id, subscription_id)
        due_date = to_naive_utc(next_payment_date)
        now = self.clock()

        if due_date <= now:
            logger.warning(
                f"Refusing to schedule {job_id}: payment date {due_date.isoformat()} is not in the future",
                extra={"user_id": user_id, "subscription_id": subscription_id},
            )
            return None

        if self._discard(job_id):
            logger.info(f"Replaced existing timer {job_id}")

        job = ScheduledJob(
            job_id=job_id,
            user_id=user_id,
            subscription_id=subscription_id,
            due_date=due_date,
            rebill_token=rebill_token,
            amount=amount,
        )
        delay = (due_date - now).total_seconds()
        job.handle = asyncio.get_running_loop().call_later(delay, self._on_timer, job)
        self._jobs[job_id] = job

        logger.info(
            f"Scheduled charge {job_id} for {due_date.isoformat()}",
            extra={
                "user_id": user_id,
                "subscription_id": subscription_id,
                "amount": amount,
            },
        )
        return job

    def _on_timer(self, job: ScheduledJob) -> None:
        if self._jobs.get(job.job_id) is not job:
            return
        task = asyncio.create_task(self.fire(job.user_id, job.subscription_id))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    @trace_span
    async def fire(
        self, user_id: str, subscription_id: str
    ) -> Optional[ChargeResult]:
        """
        Run the due charge for a subscription and reschedule on success.

        Never raises: every branch ends in a logged outcome.

        Returns:
            The ChargeResult on success, otherwise None
        """
        job_id = make_job_id(user_id, subscription_id)
        self._discard(job_id)
        log_extra = {"user_id": user_id, "subscription_id": subscription_id}

        try:
            subscription = await self.subscription_repo.get(subscription_id)
            if subscription is None or not subscription.is_billable():
                logger.info(
                    f"Skipping charge for {job_id}: subscription missing or not active",
                    extra=log_extra,
                )
                return None

            repair = await self.repair_active_invariant(user_id)
            if repair.kept is None or repair.kept.id != subscription_id:
                logger.warning(
                    f"Skipping charge for {job_id}: superseded by a newer subscription",
                    extra=log_extra,
                )
                return None

            due_date = subscription.next_payment_date
            result = await self.charge_service.execute(
                user_id=user_id,
                rebill_token=subscription.rebill_token,
                amount=subscription.amount,
                description=settings.recurring_charge_description,
                subscription_id=subscription_id,
            )

            next_date = add_months(due_date, self.interval_months)
            await with_persistence_retry(
                lambda: self.subscription_repo.update_schedule(
                    subscription_id,
                    next_payment_date=next_date,
                    last_scheduled_payment=due_date,
                    amount=subscription.amount,
                ),
                "advance next payment date",
            )
            self.schedule(
                user_id,
                subscription_id,
                next_date,
                subscription.rebill_token,
                subscription.amount,
            )
            return result
        except GatewayError as e:
            logger.error(
                f"Scheduled charge {job_id} failed, not rescheduling: {e.message}",
                extra={**log_extra, "error_code": e.error_code},
            )
        except AppException as e:
            logger.error(f"Scheduled charge {job_id} aborted: {e}", extra=log_extra)
        except Exception as e:
            logger.error(
                f"Unexpected error in scheduled charge {job_id}: {e}",
                extra=log_extra,
                exc_info=True,
            )
        return None

    @trace_span
    async def cancel(
        self,
        user_id: str,
        subscription_id: str,
        status: SubscriptionStatus = SubscriptionStatus.CANCELLED,
        reason: Optional[CancellationReason] = None,
    ) -> bool:
        """
        Flip a subscription out of active and drop its timer if one exists.

        Returns:
            False if the subscription does not exist
        """
        updated = await with_persistence_retry(
            lambda: self.subscription_repo.set_status(
                subscription_id, status, reason=reason, cancelled_at=self.clock()
            ),
            "cancel subscription",
        )
        had_timer = self._discard(make_job_id(user_id, subscription_id))
        logger.info(
            f"Cancelled subscription {subscription_id} as {status.value}",
            extra={
                "user_id": user_id,
                "subscription_id": subscription_id,
                "reason": reason.value if reason else None,
                "had_timer": had_timer,
            },
        )
        return updated

    def unschedule(self, user_id: str, subscription_id: str) -> bool:
        """Drop a pending timer without touching the subscription. Returns True if one existed."""
        removed = self._discard(make_job_id(user_id, subscription_id))
        if removed:
            logger.info(
                f"Dropped timer for {subscription_id}",
                extra={"user_id": user_id, "subscription_id": subscription_id},
            )
        return removed

    # ------------------------------------------------------------------
    # Invariant repair and recovery
    # ------------------------------------------------------------------

    async def _keep_newest(
        self,
        user_id: str,
        active: List[Subscription],
        reason: CancellationReason,
    ) -> InvariantRepairResult:
        ordered = sorted(active, key=lambda sub: (sub.created_at, sub.id), reverse=True)
        result = InvariantRepairResult(user_id=user_id, kept=ordered[0] if ordered else None)
        for duplicate in ordered[1:]:
            await self.cancel(
                user_id,
                duplicate.id,
                status=SubscriptionStatus.CANCELLED_BY_SYSTEM,
                reason=reason,
            )
            result.cancelled_ids.append(duplicate.id)

        if result.repaired:
            logger.warning(
                f"User {user_id} had {len(ordered)} active subscriptions, kept {result.kept.id}",
                extra={
                    "user_id": user_id,
                    "cancelled": result.cancelled_ids,
                    "reason": reason.value,
                },
            )
        return result

    @trace_span
    async def repair_active_invariant(
        self,
        user_id: str,
        reason: CancellationReason = CancellationReason.MULTIPLE_ACTIVE_SUBSCRIPTIONS,
    ) -> InvariantRepairResult:
        """Cancel every active subscription of a user except the newest."""
        active = await self.subscription_repo.get_active_for_user(user_id)
        return await self._keep_newest(user_id, active, reason)

    @trace_span
    async def restore(self) -> int:
        """
        Rebuild timers from persisted subscriptions.

        Only active subscriptions with a future due date take part. Per user the
        newest of them survives and the rest become cancelled_by_system. Past-due
        active subscriptions are left as they are and get no timer.

        Returns:
            Number of timers scheduled
        """
        now = self.clock()
        active = await self.subscription_repo.get_by_status(SubscriptionStatus.ACTIVE)
        by_user: Dict[str, List[Subscription]] = defaultdict(list)
        for subscription in active:
            if to_naive_utc(subscription.next_payment_date) > now:
                by_user[subscription.user_id].append(subscription)
            else:
                logger.warning(
                    f"Active subscription {subscription.id} is past due, no timer restored",
                    extra={
                        "user_id": subscription.user_id,
                        "subscription_id": subscription.id,
                        "next_payment_date": subscription.next_payment_date.isoformat(),
                    },
                )

        scheduled = 0
        for user_id, subscriptions in by_user.items():
            repair = await self._keep_newest(
                user_id,
                subscriptions,
                CancellationReason.MULTIPLE_SUBSCRIPTIONS_ON_RESTART,
            )
            survivor = repair.kept
            if self.schedule(
                user_id,
                survivor.id,
                survivor.next_payment_date,
                survivor.rebill_token,
                survivor.amount,
            ):
                scheduled += 1

        logger.info(
            f"Restored {scheduled} scheduled charges from {len(active)} active subscriptions"
        )
        return scheduled

    async def drain(self) -> None:
        """Wait for charges that already fired to finish."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def shutdown(self) -> None:
        """Drop every pending timer and wait for in-flight charges."""
        for job_id in list(self._jobs):
            self._discard(job_id)
        await self.drain()
        logger.info("Billing scheduler stopped")

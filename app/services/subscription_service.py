"""
Subscription service.
Handles the subscription record lifecycle: creation, coupon lapse,
scheduled upgrades, downgrade to free and paid-plan activation.
"""
from datetime import datetime
from typing import Optional

from flask import current_app

from app.errors import (
    ConflictError,
    NoBillingAgreementError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models.payments import PaymentLog, PaymentLogStatus
from app.models.subscription import (
    PAID_PLANS,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    plan_rank,
)
from app.models.user import User
from app.services.persistence import atomic
from app.utils.dates import add_months, format_korean_date, utcnow
from app.utils.telegram import notify_downgrade


def parse_paid_plan(value) -> SubscriptionPlan:
    """Return the paid plan named by ``value`` or raise ValidationError."""
    try:
        plan = SubscriptionPlan((value or '').lower())
    except ValueError:
        raise ValidationError('유효하지 않은 플랜입니다', code='invalid_plan')
    if plan not in PAID_PLANS:
        raise ValidationError('유효하지 않은 플랜입니다', code='invalid_plan')
    return plan


class SubscriptionService:
    """Service for managing user subscriptions."""

    @staticmethod
    def ensure_subscription_exists(user: User) -> Subscription:
        """Ensure user has a Subscription record. Creates FREE if none exists.

        The new row is added to the session but not committed.
        """
        if user.subscription:
            return user.subscription

        subscription = Subscription(
            user=user,
            plan=SubscriptionPlan.FREE,
            status=SubscriptionStatus.ACTIVE,
        )
        db.session.add(subscription)
        return subscription

    @staticmethod
    def get_subscription(user: User) -> Subscription:
        """The user's subscription; NotFoundError when there is none."""
        subscription = Subscription.query.filter_by(user_id=user.id).first()
        if subscription is None:
            raise NotFoundError('구독 정보를 찾을 수 없습니다', code='subscription_not_found')
        return subscription

    @staticmethod
    def apply_coupon_lapse(subscription: Optional[Subscription]) -> bool:
        """Persist plan=free/status=expired for a lapsed coupon-only period.

        Returns True when the subscription was lapsed by this call.
        """
        if subscription is None or not subscription.is_coupon_lapsed:
            return False

        previous_plan = subscription.plan.value
        try:
            with atomic():
                subscription.plan = SubscriptionPlan.FREE
                subscription.status = SubscriptionStatus.EXPIRED
                subscription.pending_plan = None
        except ConflictError:
            # Another request changed the row first; report what it wrote
            db.session.refresh(subscription)
            return False

        current_app.logger.info(
            f'Coupon period lapsed for user {subscription.user_id}: {previous_plan} -> free'
        )
        return True

    @staticmethod
    def effective_plan(user: User) -> str:
        """Plan name the quota evaluator should use for this user."""
        subscription = Subscription.query.filter_by(user_id=user.id).first()
        if subscription is None:
            return SubscriptionPlan.FREE.value
        SubscriptionService.apply_coupon_lapse(subscription)
        return subscription.plan.value

    @staticmethod
    def get_subscription_info(user: User) -> dict:
        """Read model for the subscription page."""
        subscription = Subscription.query.filter_by(user_id=user.id).first()
        SubscriptionService.apply_coupon_lapse(subscription)

        if subscription is None:
            return {
                'plan': SubscriptionPlan.FREE.value,
                'status': SubscriptionStatus.ACTIVE.value,
                'role': user.role,
                'pendingPlan': None,
                'currentPeriodEnd': None,
            }

        info = subscription.to_dict()
        return {
            'plan': info['plan'],
            'status': info['status'],
            'role': user.role,
            'pendingPlan': info['pendingPlan'],
            'currentPeriodEnd': info['currentPeriodEnd'],
        }

    @staticmethod
    def schedule_upgrade(user: User, target_plan) -> dict:
        """Queue an upgrade that the next renewal charge will apply."""
        target = parse_paid_plan(target_plan)
        subscription = SubscriptionService.get_subscription(user)

        if not subscription.has_billing_agreement:
            raise NoBillingAgreementError('정기결제 정보가 없습니다. 먼저 구독을 시작해주세요.')

        if plan_rank(target) <= plan_rank(subscription.plan):
            raise ValidationError('업그레이드만 예약할 수 있습니다', code='not_an_upgrade')

        if subscription.pending_plan == target:
            raise ConflictError(
                '이미 해당 플랜으로 변경이 예약되어 있습니다', code='upgrade_already_scheduled'
            )

        with atomic():
            subscription.pending_plan = target

        current_app.logger.info(
            f'Upgrade scheduled for user {user.id}: {subscription.plan.value} -> {target.value}'
        )

        next_billing_date = format_korean_date(subscription.current_period_end) or '다음 결제일'
        return {
            'success': True,
            'message': (
                f'{target.value.upper()} 플랜으로 변경이 예약되었습니다. '
                f'{next_billing_date}에 변경됩니다.'
            ),
            'currentPlan': subscription.plan.value,
            'pendingPlan': target.value,
            'nextBillingDate': next_billing_date,
        }

    @staticmethod
    def cancel_scheduled_upgrade(user: User) -> dict:
        subscription = SubscriptionService.get_subscription(user)

        if subscription.pending_plan is None:
            raise ValidationError('예약된 플랜 변경이 없습니다', code='no_pending_upgrade')

        canceled = subscription.pending_plan.value
        with atomic():
            subscription.pending_plan = None

        current_app.logger.info(f'Scheduled upgrade to {canceled} canceled for user {user.id}')
        return {
            'success': True,
            'message': '플랜 변경 예약이 취소되었습니다.',
            'currentPlan': subscription.plan.value,
        }

    @staticmethod
    def downgrade_to_free(user: User) -> dict:
        """Drop to free immediately and remove the billing agreement.

        No grace period and no partial refund.
        """
        subscription = Subscription.query.filter_by(user_id=user.id).first()
        if subscription is None or subscription.plan == SubscriptionPlan.FREE:
            raise ConflictError('이미 Free 플랜을 사용 중입니다', code='already_free')

        previous_plan = subscription.plan.value
        had_billing_agreement = subscription.has_billing_agreement

        with atomic():
            subscription.plan = SubscriptionPlan.FREE
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.pending_plan = None
            subscription.billing_key = None
            subscription.customer_key = None
            subscription.current_period_start = None
            subscription.current_period_end = None

            if had_billing_agreement:
                db.session.add(PaymentLog(
                    user_id=user.id,
                    amount=0,
                    currency=current_app.config['PAYMENT_CURRENCY'],
                    status=PaymentLogStatus.COMPLETED,
                    description=f'{previous_plan.upper()} → Free 플랜 다운그레이드 (정기결제 해지)',
                    paid_at=utcnow(),
                ))

        current_app.logger.info(
            f'User {user.id} downgraded {previous_plan} -> free '
            f'(billing agreement removed: {had_billing_agreement})'
        )
        notify_downgrade(user, previous_plan)

        return {
            'success': True,
            'message': 'Free 플랜으로 변경되었습니다. 정기결제가 해지되었습니다.',
            'previousPlan': previous_plan,
            'newPlan': SubscriptionPlan.FREE.value,
        }

    @staticmethod
    def activate_paid_plan(
        user: User,
        plan: SubscriptionPlan,
        period_start: datetime,
        billing_key: Optional[str] = None,
        customer_key: Optional[str] = None,
    ) -> Subscription:
        """Put the user on ``plan`` for one month from ``period_start``.

        Only mutates the session; call inside the caller's transaction.
        A billing key, when given, replaces the stored agreement.
        """
        subscription = SubscriptionService.ensure_subscription_exists(user)
        subscription.plan = plan
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.current_period_start = period_start
        subscription.current_period_end = add_months(period_start, 1)

        if subscription.pending_plan is not None and plan_rank(subscription.pending_plan) <= plan_rank(plan):
            subscription.pending_plan = None

        if billing_key:
            subscription.billing_key = billing_key
            subscription.customer_key = customer_key
        return subscription

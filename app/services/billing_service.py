"""
Billing service.
Checkout through the Toss payment widget, billing-key registration and
the recurring charge that renews a subscription and applies any
scheduled upgrade.
"""
import hmac
import secrets
import time
import uuid
from typing import Optional

from flask import current_app

from app.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InfrastructureError,
    NoBillingAgreementError,
    NotFoundError,
    PaymentConfigurationError,
    PaymentFailedError,
    PlanNotPriceableError,
    ServiceError,
    ValidationError,
)
from app.extensions import db
from app.models.payments import PaymentLog, PaymentLogStatus, PricingPlan
from app.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus
from app.models.user import User
from app.services.persistence import atomic
from app.services.subscription_service import SubscriptionService, parse_paid_plan
from app.services.toss_client import TossPaymentsClient, TossPaymentsError
from app.utils.dates import add_months, isoformat_utc, parse_gateway_timestamp, utcnow
from app.utils.telegram import notify_renewal_failed, notify_renewal_succeeded

UNAPPLIED_CHARGE_NOTE = '구독 갱신 반영 실패'


def _epoch_ms():
    return int(time.time() * 1000)


def renewal_order_id(user_id):
    """Unique per attempt: a retried charge never reuses an order id."""
    return f'SUB_{_epoch_ms()}_{user_id[:8]}_{secrets.token_hex(3)}'


def initial_order_id(user_id):
    return f'SUB_INIT_{_epoch_ms()}_{user_id[:8]}_{secrets.token_hex(3)}'


def checkout_order_id():
    return f'SUB_{uuid.uuid4().hex[:20]}'


def _currency():
    return current_app.config['PAYMENT_CURRENCY']


def _order_name(plan, suffix):
    return f"{current_app.config['ORDER_NAME_PREFIX']} {plan.value.upper()} 플랜 {suffix}"


def _priced_plan(plan: SubscriptionPlan) -> PricingPlan:
    pricing = PricingPlan.active_by_name(plan.value)
    if pricing is None or pricing.price <= 0:
        raise PlanNotPriceableError()
    return pricing


def _client_key():
    client_key = current_app.config.get('TOSS_CLIENT_KEY')
    if not client_key:
        raise PaymentConfigurationError('결제 설정이 완료되지 않았습니다')
    return client_key


def _parse_amount(value):
    if isinstance(value, bool):
        raise ValidationError('결제 금액이 올바르지 않습니다', code='invalid_amount')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('결제 금액이 올바르지 않습니다', code='invalid_amount')


class BillingService:
    """Gateway-backed payment flows."""

    # ── Recurring charge ───────────────────────────────────

    @staticmethod
    def authorize_charge(target_user_id: str, cron_secret: Optional[str] = None,
                         caller: Optional[User] = None) -> str:
        """Check who may trigger a charge for ``target_user_id``.

        The scheduler proves itself with the shared cron secret; a human
        caller must be the subscriber or an admin. Returns 'scheduler' or
        'user'.
        """
        if cron_secret:
            expected = current_app.config.get('CRON_SECRET')
            if not expected or not hmac.compare_digest(
                cron_secret.encode('utf-8'), expected.encode('utf-8')
            ):
                current_app.logger.warning(f'Rejected charge for {target_user_id}: bad cron secret')
                raise AuthorizationError()
            return 'scheduler'

        if caller is None:
            raise AuthenticationError()
        if caller.id != target_user_id and not caller.is_admin:
            raise AuthorizationError()
        return 'user'

    @staticmethod
    def charge_subscription(user_id: str) -> dict:
        """Charge the stored billing agreement and renew the period.

        A declined charge appends one failed PaymentLog and leaves the
        subscription untouched. A successful charge applies the pending
        plan, if any, and starts a new one-month period.

        Raises:
            NoBillingAgreementError: no subscription or no billing key
            PlanNotPriceableError: charged plan has no active price
            PaymentFailedError: gateway declined or unreachable
        """
        subscription = Subscription.query.filter_by(user_id=user_id).first()
        if subscription is None or not subscription.has_billing_agreement:
            raise NoBillingAgreementError()

        user = subscription.user
        previous_plan = subscription.plan
        was_upgrade = subscription.pending_plan is not None
        plan_to_charge = subscription.pending_plan or subscription.plan
        pricing = _priced_plan(plan_to_charge)
        client = TossPaymentsClient.from_config()
        order_id = renewal_order_id(user_id)

        current_app.logger.info(
            f'Charging user {user_id}: {plan_to_charge.value} {pricing.price} (order {order_id})'
        )

        try:
            payment = client.charge_billing_key(
                billing_key=subscription.billing_key,
                customer_key=subscription.customer_key,
                amount=pricing.price,
                order_id=order_id,
                order_name=_order_name(plan_to_charge, '월 구독료'),
                customer_email=user.email,
                customer_name=user.display_name,
            )
        except TossPaymentsError as e:
            with atomic():
                db.session.add(PaymentLog(
                    user_id=user_id,
                    amount=pricing.price,
                    currency=_currency(),
                    status=PaymentLogStatus.FAILED,
                    transaction_id=order_id,
                    description=f'{plan_to_charge.value.upper()} 플랜 자동결제 실패: {e.message}',
                ))
            current_app.logger.warning(
                f'Renewal charge failed for user {user_id} ({order_id}): {e.code} {e.message}'
            )
            notify_renewal_failed(user, plan_to_charge.value, e.message)
            raise PaymentFailedError(e.message, e.code)

        now = utcnow()
        paid_at = parse_gateway_timestamp(payment.get('approvedAt'))
        if was_upgrade:
            description = (
                f'{previous_plan.value.upper()} → {plan_to_charge.value.upper()} 플랜 업그레이드 자동결제'
            )
        else:
            description = f'{plan_to_charge.value.upper()} 플랜 자동결제'

        try:
            with atomic():
                db.session.add(PaymentLog(
                    user_id=user_id,
                    amount=pricing.price,
                    currency=_currency(),
                    status=PaymentLogStatus.COMPLETED,
                    transaction_id=order_id,
                    payment_method=payment.get('method'),
                    description=description,
                    paid_at=paid_at,
                ))
                subscription.plan = plan_to_charge
                subscription.pending_plan = None
                subscription.current_period_start = now
                subscription.current_period_end = add_months(now, 1)
                subscription.status = SubscriptionStatus.ACTIVE
        except ServiceError:
            BillingService._record_unapplied_charge(
                user_id, pricing.price, order_id, payment.get('method'), paid_at, description
            )
            raise

        current_app.logger.info(
            f'Renewed user {user_id} on {plan_to_charge.value} until '
            f'{subscription.current_period_end.isoformat()} (upgrade: {was_upgrade})'
        )
        notify_renewal_succeeded(user, plan_to_charge.value, pricing.price, was_upgrade)

        return {
            'success': True,
            'orderId': payment.get('orderId') or order_id,
            'amount': payment.get('totalAmount', pricing.price),
        }

    @staticmethod
    def _record_unapplied_charge(user_id, amount, order_id, method, paid_at, description):
        """Keep an audit row for money taken whose subscription update was rolled back."""
        current_app.logger.error(
            f'Charge {order_id} succeeded but the subscription update for user {user_id} failed'
        )
        log = PaymentLog.query.filter_by(transaction_id=order_id, user_id=user_id).first()
        try:
            with atomic():
                if log is None:
                    log = PaymentLog(user_id=user_id, transaction_id=order_id, currency=_currency())
                    db.session.add(log)
                log.amount = amount
                log.status = PaymentLogStatus.COMPLETED
                log.payment_method = method
                log.paid_at = paid_at
                log.description = f'{description} ({UNAPPLIED_CHARGE_NOTE})'
        except ServiceError:
            current_app.logger.exception(f'Could not record unapplied charge {order_id}')

    @staticmethod
    def charge_due_subscriptions(now=None, dry_run=False) -> dict:
        """Charge every billing agreement whose period has ended.

        Each charge is independent: one failure does not stop the batch.
        """
        now = now or utcnow()
        due_user_ids = [
            row.user_id
            for row in (
                Subscription.query
                .filter(Subscription._billing_key_encrypted.isnot(None))
                .filter(Subscription.current_period_end.isnot(None))
                .filter(Subscription.current_period_end <= now)
                .order_by(Subscription.current_period_end)
                .all()
            )
        ]

        summary = {'due': len(due_user_ids), 'charged': [], 'failed': [], 'dryRun': dry_run}
        if dry_run:
            summary['charged'] = due_user_ids
            return summary

        for user_id in due_user_ids:
            try:
                result = BillingService.charge_subscription(user_id)
            except ServiceError as e:
                current_app.logger.warning(f'Scheduled charge failed for user {user_id}: {e.message}')
                summary['failed'].append({'userId': user_id, 'error': e.message, 'code': e.code})
            else:
                summary['charged'].append(result['orderId'])

        current_app.logger.info(
            f"Scheduled billing run: {len(summary['charged'])} charged, "
            f"{len(summary['failed'])} failed of {summary['due']} due"
        )
        return summary

    # ── Widget checkout ────────────────────────────────────

    @staticmethod
    def prepare_checkout(user: User, plan_name, amount) -> dict:
        """Create the pending log and return the payment-widget parameters."""
        if not plan_name or amount is None:
            raise ValidationError('플랜 정보가 필요합니다', code='plan_required')
        plan = parse_paid_plan(plan_name)
        amount = _parse_amount(amount)
        pricing = _priced_plan(plan)
        if amount != pricing.price:
            raise ValidationError('결제 금액이 올바르지 않습니다', code='amount_mismatch')
        client_key = _client_key()

        order_id = checkout_order_id()
        with atomic():
            db.session.add(PaymentLog(
                user_id=user.id,
                amount=amount,
                currency=_currency(),
                status=PaymentLogStatus.PENDING,
                transaction_id=order_id,
                description=f'{plan.value.upper()} 플랜 구독',
            ))

        app_url = current_app.config['APP_URL'].rstrip('/')
        current_app.logger.info(f'Checkout {order_id} prepared for user {user.id} ({plan.value})')
        return {
            'orderId': order_id,
            'amount': amount,
            'orderName': _order_name(plan, '월간 구독'),
            'customerName': user.display_name,
            'customerEmail': user.email,
            'successUrl': f'{app_url}/pricing/checkout/success?planName={plan.value}',
            'failUrl': f'{app_url}/pricing/checkout/fail',
            'clientKey': client_key,
            'customerKey': user.customer_key,
        }

    @staticmethod
    def _pending_log(user: User, order_id) -> PaymentLog:
        log = PaymentLog.query.filter_by(transaction_id=order_id, user_id=user.id).first()
        if log is None:
            raise NotFoundError('결제 정보를 찾을 수 없습니다', code='payment_not_found')
        if log.status != PaymentLogStatus.PENDING:
            raise ConflictError('이미 처리된 결제입니다', code='payment_already_processed')
        return log

    @staticmethod
    def confirm_checkout(user: User, payment_key, order_id, amount, plan_name) -> dict:
        """Approve a widget payment and put the user on the plan for a month."""
        if not payment_key or not order_id or amount is None or not plan_name:
            raise ValidationError('결제 정보가 누락되었습니다', code='missing_params')
        plan = parse_paid_plan(plan_name)
        amount = _parse_amount(amount)
        log = BillingService._pending_log(user, order_id)
        pricing = _priced_plan(plan)
        if not (pricing.price == amount == log.amount):
            raise ValidationError('결제 금액이 올바르지 않습니다', code='amount_mismatch')

        client = TossPaymentsClient.from_config()
        try:
            payment = client.confirm_payment(payment_key, order_id, amount)
        except TossPaymentsError as e:
            with atomic():
                log.status = PaymentLogStatus.FAILED
            current_app.logger.warning(f'Checkout {order_id} confirm failed: {e.code} {e.message}')
            raise PaymentFailedError(e.message, e.code)

        now = utcnow()
        paid_at = parse_gateway_timestamp(payment.get('approvedAt'))
        try:
            with atomic():
                log.status = PaymentLogStatus.COMPLETED
                log.payment_method = payment.get('method')
                log.paid_at = paid_at
                subscription = SubscriptionService.activate_paid_plan(user, plan, now)
        except ServiceError:
            BillingService._record_unapplied_charge(
                user.id, amount, order_id, payment.get('method'), paid_at, f'{plan.value.upper()} 플랜 구독'
            )
            raise

        current_app.logger.info(f'Checkout {order_id} confirmed: user {user.id} on {plan.value}')
        return {
            'success': True,
            'plan': plan.value,
            'orderId': order_id,
            'currentPeriodEnd': isoformat_utc(subscription.current_period_end),
        }

    @staticmethod
    def fail_checkout(user: User, order_id=None, code=None, message=None) -> dict:
        """Mark the caller's pending checkout failed after the widget reported an error."""
        if order_id:
            log = PaymentLog.query.filter_by(
                transaction_id=order_id, user_id=user.id, status=PaymentLogStatus.PENDING
            ).first()
            if log is not None:
                with atomic():
                    log.status = PaymentLogStatus.FAILED
                current_app.logger.info(f'Checkout {order_id} failed: {code} {message}')

        return {
            'success': False,
            'code': code or 'payment_failed',
            'message': message or '결제가 취소되었습니다',
        }

    # ── Billing-key registration ───────────────────────────

    @staticmethod
    def prepare_billing(user: User) -> dict:
        return {
            'customerKey': user.customer_key,
            'clientKey': _client_key(),
            'customerName': user.display_name,
            'customerEmail': user.email,
        }

    @staticmethod
    def activate_billing(user: User, auth_key, customer_key, plan_name) -> dict:
        """Issue a billing key, take the first payment and start the subscription."""
        if not auth_key or not customer_key or not plan_name:
            raise ValidationError('결제 정보가 누락되었습니다', code='missing_params')
        plan = parse_paid_plan(plan_name)
        if customer_key != user.customer_key:
            raise ValidationError('고객 정보가 일치하지 않습니다', code='customer_key_mismatch')
        pricing = _priced_plan(plan)
        client = TossPaymentsClient.from_config()

        try:
            issued = client.issue_billing_key(auth_key, customer_key)
        except TossPaymentsError as e:
            current_app.logger.warning(f'Billing key issue failed for user {user.id}: {e.code} {e.message}')
            raise PaymentFailedError(e.message or '빌링키 발급 실패', e.code)

        billing_key = issued.get('billingKey')
        if not billing_key:
            current_app.logger.error(f'Billing key response without billingKey for user {user.id}')
            raise InfrastructureError('빌링키 발급 실패', code='billing_key_missing')

        order_id = initial_order_id(user.id)
        try:
            payment = client.charge_billing_key(
                billing_key=billing_key,
                customer_key=customer_key,
                amount=pricing.price,
                order_id=order_id,
                order_name=_order_name(plan, '첫 결제'),
                customer_email=user.email,
                customer_name=user.display_name,
            )
        except TossPaymentsError as e:
            with atomic():
                db.session.add(PaymentLog(
                    user_id=user.id,
                    amount=pricing.price,
                    currency=_currency(),
                    status=PaymentLogStatus.FAILED,
                    transaction_id=order_id,
                    description=f'{plan.value.upper()} 플랜 첫 결제 실패: {e.message}',
                ))
            current_app.logger.warning(f'First charge failed for user {user.id}: {e.code} {e.message}')
            raise PaymentFailedError(e.message or '첫 결제 실패', e.code)

        now = utcnow()
        paid_at = parse_gateway_timestamp(payment.get('approvedAt'))
        description = f'{plan.value.upper()} 플랜 첫 결제 (빌링키 등록)'
        try:
            with atomic():
                db.session.add(PaymentLog(
                    user_id=user.id,
                    amount=pricing.price,
                    currency=_currency(),
                    status=PaymentLogStatus.COMPLETED,
                    transaction_id=order_id,
                    payment_method=payment.get('method'),
                    description=description,
                    paid_at=paid_at,
                ))
                subscription = SubscriptionService.activate_paid_plan(
                    user, plan, now, billing_key=billing_key, customer_key=customer_key
                )
        except ServiceError:
            BillingService._record_unapplied_charge(
                user.id, pricing.price, order_id, payment.get('method'), paid_at, description
            )
            raise

        current_app.logger.info(f'Billing agreement registered for user {user.id} on {plan.value}')
        notify_renewal_succeeded(user, plan.value, pricing.price, False)

        return {
            'success': True,
            'plan': plan.value,
            'orderId': order_id,
            'amount': pricing.price,
            'currentPeriodEnd': isoformat_utc(subscription.current_period_end),
        }

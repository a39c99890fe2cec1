"""
Coupon service.
Single-use code redemption and the admin-side coupon batches.
"""
import secrets
import string
import time

from flask import current_app
from sqlalchemy import func, update

from app.errors import (
    CouponAlreadyRedeemedError,
    CouponNotFoundError,
    InfrastructureError,
    ValidationError,
)
from app.extensions import db
from app.models.coupon import Coupon, normalize_coupon_code
from app.models.payments import PaymentLog, PaymentLogStatus
from app.models.subscription import SubscriptionStatus, plan_rank
from app.models.user import User
from app.services.persistence import atomic
from app.services.subscription_service import SubscriptionService, parse_paid_plan
from app.utils.dates import add_days, format_korean_long_date, isoformat_utc, utcnow
from app.utils.telegram import notify_coupon_redeemed

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_SEGMENTS = 4
CODE_SEGMENT_LENGTH = 4
MAX_BATCH_SIZE = 1000
MAX_CODE_ATTEMPTS = 100


def generate_coupon_code():
    """Random code in the form XXXX-XXXX-XXXX-XXXX."""
    return '-'.join(
        ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_SEGMENT_LENGTH))
        for _ in range(CODE_SEGMENTS)
    )


class CouponService:
    """Coupon redemption and administration."""

    @staticmethod
    def redeem(user: User, raw_code: str) -> dict:
        """Redeem a coupon for ``user``.

        The coupon update is conditioned on ``redeemed_by_id IS NULL`` so
        that of two concurrent redemptions exactly one matches a row; the
        subscription change and the audit log commit in the same
        transaction.

        Raises:
            ValidationError: empty code
            CouponNotFoundError: unknown code
            CouponAlreadyRedeemedError: redeemed before or concurrently
        """
        code = normalize_coupon_code(raw_code or '')
        if not code:
            raise ValidationError('쿠폰 코드를 입력해주세요', code='coupon_code_required')

        coupon = Coupon.query.filter_by(code=code).first()
        if coupon is None:
            raise CouponNotFoundError()
        if coupon.is_redeemed:
            raise CouponAlreadyRedeemedError()

        now = utcnow()
        expires_at = add_days(now, coupon.duration_days)
        plan = coupon.plan

        with atomic():
            result = db.session.execute(
                update(Coupon)
                .where(Coupon.id == coupon.id, Coupon.redeemed_by_id.is_(None))
                .values(redeemed_by_id=user.id, redeemed_at=now, expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                current_app.logger.warning(
                    f'Coupon {code} lost a concurrent redemption race (user {user.id})'
                )
                raise CouponAlreadyRedeemedError()

            # Billing agreement (if any) is kept: the coupon only sets plan and period
            subscription = SubscriptionService.ensure_subscription_exists(user)
            subscription.plan = plan
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.current_period_start = now
            subscription.current_period_end = expires_at
            if subscription.pending_plan is not None and plan_rank(subscription.pending_plan) <= plan_rank(plan):
                subscription.pending_plan = None

            db.session.add(PaymentLog(
                user_id=user.id,
                amount=0,
                currency=current_app.config['PAYMENT_CURRENCY'],
                status=PaymentLogStatus.COMPLETED,
                transaction_id=f'COUPON_{code}',
                payment_method='coupon',
                description=f'쿠폰 등록: {plan.value.upper()} 플랜 {coupon.duration_days}일 이용권 ({code})',
                paid_at=now,
            ))

        current_app.logger.info(
            f'Coupon {code} redeemed by user {user.id}: {plan.value} until {expires_at.isoformat()}'
        )
        notify_coupon_redeemed(user, coupon)

        return {
            'success': True,
            'message': (
                f'{subscription.plan_label} 플랜이 적용되었습니다. '
                f'유효기간은 {format_korean_long_date(expires_at)}까지입니다.'
            ),
            'plan': plan.value,
            'expiresAt': isoformat_utc(expires_at),
        }

    @staticmethod
    def generate_batch(count, plan='pro', duration_days=30, note=None) -> dict:
        """Create ``count`` unredeemed coupons grouped under one batch id."""
        if not isinstance(count, int) or count < 1 or count > MAX_BATCH_SIZE:
            raise ValidationError('생성 개수는 1~1000 사이여야 합니다', code='invalid_count')
        plan = parse_paid_plan(plan)
        if not isinstance(duration_days, int) or duration_days < 1:
            raise ValidationError('유효기간은 1일 이상이어야 합니다', code='invalid_duration')

        batch_id = f'BATCH-{int(time.time() * 1000)}'
        existing = {row.code for row in db.session.query(Coupon.code)}
        codes = []

        for _ in range(count):
            for _attempt in range(MAX_CODE_ATTEMPTS):
                code = generate_coupon_code()
                if code not in existing:
                    break
            else:
                raise InfrastructureError('쿠폰 코드 생성 중 오류가 발생했습니다', code='code_space_exhausted')
            existing.add(code)
            codes.append(code)

        with atomic():
            db.session.add_all([
                Coupon(
                    code=code,
                    plan=plan,
                    duration_days=duration_days,
                    batch_id=batch_id,
                    note=note or None,
                )
                for code in codes
            ])

        current_app.logger.info(f'Generated {count} {plan.value} coupons in {batch_id}')
        return {
            'success': True,
            'message': f'{count}개의 쿠폰이 생성되었습니다',
            'batchId': batch_id,
            'count': count,
            'codes': codes,
        }

    @staticmethod
    def list_coupons(status='all', batch_id=None, page=1, per_page=50) -> dict:
        """Paginated coupon list plus the known batches with their sizes."""
        query = Coupon.query
        if status == 'unused':
            query = query.filter(Coupon.redeemed_by_id.is_(None))
        elif status == 'used':
            query = query.filter(Coupon.redeemed_by_id.isnot(None))
        if batch_id:
            query = query.filter(Coupon.batch_id == batch_id)

        pagination = query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

        batches = (
            db.session.query(Coupon.batch_id, func.count(Coupon.id))
            .filter(Coupon.batch_id.isnot(None))
            .group_by(Coupon.batch_id)
            .order_by(Coupon.batch_id.desc())
            .all()
        )

        return {
            'coupons': [c.to_dict() for c in pagination.items],
            'pagination': {
                'page': page,
                'limit': per_page,
                'total': pagination.total,
                'totalPages': pagination.pages,
            },
            'batches': [{'batchId': b, 'count': n} for b, n in batches],
        }

    @staticmethod
    def delete_unused(coupon_ids=None, batch_id=None) -> dict:
        """Delete unredeemed coupons by batch or by id; redeemed ones are kept."""
        query = Coupon.query.filter(Coupon.redeemed_by_id.is_(None))
        if batch_id:
            query = query.filter(Coupon.batch_id == batch_id)
        elif isinstance(coupon_ids, list) and coupon_ids:
            query = query.filter(Coupon.id.in_(coupon_ids))
        else:
            raise ValidationError('삭제할 쿠폰을 지정해주세요', code='nothing_to_delete')

        with atomic():
            deleted = query.delete(synchronize_session=False)

        current_app.logger.info(f'Deleted {deleted} unused coupons')
        return {
            'success': True,
            'message': f'{deleted}개의 쿠폰이 삭제되었습니다',
            'deletedCount': deleted,
        }

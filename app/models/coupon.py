"""
Coupon model.
Single-use codes that grant a plan for a fixed number of days.
"""

from app.extensions import db
from app.models.subscription import SubscriptionPlan, enum_values
from app.utils.dates import utcnow, isoformat_utc


def normalize_coupon_code(raw_code):
    """Uppercase and strip surrounding whitespace."""
    return raw_code.upper().strip()


class Coupon(db.Model):
    """Single-use plan voucher.

    Lifecycle: unredeemed -> redeemed exactly once -> kept forever.
    Redemption is a conditional UPDATE on ``redeemed_by_id IS NULL``.
    """

    __tablename__ = 'coupons'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    plan = db.Column(
        db.Enum(SubscriptionPlan, name='subscription_plan', values_callable=enum_values),
        nullable=False,
        default=SubscriptionPlan.PRO,
    )
    duration_days = db.Column(db.Integer, nullable=False, default=30)
    batch_id = db.Column(db.String(40), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    redeemed_by_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='RESTRICT'), nullable=True, index=True
    )
    redeemed_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    redeemed_by = db.relationship('User', foreign_keys=[redeemed_by_id])

    def __repr__(self):
        return f'<Coupon {self.code} plan={self.plan.value}>'

    @property
    def is_redeemed(self):
        return self.redeemed_by_id is not None

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'plan': self.plan.value,
            'durationDays': self.duration_days,
            'batchId': self.batch_id,
            'note': self.note,
            'redeemedBy': self.redeemed_by_id,
            'redeemedAt': isoformat_utc(self.redeemed_at),
            'expiresAt': isoformat_utc(self.expires_at),
            'createdAt': isoformat_utc(self.created_at),
        }

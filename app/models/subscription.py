"""
Subscription model.
One row per user: plan, status, billing period, the gateway billing
agreement and an optional plan upgrade queued for the next renewal.
"""
import enum

from app.extensions import db
from app.utils.dates import utcnow, isoformat_utc
from app.utils.encryption import encrypt_value, decrypt_value


class SubscriptionPlan(str, enum.Enum):
    """Available subscription plans."""
    FREE = 'free'
    PRO = 'pro'
    EXPERT = 'expert'


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = 'active'
    PAST_DUE = 'past_due'
    CANCELED = 'canceled'
    EXPIRED = 'expired'


# Total order used for upgrade checks: free < pro < expert
PLAN_ORDER = {
    SubscriptionPlan.FREE: 0,
    SubscriptionPlan.PRO: 1,
    SubscriptionPlan.EXPERT: 2,
}

PAID_PLANS = (SubscriptionPlan.PRO, SubscriptionPlan.EXPERT)


def plan_rank(plan):
    """Rank of a plan (enum or name) in PLAN_ORDER; unknown names rank as free."""
    try:
        return PLAN_ORDER[SubscriptionPlan(plan)]
    except ValueError:
        return 0


def enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Subscription(db.Model):
    """User subscription.

    ``version`` is an optimistic-lock column: every UPDATE is conditioned
    on the version that was read, so two concurrent writers cannot both
    commit a change based on the same snapshot.
    """

    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey('users.id', ondelete='CASCADE'),
        unique=True,
        nullable=False,
        index=True,
    )

    plan = db.Column(
        db.Enum(SubscriptionPlan, name='subscription_plan', values_callable=enum_values),
        nullable=False,
        default=SubscriptionPlan.FREE,
    )
    status = db.Column(
        db.Enum(SubscriptionStatus, name='subscription_status', values_callable=enum_values),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    pending_plan = db.Column(
        db.Enum(SubscriptionPlan, name='subscription_plan', values_callable=enum_values),
        nullable=True,
    )

    # Gateway billing agreement (encrypted) and customer key
    _billing_key_encrypted = db.Column('billing_key', db.String(512), nullable=True)
    customer_key = db.Column(db.String(64), nullable=True)

    # Billing period (NULL when never billed)
    current_period_start = db.Column(db.DateTime, nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True, index=True)

    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    user = db.relationship('User', backref=db.backref('subscription', uselist=False))

    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<Subscription user={self.user_id} plan={self.plan.value}>'

    @property
    def billing_key(self):
        return decrypt_value(self._billing_key_encrypted)

    @billing_key.setter
    def billing_key(self, value):
        self._billing_key_encrypted = encrypt_value(value) if value else None

    @property
    def has_billing_agreement(self):
        return self._billing_key_encrypted is not None

    @property
    def is_coupon_lapsed(self):
        """Coupon-only period (no billing agreement) that has run out."""
        return (
            not self.has_billing_agreement
            and self.current_period_end is not None
            and utcnow() > self.current_period_end
            and self.plan != SubscriptionPlan.FREE
        )

    @property
    def plan_label(self):
        labels = {
            SubscriptionPlan.FREE: 'Free',
            SubscriptionPlan.PRO: 'Pro',
            SubscriptionPlan.EXPERT: 'Expert',
        }
        return labels.get(self.plan, self.plan.value)

    def to_dict(self):
        return {
            'plan': self.plan.value,
            'status': self.status.value,
            'pendingPlan': self.pending_plan.value if self.pending_plan else None,
            'currentPeriodStart': isoformat_utc(self.current_period_start),
            'currentPeriodEnd': isoformat_utc(self.current_period_end),
            'hasBillingAgreement': self.has_billing_agreement,
        }

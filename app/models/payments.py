"""
Payment log and pricing catalog models.
"""
import enum

from app.extensions import db
from app.models.subscription import enum_values
from app.utils.dates import utcnow, isoformat_utc


class PaymentLogStatus(str, enum.Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class PaymentLog(db.Model):
    """Append-only record of a payment attempt or a zero-amount billing event.

    Rows are never deleted. A pending row (checkout) is later moved to
    completed or failed by the gateway callback; every other row is
    written in its final state.
    """

    __tablename__ = 'payment_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True
    )
    amount = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default='KRW')
    status = db.Column(
        db.Enum(PaymentLogStatus, name='payment_log_status', values_callable=enum_values),
        nullable=False,
        default=PaymentLogStatus.PENDING,
        index=True,
    )
    transaction_id = db.Column(db.String(100), nullable=True, index=True)
    payment_method = db.Column(db.String(50), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    user = db.relationship('User', back_populates='payment_logs')

    def __repr__(self):
        return f'<PaymentLog {self.id} {self.status.value} {self.amount}>'

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'amount': self.amount,
            'currency': self.currency,
            'status': self.status.value,
            'transactionId': self.transaction_id,
            'paymentMethod': self.payment_method,
            'description': self.description,
            'paidAt': isoformat_utc(self.paid_at),
            'createdAt': isoformat_utc(self.created_at),
        }


class PricingPlan(db.Model):
    """Price list entry consumed by checkout and renewals."""

    __tablename__ = 'pricing_plans'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(20), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(50), nullable=False)
    price = db.Column(db.Integer, nullable=False, default=0)
    original_price = db.Column(db.Integer, nullable=True)
    currency = db.Column(db.String(3), nullable=False, default='KRW')
    monthly_analysis = db.Column(db.Integer, nullable=False, default=0)
    features = db.Column(db.JSON, nullable=False, default=list)
    is_popular = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    def __repr__(self):
        return f'<PricingPlan {self.name} {self.price}>'

    @classmethod
    def active_by_name(cls, name):
        return cls.query.filter_by(name=name, is_active=True).first()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'displayName': self.display_name,
            'price': self.price,
            'originalPrice': self.original_price,
            'currency': self.currency,
            'monthlyAnalysis': self.monthly_analysis,
            'features': self.features or [],
            'isPopular': self.is_popular,
            'displayOrder': self.display_order,
        }

"""
User model.
Role is a plain string ('user' | 'admin'); subscription plan lives on Subscription.
"""
import uuid
from enum import Enum

from werkzeug.security import generate_password_hash, check_password_hash

from app.extensions import db
from app.utils.dates import utcnow


class UserRole(str, Enum):
    USER = 'user'
    ADMIN = 'admin'


def _new_id():
    return str(uuid.uuid4())


class User(db.Model):
    """Account that owns projects, a subscription and payment history."""

    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    name = db.Column(db.String(100))
    role = db.Column(db.String(20), nullable=False, default=UserRole.USER.value)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Legacy credit balance, no longer read by any active flow
    credits = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    projects = db.relationship(
        'Project', back_populates='user', cascade='all, delete-orphan', lazy='dynamic'
    )
    payment_logs = db.relationship(
        'PaymentLog', back_populates='user', cascade='all, delete-orphan', lazy='dynamic'
    )
    usage_logs = db.relationship(
        'UsageLog', back_populates='user', cascade='all, delete-orphan', lazy='dynamic'
    )

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def display_name(self):
        return self.name or self.email

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    @property
    def current_plan(self):
        """Stored plan name, 'free' when the user has no subscription row."""
        if self.subscription:
            return self.subscription.plan.value
        return 'free'

    @property
    def customer_key(self):
        """Stable gateway customer key derived from the user id."""
        return f"CK_{self.id.replace('-', '')[:20]}"

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'plan': self.current_plan,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

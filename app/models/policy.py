"""
Quota models: per-group monthly limits and per-user monthly usage counters.
"""
import enum

from app.extensions import db
from app.utils.dates import utcnow
from app.models.subscription import enum_values

# Conventional "unlimited" value; limits are plain integers compared with <
UNLIMITED = 999999

POLICY_GROUPS = ('admin', 'expert', 'pro', 'free')


class UsageKind(str, enum.Enum):
    """Independent quota counters."""
    PROJECT = 'project'
    PRESENTATION = 'presentation'


class GroupPolicy(db.Model):
    """Monthly limits for a group (admin/expert/pro/free). Admin-editable."""

    __tablename__ = 'group_policies'

    id = db.Column(db.Integer, primary_key=True)
    group_name = db.Column(db.String(20), unique=True, nullable=False, index=True)
    monthly_project_limit = db.Column(db.Integer, nullable=False, default=0)
    monthly_presentation_limit = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    def __repr__(self):
        return f'<GroupPolicy {self.group_name} projects={self.monthly_project_limit}>'

    def limit_for(self, kind):
        if kind == UsageKind.PRESENTATION:
            return self.monthly_presentation_limit
        return self.monthly_project_limit

    def to_dict(self):
        return {
            'id': self.id,
            'groupName': self.group_name,
            'monthlyProjectLimit': self.monthly_project_limit,
            'monthlyPresentationLimit': self.monthly_presentation_limit,
            'description': self.description,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class UsageLog(db.Model):
    """Monotonic counter per (user, calendar month, kind).

    Created lazily by an upsert-with-increment; never decremented.
    """

    __tablename__ = 'usage_logs'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'year_month', 'kind', name='uq_usage_user_month_kind'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True
    )
    year_month = db.Column(db.String(7), nullable=False)
    kind = db.Column(
        db.Enum(UsageKind, name='usage_kind', values_callable=enum_values),
        nullable=False,
        default=UsageKind.PROJECT,
    )
    count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=True, default=utcnow, onupdate=utcnow)

    user = db.relationship('User', back_populates='usage_logs')

    def __repr__(self):
        return f'<UsageLog {self.user_id} {self.year_month} {self.kind.value}={self.count}>'

    def to_dict(self):
        return {
            'yearMonth': self.year_month,
            'kind': self.kind.value,
            'count': self.count,
        }

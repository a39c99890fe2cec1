"""
SQLAlchemy models for the GFC console.
All models are imported here so metadata is complete for migrations.
"""
from app.models.user import User, UserRole
from app.models.subscription import (
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    PLAN_ORDER,
    PAID_PLANS,
    plan_rank,
)
from app.models.coupon import Coupon, normalize_coupon_code
from app.models.policy import GroupPolicy, UsageLog, UsageKind, UNLIMITED, POLICY_GROUPS
from app.models.payments import PaymentLog, PaymentLogStatus, PricingPlan
from app.models.project import Project, ProjectFile, ProjectStatus, Report, ReportType

__all__ = [
    'User', 'UserRole',
    'Subscription', 'SubscriptionPlan', 'SubscriptionStatus',
    'PLAN_ORDER', 'PAID_PLANS', 'plan_rank',
    'Coupon', 'normalize_coupon_code',
    'GroupPolicy', 'UsageLog', 'UsageKind', 'UNLIMITED', 'POLICY_GROUPS',
    'PaymentLog', 'PaymentLogStatus', 'PricingPlan',
    'Project', 'ProjectFile', 'ProjectStatus', 'Report', 'ReportType',
]

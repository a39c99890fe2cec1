"""
Services package for the GFC console.
Contains business logic separated from routes.
"""
from app.services.account_service import AccountService
from app.services.billing_service import BillingService
from app.services.coupon_service import CouponService
from app.services.policy_service import PolicyService, PolicyCheckResult
from app.services.project_service import ProjectService, QuotaExceeded
from app.services.revenue_service import RevenueService
from app.services.subscription_service import SubscriptionService
from app.services.usage_service import UsageService
from app.services.user_admin_service import UserAdminService

__all__ = [
    'AccountService',
    'BillingService',
    'CouponService',
    'PolicyService',
    'PolicyCheckResult',
    'ProjectService',
    'QuotaExceeded',
    'RevenueService',
    'SubscriptionService',
    'UsageService',
    'UserAdminService',
]

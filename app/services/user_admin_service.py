"""
User administration.
Account overview for admins and the role/plan overrides that decide a
user's quota group.
"""
from typing import Optional

from flask import current_app

from app.errors import ConflictError, NotFoundError
from app.extensions import db
from app.models.policy import UsageLog
from app.models.project import Project
from app.models.subscription import SubscriptionPlan, SubscriptionStatus, plan_rank
from app.models.user import User
from app.services.persistence import atomic
from app.services.subscription_service import SubscriptionService
from app.utils.dates import isoformat_utc, utcnow

ADMIN_PROJECT_LIST_LIMIT = 100


def _subscription_summary(user: User) -> dict:
    subscription = user.subscription
    if subscription is None:
        return {
            'plan': SubscriptionPlan.FREE.value,
            'status': SubscriptionStatus.ACTIVE.value,
            'currentPeriodEnd': None,
        }
    return {
        'plan': subscription.plan.value,
        'status': subscription.status.value,
        'currentPeriodEnd': isoformat_utc(subscription.current_period_end),
    }


def _project_summary(project: Project) -> dict:
    data = project.to_dict()
    data['reports'] = [r.to_dict() for r in project.reports]
    return data


class UserAdminService:
    """Admin-side user listing and overrides."""

    @staticmethod
    def users_query():
        return User.query.order_by(User.created_at.desc())

    @staticmethod
    def user_summary(user: User) -> dict:
        return {
            **user.to_dict(),
            'subscription': _subscription_summary(user),
            'stats': {
                'projectCount': user.projects.count(),
                'usageLogCount': user.usage_logs.count(),
            },
        }

    @staticmethod
    def get_user(user_id: str) -> User:
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError('사용자를 찾을 수 없습니다', code='user_not_found')
        return user

    @staticmethod
    def get_user_detail(user_id: str) -> dict:
        """User with subscription (including its lock version), usage and projects."""
        user = UserAdminService.get_user(user_id)
        subscription = user.subscription

        usage_logs = (
            user.usage_logs
            .order_by(UsageLog.year_month.desc(), UsageLog.kind)
            .all()
        )
        projects = user.projects.order_by(Project.created_at.desc()).all()

        return {
            **user.to_dict(),
            'isActive': user.is_active,
            'subscription': (
                {**subscription.to_dict(), 'version': subscription.version}
                if subscription else None
            ),
            'usageLogs': [log.to_dict() for log in usage_logs],
            'projects': [_project_summary(p) for p in projects],
        }

    @staticmethod
    def update_user(acting_admin: User, user_id: str, role: Optional[str] = None,
                    plan: Optional[str] = None, expected_version: Optional[int] = None) -> dict:
        """Change a user's role and/or subscription plan.

        ``expected_version`` is the subscription version the admin saw;
        a mismatch means someone else changed the row in between.

        Setting ``free`` goes through the regular downgrade so any billing
        agreement is removed with it. A paid plan keeps the billing
        agreement; an ended coupon-only period is cleared so the granted
        plan does not lapse on the next read.
        """
        user = UserAdminService.get_user(user_id)
        subscription = user.subscription

        if expected_version is not None and (
            subscription is None or subscription.version != expected_version
        ):
            raise ConflictError(
                '다른 요청이 먼저 구독 정보를 변경했습니다. 새로고침 후 다시 시도해주세요.',
                code='stale_subscription',
            )

        if role is not None and role != user.role:
            previous_role = user.role
            with atomic():
                user.role = role
            current_app.logger.warning(
                f'Admin {acting_admin.id} changed role of {user.id}: {previous_role} -> {role}'
            )

        if plan is not None:
            target = SubscriptionPlan(plan)
            current_plan = subscription.plan if subscription else SubscriptionPlan.FREE
            if target == SubscriptionPlan.FREE:
                if current_plan != SubscriptionPlan.FREE:
                    SubscriptionService.downgrade_to_free(user)
            elif target != current_plan:
                with atomic():
                    subscription = SubscriptionService.ensure_subscription_exists(user)
                    subscription.plan = target
                    subscription.status = SubscriptionStatus.ACTIVE
                    if (subscription.pending_plan is not None
                            and plan_rank(subscription.pending_plan) <= plan_rank(target)):
                        subscription.pending_plan = None
                    if (not subscription.has_billing_agreement
                            and subscription.current_period_end is not None
                            and subscription.current_period_end <= utcnow()):
                        subscription.current_period_start = None
                        subscription.current_period_end = None
            current_app.logger.warning(
                f'Admin {acting_admin.id} set plan of {user.id}: {current_plan.value} -> {target.value}'
            )

        return UserAdminService.get_user_detail(user.id)

    @staticmethod
    def list_projects(limit: int = ADMIN_PROJECT_LIST_LIMIT) -> list:
        """Latest projects across all users with their owner."""
        projects = (
            Project.query
            .order_by(Project.created_at.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                **_project_summary(p),
                'user': {'id': p.user.id, 'email': p.user.email, 'name': p.user.name},
            }
            for p in projects
        ]

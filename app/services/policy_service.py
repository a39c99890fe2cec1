"""
Policy evaluator for quota-gated actions.

Combines the group policy, the caller's monthly usage and their
effective plan into an allow/deny decision. Denial is a normal result,
never an exception.
"""
from dataclasses import dataclass
from typing import Optional

from app.models.policy import GroupPolicy, UsageKind
from app.models.user import UserRole
from app.services.usage_service import UsageService

MISCONFIGURED_MESSAGE = '이용 정책이 설정되지 않았습니다. 관리자에게 문의하세요.'

_ACTION_LABELS = {
    UsageKind.PROJECT: '프로젝트',
    UsageKind.PRESENTATION: 'PT레포트',
}


@dataclass(frozen=True)
class PolicyCheckResult:
    allowed: bool
    limit: int
    current: int
    message: Optional[str] = None

    def to_dict(self):
        body = {'allowed': self.allowed, 'limit': self.limit, 'current': self.current}
        if self.message:
            body['message'] = self.message
        return body


class PolicyService:
    """Quota checks and the per-user policy snapshot."""

    @staticmethod
    def resolve_group(role: str, plan: Optional[str]) -> str:
        """Admins use the 'admin' group; everyone else the group named after their plan."""
        if role == UserRole.ADMIN.value:
            return 'admin'
        return plan or 'free'

    @staticmethod
    def _check(user_id: str, role: str, plan: Optional[str], kind: UsageKind) -> PolicyCheckResult:
        group_name = PolicyService.resolve_group(role, plan)
        current = UsageService.get_count(user_id, kind)

        policy = GroupPolicy.query.filter_by(group_name=group_name).first()
        if policy is None:
            # Fail closed: a missing policy row is a configuration error
            return PolicyCheckResult(
                allowed=False, limit=0, current=current, message=MISCONFIGURED_MESSAGE,
            )

        limit = policy.limit_for(kind)
        if current >= limit:
            label = _ACTION_LABELS[kind]
            return PolicyCheckResult(
                allowed=False,
                limit=limit,
                current=current,
                message=f'이번 달 {label} 생성 제한({limit}개)을 초과했습니다. 현재 {current}개 생성됨.',
            )

        return PolicyCheckResult(allowed=True, limit=limit, current=current)

    @staticmethod
    def check_project_creation_policy(user_id, role, plan=None) -> PolicyCheckResult:
        """May the user create another project this month?

        Read-only; the caller increments the project counter after the
        project has actually been created.
        """
        return PolicyService._check(user_id, role, plan, UsageKind.PROJECT)

    @staticmethod
    def check_presentation_creation_policy(user_id, role, plan=None) -> PolicyCheckResult:
        """May the user create another presentation this month?"""
        return PolicyService._check(user_id, role, plan, UsageKind.PRESENTATION)

    @staticmethod
    def get_user_policy_info(user, plan: Optional[str]) -> dict:
        """Quota snapshot for the user's effective plan this month."""
        group_name = PolicyService.resolve_group(user.role, plan)
        policy = GroupPolicy.query.filter_by(group_name=group_name).first()

        project_limit = policy.monthly_project_limit if policy else 0
        presentation_limit = policy.monthly_presentation_limit if policy else 0
        project_usage = UsageService.get_count(user.id, UsageKind.PROJECT)
        presentation_usage = UsageService.get_count(user.id, UsageKind.PRESENTATION)

        return {
            'groupName': group_name,
            'monthlyLimit': project_limit,
            'monthlyPresentationLimit': presentation_limit,
            'currentUsage': project_usage,
            'currentPresentationUsage': presentation_usage,
            'remaining': max(0, project_limit - project_usage),
            'remainingPresentation': max(0, presentation_limit - presentation_usage),
            'configured': policy is not None,
        }

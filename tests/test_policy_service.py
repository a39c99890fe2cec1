# =============================================================================
# GFC Console - Quota Policy Tests
# =============================================================================

import pytest
from unittest.mock import patch

from app.extensions import db
from app.models.policy import GroupPolicy, UsageKind, UNLIMITED
from app.services.policy_service import (
    MISCONFIGURED_MESSAGE,
    PolicyCheckResult,
    PolicyService,
)
from app.services.usage_service import UsageService


def _use(user, kind, times):
    for _ in range(times):
        UsageService.increment(user.id, kind)
    db.session.commit()


class TestResolveGroup:

    def test_admin_role_wins_over_plan(self):
        assert PolicyService.resolve_group('admin', 'free') == 'admin'

    def test_user_group_is_plan(self):
        assert PolicyService.resolve_group('user', 'expert') == 'expert'

    def test_missing_plan_is_free(self):
        assert PolicyService.resolve_group('user', None) == 'free'


class TestProjectPolicy:

    def test_allowed_under_limit(self, user, policies):
        _use(user, UsageKind.PROJECT, 2)

        result = PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        assert result == PolicyCheckResult(allowed=True, limit=3, current=2)

    def test_denied_at_limit(self, user, policies):
        _use(user, UsageKind.PROJECT, 3)

        result = PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        assert result.allowed is False
        assert result.limit == 3
        assert result.current == 3
        assert result.message == '이번 달 프로젝트 생성 제한(3개)을 초과했습니다. 현재 3개 생성됨.'

    def test_check_does_not_consume_quota(self, user, policies):
        PolicyService.check_project_creation_policy(user.id, 'user', 'free')
        PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        assert UsageService.get_count(user.id, UsageKind.PROJECT) == 0

    def test_paid_plan_uses_its_group(self, user, policies):
        _use(user, UsageKind.PROJECT, 5)

        result = PolicyService.check_project_creation_policy(user.id, 'user', 'pro')

        assert result.allowed is True
        assert result.limit == 10

    def test_admin_effectively_unlimited(self, admin_user, policies):
        _use(admin_user, UsageKind.PROJECT, 50)

        result = PolicyService.check_project_creation_policy(admin_user.id, 'admin', 'free')

        assert result.allowed is True
        assert result.limit == UNLIMITED

    def test_zero_limit_denies_first_action(self, user, policies):
        policies['free'].monthly_project_limit = 0
        db.session.commit()

        result = PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        assert result.allowed is False
        assert result.current == 0

    def test_missing_policy_fails_closed(self, user):
        result = PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        assert result.allowed is False
        assert result.limit == 0
        assert result.message == MISCONFIGURED_MESSAGE

    def test_unknown_plan_group_fails_closed(self, user, policies):
        result = PolicyService.check_project_creation_policy(user.id, 'user', 'enterprise')

        assert result.allowed is False
        assert result.message == MISCONFIGURED_MESSAGE

    def test_limit_resets_next_month(self, user, policies):
        with patch('app.services.usage_service.current_year_month', return_value='2026-10'):
            _use(user, UsageKind.PROJECT, 3)
            october = PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        with patch('app.services.usage_service.current_year_month', return_value='2026-11'):
            november = PolicyService.check_project_creation_policy(user.id, 'user', 'free')

        assert october.allowed is False
        assert october.current == 3
        assert november.allowed is True
        assert november.current == 0


class TestPresentationPolicy:

    def test_free_plan_has_no_presentations(self, user, policies):
        result = PolicyService.check_presentation_creation_policy(user.id, 'user', 'free')

        assert result.allowed is False
        assert result.limit == 0
        assert 'PT레포트' in result.message

    def test_presentation_counter_is_separate(self, user, policies):
        _use(user, UsageKind.PROJECT, 10)

        result = PolicyService.check_presentation_creation_policy(user.id, 'user', 'pro')

        assert result.allowed is True
        assert result.current == 0
        assert result.limit == 1

    def test_pro_presentation_limit_reached(self, user, policies):
        _use(user, UsageKind.PRESENTATION, 1)

        result = PolicyService.check_presentation_creation_policy(user.id, 'user', 'pro')

        assert result.allowed is False
        assert result.message == '이번 달 PT레포트 생성 제한(1개)을 초과했습니다. 현재 1개 생성됨.'


class TestPolicyInfo:

    def test_snapshot(self, user, policies):
        _use(user, UsageKind.PROJECT, 4)

        info = PolicyService.get_user_policy_info(user, 'pro')

        assert info == {
            'groupName': 'pro',
            'monthlyLimit': 10,
            'monthlyPresentationLimit': 1,
            'currentUsage': 4,
            'currentPresentationUsage': 0,
            'remaining': 6,
            'remainingPresentation': 1,
            'configured': True,
        }

    def test_remaining_never_negative(self, user, policies):
        _use(user, UsageKind.PROJECT, 5)

        info = PolicyService.get_user_policy_info(user, 'free')

        assert info['remaining'] == 0

    def test_unconfigured_group(self, user):
        info = PolicyService.get_user_policy_info(user, 'free')

        assert info['configured'] is False
        assert info['monthlyLimit'] == 0


class TestPolicyCheckResult:

    def test_result_is_immutable(self):
        result = PolicyCheckResult(allowed=True, limit=3, current=0)
        with pytest.raises(AttributeError):
            result.allowed = False

    def test_to_dict_omits_empty_message(self):
        assert PolicyCheckResult(True, 3, 1).to_dict() == {'allowed': True, 'limit': 3, 'current': 1}


def test_policy_lookup_is_by_group_name(user, policies):
    db.session.delete(GroupPolicy.query.filter_by(group_name='pro').one())
    db.session.commit()

    result = PolicyService.check_project_creation_policy(user.id, 'user', 'pro')

    assert result.allowed is False
    assert result.message == MISCONFIGURED_MESSAGE

"""
Tests for the admin endpoints: group policies, coupon batches, revenue, users and projects.
"""
import pytest
from datetime import datetime

from app.extensions import db
from app.models.coupon import Coupon
from app.models.payments import PaymentLog, PaymentLogStatus
from app.models.policy import GroupPolicy
from app.models.subscription import SubscriptionPlan
from app.services.project_service import ProjectService
from app.services.revenue_service import RevenueService
from app.utils.dates import current_year_month
from app.errors import ValidationError


class TestAdminAccess:

    @pytest.mark.parametrize('method, path', [
        ('get', '/api/admin/policies'),
        ('post', '/api/admin/coupons'),
        ('get', '/api/admin/payments'),
        ('get', '/api/admin/users'),
        ('get', '/api/admin/projects'),
    ])
    def test_regular_user_forbidden(self, client, user_headers, method, path):
        resp = getattr(client, method)(path, headers=user_headers, json={})
        assert resp.status_code == 403
        assert resp.get_json()['code'] == 'forbidden'

    def test_anonymous_rejected(self, client):
        assert client.get('/api/admin/policies').status_code == 401


class TestPolicyAdmin:

    def test_list(self, client, admin_headers, policies):
        body = client.get('/api/admin/policies', headers=admin_headers).get_json()
        assert [p['groupName'] for p in body] == ['admin', 'expert', 'free', 'pro']

    def test_create(self, client, admin_headers):
        resp = client.post('/api/admin/policies', json={
            'groupName': 'pro', 'monthlyProjectLimit': 12, 'monthlyPresentationLimit': 2,
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.get_json()['monthlyProjectLimit'] == 12
        assert GroupPolicy.query.filter_by(group_name='pro').one().monthly_presentation_limit == 2

    def test_upsert_existing(self, client, admin_headers, policies):
        resp = client.post('/api/admin/policies', json={
            'groupName': 'free', 'monthlyProjectLimit': 5,
        }, headers=admin_headers)

        assert resp.status_code == 200
        assert GroupPolicy.query.filter_by(group_name='free').count() == 1
        assert GroupPolicy.query.filter_by(group_name='free').one().monthly_project_limit == 5

    def test_rejects_negative_limit(self, client, admin_headers):
        resp = client.post('/api/admin/policies', json={
            'groupName': 'pro', 'monthlyProjectLimit': -1,
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == '월간 솔루션 제한은 0 이상의 숫자여야 합니다.'

    def test_rejects_unknown_group(self, client, admin_headers):
        resp = client.post('/api/admin/policies', json={
            'groupName': 'vip', 'monthlyProjectLimit': 1,
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_requires_group_and_limit(self, client, admin_headers):
        resp = client.post('/api/admin/policies', json={}, headers=admin_headers)
        assert resp.get_json()['error'] == '그룹명과 월간 솔루션 제한은 필수입니다.'

    def test_patch(self, client, admin_headers, policies):
        policy_id = policies['pro'].id

        resp = client.patch(f'/api/admin/policies/{policy_id}', json={
            'monthlyPresentationLimit': 3,
        }, headers=admin_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['monthlyPresentationLimit'] == 3
        assert body['monthlyProjectLimit'] == 10

    def test_delete_denies_group(self, client, admin_headers, user_headers, policies):
        resp = client.delete(f"/api/admin/policies/{policies['free'].id}", headers=admin_headers)
        assert resp.status_code == 200

        created = client.post('/api/projects', json={
            'companyName': '테스트', 'representative': '김대표',
        }, headers=user_headers)
        assert created.status_code == 403
        assert created.get_json()['error'] == '이용 정책이 설정되지 않았습니다. 관리자에게 문의하세요.'

    def test_missing_policy(self, client, admin_headers):
        resp = client.get('/api/admin/policies/999', headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()['error'] == '정책을 찾을 수 없습니다.'


class TestCouponAdmin:

    def test_generate_list_delete(self, client, admin_headers):
        created = client.post('/api/admin/coupons', json={
            'count': 3, 'plan': 'expert', 'durationDays': 60, 'note': 'partner',
        }, headers=admin_headers)
        assert created.status_code == 201
        batch_id = created.get_json()['batchId']

        listed = client.get(f'/api/admin/coupons?batchId={batch_id}', headers=admin_headers).get_json()
        assert listed['pagination']['total'] == 3
        assert listed['coupons'][0]['durationDays'] == 60

        deleted = client.delete('/api/admin/coupons', json={'batchId': batch_id}, headers=admin_headers)
        assert deleted.get_json()['deletedCount'] == 3
        assert Coupon.query.count() == 0

    def test_count_bounds(self, client, admin_headers):
        resp = client.post('/api/admin/coupons', json={'count': 0}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == '생성 개수는 1~1000 사이여야 합니다'


def _log(user, amount, status, paid_at, method='카드'):
    db.session.add(PaymentLog(
        user_id=user.id, amount=amount, status=status, paid_at=paid_at, payment_method=method,
    ))


class TestRevenue:

    @pytest.fixture
    def logs(self, user):
        _log(user, 29000, PaymentLogStatus.COMPLETED, datetime(2026, 3, 10, 3, 0))
        _log(user, 99000, PaymentLogStatus.COMPLETED, datetime(2026, 4, 2, 3, 0))
        _log(user, 29000, PaymentLogStatus.FAILED, datetime(2026, 4, 3, 3, 0))
        _log(user, 29000, PaymentLogStatus.REFUNDED, datetime(2026, 4, 5, 3, 0))
        _log(user, 0, PaymentLogStatus.COMPLETED, datetime(2025, 12, 31, 3, 0), method='coupon')
        db.session.commit()

    def test_all_time(self, client, admin_headers, logs):
        body = client.get('/api/admin/payments', headers=admin_headers).get_json()

        stats = body['stats']
        assert stats['totalRevenue'] == 128000
        assert stats['refundedRevenue'] == 29000
        assert stats['netRevenue'] == 99000
        assert stats['totalTransactions'] == 3
        assert stats['paymentMethodStats']['coupon'] == {'count': 1, 'amount': 0}
        assert len(body['payments']) == 5
        assert body['payments'][0]['userEmail'] == 'user@test.com'

    def test_month(self, client, admin_headers, logs):
        body = client.get('/api/admin/payments?period=month&year=2026&month=4', headers=admin_headers).get_json()

        assert body['stats']['totalRevenue'] == 99000
        assert body['stats']['byStatus']['failed'] == {'count': 1, 'amount': 29000}
        assert body['period'] == {'type': 'month', 'year': 2026, 'month': 4}

    def test_year_has_monthly_breakdown(self, app, logs):
        result = RevenueService.summary('year', 2026)

        monthly = result['stats']['monthlyRevenue']
        assert monthly['2026-03'] == 29000
        assert monthly['2026-04'] == 99000
        assert len(monthly) == 12

    def test_invalid_period(self, app):
        with pytest.raises(ValidationError):
            RevenueService.summary('week')


class TestUserAdmin:

    def test_list_users(self, client, admin_headers, user, billed_user):
        body = client.get('/api/admin/users', headers=admin_headers).get_json()

        assert body['pagination']['total'] == 3
        by_email = {u['email']: u for u in body['users']}
        assert by_email['billed@test.com']['subscription']['plan'] == 'pro'
        assert by_email['user@test.com']['stats'] == {'projectCount': 0, 'usageLogCount': 0}

    def test_user_detail(self, client, admin_headers, user, policies):
        ProjectService.create_project(user, '(주)테스트', '김대표')

        resp = client.get(f'/api/admin/users/{user.id}', headers=admin_headers)

        assert resp.status_code == 200
        detail = resp.get_json()['user']
        assert detail['subscription']['plan'] == 'free'
        assert isinstance(detail['subscription']['version'], int)
        assert detail['usageLogs'] == [{'yearMonth': current_year_month(), 'kind': 'project', 'count': 1}]
        assert detail['projects'][0]['companyName'] == '(주)테스트'

    def test_unknown_user(self, client, admin_headers):
        resp = client.get('/api/admin/users/no-such-user', headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()['code'] == 'user_not_found'

    def test_promote_to_admin_changes_quota_group(self, client, admin_headers, user, user_headers, policies):
        resp = client.patch(f'/api/admin/users/{user.id}', json={'role': 'admin'}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()['user']['role'] == 'admin'
        policy = client.get('/api/user/policy', headers=user_headers).get_json()
        assert policy['groupName'] == 'admin'

    def test_grant_paid_plan(self, client, admin_headers, user, user_headers, policies):
        resp = client.patch(
            f'/api/admin/users/{user.id}', json={'subscriptionPlan': 'pro'}, headers=admin_headers,
        )

        assert resp.status_code == 200
        assert user.subscription.plan == SubscriptionPlan.PRO
        policy = client.get('/api/user/policy', headers=user_headers).get_json()
        assert policy['groupName'] == 'pro'

    def test_set_free_removes_billing_agreement(self, client, admin_headers, billed_user):
        resp = client.patch(
            f'/api/admin/users/{billed_user.id}', json={'subscriptionPlan': 'free'}, headers=admin_headers,
        )

        assert resp.status_code == 200
        assert billed_user.subscription.plan == SubscriptionPlan.FREE
        assert billed_user.subscription.has_billing_agreement is False

    def test_stale_version_rejected(self, client, admin_headers, user):
        version = client.get(
            f'/api/admin/users/{user.id}', headers=admin_headers,
        ).get_json()['user']['subscription']['version']

        first = client.patch(f'/api/admin/users/{user.id}', json={
            'subscriptionPlan': 'expert', 'version': version,
        }, headers=admin_headers)
        second = client.patch(f'/api/admin/users/{user.id}', json={
            'subscriptionPlan': 'pro', 'version': version,
        }, headers=admin_headers)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.get_json()['code'] == 'stale_subscription'
        assert user.subscription.plan == SubscriptionPlan.EXPERT

    def test_invalid_role(self, client, admin_headers, user):
        resp = client.patch(f'/api/admin/users/{user.id}', json={'role': 'owner'}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == '유효하지 않은 역할입니다'


class TestProjectAdmin:

    def test_lists_all_users_projects(self, client, admin_headers, user, other_user, policies):
        ProjectService.create_project(user, 'A사', '김대표')
        ProjectService.create_project(other_user, 'B사', '이대표')

        projects = client.get('/api/admin/projects', headers=admin_headers).get_json()['projects']

        assert {p['user']['email'] for p in projects} == {'user@test.com', 'other@test.com'}
        assert all(p['reports'] == [] for p in projects)

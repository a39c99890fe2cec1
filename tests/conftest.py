# =============================================================================
# GFC Console - Pytest Fixtures Configuration
# =============================================================================

import pytest
from datetime import timedelta
from unittest.mock import MagicMock

from app import create_app
from app.extensions import db
from app.blueprints.api.decorators import create_access_token
from app.models.payments import PricingPlan
from app.models.policy import GroupPolicy
from app.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus
from app.models.user import User, UserRole
from app.services.storage import LocalFilesystemBlobStore
from app.utils.dates import utcnow
from app.utils.seed import seed_policies, seed_pricing_plans


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app(tmp_path):
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')
    application.extensions['blob_store'] = LocalFilesystemBlobStore(str(tmp_path / 'uploads'))

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


# =============================================================================
# Reference Data Fixtures
# =============================================================================

@pytest.fixture
def policies(app):
    """Default group policies (admin unlimited, expert 30/5, pro 10/1, free 3/0)."""
    seed_policies()
    return {p.group_name: p for p in GroupPolicy.query.all()}


@pytest.fixture
def pricing_plans(app):
    """Default price list (pro 29000, expert 99000)."""
    seed_pricing_plans()
    return {p.name: p for p in PricingPlan.query.all()}


# =============================================================================
# User Fixtures
# =============================================================================

def make_user(email, role=UserRole.USER, plan=SubscriptionPlan.FREE, name='Test User'):
    """Create a user with a subscription row on ``plan``."""
    user = User(email=email, name=name, role=role.value)
    user.set_password('Password123!')
    db.session.add(user)
    db.session.add(Subscription(user=user, plan=plan, status=SubscriptionStatus.ACTIVE))
    db.session.commit()
    return user


@pytest.fixture
def user(app):
    """A free-plan user."""
    return make_user('user@test.com')


@pytest.fixture
def other_user(app):
    return make_user('other@test.com', name='Other User')


@pytest.fixture
def admin_user(app):
    return make_user('admin@test.com', role=UserRole.ADMIN, name='Admin User')


@pytest.fixture
def billed_user(app, pricing_plans):
    """A pro subscriber with a billing agreement whose period has just ended."""
    user = make_user('billed@test.com', plan=SubscriptionPlan.PRO, name='Billed User')
    subscription = user.subscription
    subscription.billing_key = 'bk_test_billing_key'
    subscription.customer_key = user.customer_key
    subscription.current_period_start = utcnow() - timedelta(days=31)
    subscription.current_period_end = utcnow() - timedelta(minutes=5)
    db.session.commit()
    return user


# =============================================================================
# Auth Helpers
# =============================================================================

def auth_headers(user):
    return {'Authorization': f'Bearer {create_access_token(user.id)}'}


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


# =============================================================================
# Payment Gateway
# =============================================================================

def toss_payment(order_id='ORDER', amount=29000, method='카드'):
    """Successful Toss payment object as returned by confirm / billing charge."""
    return {
        'orderId': order_id,
        'totalAmount': amount,
        'method': method,
        'status': 'DONE',
        'approvedAt': '2026-10-17T10:00:00+09:00',
    }


@pytest.fixture
def toss_client(monkeypatch):
    """Replace the Toss client used by the billing service with a mock."""
    client = MagicMock()
    client.charge_billing_key.side_effect = lambda **kw: toss_payment(kw['order_id'], kw['amount'])
    client.confirm_payment.side_effect = lambda key, order_id, amount: toss_payment(order_id, amount)
    client.issue_billing_key.return_value = {'billingKey': 'bk_issued', 'customerKey': 'CK'}
    monkeypatch.setattr(
        'app.services.billing_service.TossPaymentsClient.from_config',
        classmethod(lambda cls, config=None: client),
    )
    return client

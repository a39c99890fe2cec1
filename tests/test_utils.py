# =============================================================================
# GFC Console - Encryption, Notification and Seed Utility Tests
# =============================================================================

import pytest
from unittest.mock import patch, MagicMock

import requests

from app.models.payments import PricingPlan
from app.models.policy import GroupPolicy, UNLIMITED
from app.utils.encryption import encrypt_value, decrypt_value
from app.utils.seed import seed_policies, seed_pricing_plans
from app.utils.telegram import (
    notify_downgrade,
    notify_renewal_failed,
    send_telegram_notification,
)


class TestEncryption:
    """Tests for Fernet encryption of billing keys at rest."""

    def test_encrypt_none_returns_none(self, app):
        assert encrypt_value(None) is None

    def test_encrypt_empty_string_returns_none(self, app):
        assert encrypt_value('') is None

    def test_encrypt_returns_different_value(self, app):
        encrypted = encrypt_value('bk_live_123')
        assert encrypted is not None
        assert encrypted != 'bk_live_123'

    def test_encrypt_then_decrypt(self, app):
        assert decrypt_value(encrypt_value('bk_live_123')) == 'bk_live_123'

    def test_decrypt_with_other_key_raises(self, app):
        encrypted = encrypt_value('bk_live_123')
        app.config['SECRET_KEY'] = 'rotated-secret'
        with pytest.raises(ValueError):
            decrypt_value(encrypted)

    def test_explicit_fernet_key(self, app):
        from cryptography.fernet import Fernet
        app.config['FERNET_KEY'] = Fernet.generate_key().decode()
        assert decrypt_value(encrypt_value('bk')) == 'bk'


class TestTelegram:

    def test_skipped_when_not_configured(self, app):
        with patch('app.utils.telegram.requests.post') as mock_post:
            assert send_telegram_notification('hello') is False
        mock_post.assert_not_called()

    @patch('app.utils.telegram.requests.post')
    def test_sends_html_message(self, mock_post, app):
        app.config['TELEGRAM_BOT_TOKEN'] = 'bot-token'
        app.config['TELEGRAM_CHAT_ID'] = '42'
        mock_post.return_value = MagicMock(ok=True)

        assert send_telegram_notification('<b>hi</b>') is True

        args, kwargs = mock_post.call_args
        assert args[0] == 'https://api.telegram.org/botbot-token/sendMessage'
        assert kwargs['json'] == {'chat_id': '42', 'text': '<b>hi</b>', 'parse_mode': 'HTML'}

    @patch('app.utils.telegram.requests.post')
    def test_network_error_is_swallowed(self, mock_post, app):
        app.config['TELEGRAM_BOT_TOKEN'] = 'bot-token'
        app.config['TELEGRAM_CHAT_ID'] = '42'
        mock_post.side_effect = requests.ConnectionError('down')

        assert send_telegram_notification('hi') is False

    @patch('app.utils.telegram.send_telegram_notification', return_value=True)
    def test_user_fields_are_escaped(self, mock_send, user):
        user.name = '<script>'

        notify_renewal_failed(user, 'pro', '카드 <거절>')

        message = mock_send.call_args[0][0]
        assert '&lt;script&gt;' in message
        assert '카드 &lt;거절&gt;' in message
        assert 'PRO' in message

    @patch('app.utils.telegram.send_telegram_notification', return_value=True)
    def test_downgrade_message(self, mock_send, user):
        notify_downgrade(user, 'expert')
        assert 'EXPERT' in mock_send.call_args[0][0]


class TestSeed:

    def test_seed_policies(self, app):
        assert seed_policies() == (4, 0)

        admin = GroupPolicy.query.filter_by(group_name='admin').one()
        assert admin.monthly_project_limit == UNLIMITED
        free = GroupPolicy.query.filter_by(group_name='free').one()
        assert (free.monthly_project_limit, free.monthly_presentation_limit) == (3, 0)

    def test_seed_is_idempotent(self, app):
        seed_policies()
        GroupPolicy.query.filter_by(group_name='pro').one().monthly_project_limit = 99

        assert seed_policies() == (0, 4)
        assert GroupPolicy.query.count() == 4
        assert GroupPolicy.query.filter_by(group_name='pro').one().monthly_project_limit == 10

    def test_seed_pricing_plans(self, app):
        assert seed_pricing_plans() == (3, 0)
        assert PricingPlan.active_by_name('pro').price == 29000
        assert PricingPlan.active_by_name('expert').price == 99000

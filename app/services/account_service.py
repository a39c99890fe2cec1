"""
Account service.
Registration and credential checks for the JSON auth endpoints.
"""
from flask import current_app

from app.errors import AuthenticationError, ConflictError
from app.extensions import db
from app.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus
from app.models.user import User
from app.services.persistence import atomic


class EmailAlreadyRegisteredError(ConflictError):
    status_code = 409
    code = 'email_taken'
    default_message = '이미 사용 중인 이메일입니다.'


class AccountService:

    @staticmethod
    def register(email: str, password: str, name: str = None) -> User:
        """Create the user and its free subscription in one transaction."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            raise EmailAlreadyRegisteredError()

        user = User(email=email, name=name or None)
        user.set_password(password)
        with atomic():
            db.session.add(user)
            db.session.add(Subscription(
                user=user,
                plan=SubscriptionPlan.FREE,
                status=SubscriptionStatus.ACTIVE,
            ))

        current_app.logger.info(f'New account registered: {user.id}')
        return user

    @staticmethod
    def authenticate(email: str, password: str) -> User:
        user = User.query.filter_by(email=(email or '').strip().lower()).first()
        if user is None or not user.check_password(password or ''):
            current_app.logger.info('Failed login attempt')
            raise AuthenticationError('이메일 또는 비밀번호가 올바르지 않습니다', code='invalid_credentials')
        if not user.is_active:
            raise AuthenticationError('비활성화된 계정입니다', code='account_disabled')
        return user

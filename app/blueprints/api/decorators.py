"""
JWT authentication decorators for the REST API.
"""
from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import request, current_app

from app.blueprints.api.helpers import api_error
from app.errors import AuthenticationError, AuthorizationError
from app.extensions import db
from app.models.user import User


def _secret():
    return current_app.config.get('JWT_SECRET_KEY') or current_app.config['SECRET_KEY']


def create_access_token(user_id, expires_minutes=None):
    """Create a JWT access token."""
    if expires_minutes is None:
        expires_minutes = current_app.config['JWT_ACCESS_EXPIRES_MINUTES']
    payload = {
        'sub': str(user_id),
        'type': 'access',
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, _secret(), algorithm='HS256')


def create_refresh_token(user_id, expires_days=None):
    """Create a JWT refresh token (longer-lived)."""
    if expires_days is None:
        expires_days = current_app.config['JWT_REFRESH_EXPIRES_DAYS']
    payload = {
        'sub': str(user_id),
        'type': 'refresh',
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(days=expires_days),
    }
    return jwt.encode(payload, _secret(), algorithm='HS256')


def decode_token(token):
    """Decode and validate a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, _secret(), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_current_api_user():
    """Extract user from Authorization header. Returns (user, error_response)."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None, api_error(AuthenticationError(code='missing_token'))

    payload = decode_token(auth_header[7:])
    if payload is None:
        return None, api_error(AuthenticationError(
            '세션이 만료되었습니다. 다시 로그인해주세요.', code='invalid_token'
        ))

    if payload.get('type') != 'access':
        return None, api_error(AuthenticationError(code='wrong_token_type'))

    user = db.session.get(User, payload.get('sub'))
    if user is None or not user.is_active:
        return None, api_error(AuthenticationError(code='user_not_found'))

    return user, None


def jwt_required(f):
    """Decorator: require valid JWT access token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def jwt_optional(f):
    """Decorator: attach the user when a valid token is sent, else None."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user = None
        if request.headers.get('Authorization'):
            user, error = get_current_api_user()
            if error:
                return error
        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator: require a valid token belonging to an admin."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        if not user.is_admin:
            return api_error(AuthorizationError())
        request.api_user = user
        return f(*args, **kwargs)
    return decorated

"""
API Authentication endpoints: registration, JWT login, refresh, and user info.
"""
from flask import request, jsonify, current_app

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import (
    create_access_token,
    create_refresh_token,
    decode_token,
    jwt_required,
)
from app.blueprints.api.helpers import load_json
from app.blueprints.api.schemas import LoginSchema, RefreshSchema, RegisterSchema, UserSchema
from app.errors import AuthenticationError
from app.extensions import db, limiter
from app.models.user import User
from app.services.account_service import AccountService


def _token_response(user, status=200):
    return jsonify({
        'data': {
            'access_token': create_access_token(user.id),
            'refresh_token': create_refresh_token(user.id),
            'token_type': 'Bearer',
            'expires_in': current_app.config['JWT_ACCESS_EXPIRES_MINUTES'] * 60,
            'user': UserSchema().dump(user),
        }
    }), status


@api_bp.route('/auth/register', methods=['POST'])
@limiter.limit('5 per minute')
def api_register():
    """Create an account on the free plan and return JWT tokens.

    Request body:
        {"email": "...", "password": "...", "name": "..."}
    """
    data = load_json(RegisterSchema())
    user = AccountService.register(data['email'], data['password'], data.get('name'))
    return _token_response(user, status=201)


@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit('10 per minute')
def api_login():
    """Authenticate user and return JWT tokens.

    Request body:
        {"email": "...", "password": "..."}

    Returns:
        {"data": {"access_token": "...", "refresh_token": "...", "user": {...}}}
    """
    data = load_json(LoginSchema())
    user = AccountService.authenticate(data['email'], data['password'])
    return _token_response(user)


@api_bp.route('/auth/refresh', methods=['POST'])
@limiter.limit('20 per minute')
def api_refresh():
    """Exchange a refresh token for a new access token.

    Request body:
        {"refresh_token": "..."}
    """
    data = load_json(RefreshSchema())

    payload = decode_token(data['refresh_token'])
    if payload is None or payload.get('type') != 'refresh':
        raise AuthenticationError('세션이 만료되었습니다. 다시 로그인해주세요.', code='invalid_token')

    user = db.session.get(User, payload.get('sub'))
    if user is None or not user.is_active:
        raise AuthenticationError(code='user_not_found')

    return jsonify({
        'data': {
            'access_token': create_access_token(user.id),
            'token_type': 'Bearer',
            'expires_in': current_app.config['JWT_ACCESS_EXPIRES_MINUTES'] * 60,
        }
    }), 200


@api_bp.route('/auth/me', methods=['GET'])
@jwt_required
def api_me():
    """Current authenticated user profile."""
    return jsonify({
        'data': UserSchema().dump(request.api_user),
    }), 200

"""
API Blueprint: JSON endpoints with JWT authentication.
Serves the web frontend, the payment redirects it relays and the
billing scheduler.
"""
import os
from flask import Blueprint
from flask_cors import CORS

api_bp = Blueprint('api', __name__)

# Allowed origins via APP_CORS_ORIGINS env var (comma-separated)
_cors_origins = os.environ.get('APP_CORS_ORIGINS', 'http://localhost:3000,http://localhost:5000')
_allowed_origins = [o.strip() for o in _cors_origins.split(',') if o.strip()]

CORS(api_bp, resources={r"/*": {
    "origins": _allowed_origins,
    "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    "allow_headers": ["Authorization", "Content-Type", "X-Request-ID"],
    "expose_headers": ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "X-Request-ID"],
    "max_age": 600,
}})

from app.blueprints.api import (  # noqa: E402, F401
    admin,
    auth,
    coupons,
    payments,
    pricing,
    projects,
    subscriptions,
)

"""
GFC Console Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import time
import uuid
from datetime import datetime, timezone

import click
import sentry_sdk
from flask import Flask, jsonify, request, g
from flask_compress import Compress
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.config import config
from app.errors import ServiceError
from app.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
        environment=os.environ.get('FLASK_ENV', 'production'),
        send_default_pii=False,
    )
    app.logger.info('Sentry error tracking initialized.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions (database, limiter, cache, blob store)
    init_extensions(app)

    # Enable response compression (gzip)
    Compress(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from app.blueprints.api import api_bp

    # JSON API with JWT auth
    app.register_blueprint(api_bp, url_prefix='/api')


def register_error_handlers(app):
    """Map service errors and HTTP errors to the JSON error body."""

    @app.errorhandler(ServiceError)
    def service_error(error):
        if error.status_code >= 500:
            app.logger.error(
                'Service error %s: %s (request_id=%s)',
                error.code, error.message, g.get('request_id', '-'),
            )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': '요청한 경로를 찾을 수 없습니다', 'code': 'not_found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': '허용되지 않은 요청 방식입니다', 'code': 'method_not_allowed'}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({'error': '파일이 너무 큽니다', 'code': 'payload_too_large'}), 413

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({
            'error': '요청이 너무 많습니다. 잠시 후 다시 시도해주세요.',
            'code': 'rate_limit_exceeded',
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error(
            '500 Internal Server Error: %s (request_id=%s)',
            type(error).__name__, request_id, exc_info=True,
        )
        return jsonify({
            'error': '서버 오류가 발생했습니다',
            'code': 'internal_error',
            'request_id': request_id,
        }), 500


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-policies')
    def init_policies():
        """Create or reset the default group policies."""
        from app.utils.seed import seed_policies

        created, updated = seed_policies()
        print(f'Group policies: {created} created, {updated} updated.')

    @app.cli.command('init-pricing-plans')
    def init_pricing_plans():
        """Create or reset the default pricing plans."""
        from app.extensions import cache
        from app.blueprints.api.pricing import PRICING_CACHE_KEY
        from app.utils.seed import seed_pricing_plans

        created, updated = seed_pricing_plans()
        cache.delete(PRICING_CACHE_KEY)
        print(f'Pricing plans: {created} created, {updated} updated.')

    @app.cli.command('charge-due-subscriptions')
    @click.option('--dry-run', is_flag=True, help='List due subscriptions without charging')
    def charge_due_subscriptions(dry_run):
        """Charge every billing agreement whose period has ended."""
        from app.services.billing_service import BillingService

        print("=" * 50)
        print("SUBSCRIPTION RENEWALS")
        print("=" * 50)
        if dry_run:
            print("[DRY RUN] No charge will be made")
            print()

        summary = BillingService.charge_due_subscriptions(dry_run=dry_run)

        print(f"Due: {summary['due']}")
        if dry_run:
            for user_id in summary['charged']:
                print(f"  - {user_id}")
            return

        print(f"Charged: {len(summary['charged'])}")
        print(f"Failed: {len(summary['failed'])}")
        for failure in summary['failed']:
            print(f"  ! {failure['userId']}: {failure['error']}")

        if summary['failed']:
            raise SystemExit(1)

    @app.cli.command('set-admin')
    @click.argument('email')
    @click.option('--revoke', is_flag=True, help='Demote the account back to a regular user')
    def set_admin(email, revoke):
        """Grant (or revoke) the admin role for an account."""
        from app.models.user import User, UserRole

        user = User.query.filter_by(email=email.strip().lower()).first()
        if user is None:
            print(f'No user with email {email}')
            raise SystemExit(1)

        user.role = UserRole.USER.value if revoke else UserRole.ADMIN.value
        db.session.commit()
        print(f'{user.email} is now {user.role}.')


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout (for cloud log aggregation).
    Development: plain text.
    """
    if app.testing:
        return

    # Request ID middleware
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.request_started = time.monotonic()

    @app.after_request
    def log_request(response):
        elapsed_ms = int((time.monotonic() - g.get('request_started', time.monotonic())) * 1000)
        response.headers['X-Request-ID'] = g.get('request_id', '-')
        app.logger.info(
            '%s %s %s %dms',
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)

        # Module loggers (services, storage, gateway client) share the handler
        app_logger = logging.getLogger('app')
        app_logger.handlers.clear()
        app_logger.addHandler(stream_handler)
        app_logger.setLevel(logging.INFO)

        app.logger.info('GFC console startup (JSON logging)')
    else:
        # Development: plain text
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger('app').setLevel(logging.DEBUG)
        app.logger.info('GFC console startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Clickjacking protection
        response.headers['X-Frame-Options'] = 'DENY'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug and not app.testing:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # API responses are per-user; never cache them in shared proxies
        if request.path.startswith('/api/') and 'Cache-Control' not in response.headers:
            response.headers['Cache-Control'] = 'no-store'

        return response

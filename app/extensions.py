"""
Flask extensions initialization.
Extensions are initialized here and bound to the app in the factory.
"""
import atexit

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_caching import Cache

# Database
db = SQLAlchemy()

# Database migrations
migrate = Migrate()

# Rate Limiting
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=['100 per minute']
)

# Caching
cache = Cache()


def init_extensions(app):
    """Initialize all extensions with the Flask app."""
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cache.init_app(app)

    # Blob storage strategy is selected once, here, from config
    from app.services.storage import create_blob_store
    app.extensions['blob_store'] = create_blob_store(app.config)

    atexit.register(dispose_engine, app)


def dispose_engine(app):
    """Close pooled database connections at process shutdown."""
    with app.app_context():
        db.engine.dispose()
    app.logger.debug('Database engine disposed')

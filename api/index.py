# =============================================================================
# GFC Console - Serverless Entry Point
# WSGI application for the Vercel Python runtime
# =============================================================================

from app import create_app

# The runtime serves the module-level 'app' WSGI callable
app = create_app()

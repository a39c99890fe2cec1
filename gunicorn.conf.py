# =============================================================================
# GFC Console - Gunicorn Production Configuration
# =============================================================================
import os
import multiprocessing

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Workers: 2 * CPU + 1, capped for small instances
workers = int(os.environ.get('WEB_CONCURRENCY', min(multiprocessing.cpu_count() * 2 + 1, 4)))
threads = int(os.environ.get('GUNICORN_THREADS', 2))
worker_class = "gthread"

# Preload app so workers share the imported code
preload_app = True

# Timeouts: a checkout request waits on the payment gateway (TOSS_TIMEOUT)
timeout = int(os.environ.get('GUNICORN_TIMEOUT', 60))
graceful_timeout = 30
keepalive = 5

# Logging (the app itself logs JSON to stdout)
accesslog = "-" if os.environ.get("GUNICORN_ACCESS_LOG", "false").lower() == "true" else None
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")

# Recycle workers to bound memory growth from large uploads
max_requests = 1000
max_requests_jitter = 50

# Request line/header limits
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

# Behind the platform load balancer
forwarded_allow_ips = "*"

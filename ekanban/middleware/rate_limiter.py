"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in ekanban/__init__.py with no default limits; this module
applies granular limits per route category.

Usage:
    from ekanban.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Blueprints that mutate kanban state
WRITE_BLUEPRINTS = ("kanban", "kanban_chain", "status_chain", "reference")

# Read-only aggregation
READ_BLUEPRINTS = ("dashboard",)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Kanban / chain / reference endpoints: 120/minute
        - Dashboards:                           300/minute (SPA polling)
        - Health check:                         exempt

    Rate limiting is disabled in testing mode or when RATELIMIT_ENABLED
    is false.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("120/minute")(bp)

    for bp_name in READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("300/minute")(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — write: 120/min, dashboards: 300/min")

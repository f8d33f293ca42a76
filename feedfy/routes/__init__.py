"""
HTTP routes. Each module exposes register(app).
"""

from feedfy.routes import (admin, chat, communities, courses, logs, media, posts, profile, social,
                           webhooks)

MODULES = (posts, social, profile, courses, communities, chat, media, admin, logs, webhooks)


def register_all(app):
    for module in MODULES:
        module.register(app)

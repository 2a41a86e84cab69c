"""
Acting-user resolution and role gating for the HTTP layer.

The caller identifies themselves with the ``X-User-Id`` header; the user
must exist and be active. Role checks happen here, never in the engine.

Usage:
    @bp.route("/workflow-periods/<int:period_id>/workflow", methods=["PUT"])
    @require_roles("MANAGER", "PARTNER")
    def update_workflow(period_id):
        actor = g.current_user
"""

import functools
import logging

from flask import g, request

from filingflow.models import db
from filingflow.models.team import User
from filingflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"


def load_acting_user() -> User | None:
    """Return the active user named by the request header, or None."""
    raw = request.headers.get(USER_HEADER, "").strip()
    if not raw.isdigit():
        return None
    user = db.session.get(User, int(raw))
    if user is None or not user.is_active:
        return None
    return user


def require_user(f):
    """Decorator: resolve the acting user into ``g.current_user`` or answer 401."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = load_acting_user()
        if user is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def require_roles(*roles: str):
    """
    Decorator: require an authenticated user holding one of *roles*.

    Implies ``require_user``.
    """
    def decorator(f):
        @functools.wraps(f)
        @require_user
        def decorated(*args, **kwargs):
            user = g.current_user
            if user.role not in roles:
                logger.warning(
                    "User %d denied: role %s not in %s on %s",
                    user.id, user.role, roles, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN, "Permission denied", details={"required_roles": list(roles)},
                )
            return f(*args, **kwargs)
        return decorated
    return decorator

# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User

ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Resolve the acting user for write and read routes.

    Authentication itself happens upstream; the gateway forwards the
    authenticated user id in the X-User-Id header. Sets g.actor.

    Returns 401 if:
    - Header missing or not an integer
    - User unknown or deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not (raw.isascii() and raw.isdigit()):
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Invalid or inactive user", "code": "unauthenticated"}), 401

        g.actor = user
        return f(*args, **kwargs)

    return decorated_function

# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, request

from .errors import AuthError, error_response
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext

    Returns 401 JSON if the header is missing, or the token is unknown,
    expired, idle too long, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return error_response(AuthError("Authentication required"))

        context = session_service.validate_session(token)
        if not context:
            return error_response(AuthError("Invalid or expired token"))

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function

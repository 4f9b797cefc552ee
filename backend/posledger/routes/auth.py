# Overview: Login, token verification and logout.

from flask import Blueprint, current_app, g, request

from ..decorators import bearer_token, require_auth
from ..errors import AuthError, PosError, ValidationError, error_response, internal_error_response
from ..responses import ok
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create a session token.

    Body: {"username": str, "password": str}
    The plaintext token is returned once; only its hash is stored.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            raise ValidationError("username and password required")

        user = auth_service.authenticate(username, password)
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return ok("Login successful", {
            "token": token,
            "user": user.to_dict(),
            "session": session.to_dict(),
        })
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return internal_error_response()


@auth_bp.get("/verify")
@require_auth
def verify_route():
    return ok("Token valid", {"user": g.current_user.to_dict()})


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer session."""
    try:
        token = bearer_token()
        if not token:
            return error_response(AuthError("Authorization header required"))
        if not session_service.revoke_session(token, reason="User logout"):
            return error_response(AuthError("Invalid or expired token"))
        return ok("Logout successful")
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return internal_error_response()

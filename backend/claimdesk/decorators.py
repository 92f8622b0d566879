# Overview: Request and capability decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import AuthenticationError
from .responses import error_response
from .services import permission_service, session_service


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid access token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired, idle or revoked token
    - User account no longer active
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return error_response("Authentication required", 401)

        try:
            context = session_service.validate_access_token(token)
        except AuthenticationError as e:
            current_app.logger.info("Rejected token on %s: %s", request.path, e.reason)
            return error_response(e.message, e.status_code)

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Require one capability of the caller's role. Denials are audited.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response("Authentication required", 401)

            user = g.current_user
            if not permission_service.user_has_capability(user, capability):
                permission_service.log_access_denied(
                    user,
                    resource=f"{request.method} {request.path}",
                    reason=f"missing capability {capability}",
                )
                return error_response("Access denied", 403)

            return f(*args, **kwargs)

        return decorated_function
    return decorator

from functools import wraps

from flask import current_app, g, request

from ..services.token_service import InvalidTokenError, decode_token
from .policy import is_admin, lookup
from .responses import error_response


def _bearer():
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth[7:].strip()
    return None


def policy_required(resource, action):
    """Validate the bearer token, then apply the ``(resource, action)`` policy."""
    rule = lookup(resource, action)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _bearer()
            if not token:
                return error_response("Missing bearer token", 401)
            try:
                claims = decode_token(token)
            except InvalidTokenError as e:
                current_app.logger.warning("Rejected token on %s: %s", request.path, e)
                return error_response("Invalid or expired token", 401)

            g.current_user = claims
            if not rule(claims, kwargs):
                current_app.logger.warning(
                    "Policy %s.%s denied user_id=%s role=%s",
                    resource,
                    action,
                    claims["user_id"],
                    claims.get("role"),
                )
                return error_response("You are not allowed to perform this action", 403)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def current_user_id():
    return g.current_user["user_id"]


def current_user_is_admin():
    return is_admin(g.get("current_user"))


def include_deleted_requested():
    """Admins may list soft-deleted rows with ?include_deleted=true."""
    flag = request.args.get("include_deleted", "").lower() in ("1", "true", "yes")
    return flag and current_user_is_admin()

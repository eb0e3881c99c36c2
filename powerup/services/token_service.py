"""
Bearer token issuing and decoding.

Tokens are HS256 JWTs signed with ``JWT_KEY`` and scoped to
``JWT_ISSUER`` / ``JWT_AUDIENCE``. The user id always travels in ``sub``.
"""

import datetime

import jwt
from flask import current_app

ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    """Raised when a bearer token is missing claims, expired or badly signed."""


def generate_token(user) -> str:
    config = current_app.config
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "is_admin": bool(user.is_admin),
        "iss": config["JWT_ISSUER"],
        "aud": config["JWT_AUDIENCE"],
        "iat": now,
        "exp": now + datetime.timedelta(hours=config.get("JWT_EXPIRES_HOURS", 24)),
    }
    return jwt.encode(payload, config["JWT_KEY"], algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Validate ``token`` and return its claims.

    The returned dict always has an integer ``user_id`` and a ``role``.
    """
    config = current_app.config
    try:
        claims = jwt.decode(
            token,
            config["JWT_KEY"],
            algorithms=[ALGORITHM],
            audience=config["JWT_AUDIENCE"],
            issuer=config["JWT_ISSUER"],
            leeway=0,
            options={"require": ["exp", "iss", "aud", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise InvalidTokenError(str(e)) from e

    try:
        claims["user_id"] = int(claims["sub"])
    except (TypeError, ValueError) as e:
        raise InvalidTokenError("Token subject is not a user id") from e

    if not claims.get("role"):
        raise InvalidTokenError("Token has no role claim")
    return claims

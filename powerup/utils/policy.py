"""
Authorization policy table.

Every protected view is looked up here by ``(resource, action)``. A rule is a
callable ``rule(claims, view_kwargs) -> bool`` evaluated after the bearer
token has been validated.
"""

from ..models import UserRole


def authenticated(claims, view_kwargs):
    return True


def require_roles(*roles):
    allowed = {role.value for role in roles}

    def rule(claims, view_kwargs):
        return claims.get("role") in allowed

    rule.__name__ = "require_" + "_or_".join(sorted(allowed)).lower()
    return rule


def self_or_admin(id_arg):
    """Caller is the user addressed by the ``id_arg`` URL value, or an Admin."""

    def rule(claims, view_kwargs):
        if claims.get("role") == UserRole.Admin.value:
            return True
        return claims.get("user_id") == view_kwargs.get(id_arg)

    rule.__name__ = f"self_or_admin_{id_arg}"
    return rule


admin_only = require_roles(UserRole.Admin)
member_only = require_roles(UserRole.Member)


POLICIES = {
    ("users", "list"): admin_only,
    ("users", "get"): self_or_admin("user_id"),
    ("users", "create"): admin_only,
    ("users", "update"): self_or_admin("user_id"),
    ("users", "delete"): admin_only,
    ("users", "promote"): admin_only,
    ("users", "distribution"): admin_only,
    ("instructor", "list"): admin_only,
    ("instructor", "get"): authenticated,
    ("instructor", "create"): admin_only,
    ("instructor", "update"): authenticated,
    ("instructor", "delete"): admin_only,
    ("member", "list"): admin_only,
    ("member", "get"): authenticated,
    ("member", "create"): admin_only,
    ("member", "update"): authenticated,
    ("member", "delete"): admin_only,
    ("subscriptions", "list"): authenticated,
    ("subscriptions", "get"): authenticated,
    ("subscriptions", "create"): admin_only,
    ("subscriptions", "update"): admin_only,
    ("subscriptions", "delete"): admin_only,
    ("subscriptions", "my"): member_only,
    ("usersubscription", "list"): authenticated,
    ("usersubscription", "get"): authenticated,
    ("usersubscription", "create"): authenticated,
    ("usersubscription", "update"): authenticated,
    ("usersubscription", "delete"): authenticated,
    ("payment", "list"): authenticated,
    ("payment", "get"): authenticated,
    ("payment", "create"): authenticated,
    ("payment", "update"): authenticated,
    ("payment", "delete"): authenticated,
    ("ptsession", "list"): authenticated,
    ("ptsession", "get"): authenticated,
    ("ptsession", "create"): authenticated,
    ("ptsession", "update"): authenticated,
    ("ptsession", "delete"): authenticated,
    ("ptsession", "book"): member_only,
    ("groupclass", "list"): authenticated,
    ("groupclass", "get"): authenticated,
    ("groupclass", "create"): authenticated,
    ("groupclass", "update"): authenticated,
    ("groupclass", "delete"): authenticated,
    ("dashboard", "view"): authenticated,
}


def lookup(resource, action):
    try:
        return POLICIES[(resource, action)]
    except KeyError:
        raise KeyError(f"No authorization policy for {resource}.{action}")


def is_admin(claims) -> bool:
    return bool(claims) and claims.get("role") == UserRole.Admin.value

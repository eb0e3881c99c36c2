from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select

from ...extensions import db
from ...models import User, UserRole
from ...routes.auth import EMAIL_RE, MIN_PASSWORD_LENGTH, hash_password
from ...utils.auth import current_user_is_admin, include_deleted_requested, policy_required
from ...utils.parsing import isoformat, parse_bool, parse_enum, parse_str
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def serialize_user(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
        "role": user.role.value,
        "is_admin": user.is_admin,
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


def email_taken(email, exclude_id=None):
    stmt = select(User.id).where(User.email == email, User.not_deleted())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.session.scalar(stmt) is not None


@users_bp.route("", methods=["GET"])
@policy_required("users", "list")
def list_users():
    """
    List users (admins only)
    ---
    tags:
      - Users
    parameters:
      - in: query
        name: include_deleted
        type: boolean
        required: false
    responses:
      200:
        description: Users without password hashes
      403:
        description: Caller is not an admin
    """
    users = list_rows(User, include_deleted=include_deleted_requested())
    return jsonify([serialize_user(u) for u in users]), 200


@users_bp.route("/<int:user_id>", methods=["GET"])
@policy_required("users", "get")
def get_user(user_id):
    """
    Get a user profile. Users can read their own profile, admins any profile.
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: User profile
      403:
        description: Not the owner and not an admin
      404:
        description: User not found
    """
    user = get_active(User, user_id)
    if not user:
        return error_response("User not found", 404)
    return jsonify(serialize_user(user)), 200


@users_bp.route("", methods=["POST"])
@policy_required("users", "create")
def create_user():
    """
    Create a user directly (admins only)
    ---
    tags:
      - Users
    responses:
      201:
        description: User created
      400:
        description: Missing or invalid fields
      409:
        description: Email is already in use
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        name = parse_str(data.get("name"), "name")
        email = parse_str(data.get("email"), "email")
        password = parse_str(data.get("password"), "password", strip=False)
        phone_number = parse_str(data.get("phone_number"), "phone_number")
    except ValueError as e:
        return error_response(str(e), 400)

    if not name or not email or not password:
        return error_response("Missing required fields (name, email, password)", 400)
    if not EMAIL_RE.match(email):
        return error_response("Email address is not valid", 400)
    if len(password) < MIN_PASSWORD_LENGTH:
        return error_response(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", 400
        )

    try:
        role = parse_enum(UserRole, data.get("role", UserRole.Member.value), "role")
        admin_flag = parse_bool(data.get("is_admin"), "is_admin", default=False)
    except ValueError as e:
        return error_response(str(e), 400)

    if email_taken(email):
        return error_response("Email is already in use.", 409)

    user = User(
        name=name,
        email=email,
        phone_number=phone_number,
        password_hash=hash_password(password),
        role=role,
        is_admin=admin_flag,
    )
    db.session.add(user)
    db.session.commit()

    return created_response(serialize_user(user), "users.get_user", user_id=user.id)


@users_bp.route("/<int:user_id>", methods=["PUT"])
@policy_required("users", "update")
def update_user(user_id):
    """
    Replace a user's profile. Only admins may change role or is_admin.
    ---
    tags:
      - Users
    responses:
      204:
        description: Updated
      400:
        description: Path id and body id differ, or invalid fields
      403:
        description: Not the owner and not an admin, or privilege change by a non-admin
      404:
        description: User not found
      409:
        description: Email is already in use
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(user_id, data):
        return error_response("Path id does not match body id", 400)

    user = get_active(User, user_id)
    if not user:
        return error_response("User not found", 404)

    try:
        name = parse_str(data.get("name"), "name")
        email = parse_str(data.get("email"), "email")
        phone_number = parse_str(data.get("phone_number"), "phone_number")
        password = data.get("password")
        if password is not None:
            password = parse_str(password, "password", strip=False)
    except ValueError as e:
        return error_response(str(e), 400)

    if not name or not email:
        return error_response("Missing required fields (name, email)", 400)
    if not EMAIL_RE.match(email):
        return error_response("Email address is not valid", 400)

    try:
        role = parse_enum(UserRole, data.get("role", user.role.value), "role")
        admin_flag = parse_bool(data.get("is_admin"), "is_admin", default=user.is_admin)
    except ValueError as e:
        return error_response(str(e), 400)

    if (role != user.role or admin_flag != user.is_admin) and not current_user_is_admin():
        return error_response("Only admins can change role or admin status", 403)

    if email_taken(email, exclude_id=user.id):
        return error_response("Email is already in use.", 409)

    if password is not None:
        if len(password) < MIN_PASSWORD_LENGTH:
            return error_response(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters", 400
            )
        user.password_hash = hash_password(password)

    user.name = name
    user.email = email
    user.phone_number = phone_number
    user.role = role
    user.is_admin = admin_flag
    user.touch()

    if not commit_update(User, user_id):
        return error_response("User not found", 404)
    return no_content()


@users_bp.route("/promote/<int:user_id>", methods=["POST"])
@policy_required("users", "promote")
def promote_to_instructor(user_id):
    """
    Give a user the Instructor role (admins only)
    ---
    tags:
      - Users
    description: Only the role changes. No instructor profile is created.
    responses:
      200:
        description: User promoted
      404:
        description: User not found
    """
    user = get_active(User, user_id)
    if not user:
        return error_response("User not found", 404)

    user.role = UserRole.Instructor
    user.touch()
    db.session.commit()
    current_app.logger.info("Promoted user id=%s to Instructor", user_id)
    return jsonify({"message": "User promoted to Instructor."}), 200


@users_bp.route("/distribution", methods=["GET"])
@policy_required("users", "distribution")
def user_distribution():
    """
    Count users per role, soft-deleted users included (admins only)
    ---
    tags:
      - Users
    responses:
      200:
        description: List of role counts
    """
    rows = db.session.execute(
        select(User.role, func.count(User.id)).group_by(User.role).order_by(User.role)
    ).all()
    return jsonify([{"role": role.value, "count": int(count)} for role, count in rows]), 200


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@policy_required("users", "delete")
def delete_user(user_id):
    """
    Soft delete a user (admins only)
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      204:
        description: Deleted
      404:
        description: User not found
    """
    user = get_active(User, user_id)
    if not user:
        return error_response("User not found", 404)

    user.soft_delete()
    db.session.commit()
    return no_content()

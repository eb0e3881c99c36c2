import re

import bcrypt
from flask import Blueprint, current_app, jsonify
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, UserRole
from ..services.token_service import generate_token
from ..utils.parsing import parse_str
from ..utils.responses import error_response, json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Invalid email or password."


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, stored_hash) -> bool:
    if not stored_hash:
        return False
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash)
    except ValueError:
        # malformed hash in the row
        return False


def find_active_user_by_email(email):
    return db.session.scalar(
        select(User).where(User.email == email, User.not_deleted())
    )


def _login_payload(user, message):
    return {
        "status": "success",
        "message": message,
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "token": generate_token(user),
    }


@auth_bp.route("/login", methods=["POST"])
def login_user():
    """
    Log in with email and password
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Token issued
      400:
        description: Email or password missing
      401:
        description: Invalid email or password
    """
    data = json_body() or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return error_response("Email and password required", 400)
    if not isinstance(email, str) or not isinstance(password, str):
        return error_response("Email and password must be strings", 400)

    user = find_active_user_by_email(email)
    if not user or not check_password(password, user.password_hash):
        current_app.logger.warning("Failed login attempt for %s", email)
        return error_response(INVALID_CREDENTIALS, 401)

    return jsonify(_login_payload(user, "Login successful")), 200


@auth_bp.route("/register", methods=["POST"])
def register_user():
    """
    Register a new member account
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, email, password]
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
              minLength: 6
            phone_number:
              type: string
    responses:
      200:
        description: Account created and token issued
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

    if find_active_user_by_email(email):
        return error_response("Email is already in use.", 409)

    user = User(
        name=name,
        email=email,
        phone_number=phone_number,
        password_hash=hash_password(password),
        role=UserRole.Member,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.error(f"Register integrity error: {e}")
        return error_response("Database integrity error", 409)

    current_app.logger.info("Registered user id=%s", user.id)
    return jsonify(_login_payload(user, "User registered successfully")), 200


@auth_bp.route("/logout", methods=["POST"])
def logout_user():
    """
    Log out
    ---
    tags:
      - Authentication
    description: Tokens are stateless and stay valid until they expire.
    responses:
      200:
        description: Logged out
    """
    return jsonify({"message": "Logged out successfully"}), 200

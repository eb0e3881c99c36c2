from flask import Blueprint, jsonify
from sqlalchemy import select

from ...extensions import db
from ...models import Gym, Instructor, User
from ...utils.auth import include_deleted_requested, policy_required
from ...utils.parsing import isoformat, parse_int
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content
from .users import serialize_user

instructors_bp = Blueprint("instructors", __name__, url_prefix="/api/instructor")


def serialize_instructor(instructor):
    return {
        "id": instructor.id,
        "user_id": instructor.user_id,
        "user": serialize_user(instructor.user),
        "gym_id": instructor.gym_id,
        "created_at": isoformat(instructor.created_at),
        "updated_at": isoformat(instructor.updated_at),
    }


def _resolve_gym(data):
    gym_id = parse_int(data.get("gym_id"), "gym_id", required=False)
    if gym_id is not None and db.session.get(Gym, gym_id) is None:
        raise LookupError("Gym not found")
    return gym_id


@instructors_bp.route("", methods=["GET"])
@policy_required("instructor", "list")
def list_instructors():
    """
    List instructors whose user account is not deleted (admins only)
    ---
    tags:
      - Instructors
    responses:
      200:
        description: Instructors with their user data
    """
    instructors = list_rows(Instructor, include_deleted=include_deleted_requested())
    return jsonify([serialize_instructor(i) for i in instructors]), 200


@instructors_bp.route("/<int:instructor_id>", methods=["GET"])
@policy_required("instructor", "get")
def get_instructor(instructor_id):
    """
    Get an instructor profile
    ---
    tags:
      - Instructors
    parameters:
      - in: path
        name: instructor_id
        type: integer
        required: true
    responses:
      200:
        description: Instructor with user data
      404:
        description: Instructor not found or user deleted
    """
    instructor = get_active(Instructor, instructor_id)
    if not instructor:
        return error_response("Instructor not found", 404)
    return jsonify(serialize_instructor(instructor)), 200


@instructors_bp.route("", methods=["POST"])
@policy_required("instructor", "create")
def create_instructor():
    """
    Create an instructor profile for an existing user (admins only)
    ---
    tags:
      - Instructors
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [user_id]
          properties:
            user_id:
              type: integer
            gym_id:
              type: integer
    responses:
      201:
        description: Instructor created
      404:
        description: User not found or deleted
      409:
        description: User is already an instructor
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        user_id = parse_int(data.get("user_id"), "user_id")
        gym_id = _resolve_gym(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    if not get_active(User, user_id):
        return error_response("User not found", 404)

    existing = db.session.scalar(select(Instructor).where(Instructor.user_id == user_id))
    if existing:
        return error_response("User is already an instructor", 409)

    instructor = Instructor(user_id=user_id, gym_id=gym_id)
    db.session.add(instructor)
    db.session.commit()

    return created_response(
        serialize_instructor(instructor),
        "instructors.get_instructor",
        instructor_id=instructor.id,
    )


@instructors_bp.route("/<int:instructor_id>", methods=["PUT"])
@policy_required("instructor", "update")
def update_instructor(instructor_id):
    """
    Replace an instructor's gym
    ---
    tags:
      - Instructors
    parameters:
      - in: path
        name: instructor_id
        type: integer
        required: true
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch or gym not found
      404:
        description: Instructor not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(instructor_id, data):
        return error_response("Path id does not match body id", 400)

    instructor = get_active(Instructor, instructor_id)
    if not instructor:
        return error_response("Instructor not found", 404)

    try:
        instructor.gym_id = _resolve_gym(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)
    instructor.touch()

    if not commit_update(Instructor, instructor_id):
        return error_response("Instructor not found", 404)
    return no_content()


@instructors_bp.route("/<int:instructor_id>", methods=["DELETE"])
@policy_required("instructor", "delete")
def delete_instructor(instructor_id):
    """
    Soft delete an instructor by soft deleting the owning user (admins only)
    ---
    tags:
      - Instructors
    responses:
      204:
        description: Deleted
      404:
        description: Instructor not found
    """
    instructor = get_active(Instructor, instructor_id)
    if not instructor:
        return error_response("Instructor not found", 404)

    instructor.user.soft_delete()
    instructor.touch()
    db.session.commit()
    return no_content()

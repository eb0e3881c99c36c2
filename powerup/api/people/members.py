from flask import Blueprint, jsonify
from sqlalchemy import select

from ...extensions import db
from ...models import Instructor, Member, User
from ...utils.auth import include_deleted_requested, policy_required
from ...utils.parsing import isoformat, parse_bool, parse_int
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content
from .users import serialize_user

members_bp = Blueprint("members", __name__, url_prefix="/api/member")


def serialize_member(member):
    instructor = member.instructor
    return {
        "id": member.id,
        "user_id": member.user_id,
        "user": serialize_user(member.user),
        "instructor_id": member.instructor_id,
        "instructor": (
            {
                "id": instructor.id,
                "user_id": instructor.user_id,
                "user": {
                    "name": instructor.user.name,
                    "email": instructor.user.email,
                },
            }
            if instructor
            else None
        ),
        "is_active": member.is_active,
        "gym_id": member.gym_id,
        "created_at": isoformat(member.created_at),
        "updated_at": isoformat(member.updated_at),
    }


def _resolve_instructor_id(data):
    """Optional instructor reference; raises LookupError when it points nowhere."""
    instructor_id = parse_int(data.get("instructor_id"), "instructor_id", required=False)
    if instructor_id is not None and not get_active(Instructor, instructor_id):
        raise LookupError("Instructor not found")
    return instructor_id


@members_bp.route("", methods=["GET"])
@policy_required("member", "list")
def list_members():
    """
    List members whose user account is not deleted (admins only)
    ---
    tags:
      - Members
    responses:
      200:
        description: Members with user and instructor data
    """
    members = list_rows(Member, include_deleted=include_deleted_requested())
    return jsonify([serialize_member(m) for m in members]), 200


@members_bp.route("/<int:member_id>", methods=["GET"])
@policy_required("member", "get")
def get_member(member_id):
    """
    Get a member profile
    ---
    tags:
      - Members
    parameters:
      - in: path
        name: member_id
        type: integer
        required: true
    responses:
      200:
        description: Member with user and instructor data
      404:
        description: Member not found or user deleted
    """
    member = get_active(Member, member_id)
    if not member:
        return error_response("Member not found", 404)
    return jsonify(serialize_member(member)), 200


@members_bp.route("", methods=["POST"])
@policy_required("member", "create")
def create_member():
    """
    Create a member profile for an existing user (admins only)
    ---
    tags:
      - Members
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
            instructor_id:
              type: integer
    responses:
      201:
        description: Member created
      400:
        description: Instructor not found
      404:
        description: User not found or deleted
      409:
        description: User is already a member
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        user_id = parse_int(data.get("user_id"), "user_id")
    except ValueError as e:
        return error_response(str(e), 400)

    if not get_active(User, user_id):
        return error_response("User not found", 404)

    existing = db.session.scalar(select(Member).where(Member.user_id == user_id))
    if existing:
        return error_response("User is already a member", 409)

    try:
        instructor_id = _resolve_instructor_id(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    member = Member(user_id=user_id, instructor_id=instructor_id, is_active=True)
    db.session.add(member)
    db.session.commit()

    return created_response(
        serialize_member(member), "members.get_member", member_id=member.id
    )


@members_bp.route("/<int:member_id>", methods=["PUT"])
@policy_required("member", "update")
def update_member(member_id):
    """
    Replace a member's instructor and active flag
    ---
    tags:
      - Members
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch or instructor not found
      404:
        description: Member not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(member_id, data):
        return error_response("Path id does not match body id", 400)

    member = get_active(Member, member_id)
    if not member:
        return error_response("Member not found", 404)

    try:
        instructor_id = _resolve_instructor_id(data)
        is_active = parse_bool(data.get("is_active"), "is_active", default=True)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    member.instructor_id = instructor_id
    member.is_active = is_active
    member.touch()

    if not commit_update(Member, member_id):
        return error_response("Member not found", 404)
    return no_content()


@members_bp.route("/<int:member_id>", methods=["DELETE"])
@policy_required("member", "delete")
def delete_member(member_id):
    """
    Soft delete a member by soft deleting the owning user (admins only)
    ---
    tags:
      - Members
    responses:
      204:
        description: Deleted
      404:
        description: Member not found
    """
    member = get_active(Member, member_id)
    if not member:
        return error_response("Member not found", 404)

    # the member row stays; its user carries the deletion
    member.user.soft_delete()
    member.touch()
    db.session.commit()
    return no_content()

from flask import Blueprint, jsonify
from sqlalchemy import select

from ...extensions import db
from ...models import GroupClass, GroupClassType, Instructor, Member
from ...utils.auth import include_deleted_requested, policy_required
from ...utils.parsing import isoformat, parse_datetime, parse_enum, parse_int, parse_str
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content

group_classes_bp = Blueprint("group_classes", __name__, url_prefix="/api/groupclass")


def serialize_group_class(group_class):
    return {
        "id": group_class.id,
        "type": group_class.type.value,
        "name": group_class.name,
        "description": group_class.description,
        "start_time": isoformat(group_class.start_time),
        "max_capacity": group_class.max_capacity,
        "current_enrollment": group_class.current_enrollment,
        "instructor_id": group_class.instructor_id,
        "members": [
            {"id": member.id, "user_id": member.user_id}
            for member in sorted(group_class.members, key=lambda m: m.id)
        ],
    }


def _resolve_members(raw_ids):
    if raw_ids is None:
        return []
    if not isinstance(raw_ids, list):
        raise ValueError("'member_ids' must be a list of integers")
    member_ids = {parse_int(value, "member_ids") for value in raw_ids}
    if not member_ids:
        return []

    members = db.session.scalars(
        select(Member).where(Member.id.in_(member_ids), Member.not_deleted())
    ).all()
    if len(members) != len(member_ids):
        raise LookupError("One or more members not found")
    return list(members)


def _read_payload(data):
    max_capacity = parse_int(data.get("max_capacity"), "max_capacity")
    if max_capacity <= 0:
        raise ValueError("'max_capacity' must be positive")

    current_enrollment = parse_int(data.get("current_enrollment", 0), "current_enrollment")
    if current_enrollment < 0:
        raise ValueError("'current_enrollment' must not be negative")

    instructor_id = parse_int(data.get("instructor_id"), "instructor_id", required=False)
    if instructor_id is not None and not get_active(Instructor, instructor_id):
        raise LookupError("Instructor not found")

    return {
        "type": parse_enum(GroupClassType, data.get("type"), "type"),
        "name": parse_str(data.get("name"), "name"),
        "description": parse_str(data.get("description"), "description"),
        "start_time": parse_datetime(data.get("start_time"), "start_time"),
        "max_capacity": max_capacity,
        "current_enrollment": current_enrollment,
        "instructor_id": instructor_id,
        "members": _resolve_members(data.get("member_ids")),
    }


@group_classes_bp.route("", methods=["GET"])
@policy_required("groupclass", "list")
def list_group_classes():
    """
    List group classes ordered by start time
    ---
    tags:
      - Group Classes
    responses:
      200:
        description: Group classes with their enrolled members
    """
    classes = list_rows(
        GroupClass,
        include_deleted=include_deleted_requested(),
        order_by=GroupClass.start_time,
    )
    return jsonify([serialize_group_class(c) for c in classes]), 200


@group_classes_bp.route("/<int:group_class_id>", methods=["GET"])
@policy_required("groupclass", "get")
def get_group_class(group_class_id):
    """
    Get a group class
    ---
    tags:
      - Group Classes
    parameters:
      - in: path
        name: group_class_id
        type: integer
        required: true
    responses:
      200:
        description: Group class with its enrolled members
      404:
        description: Group class not found or deleted
    """
    group_class = get_active(GroupClass, group_class_id)
    if not group_class:
        return error_response("Group class not found", 404)
    return jsonify(serialize_group_class(group_class)), 200


@group_classes_bp.route("", methods=["POST"])
@policy_required("groupclass", "create")
def create_group_class():
    """
    Create a group class
    ---
    tags:
      - Group Classes
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [type, start_time, max_capacity]
          properties:
            type:
              type: string
              enum: [Yoga, Pilates, Spinning, Zumba, Crossfit, HIIT, StrengthTraining, Cardio, Jumping, ABS]
            name:
              type: string
            description:
              type: string
            start_time:
              type: string
              format: date-time
            max_capacity:
              type: integer
            current_enrollment:
              type: integer
            instructor_id:
              type: integer
            member_ids:
              type: array
              items:
                type: integer
    responses:
      201:
        description: Group class created
      400:
        description: Invalid fields, or instructor/member not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    group_class = GroupClass(**fields)
    db.session.add(group_class)
    db.session.commit()

    return created_response(
        serialize_group_class(group_class),
        "group_classes.get_group_class",
        group_class_id=group_class.id,
    )


@group_classes_bp.route("/<int:group_class_id>", methods=["PUT"])
@policy_required("groupclass", "update")
def update_group_class(group_class_id):
    """
    Replace a group class
    ---
    tags:
      - Group Classes
    description: The member list is replaced. current_enrollment is stored as given.
    parameters:
      - in: path
        name: group_class_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [id, type, start_time, max_capacity]
          properties:
            id:
              type: integer
            type:
              type: string
            start_time:
              type: string
              format: date-time
            max_capacity:
              type: integer
            member_ids:
              type: array
              items:
                type: integer
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch, invalid fields, or instructor/member not found
      404:
        description: Group class not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(group_class_id, data):
        return error_response("Path id does not match body id", 400)

    group_class = get_active(GroupClass, group_class_id)
    if not group_class:
        return error_response("Group class not found", 404)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    for key, value in fields.items():
        setattr(group_class, key, value)

    if not commit_update(GroupClass, group_class_id):
        return error_response("Group class not found", 404)
    return no_content()


@group_classes_bp.route("/<int:group_class_id>", methods=["DELETE"])
@policy_required("groupclass", "delete")
def delete_group_class(group_class_id):
    """
    Soft delete a group class
    ---
    tags:
      - Group Classes
    responses:
      204:
        description: Deleted
      404:
        description: Group class not found
    """
    group_class = get_active(GroupClass, group_class_id)
    if not group_class:
        return error_response("Group class not found", 404)

    group_class.soft_delete()
    db.session.commit()
    return no_content()

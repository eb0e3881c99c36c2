from flask import Blueprint, current_app, jsonify
from sqlalchemy import select

from ...extensions import db
from ...models import Instructor, Member, PtSession, SessionStatus
from ...utils.auth import current_user_id, include_deleted_requested, policy_required
from ...utils.parsing import (
    isoformat,
    money,
    parse_datetime,
    parse_decimal,
    parse_enum,
    parse_int,
    parse_str,
)
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content

pt_sessions_bp = Blueprint("pt_sessions", __name__, url_prefix="/api/ptsession")


def serialize_pt_session(session):
    return {
        "id": session.id,
        "instructor_id": session.instructor_id,
        "member_id": session.member_id,
        "price": money(session.price),
        "session_time": isoformat(session.session_time),
        "notes": session.notes,
        "status": session.status.value,
    }


def _active_instructor_id(value):
    instructor_id = parse_int(value, "instructor_id")
    if not get_active(Instructor, instructor_id):
        raise LookupError("Instructor not found")
    return instructor_id


def _read_payload(data):
    member_id = parse_int(data.get("member_id"), "member_id")
    if not get_active(Member, member_id):
        raise LookupError("Member not found")

    return {
        "instructor_id": _active_instructor_id(data.get("instructor_id")),
        "member_id": member_id,
        "price": parse_decimal(data.get("price", 0), "price"),
        "session_time": parse_datetime(data.get("session_time"), "session_time"),
        "notes": parse_str(data.get("notes"), "notes", strip=False),
        "status": parse_enum(
            SessionStatus, data.get("status", SessionStatus.Scheduled.value), "status"
        ),
    }


@pt_sessions_bp.route("", methods=["GET"])
@policy_required("ptsession", "list")
def list_pt_sessions():
    """
    List PT sessions ordered by session time
    ---
    tags:
      - PT Sessions
    parameters:
      - in: query
        name: include_deleted
        type: boolean
        required: false
    responses:
      200:
        description: PT sessions
        schema:
          type: array
          items:
            $ref: '#/definitions/PtSession'
    """
    sessions = list_rows(
        PtSession,
        include_deleted=include_deleted_requested(),
        order_by=PtSession.session_time,
    )
    return jsonify([serialize_pt_session(s) for s in sessions]), 200


@pt_sessions_bp.route("/<int:pt_session_id>", methods=["GET"])
@policy_required("ptsession", "get")
def get_pt_session(pt_session_id):
    """
    Get a PT session
    ---
    tags:
      - PT Sessions
    parameters:
      - in: path
        name: pt_session_id
        type: integer
        required: true
    responses:
      200:
        description: PT session
        schema:
          $ref: '#/definitions/PtSession'
      404:
        description: PT session not found
    """
    session = get_active(PtSession, pt_session_id)
    if not session:
        return error_response("PT session not found", 404)
    return jsonify(serialize_pt_session(session)), 200


@pt_sessions_bp.route("", methods=["POST"])
@policy_required("ptsession", "create")
def create_pt_session():
    """
    Create a PT session
    ---
    tags:
      - PT Sessions
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [instructor_id, member_id, session_time]
          properties:
            instructor_id:
              type: integer
            member_id:
              type: integer
            price:
              type: number
            session_time:
              type: string
              format: date-time
            notes:
              type: string
            status:
              type: string
              enum: [Scheduled, Completed, Cancelled, NoShow]
    responses:
      201:
        description: PT session created
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

    session = PtSession(**fields)
    db.session.add(session)
    db.session.commit()

    return created_response(
        serialize_pt_session(session),
        "pt_sessions.get_pt_session",
        pt_session_id=session.id,
    )


@pt_sessions_bp.route("/<int:pt_session_id>", methods=["PUT"])
@policy_required("ptsession", "update")
def update_pt_session(pt_session_id):
    """
    Replace a PT session
    ---
    tags:
      - PT Sessions
    parameters:
      - in: path
        name: pt_session_id
        type: integer
        required: true
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch or invalid fields
      404:
        description: PT session not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(pt_session_id, data):
        return error_response("Path id does not match body id", 400)

    session = get_active(PtSession, pt_session_id)
    if not session:
        return error_response("PT session not found", 404)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    for key, value in fields.items():
        setattr(session, key, value)

    if not commit_update(PtSession, pt_session_id):
        return error_response("PT session not found", 404)
    return no_content()


@pt_sessions_bp.route("/book", methods=["POST"])
@policy_required("ptsession", "book")
def book_session():
    """
    Book a personal training session for the calling member
    ---
    tags:
      - PT Sessions
    description: >
      The member is taken from the bearer token. The instructor's existing
      schedule is not checked for overlaps.
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [instructor_id, session_time]
          properties:
            instructor_id:
              type: integer
            session_time:
              type: string
              format: date-time
    responses:
      200:
        description: Session booked
      400:
        description: Invalid fields or instructor not found
      403:
        description: Caller is not a member
      404:
        description: Caller has no member profile
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    member = db.session.scalar(
        select(Member).where(Member.user_id == current_user_id(), Member.not_deleted())
    )
    if not member:
        return error_response("Member profile not found", 404)

    try:
        instructor_id = _active_instructor_id(data.get("instructor_id"))
        session_time = parse_datetime(data.get("session_time"), "session_time")
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    session = PtSession(
        member_id=member.id,
        instructor_id=instructor_id,
        session_time=session_time,
    )
    db.session.add(session)
    db.session.commit()

    current_app.logger.info(
        "Member id=%s booked PT session id=%s with instructor id=%s",
        member.id,
        session.id,
        instructor_id,
    )
    return jsonify({"message": "Session booked successfully", "id": session.id}), 200


@pt_sessions_bp.route("/<int:pt_session_id>", methods=["DELETE"])
@policy_required("ptsession", "delete")
def delete_pt_session(pt_session_id):
    """
    Soft delete a PT session
    ---
    tags:
      - PT Sessions
    responses:
      204:
        description: Deleted
      404:
        description: PT session not found
    """
    session = get_active(PtSession, pt_session_id)
    if not session:
        return error_response("PT session not found", 404)

    session.soft_delete()
    db.session.commit()
    return no_content()

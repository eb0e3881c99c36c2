from flask import Blueprint, jsonify
from sqlalchemy import select

from ...extensions import db
from ...models import GroupClass, Instructor, Member, PtSession, User, utcnow
from ...services import dashboard_service
from ...utils.auth import current_user_id, policy_required
from ...utils.persistence import get_active, list_rows
from ...utils.responses import error_response
from ..subscriptions.user_subscriptions import find_current_user_subscription

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("", methods=["GET"])
@policy_required("dashboard", "view")
def get_dashboard():
    """
    Dashboard cards for the calling user
    ---
    tags:
      - Dashboard
    description: >
      Membership progress, today's group classes and PT summaries. Members see
      the classes and sessions they are booked on; instructors see the PT
      sessions they teach.
    responses:
      200:
        description: Dashboard figures
      404:
        description: Caller's account no longer exists
    """
    user = get_active(User, current_user_id())
    if not user:
        return error_response("User not found", 404)

    now = utcnow()
    classes = list_rows(GroupClass, order_by=GroupClass.start_time)
    sessions = list_rows(PtSession, order_by=PtSession.session_time)

    membership = None
    user_subscription = find_current_user_subscription(user.id)
    if user_subscription is not None:
        membership = dashboard_service.membership_summary(
            user_subscription, user_subscription.subscription, now
        )

    member = db.session.scalar(select(Member).where(Member.user_id == user.id))
    instructor = db.session.scalar(select(Instructor).where(Instructor.user_id == user.id))

    group_classes = None
    my_sessions = []
    if member is not None:
        group_classes = dashboard_service.group_classes_summary(
            dashboard_service.enrolled_classes(classes, member.id), now
        )
        my_sessions = [s for s in sessions if s.member_id == member.id]
    elif instructor is not None:
        my_sessions = [s for s in sessions if s.instructor_id == instructor.id]

    personal_training = None
    if member is not None or instructor is not None:
        personal_training = dashboard_service.personal_training_summary(my_sessions, now)

    return (
        jsonify(
            {
                "status": "success",
                "user": {"id": user.id, "name": user.name, "role": user.role.value},
                "membership": membership,
                "today_classes": dashboard_service.today_group_classes(classes, now),
                "group_classes": group_classes,
                "personal_training": personal_training,
                "today_schedule": dashboard_service.today_schedule(my_sessions, now),
            }
        ),
        200,
    )

from flask import Blueprint, jsonify
from sqlalchemy import select

from ...extensions import db
from ...models import Subscription, User, UserSubscription
from ...utils.auth import include_deleted_requested, policy_required
from ...utils.parsing import isoformat, parse_bool, parse_datetime, parse_int
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content

user_subscriptions_bp = Blueprint(
    "user_subscriptions", __name__, url_prefix="/api/usersubscription"
)


def serialize_user_subscription(user_subscription):
    return {
        "id": user_subscription.id,
        "user_id": user_subscription.user_id,
        "subscription_id": user_subscription.subscription_id,
        "start_date": isoformat(user_subscription.start_date),
        "end_date": isoformat(user_subscription.end_date),
        "is_active": user_subscription.is_active,
    }


def _read_payload(data):
    """Validate a create/update body. Raises ValueError for bad input, LookupError for bad references."""
    user_id = parse_int(data.get("user_id"), "user_id")
    subscription_id = parse_int(data.get("subscription_id"), "subscription_id")
    start_date = parse_datetime(data.get("start_date"), "start_date")
    end_date = parse_datetime(data.get("end_date"), "end_date")
    is_active = parse_bool(data.get("is_active"), "is_active", default=True)

    if end_date <= start_date:
        raise ValueError("'end_date' must be after 'start_date'")
    if not get_active(User, user_id):
        raise LookupError("User not found")
    if not get_active(Subscription, subscription_id):
        raise LookupError("Subscription not found")

    return {
        "user_id": user_id,
        "subscription_id": subscription_id,
        "start_date": start_date,
        "end_date": end_date,
        "is_active": is_active,
    }


def find_current_user_subscription(user_id):
    """The user's non-deleted subscription, active rows first, then newest start."""
    stmt = (
        select(UserSubscription)
        .where(UserSubscription.user_id == user_id, UserSubscription.not_deleted())
        .order_by(UserSubscription.is_active.desc(), UserSubscription.start_date.desc())
        .limit(1)
    )
    return db.session.scalar(stmt)


def active_pair_exists(user_id, subscription_id, exclude_id=None):
    stmt = select(UserSubscription.id).where(
        UserSubscription.user_id == user_id,
        UserSubscription.subscription_id == subscription_id,
        UserSubscription.is_active.is_(True),
        UserSubscription.not_deleted(),
    )
    if exclude_id is not None:
        stmt = stmt.where(UserSubscription.id != exclude_id)
    return db.session.scalar(stmt) is not None


@user_subscriptions_bp.route("", methods=["GET"])
@policy_required("usersubscription", "list")
def list_user_subscriptions():
    """
    List user subscriptions
    ---
    tags:
      - User Subscriptions
    parameters:
      - in: query
        name: include_deleted
        type: boolean
        required: false
    responses:
      200:
        description: User subscriptions
        schema:
          type: array
          items:
            $ref: '#/definitions/UserSubscription'
    """
    rows = list_rows(UserSubscription, include_deleted=include_deleted_requested())
    return jsonify([serialize_user_subscription(us) for us in rows]), 200


@user_subscriptions_bp.route("/<int:user_subscription_id>", methods=["GET"])
@policy_required("usersubscription", "get")
def get_user_subscription(user_subscription_id):
    """
    Get a user subscription
    ---
    tags:
      - User Subscriptions
    parameters:
      - in: path
        name: user_subscription_id
        type: integer
        required: true
    responses:
      200:
        description: User subscription
      404:
        description: User subscription not found
    """
    user_subscription = get_active(UserSubscription, user_subscription_id)
    if not user_subscription:
        return error_response("User subscription not found", 404)
    return jsonify(serialize_user_subscription(user_subscription)), 200


@user_subscriptions_bp.route("", methods=["POST"])
@policy_required("usersubscription", "create")
def create_user_subscription():
    """
    Attach a subscription plan to a user
    ---
    tags:
      - User Subscriptions
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [user_id, subscription_id, start_date, end_date]
          properties:
            user_id:
              type: integer
            subscription_id:
              type: integer
            start_date:
              type: string
              format: date-time
            end_date:
              type: string
              format: date-time
            is_active:
              type: boolean
    responses:
      201:
        description: User subscription created
      400:
        description: Invalid fields, or user/subscription not found
      409:
        description: The user already holds this plan actively
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    if fields["is_active"] and active_pair_exists(
        fields["user_id"], fields["subscription_id"]
    ):
        return error_response("User already has an active subscription to this plan", 409)

    user_subscription = UserSubscription(**fields)
    db.session.add(user_subscription)
    db.session.commit()

    return created_response(
        serialize_user_subscription(user_subscription),
        "user_subscriptions.get_user_subscription",
        user_subscription_id=user_subscription.id,
    )


@user_subscriptions_bp.route("/<int:user_subscription_id>", methods=["PUT"])
@policy_required("usersubscription", "update")
def update_user_subscription(user_subscription_id):
    """
    Replace a user subscription
    ---
    tags:
      - User Subscriptions
    parameters:
      - in: path
        name: user_subscription_id
        type: integer
        required: true
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch, invalid fields, or user/subscription not found
      404:
        description: User subscription not found
      409:
        description: The user already holds this plan actively
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(user_subscription_id, data):
        return error_response("Path id does not match body id", 400)

    user_subscription = get_active(UserSubscription, user_subscription_id)
    if not user_subscription:
        return error_response("User subscription not found", 404)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    if fields["is_active"] and active_pair_exists(
        fields["user_id"], fields["subscription_id"], exclude_id=user_subscription_id
    ):
        return error_response("User already has an active subscription to this plan", 409)

    for key, value in fields.items():
        setattr(user_subscription, key, value)

    if not commit_update(UserSubscription, user_subscription_id):
        return error_response("User subscription not found", 404)
    return no_content()


@user_subscriptions_bp.route("/<int:user_subscription_id>", methods=["DELETE"])
@policy_required("usersubscription", "delete")
def delete_user_subscription(user_subscription_id):
    """
    Soft delete a user subscription
    ---
    tags:
      - User Subscriptions
    responses:
      204:
        description: Deleted
      404:
        description: User subscription not found
    """
    user_subscription = get_active(UserSubscription, user_subscription_id)
    if not user_subscription:
        return error_response("User subscription not found", 404)

    user_subscription.soft_delete()
    db.session.commit()
    return no_content()

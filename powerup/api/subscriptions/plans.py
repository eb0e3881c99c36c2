from flask import Blueprint, jsonify

from ...extensions import db
from ...models import Subscription, SubscriptionType
from ...utils.auth import current_user_id, include_deleted_requested, policy_required
from ...utils.parsing import money, parse_decimal, parse_enum
from ...utils.persistence import commit_update, get_active, id_mismatch, list_rows
from ...utils.responses import created_response, error_response, json_body, no_content
from .user_subscriptions import find_current_user_subscription, serialize_user_subscription

subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


def serialize_subscription(subscription):
    return {
        "id": subscription.id,
        "type": subscription.type.value,
        "total_price": money(subscription.total_price),
    }


def _read_payload(data):
    return {
        "type": parse_enum(SubscriptionType, data.get("type"), "type"),
        "total_price": parse_decimal(data.get("total_price"), "total_price"),
    }


@subscriptions_bp.route("", methods=["GET"])
@policy_required("subscriptions", "list")
def list_subscriptions():
    """
    List subscription plans
    ---
    tags:
      - Subscriptions
    responses:
      200:
        description: Plans that are not deleted
    """
    plans = list_rows(Subscription, include_deleted=include_deleted_requested())
    return jsonify([serialize_subscription(s) for s in plans]), 200


@subscriptions_bp.route("/my", methods=["GET"])
@policy_required("subscriptions", "my")
def my_subscription():
    """
    The caller's own user subscription (members only)
    ---
    tags:
      - Subscriptions
    description: Prefers an active row, then the most recent start date.
    responses:
      200:
        description: User subscription
      404:
        description: The caller has no subscription
    """
    user_subscription = find_current_user_subscription(current_user_id())
    if not user_subscription:
        return error_response("No subscription found", 404)
    return jsonify(serialize_user_subscription(user_subscription)), 200


@subscriptions_bp.route("/<int:subscription_id>", methods=["GET"])
@policy_required("subscriptions", "get")
def get_subscription(subscription_id):
    """
    Get a subscription plan
    ---
    tags:
      - Subscriptions
    parameters:
      - in: path
        name: subscription_id
        type: integer
        required: true
    responses:
      200:
        description: Subscription plan
        schema:
          $ref: '#/definitions/Subscription'
      404:
        description: Subscription not found
    """
    subscription = get_active(Subscription, subscription_id)
    if not subscription:
        return error_response("Subscription not found", 404)
    return jsonify(serialize_subscription(subscription)), 200


@subscriptions_bp.route("", methods=["POST"])
@policy_required("subscriptions", "create")
def create_subscription():
    """
    Create a subscription plan (admins only)
    ---
    tags:
      - Subscriptions
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [type, total_price]
          properties:
            type:
              type: string
              enum: [Monthly, Semestral, Yearly]
            total_price:
              type: number
    responses:
      201:
        description: Plan created
      400:
        description: Invalid type or price
      403:
        description: Caller is not an admin
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        fields = _read_payload(data)
    except ValueError as e:
        return error_response(str(e), 400)

    subscription = Subscription(**fields)
    db.session.add(subscription)
    db.session.commit()

    return created_response(
        serialize_subscription(subscription),
        "subscriptions.get_subscription",
        subscription_id=subscription.id,
    )


@subscriptions_bp.route("/<int:subscription_id>", methods=["PUT"])
@policy_required("subscriptions", "update")
def update_subscription(subscription_id):
    """
    Replace a subscription plan (admins only)
    ---
    tags:
      - Subscriptions
    parameters:
      - in: path
        name: subscription_id
        type: integer
        required: true
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch, invalid type or price
      404:
        description: Subscription not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(subscription_id, data):
        return error_response("Path id does not match body id", 400)

    subscription = get_active(Subscription, subscription_id)
    if not subscription:
        return error_response("Subscription not found", 404)

    try:
        fields = _read_payload(data)
    except ValueError as e:
        return error_response(str(e), 400)

    subscription.type = fields["type"]
    subscription.total_price = fields["total_price"]

    if not commit_update(Subscription, subscription_id):
        return error_response("Subscription not found", 404)
    return no_content()


@subscriptions_bp.route("/<int:subscription_id>", methods=["DELETE"])
@policy_required("subscriptions", "delete")
def delete_subscription(subscription_id):
    """
    Soft delete a subscription plan (admins only)
    ---
    tags:
      - Subscriptions
    responses:
      204:
        description: Deleted
      404:
        description: Subscription not found
    """
    subscription = get_active(Subscription, subscription_id)
    if not subscription:
        return error_response("Subscription not found", 404)

    subscription.soft_delete()
    db.session.commit()
    return no_content()

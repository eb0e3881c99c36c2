from flask import Blueprint, jsonify

from ...extensions import db
from ...models import Payment, PaymentStatus, UserSubscription, utcnow
from ...utils.auth import include_deleted_requested, policy_required
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

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payment")


def serialize_payment(payment):
    return {
        "id": payment.id,
        "user_subscription_id": payment.user_subscription_id,
        "amount": money(payment.amount),
        "payment_date": isoformat(payment.payment_date),
        "status": payment.status.value,
        "transaction_id": payment.transaction_id,
    }


def _read_payload(data):
    user_subscription_id = parse_int(
        data.get("user_subscription_id"), "user_subscription_id"
    )
    if not get_active(UserSubscription, user_subscription_id):
        raise LookupError("User subscription not found")

    payment_date = data.get("payment_date")
    transaction_id = parse_str(data.get("transaction_id"), "transaction_id")

    return {
        "user_subscription_id": user_subscription_id,
        "amount": parse_decimal(data.get("amount"), "amount"),
        "payment_date": (
            parse_datetime(payment_date, "payment_date") if payment_date else utcnow()
        ),
        "status": parse_enum(
            PaymentStatus, data.get("status", PaymentStatus.Pending.value), "status"
        ),
        "transaction_id": transaction_id or None,
    }


@payments_bp.route("", methods=["GET"])
@policy_required("payment", "list")
def list_payments():
    """
    List payments
    ---
    tags:
      - Payments
    parameters:
      - in: query
        name: include_deleted
        type: boolean
        required: false
        description: Admins only; include soft-deleted payments
    responses:
      200:
        description: Payments
    """
    payments = list_rows(Payment, include_deleted=include_deleted_requested())
    return jsonify([serialize_payment(p) for p in payments]), 200


@payments_bp.route("/<int:payment_id>", methods=["GET"])
@policy_required("payment", "get")
def get_payment(payment_id):
    """
    Get a payment
    ---
    tags:
      - Payments
    parameters:
      - in: path
        name: payment_id
        type: integer
        required: true
    responses:
      200:
        description: Payment
        schema:
          $ref: '#/definitions/Payment'
      404:
        description: Payment not found
    """
    payment = get_active(Payment, payment_id)
    if not payment:
        return error_response("Payment not found", 404)
    return jsonify(serialize_payment(payment)), 200


@payments_bp.route("", methods=["POST"])
@policy_required("payment", "create")
def create_payment():
    """
    Record a payment against a user subscription
    ---
    tags:
      - Payments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [user_subscription_id, amount]
          properties:
            user_subscription_id:
              type: integer
            amount:
              type: number
            payment_date:
              type: string
              format: date-time
            status:
              type: string
              enum: [Pending, Completed, Failed, Refunded]
            transaction_id:
              type: string
    responses:
      201:
        description: Payment recorded
      400:
        description: Invalid fields or user subscription not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    payment = Payment(**fields)
    db.session.add(payment)
    db.session.commit()

    return created_response(
        serialize_payment(payment), "payments.get_payment", payment_id=payment.id
    )


@payments_bp.route("/<int:payment_id>", methods=["PUT"])
@policy_required("payment", "update")
def update_payment(payment_id):
    """
    Replace a payment
    ---
    tags:
      - Payments
    parameters:
      - in: path
        name: payment_id
        type: integer
        required: true
    responses:
      204:
        description: Updated
      400:
        description: Id mismatch, invalid fields or user subscription not found
      404:
        description: Payment not found
    """
    data = json_body()
    if data is None:
        return error_response("No valid JSON body found", 400)
    if id_mismatch(payment_id, data):
        return error_response("Path id does not match body id", 400)

    payment = get_active(Payment, payment_id)
    if not payment:
        return error_response("Payment not found", 404)

    try:
        fields = _read_payload(data)
    except (ValueError, LookupError) as e:
        return error_response(str(e), 400)

    for key, value in fields.items():
        setattr(payment, key, value)

    if not commit_update(Payment, payment_id):
        return error_response("Payment not found", 404)
    return no_content()


@payments_bp.route("/<int:payment_id>", methods=["DELETE"])
@policy_required("payment", "delete")
def delete_payment(payment_id):
    """
    Soft delete a payment
    ---
    tags:
      - Payments
    responses:
      204:
        description: Deleted
      404:
        description: Payment not found
    """
    payment = get_active(Payment, payment_id)
    if not payment:
        return error_response("Payment not found", 404)

    payment.soft_delete()
    db.session.commit()
    return no_content()

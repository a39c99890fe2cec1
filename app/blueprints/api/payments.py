"""
API payment endpoints: Toss widget checkout, billing-key registration
and the recurring charge.

The gateway redirects the browser to the frontend; the frontend relays
the redirect parameters here with the user's bearer token.
"""
from flask import request, jsonify

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import jwt_optional, jwt_required
from app.blueprints.api.helpers import load_json
from app.blueprints.api.schemas import (
    BillingSuccessSchema,
    ChargeSchema,
    CheckoutFailSchema,
    CheckoutReadySchema,
    CheckoutSuccessSchema,
)
from app.extensions import limiter
from app.services.billing_service import BillingService


@api_bp.route('/payments/toss/ready', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_required
def api_checkout_ready():
    """Create a pending payment and return the widget parameters.

    Request body:
        {"planName": "pro" | "expert", "amount": 29000}
    """
    data = load_json(CheckoutReadySchema())
    result = BillingService.prepare_checkout(request.api_user, data['plan_name'], data['amount'])
    return jsonify(result), 200


@api_bp.route('/payments/toss/success', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_required
def api_checkout_success():
    """Confirm a widget payment.

    Request body:
        {"paymentKey": "...", "orderId": "...", "amount": 29000, "planName": "pro"}
    """
    data = load_json(CheckoutSuccessSchema())
    result = BillingService.confirm_checkout(
        request.api_user,
        payment_key=data['payment_key'],
        order_id=data['order_id'],
        amount=data['amount'],
        plan_name=data['plan_name'],
    )
    return jsonify(result), 200


@api_bp.route('/payments/toss/fail', methods=['POST'])
@jwt_required
def api_checkout_fail():
    """Record a widget failure or cancellation.

    Request body:
        {"code": "...", "message": "...", "orderId": "..."}
    """
    data = load_json(CheckoutFailSchema())
    result = BillingService.fail_checkout(
        request.api_user, order_id=data['order_id'], code=data['code'], message=data['message']
    )
    return jsonify(result), 200


@api_bp.route('/payments/toss/billing/prepare', methods=['POST'])
@jwt_required
def api_billing_prepare():
    """Customer key and client key for the card-registration widget."""
    return jsonify(BillingService.prepare_billing(request.api_user)), 200


@api_bp.route('/payments/toss/billing/success', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_required
def api_billing_success():
    """Issue the billing key and take the first payment.

    Request body:
        {"authKey": "...", "customerKey": "CK_...", "planName": "pro"}
    """
    data = load_json(BillingSuccessSchema())
    result = BillingService.activate_billing(
        request.api_user,
        auth_key=data['auth_key'],
        customer_key=data['customer_key'],
        plan_name=data['plan_name'],
    )
    return jsonify(result), 200


@api_bp.route('/payments/toss/billing/charge', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_optional
def api_billing_charge():
    """Charge a stored billing agreement.

    Called by the scheduler with ``cronSecret``, or by the subscriber or
    an admin with a bearer token.

    Request body:
        {"userId": "...", "cronSecret": "..."}

    Returns:
        {"success": true, "orderId": "...", "amount": 29000}
    """
    data = load_json(ChargeSchema())
    BillingService.authorize_charge(
        data['user_id'], cron_secret=data['cron_secret'], caller=request.api_user
    )
    return jsonify(BillingService.charge_subscription(data['user_id'])), 200

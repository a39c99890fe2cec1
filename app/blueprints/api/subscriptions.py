"""
API subscription endpoints: the caller's plan, scheduled upgrades,
downgrade, quota snapshot and payment history.
"""
from flask import request, jsonify

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import jwt_required
from app.blueprints.api.helpers import load_json, paginate_query
from app.blueprints.api.schemas import ScheduleUpgradeSchema
from app.models.payments import PaymentLog
from app.services.policy_service import PolicyService
from app.services.subscription_service import SubscriptionService


@api_bp.route('/user/subscription', methods=['GET'])
@jwt_required
def api_get_subscription():
    """Effective plan (expired coupon periods already lapsed to free)."""
    return jsonify(SubscriptionService.get_subscription_info(request.api_user)), 200


@api_bp.route('/user/subscription/schedule-upgrade', methods=['POST'])
@jwt_required
def api_schedule_upgrade():
    """Queue an upgrade for the next renewal.

    Request body:
        {"targetPlan": "pro" | "expert"}
    """
    data = load_json(ScheduleUpgradeSchema())
    result = SubscriptionService.schedule_upgrade(request.api_user, data['target_plan'])
    return jsonify(result), 200


@api_bp.route('/user/subscription/schedule-upgrade', methods=['DELETE'])
@jwt_required
def api_cancel_scheduled_upgrade():
    return jsonify(SubscriptionService.cancel_scheduled_upgrade(request.api_user)), 200


@api_bp.route('/user/subscription/downgrade', methods=['POST'])
@jwt_required
def api_downgrade():
    """Move to free immediately and cancel recurring billing."""
    return jsonify(SubscriptionService.downgrade_to_free(request.api_user)), 200


@api_bp.route('/user/policy', methods=['GET'])
@jwt_required
def api_user_policy():
    """Quota and usage for the current month."""
    user = request.api_user
    plan = SubscriptionService.effective_plan(user)
    return jsonify(PolicyService.get_user_policy_info(user, plan)), 200


@api_bp.route('/user/payments', methods=['GET'])
@jwt_required
def api_user_payments():
    """The caller's payment log, newest first."""
    query = (
        PaymentLog.query
        .filter_by(user_id=request.api_user.id)
        .order_by(PaymentLog.created_at.desc(), PaymentLog.id.desc())
    )
    return jsonify(paginate_query(query, lambda log: log.to_dict(), key='payments')), 200

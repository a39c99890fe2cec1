"""
API coupon endpoint: redemption by the signed-in user.
"""
from flask import request, jsonify

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import jwt_required
from app.blueprints.api.helpers import load_json
from app.blueprints.api.schemas import RedeemCouponSchema
from app.extensions import limiter
from app.services.coupon_service import CouponService


@api_bp.route('/coupons/redeem', methods=['POST'])
@limiter.limit('10 per minute')
@jwt_required
def api_redeem_coupon():
    """Redeem a coupon code.

    Request body:
        {"code": "ABCD-EFGH-IJKL-MNOP"}

    Returns:
        {"success": true, "message": "...", "plan": "pro", "expiresAt": "..."}
    """
    data = load_json(RedeemCouponSchema())
    return jsonify(CouponService.redeem(request.api_user, data['code'])), 200

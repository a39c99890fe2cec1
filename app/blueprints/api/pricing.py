"""
API pricing endpoint: public plan catalog.
"""
from flask import jsonify

from app.blueprints.api import api_bp
from app.extensions import cache
from app.models.payments import PricingPlan

PRICING_CACHE_KEY = 'pricing_plans'


@api_bp.route('/pricing-plans', methods=['GET'])
@cache.cached(timeout=300, key_prefix=PRICING_CACHE_KEY)
def api_pricing_plans():
    plans = (
        PricingPlan.query
        .filter_by(is_active=True)
        .order_by(PricingPlan.display_order, PricingPlan.id)
        .all()
    )
    return jsonify({'plans': [p.to_dict() for p in plans]}), 200

"""
Admin API endpoints: group policies, coupon batches, revenue, users and projects.
"""
from flask import request, jsonify, current_app

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import admin_required
from app.blueprints.api.helpers import load_json, paginate_query
from app.blueprints.api.schemas import (
    AdminUserUpdateSchema,
    CouponBatchSchema,
    CouponDeleteSchema,
    PolicySchema,
    PolicyUpdateSchema,
)
from app.errors import NotFoundError
from app.extensions import db
from app.models.policy import GroupPolicy
from app.services.coupon_service import CouponService
from app.services.persistence import atomic
from app.services.revenue_service import RevenueService
from app.services.user_admin_service import UserAdminService


def _get_policy_or_404(policy_id):
    policy = db.session.get(GroupPolicy, policy_id)
    if policy is None:
        raise NotFoundError('정책을 찾을 수 없습니다.', code='policy_not_found')
    return policy


# ── Group policies ──────────────────────────────────────────

@api_bp.route('/admin/policies', methods=['GET'])
@admin_required
def api_admin_list_policies():
    policies = GroupPolicy.query.order_by(GroupPolicy.group_name).all()
    return jsonify([p.to_dict() for p in policies]), 200


@api_bp.route('/admin/policies', methods=['POST'])
@admin_required
def api_admin_upsert_policy():
    """Create or replace the policy for a group.

    Request body:
        {"groupName": "pro", "monthlyProjectLimit": 10,
         "monthlyPresentationLimit": 1, "description": "..."}
    """
    data = load_json(PolicySchema())

    policy = GroupPolicy.query.filter_by(group_name=data['group_name']).first()
    created = policy is None
    with atomic():
        if created:
            policy = GroupPolicy(group_name=data['group_name'])
            db.session.add(policy)
        policy.monthly_project_limit = data['monthly_project_limit']
        policy.monthly_presentation_limit = data['monthly_presentation_limit']
        policy.description = data['description']

    current_app.logger.info(
        f'Policy {policy.group_name} {"created" if created else "updated"} by {request.api_user.id}: '
        f'{policy.monthly_project_limit}/{policy.monthly_presentation_limit}'
    )
    return jsonify(policy.to_dict()), 201 if created else 200


@api_bp.route('/admin/policies/<int:policy_id>', methods=['GET'])
@admin_required
def api_admin_get_policy(policy_id):
    return jsonify(_get_policy_or_404(policy_id).to_dict()), 200


@api_bp.route('/admin/policies/<int:policy_id>', methods=['PATCH'])
@admin_required
def api_admin_update_policy(policy_id):
    policy = _get_policy_or_404(policy_id)
    data = load_json(PolicyUpdateSchema())

    with atomic():
        for field in ('monthly_project_limit', 'monthly_presentation_limit', 'description'):
            if field in data:
                setattr(policy, field, data[field])

    current_app.logger.info(f'Policy {policy.group_name} patched by {request.api_user.id}')
    return jsonify(policy.to_dict()), 200


@api_bp.route('/admin/policies/<int:policy_id>', methods=['DELETE'])
@admin_required
def api_admin_delete_policy(policy_id):
    """Delete a policy. Users of that group are denied until it is recreated."""
    policy = _get_policy_or_404(policy_id)
    group_name = policy.group_name
    with atomic():
        db.session.delete(policy)

    current_app.logger.warning(f'Policy {group_name} deleted by {request.api_user.id}')
    return jsonify({'success': True, 'message': '정책이 삭제되었습니다.'}), 200


# ── Coupons ─────────────────────────────────────────────────

@api_bp.route('/admin/coupons', methods=['GET'])
@admin_required
def api_admin_list_coupons():
    """Query params: status=all|unused|used, batchId, page, per_page."""
    page = max(1, request.args.get('page', 1, type=int))
    per_page = max(1, min(request.args.get('per_page', 50, type=int), 200))
    result = CouponService.list_coupons(
        status=request.args.get('status', 'all'),
        batch_id=request.args.get('batchId'),
        page=page,
        per_page=per_page,
    )
    return jsonify(result), 200


@api_bp.route('/admin/coupons', methods=['POST'])
@admin_required
def api_admin_generate_coupons():
    """Request body: {"count": 10, "plan": "pro", "durationDays": 30, "note": "..."}"""
    data = load_json(CouponBatchSchema())
    result = CouponService.generate_batch(
        count=data['count'],
        plan=data['plan'],
        duration_days=data['duration_days'],
        note=data['note'],
    )
    return jsonify(result), 201


@api_bp.route('/admin/coupons', methods=['DELETE'])
@admin_required
def api_admin_delete_coupons():
    """Request body: {"batchId": "BATCH-..."} or {"couponIds": [1, 2]}"""
    data = load_json(CouponDeleteSchema())
    return jsonify(CouponService.delete_unused(data['coupon_ids'], data['batch_id'])), 200


# ── Payments ────────────────────────────────────────────────

@api_bp.route('/admin/payments', methods=['GET'])
@admin_required
def api_admin_payments():
    """Query params: period=all|month|year, year, month."""
    result = RevenueService.summary(
        period=request.args.get('period', 'all'),
        year=request.args.get('year', type=int),
        month=request.args.get('month', type=int),
    )
    return jsonify(result), 200


# ── Users ───────────────────────────────────────────────────

@api_bp.route('/admin/users', methods=['GET'])
@admin_required
def api_admin_list_users():
    """Query params: page, per_page."""
    result = paginate_query(
        UserAdminService.users_query(), UserAdminService.user_summary, key='users', default_per_page=50,
    )
    return jsonify(result), 200


@api_bp.route('/admin/users/<user_id>', methods=['GET'])
@admin_required
def api_admin_get_user(user_id):
    return jsonify({'user': UserAdminService.get_user_detail(user_id)}), 200


@api_bp.route('/admin/users/<user_id>', methods=['PATCH'])
@admin_required
def api_admin_update_user(user_id):
    """Request body: {"role": "admin", "subscriptionPlan": "pro", "version": 3}"""
    data = load_json(AdminUserUpdateSchema())
    user = UserAdminService.update_user(
        request.api_user,
        user_id,
        role=data.get('role'),
        plan=data.get('subscription_plan'),
        expected_version=data['version'],
    )
    return jsonify({'user': user}), 200


# ── Projects ────────────────────────────────────────────────

@api_bp.route('/admin/projects', methods=['GET'])
@admin_required
def api_admin_list_projects():
    """Latest 100 projects across all users."""
    return jsonify({'projects': UserAdminService.list_projects()}), 200

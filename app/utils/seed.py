"""
Default rows for the policy and pricing tables.
Idempotent: existing rows are updated in place, never duplicated.
"""
from app.extensions import db
from app.models.payments import PricingPlan
from app.models.policy import GroupPolicy, UNLIMITED

DEFAULT_POLICIES = [
    {
        'group_name': 'admin',
        'monthly_project_limit': UNLIMITED,
        'monthly_presentation_limit': UNLIMITED,
        'description': '관리자 (무제한)',
    },
    {
        'group_name': 'expert',
        'monthly_project_limit': 30,
        'monthly_presentation_limit': 5,
        'description': 'Expert 플랜',
    },
    {
        'group_name': 'pro',
        'monthly_project_limit': 10,
        'monthly_presentation_limit': 1,
        'description': 'Pro 플랜',
    },
    {
        'group_name': 'free',
        'monthly_project_limit': 3,
        'monthly_presentation_limit': 0,
        'description': 'Free 플랜',
    },
]

DEFAULT_PRICING_PLANS = [
    {
        'name': 'free',
        'display_name': 'Free',
        'price': 0,
        'original_price': None,
        'monthly_analysis': 3,
        'features': ['월 3회 분석', 'PDF 다운로드', '기본 지원'],
        'is_popular': False,
        'display_order': 0,
    },
    {
        'name': 'pro',
        'display_name': 'Pro',
        'price': 29000,
        'original_price': 59000,
        'monthly_analysis': 10,
        'features': ['월 10회 분석', '월 1회 PT레포트', 'PDF 다운로드', '우선 지원'],
        'is_popular': True,
        'display_order': 1,
    },
    {
        'name': 'expert',
        'display_name': 'Expert',
        'price': 99000,
        'original_price': 149000,
        'monthly_analysis': 30,
        'features': ['월 30회 분석', '월 5회 PT레포트', 'PDF 다운로드', '전담 지원'],
        'is_popular': False,
        'display_order': 2,
    },
]


def _upsert(model, key, rows):
    created = updated = 0
    for row in rows:
        instance = model.query.filter_by(**{key: row[key]}).first()
        if instance is None:
            db.session.add(model(**row))
            created += 1
        else:
            for field, value in row.items():
                setattr(instance, field, value)
            updated += 1
    db.session.commit()
    return created, updated


def seed_policies():
    """Create or reset the four group policies. Returns (created, updated)."""
    return _upsert(GroupPolicy, 'group_name', DEFAULT_POLICIES)


def seed_pricing_plans():
    """Create or reset the free/pro/expert price list. Returns (created, updated)."""
    return _upsert(PricingPlan, 'name', DEFAULT_PRICING_PLANS)

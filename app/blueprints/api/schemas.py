"""
Marshmallow schemas for API request validation and serialization.
"""
from marshmallow import EXCLUDE, Schema, fields, validate

from app.models.policy import POLICY_GROUPS
from app.models.subscription import SubscriptionPlan
from app.models.user import UserRole

REQUIRED = {'required': '필수 입력 항목입니다'}
NOT_INTEGER = {'invalid': '정수를 입력해주세요', 'required': '필수 입력 항목입니다'}


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        unknown = EXCLUDE


# ── User / auth ─────────────────────────────────────────────

class UserSchema(BaseSchema):
    """User representation (for /auth/me and login responses)."""
    id = fields.Str(dump_only=True)
    email = fields.Email()
    name = fields.Str(allow_none=True)
    role = fields.Str()
    plan = fields.Str(attribute='current_plan', dump_only=True)
    created_at = fields.DateTime(format='iso', data_key='createdAt', dump_only=True)


class RegisterSchema(BaseSchema):
    email = fields.Email(required=True, error_messages={
        'required': '이메일을 입력해주세요', 'invalid': '올바른 이메일 형식이 아닙니다',
    })
    password = fields.Str(
        required=True,
        validate=validate.Length(min=8, error='비밀번호는 8자 이상이어야 합니다'),
        error_messages={'required': '비밀번호를 입력해주세요'},
    )
    name = fields.Str(load_default=None, validate=validate.Length(max=100))


class LoginSchema(BaseSchema):
    email = fields.Str(required=True, error_messages={'required': '이메일을 입력해주세요'})
    password = fields.Str(required=True, error_messages={'required': '비밀번호를 입력해주세요'})


class RefreshSchema(BaseSchema):
    refresh_token = fields.Str(required=True, error_messages=REQUIRED)


# ── Subscription / coupons ──────────────────────────────────

class RedeemCouponSchema(BaseSchema):
    code = fields.Str(required=True, error_messages={'required': '쿠폰 코드를 입력해주세요'})


class ScheduleUpgradeSchema(BaseSchema):
    target_plan = fields.Str(
        required=True, data_key='targetPlan',
        error_messages={'required': '유효하지 않은 플랜입니다'},
    )


# ── Payments ────────────────────────────────────────────────

class CheckoutReadySchema(BaseSchema):
    plan_name = fields.Str(required=True, data_key='planName',
                           error_messages={'required': '플랜 정보가 필요합니다'})
    amount = fields.Int(required=True, strict=True, error_messages={
        'required': '플랜 정보가 필요합니다', 'invalid': '결제 금액이 올바르지 않습니다',
    })


class CheckoutSuccessSchema(BaseSchema):
    payment_key = fields.Str(required=True, data_key='paymentKey', error_messages=REQUIRED)
    order_id = fields.Str(required=True, data_key='orderId', error_messages=REQUIRED)
    amount = fields.Int(required=True, error_messages=NOT_INTEGER)
    plan_name = fields.Str(required=True, data_key='planName', error_messages=REQUIRED)


class CheckoutFailSchema(BaseSchema):
    code = fields.Str(load_default=None)
    message = fields.Str(load_default=None)
    order_id = fields.Str(load_default=None, data_key='orderId')


class BillingSuccessSchema(BaseSchema):
    auth_key = fields.Str(required=True, data_key='authKey', error_messages=REQUIRED)
    customer_key = fields.Str(required=True, data_key='customerKey', error_messages=REQUIRED)
    plan_name = fields.Str(required=True, data_key='planName', error_messages=REQUIRED)


class ChargeSchema(BaseSchema):
    user_id = fields.Str(required=True, data_key='userId', error_messages=REQUIRED)
    cron_secret = fields.Str(load_default=None, data_key='cronSecret')


# ── Admin ───────────────────────────────────────────────────

PROJECT_LIMIT_INVALID = '월간 솔루션 제한은 0 이상의 숫자여야 합니다.'
PRESENTATION_LIMIT_INVALID = '월간 PT레포트 제한은 0 이상의 숫자여야 합니다.'


def _limit_field(message, **kwargs):
    return fields.Int(
        strict=True,
        validate=validate.Range(min=0, error=message),
        error_messages={'invalid': message, 'required': '그룹명과 월간 솔루션 제한은 필수입니다.'},
        **kwargs
    )


class PolicySchema(BaseSchema):
    group_name = fields.Str(
        required=True, data_key='groupName',
        validate=validate.OneOf(POLICY_GROUPS, error='그룹명은 admin, expert, pro, free 중 하나여야 합니다.'),
        error_messages={'required': '그룹명과 월간 솔루션 제한은 필수입니다.'},
    )
    monthly_project_limit = _limit_field(
        PROJECT_LIMIT_INVALID, required=True, data_key='monthlyProjectLimit'
    )
    monthly_presentation_limit = _limit_field(
        PRESENTATION_LIMIT_INVALID, load_default=0, data_key='monthlyPresentationLimit'
    )
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))


class PolicyUpdateSchema(BaseSchema):
    monthly_project_limit = _limit_field(PROJECT_LIMIT_INVALID, data_key='monthlyProjectLimit')
    monthly_presentation_limit = _limit_field(
        PRESENTATION_LIMIT_INVALID, data_key='monthlyPresentationLimit'
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=255))


class CouponBatchSchema(BaseSchema):
    count = fields.Int(
        required=True, strict=True,
        validate=validate.Range(min=1, max=1000, error='생성 개수는 1~1000 사이여야 합니다'),
        error_messages={
            'required': '생성 개수는 1~1000 사이여야 합니다',
            'invalid': '생성 개수는 1~1000 사이여야 합니다',
        },
    )
    plan = fields.Str(load_default='pro')
    duration_days = fields.Int(
        load_default=30, strict=True, data_key='durationDays',
        validate=validate.Range(min=1, error='유효기간은 1일 이상이어야 합니다'),
    )
    note = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))


class CouponDeleteSchema(BaseSchema):
    coupon_ids = fields.List(fields.Int(), load_default=None, data_key='couponIds')
    batch_id = fields.Str(load_default=None, data_key='batchId')


class AdminUserUpdateSchema(BaseSchema):
    role = fields.Str(validate=validate.OneOf(
        [r.value for r in UserRole], error='유효하지 않은 역할입니다',
    ))
    subscription_plan = fields.Str(data_key='subscriptionPlan', validate=validate.OneOf(
        [p.value for p in SubscriptionPlan], error='유효하지 않은 플랜입니다',
    ))
    version = fields.Int(strict=True, load_default=None, allow_none=True)


# ── Projects ────────────────────────────────────────────────

class ProjectCreateSchema(BaseSchema):
    company_name = fields.Str(
        required=True, data_key='companyName', validate=validate.Length(min=1, max=200),
        error_messages={'required': '회사명을 입력해주세요'},
    )
    representative = fields.Str(
        required=True, validate=validate.Length(min=1, max=100),
        error_messages={'required': '대표자명을 입력해주세요'},
    )
    business_number = fields.Str(load_default=None, data_key='businessNumber',
                                 validate=validate.Length(max=20))
    industry = fields.Str(load_default=None, validate=validate.Length(max=100))

"""
Service error taxonomy.

Every error raised by the service layer carries the HTTP status and a
machine-readable code; the API error handler turns it into
``{"error": <message>, "code": <code>}``. Quota denials are not errors.
"""


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = 'service_error'
    default_message = '서버 오류가 발생했습니다'

    def __init__(self, message=None, code=None, details=None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {'error': self.message, 'code': self.code}
        if self.details:
            body.update(self.details)
        return body


class ValidationError(ServiceError):
    """Malformed or unacceptable input."""
    status_code = 400
    code = 'validation_error'
    default_message = '유효하지 않은 입력입니다'


class AuthenticationError(ServiceError):
    """Missing or invalid credentials."""
    status_code = 401
    code = 'authentication_required'
    default_message = '인증이 필요합니다'


class AuthorizationError(ServiceError):
    """Authenticated but not allowed."""
    status_code = 403
    code = 'forbidden'
    default_message = '권한이 없습니다'


class NotFoundError(ServiceError):
    status_code = 404
    code = 'not_found'
    default_message = '요청한 정보를 찾을 수 없습니다'


class ConflictError(ServiceError):
    """State conflict: already redeemed, already scheduled, duplicate action."""
    status_code = 400
    code = 'conflict'
    default_message = '이미 처리된 요청입니다'


class InfrastructureError(ServiceError):
    """Store or gateway unreachable."""
    status_code = 500
    code = 'infrastructure_error'


# ── Domain errors ───────────────────────────────────────────

class CouponNotFoundError(NotFoundError):
    code = 'coupon_not_found'
    default_message = '유효하지 않은 쿠폰 코드입니다'


class CouponAlreadyRedeemedError(ConflictError):
    code = 'coupon_already_redeemed'
    default_message = '이미 사용된 쿠폰입니다. 담당자에게 문의하세요.'


class NoBillingAgreementError(ValidationError):
    code = 'no_billing_agreement'
    default_message = '빌링키가 없습니다'


class PlanNotPriceableError(ValidationError):
    code = 'plan_not_priceable'
    default_message = '플랜 정보가 없습니다'


class PaymentFailedError(ServiceError):
    """The gateway declined or could not process a charge."""
    status_code = 400
    code = 'payment_failed'
    default_message = '결제 실패'

    def __init__(self, gateway_message=None, gateway_code=None):
        self.gateway_message = gateway_message
        self.gateway_code = gateway_code
        details = {'message': gateway_message} if gateway_message else None
        super().__init__(details=details)


class PaymentConfigurationError(InfrastructureError):
    code = 'payment_config_error'
    default_message = '결제 설정 오류'

"""
Transaction boundary for service-layer writes.

Usage:
    with atomic():
        coupon.redeemed_by_id = user.id
        subscription.plan = coupon.plan

Everything inside the block commits together or not at all.
"""
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app.errors import ConflictError, InfrastructureError
from app.extensions import db

CONCURRENT_UPDATE_MESSAGE = '다른 요청이 먼저 구독 정보를 변경했습니다. 다시 시도해주세요.'


@contextmanager
def atomic():
    """Commit the session on success, roll back on any error.

    Optimistic-lock failures surface as ConflictError, other database
    errors as InfrastructureError. Service errors raised inside the
    block are re-raised untouched after the rollback.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as e:
        db.session.rollback()
        current_app.logger.warning(f'Optimistic lock conflict: {e}')
        raise ConflictError(CONCURRENT_UPDATE_MESSAGE, code='concurrent_update')
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'Database error, transaction rolled back: {e}')
        raise InfrastructureError()
    except Exception:
        db.session.rollback()
        raise

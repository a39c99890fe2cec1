"""
Revenue statistics for the admin payments page.
"""
from collections import defaultdict

from app.errors import ValidationError
from app.models.payments import PaymentLog, PaymentLogStatus
from app.utils.dates import month_bounds_utc, to_service_time, utcnow

RECENT_LIMIT = 100
PERIODS = ('all', 'month', 'year')


class RevenueService:

    @staticmethod
    def period_bounds(period, year, month):
        """[start, end) naive UTC bounds, or (None, None) for 'all'."""
        if period == 'month':
            return month_bounds_utc(f'{year:04d}-{month:02d}')
        if period == 'year':
            start, _ = month_bounds_utc(f'{year:04d}-01')
            _, end = month_bounds_utc(f'{year:04d}-12')
            return start, end
        return None, None

    @staticmethod
    def summary(period='all', year=None, month=None) -> dict:
        """Latest payment logs in the period with totals per status and method."""
        if period not in PERIODS:
            raise ValidationError('유효하지 않은 기간입니다', code='invalid_period')

        today = to_service_time(utcnow())
        year = year or today.year
        month = month or today.month
        if not 1 <= month <= 12:
            raise ValidationError('유효하지 않은 기간입니다', code='invalid_period')

        query = PaymentLog.query
        start, end = RevenueService.period_bounds(period, year, month)
        if start is not None:
            query = query.filter(PaymentLog.paid_at >= start, PaymentLog.paid_at < end)

        logs = (
            query
            .order_by(PaymentLog.paid_at.desc(), PaymentLog.id.desc())
            .limit(RECENT_LIMIT)
            .all()
        )

        totals = {status.value: {'count': 0, 'amount': 0} for status in PaymentLogStatus}
        methods = defaultdict(lambda: {'count': 0, 'amount': 0})
        monthly = {}
        if period == 'year':
            monthly = {f'{year:04d}-{m:02d}': 0 for m in range(1, 13)}

        for log in logs:
            bucket = totals[log.status.value]
            bucket['count'] += 1
            bucket['amount'] += log.amount
            if log.status != PaymentLogStatus.COMPLETED:
                continue
            method = methods[log.payment_method or 'unknown']
            method['count'] += 1
            method['amount'] += log.amount
            if period == 'year' and log.paid_at:
                local = to_service_time(log.paid_at)
                key = f'{local.year:04d}-{local.month:02d}'
                if key in monthly:
                    monthly[key] += log.amount

        completed = totals[PaymentLogStatus.COMPLETED.value]
        refunded = totals[PaymentLogStatus.REFUNDED.value]
        stats = {
            'totalRevenue': completed['amount'],
            'pendingRevenue': totals[PaymentLogStatus.PENDING.value]['amount'],
            'refundedRevenue': refunded['amount'],
            'netRevenue': completed['amount'] - refunded['amount'],
            'totalTransactions': completed['count'],
            'averageTransaction': (
                completed['amount'] / completed['count'] if completed['count'] else 0
            ),
            'byStatus': totals,
            'paymentMethodStats': dict(methods),
        }
        if period == 'year':
            stats['monthlyRevenue'] = monthly

        return {
            'stats': stats,
            'payments': [
                {**log.to_dict(), 'userEmail': log.user.email if log.user else None}
                for log in logs
            ],
            'period': {
                'type': period,
                'year': year,
                'month': month if period == 'month' else None,
            },
        }

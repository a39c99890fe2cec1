"""
Usage ledger: monthly per-user counters for quota-gated actions.
"""
from sqlalchemy.dialects import postgresql, sqlite

from app.extensions import db
from app.models.policy import UsageLog, UsageKind
from app.utils.dates import utcnow, current_year_month

_UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


class UsageService:
    """Read and increment UsageLog counters."""

    @staticmethod
    def get_count(user_id: str, kind: UsageKind, year_month: str = None) -> int:
        """Count for the month (current month by default); 0 when no row exists."""
        year_month = year_month or current_year_month()
        row = (
            UsageLog.query
            .filter_by(user_id=user_id, year_month=year_month, kind=kind)
            .populate_existing()
            .first()
        )
        return row.count if row else 0

    @staticmethod
    def increment(user_id: str, kind: UsageKind, year_month: str = None) -> None:
        """Add one to the counter, creating the row on first use in the month.

        Executed as a single INSERT ... ON CONFLICT DO UPDATE so concurrent
        increments accumulate. Does not commit: the caller commits together
        with the action being counted.
        """
        year_month = year_month or current_year_month()
        now = utcnow()
        table = UsageLog.__table__
        dialect = db.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)

        if insert is None:
            # No native upsert: lock the row and bump it
            row = (
                UsageLog.query
                .filter_by(user_id=user_id, year_month=year_month, kind=kind)
                .with_for_update()
                .first()
            )
            if row:
                row.count += 1
            else:
                db.session.add(UsageLog(
                    user_id=user_id, year_month=year_month, kind=kind, count=1, updated_at=now,
                ))
            db.session.flush()
            return

        stmt = insert(table).values(
            user_id=user_id,
            year_month=year_month,
            kind=kind,
            count=1,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.user_id, table.c.year_month, table.c.kind],
            set_={'count': table.c.count + 1, 'updated_at': now},
        )
        db.session.execute(stmt)

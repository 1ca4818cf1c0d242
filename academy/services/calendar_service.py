from __future__ import annotations

import calendar as month_calendar
from datetime import date

from sqlalchemy.orm import Session

from academy.cache import SCOPE_CALENDAR, cache_key, cached_view
from academy.core.errors import ValidationError
from academy.core.time_provider import TimeProvider, default_time_provider
from academy.models import SessionStatus
from academy.services.access_scope_service import ActorContext
from academy.services.training_session_service import list_sessions, serialize_session


_CLOSED_STATUSES = (SessionStatus.CANCELLED.value, SessionStatus.COMPLETED.value)


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    if month < 1 or month > 12:
        raise ValidationError('Month must be between 1 and 12')
    last_day = month_calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _effective_filters(actor: ActorContext, coach_id: int | None, branch_id: int | None) -> tuple[int | None, int | None]:
    if actor.is_admin:
        return coach_id, branch_id
    return actor.coach_id, None


def is_upcoming(row: dict, today: date) -> bool:
    return row['date'] >= today.isoformat() and row['status'] not in _CLOSED_STATUSES


def is_past(row: dict, today: date) -> bool:
    return row['status'] == SessionStatus.COMPLETED.value or row['date'] < today.isoformat()


def _month_view_key(
    db: Session,
    actor: ActorContext,
    *,
    year: int,
    month: int,
    coach_id: int | None = None,
    branch_id: int | None = None,
    package_type: str | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> str:
    coach_filter, branch_filter = _effective_filters(actor, coach_id, branch_id)
    return cache_key(
        SCOPE_CALENDAR,
        actor.role,
        actor.coach_id,
        f'{year:04d}-{month:02d}',
        f'c{coach_filter or 0}',
        f'b{branch_filter or 0}',
        package_type or 'any',
        time_provider.today().isoformat(),
    )


@cached_view(key_builder=_month_view_key)
def month_view(
    db: Session,
    actor: ActorContext,
    *,
    year: int,
    month: int,
    coach_id: int | None = None,
    branch_id: int | None = None,
    package_type: str | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Sessions for one month grouped by day, plus the upcoming and past lists.

    Coaches always get their own sessions; the coach and branch filters only
    apply for admins.
    """
    first_day, last_day = _month_bounds(year, month)
    coach_filter, branch_filter = _effective_filters(actor, coach_id, branch_id)
    today = time_provider.today()

    filters = {'coach_id': coach_filter, 'branch_id': branch_filter, 'package_type': package_type}
    month_rows = [
        serialize_session(row)
        for row in list_sessions(db, actor, date_from=first_day, date_to=last_day, **filters)
    ]
    days: dict[str, dict] = {}
    for row in sorted(month_rows, key=lambda item: (item['date'], item['start_time'], item['id'])):
        bucket = days.setdefault(
            row['date'],
            {'sessions': [], 'has_scheduled': False, 'has_completed': False, 'has_cancelled': False},
        )
        bucket['sessions'].append(row)
        bucket[f"has_{row['status']}"] = True

    all_rows = [serialize_session(row) for row in list_sessions(db, actor, **filters)]
    upcoming = sorted(
        (row for row in all_rows if is_upcoming(row, today)),
        key=lambda item: (item['date'], item['start_time'], item['id']),
    )
    past = sorted(
        (row for row in all_rows if is_past(row, today)),
        key=lambda item: (item['date'], item['start_time'], item['id']),
        reverse=True,
    )
    return {
        'month': f'{year:04d}-{month:02d}',
        'today': today.isoformat(),
        'days': days,
        'upcoming': upcoming,
        'past': past,
    }

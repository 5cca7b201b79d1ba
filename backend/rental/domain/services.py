from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Protocol, cast

from ..models import ReservationStatus
from .errors import AuthorizationError, CannotCancelError, InvalidStateError, ValidationError

BLOCKING_STATUSES: frozenset[ReservationStatus] = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.APPROVED}
)
TERMINAL_STATUSES: frozenset[ReservationStatus] = frozenset(
    {ReservationStatus.REJECTED, ReservationStatus.CANCELLED, ReservationStatus.COMPLETED}
)
CANCEL_LEAD_TIME = timedelta(hours=24)
MAX_CALENDAR_DAYS = 366


@dataclass(frozen=True)
class Transition:
    sources: frozenset[ReservationStatus]
    target: ReservationStatus


# Owner-driven transitions. Cancel has its own rule set, see ensure_cancellable.
TRANSITIONS: dict[str, Transition] = {
    "approve": Transition(frozenset({ReservationStatus.PENDING}), ReservationStatus.APPROVED),
    "reject": Transition(frozenset({ReservationStatus.PENDING}), ReservationStatus.REJECTED),
    "complete": Transition(frozenset({ReservationStatus.APPROVED}), ReservationStatus.COMPLETED),
}


class _Priced(Protocol):
    price_per_hour: Optional[Decimal]
    price_per_day: Optional[Decimal]
    price_per_week: Optional[Decimal]


@dataclass(frozen=True)
class PriceTiers:
    hourly: Optional[Decimal] = None
    daily: Optional[Decimal] = None
    weekly: Optional[Decimal] = None

    @classmethod
    def of(cls, equipment: _Priced) -> "PriceTiers":
        return cls(
            hourly=equipment.price_per_hour,
            daily=equipment.price_per_day,
            weekly=equipment.price_per_week,
        )


@dataclass(frozen=True)
class DayAvailability:
    date: date
    available: bool


def is_blocking(status: ReservationStatus) -> bool:
    return status in BLOCKING_STATUSES


def ranges_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Inclusive interval overlap: touching boundaries count as a conflict."""
    return a_start <= b_end and a_end >= b_start


def _ceil_units(duration: timedelta, unit: timedelta) -> int:
    return -((-duration) // unit)


def calculate_price(tiers: PriceTiers, start: datetime, end: datetime) -> Decimal:
    """
    Price a rental over ``[start, end]``.

    A started day counts as a full day. The weekly tier wins from seven days on;
    leftover days are charged at the daily rate when one exists and are not
    charged otherwise. Amounts are never rounded here.
    """
    duration = end - start
    days = _ceil_units(duration, timedelta(days=1))

    if tiers.weekly is not None and days >= 7:
        weeks, remaining_days = divmod(days, 7)
        price = weeks * tiers.weekly
        if remaining_days > 0 and tiers.daily is not None:
            price += remaining_days * tiers.daily
        return price

    if tiers.daily is not None:
        return days * tiers.daily

    if tiers.hourly is not None:
        return _ceil_units(duration, timedelta(hours=1)) * tiers.hourly

    return Decimal("0")


def validate_reservation_request(
    start_date: datetime | None,
    end_date: datetime | None,
    *,
    now: datetime,
) -> tuple[datetime, datetime]:
    """Input checks for a new booking; runs before any store access."""
    problems: dict[str, str] = {}
    if start_date is None:
        problems["start_date"] = "is required"
    if end_date is None:
        problems["end_date"] = "is required"
    if start_date is not None and end_date is not None:
        if end_date <= start_date:
            problems["end_date"] = "must be after start_date"
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if start_date < today:
            problems["start_date"] = "must be in the future"
    if problems:
        raise ValidationError(problems)
    return cast(datetime, start_date), cast(datetime, end_date)


def ensure_participant(*, renter_id: int, owner_id: int, caller_id: int) -> None:
    if caller_id not in (renter_id, owner_id):
        raise AuthorizationError("not authorized to access this reservation")


def ensure_owner(*, owner_id: int, caller_id: int) -> None:
    if caller_id != owner_id:
        raise AuthorizationError("only the equipment owner can perform this action")


def ensure_transition(action: str, current: ReservationStatus) -> Transition:
    transition = TRANSITIONS[action]
    if current not in transition.sources:
        raise InvalidStateError(f"cannot {action} a reservation in status {current.value}")
    return transition


def ensure_cancellable(status: ReservationStatus, start_date: datetime, *, now: datetime) -> None:
    """Pending bookings can always be cancelled; approved ones only ahead of the lead time."""
    if status not in BLOCKING_STATUSES:
        raise CannotCancelError(f"cannot cancel a reservation in status {status.value}")
    if status == ReservationStatus.APPROVED and start_date < now + CANCEL_LEAD_TIME:
        raise CannotCancelError("approved reservations can only be cancelled 24 hours before start")


def validate_calendar_window(start: date | None, end: date | None) -> tuple[date, date]:
    problems: dict[str, str] = {}
    if start is None:
        problems["start_date"] = "is required"
    if end is None:
        problems["end_date"] = "is required"
    if start is not None and end is not None:
        if end < start:
            problems["end_date"] = "must not be before start_date"
        elif (end - start).days + 1 > MAX_CALENDAR_DAYS:
            problems["end_date"] = f"window must not exceed {MAX_CALENDAR_DAYS} days"
    if problems:
        raise ValidationError(problems)
    return cast(date, start), cast(date, end)


def day_span(first: date, last: date) -> tuple[datetime, datetime]:
    """First instant of ``first`` through the last instant of ``last``; bookings block whole days."""
    start = datetime.combine(first, time.min)
    end = datetime.combine(last + timedelta(days=1), time.min) - timedelta(microseconds=1)
    return start, end


def build_calendar(
    window_start: date,
    window_end: date,
    blocking: Iterable[tuple[datetime, datetime]],
) -> list[DayAvailability]:
    """Expand blocking ranges into one entry per day of the inclusive window."""
    reserved: set[date] = set()
    for res_start, res_end in blocking:
        day = max(res_start.date(), window_start)
        last = min(res_end.date(), window_end)
        while day <= last:
            reserved.add(day)
            day += timedelta(days=1)

    days: list[DayAvailability] = []
    day = window_start
    while day <= window_end:
        days.append(DayAvailability(date=day, available=day not in reserved))
        day += timedelta(days=1)
    return days

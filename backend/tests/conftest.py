from __future__ import annotations

import asyncio
import itertools
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Optional

import pytest
from rental.domain.errors import StorageError
from rental.domain.services import BLOCKING_STATUSES, ranges_overlap
from rental.models import Equipment, Notification, NotificationType, Reservation, ReservationStatus
from rental.usecases.notifications import Notifier
from rental.utils.time import utc_now

OWNER_ID = 1
RENTER_ID = 2
STRANGER_ID = 99


class InMemoryStore:
    """Shared state behind the fake repositories; equipment locks live here."""

    def __init__(self) -> None:
        self.equipment: dict[int, Equipment] = {}
        self.reservations: dict[int, Reservation] = {}
        self.notifications: dict[int, Notification] = {}
        self.locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.fail_notifications = False
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def add_equipment(self, **overrides: Any) -> Equipment:
        now = utc_now()
        fields: dict[str, Any] = {
            "id": self.next_id(),
            "owner_id": OWNER_ID,
            "name": "Concrete mixer",
            "category": "construction",
            "price_per_hour": None,
            "price_per_day": Decimal("50"),
            "price_per_week": Decimal("200"),
            "available": True,
            "auto_approve": False,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        equipment = Equipment(**fields)
        self.equipment[equipment.id] = equipment
        return equipment

    def add_reservation(
        self,
        equipment: Equipment,
        *,
        start_date: datetime,
        end_date: datetime,
        status: ReservationStatus = ReservationStatus.PENDING,
        renter_id: int = RENTER_ID,
        total_price: Decimal = Decimal("100"),
    ) -> Reservation:
        now = utc_now()
        reservation = Reservation(
            id=self.next_id(),
            equipment_id=equipment.id,
            renter_id=renter_id,
            start_date=start_date,
            end_date=end_date,
            status=status,
            total_price=total_price,
            version=1,
            created_at=now,
            updated_at=now,
        )
        reservation.equipment = equipment
        self.reservations[reservation.id] = reservation
        return reservation

    def notifications_for(self, user_id: int) -> list[Notification]:
        return [n for n in self.notifications.values() if n.user_id == user_id]

    @asynccontextmanager
    async def transaction(self, logger: Optional[logging.Logger] = None) -> AsyncIterator["FakeTransaction"]:
        tx = FakeTransaction(self, logger or logging.getLogger("tests.notifications"))
        try:
            yield tx
        finally:
            tx.release()


class FakeTransaction:
    def __init__(self, store: InMemoryStore, logger: logging.Logger) -> None:
        self.store = store
        self.held: set[int] = set()
        self.catalog = FakeCatalog(self)
        self.reservations = FakeReservationRepo(store)
        self.notifications = FakeNotificationRepo(store)
        self.notifier = Notifier(self.notifications, logger)

    async def lock(self, equipment_id: int) -> None:
        if equipment_id not in self.held:
            await self.store.locks[equipment_id].acquire()
            self.held.add(equipment_id)

    def release(self) -> None:
        for equipment_id in self.held:
            self.store.locks[equipment_id].release()
        self.held.clear()


class FakeCatalog:
    def __init__(self, tx: FakeTransaction) -> None:
        self.tx = tx
        self.store = tx.store
        self.calls: list[str] = []

    async def get_by_id(self, equipment_id: int) -> Equipment | None:
        self.calls.append("get_by_id")
        return self.store.equipment.get(equipment_id)

    async def get_for_update(self, equipment_id: int) -> Equipment | None:
        self.calls.append("get_for_update")
        await self.tx.lock(equipment_id)
        return self.store.equipment.get(equipment_id)

    async def blocking_reservations_overlapping(
        self,
        equipment_id: int,
        start: datetime,
        end: datetime,
    ) -> list[Reservation]:
        # Yield like a real round trip would, so unguarded check-then-insert races show up.
        await asyncio.sleep(0)
        return [
            r
            for r in self.store.reservations.values()
            if r.equipment_id == equipment_id
            and r.status in BLOCKING_STATUSES
            and ranges_overlap(r.start_date, r.end_date, start, end)
        ]

    async def check_availability(self, equipment_id: int, start: datetime, end: datetime) -> bool:
        self.calls.append("check_availability")
        return not await self.blocking_reservations_overlapping(equipment_id, start, end)


class FakeReservationRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create(
        self,
        *,
        equipment: Equipment,
        renter_id: int,
        start_date: datetime,
        end_date: datetime,
        status: ReservationStatus,
        total_price: Decimal,
    ) -> Reservation:
        await asyncio.sleep(0)
        return self.store.add_reservation(
            equipment,
            start_date=start_date,
            end_date=end_date,
            status=status,
            renter_id=renter_id,
            total_price=total_price,
        )

    async def get(self, reservation_id: int) -> Reservation | None:
        return self.store.reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        return self.store.reservations.get(reservation_id)

    async def transition(
        self,
        reservation: Reservation,
        *,
        expected: Iterable[ReservationStatus],
        target: ReservationStatus,
        reason: str | None = None,
    ) -> bool:
        if reservation.status not in set(expected):
            return False
        reservation.status = target
        if target in (ReservationStatus.REJECTED, ReservationStatus.CANCELLED):
            reservation.cancellation_reason = reason
        reservation.version += 1
        reservation.updated_at = utc_now()
        return True

    def _page(self, rows: list[Reservation], limit: int, offset: int) -> tuple[list[Reservation], int]:
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def list_by_renter(self, renter_id: int, *, limit: int, offset: int) -> tuple[list[Reservation], int]:
        rows = [r for r in self.store.reservations.values() if r.renter_id == renter_id]
        return self._page(rows, limit, offset)

    async def list_by_owner(self, owner_id: int, *, limit: int, offset: int) -> tuple[list[Reservation], int]:
        rows = [r for r in self.store.reservations.values() if r.equipment.owner_id == owner_id]
        return self._page(rows, limit, offset)


class FakeNotificationRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def record(
        self,
        *,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: int | None,
        reference_type: str | None,
    ) -> Notification:
        if self.store.fail_notifications:
            raise StorageError("notifications table unavailable")
        notification = Notification(
            id=self.store.next_id(),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            read=False,
            reference_id=reference_id,
            reference_type=reference_type,
            created_at=utc_now(),
        )
        self.store.notifications[notification.id] = notification
        return notification

    async def get(self, notification_id: int) -> Notification | None:
        return self.store.notifications.get(notification_id)

    async def list_by_user(self, user_id: int, *, limit: int, offset: int) -> tuple[list[Notification], int]:
        rows = sorted(self.store.notifications_for(user_id), key=lambda n: (n.created_at, n.id), reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def unread_count(self, user_id: int) -> int:
        return sum(1 for n in self.store.notifications_for(user_id) if not n.read)

    async def mark_as_read(self, notification: Notification) -> Notification:
        notification.read = True
        return notification

    async def mark_all_as_read(self, user_id: int) -> int:
        unread = [n for n in self.store.notifications_for(user_id) if not n.read]
        for notification in unread:
            notification.read = True
        return len(unread)

    async def delete(self, notification: Notification) -> None:
        del self.store.notifications[notification.id]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def day_zero() -> datetime:
    """Midnight UTC thirty days out; far enough that lead-time rules never interfere."""
    return (utc_now() + timedelta(days=30)).replace(hour=0, minute=0, second=0, microsecond=0)


@pytest.fixture
def tx(store: InMemoryStore) -> Iterable[FakeTransaction]:
    """Repositories over ``store`` for tests that do not exercise locking."""
    transaction = FakeTransaction(store, logging.getLogger("tests.notifications"))
    yield transaction
    transaction.release()

from __future__ import annotations

import functools
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar, cast

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from ..domain.errors import StorageError
from ..domain.repositories import (
    EquipmentCatalog,
    NotificationRepository,
    ReservationRepository,
)
from ..domain.services import BLOCKING_STATUSES
from ..models import Equipment, Notification, NotificationType, Reservation, ReservationStatus
from ..utils.time import utc_now

T = TypeVar("T")


def _storage_errors(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Surface driver/ORM failures as StorageError with the cause chained."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise StorageError(f"{fn.__name__} failed: {exc}") from exc

    return wrapper


def _blocking_overlap(equipment_id: int, start: datetime, end: datetime) -> Any:
    return (
        (Reservation.equipment_id == equipment_id)
        & Reservation.status.in_(list(BLOCKING_STATUSES))
        & (Reservation.start_date <= end)
        & (Reservation.end_date >= start)
    )


class SqlAlchemyEquipmentCatalog(EquipmentCatalog):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @_storage_errors
    async def get_by_id(self, equipment_id: int) -> Equipment | None:
        return await self.session.get(Equipment, equipment_id)

    @_storage_errors
    async def get_for_update(self, equipment_id: int) -> Equipment | None:
        # Row lock serializes check-then-insert for one piece of equipment until commit.
        result = await self.session.scalar(
            select(Equipment).where(Equipment.id == equipment_id).with_for_update()
        )
        return result if isinstance(result, Equipment) else None

    @_storage_errors
    async def check_availability(self, equipment_id: int, start: datetime, end: datetime) -> bool:
        stmt = select(func.count(Reservation.id)).where(_blocking_overlap(equipment_id, start, end))
        return int(await self.session.scalar(stmt) or 0) == 0

    @_storage_errors
    async def blocking_reservations_overlapping(
        self,
        equipment_id: int,
        start: datetime,
        end: datetime,
    ) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(_blocking_overlap(equipment_id, start, end))
            .order_by(Reservation.start_date)
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @_storage_errors
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
        now = utc_now()
        reservation = Reservation(
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
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    def _with_equipment(self) -> Select[Tuple[Reservation]]:
        return select(Reservation).options(joinedload(Reservation.equipment))

    @_storage_errors
    async def get(self, reservation_id: int) -> Reservation | None:
        stmt = self._with_equipment().where(Reservation.id == reservation_id)
        return cast(Optional[Reservation], await self.session.scalar(stmt))

    @_storage_errors
    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        stmt = (
            self._with_equipment()
            .where(Reservation.id == reservation_id)
            .with_for_update(of=Reservation)
        )
        return cast(Optional[Reservation], await self.session.scalar(stmt))

    @_storage_errors
    async def transition(
        self,
        reservation: Reservation,
        *,
        expected: Iterable[ReservationStatus],
        target: ReservationStatus,
        reason: str | None = None,
    ) -> bool:
        """Conditional status update; False when the row left every expected status."""
        values: dict[str, Any] = {
            "status": target,
            "version": Reservation.version + 1,
            "updated_at": utc_now(),
        }
        if target in (ReservationStatus.REJECTED, ReservationStatus.CANCELLED):
            values["cancellation_reason"] = reason or None
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation.id, Reservation.status.in_(list(expected)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return False
        await self.session.refresh(
            reservation,
            attribute_names=["status", "cancellation_reason", "version", "updated_at"],
        )
        return True

    async def _page(self, condition: Any, *, limit: int, offset: int) -> Tuple[List[Reservation], int]:
        count_stmt = (
            select(func.count(Reservation.id))
            .join(Equipment, Reservation.equipment_id == Equipment.id)
            .where(condition)
        )
        total = int(await self.session.scalar(count_stmt) or 0)
        stmt = (
            self._with_equipment()
            .join(Equipment, Reservation.equipment_id == Equipment.id)
            .where(condition)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.unique().all()), total

    @_storage_errors
    async def list_by_renter(self, renter_id: int, *, limit: int, offset: int) -> Tuple[List[Reservation], int]:
        return await self._page(Reservation.renter_id == renter_id, limit=limit, offset=offset)

    @_storage_errors
    async def list_by_owner(self, owner_id: int, *, limit: int, offset: int) -> Tuple[List[Reservation], int]:
        return await self._page(Equipment.owner_id == owner_id, limit=limit, offset=offset)


class SqlAlchemyNotificationRepository(NotificationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @_storage_errors
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
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            read=False,
            reference_id=reference_id,
            reference_type=reference_type,
            created_at=utc_now(),
        )
        # Savepoint keeps a failed insert from aborting the caller's transaction.
        async with self.session.begin_nested():
            self.session.add(notification)
        return notification

    @_storage_errors
    async def get(self, notification_id: int) -> Notification | None:
        return await self.session.get(Notification, notification_id)

    @_storage_errors
    async def list_by_user(self, user_id: int, *, limit: int, offset: int) -> Tuple[List[Notification], int]:
        total = int(
            await self.session.scalar(
                select(func.count(Notification.id)).where(Notification.user_id == user_id)
            )
            or 0
        )
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list((await self.session.scalars(stmt)).all()), total

    @_storage_errors
    async def unread_count(self, user_id: int) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        return int(await self.session.scalar(stmt) or 0)

    @_storage_errors
    async def mark_as_read(self, notification: Notification) -> Notification:
        notification.read = True
        self.session.add(notification)
        await self.session.flush()
        return notification

    @_storage_errors
    async def mark_all_as_read(self, user_id: int) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    @_storage_errors
    async def delete(self, notification: Notification) -> None:
        await self.session.delete(notification)
        await self.session.flush()

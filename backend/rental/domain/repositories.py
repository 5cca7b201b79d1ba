from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Protocol

from ..models import Equipment, Notification, NotificationType, Reservation, ReservationStatus


class EquipmentCatalog(Protocol):
    async def get_by_id(self, equipment_id: int) -> Equipment | None: ...

    async def get_for_update(self, equipment_id: int) -> Equipment | None: ...

    async def check_availability(self, equipment_id: int, start: datetime, end: datetime) -> bool: ...

    async def blocking_reservations_overlapping(
        self,
        equipment_id: int,
        start: datetime,
        end: datetime,
    ) -> list[Reservation]: ...


class ReservationRepository(Protocol):
    async def create(
        self,
        *,
        equipment: Equipment,
        renter_id: int,
        start_date: datetime,
        end_date: datetime,
        status: ReservationStatus,
        total_price: Decimal,
    ) -> Reservation: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def transition(
        self,
        reservation: Reservation,
        *,
        expected: Iterable[ReservationStatus],
        target: ReservationStatus,
        reason: str | None = None,
    ) -> bool: ...

    async def list_by_renter(self, renter_id: int, *, limit: int, offset: int) -> tuple[list[Reservation], int]: ...

    async def list_by_owner(self, owner_id: int, *, limit: int, offset: int) -> tuple[list[Reservation], int]: ...


class NotificationSink(Protocol):
    async def record(
        self,
        *,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: int | None,
        reference_type: str | None,
    ) -> Notification: ...


class NotificationRepository(NotificationSink, Protocol):
    async def get(self, notification_id: int) -> Notification | None: ...

    async def list_by_user(self, user_id: int, *, limit: int, offset: int) -> tuple[list[Notification], int]: ...

    async def unread_count(self, user_id: int) -> int: ...

    async def mark_as_read(self, notification: Notification) -> Notification: ...

    async def mark_all_as_read(self, user_id: int) -> int: ...

    async def delete(self, notification: Notification) -> None: ...

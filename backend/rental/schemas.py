from datetime import date, datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from .domain.services import DayAvailability
from .models import Notification, NotificationType, Reservation, ReservationStatus
from .utils.pagination import PageParams, total_pages
from .utils.time import utc_naive_to_aware

ItemT = TypeVar("ItemT")


class ReservationCreate(BaseModel):
    equipment_id: int = Field(ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ReservationReason(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class ReservationRead(BaseModel):
    reservation_id: int
    equipment_id: int
    equipment_name: Optional[str] = None
    owner_id: Optional[int] = None
    renter_id: int
    start_date: datetime
    end_date: datetime
    status: ReservationStatus
    total_price: Decimal
    cancellation_reason: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    @field_serializer("start_date", "end_date", "created_at", "updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_aware(dt).isoformat()

    @field_serializer("total_price")
    def _ser_price(self, price: Decimal) -> str:
        return str(price)

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        equipment = reservation.equipment
        return cls(
            reservation_id=reservation.id,
            equipment_id=reservation.equipment_id,
            equipment_name=equipment.name if equipment is not None else None,
            owner_id=equipment.owner_id if equipment is not None else None,
            renter_id=reservation.renter_id,
            start_date=reservation.start_date,
            end_date=reservation.end_date,
            status=reservation.status,
            total_price=reservation.total_price,
            cancellation_reason=reservation.cancellation_reason,
            version=reservation.version,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )


class DayAvailabilityRead(BaseModel):
    date: date
    available: bool

    @classmethod
    def from_domain(cls, day: DayAvailability) -> "DayAvailabilityRead":
        return cls(date=day.date, available=day.available)


class NotificationRead(BaseModel):
    notification_id: int
    type: NotificationType
    title: str
    message: str
    read: bool
    reference_id: Optional[int] = None
    reference_type: Optional[str] = None
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_aware(dt).isoformat()

    @classmethod
    def from_db(cls, *, notification: Notification) -> "NotificationRead":
        return cls(
            notification_id=notification.id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            read=notification.read,
            reference_id=notification.reference_id,
            reference_type=notification.reference_type,
            created_at=notification.created_at,
        )


class UnreadCount(BaseModel):
    unread: int


class Page(BaseModel, Generic[ItemT]):
    items: List[ItemT]
    total: int
    page: int
    per_page: int
    total_pages: int

    @classmethod
    def build(cls, items: List[ItemT], total: int, params: PageParams) -> "Page[ItemT]":
        return cls(
            items=items,
            total=total,
            page=params.page,
            per_page=params.per_page,
            total_pages=total_pages(total, params.per_page),
        )

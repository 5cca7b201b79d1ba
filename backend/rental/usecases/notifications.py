from __future__ import annotations

import logging

from ..domain.errors import AuthorizationError, NotFoundError
from ..domain.repositories import NotificationRepository, NotificationSink
from ..models import Notification, NotificationType, Reservation
from ..utils.pagination import PageParams

REFERENCE_TYPE_RESERVATION = "reservation"


class Notifier:
    """
    Best-effort notification recording for reservation transitions.

    A failure to record never fails the transition that triggered it; it is
    logged through the injected logger with enough context to replay by hand.
    """

    def __init__(self, sink: NotificationSink, logger: logging.Logger) -> None:
        self.sink = sink
        self.logger = logger

    async def notify(
        self,
        *,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        reservation_id: int | None,
    ) -> Notification | None:
        try:
            return await self.sink.record(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                reference_id=reservation_id,
                reference_type=REFERENCE_TYPE_RESERVATION if reservation_id is not None else None,
            )
        except Exception:
            self.logger.exception(
                "failed to record notification type=%s user_id=%s reservation_id=%s",
                type.value,
                user_id,
                reservation_id,
            )
            return None

    async def reservation_requested(self, reservation: Reservation, *, owner_id: int, name: str) -> None:
        await self.notify(
            user_id=owner_id,
            type=NotificationType.RESERVATION_CREATED,
            title="New Reservation Request",
            message=f"You have a new reservation request for {name}",
            reservation_id=reservation.id,
        )

    async def reservation_approved(self, reservation: Reservation, *, name: str, automatic: bool = False) -> None:
        message = (
            f"Your reservation for {name} has been automatically approved"
            if automatic
            else f"Your reservation for {name} has been approved"
        )
        await self.notify(
            user_id=reservation.renter_id,
            type=NotificationType.RESERVATION_APPROVED,
            title="Reservation Approved",
            message=message,
            reservation_id=reservation.id,
        )

    async def reservation_rejected(self, reservation: Reservation, *, name: str) -> None:
        await self.notify(
            user_id=reservation.renter_id,
            type=NotificationType.RESERVATION_REJECTED,
            title="Reservation Rejected",
            message=f"Your reservation for {name} has been rejected",
            reservation_id=reservation.id,
        )

    async def reservation_cancelled(self, reservation: Reservation, *, recipient_id: int, name: str) -> None:
        await self.notify(
            user_id=recipient_id,
            type=NotificationType.RESERVATION_CANCELLED,
            title="Reservation Cancelled",
            message=f"A reservation for {name} has been cancelled",
            reservation_id=reservation.id,
        )

    async def reservation_completed(self, reservation: Reservation, *, name: str) -> None:
        await self.notify(
            user_id=reservation.renter_id,
            type=NotificationType.RESERVATION_COMPLETED,
            title="Reservation Completed",
            message=f"Your reservation for {name} has been marked as completed",
            reservation_id=reservation.id,
        )


async def list_notifications(
    repo: NotificationRepository,
    *,
    user_id: int,
    page: PageParams,
) -> tuple[list[Notification], int]:
    return await repo.list_by_user(user_id, limit=page.per_page, offset=page.offset)


async def unread_count(repo: NotificationRepository, *, user_id: int) -> int:
    return await repo.unread_count(user_id)


async def _get_own(repo: NotificationRepository, *, notification_id: int, user_id: int) -> Notification:
    notification = await repo.get(notification_id)
    if notification is None:
        raise NotFoundError("notification not found")
    if notification.user_id != user_id:
        raise AuthorizationError("not authorized to access this notification")
    return notification


async def mark_as_read(repo: NotificationRepository, *, notification_id: int, user_id: int) -> Notification:
    notification = await _get_own(repo, notification_id=notification_id, user_id=user_id)
    if notification.read:
        return notification
    return await repo.mark_as_read(notification)


async def mark_all_as_read(repo: NotificationRepository, *, user_id: int) -> int:
    return await repo.mark_all_as_read(user_id)


async def delete_notification(repo: NotificationRepository, *, notification_id: int, user_id: int) -> None:
    notification = await _get_own(repo, notification_id=notification_id, user_id=user_id)
    await repo.delete(notification)

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_page_params, get_session
from ..domain.errors import ReservationError
from ..infrastructure.repositories import SqlAlchemyNotificationRepository
from ..schemas import NotificationRead, Page, UnreadCount
from ..usecases import notifications as notification_usecase
from ..utils.pagination import PageParams
from .errors import raise_http

router = APIRouter(prefix="/me/notifications", tags=["notifications"], dependencies=[Depends(get_current_user_id)])


@router.get("", response_model=Page[NotificationRead])
async def list_notifications(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Page[NotificationRead]:
    repo = SqlAlchemyNotificationRepository(session)
    try:
        rows, total = await notification_usecase.list_notifications(repo, user_id=user_id, page=page)
    except ReservationError as exc:
        raise_http(exc)
    return Page[NotificationRead].build([NotificationRead.from_db(notification=n) for n in rows], total, page)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> UnreadCount:
    repo = SqlAlchemyNotificationRepository(session)
    try:
        count = await notification_usecase.unread_count(repo, user_id=user_id)
    except ReservationError as exc:
        raise_http(exc)
    return UnreadCount(unread=count)


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_as_read(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Response:
    repo = SqlAlchemyNotificationRepository(session)
    async with session.begin():
        try:
            await notification_usecase.mark_all_as_read(repo, user_id=user_id)
        except ReservationError as exc:
            raise_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_as_read(
    notification_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> NotificationRead:
    repo = SqlAlchemyNotificationRepository(session)
    async with session.begin():
        try:
            notification = await notification_usecase.mark_as_read(
                repo,
                notification_id=notification_id,
                user_id=user_id,
            )
        except ReservationError as exc:
            raise_http(exc)
    return NotificationRead.from_db(notification=notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Response:
    repo = SqlAlchemyNotificationRepository(session)
    async with session.begin():
        try:
            await notification_usecase.delete_notification(
                repo,
                notification_id=notification_id,
                user_id=user_id,
            )
        except ReservationError as exc:
            raise_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

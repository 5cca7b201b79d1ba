import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .infrastructure.repositories import SqlAlchemyNotificationRepository
from .usecases.notifications import Notifier
from .utils.pagination import PageParams

NOTIFICATION_LOGGER_NAME = "rental.notifications"


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """Caller identity as established by the authenticating proxy in front of the service."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-Id") from exc
    if user_id < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-Id")
    return user_id


def get_page_params(
    page: int | None = Query(default=None),
    per_page: int | None = Query(default=None),
) -> PageParams:
    settings = get_settings()
    return PageParams.from_query(
        page,
        per_page,
        default_per_page=settings.default_per_page,
        max_per_page=settings.max_per_page,
    )


def build_notifier(session: AsyncSession, logger: logging.Logger | None = None) -> Notifier:
    return Notifier(
        SqlAlchemyNotificationRepository(session),
        logger or logging.getLogger(NOTIFICATION_LOGGER_NAME),
    )

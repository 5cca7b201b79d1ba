from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_notifier, get_current_user_id, get_page_params, get_session
from ..domain.errors import ReservationError
from ..infrastructure.repositories import SqlAlchemyEquipmentCatalog, SqlAlchemyReservationRepository
from ..models import Reservation, ReservationStatus
from ..schemas import Page, ReservationCreate, ReservationRead, ReservationReason
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from ..utils.pagination import PageParams
from ..utils.time import to_utc_naive
from .errors import raise_http

router = APIRouter(prefix="", tags=["reservations"], dependencies=[Depends(get_current_user_id)])


def _audit(
    action: AuditAction,
    *,
    actor_id: int,
    reservation: Reservation,
    status_from: Optional[ReservationStatus],
    reason: Optional[str] = None,
) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="renter" if actor_id == reservation.renter_id else "owner",
            actor_id=actor_id,
            reservation_id=reservation.id,
            equipment_id=reservation.equipment_id,
            renter_id=reservation.renter_id,
            status_from=status_from,
            status_to=reservation.status,
            version=reservation.version,
            total_price=reservation.total_price if action == "reservation.created" else None,
            reason=reason,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


def _reason(payload: Optional[ReservationReason]) -> Optional[str]:
    if payload is None or payload.reason is None:
        return None
    return payload.reason.strip() or None


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    catalog = SqlAlchemyEquipmentCatalog(session)
    res_repo = SqlAlchemyReservationRepository(session)
    notifier = build_notifier(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.create_reservation(
                catalog,
                res_repo,
                notifier,
                renter_id=user_id,
                equipment_id=payload.equipment_id,
                start_date=to_utc_naive(payload.start_date) if payload.start_date else None,
                end_date=to_utc_naive(payload.end_date) if payload.end_date else None,
            )
        except ReservationError as exc:
            raise_http(exc)

    _audit("reservation.created", actor_id=user_id, reservation=reservation, status_from=None)
    return ReservationRead.from_db(reservation=reservation)


@router.get("/me/reservations", response_model=Page[ReservationRead])
async def list_my_reservations(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Page[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows, total = await reservation_usecase.list_reservations_for_renter(res_repo, renter_id=user_id, page=page)
    except ReservationError as exc:
        raise_http(exc)
    return Page[ReservationRead].build([ReservationRead.from_db(reservation=r) for r in rows], total, page)


@router.get("/owner/reservations", response_model=Page[ReservationRead])
async def list_owner_reservations(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> Page[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows, total = await reservation_usecase.list_reservations_for_owner(res_repo, owner_id=user_id, page=page)
    except ReservationError as exc:
        raise_http(exc)
    return Page[ReservationRead].build([ReservationRead.from_db(reservation=r) for r in rows], total, page)


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(
            res_repo,
            reservation_id=reservation_id,
            caller_id=user_id,
        )
    except ReservationError as exc:
        raise_http(exc)
    return ReservationRead.from_db(reservation=reservation)


@router.post("/reservations/{reservation_id}/approve", response_model=ReservationRead)
async def approve_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    notifier = build_notifier(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.approve_reservation(
                res_repo,
                notifier,
                reservation_id=reservation_id,
                owner_id=user_id,
            )
        except ReservationError as exc:
            raise_http(exc)

    _audit(
        "reservation.approved",
        actor_id=user_id,
        reservation=reservation,
        status_from=ReservationStatus.PENDING,
    )
    return ReservationRead.from_db(reservation=reservation)


@router.post("/reservations/{reservation_id}/reject", response_model=ReservationRead)
async def reject_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationReason] = Body(default=None),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    notifier = build_notifier(session)
    reason = _reason(payload)
    async with session.begin():
        try:
            reservation = await reservation_usecase.reject_reservation(
                res_repo,
                notifier,
                reservation_id=reservation_id,
                owner_id=user_id,
                reason=reason,
            )
        except ReservationError as exc:
            raise_http(exc)

    _audit(
        "reservation.rejected",
        actor_id=user_id,
        reservation=reservation,
        status_from=ReservationStatus.PENDING,
        reason=reason,
    )
    return ReservationRead.from_db(reservation=reservation)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationReason] = Body(default=None),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    notifier = build_notifier(session)
    reason = _reason(payload)
    async with session.begin():
        try:
            reservation = await reservation_usecase.cancel_reservation(
                res_repo,
                notifier,
                reservation_id=reservation_id,
                caller_id=user_id,
                reason=reason,
            )
        except ReservationError as exc:
            raise_http(exc)

    _audit("reservation.cancelled", actor_id=user_id, reservation=reservation, status_from=None, reason=reason)
    return ReservationRead.from_db(reservation=reservation)


@router.post("/reservations/{reservation_id}/complete", response_model=ReservationRead)
async def complete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    notifier = build_notifier(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.complete_reservation(
                res_repo,
                notifier,
                reservation_id=reservation_id,
                owner_id=user_id,
            )
        except ReservationError as exc:
            raise_http(exc)

    _audit(
        "reservation.completed",
        actor_id=user_id,
        reservation=reservation,
        status_from=ReservationStatus.APPROVED,
    )
    return ReservationRead.from_db(reservation=reservation)

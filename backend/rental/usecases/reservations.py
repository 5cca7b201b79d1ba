from __future__ import annotations

from datetime import datetime

from ..domain.errors import CannotCancelError, ConflictError, InvalidStateError, NotFoundError
from ..domain.repositories import EquipmentCatalog, ReservationRepository
from ..domain.services import (
    PriceTiers,
    calculate_price,
    day_span,
    ensure_cancellable,
    ensure_owner,
    ensure_participant,
    ensure_transition,
    validate_reservation_request,
)
from ..models import Reservation, ReservationStatus
from ..utils.pagination import PageParams
from ..utils.time import utc_now
from .notifications import Notifier


async def create_reservation(
    catalog: EquipmentCatalog,
    res_repo: ReservationRepository,
    notifier: Notifier,
    *,
    renter_id: int,
    equipment_id: int,
    start_date: datetime | None,
    end_date: datetime | None,
) -> Reservation:
    """
    Book ``equipment_id`` for ``[start_date, end_date]``.

    Must run inside one transaction: the equipment row stays locked from the
    availability check until commit, so a concurrent booking for the same
    equipment waits and then sees this one.
    """
    start, end = validate_reservation_request(start_date, end_date, now=utc_now())

    equipment = await catalog.get_for_update(equipment_id)
    if equipment is None:
        raise NotFoundError("equipment not found")
    if not equipment.available:
        raise ConflictError("equipment not available")

    # A shared calendar day is a clash even when the hours do not meet.
    if not await catalog.check_availability(equipment.id, *day_span(start.date(), end.date())):
        raise ConflictError("equipment not available for selected dates")

    total_price = calculate_price(PriceTiers.of(equipment), start, end)
    status = ReservationStatus.APPROVED if equipment.auto_approve else ReservationStatus.PENDING

    reservation = await res_repo.create(
        equipment=equipment,
        renter_id=renter_id,
        start_date=start,
        end_date=end,
        status=status,
        total_price=total_price,
    )

    await notifier.reservation_requested(reservation, owner_id=equipment.owner_id, name=equipment.name)
    if status == ReservationStatus.APPROVED:
        await notifier.reservation_approved(reservation, name=equipment.name, automatic=True)
    return reservation


async def get_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    caller_id: int,
) -> Reservation:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation not found")
    ensure_participant(
        renter_id=reservation.renter_id,
        owner_id=reservation.equipment.owner_id,
        caller_id=caller_id,
    )
    return reservation


async def list_reservations_for_renter(
    res_repo: ReservationRepository,
    *,
    renter_id: int,
    page: PageParams,
) -> tuple[list[Reservation], int]:
    return await res_repo.list_by_renter(renter_id, limit=page.per_page, offset=page.offset)


async def list_reservations_for_owner(
    res_repo: ReservationRepository,
    *,
    owner_id: int,
    page: PageParams,
) -> tuple[list[Reservation], int]:
    return await res_repo.list_by_owner(owner_id, limit=page.per_page, offset=page.offset)


async def _load_locked(res_repo: ReservationRepository, reservation_id: int) -> Reservation:
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise NotFoundError("reservation not found")
    return reservation


async def _owner_transition(
    res_repo: ReservationRepository,
    action: str,
    *,
    reservation_id: int,
    owner_id: int,
    reason: str | None = None,
) -> Reservation:
    reservation = await _load_locked(res_repo, reservation_id)
    ensure_owner(owner_id=reservation.equipment.owner_id, caller_id=owner_id)
    transition = ensure_transition(action, reservation.status)
    applied = await res_repo.transition(
        reservation,
        expected=transition.sources,
        target=transition.target,
        reason=reason,
    )
    if not applied:
        raise InvalidStateError(f"reservation {reservation_id} changed status concurrently")
    return reservation


async def approve_reservation(
    res_repo: ReservationRepository,
    notifier: Notifier,
    *,
    reservation_id: int,
    owner_id: int,
) -> Reservation:
    reservation = await _owner_transition(res_repo, "approve", reservation_id=reservation_id, owner_id=owner_id)
    await notifier.reservation_approved(reservation, name=reservation.equipment.name)
    return reservation


async def reject_reservation(
    res_repo: ReservationRepository,
    notifier: Notifier,
    *,
    reservation_id: int,
    owner_id: int,
    reason: str | None,
) -> Reservation:
    reservation = await _owner_transition(
        res_repo,
        "reject",
        reservation_id=reservation_id,
        owner_id=owner_id,
        reason=reason,
    )
    await notifier.reservation_rejected(reservation, name=reservation.equipment.name)
    return reservation


async def complete_reservation(
    res_repo: ReservationRepository,
    notifier: Notifier,
    *,
    reservation_id: int,
    owner_id: int,
) -> Reservation:
    reservation = await _owner_transition(res_repo, "complete", reservation_id=reservation_id, owner_id=owner_id)
    await notifier.reservation_completed(reservation, name=reservation.equipment.name)
    return reservation


async def cancel_reservation(
    res_repo: ReservationRepository,
    notifier: Notifier,
    *,
    reservation_id: int,
    caller_id: int,
    reason: str | None,
) -> Reservation:
    reservation = await _load_locked(res_repo, reservation_id)
    owner_id = reservation.equipment.owner_id
    ensure_participant(renter_id=reservation.renter_id, owner_id=owner_id, caller_id=caller_id)
    observed = reservation.status
    ensure_cancellable(observed, reservation.start_date, now=utc_now())

    # Only the observed status is accepted so the lead-time decision cannot go stale.
    applied = await res_repo.transition(
        reservation,
        expected=(observed,),
        target=ReservationStatus.CANCELLED,
        reason=reason,
    )
    if not applied:
        raise CannotCancelError(f"reservation {reservation_id} changed status concurrently")

    recipient_id = reservation.renter_id if caller_id == owner_id else owner_id
    await notifier.reservation_cancelled(reservation, recipient_id=recipient_id, name=reservation.equipment.name)
    return reservation

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import ReservationError
from ..infrastructure.repositories import SqlAlchemyEquipmentCatalog
from ..schemas import DayAvailabilityRead
from ..usecases import availability as availability_usecase
from .errors import raise_http

router = APIRouter(prefix="/equipment", tags=["equipment"])


@router.get("/{equipment_id}/availability", response_model=List[DayAvailabilityRead])
async def get_availability(
    equipment_id: int = Path(..., ge=1),
    start_date: date = Query(..., description="First calendar day (UTC), inclusive"),
    end_date: date = Query(..., description="Last calendar day (UTC), inclusive"),
    session: AsyncSession = Depends(get_session),
) -> list[DayAvailabilityRead]:
    catalog = SqlAlchemyEquipmentCatalog(session)
    try:
        days = await availability_usecase.get_availability(
            catalog,
            equipment_id=equipment_id,
            start=start_date,
            end=end_date,
        )
    except ReservationError as exc:
        raise_http(exc)
    return [DayAvailabilityRead.from_domain(day) for day in days]

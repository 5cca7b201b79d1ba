from datetime import date
from typing import List

from ..domain.errors import NotFoundError
from ..domain.repositories import EquipmentCatalog
from ..domain.services import DayAvailability, build_calendar, day_span, validate_calendar_window


async def get_availability(
    catalog: EquipmentCatalog,
    *,
    equipment_id: int,
    start: date | None,
    end: date | None,
) -> List[DayAvailability]:
    window_start, window_end = validate_calendar_window(start, end)

    if await catalog.get_by_id(equipment_id) is None:
        raise NotFoundError("equipment not found")

    range_start, range_end = day_span(window_start, window_end)
    blocking = await catalog.blocking_reservations_overlapping(equipment_id, range_start, range_end)
    return build_calendar(
        window_start,
        window_end,
        ((reservation.start_date, reservation.end_date) for reservation in blocking),
    )

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.approved",
    "reservation.rejected",
    "reservation.cancelled",
    "reservation.completed",
]
AuditInitiator = Literal["renter", "owner"]

_audit_logger = logging.getLogger("rental.audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _to_json_value(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    actor_id: int,
    reservation_id: int,
    equipment_id: Optional[int],
    renter_id: Optional[int],
    status_from: Any,
    status_to: Any,
    version: Optional[int],
    total_price: Optional[Decimal] = None,
    reason: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit one JSON line per reservation transition. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "actor_id": actor_id,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "equipment_id": equipment_id,
        "renter_id": renter_id,
        "status_from": _to_json_value(status_from),
        "status_to": _to_json_value(status_to),
        "version": version,
        "total_price": _to_json_value(total_price),
        "reason": reason,
    }
    if extra:
        payload.update({key: _to_json_value(value) for key, value in extra.items()})

    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc

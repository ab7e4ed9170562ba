# ring_history/utils/history_fields.py
"""
Best-effort field extraction for raw alarm / beams device history items.
Different device families use different key names, so each field is looked
up against several known variants in priority order. Nothing is assumed
about the payload; every field may come back as None.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ring_history.utils.timeutil import parse_timestamp, from_epoch_seconds


@dataclass
class HistoryFields:
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    event_type: Optional[str] = None
    created_at: Optional[datetime] = None


def _first_str(data: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return None


def extract_history_fields(raw: Any) -> HistoryFields:
    """Pull device id, name, event type and creation time out of a raw history item."""
    if not isinstance(raw, dict):
        return HistoryFields()

    device_id = _first_str(raw, "device_id")
    if device_id is None:
        zid = raw.get("zid")
        # bool is an int subclass; never treat True/False as an id
        if isinstance(zid, (str, int)) and not isinstance(zid, bool):
            device_id = str(zid)

    return HistoryFields(
        device_id=device_id,
        device_name=_first_str(raw, "device_name", "name"),
        event_type=_first_str(raw, "type", "action"),
        created_at=extract_timestamp(raw),
    )


def extract_timestamp(raw: Any) -> Optional[datetime]:
    """created_at → datestamp (ISO strings) → timestamp (epoch seconds)."""
    if not isinstance(raw, dict):
        return None
    for key in ("created_at", "datestamp"):
        value = raw.get(key)
        if isinstance(value, str):
            return parse_timestamp(value)
    ts = raw.get("timestamp")
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return from_epoch_seconds(ts)
    return None

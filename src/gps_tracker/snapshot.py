from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Scalar = Union[str, int, float, bool, None]

NO_DATA_RAW = "No data received yet"

# Field names the tracker firmware sends.
MOVING_FIELD = "isMoving"
DEVICE_ID_FIELD = "deviceId"
LATITUDE_FIELD = "lat"
LONGITUDE_FIELD = "lon"


class TelemetrySnapshot(BaseModel):
    """
    Latest known state of the tracker, built from one report.

    Keep raw_payload for traceability/debugging. On the wire the snapshot uses
    the short names the browser client expects: timestamp / values / raw.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    received_at: datetime = Field(..., alias="timestamp")
    fields: Dict[str, Any] = Field(default_factory=dict, alias="values")
    raw_payload: str = Field(..., alias="raw")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @property
    def device_id(self) -> Optional[str]:
        value = self.fields.get(DEVICE_ID_FIELD)
        return None if value is None else str(value)


def empty_snapshot(received_at: Optional[datetime] = None) -> TelemetrySnapshot:
    """Placeholder served before the first report arrives."""
    return TelemetrySnapshot(
        received_at=received_at or datetime.now(timezone.utc),
        fields={},
        raw_payload=NO_DATA_RAW,
    )


def snapshot_from_report(report: Mapping[str, Any], received_at: datetime) -> TelemetrySnapshot:
    """
    Build a snapshot from one inbound report.

    No schema is enforced: whatever named values the device sent end up in `fields`.
    """
    fields = dict(report)
    return TelemetrySnapshot(
        received_at=received_at,
        fields=fields,
        raw_payload=json.dumps(fields, separators=(",", ":"), default=str),
    )


def parse_movement_flag(value: Any) -> Optional[bool]:
    """
    Interpret the device's movement flag.

    Returns None when there is no flag (the report must not touch the movement window).
    Form-encoded bodies carry strings, so "true"/"false"/"1"/"0" are accepted too.
    Anything else that is present counts as "not moving".
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1")
    return False

"""
Reading Codec

Turns the raw `devs` response into a Reading and back into the JSON
document stored in the spool and uploaded to the collector.

The per-unit records in DEVS are opaque here: they are passed through
exactly as the device reported them.
"""

import json
from dataclasses import dataclass
from typing import Any

from ...common.exceptions import ParseError


@dataclass(frozen=True)
class Reading:
    """One timestamped snapshot of device telemetry"""
    device_id: str
    event_time: int  # seconds, from STATUS[0].When
    metrics: tuple[dict[str, Any], ...] = ()
    status: tuple[dict[str, Any], ...] = ()

    @property
    def spool_name(self) -> str:
        """Deterministic spool file name, also the dedup key."""
        return f"{self.device_id}_{self.event_time}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceName": self.device_id,
            "when": self.event_time,
            "STATUS": list(self.status),
            "DEVS": list(self.metrics),
        }


def decode(raw: str, device_id: str) -> Reading:
    """
    Parse a `devs` response.

    Args:
        raw: Response text from MinerClient.query
        device_id: Local identifier stamped on the reading

    Raises:
        ParseError: payload not JSON, STATUS missing/empty, or When unusable
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ParseError(f"expected a JSON object, got {type(payload).__name__}")

    status = payload.get("STATUS")
    if not isinstance(status, list) or not status:
        raise ParseError("STATUS array is missing or empty")

    first = status[0]
    if not isinstance(first, dict) or "When" not in first:
        raise ParseError("STATUS[0] has no When field")

    try:
        event_time = int(first["When"])
    except (TypeError, ValueError, OverflowError):
        raise ParseError(f"STATUS[0].When is not a timestamp: {first['When']!r}")

    devs = payload.get("DEVS", [])
    if not isinstance(devs, list):
        raise ParseError(f"DEVS must be an array, got {type(devs).__name__}")

    return Reading(
        device_id=device_id,
        event_time=event_time,
        metrics=tuple(devs),
        status=tuple(status),
    )


def encode(reading: Reading) -> bytes:
    """Serialize a reading to the spool/collector JSON document."""
    return json.dumps(reading.to_dict(), separators=(",", ":")).encode("utf-8")

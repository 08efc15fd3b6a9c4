"""Evidence anchor factories.

Location anchors store only a coarse hash (two decimals, roughly 1 km) plus
the radius, never raw coordinates.
"""

from __future__ import annotations

import datetime as dt

from timetrust.models.entry import EvidenceAnchor


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def calendar_anchor(event_title: str, event_time: str) -> EvidenceAnchor:
    return EvidenceAnchor(
        kind="calendar",
        timestamp=_now(),
        value=f"Calendar event: {event_title} at {event_time}",
        verified=True,
    )


def location_hash_anchor(latitude: float, longitude: float, radius: int = 100) -> EvidenceAnchor:
    return EvidenceAnchor(
        kind="location_hash",
        timestamp=_now(),
        value=location_hash(latitude, longitude, radius),
        verified=True,
    )


def location_hash(latitude: float, longitude: float, radius: int = 100) -> str:
    """Coarse "lat,lon±Rm" string."""
    return f"{round(latitude, 2):g},{round(longitude, 2):g}±{radius}m"


def approval_anchor(approver: str, approved_at: dt.datetime) -> EvidenceAnchor:
    return EvidenceAnchor(
        kind="approval",
        timestamp=approved_at,
        value=f"Approved by: {approver}",
        verified=True,
    )


def file_anchor(file_name: str, file_timestamp: dt.datetime) -> EvidenceAnchor:
    # File access is self-reported
    return EvidenceAnchor(
        kind="file",
        timestamp=file_timestamp,
        value=f"File opened: {file_name}",
        verified=False,
    )

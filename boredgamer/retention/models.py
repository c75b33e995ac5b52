"""Data models for the retention sweep."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TypedDict


class Studio(TypedDict, total=False):
    """A studio document in Firestore."""

    name: str
    tier: Optional[str]


@dataclass
class SweepReport:
    """Outcome of one pass of the retention sweep."""

    studios_processed: int = 0
    events_deleted: int = 0
    batches: int = 0
    failed_studios: list[str] = field(default_factory=list)

"""
Deciding how to bring the local copy of the log up to date.

QSOs and QSLs are fetched separately, each from its own timestamp, so an incremental
update is possible as long as either timestamp is known.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from lotw_stats.snapshot import Snapshot


class UpdateStrategy(Enum):
    SKIP = "skip"
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class UpdateDecision:
    strategy: UpdateStrategy
    reason: str


def determine_update_strategy(
    snapshot: Optional[Snapshot],
    min_interval: timedelta = timedelta(0),
    now: Optional[datetime] = None,
    force_full: bool = False,
) -> UpdateDecision:
    """
    Pick an update strategy. Has no side effects.

    Args:
        snapshot: The last saved snapshot, or None if there isn't one
        min_interval: Skip the update if the snapshot is younger than this. Zero or
            negative never skips.
        now: Current time, defaults to the current UTC time
        force_full: Always do a full update
    """
    if force_full:
        return UpdateDecision(UpdateStrategy.FULL, "Forced full update")

    if snapshot is None:
        return UpdateDecision(UpdateStrategy.FULL, "No local data")

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    updated_at = snapshot.updated_at
    if updated_at is not None and min_interval > timedelta(0):
        if now - updated_at < min_interval:
            minutes = min_interval.total_seconds() / 60
            return UpdateDecision(
                UpdateStrategy.SKIP, f"Less than {minutes:g} minutes since last update"
            )

    if not snapshot.dxcc_stats:
        return UpdateDecision(UpdateStrategy.FULL, "Local data incomplete or empty")

    has_qso_timestamp = bool(snapshot.last_qso_rx and snapshot.last_qso_rx.strip())
    has_qsl_timestamp = bool(snapshot.last_qsl and snapshot.last_qsl.strip())
    if not has_qso_timestamp and not has_qsl_timestamp:
        return UpdateDecision(
            UpdateStrategy.FULL, "Missing QSO and QSL timestamps in local data"
        )

    return UpdateDecision(
        UpdateStrategy.INCREMENTAL, "Local data complete, fetching changes since it"
    )

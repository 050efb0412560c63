"""
The update pipeline: decide what to fetch, fetch it, fold it into the authoritative
ADIF log, then rebuild and save the snapshot.

Only one update may run against a data directory at a time. Nothing here locks the
files.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from lotw_stats.adif.file import count_records, split_header
from lotw_stats.adif.util import atomic_write
from lotw_stats.backup import BackupManager
from lotw_stats.config import Config
from lotw_stats.errors import LogNotFoundError
from lotw_stats.lotw import FetchMode, LotwClient
from lotw_stats.merge import merge_new_qsos, merge_qsl_updates, update_record_count
from lotw_stats.snapshot import (
    Snapshot,
    SnapshotValidator,
    incremental_stats,
    load_snapshot,
    parse_log_to_snapshot,
    save_snapshot,
)
from lotw_stats.strategy import UpdateStrategy, determine_update_strategy

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    strategy: UpdateStrategy
    reason: str
    snapshot: Optional[Snapshot]


def _has_records(adif_text: str) -> bool:
    _, body = split_header(adif_text)
    return count_records(body) > 0


class Updater:
    def __init__(
        self,
        config: Config,
        client: LotwClient,
        backups: BackupManager,
        validator: Optional[SnapshotValidator] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.backups = backups
        self.validator = validator

    def run(
        self, force_full: bool = False, now: Optional[datetime] = None
    ) -> UpdateResult:
        """
        Bring the local log and snapshot up to date. If anything fails after the log
        was backed up, the log is rolled back and the old snapshot stays as it was.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        previous = load_snapshot(self.config.snapshot_path)
        decision = determine_update_strategy(
            previous, self.config.min_interval, now=now, force_full=force_full
        )
        logger.info(f"Update strategy: {decision.strategy.value} ({decision.reason})")

        if decision.strategy == UpdateStrategy.SKIP:
            return UpdateResult(decision.strategy, decision.reason, previous)
        if decision.strategy == UpdateStrategy.FULL or previous is None:
            snapshot = self._full_update(previous, now)
        else:
            snapshot = self._incremental_update(previous, now)

        return UpdateResult(decision.strategy, decision.reason, snapshot)

    def rebuild(self, now: Optional[datetime] = None) -> Snapshot:
        """
        Regenerate the snapshot from the local ADIF log without going to LoTW
        """
        snapshot = parse_log_to_snapshot(self.config.adif_path, now)
        save_snapshot(snapshot, self.config.snapshot_path, self.validator)
        return snapshot

    def _full_update(self, previous: Optional[Snapshot], now: datetime) -> Snapshot:
        logger.info("Performing full update")
        data = self.client.fetch(FetchMode.FULL)

        adif_path = self.config.adif_path
        adif_path.parent.mkdir(parents=True, exist_ok=True)
        with self.backups.protect(adif_path):
            atomic_write(adif_path, data)
            logger.info(f"ADIF data saved to {adif_path}")
            snapshot = self._finish(previous, now)

        logger.info("Full update completed")
        return snapshot

    def _incremental_update(self, previous: Snapshot, now: datetime) -> Snapshot:
        adif_path = self.config.adif_path
        if not adif_path.exists():
            raise LogNotFoundError(
                f"ADIF file not found: {adif_path}, run a full update first"
            )

        logger.info("Performing incremental update")
        with self.backups.protect(adif_path):
            qso_since = (
                previous.last_qso_rx
                or previous.last_updated_timestamp
                or previous.last_qsl
            )
            qsos = self.client.fetch(FetchMode.INCREMENTAL_QSO, since=qso_since)
            if _has_records(qsos):
                merge_new_qsos(qsos, adif_path, now)
            else:
                logger.info("No new QSOs")

            qsl_since = (
                previous.last_qsl
                or previous.last_updated_timestamp
                or previous.last_qso_rx
            )
            qsls = self.client.fetch(FetchMode.INCREMENTAL_QSL, since=qsl_since)
            if _has_records(qsls):
                merge_qsl_updates(qsls, adif_path, now)
            else:
                logger.info("No new QSLs")

            update_record_count(adif_path)
            snapshot = self._finish(previous, now)

        logger.info("Incremental update completed")
        return snapshot

    def _finish(self, previous: Optional[Snapshot], now: datetime) -> Snapshot:
        snapshot = parse_log_to_snapshot(self.config.adif_path, now)
        snapshot.incremental_stats = incremental_stats(previous, snapshot)
        save_snapshot(snapshot, self.config.snapshot_path, self.validator)
        return snapshot

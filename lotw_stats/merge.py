"""
Merging incremental LoTW reports into the authoritative ADIF log.

There are two kinds of incremental report. A QSO report holds QSOs LoTW received since
a given time, which are simply new records. A QSL report holds QSOs whose confirmation
changed since a given time, which replace the matching records we already have. Both
are read fresh from disk and written back atomically, and both should be followed by
update_record_count().
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from lotw_stats.adif.file import AdifLog, count_records, set_header_field, split_header
from lotw_stats.adif.record import AdifRecord
from lotw_stats.adif.util import atomic_write
from lotw_stats.constants import LAST_QSO_RX_FIELD, NUMREC_FIELD, RXQSL_FIELD
from lotw_stats.errors import LogNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    # Incoming records that matched one of ours
    matched: int = 0
    # Matched records that were replaced because their confirmation changed
    updated: int = 0
    # Incoming records with no QSO to apply to
    unmatched: int = 0


def merge_new_qsos(
    incoming: str, log_path: Path, now: Optional[datetime] = None
) -> int:
    """
    Add the records of a QSO report to the log, newest first. Nothing is matched or
    de-duplicated. Returns the number of records added.
    """
    logger.info("Merging new QSOs")
    log = AdifLog.from_file(log_path)
    new = AdifLog.from_string(incoming)

    existing_count = log.record_count
    if existing_count is None:
        existing_count = len(log.records)
    incoming_count = new.record_count
    if incoming_count is None:
        incoming_count = len(new.records)
    log.set_header_field(NUMREC_FIELD, str(existing_count + incoming_count))

    last_qso_rx = new.header_field(LAST_QSO_RX_FIELD)
    if last_qso_rx:
        log.set_header_field(LAST_QSO_RX_FIELD, last_qso_rx)
    log.touch_generated_at(now)

    log.records = new.records + log.records
    log.to_file(log_path)

    logger.info(f"Added {len(new.records)} QSOs to {log_path}")
    return len(new.records)


def build_timestamp_index(records: list[AdifRecord]) -> dict[str, int]:
    """
    Map each record's QSO timestamp to its position. Records without one can't be
    matched and are left out.
    """
    index = {}
    for i, record in enumerate(records):
        timestamp = record.qso_timestamp
        if timestamp:
            index[timestamp] = i
    return index


def merge_qsl_updates(
    incoming: str, log_path: Path, now: Optional[datetime] = None
) -> MergeResult:
    """
    Apply a QSL report to the log. Each incoming record replaces the record with the
    same QSO timestamp, but only if its confirmation status differs. Incoming records
    with no match are skipped, never added, so the number of records doesn't change.
    """
    logger.info("Merging QSL updates")
    log = AdifLog.from_file(log_path)
    new = AdifLog.from_string(incoming)

    index = build_timestamp_index(log.records)
    logger.debug(
        f"{len(log.records)} existing records, {len(index)} indexed by timestamp, "
        f"{len(new.records)} incoming"
    )

    result = MergeResult()
    for record in new.records:
        timestamp = record.qso_timestamp
        position = index.get(timestamp) if timestamp else None
        if position is None:
            logger.warning(f"No matching QSO found for QSL timestamp: {timestamp}")
            result.unmatched += 1
            continue

        result.matched += 1
        if log.records[position].confirmed != record.confirmed:
            log.records[position] = record
            result.updated += 1
            logger.debug(f"Updated QSL status for QSO at {timestamp}")

    rxqsl = new.header_field(RXQSL_FIELD)
    if rxqsl:
        log.set_header_field(RXQSL_FIELD, rxqsl)
    log.touch_generated_at(now)
    log.to_file(log_path)

    logger.info(
        f"Matched {result.matched} QSLs, updated {result.updated}, "
        f"{result.unmatched} had no matching QSO"
    )
    return result


def update_record_count(log_path: Path) -> int:
    """
    Set the header record count to the number of records actually in the log. Only the
    header is rewritten. Returns the count.
    """
    if not log_path.exists():
        raise LogNotFoundError(f"ADIF file not found: {log_path}")

    header, body = split_header(log_path.read_text(encoding="utf-8"))
    count = count_records(body)
    header = set_header_field(header, NUMREC_FIELD, str(count))
    atomic_write(log_path, header + body)

    logger.info(f"Record count set to {count}")
    return count

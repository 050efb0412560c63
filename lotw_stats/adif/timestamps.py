"""
Pull the "as of" timestamps out of a LoTW report.

LoTW puts APP_LoTW_LASTQSORX (when it last received one of our QSOs) in the header.
APP_LoTW_RXQSL (when a QSL was recorded) shows up in the header of QSL queries and on
every confirmed record, so the most recent of all of them is what we keep. Comparisons
are done on parsed datetimes but the string LoTW sent is what gets returned.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from lotw_stats.adif.file import get_header_field
from lotw_stats.adif.record import read_tokens
from lotw_stats.adif.util import parse_lotw_timestamp
from lotw_stats.constants import LAST_QSO_RX_FIELD, RXQSL_FIELD

logger = logging.getLogger(__name__)


@dataclass
class LotwTimestamps:
    last_qso_rx: Optional[str] = None
    last_qsl: Optional[str] = None


def extract_timestamps(header: str, body: str = "") -> LotwTimestamps:
    timestamps = LotwTimestamps()

    last_qso_rx = get_header_field(header, LAST_QSO_RX_FIELD)
    if last_qso_rx:
        timestamps.last_qso_rx = last_qso_rx

    candidates = [get_header_field(header, RXQSL_FIELD)]
    rxqsl = RXQSL_FIELD.lower()
    candidates.extend(t.value.strip() for t in read_tokens(body) if t.name == rxqsl)
    timestamps.last_qsl = latest_timestamp(candidates)

    return timestamps


def latest_timestamp(values: Iterable[Optional[str]]) -> Optional[str]:
    """
    Return the most recent of the given LoTW timestamps, unmodified. Blank values are
    ignored, and so are ones that don't parse.
    """
    latest: Optional[datetime] = None
    latest_value = None

    for value in values:
        if not value:
            continue
        try:
            parsed = parse_lotw_timestamp(value)
        except ValueError:
            logger.warning(f"Ignoring unparseable LoTW timestamp: {value!r}")
            continue

        if latest is None or parsed > latest:
            latest = parsed
            latest_value = value

    return latest_value

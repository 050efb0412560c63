import logging
from dataclasses import dataclass, field
from typing import Iterable

from lotw_stats.adif.record import AdifRecord

logger = logging.getLogger(__name__)

# DXCC code LoTW uses for QSOs that don't count toward any entity
NO_ENTITY = "0"


@dataclass
class EntityStats:
    qso: int = 0
    # Confirmation is per entity, so this only ever goes 0 -> 1
    qsl: int = 0


@dataclass
class DxccStats:
    total_qso: int = 0
    # Number of confirmed QSOs, not confirmed entities
    total_qsl: int = 0
    dxcc_confirmed: int = 0
    dxcc_stats: dict[str, EntityStats] = field(default_factory=dict)


def calculate_dxcc_stats(records: Iterable[AdifRecord]) -> DxccStats:
    """
    Count QSOs and QSLs overall and per DXCC entity.

    Records with no entity (DXCC code missing, empty, or "0") count toward the totals
    but never get an entry in dxcc_stats.
    """
    stats = DxccStats()

    for record in records:
        stats.total_qso += 1
        confirmed = record.confirmed
        if confirmed:
            stats.total_qsl += 1

        code = record.dxcc
        if code in ("", NO_ENTITY):
            continue

        entity = stats.dxcc_stats.setdefault(code, EntityStats())
        entity.qso += 1
        if confirmed and entity.qsl == 0:
            entity.qsl = 1

    stats.dxcc_confirmed = sum(1 for e in stats.dxcc_stats.values() if e.qsl > 0)
    logger.debug(
        f"Counted {stats.total_qso} QSOs, {stats.total_qsl} QSLs, "
        f"{stats.dxcc_confirmed} confirmed entities"
    )
    return stats

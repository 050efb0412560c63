"""
The JSON snapshot of DXCC statistics derived from the authoritative ADIF log.

A snapshot is always rebuilt from the whole log, never patched, so it reflects whatever
is on disk.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft7Validator, FormatChecker

from lotw_stats.adif.file import parse_records, split_header
from lotw_stats.adif.timestamps import extract_timestamps
from lotw_stats.adif.util import atomic_write
from lotw_stats.errors import LogNotFoundError
from lotw_stats.stats import EntityStats, calculate_dxcc_stats

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(Path(__file__).parent, "schemas", "snapshot.schema.json")


def _timestamp(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    logger.warning(f"Ignoring non-string {key} in snapshot: {value!r}")
    return None


@dataclass
class Snapshot:
    last_updated: str = ""
    # Epoch milliseconds
    last_updated_timestamp: int = 0
    total_qso: int = 0
    total_qsl: int = 0
    dxcc_confirmed: int = 0
    dxcc_stats: dict[str, EntityStats] = field(default_factory=dict)

    last_qso_rx: Optional[str] = None
    last_qsl: Optional[str] = None

    # Difference from the snapshot before the last update
    incremental_stats: Optional[dict[str, int]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        dxcc_stats = {
            str(code): EntityStats(qso=int(s.get("qso", 0)), qsl=int(s.get("qsl", 0)))
            for code, s in (data.get("dxcc_stats") or {}).items()
        }
        return cls(
            last_updated=data.get("last_updated") or "",
            last_updated_timestamp=int(data.get("last_updated_timestamp") or 0),
            total_qso=int(data.get("total_qso") or 0),
            total_qsl=int(data.get("total_qsl") or 0),
            dxcc_confirmed=int(data.get("dxcc_confirmed") or 0),
            dxcc_stats=dxcc_stats,
            last_qso_rx=_timestamp(data, "app_lotw_lastQsoRx"),
            last_qsl=_timestamp(data, "app_lotw_lastQsl"),
            incremental_stats=data.get("incrementalStats"),
        )

    def to_dict(self) -> dict[str, Any]:
        """
        The JSON form. Timestamps come first and the per-entity stats last, which is
        what people reading the file expect.
        """
        d: dict[str, Any] = {}
        if self.last_qso_rx:
            d["app_lotw_lastQsoRx"] = self.last_qso_rx
        if self.last_qsl:
            d["app_lotw_lastQsl"] = self.last_qsl
        d["last_updated"] = self.last_updated
        d["last_updated_timestamp"] = self.last_updated_timestamp
        d["total_qso"] = self.total_qso
        d["total_qsl"] = self.total_qsl
        d["dxcc_confirmed"] = self.dxcc_confirmed
        d["dxcc_stats"] = {code: asdict(s) for code, s in self.dxcc_stats.items()}
        if self.incremental_stats is not None:
            d["incrementalStats"] = self.incremental_stats
        return d

    @property
    def updated_at(self) -> Optional[datetime]:
        """
        When this snapshot was written, as an aware UTC datetime
        """
        if self.last_updated:
            try:
                dt = datetime.fromisoformat(self.last_updated.replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Invalid last_updated in snapshot: {self.last_updated}")
            else:
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return dt

        if self.last_updated_timestamp:
            return datetime.fromtimestamp(
                self.last_updated_timestamp / 1000, tz=timezone.utc
            )
        return None


class SnapshotValidator:
    """
    Checks snapshots against the JSON schema. Build one up front and hand it to
    save_snapshot().
    """

    def __init__(self, schema: Optional[dict[str, Any]] = None) -> None:
        if schema is None:
            schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        Draft7Validator.check_schema(schema)
        self._validator = Draft7Validator(schema, format_checker=FormatChecker())

    def errors(self, data: dict[str, Any]) -> list[str]:
        """
        Every validation error as "path: message", sorted by path. Paths look like
        dxcc_stats/291/qsl, the document itself is <root>.
        """
        errors = []
        for error in self._validator.iter_errors(data):
            path = "/".join(str(p) for p in error.absolute_path) or "<root>"
            errors.append((path, error.message))
        return [f"{path}: {message}" for path, message in sorted(errors)]


def build_snapshot(adif_text: str, now: Optional[datetime] = None) -> Snapshot:
    """
    Derive a snapshot from the full text of an ADIF log
    """
    if now is None:
        now = datetime.now(timezone.utc)

    header, body = split_header(adif_text)
    timestamps = extract_timestamps(header, body)
    stats = calculate_dxcc_stats(parse_records(body))

    utc_now = now.astimezone(timezone.utc)
    last_updated = utc_now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return Snapshot(
        last_updated=last_updated,
        last_updated_timestamp=int(utc_now.timestamp() * 1000),
        total_qso=stats.total_qso,
        total_qsl=stats.total_qsl,
        dxcc_confirmed=stats.dxcc_confirmed,
        dxcc_stats=stats.dxcc_stats,
        last_qso_rx=timestamps.last_qso_rx,
        last_qsl=timestamps.last_qsl,
    )


def parse_log_to_snapshot(log_path: Path, now: Optional[datetime] = None) -> Snapshot:
    if not log_path.exists():
        raise LogNotFoundError(f"ADIF file not found: {log_path}")

    logger.info(f"Parsing {log_path}")
    snapshot = build_snapshot(log_path.read_text(encoding="utf-8"), now)
    logger.info(
        f"Parsed {snapshot.total_qso} QSOs, {snapshot.total_qsl} QSLs, "
        f"{snapshot.dxcc_confirmed} confirmed DXCCs"
    )
    return snapshot


def incremental_stats(
    previous: Optional[Snapshot], current: Snapshot
) -> dict[str, int]:
    """
    What changed between two snapshots. Everything counts as new when there was no
    previous snapshot.
    """
    before = previous if previous is not None else Snapshot()
    return {
        "newQSOs": current.total_qso - before.total_qso,
        "newQSLs": current.total_qsl - before.total_qsl,
        "newDXCCs": current.dxcc_confirmed - before.dxcc_confirmed,
    }


def load_snapshot(path: Path) -> Optional[Snapshot]:
    """
    Load the last saved snapshot. Returns None if there isn't one, or if it can't be
    read, either of which means a full update is needed.
    """
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("snapshot is not a JSON object")
        return Snapshot.from_dict(data)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to read local snapshot {path}: {e}")
        return None


def save_snapshot(
    snapshot: Snapshot, path: Path, validator: Optional[SnapshotValidator] = None
) -> None:
    """
    Write the snapshot as JSON. Failing schema validation is only worth a warning, the
    snapshot is written either way.
    """
    data = snapshot.to_dict()
    if validator is not None:
        errors = validator.errors(data)
        if errors:
            logger.warning(f"Snapshot failed validation: {'; '.join(errors)}")

    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, json.dumps(data, indent=2) + "\n")
    logger.info(f"Snapshot saved to {path}")

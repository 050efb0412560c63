"""
Configuration: defaults from constants.py, overridden by an optional JSON config file,
then the STATS_DATA_PATH environment variable, then the command line.

Example lotw-stats.json:

    {
        "data_dir": "/var/lib/lotw-stats",
        "qso_begin_date": "2015-01-01",
        "update_interval_minutes": 60,
        "keep_backup": true
    }
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from lotw_stats.constants import (
    CONFIG_FILE_NAME,
    DATA_PATH_ENV,
    DEFAULT_ADIF_FILE,
    DEFAULT_DATA_DIR,
    DEFAULT_QSO_BEGIN_DATE,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY_S,
    DEFAULT_SNAPSHOT_FILE,
    DEFAULT_TIMEOUT_S,
    DEFAULT_UPDATE_INTERVAL_MIN,
    LOTW_URL,
)

logger = logging.getLogger(__name__)


@dataclass
class Config:
    data_dir: Path = DEFAULT_DATA_DIR
    adif_file: str = DEFAULT_ADIF_FILE
    snapshot_file: str = DEFAULT_SNAPSHOT_FILE

    lotw_url: str = LOTW_URL
    qso_begin_date: str = DEFAULT_QSO_BEGIN_DATE
    query_timeout_s: float = DEFAULT_TIMEOUT_S
    retries: int = DEFAULT_RETRIES
    retry_delay_s: float = DEFAULT_RETRY_DELAY_S

    update_interval_minutes: float = DEFAULT_UPDATE_INTERVAL_MIN

    # Back up the ADIF log before rewriting it, and whether to keep that backup around
    # after a successful update
    backup: bool = True
    keep_backup: bool = False

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)

    @property
    def adif_path(self) -> Path:
        return Path(self.data_dir, self.adif_file).resolve()

    @property
    def snapshot_path(self) -> Path:
        return Path(self.data_dir, self.snapshot_file).resolve()

    @property
    def min_interval(self) -> timedelta:
        return timedelta(minutes=self.update_interval_minutes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def load(cls, config_file: Optional[Path] = None, **overrides: Any) -> "Config":
        """
        Build the config. If no config file is given, one is looked for in the current
        directory and its two parents. Overrides which are None are ignored.
        """
        if config_file is None:
            config_file = find_config_file(Path.cwd())

        data: dict[str, Any] = {}
        if config_file is not None:
            logger.info(f"Loading config from {config_file}")
            data = json.loads(config_file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"{config_file} must contain a JSON object")

        data_path = os.environ.get(DATA_PATH_ENV)
        if data_path:
            data["data_dir"] = data_path

        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)


def find_config_file(start: Path) -> Optional[Path]:
    for directory in (start, start.parent, start.parent.parent):
        candidate = Path(directory, CONFIG_FILE_NAME)
        if candidate.is_file():
            return candidate
    return None

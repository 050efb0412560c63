"""
ADIF utility functions
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# LoTW writes every timestamp like "2024-03-30 11:03:34", always UTC
LOTW_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_lotw_timestamp(value: str) -> datetime:
    """
    Parse a LoTW timestamp - YYYY-MM-DD HH:MM:SS, as a naive UTC datetime
    """
    return datetime.strptime(value.strip(), LOTW_TIMESTAMP_FORMAT)


def format_lotw_timestamp(dt: datetime) -> str:
    """
    Format a datetime the way LoTW does. Aware datetimes are converted to UTC first.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(LOTW_TIMESTAMP_FORMAT)


def make_field(name: str, value: str) -> str:
    """
    Return an ADIF field/value, like "<adif_ver:5>value"
    """
    return f"<{name}:{len(value)}>{value}"


def _umask() -> int:
    # The only way to read the umask is to set it
    mask = os.umask(0)
    os.umask(mask)
    return mask


def atomic_write(path: Path, contents: str) -> None:
    """
    Write contents to path so that readers see either the old file or the new one,
    never half of it. The temp file lives next to the target so os.replace() stays on
    one filesystem.
    """
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(contents)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp files are 0600, keep whatever mode the file had before
        if path.exists():
            shutil.copymode(path, tmp_name)
        else:
            os.chmod(tmp_name, 0o666 & ~_umask())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug(f"Wrote {len(contents)} chars to {path}")

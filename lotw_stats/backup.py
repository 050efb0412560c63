"""
Backups of the authoritative log, taken right before it gets rewritten.

Only one backup per file is ever kept: taking a new one deletes every other one. If the
rewrite fails, the backup is copied back over the log and removed.
"""

import logging
import re
import shutil
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from lotw_stats.errors import BackupError

logger = logging.getLogger(__name__)


def backup_path(path: Path, timestamp_ms: int) -> Path:
    """
    Where the backup of path taken at timestamp_ms goes, e.g.
    lotwQso_1700000000000.bak.adif
    """
    return Path(path.parent, f"{path.stem}_{timestamp_ms}.bak{path.suffix}")


def find_backups(path: Path) -> list[Path]:
    """
    All backups of path, newest first
    """
    pattern = re.compile(
        rf"^{re.escape(path.stem)}_\d+\.bak{re.escape(path.suffix)}$"
    )
    if not path.parent.is_dir():
        return []

    backups = [p for p in path.parent.iterdir() if pattern.match(p.name)]
    return sorted(backups, key=lambda p: (p.stat().st_mtime_ns, p.name), reverse=True)


class BackupManager:
    """
    Args:
        enabled: Take backups at all. When False, create() is a no-op and a failed
            rewrite can't be rolled back.
        keep: Leave the backup in place after a successful rewrite instead of deleting
            it
    """

    def __init__(self, enabled: bool = True, keep: bool = False) -> None:
        self.enabled = enabled
        self.keep = keep

    def create(self, path: Path) -> Optional[Path]:
        """
        Back up path, then delete every other backup of it. Returns None, without an
        error, if backups are disabled or there's nothing to back up yet.
        """
        if not self.enabled:
            logger.info(f"Backup disabled, skipping backup of {path}")
            return None
        if not path.exists():
            logger.info(f"{path} does not exist yet, skipping backup")
            return None

        backup = backup_path(path, int(time.time() * 1000))
        shutil.copyfile(path, backup)
        logger.info(f"Backup created: {backup}")

        self._prune(path, keep=backup)
        return backup

    def _prune(self, path: Path, keep: Path) -> None:
        for old in find_backups(path):
            if old == keep:
                continue
            try:
                old.unlink()
                logger.info(f"Deleted old backup: {old}")
            except OSError as e:
                logger.warning(f"Failed to delete old backup {old}: {e}")

    def restore(self, backup: Path, path: Path) -> None:
        """
        Copy the backup back over path and delete it
        """
        if not backup.exists():
            raise BackupError(f"Backup file not found: {backup}")

        try:
            shutil.copyfile(backup, path)
            logger.info(f"Restored {path} from {backup}")
            backup.unlink()
            logger.info(f"Deleted backup: {backup}")
        except OSError as e:
            raise BackupError(f"Failed to restore backup {backup}: {e}") from e

    def discard(self, backup: Optional[Path]) -> None:
        """
        Called once the rewrite went fine. Deletes the backup unless we're keeping it.
        """
        if backup is None or not backup.exists():
            return

        if self.keep:
            logger.info(f"Keeping backup: {backup}")
        else:
            backup.unlink()
            logger.info(f"Deleted backup: {backup}")

    @contextmanager
    def protect(self, path: Path) -> Iterator[Optional[Path]]:
        """
        Back up path for the duration of the block. If the block raises, path is
        restored from the backup before the exception carries on.

            with backups.protect(log_path):
                merge_new_qsos(data, log_path)
        """
        backup = self.create(path)
        try:
            yield backup
        except BaseException:
            if backup is not None:
                logger.warning(f"Update failed, rolling back {path}")
                self.restore(backup, path)
            raise
        self.discard(backup)

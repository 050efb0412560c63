"""
Exceptions raised by lotw_stats. Anything recoverable (no snapshot yet, nothing new
from LoTW, a QSL with no matching QSO) is handled where it happens and never shows up
here.
"""


class LotwStatsError(Exception):
    pass


class AdifParseError(LotwStatsError, ValueError):
    """
    Malformed tagged ADIF text
    """


class LogNotFoundError(LotwStatsError, FileNotFoundError):
    """
    The authoritative ADIF log is missing
    """


class BackupError(LotwStatsError):
    pass


class LotwError(LotwStatsError):
    """
    Fetching from LoTW failed, either after retries were exhausted or because LoTW sent
    back something that isn't an ADIF report
    """

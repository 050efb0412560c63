import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path
from typing import Optional, TextIO

from lotw_stats.adif.record import EOF, EOH, EOR, AdifRecord, AdifToken, read_tokens
from lotw_stats.adif.util import atomic_write, format_lotw_timestamp, make_field
from lotw_stats.constants import EOF_TAG, NUMREC_FIELD
from lotw_stats.errors import AdifParseError, LogNotFoundError

logger = logging.getLogger(__name__)

# The "Generated at ..." line LoTW puts in the free text at the top of the header
GENERATED_AT_RE = re.compile(r"Generated at [^\r\n<]*")


def split_header(text: str) -> tuple[str, str]:
    """
    Split ADIF text into (header, body) at the first <eoh>. The header keeps its <eoh>.
    Text with no <eoh> at all has no header and is all body.
    """
    for token in read_tokens(text):
        if token.name == EOH:
            return text[: token.end], text[token.end :]
    return "", text


def parse_records(body: str) -> list[AdifRecord]:
    """
    Parse every <eor>-terminated record in the body. Blocks with no fields in them are
    dropped, as is the <APP_LoTW_EOF> marker.
    """
    records = []
    block_start = 0
    has_fields = False

    for token in read_tokens(body):
        if token.name == EOR:
            if has_fields:
                records.append(AdifRecord.from_block(body[block_start : token.start]))
            block_start = token.end
            has_fields = False
        elif token.name == EOF:
            if has_fields:
                raise AdifParseError(
                    f"Record not terminated before <{EOF_TAG}> at offset {token.start}"
                )
            block_start = token.end
        elif token.name != EOH:
            has_fields = True

    if has_fields:
        raise AdifParseError("Unterminated record at the end of the log")
    return records


def count_records(body: str) -> int:
    """
    Count the <eor> tags in the body
    """
    return sum(1 for token in read_tokens(body) if token.name == EOR)


def _find_header_token(header: str, name: str) -> Optional[AdifToken]:
    name = name.lower()
    for token in read_tokens(header):
        if token.name == name:
            return token
    return None


def get_header_field(header: str, name: str) -> Optional[str]:
    token = _find_header_token(header, name)
    if token is None:
        return None
    return token.value.strip()


def set_header_field(header: str, name: str, value: str) -> str:
    """
    Return the header with the given field set to value, re-encoding its length. A field
    that isn't there yet is added right before the <eoh>.
    """
    new_field = make_field(name, value)

    token = _find_header_token(header, name)
    if token is not None:
        return header[: token.start] + new_field + header[token.end :]

    eoh = _find_header_token(header, EOH)
    if eoh is None:
        return header + new_field + "\n<eoh>"
    return header[: eoh.start].rstrip() + "\n" + new_field + "\n" + header[eoh.start :]


def touch_generated_at(header: str, now: Optional[datetime] = None) -> str:
    """
    Return the header with its "Generated at" stamp set to now. LoTW writes it as free
    text, but if it's wrapped in a field then the field length is kept correct.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    stamp = f"Generated at {format_lotw_timestamp(now)}"

    first_tag = None
    for token in read_tokens(header):
        if first_tag is None:
            first_tag = token.start
        if token.value.strip().startswith("Generated at"):
            # Keep the field name the way it was written
            name = header[token.start + 1 : token.start + 1 + len(token.name)]
            return header[: token.start] + make_field(name, stamp) + header[token.end :]

    preamble_end = len(header) if first_tag is None else first_tag
    preamble = GENERATED_AT_RE.sub(stamp, header[:preamble_end], count=1)
    return preamble + header[preamble_end:]


@dataclass
class AdifLog:
    """
    A LoTW report: the header as LoTW wrote it (up to and including <eoh>), followed by
    its records and a closing <APP_LoTW_EOF>.
    """

    header: str = ""
    records: list[AdifRecord] = field(default_factory=list)

    def __str__(self) -> str:
        s = StringIO()
        self._to_file_obj(s)
        return s.getvalue()

    @classmethod
    def from_string(cls, contents: str) -> "AdifLog":
        """
        Parse from a string
        """
        header, body = split_header(contents)
        return cls(header=header, records=parse_records(body))

    @classmethod
    def from_file(cls, file_path: Path) -> "AdifLog":
        if not file_path.exists():
            raise LogNotFoundError(f"ADIF file not found: {file_path}")
        return cls.from_string(file_path.read_text(encoding="utf-8"))

    def to_file(self, file_path: Path) -> None:
        """
        Atomically replace the file with this log
        """
        atomic_write(file_path, str(self))

    def _to_file_obj(self, f: TextIO) -> None:
        f.write(self.header)
        for record in self.records:
            f.write("\n" + str(record) + "\n")
        f.write(f"\n<{EOF_TAG}>\n")

    def header_field(self, name: str) -> Optional[str]:
        return get_header_field(self.header, name)

    def set_header_field(self, name: str, value: str) -> None:
        self.header = set_header_field(self.header, name, value)

    def touch_generated_at(self, now: Optional[datetime] = None) -> None:
        self.header = touch_generated_at(self.header, now)

    @property
    def record_count(self) -> Optional[int]:
        """
        The record count LoTW claims in the header, which isn't necessarily
        len(self.records)
        """
        value = self.header_field(NUMREC_FIELD)
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            raise AdifParseError(f"Invalid {NUMREC_FIELD} in header: {value!r}")

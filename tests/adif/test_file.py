from datetime import datetime
from pathlib import Path
from typing import Callable

import pytest

from lotw_stats.adif.file import (
    AdifLog,
    count_records,
    get_header_field,
    parse_records,
    set_header_field,
    split_header,
    touch_generated_at,
)
from lotw_stats.errors import AdifParseError, LogNotFoundError


def test_load_file(log_path: Path) -> None:
    """
    Basic test to see if we can load a LoTW report
    """
    log = AdifLog.from_file(log_path)
    assert log.header.startswith("ARRL Logbook of the World Status Report")
    assert log.header.endswith("<eoh>")
    assert log.record_count == 3
    assert log.header_field("APP_LoTW_LASTQSORX") == "2024-02-29 10:00:00"

    assert len(log.records) == 3
    assert log.records[0]["call"] == "JA1AA"
    assert log.records[2]["call"] == "K1ABC/MM"
    assert log.records[2]["time_on"] == "1405"


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(LogNotFoundError):
        AdifLog.from_file(Path(tmp_path, "nope.adif"))


def test_split_header() -> None:
    header, body = split_header("foo <x:1>a<eoh>b <EOH> <call:4>N0FO<eor>")
    assert header == "foo <x:1>a<eoh>"
    assert body == "b <EOH> <call:4>N0FO<eor>"

    # An <eoh> inside a value isn't the end of the header
    header, body = split_header("<comment:5><eoh><EOH><call:4>N0FO<eor>")
    assert header == "<comment:5><eoh><EOH>"

    # No header at all
    assert split_header("<call:4>N0FO<eor>") == ("", "<call:4>N0FO<eor>")


def test_parse_records() -> None:
    body = (
        "\n<CALL:4>N0FO<EOR>\n"
        "   \n<eor>\n"
        "<APP_LoTW_EOF>"
    )
    records = parse_records(body)
    assert len(records) == 1
    assert records[0].fields == {"call": "N0FO"}

    assert parse_records("") == []
    assert parse_records("<APP_LoTW_EOF>\n<call:4>N0FO<eor>")[0]["call"] == "N0FO"


@pytest.mark.parametrize(
    "body",
    [
        "<call:4>N0FO",
        "<call:4>N0FO<eor><call:4>N0BA",
        "<call:4>N0FO<APP_LoTW_EOF>",
    ],
)
def test_parse_records_unterminated(body: str) -> None:
    with pytest.raises(AdifParseError):
        parse_records(body)


def test_count_records() -> None:
    assert count_records("") == 0
    assert count_records("<call:4>N0FO<eor><call:4>N0BA<EOR><APP_LoTW_EOF>") == 2
    # <eor> inside a value doesn't count
    assert count_records("<comment:5><eor><eor>") == 1


def test_header_fields() -> None:
    header = "LoTW\n<PROGRAMID:4>LoTW\n<APP_LoTW_NUMREC:1>3\n<eoh>"
    assert get_header_field(header, "app_lotw_numrec") == "3"
    assert get_header_field(header, "APP_LoTW_RXQSL") is None

    # Existing fields are rewritten with the right length
    updated = set_header_field(header, "APP_LoTW_NUMREC", "120")
    assert updated == "LoTW\n<PROGRAMID:4>LoTW\n<APP_LoTW_NUMREC:3>120\n<eoh>"

    # New ones go right before the <eoh>
    updated = set_header_field(header, "APP_LoTW_RXQSL", "2024-01-01 00:00:00")
    assert updated == (
        "LoTW\n<PROGRAMID:4>LoTW\n<APP_LoTW_NUMREC:1>3\n"
        "<APP_LoTW_RXQSL:19>2024-01-01 00:00:00\n<eoh>"
    )

    # No header at all
    assert set_header_field("", "APP_LoTW_NUMREC", "2") == "<APP_LoTW_NUMREC:1>2\n<eoh>"


def test_touch_generated_at() -> None:
    now = datetime(2024, 5, 6, 7, 8, 9)

    header = "Report\nGenerated at 2024-03-01 08:15:22\nfor N0CALL\n<eoh>"
    assert touch_generated_at(header, now) == (
        "Report\nGenerated at 2024-05-06 07:08:09\nfor N0CALL\n<eoh>"
    )

    # As a field, the length is kept in sync
    header = "<PROGRAMID:32>Generated at 2024-03-01 08:15:22<eoh>"
    assert touch_generated_at(header, now) == (
        "<PROGRAMID:32>Generated at 2024-05-06 07:08:09<eoh>"
    )

    # Nothing to touch
    assert touch_generated_at("<PROGRAMID:4>LoTW<eoh>", now) == (
        "<PROGRAMID:4>LoTW<eoh>"
    )


def test_log_str(sample_report: str) -> None:
    log = AdifLog.from_string(sample_report)

    s = str(log)
    assert s.startswith(log.header)
    assert "<CALL:5>JA1AA" in s
    assert "<APP_LoTW_QSO_TIMESTAMP:20>2024-01-10T12:00:00Z" in s
    assert s.count("<eor>") == 3
    assert s.count("<APP_LoTW_EOF>") == 1
    assert s.rstrip().endswith("<APP_LoTW_EOF>")

    # Writing and reading back gives the same log
    assert AdifLog.from_string(s) == log


def test_to_file(tmp_path: Path, make_report: Callable[..., str], qso) -> None:
    path = Path(tmp_path, "log.adif")
    log = AdifLog.from_string(make_report([qso("2024-01-10T12:00:00Z")]))
    log.to_file(path)

    assert AdifLog.from_file(path) == log
    # No temp files left behind
    assert [p.name for p in tmp_path.iterdir()] == ["log.adif"]


def test_record_count_invalid() -> None:
    log = AdifLog(header="<APP_LoTW_NUMREC:3>abc<eoh>")
    with pytest.raises(AdifParseError):
        log.record_count

    assert AdifLog(header="<eoh>").record_count is None

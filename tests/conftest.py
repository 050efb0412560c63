from pathlib import Path
from typing import Callable, Optional

import pytest

from lotw_stats.adif.util import make_field

DATA_DIR = Path(Path(__file__).parent, "data")


def _qso(
    timestamp: str,
    call: str = "JA1AA",
    dxcc: str = "339",
    confirmed: bool = False,
    rxqsl: Optional[str] = None,
) -> dict[str, str]:
    fields = {
        "APP_LoTW_OWNCALL": "N0CALL",
        "CALL": call,
        "BAND": "20M",
        "MODE": "FT8",
        "APP_LoTW_QSO_TIMESTAMP": timestamp,
        "QSL_RCVD": "Y" if confirmed else "N",
    }
    if rxqsl:
        fields["APP_LoTW_RXQSL"] = rxqsl
    fields["DXCC"] = dxcc
    return fields


def _report(
    records: list[dict[str, str]],
    numrec: Optional[int] = None,
    last_qso_rx: Optional[str] = None,
    rxqsl: Optional[str] = None,
    generated_at: str = "2024-03-01 08:15:22",
) -> str:
    lines = [
        "ARRL Logbook of the World Status Report",
        f"Generated at {generated_at}",
        "for N0CALL",
        "",
        make_field("PROGRAMID", "LoTW"),
    ]
    if last_qso_rx:
        lines.append(make_field("APP_LoTW_LASTQSORX", last_qso_rx))
    if rxqsl:
        lines.append(make_field("APP_LoTW_RXQSL", rxqsl))
    count = len(records) if numrec is None else numrec
    lines.append(make_field("APP_LoTW_NUMREC", str(count)))
    lines.append("")
    lines.append("<eoh>")

    for fields in records:
        lines.append("")
        lines.extend(make_field(k, v) for k, v in fields.items())
        lines.append("<eor>")

    lines.append("")
    lines.append("<APP_LoTW_EOF>")
    return "\n".join(lines) + "\n"


@pytest.fixture
def qso() -> Callable[..., dict[str, str]]:
    """
    Build the fields of a LoTW QSO record
    """
    return _qso


@pytest.fixture
def make_report() -> Callable[..., str]:
    """
    Build the text of a LoTW report
    """
    return _report


@pytest.fixture
def sample_report() -> str:
    return Path(DATA_DIR, "lotw_report.adi").read_text()


@pytest.fixture
def log_path(tmp_path: Path, sample_report: str) -> Path:
    """
    The sample report, as the authoritative log in a temp dir
    """
    path = Path(tmp_path, "lotwQso.adif")
    path.write_text(sample_report)
    return path

from typing import Callable

import httpx
import pytest

from lotw_stats.errors import LotwError
from lotw_stats.lotw import FetchMode, LotwClient, lotw_since

URL = "https://lotw.example.com/lotwreport.adi"


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> LotwClient:
    return LotwClient(
        username="n0call",
        password="hunter2",
        url=URL,
        qso_begin_date="2015-01-01",
        retries=3,
        retry_delay=0,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        progress=False,
    )


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-01-01 00:00:00", "2024-01-01 00:00:01"),
        ("2024-12-31 23:59:59", "2025-01-01 00:00:00"),
        (1709370000000, "2024-03-02 09:00:01"),
    ],
)
def test_lotw_since(value, expected: str) -> None:
    assert lotw_since(value) == expected


@pytest.mark.parametrize(
    "mode,since,expected",
    [
        (FetchMode.FULL, None, {"qso_qsl": "no", "qso_qsorxsince": "2015-01-01"}),
        # since is ignored for full fetches
        (
            FetchMode.FULL,
            "2024-01-01 00:00:00",
            {"qso_qsl": "no", "qso_qsorxsince": "2015-01-01"},
        ),
        (
            FetchMode.INCREMENTAL_QSO,
            "2024-01-01 00:00:00",
            {"qso_qsl": "no", "qso_qsorxsince": "2024-01-01 00:00:01"},
        ),
        (
            FetchMode.INCREMENTAL_QSL,
            "2024-02-01 12:00:00",
            {"qso_qsl": "yes", "qso_qslsince": "2024-02-01 12:00:01"},
        ),
    ],
)
def test_fetch_params(
    mode: FetchMode, since, expected: dict[str, str], sample_report: str
) -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text=sample_report)

    with make_client(handler) as client:
        data = client.fetch(mode, since)

    assert len(requests) == 1
    params = dict(requests[0].url.params)
    assert params == {
        "login": "n0call",
        "password": "hunter2",
        "qso_query": "1",
        "qso_qsldetail": "yes",
        "qso_mydetail": "yes",
        **expected,
    }
    assert requests[0].headers["User-Agent"].startswith("lotw-stats/")

    assert data == sample_report


@pytest.mark.parametrize("since", [None, ""])
def test_fetch_incremental_needs_since(since) -> None:
    client = make_client(lambda request: httpx.Response(200, text="<eoh>"))
    with pytest.raises(ValueError):
        client.fetch(FetchMode.INCREMENTAL_QSO, since)


def test_fetch_retries(sample_report: str) -> None:
    responses = [
        httpx.Response(503, text="busy"),
        httpx.Response(503, text="busy"),
        httpx.Response(200, text=sample_report),
    ]
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses[len(calls) - 1]

    data = make_client(handler).fetch(FetchMode.FULL)
    assert len(calls) == 3
    assert data == sample_report


@pytest.mark.parametrize("error", [httpx.ReadTimeout, httpx.ConnectError])
def test_fetch_retries_network_errors(error, sample_report: str) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise error("oh no", request=request)
        return httpx.Response(200, text=sample_report)

    assert make_client(handler).fetch(FetchMode.FULL) == sample_report
    assert len(calls) == 2


def test_fetch_retries_exhausted() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, text="busy")

    with pytest.raises(LotwError):
        make_client(handler).fetch(FetchMode.FULL)
    assert len(calls) == 3


def test_fetch_no_retry_on_other_errors() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, text="oops")

    with pytest.raises(LotwError):
        make_client(handler).fetch(FetchMode.FULL)
    assert len(calls) == 1


def test_fetch_not_adif() -> None:
    """
    A bad login gets an HTML page back instead of a report
    """
    client = make_client(
        lambda request: httpx.Response(
            200, text="<html><body>Username/password incorrect</body></html>"
        )
    )
    with pytest.raises(LotwError, match="did not return an ADIF report"):
        client.fetch(FetchMode.FULL)


@pytest.mark.parametrize("username,password", [("", "hunter2"), ("n0call", "")])
def test_fetch_needs_credentials(username: str, password: str) -> None:
    calls = []
    client = make_client(lambda request: calls.append(request))
    client.username = username
    client.password = password

    with pytest.raises(LotwError):
        client.fetch(FetchMode.FULL)
    assert calls == []

"""
Client for the LoTW report endpoint, lotwreport.adi.

LoTW is slow and regularly answers 503 when it's busy, so requests are retried with
exponential backoff on 503s and network errors. Everything else fails straight away.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tqdm import tqdm

from lotw_stats.adif.util import format_lotw_timestamp, parse_lotw_timestamp
from lotw_stats.constants import (
    DEFAULT_QSO_BEGIN_DATE,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY_S,
    DEFAULT_TIMEOUT_S,
    LOTW_URL,
    USER_AGENT,
)
from lotw_stats.errors import LotwError

logger = logging.getLogger(__name__)


class FetchMode(Enum):
    # Every QSO received since the configured begin date
    FULL = "full"
    # QSOs received since a timestamp
    INCREMENTAL_QSO = "incremental-qso"
    # QSOs confirmed since a timestamp
    INCREMENTAL_QSL = "incremental-qsl"


def lotw_since(value: Union[str, int]) -> str:
    """
    Turn a LoTW timestamp string or an epoch-millisecond timestamp into a value for the
    qso_qsorxsince/qso_qslsince parameters. One second is added, since LoTW includes
    records at exactly that time and we already have those.
    """
    if isinstance(value, str):
        dt = parse_lotw_timestamp(value)
    else:
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return format_lotw_timestamp(dt + timedelta(seconds=1))


def _is_transient(e: BaseException) -> bool:
    # Timeouts, refused connections and the like
    if isinstance(e, httpx.TransportError):
        return True
    if isinstance(e, httpx.HTTPStatusError):
        return e.response.status_code == 503
    return False


class LotwClient:
    def __init__(
        self,
        username: str,
        password: str,
        url: str = LOTW_URL,
        qso_begin_date: str = DEFAULT_QSO_BEGIN_DATE,
        timeout: float = DEFAULT_TIMEOUT_S,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_S,
        client: Optional[httpx.Client] = None,
        progress: bool = True,
    ) -> None:
        self.username = username
        self.password = password
        self.url = url
        self.qso_begin_date = qso_begin_date
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.progress = progress
        self._client = client if client is not None else httpx.Client()

    def __enter__(self) -> "LotwClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(
        self, mode: FetchMode, since: Optional[Union[str, int]] = None
    ) -> str:
        """
        Fetch a report from LoTW and return its text.

        Args:
            mode: What to fetch
            since: For incremental modes, a LoTW timestamp string or epoch milliseconds.
                Records from after this are fetched. Ignored for FULL.
        """
        if not self.username or not self.password:
            raise LotwError("LoTW username and password are required")

        params = self._params(mode, since)
        logger.info(f"Fetching {mode.value} data from LoTW")
        safe_params = {k: v for k, v in params.items() if k != "password"}
        logger.debug(f"Query: {safe_params}")

        try:
            data = self._get_with_retry(params, desc=f"LoTW {mode.value}")
        except httpx.HTTPError as e:
            raise LotwError(f"LoTW query failed: {e}") from e

        if "<eoh>" not in data.lower():
            # LoTW sends back an HTML page when the login is wrong
            raise LotwError(
                "LoTW did not return an ADIF report, check the username and password"
            )

        return data

    def _params(
        self, mode: FetchMode, since: Optional[Union[str, int]]
    ) -> dict[str, str]:
        params = {
            "login": self.username,
            "password": self.password,
            "qso_query": "1",
            "qso_qsldetail": "yes",
            "qso_mydetail": "yes",
        }

        if mode == FetchMode.FULL:
            params["qso_qsl"] = "no"
            params["qso_qsorxsince"] = self.qso_begin_date
            return params

        if since is None or since == "":
            raise ValueError(f"{mode.value} fetch needs a since timestamp")
        if mode == FetchMode.INCREMENTAL_QSO:
            params["qso_qsl"] = "no"
            params["qso_qsorxsince"] = lotw_since(since)
        else:
            params["qso_qsl"] = "yes"
            params["qso_qslsince"] = lotw_since(since)
        return params

    def _get_with_retry(self, params: dict[str, str], desc: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=self.retry_delay),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return self._get(params, desc)
        raise AssertionError("unreachable")

    def _get(self, params: dict[str, str], desc: str) -> str:
        """
        Download the report, showing progress as it comes in
        """
        headers = {"User-Agent": USER_AGENT, "Accept": "text/plain"}
        with self._client.stream(
            "GET", self.url, params=params, headers=headers, timeout=self.timeout
        ) as response:
            response.raise_for_status()

            total = int(response.headers.get("Content-Length", 0)) or None
            chunks = []
            with tqdm(
                total=total,
                unit="B",
                unit_scale=True,
                desc=desc,
                disable=not self.progress,
            ) as bar:
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    # Content-Length counts bytes on the wire, before decompression
                    bar.update(response.num_bytes_downloaded - bar.n)

            return b"".join(chunks).decode(response.encoding or "utf-8")

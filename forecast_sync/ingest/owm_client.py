"""OpenWeatherMap daily forecast client with retry and rate limit handling."""

import logging
import time

import httpx

from forecast_sync.config.defaults import DEFAULT_FORECAST_DAYS, OWM_BASE_URL
from forecast_sync.models.sync import NetworkFailure

logger = logging.getLogger(__name__)

FORECAST_PATH = "/data/2.5/forecast/daily"
DEFAULT_USER_AGENT = "forecast-sync/0.1.0"
RETRYABLE_STATUS = (503, 429)


class FetchError(Exception):
    def __init__(self, kind: NetworkFailure, detail: str = "", status_code: int | None = None):
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{kind}: {detail}" if detail else str(kind))


class OwmClient:
    def __init__(
        self,
        base_url: str = OWM_BASE_URL,
        api_key: str = "",
        units: str = "metric",
        days: int = DEFAULT_FORECAST_DAYS,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_base_delay: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.units = units
        self.days = days
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    def fetch(self, location_query: str) -> str:
        """Fetch the raw daily forecast JSON for a location query.

        Retries on 503/429 and transport errors with exponential backoff.
        Other 4xx bodies are returned as-is: OWM reports those in-band via
        its `cod` field, which the parser turns into a provider error.
        """
        url = f"{self.base_url}{FORECAST_PATH}"
        params = {
            "q": location_query,
            "mode": "json",
            "units": self.units,
            "cnt": str(self.days),
        }
        if self.api_key:
            params["appid"] = self.api_key
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        for attempt in range(self.max_retries + 1):
            try:
                resp = httpx.get(url, params=params, headers=headers, timeout=self.timeout)
            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    delay = self.retry_base_delay * (2**attempt)
                    logger.warning(
                        "OWM request error, retrying in %.1fs: %s", delay, e
                    )
                    time.sleep(delay)
                    continue
                raise FetchError(_classify(e), str(e)) from e

            if resp.status_code in RETRYABLE_STATUS and attempt < self.max_retries:
                delay = self.retry_base_delay * (2**attempt)
                logger.warning(
                    "OWM %s returned %d, retrying in %.1fs (attempt %d/%d)",
                    url, resp.status_code, delay, attempt + 1, self.max_retries,
                )
                time.sleep(delay)
                continue

            if resp.status_code in RETRYABLE_STATUS or resp.status_code >= 500:
                raise FetchError(
                    NetworkFailure.OTHER,
                    f"HTTP {resp.status_code} from {url}",
                    status_code=resp.status_code,
                )
            if resp.status_code >= 400:
                logger.warning(
                    "OWM %s returned %d for %r", url, resp.status_code, location_query
                )
            return resp.text

        raise FetchError(NetworkFailure.OTHER, "retries exhausted")


def _classify(error: httpx.RequestError) -> NetworkFailure:
    if isinstance(error, httpx.TimeoutException):
        return NetworkFailure.TIMEOUT
    if isinstance(error, httpx.NetworkError):
        return NetworkFailure.UNREACHABLE
    return NetworkFailure.OTHER

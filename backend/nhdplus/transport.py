import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from .settings import NHDPLUS_TIMEOUT, RETRY_ATTEMPTS, RETRY_MAX_WAIT
from .utils.logging import get_logger

logger = get_logger(__name__)

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Reported when every attempt failed before a response arrived
NO_RESPONSE_STATUS = 0


@dataclass(frozen=True)
class WebResponse:
    """Status, raw body and final URL of one completed request."""

    status_code: int
    content: bytes
    url: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def _should_retry_status(response: httpx.Response) -> bool:
    return response.status_code in RETRY_STATUS_CODES


def _return_last_response(retry_state) -> httpx.Response:
    # Re-raises the transport error when no response was ever received
    return retry_state.outcome.result()


class WebClient:
    """Blocking HTTP client with bounded retries.

    Never raises for network failures: an exhausted retry budget yields the
    last response, or a ``WebResponse`` with status ``0`` if none arrived.
    """

    def __init__(self, timeout: int = NHDPLUS_TIMEOUT):
        self.timeout = timeout
        self.session: Optional[httpx.Client] = None

    def __enter__(self):
        self.session = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.session is not None:
            self.session.close()
            self.session = None

    @retry(
        stop=stop_after_attempt(RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, max=RETRY_MAX_WAIT),
        retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(_should_retry_status),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=_return_last_response,
    )
    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return self.session.request(method, url, **kwargs)

    def send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> WebResponse:
        if self.session is None:
            raise RuntimeError("WebClient must be used as a context manager")

        logger.debug("Sending request", extra={'method': method, 'url': url})

        try:
            response = self._send(method, url, params=params, content=content, headers=headers)
        except httpx.RequestError as exc:
            # Transport errors were retried; redirect loops and bad encodings are not
            logger.error(
                f"Request to {url} failed: {exc.__class__.__name__}: {exc}",
                extra={'method': method, 'url': url}
            )
            return WebResponse(status_code=NO_RESPONSE_STATUS, content=b"", url=url)

        return WebResponse(
            status_code=response.status_code,
            content=response.content,
            url=str(response.url),
        )

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> WebResponse:
        return self.send("GET", url, params=params)

    def post(self, url: str, content: bytes, content_type: str = "application/xml") -> WebResponse:
        return self.send("POST", url, content=content, headers={'Content-Type': content_type})

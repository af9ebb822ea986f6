"""
HTTP client used for index and archive downloads.

Transport failures and non-success statuses are turned into rulesync errors
naming the URL. Nothing is retried; a failed fetch is re-run by the caller.
"""
import logging
from typing import Dict, Optional

import requests

from rulesync.errors import NetworkError, ProtocolError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class HttpClient:
    """HTTP session that sends a fixed client identity with every request."""

    def __init__(self,
                 user_agent: str,
                 timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize the HTTP client.

        Args:
            user_agent: Value of the User-Agent header
            timeout: Request timeout in seconds, None for the transport default
            session: Optional pre-built session (tests pass a fake one)
        """
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.user_agent = user_agent
        self.timeout = timeout

    def get(self, url: str, stream: bool = False, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        """
        GET a URL and return the response once its status is known to be 2xx.

        Raises:
            NetworkError: Connection, DNS, TLS or timeout failure
            ProtocolError: Any non-2xx status
        """
        logger.debug(f"GET {url} (User-Agent: {self.user_agent})")
        try:
            response = self.session.get(url, stream=stream, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NetworkError(url, str(e)) from e

        if not 200 <= response.status_code < 300:
            reason = getattr(response, "reason", "") or ""
            response.close()
            raise ProtocolError(url, response.status_code, reason)

        return response

    def get_text(self, url: str) -> str:
        response = self.get(url)
        try:
            return response.text
        except requests.exceptions.RequestException as e:
            raise NetworkError(url, str(e)) from e

    def close(self):
        """Close the session."""
        self.session.close()


def parse_header(header: str) -> Dict[str, str]:
    """Turn a single "Name: value" string into a headers dict."""
    name, sep, value = header.partition(":")
    if not sep or not name.strip():
        return {}
    return {name.strip(): value.strip()}

"""HTTP client for the paginated product-search endpoint."""

from typing import Dict, Optional

import requests

from .logger import get_logger, StructuredLogger
from .models import ListingPage


class PageFetchError(Exception):
    """A single page request failed (transport, HTTP status or body)."""

    def __init__(self, page: int, reason: str, status: Optional[int] = None, error_type: str = "RequestException"):
        super().__init__(f"Page {page} request failed: {reason}")
        self.page = page
        self.reason = reason
        self.status = status
        self.error_type = error_type


class ListingClient:
    """Requests pages of the remote listing with a fixed page size."""

    def __init__(
        self,
        api_url: str,
        page_size: int = 20,
        extra_params: Optional[Dict[str, str]] = None,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.api_url = api_url
        self.page_size = page_size
        self.extra_params = dict(extra_params or {})
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or get_logger()

    def params_for(self, page: int) -> Dict[str, object]:
        return {**self.extra_params, "page_size": self.page_size, "page": page}

    def fetch_page(self, page: int) -> ListingPage:
        """Fetch one page.

        Raises:
            PageFetchError: On any HTTP error, timeout, request failure or
                malformed response body
        """
        params = self.params_for(page)
        self.logger.record_api_call()
        self.logger.debug("Requesting page", page=page, params=params)
        try:
            resp = self.session.get(self.api_url, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise PageFetchError(page, f"HTTP {status}", status=status, error_type=f"HTTPError_{status}") from e
        except requests.exceptions.Timeout as e:
            raise PageFetchError(page, "request timed out", error_type="Timeout") from e
        except requests.exceptions.RequestException as e:
            raise PageFetchError(page, str(e), error_type="RequestException") from e

        try:
            return ListingPage.from_json(resp.json())
        except ValueError as e:
            raise PageFetchError(page, f"malformed response: {e}", status=resp.status_code, error_type="MalformedResponse") from e

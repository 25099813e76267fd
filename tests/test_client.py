"""
Tests for the listing HTTP client.
"""

import pytest
import requests

from coursecatalog.client import ListingClient, PageFetchError


class FakeResponse:
    def __init__(self, payload=None, status_code=200, body_error=False):
        self.payload = payload
        self.status_code = status_code
        self.body_error = body_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self.body_error:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _client(outcome, test_logger, **kwargs):
    session = FakeSession(outcome)
    client = ListingClient(
        "https://api.example.com/products",
        page_size=20,
        extra_params={"featured-only": "0"},
        session=session,
        logger=test_logger,
        **kwargs,
    )
    return client, session


class TestListingClient:
    """Test page requests and error translation."""

    def test_fetch_page(self, test_logger):
        payload = {"items": [{"sku": "A"}], "total": 41, "current_page": 3, "filters": [{"attribute_code": "x"}]}
        client, session = _client(FakeResponse(payload), test_logger, timeout=7)

        page = client.fetch_page(3)

        assert page.items == [{"sku": "A"}]
        assert page.total == 41
        assert page.current_page == 3
        assert session.requests == [{
            "url": "https://api.example.com/products",
            "params": {"featured-only": "0", "page_size": 20, "page": 3},
            "timeout": 7,
        }]
        assert test_logger.metrics["api_calls"] == 1

    def test_missing_items_become_empty(self, test_logger):
        client, _ = _client(FakeResponse({"total": 0}), test_logger)
        page = client.fetch_page(1)
        assert page.items == []
        assert page.total == 0

    def test_http_error(self, test_logger):
        client, _ = _client(FakeResponse(status_code=503), test_logger)
        with pytest.raises(PageFetchError) as excinfo:
            client.fetch_page(2)
        assert excinfo.value.page == 2
        assert excinfo.value.status == 503
        assert excinfo.value.error_type == "HTTPError_503"

    def test_timeout(self, test_logger):
        client, _ = _client(requests.exceptions.Timeout("read timed out"), test_logger)
        with pytest.raises(PageFetchError) as excinfo:
            client.fetch_page(2)
        assert excinfo.value.error_type == "Timeout"
        assert excinfo.value.status is None

    def test_connection_error(self, test_logger):
        client, _ = _client(requests.exceptions.ConnectionError("connection reset"), test_logger)
        with pytest.raises(PageFetchError) as excinfo:
            client.fetch_page(2)
        assert excinfo.value.error_type == "RequestException"
        assert "connection reset" in str(excinfo.value)

    def test_unparsable_body(self, test_logger):
        client, _ = _client(FakeResponse(body_error=True), test_logger)
        with pytest.raises(PageFetchError) as excinfo:
            client.fetch_page(2)
        assert excinfo.value.error_type == "MalformedResponse"

    def test_wrong_shape(self, test_logger):
        client, _ = _client(FakeResponse({"items": "oops"}), test_logger)
        with pytest.raises(PageFetchError):
            client.fetch_page(1)

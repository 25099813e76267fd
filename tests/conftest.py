"""
Pytest configuration and shared fixtures.
"""

import pytest
import json
from pathlib import Path
from typing import Any, Dict, List

from coursecatalog.logger import StructuredLogger, get_logger, reset_logger
from coursecatalog.models import ListingPage


def make_items(start: int, count: int, prefix: str = "SKU") -> List[Dict[str, Any]]:
    return [
        {"id": i, "sku": f"{prefix}-{i}", "name": f"Course {i}"}
        for i in range(start, start + count)
    ]


class FakeClient:
    """Scripted stand-in for ListingClient.

    `script` maps a page index to a list of outcomes (ListingPage or an
    exception instance). Outcomes are consumed in order; the last one
    repeats.
    """

    def __init__(self, script: Dict[int, list], page_size: int = 20):
        self.page_size = page_size
        self.script = {page: list(outcomes) for page, outcomes in script.items()}
        self.calls: List[int] = []

    def fetch_page(self, page: int) -> ListingPage:
        self.calls.append(page)
        outcomes = self.script[page]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def paged_catalog(total: int, page_size: int, first_page: int = 1) -> Dict[int, list]:
    """Script for an endpoint serving `total` distinct items."""
    script = {}
    page = first_page
    for start in range(0, max(total, 1), page_size):
        count = min(page_size, total - start)
        script[page] = [ListingPage(items=make_items(start + 1, count), total=total, current_page=page,
                                    filters=[{"attribute_code": "lcv_sponsor", "items": []}])]
        page += 1
    return script


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path):
    """Route the global logger to a temp dir for every test."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def test_logger(tmp_path) -> StructuredLogger:
    return StructuredLogger(name="test", enable_file=False, enable_console=False)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def raw_course() -> Dict[str, Any]:
    """A snapshot item shaped like the listing API returns it."""
    return {
        "id": 101,
        "sku": "ETH-101",
        "name": "Ethics for Texas Accountants",
        "short_description": "<p>Covers the <b>Texas</b> board rules.</p>",
        "vendor": {"id": 7, "name": "Acme Learning", "logo_src": "https://cdn.example.com/acme.png",
                   "link": "https://acme.example.com"},
        "prices_unformatted": {"price": 49.5},
        "image_url": "https://cdn.example.com/eth101.png",
        "url_key": "ethics-for-texas-accountants",
        "product_type": "course",
        "attributes": [
            {"code": "lcv_fields_of_study_value", "option_value": "Ethics"},
            {"code": "lcv_program_qualifications", "option_value": "CPE, CLE"},
            {"code": "lcv_level", "option_value": "Basic"},
            {"code": "lcv_delivery_method", "option_value": "QAS Self Study"},
            {"code": "lcv_length", "option_value": "2 hours"},
            {"code": "lcv_total_credits", "option_value": "100"},
        ],
    }


@pytest.fixture
def snapshot_data(raw_course) -> Dict[str, Any]:
    second = {
        "id": 102,
        "sku": "TAX-102",
        "name": "Federal Tax Update",
        "short_description": "Annual update for practitioners in New York and Ohio.",
        "vendor": {"id": 8, "name": "Beta Institute"},
        "prices_unformatted": {"price": 120},
        "attributes": [
            {"code": "lcv_fields_of_study_value", "option_value": "Taxes"},
            {"code": "lcv_program_qualifications", "option_value": "CPE"},
            {"code": "lcv_total_credits", "option_value": "400"},
        ],
    }
    third = {
        "id": 103,
        "sku": "ETH-103",
        "name": "Professional Ethics",
        "short_description": "",
        "vendor": {"id": 7, "name": "Acme Learning"},
        "prices_unformatted": {"price": 0},
        "attributes": [{"code": "lcv_fields_of_study_value", "option_value": "Ethics"}],
    }
    return {
        "items": [raw_course, second, third],
        "filters": [{"attribute_code": "lcv_sponsor", "items": [{"label": "Acme Learning", "count": 2}]}],
        "total": 3,
    }


@pytest.fixture
def snapshot_file(tmp_path, snapshot_data) -> Path:
    path = tmp_path / "public" / "courses.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(snapshot_data, indent=2))
    return path

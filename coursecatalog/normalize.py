from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from .models import Course

PLACEHOLDER_IMAGE = "https://via.placeholder.com/400x300?text=No+Image+Available"
UNKNOWN_SPONSOR = "Unknown Provider"

# Raw credit attributes are minutes of instruction; 50 minutes make one credit.
CREDIT_UNIT_DIVISOR = 50.0

CATEGORY_ATTR = "lcv_fields_of_study_value"
QUALIFICATIONS_ATTR = "lcv_program_qualifications"
LEVEL_ATTR = "lcv_level"
DELIVERY_ATTR = "lcv_delivery_method"
LENGTH_ATTR = "lcv_length"
CREDITS_ATTR = "lcv_total_credits"


def normalize_text(s: str) -> str:
    return " ".join(s.strip().split())


def strip_html(markup: Optional[str]) -> str:
    if not markup:
        return ""
    text = BeautifulSoup(markup, "html.parser").get_text(" ")
    return normalize_text(text)


def _attribute(attributes: List[Dict[str, Any]], code: str) -> str:
    for attr in attributes:
        if isinstance(attr, dict) and attr.get("code") == code:
            value = attr.get("option_value")
            return "" if value is None else str(value).strip()
    return ""


def split_values(raw: str) -> List[str]:
    return [v.strip() for v in raw.split(",") if v.strip()]


def parse_number(value: Any) -> float:
    """Best-effort float; strips currency symbols and thousands separators."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = "".join(ch for ch in str(value) if ch.isdigit() or ch in ".-")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def normalized_credits(course: Course) -> float:
    return parse_number(course.credits) / CREDIT_UNIT_DIVISOR


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def map_course(item: Dict[str, Any]) -> Course:
    """Map a raw snapshot item to the fields the catalog filters on.

    Nested fields of the wrong type are treated as absent.
    """
    attributes = item.get("attributes")
    if not isinstance(attributes, list):
        attributes = []
    vendor = _mapping(item.get("vendor"))
    prices = _mapping(item.get("prices_unformatted"))

    return Course(
        id=item.get("id"),
        sku=_text(item.get("sku")) or None,
        title=_text(item.get("name")),
        description=strip_html(_text(item.get("short_description"))),
        sponsor=_text(vendor.get("name")) or UNKNOWN_SPONSOR,
        category=_attribute(attributes, CATEGORY_ATTR),
        qualifications=split_values(_attribute(attributes, QUALIFICATIONS_ATTR)),
        level=_attribute(attributes, LEVEL_ATTR),
        delivery_method=_attribute(attributes, DELIVERY_ATTR),
        length=_attribute(attributes, LENGTH_ATTR),
        credits=_attribute(attributes, CREDITS_ATTR),
        price=parse_number(prices.get("price")),
        image_url=_text(item.get("image_url")) or PLACEHOLDER_IMAGE,
        url_key=_text(item.get("url_key")) or None,
        product_type=_text(item.get("product_type")) or None,
        vendor={
            "id": vendor.get("id"),
            "name": vendor.get("name"),
            "logo": vendor.get("logo_src"),
            "link": vendor.get("link"),
        },
    )

"""Data shapes shared by the fetcher and the catalog view."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .schema import validate_listing_page


@dataclass
class ListingPage:
    """One response from the remote listing endpoint."""

    items: List[Dict[str, Any]]
    total: int = 0
    current_page: Optional[int] = None
    filters: List[Any] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any) -> "ListingPage":
        """Build a page from decoded JSON; raises ValueError on a bad shape."""
        errors = validate_listing_page(data)
        if errors:
            raise ValueError("; ".join(errors))
        return cls(
            items=list(data.get("items") or []),
            total=data.get("total") or 0,
            current_page=data.get("current_page"),
            filters=list(data.get("filters") or []),
        )


@dataclass
class Snapshot:
    """The merged, deduplicated result of one fetch run."""

    items: List[Dict[str, Any]]
    filters: List[Any] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    def to_json(self) -> Dict[str, Any]:
        return {"items": self.items, "filters": self.filters, "total": self.total}


@dataclass
class FetchReport:
    """Diagnostics of one fetch run, surfaced in the log and CLI summary."""

    pages_planned: int = 0
    pages_fetched: int = 0
    failed_pages: List[int] = field(default_factory=list)
    skipped_pages: List[int] = field(default_factory=list)
    duplicate_ids: List[str] = field(default_factory=list)
    items_without_id: int = 0
    reported_total: int = 0
    item_count: int = 0

    @property
    def mismatch(self) -> int:
        """Collected items minus the largest total the endpoint reported."""
        return self.item_count - self.reported_total

    @property
    def complete(self) -> bool:
        return not self.failed_pages and self.mismatch == 0

    def summary(self) -> Dict[str, Any]:
        return {
            "pages_planned": self.pages_planned,
            "pages_fetched": self.pages_fetched,
            "failed_pages": self.failed_pages,
            "duplicates": len(self.duplicate_ids),
            "items_without_id": self.items_without_id,
            "reported_total": self.reported_total,
            "item_count": self.item_count,
            "difference": self.mismatch,
        }


@dataclass
class Course:
    """A snapshot item mapped to the fields the catalog view filters on."""

    id: Any
    sku: Optional[str]
    title: str
    description: str = ""
    sponsor: str = "Unknown Provider"
    category: str = ""
    qualifications: List[str] = field(default_factory=list)
    level: str = ""
    delivery_method: str = ""
    length: str = ""
    credits: str = ""
    price: float = 0.0
    image_url: str = ""
    url_key: Optional[str] = None
    product_type: Optional[str] = None
    vendor: Dict[str, Any] = field(default_factory=dict)

    def search_text(self) -> str:
        """Concatenated textual fields used for jurisdiction matching."""
        parts = [self.title, self.description, self.sponsor, self.category, *self.qualifications]
        return " ".join(p for p in parts if p)

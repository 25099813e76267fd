"""
Bulk fetch of the paginated listing into one deduplicated snapshot.

Pages are requested strictly in order. Each page has its own retry budget
(see ``retry.PageAttempt``); a page that exhausts it is recorded and
skipped. Only the first page is essential, since it carries the total
count the page plan is computed from.
"""

import math
import time
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .client import ListingClient, PageFetchError
from .env import DEDUP_POLICIES, Settings
from .logger import get_logger, StructuredLogger
from .models import FetchReport, ListingPage, Snapshot
from .retry import PageAttempt
from .schema import DEFAULT_ID_FIELDS, item_identifier


class BootstrapError(Exception):
    """The first page could not be retrieved, so no page plan exists."""

    def __init__(self, page: int, reason: Optional[str]):
        super().__init__(f"Could not fetch first page {page}: {reason}")
        self.page = page
        self.reason = reason


def deduplicate(
    items: Sequence[Dict[str, Any]],
    id_fields: Sequence[str] = DEFAULT_ID_FIELDS,
    policy: str = "first",
) -> Tuple[List[Dict[str, Any]], List[str], int]:
    """
    Collapse items sharing an identifier.

    policy "first" keeps the first-seen record; "last" keeps the attributes
    of the last-seen record at the first-seen position. Items without any
    identifier are dropped.

    Returns:
        (unique items, sorted duplicated identifiers, number of items dropped
        for lacking an identifier)
    """
    if policy not in DEDUP_POLICIES:
        raise ValueError(f"Unknown dedup policy: {policy!r}")

    by_id: Dict[str, Dict[str, Any]] = {}
    duplicates: Set[str] = set()
    without_id = 0
    for item in items:
        ident = item_identifier(item, id_fields)
        if ident is None:
            without_id += 1
            continue
        if ident in by_id:
            duplicates.add(ident)
            if policy == "last":
                by_id[ident] = item
            continue
        by_id[ident] = item
    return list(by_id.values()), sorted(duplicates), without_id


class BulkFetcher:
    """Runs one paginated fetch and returns the merged snapshot."""

    def __init__(
        self,
        client: ListingClient,
        first_page: int = 1,
        max_retries: int = 3,
        base_delay: float = 5.0,
        max_delay: float = 60.0,
        request_delay: float = 1.0,
        id_fields: Sequence[str] = DEFAULT_ID_FIELDS,
        dedup_policy: str = "first",
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            client: Source of pages; its page_size drives the page plan
            first_page: Index of the first page (endpoint convention, 0 or 1)
            max_retries: Total attempts per page, first request included
            base_delay: Backoff after the first failed attempt, in seconds
            max_delay: Cap on a single backoff delay
            request_delay: Pause between consecutive page requests
            id_fields: Item fields tried in order to identify an item
            dedup_policy: "first" or "last", see deduplicate()
            sleep: Blocking wait, injectable for tests
            logger: Defaults to the global logger
        """
        if dedup_policy not in DEDUP_POLICIES:
            raise ValueError(f"Unknown dedup policy: {dedup_policy!r}")
        self.client = client
        self.page_size = client.page_size
        self.first_page = first_page
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.request_delay = request_delay
        self.id_fields = tuple(id_fields)
        self.dedup_policy = dedup_policy
        self.sleep = sleep
        self.logger = logger or get_logger()

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[ListingClient] = None, **kwargs) -> "BulkFetcher":
        logger = kwargs.pop("logger", None) or get_logger()
        if client is None:
            client = ListingClient(
                settings.api_url,
                page_size=settings.page_size,
                extra_params=settings.extra_params,
                timeout=settings.request_timeout,
                logger=logger,
            )
        return cls(
            client,
            first_page=settings.first_page,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            request_delay=settings.request_delay,
            id_fields=settings.id_fields,
            dedup_policy=settings.dedup_policy,
            logger=logger,
            **kwargs,
        )

    def total_pages(self, total: int) -> int:
        if not total or total <= 0:
            return 0
        return math.ceil(total / self.page_size)

    def plan_pages(self, total: int) -> List[int]:
        """Page indices still to request after the first page."""
        return list(range(self.first_page + 1, self.first_page + self.total_pages(total)))

    def _request(self, page: int, bootstrap: bool = False) -> Tuple[Optional[ListingPage], Optional[str]]:
        """Drive one page through its retry states.

        Returns:
            (page, None) on success, (None, last error) once the page is
            permanently failed
        """
        attempt = PageAttempt(page, self.max_retries, self.base_delay, self.max_delay)
        while not attempt.done:
            attempt.start()
            self.logger.record_page_attempt()
            self.logger.info(
                f"Fetching page {page}",
                attempt=attempt.attempts,
                max_attempts=attempt.max_attempts,
            )
            try:
                result = self.client.fetch_page(page)
            except PageFetchError as e:
                reason, error_type = e.reason, e.error_type
            else:
                # An empty first page is only genuine when nothing is listed.
                if result.items or (bootstrap and not result.total):
                    attempt.succeed()
                    self.logger.record_page_success()
                    return result, None
                reason, error_type = "no items received", "EmptyPage"

            delay = attempt.fail(reason)
            if delay is None:
                self.logger.record_page_failure()
                self.logger.error(
                    f"Failed to fetch page {page} after {attempt.attempts} attempts",
                    page=page,
                    error=reason,
                )
                return None, reason
            self.logger.record_retry(error_type)
            self.logger.warning(
                f"Page {page} attempt {attempt.attempts} failed, retrying",
                page=page,
                error=reason,
                delay=delay,
            )
            self.sleep(delay)
        return None, attempt.last_error

    def _check_page(self, page: int, result: ListingPage, seen: Set[str]) -> None:
        """Warn about duplicate identifiers inside a page and across pages."""
        ids = [item_identifier(i, self.id_fields) for i in result.items]
        counts = Counter(i for i in ids if i is not None)

        within = sorted(i for i, n in counts.items() if n > 1)
        if within:
            self.logger.warning(
                f"Page {page} contains duplicate identifiers",
                page=page,
                items=len(result.items),
                unique=len(counts),
                ids=within,
            )
            self.logger.record_duplicates(sum(counts[i] - 1 for i in within))

        overlap = sorted(i for i in counts if i in seen)
        if overlap:
            self.logger.warning(
                f"Page {page} contains {len(overlap)} items already collected",
                page=page,
                ids=overlap,
            )
            self.logger.record_duplicates(len(overlap))

        missing = sum(1 for i in ids if i is None)
        if missing:
            self.logger.warning(f"Page {page} has {missing} items without identifier", page=page)

        if result.current_page is not None and result.current_page != page:
            self.logger.warning(
                "Endpoint returned a different page than requested",
                requested_page=page,
                received_page=result.current_page,
            )
        seen.update(counts)

    def run(self) -> Tuple[Snapshot, FetchReport]:
        """
        Fetch every page and merge them.

        Raises:
            BootstrapError: If the first page permanently fails
        """
        report = FetchReport()
        requested: Set[int] = set()
        failed: Set[int] = set()
        collected: List[Dict[str, Any]] = []
        seen: Set[str] = set()

        requested.add(self.first_page)
        first, reason = self._request(self.first_page, bootstrap=True)
        if first is None:
            raise BootstrapError(self.first_page, reason)

        report.reported_total = first.total
        pages = self.plan_pages(first.total)
        report.pages_planned = len(pages) + 1
        report.pages_fetched = 1
        self.logger.info(
            "Pagination plan",
            total=first.total,
            page_size=self.page_size,
            total_pages=self.total_pages(first.total),
        )
        self._check_page(self.first_page, first, seen)
        collected.extend(first.items)

        for page in pages:
            if page in requested:
                self.logger.error(f"Page {page} was already requested, skipping", page=page)
                report.skipped_pages.append(page)
                continue
            requested.add(page)
            self.sleep(self.request_delay)

            result, _ = self._request(page)
            if result is None:
                failed.add(page)
                continue
            report.pages_fetched += 1
            report.reported_total = max(report.reported_total, result.total)
            self._check_page(page, result, seen)
            collected.extend(result.items)
            self.logger.debug(f"Collected {len(collected)} items so far", page=page)

        items, duplicates, without_id = deduplicate(collected, self.id_fields, self.dedup_policy)
        report.failed_pages = sorted(failed)
        report.duplicate_ids = duplicates
        report.items_without_id = without_id
        report.item_count = len(items)

        if failed:
            self.logger.error("Failed to fetch pages", pages=report.failed_pages)
        if report.mismatch:
            self.logger.warning(
                "Collected item count differs from reported total",
                collected=report.item_count,
                expected=report.reported_total,
                difference=report.mismatch,
            )
        self.logger.info("Fetch finished", **report.summary())
        return Snapshot(items=items, filters=first.filters), report

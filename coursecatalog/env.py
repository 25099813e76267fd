"""
Runtime configuration for the snapshot fetcher and catalog view.

Values come from the process environment, optionally seeded from a
``.env`` file in the working directory. CLI flags override them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl

from dotenv import load_dotenv

DEFAULT_API_URL = "https://d2uj9jw4vo3cg6.cloudfront.net/V1/storeview/default/search/products"
DEDUP_POLICIES = ("first", "last")


def load_env(env_path: Optional[Path] = None) -> None:
    """Load .env from project root if present. Existing variables win."""
    env_path = env_path or Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None and value.strip() != "" else default


def _parse_params(raw: str) -> Dict[str, str]:
    return dict(parse_qsl(raw, keep_blank_values=True))


def _parse_fields(raw: str) -> Tuple[str, ...]:
    return tuple(f.strip() for f in raw.split(",") if f.strip())


@dataclass(frozen=True)
class Settings:
    """Settings container with environment variable overrides."""

    api_url: str = DEFAULT_API_URL
    page_size: int = 20
    first_page: int = 1
    extra_params: Dict[str, str] = field(default_factory=lambda: {"featured-only": "0"})
    id_fields: Tuple[str, ...] = ("sku", "id")
    max_retries: int = 3
    retry_base_delay: float = 5.0
    retry_max_delay: float = 60.0
    request_delay: float = 1.0
    request_timeout: float = 20.0
    dedup_policy: str = "first"
    output_path: Path = Path("public/courses.json")
    log_level: str = "INFO"
    log_dir: Path = Path("logs")

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.first_page < 0:
            raise ValueError(f"first_page must be 0 or greater, got {self.first_page}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if min(self.retry_base_delay, self.retry_max_delay, self.request_delay) < 0:
            raise ValueError("delays must not be negative")
        if self.dedup_policy not in DEDUP_POLICIES:
            raise ValueError(
                f"dedup_policy must be one of {', '.join(DEDUP_POLICIES)}, got {self.dedup_policy!r}"
            )
        if not self.id_fields:
            raise ValueError("id_fields must name at least one field")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CATALOG_* environment variables."""
        return cls(
            api_url=_get_env("CATALOG_API_URL", DEFAULT_API_URL),
            page_size=int(_get_env("CATALOG_PAGE_SIZE", "20")),
            first_page=int(_get_env("CATALOG_FIRST_PAGE", "1")),
            extra_params=_parse_params(_get_env("CATALOG_EXTRA_PARAMS", "featured-only=0")),
            id_fields=_parse_fields(_get_env("CATALOG_ID_FIELDS", "sku,id")),
            max_retries=int(_get_env("CATALOG_MAX_RETRIES", "3")),
            retry_base_delay=float(_get_env("CATALOG_RETRY_BASE_DELAY", "5.0")),
            retry_max_delay=float(_get_env("CATALOG_RETRY_MAX_DELAY", "60.0")),
            request_delay=float(_get_env("CATALOG_REQUEST_DELAY", "1.0")),
            request_timeout=float(_get_env("CATALOG_REQUEST_TIMEOUT", "20")),
            dedup_policy=_get_env("CATALOG_DEDUP_POLICY", "first").lower(),
            output_path=Path(_get_env("CATALOG_OUTPUT", "public/courses.json")),
            log_level=_get_env("CATALOG_LOG_LEVEL", "INFO"),
            log_dir=Path(_get_env("CATALOG_LOG_DIR", "logs")),
        )

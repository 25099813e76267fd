import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urljoin, urlparse

import requests

from .models import Snapshot
from .retry import RetryError, exponential_backoff
from .schema import validate_listing_page

SNAPSHOT_FILENAME = "courses.json"


class SnapshotError(Exception):
    """Snapshot could not be read, parsed or has the wrong shape."""
    pass


def is_url(location: str) -> bool:
    return urlparse(str(location)).scheme in ("http", "https")


def resolve_snapshot_location(base: Union[str, Path, None], name: str = SNAPSHOT_FILENAME) -> str:
    """Resolve the snapshot name against a deployment base (URL or directory)."""
    if not base:
        return name
    base = str(base)
    if is_url(base):
        return urljoin(base if base.endswith("/") else base + "/", name)
    return str(Path(base) / name)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _snapshot_mode(path: Path) -> int:
    """Mode of the file being replaced, else what a plain open() would create."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return 0o666 & ~_current_umask()


def save_snapshot(path: Path, snapshot: Snapshot) -> None:
    """Write the snapshot so readers only ever see a complete file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = _snapshot_mode(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_json(), f, indent=2, ensure_ascii=False)
        # mkstemp creates the file 0600
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _check_shape(data: Any, source: str) -> Dict[str, Any]:
    errors = validate_listing_page(data)
    if errors:
        raise SnapshotError(f"Invalid snapshot {source}: {'; '.join(errors)}")
    return data


def read_snapshot(path: Path) -> Dict[str, Any]:
    """Load a snapshot file as raw JSON."""
    try:
        with path.open("r", encoding="utf-8") as f:
            content = f.read().strip()
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    if not content:
        raise SnapshotError(f"Snapshot {path} is empty")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Snapshot {path} is not valid JSON: {e}") from e
    return _check_shape(data, str(path))


@exponential_backoff(
    max_retries=2,
    base_delay=1.0,
    exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError),
)
def _get_with_retry(session: requests.Session, url: str, timeout: float):
    return session.get(url, timeout=timeout)


def download_snapshot(url: str, session: Optional[requests.Session] = None, timeout: float = 20.0) -> Dict[str, Any]:
    """Fetch a snapshot over HTTP(S) as raw JSON."""
    session = session or requests.Session()
    try:
        resp = _get_with_retry(session, url, timeout)
        resp.raise_for_status()
    except RetryError as e:
        raise SnapshotError(f"Snapshot request failed: {url} ({e})") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "HTTPError"
        raise SnapshotError(f"Snapshot request failed ({status}): {url}") from e
    except requests.exceptions.RequestException as e:
        raise SnapshotError(f"Snapshot request error: {e}") from e
    try:
        data = resp.json()
    except ValueError as e:
        raise SnapshotError(f"Snapshot at {url} is not valid JSON") from e
    return _check_shape(data, url)


def load_snapshot(location: Union[str, Path], session: Optional[requests.Session] = None) -> Dict[str, Any]:
    """Load a snapshot from a file path or an HTTP(S) URL.

    Raises:
        SnapshotError: On any read, transport, or parse failure
    """
    if is_url(str(location)):
        return download_snapshot(str(location), session=session)
    return read_snapshot(Path(location))

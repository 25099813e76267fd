from typing import Any, List, Sequence

DEFAULT_ID_FIELDS = ("sku", "id")


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def item_identifier(item: Any, id_fields: Sequence[str] = DEFAULT_ID_FIELDS):
    """Return the first non-empty identifier of an item as a string, or None."""
    if not isinstance(item, dict):
        return None
    for f in id_fields:
        v = item.get(f)
        if v is None or isinstance(v, bool):
            continue
        if isinstance(v, str):
            if v.strip():
                return v.strip()
            continue
        return str(v)
    return None


def validate_listing_page(data: Any) -> List[str]:
    """
    Returns a list of validation error messages for one listing response.
    Empty list means valid. Missing `total`/`filters` are tolerated.
    """
    if not isinstance(data, dict):
        return ["Listing response must be a JSON object"]

    errors: List[str] = []
    items = data.get("items")
    if items is not None and not isinstance(items, list):
        errors.append("Field 'items' must be a list if provided")
    elif items:
        bad = sum(1 for i in items if not isinstance(i, dict))
        if bad:
            errors.append(f"Field 'items' contains {bad} non-object entries")

    total = data.get("total")
    if total is not None and (not _is_int(total) or total < 0):
        errors.append("Field 'total' must be a non-negative integer if provided")

    current = data.get("current_page")
    if current is not None and not _is_int(current):
        errors.append("Field 'current_page' must be an integer if provided")

    filters = data.get("filters")
    if filters is not None and not isinstance(filters, list):
        errors.append("Field 'filters' must be a list if provided")

    return errors


def validate_snapshot(data: Any, id_fields: Sequence[str] = DEFAULT_ID_FIELDS) -> List[str]:
    """
    Returns a list of validation error messages for a persisted snapshot.

    Checks shape, identifier presence and uniqueness, and that `total`
    matches the number of items.
    """
    if not isinstance(data, dict):
        return ["Snapshot must be a JSON object"]

    errors: List[str] = []
    for f in ("items", "filters", "total"):
        if f not in data:
            errors.append(f"Missing required field: {f}")

    items = data.get("items")
    if "items" in data and not isinstance(items, list):
        errors.append("Field 'items' must be a list")
        items = None
    if "filters" in data and not isinstance(data["filters"], list):
        errors.append("Field 'filters' must be a list")
    total = data.get("total")
    if "total" in data and (not _is_int(total) or total < 0):
        errors.append("Field 'total' must be a non-negative integer")
        total = None

    if items is None:
        return errors

    seen = set()
    dupes = []
    for pos, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append(f"Item {pos} must be an object")
            continue
        ident = item_identifier(item, id_fields)
        if ident is None:
            errors.append(f"Item {pos} has no identifier ({', '.join(id_fields)})")
        elif ident in seen:
            dupes.append(ident)
        else:
            seen.add(ident)
    if dupes:
        errors.append(f"Duplicate identifiers: {', '.join(sorted(set(dupes)))}")

    if total is not None and total != len(items):
        errors.append(f"Field 'total' is {total} but snapshot holds {len(items)} items")

    return errors


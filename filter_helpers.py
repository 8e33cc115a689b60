from typing import Optional

from models import ASSET_STATUSES, HANDOUT_STATUSES, PRIORITIES, REPAIR_STATUSES

VALID_ORDERS = {"asc", "desc"}


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if value == "":
        return None
    return value


def _one_of(value: Optional[str], allowed) -> Optional[str]:
    if value in allowed:
        return value
    return None


def normalize_asset_status(status: Optional[str]) -> Optional[str]:
    return _one_of(status, ASSET_STATUSES)


def normalize_handout_status(status: Optional[str]) -> Optional[str]:
    return _one_of(status, HANDOUT_STATUSES)


def normalize_repair_status(status: Optional[str]) -> Optional[str]:
    return _one_of(status, REPAIR_STATUSES)


def normalize_priority(priority: Optional[str]) -> Optional[str]:
    return _one_of(priority, PRIORITIES)


def normalize_sort(sort: str, allowed, default: str = "id") -> str:
    if sort in allowed:
        return sort
    return default


def normalize_order(order: str) -> str:
    if order in VALID_ORDERS:
        return order
    return "asc"


def normalize_limit(limit: int, *, min_value: int = 1, max_value: int = 500) -> int:
    if limit < min_value:
        return min_value
    if limit > max_value:
        return max_value
    return limit


def normalize_offset(offset: int) -> int:
    if offset < 0:
        return 0
    return offset

"""
List filters applied to expanded startup records
"""
from typing import Iterable, Optional

ALL = "all"

SEARCH_KEYS = ("name", "companyName", "founder", "founderName", "email", "magicCode")


def matches_search(record: dict, term: str) -> bool:
    """Case-insensitive substring match on name, founder, email and display code"""
    needle = (term or "").strip().lower()
    if not needle:
        return True
    for key in SEARCH_KEYS:
        value = record.get(key)
        if value and needle in str(value).lower():
            return True
    return False


def _active(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


def filter_startups(
    records: Iterable[dict],
    search: Optional[str] = None,
    stage: Optional[str] = None,
    sector: Optional[str] = None,
) -> list:
    """Apply search / stage / sector filters; "all" or empty disables a filter"""
    filtered = list(records)
    if search:
        filtered = [r for r in filtered if matches_search(r, search)]
    if _active(stage):
        filtered = [r for r in filtered if r.get("stage") == stage]
    if _active(sector):
        filtered = [r for r in filtered if r.get("sector") == sector]
    return filtered

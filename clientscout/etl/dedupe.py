"""Merge freshly parsed businesses into an accumulated result set."""

import re
from typing import Iterable, List, Sequence, Set

from clientscout.models import BusinessRecord

_WHITESPACE_RE = re.compile(r"\s+")


def _normalize(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value or "").strip().lower()


def identity_signature(record: BusinessRecord) -> str:
    """Name and address, case and whitespace insensitive.

    Suite or unit suffixes are kept, so "Suite 2" and "Suite 3" are different businesses.
    """
    return f"{_normalize(record.name)}|{_normalize(record.address)}"


def merge(existing: Sequence[BusinessRecord], incoming: Iterable[BusinessRecord]) -> List[BusinessRecord]:
    """Return `existing` followed by the incoming records not seen before.

    Duplicates inside `incoming` collapse to their first occurrence. Neither
    input is modified.
    """
    merged = list(existing)
    seen: Set[str] = {identity_signature(record) for record in merged}

    for record in incoming:
        signature = identity_signature(record)
        if signature in seen:
            continue
        seen.add(signature)
        merged.append(record)

    return merged

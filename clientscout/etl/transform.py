"""Utilities for transforming the agent's Markdown table replies into records."""

import logging
import re
import uuid
from typing import List, NamedTuple, Optional

from clientscout.models import BusinessRecord

logger = logging.getLogger(__name__)

MIN_CELLS = 5
FIELDS = ("name", "phone", "email", "address", "website", "rating", "maps_url")
_URL_FIELDS = {"website", "maps_url"}
_PLACEHOLDERS = {"N/A", "n/a", "-"}

_SEPARATOR_RE = re.compile(r"^[|:\-\s]*-[|:\-\s]*$")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_ANGLE_LINK_RE = re.compile(r"<([^>]+)>")


class ParseResult(NamedTuple):
    records: List[BusinessRecord]
    skipped_rows: int


def normalize_cell(text: Optional[str]) -> str:
    """Collapse the backend's "unknown" markers into an empty string."""
    if not text or text in _PLACEHOLDERS:
        return ""
    return text


def normalize_url(text: Optional[str]) -> str:
    cleaned = normalize_cell(text)
    if not cleaned:
        return ""

    match = _MARKDOWN_LINK_RE.search(cleaned)
    if match:
        return match.group(2)

    match = _ANGLE_LINK_RE.search(cleaned)
    if match:
        return match.group(1)

    # Bare domains and already-clean URLs pass through untouched.
    return cleaned


def split_row(line: str) -> List[str]:
    """Split a delimited row, dropping only the edge artifacts of the outer pipes."""
    cells = [cell.strip() for cell in line.strip().split("|")]
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return cells


def to_business_record(cells: List[str]) -> BusinessRecord:
    values = {}
    for index, field_name in enumerate(FIELDS):
        raw = cells[index] if index < len(cells) else ""
        values[field_name] = normalize_url(raw) if field_name in _URL_FIELDS else normalize_cell(raw)
    return BusinessRecord(id=str(uuid.uuid4()), **values)


def parse_reply(text: Optional[str]) -> ParseResult:
    """Parse every table row in `text`, counting rows too short to keep.

    Commentary around the table is ignored. No table at all is a valid empty
    result: a "nothing found" reply and a garbled one look the same.
    """
    records: List[BusinessRecord] = []
    skipped = 0
    header_seen = False

    for line in (text or "").splitlines():
        trimmed = line.strip()
        if not trimmed.startswith("|"):
            continue

        if _SEPARATOR_RE.match(trimmed):
            header_seen = True
            continue

        if not header_seen:
            lowered = trimmed.lower()
            if "name" in lowered and "phone" in lowered:
                header_seen = True
                continue

        cells = split_row(trimmed)
        if len(cells) < MIN_CELLS:
            logger.debug("Dropping short table row (%d cells): %s", len(cells), trimmed[:200])
            skipped += 1
            continue

        records.append(to_business_record(cells))

    return ParseResult(records=records, skipped_rows=skipped)


def parse_markdown_table(text: Optional[str]) -> List[BusinessRecord]:
    return parse_reply(text).records

"""CSV projection of a result set."""

import csv
import io
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Union

from clientscout.core.prompts import COLUMNS
from clientscout.models import BusinessRecord

logger = logging.getLogger(__name__)

CSV_HEADER = ",".join(COLUMNS)
_ROW_FIELDS = ("name", "phone", "email", "address", "website", "rating", "maps_url")


def _write_quoted(values: Sequence[Optional[str]]) -> str:
    # QUOTE_ALL wraps every field and doubles embedded quotes; None becomes "".
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(values)
    return output.getvalue()[:-1]


def escape_field(value: Optional[str]) -> str:
    return _write_quoted([value])


def to_csv_row(record: BusinessRecord) -> str:
    return _write_quoted([getattr(record, name) for name in _ROW_FIELDS])


def project_rows(records: Sequence[BusinessRecord]) -> List[str]:
    """Header row followed by exactly one row per record."""
    return [CSV_HEADER] + [to_csv_row(record) for record in records]


def to_csv(records: Sequence[BusinessRecord]) -> str:
    return "\n".join(project_rows(records))


def export_filename(query: Optional[str]) -> str:
    """`leads-<slug>.csv`; quotes are dropped so the name fits a quoted Content-Disposition."""
    cleaned = re.sub(r'["\\]', "", (query or "").strip())
    slug = re.sub(r"\s+", "-", cleaned.strip())[:20]
    return f"leads-{slug}.csv" if slug else "leads.csv"


def write_csv(records: Sequence[BusinessRecord], path: Union[str, Path]) -> Path:
    target = Path(path)
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8", newline="") as fh:
        fh.write(to_csv(records))
    logger.info("Wrote %d rows to %s", len(records), target)
    return target

from __future__ import annotations

import csv
import io
from typing import Any, Dict, Iterable

from ..scoring.wizard import RECORD_FIELDS
from .consolidation import consolidate


def rallies_to_csv(rows: Iterable[Dict[str, Any]]) -> str:
    """CSV with one line per canonical rally, columns in point log order."""

    buf = io.StringIO()
    writer = csv.DictWriter(
        buf, fieldnames=RECORD_FIELDS, extrasaction="ignore", lineterminator="\n"
    )
    writer.writeheader()
    for rally in consolidate(rows, key=("match_id", "set_no", "rally_no")):
        writer.writerow({k: "" if rally.get(k) is None else rally.get(k) for k in RECORD_FIELDS})
    return buf.getvalue()

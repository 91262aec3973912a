"""
CSV export of the pass list (admin only).

The layout is fixed because schools open it in spreadsheets: header row,
every field double-quoted with embedded quotes doubled, missing values as
empty strings, rows joined by "\n" and no trailing newline.
"""

from __future__ import annotations

import csv
import io
from typing import Iterable

from .model import Pass

CSV_COLUMNS = (
    "id",
    "studentName",
    "teacher",
    "destination",
    "reason",
    "createdAt",
    "returnedAt",
    "status",
    "createdBy",
)
CSV_FILENAME = "passes.csv"
CSV_MEDIA_TYPE = "text/csv"


def _row(record: Pass) -> list[str]:
    data = record.to_dict()
    return [str(data.get(column) or "") for column in CSV_COLUMNS]


def export_csv(passes: Iterable[Pass]) -> str:
    """Serialize passes in the given order."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in passes:
        writer.writerow(_row(record))
    # csv.writer terminates every row; the export has no final newline.
    return buf.getvalue()[:-1]

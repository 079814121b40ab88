"""
CSV export helpers for result tables
"""
import csv
from io import StringIO
from typing import Dict, Iterable, List, Optional

from flask import Response


def to_csv(rows: List[Dict], columns: Optional[List[str]] = None) -> str:
    """Serialize a list of dict rows to CSV text with a header row.

    Missing or None values become empty fields. An empty row list
    produces an empty string unless explicit columns are given.
    """
    if not rows and not columns:
        return ""

    keys = columns or list(rows[0].keys())

    si = StringIO()
    writer = csv.writer(si, lineterminator="\n")
    writer.writerow(keys)
    for row in rows:
        writer.writerow(["" if row.get(key) is None else row.get(key) for key in keys])
    return si.getvalue()


def csv_response(rows: Iterable[Dict], filename: str, columns: Optional[List[str]] = None) -> Response:
    """Build a downloadable CSV response"""
    output = to_csv(list(rows), columns).encode("utf-8")
    return Response(output, mimetype="text/csv", headers={
        "Content-Disposition": f"attachment; filename={filename}.csv"
    })

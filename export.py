"""CSV export of the student directory."""

import csv
import io
from datetime import date
from typing import Iterable, Optional

from schemas import User

CSV_HEADERS = [
    "Index",
    "Name",
    "Exam Year",
    "School",
    "Birthday",
    "Contact",
    "Role",
    "Active Courses",
    "Marks Count",
]


def students_to_csv(users: Iterable[User]) -> str:
    """Render users as CSV text.

    The header row is plain; every data cell is quoted, with embedded quotes
    doubled. Rows are separated by a bare newline and there is no trailing
    newline, so an empty directory yields just the header.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(
        [
            u.index_number,
            u.name,
            u.exam_year,
            u.school,
            u.birthday,
            u.contact,
            u.role,
            "; ".join(u.active_courses),
            len(u.marks),
        ]
        for u in users
    )
    header = ",".join(CSV_HEADERS)
    body = buf.getvalue()
    if not body:
        return header
    return header + "\n" + body[: -len("\n")]


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"students_{today.isoformat()}.csv"

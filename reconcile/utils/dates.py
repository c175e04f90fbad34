# reconcile/utils/dates.py

import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

from dateutil.parser import parse

from reconcile.utils.errors import MalformedDateError

DATE_FORMAT = "%m/%d/%Y"

# Spreadsheet day 0; day 60 is the phantom 1900-02-29, so counting from here lines up after it
EXCEL_EPOCH = datetime(1899, 12, 30)
# 9999-12-31
MAX_EXCEL_SERIAL = 2958465

NUMERIC_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")

# Two bases differing in year, month and day
PARSE_DEFAULTS = (datetime(2000, 1, 1), datetime(2004, 2, 2))


def excel_serial_to_date(serial: float) -> date:
    """
    Converts a spreadsheet day count into a calendar date.
    Any fractional (time of day) part is dropped.
    """
    return (EXCEL_EPOCH + timedelta(days=math.floor(serial))).date()


def _is_serial(value: float) -> bool:
    return math.isfinite(value) and 0 <= value <= MAX_EXCEL_SERIAL


def format_date(value: Any, field: Optional[str] = None, row_number: Optional[int] = None) -> str:
    """
    Returns the canonical MM/DD/YYYY form of a date cell.

    The cell can be a spreadsheet serial (number or numeric-looking text),
    a datetime already decoded by the reader, or free text. Text that can't
    be parsed is passed through trimmed. Empty, non-finite or otherwise
    unusable values raise MalformedDateError.
    """
    if value is None or isinstance(value, bool):
        raise MalformedDateError(value, field=field, row_number=row_number)

    if isinstance(value, datetime):
        if value != value:  # NaT
            raise MalformedDateError(value, field=field, row_number=row_number)
        return value.strftime(DATE_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)

    if isinstance(value, numbers.Real):
        if not _is_serial(float(value)):
            raise MalformedDateError(value, field=field, row_number=row_number)
        return excel_serial_to_date(float(value)).strftime(DATE_FORMAT)

    if not isinstance(value, str):
        raise MalformedDateError(value, field=field, row_number=row_number)

    text = value.strip()
    if not text:
        raise MalformedDateError(value, field=field, row_number=row_number)

    if NUMERIC_RE.match(text):
        return format_date(float(text), field=field, row_number=row_number)

    # Ranges like "03/31/25 - 03/31/25" keep the start date
    if " - " in text:
        text = text.split(" - ")[0].strip()

    parsed = _parse_full_date(text)
    return parsed.strftime(DATE_FORMAT) if parsed else text


def _parse_full_date(text: str) -> Optional[datetime]:
    """
    Parses text that names a day, month and year. Partial dates ("Feb 2020")
    return None rather than borrowing the missing parts from today.
    """
    try:
        results = [parse(text, default=default) for default in PARSE_DEFAULTS]
    except (ValueError, OverflowError):
        return None
    # A part taken from the default differs between the two defaults
    if results[0] != results[1]:
        return None
    return results[0]

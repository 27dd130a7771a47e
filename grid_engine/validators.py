"""
Validation and parsing helpers for grid cell values
"""
import re
from datetime import date, datetime

from .config import COMMIT_DATE_FORMAT, DATE_FORMAT


TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):([0-5][0-9])$")

_ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def validate_time(time_str):
    """
    Validate time format HH:MM (24h)

    Args:
        time_str: Time string to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not isinstance(time_str, str):
        return False
    return bool(TIME_PATTERN.match(time_str))


def is_valid_id_number(value):
    """Validate an identity number with the national check-digit scheme.

    The number is left-padded with zeros to nine digits; each digit is
    multiplied by 1 or 2 alternately, products above 9 are reduced by 9 and
    the sum must be divisible by 10.
    """
    digits = str(value if value is not None else "").strip()
    if not digits or not digits.isdigit() or len(digits) > 9:
        return False
    digits = digits.zfill(9)
    total = 0
    for index, char in enumerate(digits):
        step = int(char) * (1 if index % 2 == 0 else 2)
        total += step - 9 if step > 9 else step
    return total % 10 == 0


def parse_date(value):
    """Parse a display (DD/MM/YYYY) or ISO (YYYY-MM-DD...) date.

    Args:
        value: date, datetime or string

    Returns:
        date or None if unparsable
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        pass
    match = _ISO_DATE_PATTERN.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
    return None


def format_display_date(value):
    """Return DD/MM/YYYY for a parsable date, else ``None``."""
    parsed = parse_date(value)
    if parsed is None:
        return None
    return parsed.strftime(DATE_FORMAT)


def normalize_commit_date(value):
    """Return the ISO commit form of a date; unparsable input passes through."""
    parsed = parse_date(value)
    if parsed is None:
        return value
    return parsed.strftime(COMMIT_DATE_FORMAT)

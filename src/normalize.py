"""Text normalization helpers shared by identity, duplicate and diff logic.

All helpers are None-safe and never raise on odd input: imported cells
and remote snapshot values arrive as loosely-typed data.
"""

import re
import unicodedata
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")
_PREFIX_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]+")
_TRAILING_DIGITS_RE = re.compile(r"(\d+)\s*$")

NO_GROUP_CAPTION = "班番号"
STATUS_CAPTION = "ステータス"
UNSET_GROUP_VALUE = "未設定"


def normalize_text(value: Any) -> str:
    """Coerce a value to a stripped string ("" for None/NaN)."""
    if value is None:
        return ""
    if isinstance(value, float) and value != value:
        return ""
    return str(value).strip()


def normalize_key(value: Any) -> str:
    """Normalize a value for key comparison.

    Applies NFKC so full-width and half-width forms of the same
    character compare equal, then strips surrounding whitespace.
    """
    return unicodedata.normalize("NFKC", normalize_text(value)).strip()


def normalize_duplicate_field(value: Any) -> str:
    """Normalize a field for duplicate keys: no whitespace, lower-cased."""
    return _WHITESPACE_RE.sub("", normalize_key(value)).lower()


def normalize_group_label(value: Any) -> str:
    """Normalize a team/group label into its canonical display form.

    Examples:
        >>> normalize_group_label(" １２ ")
        '12'
        >>> normalize_group_label("A   team")
        'A team'
    """
    return _WHITESPACE_RE.sub(" ", normalize_key(value))


def describe_group(
    label: Any, *, cancel_label: str, relocate_label: str
) -> tuple[str, str]:
    """Return a (caption, value) pair for displaying a group label.

    Reserved labels are shown as statuses, empty labels as unset.
    """
    raw = normalize_group_label(label)
    if not raw:
        return NO_GROUP_CAPTION, UNSET_GROUP_VALUE
    if raw in (cancel_label, relocate_label):
        return STATUS_CAPTION, raw
    return NO_GROUP_CAPTION, raw


def sanitize_prefix_component(value: Any) -> str:
    """Reduce an identifier to lower-case ASCII alphanumerics and dashes."""
    cleaned = _PREFIX_UNSAFE_RE.sub("-", normalize_key(value))
    return cleaned.strip("-").lower()


def format_record_id_display(record_id: Any) -> str:
    """Short display form of a record ID (its trailing sequence number).

    Examples:
        >>> format_record_id_display("spring-day1_007")
        '007'
        >>> format_record_id_display("abc")
        'abc'
    """
    raw = normalize_text(record_id)
    if not raw:
        return ""
    if match := _TRAILING_DIGITS_RE.search(raw):
        return match.group(1)
    return raw

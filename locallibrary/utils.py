import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Union

ID_PATTERN = r"[0-9a-f]{32}"
_ID_RE = re.compile(ID_PATTERN)

def new_id() -> str:
    """
    Generate a record reference (UUID4 hex)
    """
    return uuid.uuid4().hex

def is_valid_id(value: Any) -> bool:
    """
    True when value is a well-formed record reference
    """
    return isinstance(value, str) and _ID_RE.fullmatch(value) is not None

def format_date_med(value: Optional[Union[date, datetime]]) -> str:
    """
    Medium date format, e.g. "Dec 16, 1971"; empty string for None
    """
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"

def format_date_iso(value: Optional[Union[date, datetime]]) -> str:
    """
    YYYY-MM-DD for <input type="date">; empty string for None
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()

@dataclass
class GenreOption:
    """Genre checkbox on the book form"""
    genre: Any
    checked: bool = False

def mark_checked(genres: Iterable[Any], selected_ids: Iterable[str]) -> List[GenreOption]:
    """
    Annotate every genre with whether it is among selected_ids
    """
    selected = set(selected_ids)
    return [GenreOption(genre=g, checked=g.id in selected) for g in genres]

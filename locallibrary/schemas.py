from datetime import date, datetime
from typing import Annotated, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from locallibrary.models import BookStatus
from locallibrary.utils import ID_PATTERN

ALPHANUMERIC = r"^[A-Za-z0-9]+$"
RECORD_ID = rf"^{ID_PATTERN}$"


def _iso_date(value):
    """
    "" -> None; otherwise an ISO-8601 date or date-time string, reduced to its date
    """
    if not isinstance(value, str):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise PydanticCustomError("iso_date", "Input should be an ISO 8601 date") from None


OptionalDate = Annotated[Optional[date], BeforeValidator(_iso_date)]


class FormSchema(BaseModel):
    """
    Rule set of one HTML form.

    text_fields are trimmed before validation and escaped after it, list_fields are
    normalized to lists. messages maps field -> pydantic error type -> the
    message shown to the user ("*" matches any type).
    """
    text_fields: ClassVar[Tuple[str, ...]] = ()
    list_fields: ClassVar[Tuple[str, ...]] = ()
    messages: ClassVar[Dict[str, Dict[str, str]]] = {}

    @classmethod
    def message_for(cls, field: str, error_type: str, default: str) -> str:
        field_messages = cls.messages.get(field, {})
        if error_type == "value_error":
            # Raised by our own validators, their text is already user-facing
            return field_messages.get(error_type, default)
        return field_messages.get(error_type) or field_messages.get("*") or default


class AuthorForm(FormSchema):
    first_name: str = Field(..., min_length=1, max_length=100, pattern=ALPHANUMERIC)
    last_name: str = Field(..., min_length=1, max_length=100, pattern=ALPHANUMERIC)
    date_of_birth: OptionalDate = None
    date_of_death: OptionalDate = None

    text_fields = ("first_name", "last_name")
    messages = {
        "first_name": {
            "missing": "First name must be specified.",
            "string_too_short": "First name must be specified.",
            "string_too_long": "First name must not exceed 100 characters.",
            "string_pattern_mismatch": "First name has non-alphanumeric characters.",
        },
        "last_name": {
            "missing": "Family name must be specified.",
            "string_too_short": "Family name must be specified.",
            "string_too_long": "Family name must not exceed 100 characters.",
            "string_pattern_mismatch": "Family name has non-alphanumeric characters.",
        },
        "date_of_birth": {"*": "Invalid date of birth"},
        "date_of_death": {"*": "Invalid date of death"},
    }

    @field_validator("date_of_death")
    @classmethod
    def death_not_before_birth(cls, value: Optional[date], info: ValidationInfo):
        born = info.data.get("date_of_birth")
        if value and born and value < born:
            raise ValueError("Date of death cannot be earlier than date of birth.")
        return value


class GenreForm(FormSchema):
    name: str = Field(..., min_length=3, max_length=100)

    text_fields = ("name",)
    messages = {
        "name": {
            "missing": "Genre name required",
            "string_too_short": "Genre name must be between 3 and 100 characters.",
            "string_too_long": "Genre name must be between 3 and 100 characters.",
        },
    }

    @field_validator("name", mode="before")
    @classmethod
    def name_required(cls, value):
        if not value:
            raise ValueError("Genre name required")
        return value


class BookForm(FormSchema):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, pattern=RECORD_ID)
    summary: str = Field(..., min_length=1)
    isbn: str = Field(..., min_length=1, max_length=32)
    genre: List[str] = []

    text_fields = ("title", "author", "summary", "isbn", "genre")
    list_fields = ("genre",)
    messages = {
        "title": {"string_too_long": "Title must not exceed 200 characters.", "*": "Title must not be empty."},
        "author": {"string_pattern_mismatch": "Invalid author", "*": "Author must not be empty."},
        "summary": {"*": "Summary must not be empty."},
        "isbn": {"string_too_long": "ISBN must not exceed 32 characters.", "*": "ISBN must not be empty"},
        "genre": {"*": "Invalid genre"},
    }


class BookInstanceForm(FormSchema):
    book: str = Field(..., min_length=1, pattern=RECORD_ID)
    imprint: str = Field(..., min_length=1, max_length=200)
    status: BookStatus = BookStatus.MAINTENANCE
    due_back: OptionalDate = None

    text_fields = ("book", "imprint")
    messages = {
        "book": {"string_pattern_mismatch": "Invalid book", "*": "Book must be specified"},
        "imprint": {"string_too_long": "Imprint must not exceed 200 characters.", "*": "Imprint must be specified"},
        "status": {"*": "Invalid status"},
        "due_back": {"*": "Invalid date"},
    }

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value):
        if value is None or value == "":
            return BookStatus.MAINTENANCE
        return value

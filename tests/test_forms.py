"""Form pipeline: normalization, sanitizing and validation messages."""
from __future__ import annotations

from datetime import date

import pytest
from starlette.datastructures import FormData

from locallibrary import schemas
from locallibrary.forms import (
    FormPipeline,
    FormState,
    as_list,
    escape_text,
    form_to_dict,
    normalize_lists,
    sanitize,
)
from locallibrary.models import BookStatus
from locallibrary.utils import is_valid_id, new_id


def _messages(state: FormState) -> dict:
    return {error.field: error.msg for error in state.errors}


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, []),
        ("a", ["a"]),
        (["a", "b"], ["a", "b"]),
    ],
)
def test_as_list(value, expected):
    assert as_list(value) == expected


def test_form_to_dict_keeps_repeated_keys_as_list():
    form = FormData([("title", "Dune"), ("genre", "g1"), ("genre", "g2")])

    assert form_to_dict(form) == {"title": "Dune", "genre": ["g1", "g2"]}


def test_normalize_lists_handles_absent_scalar_and_list():
    step = normalize_lists("genre")

    absent, scalar, many = FormState({}), FormState({"genre": "g1"}), FormState({"genre": ["g1", "g2"]})
    for state in (absent, scalar, many):
        step(state)

    assert absent.data["genre"] == []
    assert scalar.data["genre"] == ["g1"]
    assert many.data["genre"] == ["g1", "g2"]


def test_sanitize_trims_without_escaping():
    state = FormState({"name": "  <b>Horror</b> ", "date": " 2020-01-01 ", "genre": [" g1 "]})

    sanitize("name", "genre")(state)

    assert state.data == {"name": "<b>Horror</b>", "date": "2020-01-01", "genre": ["g1"]}


def test_sanitize_defaults_missing_text_fields():
    state = FormState({})

    sanitize("name")(state)

    assert state.data == {"name": ""}


def test_escape_text_runs_on_validated_values():
    state = FormState({"name": "Tom & Jerry"}, cleaned=schemas.GenreForm(name="Tom & Jerry"))

    escape_text("name")(state)

    assert state.cleaned.name == "Tom &amp; Jerry"
    assert state.data["name"] == "Tom & Jerry"


def test_pipeline_stops_at_first_failing_step():
    seen = []

    def failing(state):
        state.errors.append(object())

    pipeline = FormPipeline(failing, lambda state: seen.append("ran"))
    pipeline.run({})

    assert seen == []


def test_author_form_valid_submission():
    state = FormPipeline.for_schema(schemas.AuthorForm).run(
        {"first_name": " Jim ", "last_name": "Jones", "date_of_birth": "1971-12-16", "date_of_death": ""}
    )

    assert state.is_valid
    assert state.cleaned.first_name == "Jim"
    assert state.cleaned.date_of_birth == date(1971, 12, 16)
    assert state.cleaned.date_of_death is None


def test_author_form_reports_each_field():
    state = FormPipeline.for_schema(schemas.AuthorForm).run(
        {"first_name": "", "last_name": "Jo nes", "date_of_birth": "16/12/1971"}
    )

    assert not state.is_valid
    assert _messages(state) == {
        "first_name": "First name must be specified.",
        "last_name": "Family name has non-alphanumeric characters.",
        "date_of_birth": "Invalid date of birth",
    }
    # trimmed input is kept for the re-rendered form
    assert state.data["last_name"] == "Jo nes"


def test_author_form_rejects_death_before_birth():
    state = FormPipeline.for_schema(schemas.AuthorForm).run(
        {"first_name": "Jim", "last_name": "Jones", "date_of_birth": "1971-12-16", "date_of_death": "1960-01-01"}
    )

    assert _messages(state) == {"date_of_death": "Date of death cannot be earlier than date of birth."}


@pytest.mark.parametrize(
    "name, message",
    [
        ("", "Genre name required"),
        ("   ", "Genre name required"),
        ("ab", "Genre name must be between 3 and 100 characters."),
        ("x" * 101, "Genre name must be between 3 and 100 characters."),
    ],
)
def test_genre_form_name_rules(name, message):
    state = FormPipeline.for_schema(schemas.GenreForm).run({"name": name})

    assert _messages(state) == {"name": message}


def test_book_form_normalizes_single_genre():
    genre_id, author_id = new_id(), new_id()
    state = FormPipeline.for_schema(schemas.BookForm).run(
        {"title": "Dune", "author": author_id, "summary": "Spice.", "isbn": "978", "genre": genre_id}
    )

    assert state.is_valid
    assert state.cleaned.genre == [genre_id]


def test_book_form_missing_fields():
    state = FormPipeline.for_schema(schemas.BookForm).run({})

    assert _messages(state) == {
        "title": "Title must not be empty.",
        "author": "Author must not be empty.",
        "summary": "Summary must not be empty.",
        "isbn": "ISBN must not be empty",
    }
    assert state.data["genre"] == []


def test_book_instance_form_defaults_status():
    state = FormPipeline.for_schema(schemas.BookInstanceForm).run({"book": new_id(), "imprint": "Ace, 1990"})

    assert state.is_valid
    assert state.cleaned.status == BookStatus.MAINTENANCE
    assert state.cleaned.due_back is None


def test_book_instance_form_rejects_unknown_status():
    state = FormPipeline.for_schema(schemas.BookInstanceForm).run(
        {"book": new_id(), "imprint": "Ace", "status": "Lost", "due_back": "tomorrow"}
    )

    assert _messages(state) == {"status": "Invalid status", "due_back": "Invalid date"}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1971-12-16", date(1971, 12, 16)),
        ("1971-12-16T10:00:00", date(1971, 12, 16)),
        (" 1971-12-16 ", date(1971, 12, 16)),
    ],
)
def test_author_form_accepts_iso_dates(value, expected):
    state = FormPipeline.for_schema(schemas.AuthorForm).run(
        {"first_name": "Jim", "last_name": "Jones", "date_of_birth": value}
    )

    assert state.is_valid
    assert state.cleaned.date_of_birth == expected


@pytest.mark.parametrize("value", ["0", "1971", "16/12/1971", "Dec 16, 1971"])
def test_author_form_rejects_non_iso_dates(value):
    state = FormPipeline.for_schema(schemas.AuthorForm).run(
        {"first_name": "Jim", "last_name": "Jones", "date_of_death": value}
    )

    assert _messages(state) == {"date_of_death": "Invalid date of death"}


def test_book_instance_form_due_back_takes_date_of_timestamp():
    state = FormPipeline.for_schema(schemas.BookInstanceForm).run(
        {"book": new_id(), "imprint": "Ace", "due_back": "2030-05-01T18:30:00"}
    )

    assert state.cleaned.due_back == date(2030, 5, 1)


def test_book_instance_form_rejects_timestamp_number():
    state = FormPipeline.for_schema(schemas.BookInstanceForm).run(
        {"book": new_id(), "imprint": "Ace", "due_back": "0"}
    )

    assert _messages(state) == {"due_back": "Invalid date"}


def test_book_instance_form_escapes_imprint_after_length_check():
    imprint = "A" * 199 + "&"
    state = FormPipeline.for_schema(schemas.BookInstanceForm).run({"book": new_id(), "imprint": imprint})

    assert state.is_valid
    assert state.cleaned.imprint == "A" * 199 + "&amp;"
    assert state.cleaned.status == BookStatus.MAINTENANCE


@pytest.mark.parametrize("value", [new_id(), "a" * 32, "A" * 32, "a" * 31, "g" * 32, " " + "a" * 32])
def test_record_id_rule_matches_is_valid_id(value):
    state = FormPipeline.for_schema(schemas.BookInstanceForm).run({"book": value, "imprint": "Ace"})

    # surrounding whitespace is trimmed before the id rule applies
    assert state.is_valid == is_valid_id(value.strip())

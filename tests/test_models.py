"""Derived display values on the catalog models."""
from __future__ import annotations

from datetime import date, datetime

from locallibrary import models
from locallibrary.utils import format_date_med, is_valid_id, new_id


def test_author_name_is_family_name_first():
    author = models.Author(first_name="Jim", last_name="Jones")

    assert author.name == "Jones, Jim"


def test_author_name_empty_when_a_part_is_missing():
    assert models.Author(first_name="Jim", last_name="").name == ""
    assert models.Author(first_name=None, last_name="Jones").name == ""


def test_author_lifespan_and_input_dates():
    author = models.Author(
        first_name="Jim",
        last_name="Jones",
        date_of_birth=date(1971, 12, 16),
        date_of_death=date(2020, 1, 2),
    )

    assert author.date_of_birth_formatted == "Dec 16, 1971"
    assert author.lifespan == "Dec 16, 1971 - Jan 2, 2020"
    assert author.date_of_birth_for_input == "1971-12-16"
    assert author.date_of_death_for_input == "2020-01-02"


def test_author_lifespan_with_unknown_dates():
    assert models.Author(first_name="A", last_name="B").lifespan == " - "
    alive = models.Author(first_name="A", last_name="B", date_of_birth=date(1990, 5, 1))
    assert alive.lifespan == "May 1, 1990 - "
    assert alive.date_of_death_for_input == ""


def test_canonical_urls():
    record_id = new_id()

    assert models.Author(id=record_id).url == f"/catalog/author/{record_id}"
    assert models.Genre(id=record_id).url == f"/catalog/genre/{record_id}"
    assert models.Book(id=record_id).url == f"/catalog/book/{record_id}"
    assert models.BookInstance(id=record_id).url == f"/catalog/bookinstance/{record_id}"


def test_book_instance_due_back_formatting():
    instance = models.BookInstance(due_back=datetime(2024, 3, 9, 14, 30))

    assert instance.due_back_formatted == "Mar 9, 2024"
    assert instance.due_back_for_input == "2024-03-09"


def test_book_instance_defaults_applied_on_insert(add, book):
    before = datetime.now()
    instance = add(models.BookInstance(book_id=book.id, imprint="Gollancz, 2007"))
    after = datetime.now()

    assert instance.status == models.BookStatus.MAINTENANCE
    assert before <= instance.due_back <= after
    assert is_valid_id(instance.id)


def test_record_reference_format():
    assert is_valid_id(new_id())
    assert not is_valid_id("not-an-id")
    assert not is_valid_id(new_id().upper())
    assert not is_valid_id(new_id() + "0")
    assert not is_valid_id(None)


def test_format_date_med_handles_none():
    assert format_date_med(None) == ""

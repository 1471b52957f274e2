import logging

from fastapi import APIRouter, Depends, Request

import locallibrary.crud as crud
import locallibrary.models as models
import locallibrary.schemas as schemas
from locallibrary.config import settings
from locallibrary.database import Database, get_db
from locallibrary.errors import ensure_valid_id, not_found
from locallibrary.forms import FieldError, FormPipeline, FormState, as_list, form_to_dict
from locallibrary.rate_limiter import limiter
from locallibrary.templating import redirect, render
from locallibrary.utils import mark_checked

logger = logging.getLogger(__name__)

router = APIRouter(tags=["books"])

BOOK_LIST_URL = "/catalog/books"

book_form = FormPipeline.for_schema(schemas.BookForm)


def _form_values(book: models.Book) -> dict:
    return {
        "title": book.title,
        "author": book.author_id,
        "summary": book.summary,
        "isbn": book.isbn,
        "genre": book.genre_ids,
    }


async def _render_form(request: Request, db: Database, title: str, book: dict, errors=()):
    """Book form with every author and genre, genres ticked from book["genre"]"""
    authors, genres = await db.gather((crud.get_authors,), (crud.get_genres,))
    return render(
        request,
        "book_form.html",
        title=title,
        book=book,
        authors=authors,
        genres=mark_checked(genres, as_list(book.get("genre"))),
        errors=list(errors),
    )


async def _check_author(db: Database, form: FormState) -> None:
    """Reject a well-formed author id that names no record"""
    if form.is_valid and await db.run(crud.get_author, form.cleaned.author) is None:
        form.errors.append(FieldError("author", "Invalid author"))


@router.get("/")
@limiter.limit(settings.READ_RATE_LIMIT)
async def index(request: Request, db: Database = Depends(get_db)):
    """
    Catalog home page with record counts
    """
    book_count, instance_count, available_count, author_count, genre_count = await db.gather(
        (crud.count_books,),
        (crud.count_book_instances,),
        (crud.count_book_instances, models.BookStatus.AVAILABLE),
        (crud.count_authors,),
        (crud.count_genres,),
    )
    data = {
        "book_count": book_count,
        "book_instance_count": instance_count,
        "book_instance_available_count": available_count,
        "author_count": author_count,
        "genre_count": genre_count,
    }
    return render(request, "index.html", title="Local Library Home", data=data)


@router.get("/books")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_list(request: Request, db: Database = Depends(get_db)):
    """
    Display list of all books
    """
    books = await db.run(crud.get_books)
    return render(request, "book_list.html", title="Book List", book_list=books)


@router.get("/book/create")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_create_get(request: Request, db: Database = Depends(get_db)):
    return await _render_form(request, db, "Create Book", {})


@router.post("/book/create")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def book_create_post(request: Request, db: Database = Depends(get_db)):
    form = book_form.run(form_to_dict(await request.form()))
    await _check_author(db, form)
    if not form.is_valid:
        return await _render_form(request, db, "Create Book", form.data, form.errors)

    book = await db.run(crud.create_book, form.cleaned)
    logger.info(f"Created book {book.id} ({book.title})")
    return redirect(book.url)


@router.get("/book/{book_id}")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_detail(request: Request, book_id: str, db: Database = Depends(get_db)):
    """
    Display a book with its author, genres and copies
    """
    ensure_valid_id(book_id, "book")
    book, instances = await db.gather(
        (crud.get_book, book_id),
        (crud.get_instances_by_book, book_id),
    )
    if book is None:
        raise not_found("Book")

    return render(request, "book_detail.html", title=book.title, book=book, book_instances=instances)


@router.get("/book/{book_id}/delete")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_delete_get(request: Request, book_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(book_id, "book")
    book, instances = await db.gather(
        (crud.get_book, book_id),
        (crud.get_instances_by_book, book_id),
    )
    if book is None:
        return redirect(BOOK_LIST_URL)

    return render(request, "book_delete.html", title="Delete Book", book=book, book_instances=instances)


@router.post("/book/{book_id}/delete")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def book_delete_post(request: Request, book_id: str, db: Database = Depends(get_db)):
    """
    Delete a book that has no copies left
    """
    ensure_valid_id(book_id, "book")
    book, instances = await db.gather(
        (crud.get_book, book_id),
        (crud.get_instances_by_book, book_id),
    )
    if book is None:
        return redirect(BOOK_LIST_URL)

    if instances:
        logger.info(f"Refused to delete book {book_id}: {len(instances)} copies depend on it")
        return render(request, "book_delete.html", title="Delete Book", book=book, book_instances=instances)

    await db.run(crud.delete_book, book_id)
    logger.info(f"Deleted book {book_id}")
    return redirect(BOOK_LIST_URL)


@router.get("/book/{book_id}/update")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_update_get(request: Request, book_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(book_id, "book")
    book, authors, genres = await db.gather(
        (crud.get_book, book_id),
        (crud.get_authors,),
        (crud.get_genres,),
    )
    if book is None:
        raise not_found("Book")

    return render(
        request,
        "book_form.html",
        title="Update Book",
        book=_form_values(book),
        authors=authors,
        genres=mark_checked(genres, book.genre_ids),
        errors=[],
    )


@router.post("/book/{book_id}/update")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def book_update_post(request: Request, book_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(book_id, "book")
    form = book_form.run(form_to_dict(await request.form()))
    await _check_author(db, form)
    if not form.is_valid:
        return await _render_form(request, db, "Update Book", form.data, form.errors)

    book = await db.run(crud.update_book, book_id, form.cleaned)
    if book is None:
        raise not_found("Book")

    logger.info(f"Updated book {book_id}")
    return redirect(book.url)

import logging

from fastapi import APIRouter, Depends, Request

import locallibrary.crud as crud
import locallibrary.models as models
import locallibrary.schemas as schemas
from locallibrary.config import settings
from locallibrary.database import Database, get_db
from locallibrary.errors import ensure_valid_id, not_found
from locallibrary.forms import FormPipeline, form_to_dict
from locallibrary.rate_limiter import limiter
from locallibrary.templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authors"])

AUTHOR_LIST_URL = "/catalog/authors"

author_form = FormPipeline.for_schema(schemas.AuthorForm)


def _form_values(author: models.Author) -> dict:
    return {
        "first_name": author.first_name,
        "last_name": author.last_name,
        "date_of_birth": author.date_of_birth_for_input,
        "date_of_death": author.date_of_death_for_input,
    }


@router.get("/authors")
@limiter.limit(settings.READ_RATE_LIMIT)
async def author_list(request: Request, db: Database = Depends(get_db)):
    """
    Display list of all authors
    """
    authors = await db.run(crud.get_authors)
    return render(request, "author_list.html", title="Author List", author_list=authors)


@router.get("/author/create")
@limiter.limit(settings.READ_RATE_LIMIT)
async def author_create_get(request: Request):
    return render(request, "author_form.html", title="Create Author", author={}, errors=[])


@router.post("/author/create")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def author_create_post(request: Request, db: Database = Depends(get_db)):
    """
    Create an author from the submitted form
    """
    form = author_form.run(form_to_dict(await request.form()))
    if not form.is_valid:
        return render(
            request, "author_form.html", title="Create Author", author=form.data, errors=form.errors
        )

    author = await db.run(crud.create_author, form.cleaned)
    logger.info(f"Created author {author.id} ({author.name})")
    return redirect(author.url)


@router.get("/author/{author_id}")
@limiter.limit(settings.READ_RATE_LIMIT)
async def author_detail(request: Request, author_id: str, db: Database = Depends(get_db)):
    """
    Display an author together with their books
    """
    ensure_valid_id(author_id, "author")
    author, books = await db.gather(
        (crud.get_author, author_id),
        (crud.get_books_by_author, author_id),
    )
    if author is None:
        raise not_found("Author")

    return render(request, "author_detail.html", title=author.name, author=author, author_books=books)


@router.get("/author/{author_id}/delete")
@limiter.limit(settings.READ_RATE_LIMIT)
async def author_delete_get(request: Request, author_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(author_id, "author")
    author, books = await db.gather(
        (crud.get_author, author_id),
        (crud.get_books_by_author, author_id),
    )
    if author is None:
        return redirect(AUTHOR_LIST_URL)

    return render(request, "author_delete.html", title="Delete Author", author=author, author_books=books)


@router.post("/author/{author_id}/delete")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def author_delete_post(request: Request, author_id: str, db: Database = Depends(get_db)):
    """
    Delete an author that no book refers to
    """
    ensure_valid_id(author_id, "author")
    author, books = await db.gather(
        (crud.get_author, author_id),
        (crud.get_books_by_author, author_id),
    )
    if author is None:
        return redirect(AUTHOR_LIST_URL)

    if books:
        logger.info(f"Refused to delete author {author_id}: {len(books)} book(s) depend on it")
        return render(request, "author_delete.html", title="Delete Author", author=author, author_books=books)

    await db.run(crud.delete_author, author_id)
    logger.info(f"Deleted author {author_id}")
    return redirect(AUTHOR_LIST_URL)


@router.get("/author/{author_id}/update")
@limiter.limit(settings.READ_RATE_LIMIT)
async def author_update_get(request: Request, author_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(author_id, "author")
    author = await db.run(crud.get_author, author_id)
    if author is None:
        raise not_found("Author")

    return render(request, "author_form.html", title="Update Author", author=_form_values(author), errors=[])


@router.post("/author/{author_id}/update")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def author_update_post(request: Request, author_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(author_id, "author")
    form = author_form.run(form_to_dict(await request.form()))
    if not form.is_valid:
        return render(
            request, "author_form.html", title="Update Author", author=form.data, errors=form.errors
        )

    author = await db.run(crud.update_author, author_id, form.cleaned)
    if author is None:
        raise not_found("Author")

    logger.info(f"Updated author {author_id}")
    return redirect(author.url)

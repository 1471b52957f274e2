import logging

from fastapi import APIRouter, Depends, Request

import locallibrary.crud as crud
import locallibrary.schemas as schemas
from locallibrary.config import settings
from locallibrary.database import Database, get_db
from locallibrary.errors import ensure_valid_id, not_found
from locallibrary.forms import FormPipeline, form_to_dict
from locallibrary.rate_limiter import limiter
from locallibrary.templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["genres"])

GENRE_LIST_URL = "/catalog/genres"

genre_form = FormPipeline.for_schema(schemas.GenreForm)


@router.get("/genres")
@limiter.limit(settings.READ_RATE_LIMIT)
async def genre_list(request: Request, db: Database = Depends(get_db)):
    """
    Display list of all genres
    """
    genres = await db.run(crud.get_genres)
    return render(request, "genre_list.html", title="Genre List", genre_list=genres)


@router.get("/genre/create")
@limiter.limit(settings.READ_RATE_LIMIT)
async def genre_create_get(request: Request):
    return render(request, "genre_form.html", title="Create Genre", genre={}, errors=[])


@router.post("/genre/create")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def genre_create_post(request: Request, db: Database = Depends(get_db)):
    """
    Create a genre, or redirect to the existing one with the same name

    The lookup and the insert are separate statements and nothing in the
    schema enforces unique names, so two concurrent identical submissions
    can still both insert.
    """
    form = genre_form.run(form_to_dict(await request.form()))
    if not form.is_valid:
        return render(request, "genre_form.html", title="Create Genre", genre=form.data, errors=form.errors)

    existing = await db.run(crud.get_genre_by_name, form.cleaned.name)
    if existing is not None:
        logger.info(f"Genre {form.cleaned.name!r} already exists as {existing.id}")
        return redirect(existing.url)

    genre = await db.run(crud.create_genre, form.cleaned)
    logger.info(f"Created genre {genre.id} ({genre.name})")
    return redirect(genre.url)


@router.get("/genre/{genre_id}")
@limiter.limit(settings.READ_RATE_LIMIT)
async def genre_detail(request: Request, genre_id: str, db: Database = Depends(get_db)):
    """
    Display a genre and the books filed under it
    """
    ensure_valid_id(genre_id, "genre")
    genre, books = await db.gather(
        (crud.get_genre, genre_id),
        (crud.get_books_by_genre, genre_id),
    )
    if genre is None:
        raise not_found("Genre")

    return render(request, "genre_detail.html", title="Genre Detail", genre=genre, genre_books=books)


@router.get("/genre/{genre_id}/delete")
@limiter.limit(settings.READ_RATE_LIMIT)
async def genre_delete_get(request: Request, genre_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(genre_id, "genre")
    genre, books = await db.gather(
        (crud.get_genre, genre_id),
        (crud.get_books_by_genre, genre_id),
    )
    if genre is None:
        return redirect(GENRE_LIST_URL)

    return render(request, "genre_delete.html", title="Delete Genre", genre=genre, genre_books=books)


@router.post("/genre/{genre_id}/delete")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def genre_delete_post(request: Request, genre_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(genre_id, "genre")
    genre, books = await db.gather(
        (crud.get_genre, genre_id),
        (crud.get_books_by_genre, genre_id),
    )
    if genre is None:
        return redirect(GENRE_LIST_URL)

    if books:
        logger.info(f"Refused to delete genre {genre_id}: {len(books)} book(s) depend on it")
        return render(request, "genre_delete.html", title="Delete Genre", genre=genre, genre_books=books)

    await db.run(crud.delete_genre, genre_id)
    logger.info(f"Deleted genre {genre_id}")
    return redirect(GENRE_LIST_URL)


@router.get("/genre/{genre_id}/update")
@limiter.limit(settings.READ_RATE_LIMIT)
async def genre_update_get(request: Request, genre_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(genre_id, "genre")
    genre = await db.run(crud.get_genre, genre_id)
    if genre is None:
        raise not_found("Genre")

    return render(request, "genre_form.html", title="Update Genre", genre={"name": genre.name}, errors=[])


@router.post("/genre/{genre_id}/update")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def genre_update_post(request: Request, genre_id: str, db: Database = Depends(get_db)):
    """
    Rename a genre (no duplicate-name check here)
    """
    ensure_valid_id(genre_id, "genre")
    form = genre_form.run(form_to_dict(await request.form()))
    if not form.is_valid:
        return render(request, "genre_form.html", title="Update Genre", genre=form.data, errors=form.errors)

    genre = await db.run(crud.update_genre, genre_id, form.cleaned)
    if genre is None:
        raise not_found("Genre")

    logger.info(f"Updated genre {genre_id}")
    return redirect(genre.url)

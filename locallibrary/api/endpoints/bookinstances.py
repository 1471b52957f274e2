import logging

from fastapi import APIRouter, Depends, Request

import locallibrary.crud as crud
import locallibrary.models as models
import locallibrary.schemas as schemas
from locallibrary.config import settings
from locallibrary.database import Database, get_db
from locallibrary.errors import ensure_valid_id, not_found
from locallibrary.forms import FieldError, FormPipeline, FormState, form_to_dict
from locallibrary.rate_limiter import limiter
from locallibrary.templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookinstances"])

BOOK_INSTANCE_LIST_URL = "/catalog/bookinstances"

book_instance_form = FormPipeline.for_schema(schemas.BookInstanceForm)

STATUS_CHOICES = [s.value for s in models.BookStatus]


def _form_values(instance: models.BookInstance) -> dict:
    return {
        "book": instance.book_id,
        "imprint": instance.imprint,
        "status": instance.status.value,
        "due_back": instance.due_back_for_input,
    }


def _form_page(request: Request, title: str, instance: dict, books, errors=()):
    return render(
        request,
        "bookinstance_form.html",
        title=title,
        book_list=books,
        selected_book=instance.get("book"),
        book_instance=instance,
        status_choices=STATUS_CHOICES,
        errors=list(errors),
    )


async def _render_form(request: Request, db: Database, title: str, instance: dict, errors=()):
    books = await db.run(crud.get_books)
    return _form_page(request, title, instance, books, errors)


async def _check_book(db: Database, form: FormState) -> None:
    if form.is_valid and await db.run(crud.get_book, form.cleaned.book) is None:
        form.errors.append(FieldError("book", "Invalid book"))


@router.get("/bookinstances")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_instance_list(request: Request, db: Database = Depends(get_db)):
    """
    Display list of all book copies
    """
    instances = await db.run(crud.get_book_instances)
    return render(request, "bookinstance_list.html", title="Book Instance List", book_instance_list=instances)


@router.get("/bookinstance/create")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_instance_create_get(request: Request, db: Database = Depends(get_db)):
    return await _render_form(request, db, "Create Book Instance", {})


@router.post("/bookinstance/create")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def book_instance_create_post(request: Request, db: Database = Depends(get_db)):
    """
    Create a copy; status defaults to Maintenance, due date to now
    """
    form = book_instance_form.run(form_to_dict(await request.form()))
    await _check_book(db, form)
    if not form.is_valid:
        return await _render_form(request, db, "Create Book Instance", form.data, form.errors)

    instance = await db.run(crud.create_book_instance, form.cleaned)
    logger.info(f"Created book instance {instance.id} of book {instance.book_id}")
    return redirect(instance.url)


@router.get("/bookinstance/{instance_id}")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_instance_detail(request: Request, instance_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(instance_id, "book instance")
    instance = await db.run(crud.get_book_instance, instance_id)
    if instance is None:
        raise not_found("Book instance")

    title = f"Copy: {instance.book.title}" if instance.book else "Copy"
    return render(request, "bookinstance_detail.html", title=title, book_instance=instance)


@router.get("/bookinstance/{instance_id}/delete")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_instance_delete_get(request: Request, instance_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(instance_id, "book instance")
    instance = await db.run(crud.get_book_instance, instance_id)
    if instance is None:
        return redirect(BOOK_INSTANCE_LIST_URL)

    return render(request, "bookinstance_delete.html", title="Delete Book Instance", book_instance=instance)


@router.post("/bookinstance/{instance_id}/delete")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def book_instance_delete_post(request: Request, instance_id: str, db: Database = Depends(get_db)):
    """
    Delete a copy unconditionally
    """
    ensure_valid_id(instance_id, "book instance")
    if await db.run(crud.delete_book_instance, instance_id):
        logger.info(f"Deleted book instance {instance_id}")
    return redirect(BOOK_INSTANCE_LIST_URL)


@router.get("/bookinstance/{instance_id}/update")
@limiter.limit(settings.READ_RATE_LIMIT)
async def book_instance_update_get(request: Request, instance_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(instance_id, "book instance")
    instance, books = await db.gather(
        (crud.get_book_instance, instance_id),
        (crud.get_books,),
    )
    if instance is None:
        raise not_found("Book instance")

    return _form_page(request, "Update Book Instance", _form_values(instance), books)


@router.post("/bookinstance/{instance_id}/update")
@limiter.limit(settings.WRITE_RATE_LIMIT)
async def book_instance_update_post(request: Request, instance_id: str, db: Database = Depends(get_db)):
    ensure_valid_id(instance_id, "book instance")
    form = book_instance_form.run(form_to_dict(await request.form()))
    await _check_book(db, form)
    if not form.is_valid:
        return await _render_form(request, db, "Update Book Instance", form.data, form.errors)

    instance = await db.run(crud.update_book_instance, instance_id, form.cleaned)
    if instance is None:
        raise not_found("Book instance")

    logger.info(f"Updated book instance {instance_id}")
    return redirect(instance.url)

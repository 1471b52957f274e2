from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

import locallibrary.models as models
import locallibrary.schemas as schemas

# Every function here runs on its own session and returns detached objects,
# so relationships a page needs are loaded eagerly.

# ====================== COUNTS ======================

def count_authors(db: Session) -> int:
    return db.query(models.Author).count()

def count_genres(db: Session) -> int:
    return db.query(models.Genre).count()

def count_books(db: Session) -> int:
    return db.query(models.Book).count()

def count_book_instances(db: Session, status: Optional[models.BookStatus] = None) -> int:
    query = db.query(models.BookInstance)
    if status is not None:
        query = query.filter(models.BookInstance.status == status)
    return query.count()

# ====================== AUTHOR CRUD ======================

def get_authors(db: Session) -> List[models.Author]:
    """
    All authors ordered by family name
    """
    return (
        db.query(models.Author)
        .order_by(models.Author.last_name, models.Author.first_name)
        .all()
    )

def get_author(db: Session, author_id: str) -> Optional[models.Author]:
    return db.query(models.Author).filter(models.Author.id == author_id).first()

def get_books_by_author(db: Session, author_id: str) -> List[models.Book]:
    return (
        db.query(models.Book)
        .filter(models.Book.author_id == author_id)
        .order_by(models.Book.title)
        .all()
    )

def create_author(db: Session, author: schemas.AuthorForm) -> models.Author:
    db_author = models.Author(**author.model_dump())
    db.add(db_author)
    db.commit()
    db.refresh(db_author)
    return db_author

def update_author(db: Session, author_id: str, author: schemas.AuthorForm) -> Optional[models.Author]:
    """
    Overwrite every form field; None if the author does not exist
    """
    db_author = get_author(db, author_id)
    if not db_author:
        return None

    for field, value in author.model_dump().items():
        setattr(db_author, field, value)

    db.commit()
    db.refresh(db_author)
    return db_author

def delete_author(db: Session, author_id: str) -> bool:
    db_author = get_author(db, author_id)
    if not db_author:
        return False

    db.delete(db_author)
    db.commit()
    return True

# ====================== GENRE CRUD ======================

def get_genres(db: Session) -> List[models.Genre]:
    return db.query(models.Genre).order_by(models.Genre.name).all()

def get_genre(db: Session, genre_id: str) -> Optional[models.Genre]:
    return db.query(models.Genre).filter(models.Genre.id == genre_id).first()

def get_genre_by_name(db: Session, name: str) -> Optional[models.Genre]:
    """
    First genre with exactly this name (names are not unique in the table)
    """
    return db.query(models.Genre).filter(models.Genre.name == name).first()

def get_books_by_genre(db: Session, genre_id: str) -> List[models.Book]:
    return (
        db.query(models.Book)
        .filter(models.Book.genres.any(models.Genre.id == genre_id))
        .order_by(models.Book.title)
        .all()
    )

def create_genre(db: Session, genre: schemas.GenreForm) -> models.Genre:
    db_genre = models.Genre(name=genre.name)
    db.add(db_genre)
    db.commit()
    db.refresh(db_genre)
    return db_genre

def update_genre(db: Session, genre_id: str, genre: schemas.GenreForm) -> Optional[models.Genre]:
    db_genre = get_genre(db, genre_id)
    if not db_genre:
        return None

    db_genre.name = genre.name
    db.commit()
    db.refresh(db_genre)
    return db_genre

def delete_genre(db: Session, genre_id: str) -> bool:
    db_genre = get_genre(db, genre_id)
    if not db_genre:
        return False

    db.delete(db_genre)
    db.commit()
    return True

# ====================== BOOK CRUD ======================

def get_books(db: Session) -> List[models.Book]:
    """
    All books ordered by title, with their author loaded
    """
    return (
        db.query(models.Book)
        .options(joinedload(models.Book.author))
        .order_by(models.Book.title)
        .all()
    )

def get_book(db: Session, book_id: str) -> Optional[models.Book]:
    return (
        db.query(models.Book)
        .options(joinedload(models.Book.author), selectinload(models.Book.genres))
        .filter(models.Book.id == book_id)
        .first()
    )

def get_instances_by_book(db: Session, book_id: str) -> List[models.BookInstance]:
    return db.query(models.BookInstance).filter(models.BookInstance.book_id == book_id).all()

def _genres_by_ids(db: Session, genre_ids: List[str]) -> List[models.Genre]:
    if not genre_ids:
        return []
    found = {g.id: g for g in db.query(models.Genre).filter(models.Genre.id.in_(genre_ids)).all()}
    # Keep the submitted order, silently dropping unknown references
    return [found[gid] for gid in dict.fromkeys(genre_ids) if gid in found]

def create_book(db: Session, book: schemas.BookForm) -> models.Book:
    db_book = models.Book(
        title=book.title,
        author_id=book.author,
        summary=book.summary,
        isbn=book.isbn,
        genres=_genres_by_ids(db, book.genre),
    )
    db.add(db_book)
    db.commit()
    db.refresh(db_book)
    return db_book

def update_book(db: Session, book_id: str, book: schemas.BookForm) -> Optional[models.Book]:
    db_book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not db_book:
        return None

    db_book.title = book.title
    db_book.author_id = book.author
    db_book.summary = book.summary
    db_book.isbn = book.isbn
    db_book.genres = _genres_by_ids(db, book.genre)

    db.commit()
    db.refresh(db_book)
    return db_book

def delete_book(db: Session, book_id: str) -> bool:
    db_book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not db_book:
        return False

    db.delete(db_book)
    db.commit()
    return True

# ====================== BOOK INSTANCE CRUD ======================

def get_book_instances(db: Session) -> List[models.BookInstance]:
    return (
        db.query(models.BookInstance)
        .options(joinedload(models.BookInstance.book))
        .all()
    )

def get_book_instance(db: Session, instance_id: str) -> Optional[models.BookInstance]:
    return (
        db.query(models.BookInstance)
        .options(joinedload(models.BookInstance.book))
        .filter(models.BookInstance.id == instance_id)
        .first()
    )

def _instance_fields(instance: schemas.BookInstanceForm) -> dict:
    fields = {
        "book_id": instance.book,
        "imprint": instance.imprint,
        "status": instance.status,
    }
    # An omitted due date falls back to the column default (now)
    if instance.due_back is not None:
        fields["due_back"] = datetime.combine(instance.due_back, datetime.min.time())
    return fields

def create_book_instance(db: Session, instance: schemas.BookInstanceForm) -> models.BookInstance:
    db_instance = models.BookInstance(**_instance_fields(instance))
    db.add(db_instance)
    db.commit()
    db.refresh(db_instance)
    return db_instance

def update_book_instance(
    db: Session,
    instance_id: str,
    instance: schemas.BookInstanceForm
) -> Optional[models.BookInstance]:
    db_instance = db.query(models.BookInstance).filter(models.BookInstance.id == instance_id).first()
    if not db_instance:
        return None

    for field, value in _instance_fields(instance).items():
        setattr(db_instance, field, value)
    if instance.due_back is None:
        db_instance.due_back = datetime.now()

    db.commit()
    db.refresh(db_instance)
    return db_instance

def delete_book_instance(db: Session, instance_id: str) -> bool:
    db_instance = db.query(models.BookInstance).filter(models.BookInstance.id == instance_id).first()
    if not db_instance:
        return False

    db.delete(db_instance)
    db.commit()
    return True

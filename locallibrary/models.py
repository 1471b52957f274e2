import enum
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, String, Table, Text
from sqlalchemy.orm import relationship

from locallibrary.database import Base
from locallibrary.utils import format_date_iso, format_date_med, new_id


class BookStatus(str, enum.Enum):
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    LOANED = "Loaned"
    RESERVED = "Reserved"


book_genre = Table(
    "book_genre",
    Base.metadata,
    Column("book_id", String(32), ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("genre_id", String(32), ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True),
)


class Author(Base):
    __tablename__ = "authors"

    id = Column(String(32), primary_key=True, default=new_id)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_death = Column(Date, nullable=True)

    @property
    def name(self) -> str:
        """Display name as "last_name, first_name"; empty when either part is missing"""
        if not self.first_name or not self.last_name:
            return ""
        return f"{self.last_name}, {self.first_name}"

    @property
    def date_of_birth_formatted(self) -> str:
        return format_date_med(self.date_of_birth)

    @property
    def date_of_death_formatted(self) -> str:
        return format_date_med(self.date_of_death)

    @property
    def date_of_birth_for_input(self) -> str:
        return format_date_iso(self.date_of_birth)

    @property
    def date_of_death_for_input(self) -> str:
        return format_date_iso(self.date_of_death)

    @property
    def lifespan(self) -> str:
        return f"{self.date_of_birth_formatted} - {self.date_of_death_formatted}"

    @property
    def url(self) -> str:
        return f"/catalog/author/{self.id}"


class Genre(Base):
    __tablename__ = "genres"

    # No unique constraint: duplicates are only prevented by the create form.
    # Free-text columns hold escaped text, which may run past the form limits.
    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(Text, nullable=False, index=True)

    @property
    def url(self) -> str:
        return f"/catalog/genre/{self.id}"


class Book(Base):
    __tablename__ = "books"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(Text, nullable=False, index=True)
    summary = Column(Text, nullable=False)
    isbn = Column(Text, nullable=False)
    author_id = Column(String(32), ForeignKey("authors.id"), nullable=False, index=True)

    # Relationships
    author = relationship("Author")
    genres = relationship("Genre", secondary=book_genre, order_by="Genre.name")

    @property
    def genre_ids(self):
        return [g.id for g in self.genres]

    @property
    def url(self) -> str:
        return f"/catalog/book/{self.id}"


class BookInstance(Base):
    __tablename__ = "book_instances"

    id = Column(String(32), primary_key=True, default=new_id)
    book_id = Column(String(32), ForeignKey("books.id"), nullable=False, index=True)
    imprint = Column(Text, nullable=False)
    status = Column(
        Enum(BookStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=BookStatus.MAINTENANCE,
    )
    due_back = Column(DateTime, nullable=False, default=datetime.now)

    book = relationship("Book")

    @property
    def due_back_formatted(self) -> str:
        return format_date_med(self.due_back)

    @property
    def due_back_for_input(self) -> str:
        return format_date_iso(self.due_back)

    @property
    def url(self) -> str:
        return f"/catalog/bookinstance/{self.id}"

"""
Database service layer for the FastAPI application.
"""

from typing import Iterator, List, Optional

import structlog
from sqlalchemy import (
    BigInteger, Column, DateTime, Integer, SmallInteger, Text,
    create_engine, event, func, select, text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from api.models import BookCreate

logger = structlog.get_logger(__name__)

Base = declarative_base()


class Book(Base):
    __tablename__ = "Books"

    id = Column("Id", Integer, primary_key=True, autoincrement=True)
    title = Column("Title", Text, nullable=True)
    year = Column("Year", Integer, nullable=False, default=0)
    isbn = Column("ISBN", BigInteger, nullable=False, default=0)
    published_date = Column("PublishedDate", DateTime, nullable=True)
    price = Column("Price", SmallInteger, nullable=False, default=0)
    author_id = Column("AuthorId", Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r}>"


def build_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine for the configured database.

    SQLite connections are shared across FastAPI's worker threads, so the
    same-thread check is disabled for them.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)

    if engine.dialect.name == "sqlite":
        # SQLite's built-in lower() only folds ASCII letters
        @event.listens_for(engine, "connect")
        def _register_unicode_lower(dbapi_connection, connection_record):
            dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

    return engine


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create the books table if it does not exist."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ensured", url=engine.url.render_as_string(hide_password=True))


def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Yield a session that is closed once the caller is done with it."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class BookStore:
    """Repository for book records bound to a single session."""

    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> List[Book]:
        """Return every book ordered by identifier."""
        return list(self.session.scalars(select(Book).order_by(Book.id)))

    def get_by_id(self, book_id: int) -> Optional[Book]:
        """
        Get a single book by ID.

        Args:
            book_id: Book identifier

        Returns:
            Book if found, None otherwise
        """
        return self.session.get(Book, book_id)

    def create(self, data: BookCreate) -> Book:
        """
        Insert a new book.

        Args:
            data: Field values for the new book

        Returns:
            The stored book, including its assigned identifier
        """
        book = Book(**data.model_dump())
        try:
            self.session.add(book)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error("Failed to create book", title=data.title, error=str(e))
            raise

        logger.info("Book created", book_id=book.id)
        return book

    def update(
        self,
        book_id: int,
        title: str,
        price: int,
        isbn: int,
        year: int,
    ) -> Optional[Book]:
        """
        Overwrite the title, price, ISBN and year of an existing book.

        Returns:
            The updated book, or None if no book has this identifier
        """
        book = self.get_by_id(book_id)
        if book is None:
            return None

        book.title = title
        book.price = price
        book.isbn = isbn
        book.year = year
        try:
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise

        logger.info("Book updated", book_id=book_id)
        return book

    def search(self, query: str) -> List[Book]:
        """
        Find books whose title contains ``query``, ignoring case.

        ``%`` and ``_`` in the query match literally.
        """
        stmt = (
            select(Book)
            .where(func.lower(Book.title).contains(query.lower(), autoescape=True))
            .order_by(Book.id)
        )
        return list(self.session.scalars(stmt))

    def get_page(self, page_number: int, page_size: int) -> List[Book]:
        """
        Return one window of books ordered by identifier.

        Args:
            page_number: Page number (starts from 1)
            page_size: Books per page

        Raises:
            ValueError: If either argument is below 1
        """
        if page_number < 1:
            raise ValueError("page_number must be at least 1")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        skip = (page_number - 1) * page_size
        stmt = select(Book).order_by(Book.id).offset(skip).limit(page_size)
        return list(self.session.scalars(stmt))

    def count(self) -> int:
        return self.session.scalar(select(func.count()).select_from(Book))

    def health_check(self) -> dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            self.session.execute(text("SELECT 1"))
            return {
                "status": "healthy",
                "books_count": self.count(),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }

"""
HTTP routes for books, authentication and health.

Routes are declared in ``ROUTES`` and assembled by :func:`build_router`, which
attaches bearer authentication to every route whose name is listed as
protected.
"""

from datetime import datetime, timezone
from typing import Iterable, Iterator, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from api.auth import TokenService, UserDirectory, verify_token
from api.database import BookStore, session_scope
from api.models import (
    BookCreate, BookResponse, HealthResponse, LoginRequest, TokenResponse
)

logger = structlog.get_logger(__name__)


def get_session(request: Request) -> Iterator[Session]:
    """Request-scoped database session."""
    yield from session_scope(request.app.state.session_factory)


def get_book_store(session: Session = Depends(get_session)) -> BookStore:
    return BookStore(session)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.user_directory


def greet():
    return "Hello from Minimal Books API"


def health_check(request: Request, store: BookStore = Depends(get_book_store)):
    """Health check endpoint."""
    db_status = store.health_check().get("status", "unknown")
    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=request.app.version,
        database_status=db_status,
    )


# Books endpoints
def get_all_books(store: BookStore = Depends(get_book_store)):
    """Get every book."""
    return store.list_all()


def add_new_book(
    book: BookCreate,
    response: Response,
    store: BookStore = Depends(get_book_store),
):
    """Create a book. The response carries its location under ``books/{id}``."""
    created = store.create(book)
    response.headers["Location"] = f"books/{created.id}"
    return created


def update_book(
    response: Response,
    id: int,
    title: str,
    price: int = Query(..., ge=-32768, le=32767),
    isbn: int = Query(...),
    year: int = Query(...),
    store: BookStore = Depends(get_book_store),
):
    """
    Replace the title, price, ISBN and year of an existing book.

    - **id**: Book identifier
    - **title**, **price**, **isbn**, **year**: New values
    """
    book = store.update(id, title=title, price=price, isbn=isbn, year=year)
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with ID '{id}' not found",
        )

    response.headers["Location"] = "/books"
    return book


def search_books(query: str, store: BookStore = Depends(get_book_store)):
    """Case-insensitive substring search on book titles."""
    books = store.search(query)
    if not books:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=[])
    return books


def get_books_by_page(
    page_number: int = Query(..., alias="pageNumber", ge=1, description="Page number (starts from 1)"),
    page_size: int = Query(..., alias="pageSize", ge=1, description="Books per page"),
    store: BookStore = Depends(get_book_store),
):
    """Get one page of books ordered by identifier."""
    return store.get_page(page_number, page_size)


def get_book(book_id: int, store: BookStore = Depends(get_book_store)):
    """
    Get a single book by ID.

    - **book_id**: Book identifier
    """
    book = store.get_by_id(book_id)
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with ID '{book_id}' not found",
        )
    return book


# Accounts endpoints
def login(
    credentials: LoginRequest,
    users: UserDirectory = Depends(get_user_directory),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange a username and password for a bearer token."""
    user = users.get_user(credentials)
    if user is None:
        logger.warning("Login failed", username=credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenResponse(token=tokens.build_token(user))


def authorized_resource(request: Request):
    """Probe endpoint that only answers authenticated callers."""
    logger.debug("Authorized resource accessed", username=getattr(request.state, "username", None))
    return "Action Succeeded"


# (path, endpoint, route options); order matters where paths overlap
ROUTES = [
    ("/", greet, dict(
        methods=["GET"], name="Greet", include_in_schema=False,
        response_class=PlainTextResponse,
    )),
    ("/health", health_check, dict(
        methods=["GET"], name="Health", response_model=HealthResponse, tags=["Health"],
    )),
    ("/books", get_all_books, dict(
        methods=["GET"], name="GetAllBooks", response_model=List[BookResponse], tags=["Queries"],
    )),
    ("/books", add_new_book, dict(
        methods=["POST"], name="AddNewBook", response_model=BookResponse,
        status_code=status.HTTP_201_CREATED, tags=["Commands"],
    )),
    ("/books", update_book, dict(
        methods=["PUT"], name="UpdateBook", response_model=BookResponse,
        status_code=status.HTTP_201_CREATED, tags=["Commands"],
        responses={404: {"description": "Book not found"}},
    )),
    ("/books/search/{query}", search_books, dict(
        methods=["GET"], name="Search", response_model=List[BookResponse], tags=["Queries"],
        responses={404: {"description": "No book title matches the query"}},
    )),
    ("/books/bypage", get_books_by_page, dict(
        methods=["GET"], name="GetBooksByPage", response_model=List[BookResponse], tags=["Queries"],
    )),
    ("/books/{book_id}", get_book, dict(
        methods=["GET"], name="GetBookbyId", response_model=BookResponse, tags=["Queries"],
        responses={404: {"description": "Book not found"}},
    )),
    ("/auth/token", login, dict(
        methods=["POST"], name="Login", response_model=TokenResponse, tags=["Accounts"],
        responses={401: {"description": "Unknown credentials"}},
    )),
    ("/AuthorizedResource", authorized_resource, dict(
        methods=["GET"], name="Authorized", response_class=PlainTextResponse, tags=["Accounts"],
    )),
]


def build_router(protected_routes: Iterable[str]) -> APIRouter:
    """
    Assemble the API router.

    Args:
        protected_routes: Names of routes that require a valid bearer token

    Raises:
        ValueError: If a protected name matches no route
    """
    protected = set(protected_routes)
    unknown = protected - {options["name"] for _, _, options in ROUTES}
    if unknown:
        raise ValueError(f"Unknown protected routes: {', '.join(sorted(unknown))}")

    router = APIRouter()
    for path, endpoint, options in ROUTES:
        options = dict(options)
        if options["name"] in protected:
            options["dependencies"] = [Depends(verify_token)]
            options["responses"] = {
                **options.get("responses", {}),
                401: {"description": "Missing or invalid bearer token"},
            }
        router.add_api_route(path, endpoint, **options)
    return router

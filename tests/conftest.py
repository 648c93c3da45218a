"""
Pytest configuration and shared fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from api.auth import TokenService, TokenValidator, make_identity
from api.config import APIConfig
from api.database import BookStore, build_engine, build_session_factory, init_db
from api.main import create_app
from api.models import BookCreate

TEST_KEY = "test-signing-key-with-at-least-32-bytes!"
TEST_ISSUER = "https://books.test"
TEST_AUDIENCE = "https://books.test/api"


@pytest.fixture
def api_config(tmp_path):
    """Create API configuration for testing."""
    return APIConfig(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'books.db'}",
        jwt_key=TEST_KEY,
        jwt_issuer=TEST_ISSUER,
        jwt_audience=TEST_AUDIENCE,
        auth_users="alice:wonderland,bob:builder",
        log_format="console",
    )


@pytest.fixture
def token_service(api_config):
    return TokenService(api_config)


@pytest.fixture
def token_validator(api_config):
    return TokenValidator(api_config)


@pytest.fixture
def alice():
    return make_identity("alice")


@pytest.fixture
def app(api_config):
    return create_app(api_config)


@pytest.fixture
def client(app):
    """Create test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(api_config):
    """Session on a fresh database with the books table created."""
    engine = build_engine(api_config.database_url)
    init_db(engine)
    session = build_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def book_store(db_session):
    return BookStore(db_session)


@pytest.fixture
def sample_book():
    """Create sample book data for testing."""
    return BookCreate(
        title="The Lord of the Rings",
        year=1954,
        isbn=9780261103252,
        price=25,
        author_id=1,
    )

"""Test configuration and fixtures for the Lending Library.

Each test gets its own SQLite database file, a fresh configuration and a
LendingLibrary bound to that database.
"""

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from lending_library.config import LibraryConfig, reset_config
from lending_library.database.session import DatabaseManager
from lending_library.services.lending_library import LendingLibrary

# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary database path for each test."""
    db_path = tmp_path / "test_library.db"
    yield db_path

    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """Provide an initialised database manager."""
    manager = DatabaseManager(test_database_url)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def test_db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session for repository tests."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def library(db_manager: DatabaseManager) -> LendingLibrary:
    """Provide a LendingLibrary over the test database."""
    return LendingLibrary(db_manager)


# === Configuration Fixtures ===


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide a clean environment without LENDING_LIBRARY_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("LENDING_LIBRARY_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def test_config(test_db_path: Path, clean_env) -> Generator[LibraryConfig, None, None]:
    """Provide a test-specific configuration."""
    reset_config()

    config = LibraryConfig(
        server_name="test-lending-library",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
    )

    yield config

    reset_config()


# === Test Data ===

HOBBIT = {
    "isbn": "123-456-789-0",
    "title": "The Hobbit",
    "authors": ["J.R.R. Tolkien"],
    "publisher": "Allen & Unwin",
    "pages": 310,
    "year": 1937,
    "nCopies": 2,
}

FELLOWSHIP = {
    "isbn": "123-456-789-1",
    "title": "The Fellowship of the Ring",
    "authors": ["J.R.R. Tolkien"],
    "publisher": "Allen & Unwin",
    "pages": 423,
    "year": 1954,
    "nCopies": 1,
}

EXPRESS = {
    "isbn": "234-567-890-1",
    "title": "Express in Action",
    "authors": ["Evan Hahn"],
    "publisher": "Manning",
    "pages": 256,
    "year": 2016,
    "nCopies": 3,
}


def book_request(base: dict | None = None, **overrides) -> dict:
    """Return a copy of an add_book request with ``overrides`` applied."""
    request = dict(base or HOBBIT)
    request["authors"] = list(request["authors"])
    request.update(overrides)
    return request


@pytest.fixture
def stocked_library(library: LendingLibrary) -> LendingLibrary:
    """A library holding the Hobbit, the Fellowship and Express in Action."""
    for request in (HOBBIT, FELLOWSHIP, EXPRESS):
        library.add_book(book_request(request))
    return library

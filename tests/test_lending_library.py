"""
Tests for the LendingLibrary service.

These cover the catalog and circulation rules end to end against a real
SQLite database: copy-count consistency, the one-copy-per-patron rule,
error classification and database-side pagination.
"""

import pytest
from conftest import EXPRESS, FELLOWSHIP, HOBBIT, book_request
from sqlalchemy.exc import OperationalError

from lending_library.config import reset_config
from lending_library.database.book_repository import BookRepository
from lending_library.database.circulation_repository import CirculationRepository
from lending_library.database.repository import StoreError
from lending_library.errors import ErrorCode, LibraryError
from lending_library.models.book import MAX_INTEGER
from lending_library.services.lending_library import LendingLibrary, make_lending_library


def error_of(call, *args) -> LibraryError:
    with pytest.raises(LibraryError) as exc_info:
        call(*args)
    return exc_info.value


class TestAddBook:
    def test_add_new_book(self, library):
        book = library.add_book(book_request())

        assert book.isbn == HOBBIT["isbn"]
        assert book.n_copies == 2
        assert library.get_book(HOBBIT["isbn"]).n_copies == 2

    def test_new_book_is_findable(self, library):
        library.add_book(book_request())
        assert [b.isbn for b in library.find_books({"search": "hobbit"})] == [HOBBIT["isbn"]]

    def test_readd_accumulates_copies(self, library):
        first = library.add_book(book_request(nCopies=3))
        second = library.add_book(book_request(nCopies=3))

        assert first.n_copies == 3
        assert second.n_copies == 3
        assert library.get_book(HOBBIT["isbn"]).n_copies == 6
        assert len(library.find_books({"search": "hobbit"})) == 1

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"title": "The Hobbit Returns"}, "title"),
            ({"authors": ["Tolkien"]}, "authors"),
            ({"pages": 999}, "pages"),
            ({"year": 2001}, "year"),
            ({"publisher": "HarperCollins"}, "publisher"),
            ({"title": "Other", "publisher": "Other"}, "title"),
        ],
    )
    def test_readd_inconsistent_book(self, library, overrides, field):
        library.add_book(book_request())

        error = error_of(library.add_book, book_request(**overrides))

        assert error.code == ErrorCode.BAD_REQ
        assert error.widget == field
        assert library.get_book(HOBBIT["isbn"]).to_document() == book_request()

    @pytest.mark.parametrize("field", ["pages", "nCopies"])
    def test_oversized_integer_is_rejected(self, library, field):
        error = error_of(library.add_book, book_request(**{field: 10**20}))

        assert error.code == ErrorCode.BAD_REQ
        assert error.widget == field
        assert error_of(library.get_book, HOBBIT["isbn"]).code == ErrorCode.BAD_REQ

    def test_readd_overflowing_copies(self, library):
        library.add_book(book_request())

        error = error_of(library.add_book, book_request(nCopies=MAX_INTEGER))

        assert error.code == ErrorCode.BAD_REQ
        assert error.widget == "nCopies"
        assert library.get_book(HOBBIT["isbn"]).n_copies == 2

    def test_invalid_request_never_reaches_store(self, library, monkeypatch):
        def fail(*args):
            raise AssertionError("store must not be called")

        monkeypatch.setattr(BookRepository, "add_or_increment", fail)

        assert error_of(library.add_book, {"isbn": HOBBIT["isbn"]}).code == ErrorCode.MISSING
        assert error_of(library.add_book, book_request(pages="x")).code == ErrorCode.BAD_TYPE
        assert error_of(library.add_book, book_request(pages=0)).code == ErrorCode.BAD_REQ

    def test_store_failure_is_db_error(self, library, monkeypatch):
        def fail(self, book):
            raise StoreError("disk full")

        monkeypatch.setattr(BookRepository, "add_or_increment", fail)

        error = error_of(library.add_book, book_request())
        assert error.code == ErrorCode.DB
        assert "disk full" in error.message


class TestFindBooks:
    def test_multi_word_search(self, stocked_library):
        books = stocked_library.find_books({"search": "tolkien hobbit", "index": 0, "count": 5})
        assert [b.title for b in books] == ["The Hobbit"]

    def test_search_is_case_insensitive_over_title_and_authors(self, stocked_library):
        books = stocked_library.find_books({"search": "TOLKIEN"})
        assert [b.isbn for b in books] == [FELLOWSHIP["isbn"], HOBBIT["isbn"]]

    def test_no_match_is_empty(self, stocked_library):
        assert stocked_library.find_books({"search": "nonexistentword"}) == []

    def test_short_words_are_ignored(self, stocked_library):
        books = stocked_library.find_books({"search": "a hahn"})
        assert [b.isbn for b in books] == [EXPRESS["isbn"]]

    def test_pagination_is_by_title(self, library):
        # insert out of title order
        for n in (7, 3, 12, 1, 9, 5, 11, 2, 8, 4, 10, 6):
            library.add_book(
                book_request(
                    isbn=f"111-222-333-{n % 10}" if n < 10 else f"111-222-34{n % 10}-0",
                    title=f"Javascript Volume {n:02d}",
                    authors=["Some Author"],
                    nCopies=1,
                )
            )

        page = library.find_books({"search": "javascript", "index": 5, "count": 5})
        assert [b.title for b in page] == [f"Javascript Volume {n:02d}" for n in range(6, 11)]

        last = library.find_books({"search": "javascript", "index": 10, "count": 5})
        assert [b.title for b in last] == ["Javascript Volume 11", "Javascript Volume 12"]

        default = library.find_books({"search": "javascript"})
        assert len(default) == 5

    def test_equal_titles_ordered_by_isbn(self, library):
        for isbn in ("999-000-000-2", "999-000-000-1"):
            library.add_book(book_request(isbn=isbn, title="Same Title", authors=["Twin"]))

        books = library.find_books({"search": "same title"})
        assert [b.isbn for b in books] == ["999-000-000-1", "999-000-000-2"]

    def test_slicing_is_done_by_the_store(self, stocked_library, monkeypatch):
        calls = []
        search = BookRepository.search_paginated

        def spy(self, words, index, count):
            calls.append((list(words), index, count))
            return search(self, words, index, count)

        monkeypatch.setattr(BookRepository, "search_paginated", spy)

        books = stocked_library.find_books({"search": "tolkien", "index": 1, "count": 1})

        assert calls == [(["tolkien"], 1, 1)]
        assert [b.isbn for b in books] == [HOBBIT["isbn"]]

    def test_oversized_window_is_rejected(self, stocked_library):
        for field in ("index", "count"):
            error = error_of(stocked_library.find_books, {"search": "hobbit", field: 10**20})
            assert error.code == ErrorCode.BAD_REQ
            assert error.widget == field

    def test_non_ascii_search_ignores_case(self, library):
        library.add_book(book_request(isbn="456-789-012-3", title="Émile", authors=["Rousseau"]))

        assert [b.title for b in library.find_books({"search": "émile"})] == ["Émile"]

    def test_configured_default_count(self, db_manager):
        library = LendingLibrary(db_manager, default_count=1)
        library.add_book(book_request(HOBBIT))
        library.add_book(book_request(FELLOWSHIP))

        assert len(library.find_books({"search": "tolkien"})) == 1

    @pytest.mark.parametrize(
        ("request_data", "code"),
        [
            ({}, ErrorCode.MISSING),
            ({"search": 12}, ErrorCode.MISSING),
            ({"search": "a"}, ErrorCode.BAD_REQ),
            ({"search": "hobbit", "index": "0"}, ErrorCode.BAD_TYPE),
            ({"search": "hobbit", "count": -1}, ErrorCode.BAD_REQ),
        ],
    )
    def test_invalid_requests(self, stocked_library, request_data, code):
        assert error_of(stocked_library.find_books, request_data).code == code


class TestCheckoutReturn:
    def test_checkout_return_round_trip(self, stocked_library):
        request = {"patronId": "joe", "isbn": HOBBIT["isbn"]}
        before = stocked_library.get_book(HOBBIT["isbn"]).n_copies

        stocked_library.checkout_book(request)
        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == before - 1
        assert stocked_library.get_patron("joe").checked_out_books == [HOBBIT["isbn"]]

        stocked_library.return_book(request)
        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == before
        assert stocked_library.get_patron("joe").checked_out_books == []

    def test_patron_created_on_first_checkout(self, stocked_library):
        assert error_of(stocked_library.get_patron, "joe").code == ErrorCode.BAD_REQ

        stocked_library.checkout_book({"patronId": "joe", "isbn": EXPRESS["isbn"]})

        assert stocked_library.get_patron("joe").to_document() == {
            "id": "joe",
            "checkedOutBooks": [EXPRESS["isbn"]],
        }

    def test_patron_holds_several_titles(self, stocked_library):
        for isbn in (HOBBIT["isbn"], EXPRESS["isbn"]):
            stocked_library.checkout_book({"patronId": "joe", "isbn": isbn})

        assert stocked_library.get_patron("joe").checked_out_books == sorted(
            [HOBBIT["isbn"], EXPRESS["isbn"]]
        )

    def test_unknown_book(self, stocked_library):
        error = error_of(stocked_library.checkout_book, {"patronId": "joe", "isbn": "999-999-999-9"})
        assert error.code == ErrorCode.BAD_REQ
        assert error.widget == "isbn"

    def test_no_copies_available(self, stocked_library):
        # the Fellowship has a single copy
        stocked_library.checkout_book({"patronId": "joe", "isbn": FELLOWSHIP["isbn"]})

        error = error_of(
            stocked_library.checkout_book, {"patronId": "sue", "isbn": FELLOWSHIP["isbn"]}
        )
        assert error.code == ErrorCode.BAD_REQ
        assert stocked_library.get_book(FELLOWSHIP["isbn"]).n_copies == 0

    def test_copies_never_go_negative(self, stocked_library):
        for patron in ("p1", "p2", "p3", "p4"):
            try:
                stocked_library.checkout_book({"patronId": patron, "isbn": HOBBIT["isbn"]})
            except LibraryError as e:
                assert e.code == ErrorCode.BAD_REQ
            assert stocked_library.get_book(HOBBIT["isbn"]).n_copies >= 0

        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == 0

    def test_different_patrons_share_a_title(self, stocked_library):
        stocked_library.checkout_book({"patronId": "joe", "isbn": HOBBIT["isbn"]})
        stocked_library.checkout_book({"patronId": "sue", "isbn": HOBBIT["isbn"]})

        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == 0

    def test_no_double_checkout(self, stocked_library):
        request = {"patronId": "joe", "isbn": HOBBIT["isbn"]}
        stocked_library.checkout_book(request)

        error = error_of(stocked_library.checkout_book, request)

        assert error.code == ErrorCode.BAD_REQ
        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == 1
        assert stocked_library.get_patron("joe").checked_out_books == [HOBBIT["isbn"]]

    def test_checkout_again_after_return(self, stocked_library):
        request = {"patronId": "joe", "isbn": HOBBIT["isbn"]}
        stocked_library.checkout_book(request)
        stocked_library.return_book(request)
        stocked_library.checkout_book(request)

        assert stocked_library.get_patron("joe").checked_out_books == [HOBBIT["isbn"]]

    def test_return_without_checkout(self, stocked_library):
        stocked_library.checkout_book({"patronId": "joe", "isbn": HOBBIT["isbn"]})

        for request in (
            {"patronId": "joe", "isbn": EXPRESS["isbn"]},
            {"patronId": "nobody", "isbn": HOBBIT["isbn"]},
        ):
            assert error_of(stocked_library.return_book, request).code == ErrorCode.BAD_REQ

        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == 1
        assert stocked_library.get_book(EXPRESS["isbn"]).n_copies == 3

    def test_double_return(self, stocked_library):
        request = {"patronId": "joe", "isbn": HOBBIT["isbn"]}
        stocked_library.checkout_book(request)
        stocked_library.return_book(request)

        assert error_of(stocked_library.return_book, request).code == ErrorCode.BAD_REQ
        assert stocked_library.get_book(HOBBIT["isbn"]).n_copies == 2

    @pytest.mark.parametrize(
        ("request_data", "code"),
        [
            ({"isbn": HOBBIT["isbn"]}, ErrorCode.MISSING),
            ({"patronId": "joe"}, ErrorCode.MISSING),
            ({"patronId": "", "isbn": HOBBIT["isbn"]}, ErrorCode.MISSING),
            ({"patronId": 7, "isbn": HOBBIT["isbn"]}, ErrorCode.BAD_TYPE),
            ({"patronId": "joe", "isbn": 7}, ErrorCode.BAD_TYPE),
        ],
    )
    def test_invalid_requests(self, stocked_library, request_data, code):
        assert error_of(stocked_library.checkout_book, request_data).code == code
        assert error_of(stocked_library.return_book, request_data).code == code

    def test_store_failure_during_checkout_is_db_error(self, stocked_library, monkeypatch):
        def fail(self, patron_id, isbn):
            raise StoreError("connection lost")

        monkeypatch.setattr(CirculationRepository, "checkout_book", fail)

        error = error_of(stocked_library.checkout_book, {"patronId": "joe", "isbn": HOBBIT["isbn"]})
        assert error.code == ErrorCode.DB

    def test_unwrapped_database_error_is_db_error(self, stocked_library, monkeypatch):
        def fail(self, patron_id, isbn):
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        monkeypatch.setattr(CirculationRepository, "return_book", fail)

        error = error_of(stocked_library.return_book, {"patronId": "joe", "isbn": HOBBIT["isbn"]})
        assert error.code == ErrorCode.DB


class TestClear:
    def test_clear_empties_library(self, stocked_library):
        stocked_library.checkout_book({"patronId": "joe", "isbn": HOBBIT["isbn"]})

        stocked_library.clear()

        assert stocked_library.find_books({"search": "tolkien"}) == []
        assert error_of(stocked_library.get_patron, "joe").code == ErrorCode.BAD_REQ
        assert error_of(stocked_library.get_book, HOBBIT["isbn"]).code == ErrorCode.BAD_REQ

    def test_clear_failure_is_db_error(self, stocked_library, monkeypatch):
        def fail(self):
            raise StoreError("locked")

        monkeypatch.setattr(CirculationRepository, "clear_all", fail)

        assert error_of(stocked_library.clear).code == ErrorCode.DB


def test_make_lending_library(test_database_url, test_db_path, clean_env, monkeypatch):
    monkeypatch.setenv("LENDING_LIBRARY_DATABASE_PATH", str(test_db_path))
    monkeypatch.setenv("LENDING_LIBRARY_DEFAULT_SEARCH_COUNT", "1")
    reset_config()

    library = make_lending_library(test_database_url)
    try:
        assert library.default_count == 1
        library.add_book(book_request())
        assert library.get_book(HOBBIT["isbn"]).title == "The Hobbit"
    finally:
        library.db_manager.close()
        reset_config()

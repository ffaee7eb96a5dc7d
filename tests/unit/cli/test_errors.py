"""Tests for snipvault CLI error messages."""

from __future__ import annotations

import pytest

from snipvault.cli.errors import (
    describe,
    err_corrupted_snippet,
    err_no_db,
    err_no_key,
    err_too_large,
    err_write_failed,
)
from snipvault.config import ENCRYPTION_KEY_ENV
from snipvault.errors import (
    ContentTooLarge,
    CorruptedSnippetError,
    CorruptedWriteError,
    DecryptionError,
    EmptyContent,
    InvalidQuery,
    NotFound,
    SnipvaultError,
    SnippetLimitExceeded,
    SourceRefTooLong,
    WordLimitExceeded,
)


def test_err_no_db_mentions_init():
    msg = err_no_db("x.db")
    assert "x.db" in msg
    assert "snipvault init" in msg


def test_err_no_key_mentions_env_var():
    msg = err_no_key()
    assert ENCRYPTION_KEY_ENV in msg
    assert "snipvault keygen" in msg


def test_err_too_large_in_megabytes():
    msg = err_too_large(30 * 1_048_576, 20 * 1_048_576)
    assert "30.0 MB" in msg
    assert "20.0 MB" in msg


def test_err_write_failed_reports_committed():
    msg = err_write_failed(5, 2, "disk full")
    assert "FAILED" in msg
    assert "2 chunk(s)" in msg
    assert "disk full" in msg


def test_err_corrupted_suggests_delete():
    assert "snipvault delete 9" in err_corrupted_snippet(9, "chunk 1 missing")


@pytest.mark.parametrize(
    "exc,expected",
    [
        (NotFound(3), "not found"),
        (EmptyContent(), "empty"),
        (ContentTooLarge(10, 5), "limit"),
        (WordLimitExceeded(10, 5), "words"),
        (SnippetLimitExceeded(5, 5), "snipvault delete"),
        (SourceRefTooLong(10, 5), "--source"),
        (InvalidQuery("blank"), "query"),
        (DecryptionError("bad tag"), ENCRYPTION_KEY_ENV),
        (CorruptedSnippetError(4, "size mismatch"), "size mismatch"),
        (CorruptedWriteError(4, 1, "boom"), "boom"),
    ],
)
def test_describe_maps_every_error(exc, expected):
    assert expected.lower() in describe(exc).lower()


def test_describe_fallback():
    assert "something odd" in describe(SnipvaultError("something odd"))

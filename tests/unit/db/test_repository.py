"""Tests for SnippetRepository."""

from __future__ import annotations

import pytest

from snipvault.db.models import SnippetStatus
from snipvault.errors import InvalidStatusTransition, SnippetLimitExceeded


def _completed(repo, owner_id=1, size=10):
    snippet = repo.create(owner_id, total_size=size)
    return repo.mark_completed(snippet, total_chunks=1, total_size=size)


# ------------------------------------------------------------------
# Create / status
# ------------------------------------------------------------------

def test_create_starts_processing(repo):
    snippet = repo.create(7, "https://example.com", total_size=42)
    assert snippet.id is not None
    stored = repo.get(snippet.id)
    assert stored.status is SnippetStatus.PROCESSING
    assert stored.owner_id == 7
    assert stored.source_ref == "https://example.com"
    assert stored.total_chunks == 0
    assert stored.total_size == 42
    assert stored.is_deleted is False


def test_mark_completed_records_counts(repo):
    snippet = repo.create(1)
    repo.mark_completed(snippet, total_chunks=3, total_size=5000)
    stored = repo.get(snippet.id)
    assert stored.status is SnippetStatus.COMPLETED
    assert stored.total_chunks == 3
    assert stored.total_size == 5000


def test_mark_failed_resets_chunk_count(repo):
    snippet = repo.create(1, total_size=100)
    repo.mark_failed(snippet)
    stored = repo.get(snippet.id)
    assert stored.status is SnippetStatus.FAILED
    assert stored.total_chunks == 0


def test_completed_cannot_fail(repo):
    snippet = _completed(repo)
    with pytest.raises(InvalidStatusTransition):
        repo.mark_failed(snippet)
    assert repo.get(snippet.id).status is SnippetStatus.COMPLETED


def test_transition_checks_stored_status(repo):
    snippet = repo.create(1)
    stale = repo.get(snippet.id)
    repo.mark_completed(snippet, 1, 1)
    with pytest.raises(InvalidStatusTransition):
        repo.mark_failed(stale)


def test_get_missing_returns_none(repo):
    assert repo.get(999) is None


# ------------------------------------------------------------------
# Ownership / soft delete
# ------------------------------------------------------------------

def test_get_for_owner_checks_owner(repo):
    snippet = repo.create(1)
    assert repo.get_for_owner(1, snippet.id) is not None
    assert repo.get_for_owner(2, snippet.id) is None


def test_soft_delete_flags_row(repo):
    snippet = _completed(repo)
    assert repo.soft_delete(1, snippet.id) is True
    stored = repo.get(snippet.id)
    assert stored is not None
    assert stored.is_deleted is True


def test_soft_delete_wrong_owner(repo):
    snippet = _completed(repo)
    assert repo.soft_delete(2, snippet.id) is False
    assert repo.get(snippet.id).is_deleted is False


def test_soft_delete_twice(repo):
    snippet = _completed(repo)
    repo.soft_delete(1, snippet.id)
    assert repo.soft_delete(1, snippet.id) is False


# ------------------------------------------------------------------
# Listing
# ------------------------------------------------------------------

def test_list_live_newest_first_and_filtered(repo):
    a = _completed(repo)
    b = _completed(repo)
    repo.create(1)  # PROCESSING, not listed
    deleted = _completed(repo)
    repo.soft_delete(1, deleted.id)
    _completed(repo, owner_id=2)

    ids = [s.id for s in repo.list_live(1)]
    assert ids == [b.id, a.id]


def test_list_live_limit(repo):
    for _ in range(5):
        _completed(repo)
    assert len(repo.list_live(1, limit=3)) == 3


def test_recent_ids_prefers_accessed(repo):
    a = _completed(repo)
    b = _completed(repo)
    c = _completed(repo)
    repo.mark_accessed(a.id)
    assert repo.recent_ids(1, 50) == [a.id, c.id, b.id]


def test_recent_ids_limit(repo):
    for _ in range(5):
        _completed(repo)
    assert len(repo.recent_ids(1, 2)) == 2


def test_get_many(repo):
    a = _completed(repo)
    b = _completed(repo)
    found = repo.get_many([b.id, a.id, 999])
    assert set(found) == {a.id, b.id}


def test_get_many_empty(repo):
    assert repo.get_many([]) == {}


def test_count_live_excludes_failed_and_deleted(repo):
    _completed(repo)
    repo.create(1)  # PROCESSING counts
    failed = repo.create(1)
    repo.mark_failed(failed)
    deleted = _completed(repo)
    repo.soft_delete(1, deleted.id)
    assert repo.count_live(1) == 2


def test_create_within_limit(repo):
    repo.create(1, max_live=2)
    repo.create(1, max_live=2)
    with pytest.raises(SnippetLimitExceeded) as exc_info:
        repo.create(1, max_live=2)
    assert exc_info.value.current == 2
    assert repo.count_live(1) == 2
    repo.create(2, max_live=2)


def test_create_limit_ignores_failed(repo):
    failed = repo.create(1, max_live=1)
    repo.mark_failed(failed)
    repo.create(1, max_live=1)
    assert repo.count_live(1) == 1

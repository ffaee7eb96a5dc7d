"""Linear decrypt-and-scan search over an owner's live snippets.

No index is persisted: plaintext only ever exists transiently in memory, so
each query reassembles candidate snippets and matches a case-insensitive
substring. Candidates are read in batches of the assembler's worker count and
only matches are kept, so memory is bounded by one batch plus the results.
Time is proportional to the owner's total live content.
"""

from __future__ import annotations

import logging

from snipvault.db.models import SnippetContent, SnippetSummary
from snipvault.db.repository import SnippetRepository
from snipvault.pipeline.assembler import Assembler

logger = logging.getLogger(__name__)


class SearchEngine:
    """Substring search across one owner's snippets, newest first."""

    def __init__(self, repo: SnippetRepository, assembler: Assembler, max_snippets: int = 0) -> None:
        """
        Args:
            repo: Snippet metadata repository.
            assembler: Read path used to reassemble candidates.
            max_snippets: Scan only this many of the newest snippets (0 = all).
        """
        self._repo = repo
        self._assembler = assembler
        self._max_snippets = max_snippets

    def search(self, owner_id: int, query: str) -> list[SnippetContent]:
        """Return snippets of *owner_id* whose content contains *query*, ignoring case.

        The query is expected to be non-empty; callers validate it. Read
        failures propagate.
        """
        candidates = self._repo.list_live(owner_id, limit=self._max_snippets or None)
        if not candidates:
            return []

        needle = query.casefold()
        batch_size = max(1, self._assembler.workers)
        results: list[SnippetContent] = []
        for start in range(0, len(candidates), batch_size):
            batch = candidates[start : start + batch_size]
            contents = self._assembler.read_many(batch)
            results.extend(
                SnippetContent(summary=SnippetSummary.from_snippet(snippet), content=content)
                for snippet, content in zip(batch, contents)
                if needle in content.decode("utf-8", errors="replace").casefold()
            )
        logger.debug(
            "Search for owner %d scanned %d snippet(s), %d match(es)",
            owner_id,
            len(candidates),
            len(results),
        )
        return results

"""snipvault rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from snipvault.cli.errors import err_no_db
    console.print(err_no_db(".snipvault.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

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


def err_no_db(db_path: str = ".snipvault.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  snipvault init"
    )


def err_no_key() -> str:
    """SNIPVAULT_ENCRYPTION_KEY is not set."""
    return (
        "[red]Error:[/] No encryption key configured.\n"
        f"  Set:  export {ENCRYPTION_KEY_ENV}=$(snipvault keygen)"
    )


def err_config(message: str) -> str:
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_not_found(snippet_id: int) -> str:
    return (
        f"[yellow]Snippet not found:[/] {snippet_id} does not exist or was deleted.\n"
        "  Run:  snipvault recent  to see your snippets."
    )


def err_empty_content() -> str:
    return (
        "[red]Error:[/] Content is empty — nothing to store.\n"
        "  Pass a non-empty file, or pipe text:  echo hello | snipvault put -"
    )


def err_too_large(size: int, limit: int) -> str:
    return (
        f"[red]Error:[/] Content is {size / 1_048_576:.1f} MB; the limit is "
        f"{limit / 1_048_576:.1f} MB.\n"
        "  Split the content into smaller snippets, or raise storage.max_content_bytes."
    )


def err_word_limit(words: int, limit: int) -> str:
    return (
        f"[red]Error:[/] Content has {words} words; the limit is {limit}.\n"
        "  Split the content, or raise storage.max_words (0 disables the check)."
    )


def err_snippet_limit(current: int, limit: int) -> str:
    return (
        f"[red]Error:[/] Snippet limit reached ({current}/{limit}).\n"
        "  Delete old snippets:  snipvault delete <id>"
    )


def err_source_ref(length: int, limit: int) -> str:
    return (
        f"[red]Error:[/] Source reference is {length} characters; the limit is {limit}.\n"
        "  Shorten --source."
    )


def err_empty_query() -> str:
    return (
        "[red]Error:[/] Search query is empty.\n"
        "  Example:  snipvault search 'hello'"
    )


def err_decryption() -> str:
    return (
        "[red]Error:[/] Stored data could not be decrypted.\n"
        f"  Check that {ENCRYPTION_KEY_ENV} is the key the snippets were written with."
    )


def err_corrupted_snippet(snippet_id: int, reason: str) -> str:
    return (
        f"[red]Error:[/] Snippet {snippet_id} is corrupted: {reason}\n"
        f"  Delete it:  snipvault delete {snippet_id}"
    )


def err_write_failed(snippet_id: int, committed: int, reason: str) -> str:
    return (
        f"[red]Error:[/] Snippet {snippet_id} could not be stored (FAILED after "
        f"{committed} chunk(s)): {reason}\n"
        "  No partial data was kept. Retry the command."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path, or pipe content:  cat file | snipvault put -"
    )


def describe(exc: SnipvaultError) -> str:
    """Map a snipvault error to its actionable message."""
    if isinstance(exc, NotFound):
        return err_not_found(exc.snippet_id)
    if isinstance(exc, EmptyContent):
        return err_empty_content()
    if isinstance(exc, ContentTooLarge):
        return err_too_large(exc.size, exc.limit)
    if isinstance(exc, WordLimitExceeded):
        return err_word_limit(exc.words, exc.limit)
    if isinstance(exc, SnippetLimitExceeded):
        return err_snippet_limit(exc.current, exc.limit)
    if isinstance(exc, SourceRefTooLong):
        return err_source_ref(exc.length, exc.limit)
    if isinstance(exc, InvalidQuery):
        return err_empty_query()
    if isinstance(exc, DecryptionError):
        return err_decryption()
    if isinstance(exc, CorruptedSnippetError):
        return err_corrupted_snippet(exc.snippet_id, exc.reason)
    if isinstance(exc, CorruptedWriteError):
        return err_write_failed(exc.snippet_id, exc.committed, exc.reason)
    return f"[red]Error:[/] {exc}"
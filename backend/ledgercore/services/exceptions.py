# Overview: Exception hierarchy and result type shared by the posting services.

from __future__ import annotations

from dataclasses import dataclass, field


class PostingError(Exception):
    """Base class for posting failures. Carries a user-facing message and details."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PostingError):
    """Required account is missing or inactive for the organization."""
    pass


class ValidationError(PostingError):
    """Bad journal lines, posting date, quantities or references."""
    pass


class PersistenceError(PostingError):
    """A data-store write failed."""
    pass


class ImmutableRecordError(PostingError):
    """An ORM update or delete was attempted on a stock ledger entry."""
    pass


class ConflictError(PostingError):
    """
    Optimistic concurrency conflict.

    Retryable: run_with_retry rolls the session back and re-runs the operation.
    """
    pass


class LedgerConflictError(ConflictError):
    """Another writer appended to the same (org, item, warehouse) ledger key first."""
    pass


class SequenceConflictError(ConflictError):
    """A document sequence row was created concurrently."""
    pass


class UnrecoverablePostingError(Exception):
    """
    Rolling back a failed posting itself failed.

    Never converted into a PostingResult: callers must see it.
    """

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original = original


@dataclass
class PostingResult:
    success: bool
    skipped: bool = False
    journal_entry_id: int | None = None
    journal_entry_ids: list[int] = field(default_factory=list)
    stock_transaction_code: str | None = None
    error: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def posted(cls, *, journal_entry_ids=None, stock_transaction_code=None, details=None) -> "PostingResult":
        ids = [i for i in (journal_entry_ids or []) if i is not None]
        return cls(
            success=True,
            journal_entry_id=ids[0] if ids else None,
            journal_entry_ids=ids,
            stock_transaction_code=stock_transaction_code,
            details=details or {},
        )

    @classmethod
    def skipped_noop(cls, reason: str, details=None) -> "PostingResult":
        data = {"reason": reason}
        data.update(details or {})
        return cls(success=True, skipped=True, details=data)

    @classmethod
    def failure(cls, message: str, details=None) -> "PostingResult":
        return cls(success=False, error=message, details=details or {})

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.skipped:
            data["skipped"] = True
        if self.journal_entry_id is not None:
            data["journal_entry_id"] = self.journal_entry_id
        if len(self.journal_entry_ids) > 1:
            data["journal_entry_ids"] = list(self.journal_entry_ids)
        if self.stock_transaction_code:
            data["stock_transaction_code"] = self.stock_transaction_code
        if self.error:
            data["error"] = self.error
        if self.details:
            data["details"] = dict(self.details)
        return data

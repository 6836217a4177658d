"""Exception types raised by the search pipeline."""
from typing import Optional


class QueryValidationError(ValueError):
    """Malformed or missing query / caller id, rejected before any work is done."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ExtractionDegradation(RuntimeError):
    """
    LLM fallback could not produce a usable result.

    Raised inside the LLM extractor on timeout, unparseable output or transport
    failure. It is caught there and never escapes to callers.
    """

    def __init__(self, reason: str, detail: Optional[str] = None):
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
        self.detail = detail


class RetrievalBranchFailure(RuntimeError):
    """One search branch (semantic or keyword) failed or ran out of time."""

    def __init__(self, branch: str, cause: Optional[BaseException] = None):
        super().__init__(f"{branch} search failed: {cause}" if cause else f"{branch} search failed")
        self.branch = branch
        self.cause = cause


class RetrievalTotalFailure(RuntimeError):
    """Both search branches failed; the request cannot be answered."""

    retryable = True

    def __init__(self, failures: Optional[list] = None):
        self.failures = failures or []
        branches = ", ".join(f.branch for f in self.failures) or "all"
        super().__init__(f"Search unavailable ({branches} failed)")

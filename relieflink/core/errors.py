"""
errors.py — Exception taxonomy for the location engine.

  SourceFetchFailure  — one source could not be fetched. Absorbed by
                        SourceFetcher and turned into a "failed" snapshot.
  MutationFailure     — the remote store rejected create/dismiss/report.
                        Propagates to the caller.
  ValidationFailure   — a draft is incomplete. Raised before any network call.
  OverlayLoadFailure  — every hazard layer failed to load.

A missing author identity is never an error: IdentityStore generates one.
"""

from typing import Optional


class ReliefLinkError(Exception):
    """Base class for all engine errors."""


class SourceFetchFailure(ReliefLinkError):
    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class MutationFailure(ReliefLinkError):
    def __init__(
        self,
        operation: str,
        reason: str,
        pin_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.operation = operation
        self.reason = reason
        self.pin_id = pin_id
        self.status_code = status_code
        super().__init__(f"{operation} failed: {reason}")


class ValidationFailure(ReliefLinkError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class OverlayLoadFailure(ReliefLinkError):
    def __init__(self, failures: dict[str, str]):
        self.failures = failures
        names = ", ".join(failures) or "none configured"
        super().__init__(f"No overlay layers loaded ({names})")

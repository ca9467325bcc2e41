from __future__ import annotations

from typing import Optional

from ..models import Period


class PortalError(RuntimeError):
    """
    Base class for failures while driving the portal.
    """


class AuthenticationError(PortalError):
    """
    Raised when the login form cannot be used or the session is not authenticated afterwards.
    Fatal: no categories are attempted.
    """


class NavigationError(PortalError):
    """
    Raised when navigating to a category's invoice page fails. Scoped to one category.
    """


class NoPeriodMatchError(PortalError):
    """
    Raised when the page does not show the current billing period. Triggers the archive fallback.
    """

    def __init__(self, message: str, *, seen: Optional[Period] = None) -> None:
        super().__init__(message)
        # The (non-current) period the page showed, if any.
        self.seen = seen


class CaptureFailedError(PortalError):
    """
    Raised when no PDF blob could be captured from the page.
    """


class OverallTimeoutError(TimeoutError):
    """
    Raised when the run-wide deadline expires. Fatal, and never treated as a category failure.
    """

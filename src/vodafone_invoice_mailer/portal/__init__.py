from .client import PortalCredentials, PortalTiming, VodafonePortalClient
from .errors import (
    AuthenticationError,
    CaptureFailedError,
    NavigationError,
    NoPeriodMatchError,
    OverallTimeoutError,
    PortalError,
)
from .periods import PERIOD_PATTERNS, extract_first_archive_entry, extract_period
from .session import Deadline, PlaywrightSession, SessionDriver, SessionOptions, open_session

__all__ = [
    "AuthenticationError",
    "CaptureFailedError",
    "Deadline",
    "NavigationError",
    "NoPeriodMatchError",
    "OverallTimeoutError",
    "PERIOD_PATTERNS",
    "PlaywrightSession",
    "PortalCredentials",
    "PortalError",
    "PortalTiming",
    "SessionDriver",
    "SessionOptions",
    "VodafonePortalClient",
    "extract_first_archive_entry",
    "extract_period",
    "open_session",
]

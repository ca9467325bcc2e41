from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..models import Period
from ..util.months import month_number


@dataclass(frozen=True)
class PeriodPattern:
    """
    A labeled phrasing of the billing period. Group 1 is the month token, group 2 the year.
    """

    name: str
    regex: re.Pattern[str]

    def match(self, text: str) -> Optional[Period]:
        # Only the first occurrence counts; an unknown month rejects the whole pattern.
        m = self.regex.search(text)
        if not m:
            return None
        return _period_from_tokens(m.group(1), m.group(2))


# Priority order matters: a page can show the current heading plus older dates further down.
# More specific/labeled phrasing comes first.
PERIOD_PATTERNS: tuple[PeriodPattern, ...] = (
    PeriodPattern("current_invoice", re.compile(r"Aktuelle Rechnung (\w+) (\d{4})\b")),
    PeriodPattern("invoice_heading", re.compile(r"Rechnung (\w+) (\d{4})\b")),
    PeriodPattern("invoice_date", re.compile(r"Rechnungsdatum[:\s]+\d+\.\s*(\w+)\s+(\d{4})\b")),
    PeriodPattern("month_before_invoice", re.compile(r"(\w+)\s+(\d{4})\s+Rechnung")),
    PeriodPattern("invoice_from", re.compile(r"Rechnung vom \d+\.\s*(\w+)\s+(\d{4})\b")),
)

ARCHIVE_MARKER = "Rechnungsarchiv"

# e.g. "Januar\n04.01.2026" (month label above the invoice date)
_ARCHIVE_ENTRY_RE = re.compile(r"(\w+)\s+\d{2}\.\d{2}\.(\d{4})\b")


def _period_from_tokens(month_token: str, year_token: str) -> Optional[Period]:
    month = month_number(month_token)
    if month is None:
        return None
    if len(year_token) != 4 or not year_token.isdigit():
        return None
    return Period(month=month, year=int(year_token), month_name=month_token)


def extract_period(page_text: str) -> Optional[Period]:
    """
    Extract the billing period shown on an invoice page.

    Patterns are tried in `PERIOD_PATTERNS` order; the first one that yields a known
    (case-sensitive) German month name and a four-digit year wins.
    """
    text = page_text or ""
    for pattern in PERIOD_PATTERNS:
        period = pattern.match(text)
        if period is not None:
            return period
    return None


def extract_first_archive_entry(page_text: str) -> Optional[Period]:
    """
    Return the newest entry of the invoice archive ("Rechnungsarchiv") section.

    Only text after the first archive marker is considered, so the current-invoice heading
    above it never counts as an archive entry. Fails closed: if the first entry's month token
    is unknown we return None instead of skipping to an older line, because the archive
    download trigger always activates the first listed document.
    """
    text = page_text or ""
    idx = text.find(ARCHIVE_MARKER)
    if idx < 0:
        return None
    m = _ARCHIVE_ENTRY_RE.search(text, idx)
    if not m:
        return None
    return _period_from_tokens(m.group(1), m.group(2))

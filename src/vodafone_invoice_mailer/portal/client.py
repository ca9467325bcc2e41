from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Optional

from ..categories import DocumentCategory
from ..models import (
    AcquisitionOutcome,
    Captured,
    CaptureFailed,
    Document,
    NotFound,
    NotReady,
    Period,
)
from .capture import Trigger, capture_binary_artifact
from .errors import (
    AuthenticationError,
    CaptureFailedError,
    NavigationError,
    NoPeriodMatchError,
    OverallTimeoutError,
)
from .periods import extract_first_archive_entry, extract_period
from .selectors import PortalSelectors
from .session import BODY_TEXT_JS, SessionDriver, best_effort


logger = logging.getLogger(__name__)


_CLICK_IF_PRESENT_JS = """
(selector) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.click();
  return true;
}
"""

_IS_VISIBLE_JS = """
(selector) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  const rect = el.getBoundingClientRect();
  const style = window.getComputedStyle(el);
  return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
}
"""

# The contract card is an <h2> inside a link (or a clickable parent).
_CLICK_CONTRACT_CARD_JS = """
([selector, label]) => {
  for (const h of document.querySelectorAll(selector)) {
    const text = h.innerText || h.textContent || '';
    if (text.includes(label)) {
      (h.closest('a') || h.parentElement || h).click();
      return true;
    }
  }
  return false;
}
"""

_CLICK_INVOICES_LINK_JS = """
([containsTexts, exactTexts, buttonTexts]) => {
  for (const a of document.querySelectorAll('a')) {
    const text = (a.innerText || a.textContent || '').trim();
    if (containsTexts.some(t => text.includes(t)) || exactTexts.includes(text)) {
      a.click();
      return true;
    }
  }
  for (const btn of document.querySelectorAll('button')) {
    const text = btn.innerText || btn.textContent || '';
    if (buttonTexts.some(t => text.includes(t))) {
      btn.click();
      return true;
    }
  }
  return false;
}
"""

# The portal marks the download button disabled even when the PDF is available, so force-enable it.
_DOWNLOAD_CURRENT_JS = """
(texts) => {
  for (const btn of document.querySelectorAll('button, a, [role="button"]')) {
    const text = btn.innerText || btn.textContent || '';
    if (!texts.some(t => text.includes(t))) continue;
    btn.disabled = false;
    btn.removeAttribute('disabled');
    btn.removeAttribute('aria-disabled');
    btn.classList.remove('disabled');
    btn.click();
    return true;
  }
  return false;
}
"""

# First download control that follows the archive marker in document order (newest entry).
_OPEN_ARCHIVE_ENTRY_JS = """
([marker, texts]) => {
  const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT);
  let markerEl = null;
  while (walker.nextNode()) {
    if ((walker.currentNode.nodeValue || '').includes(marker)) {
      markerEl = walker.currentNode.parentElement;
      break;
    }
  }
  if (!markerEl) return false;
  for (const el of document.querySelectorAll('button, a, [role="button"]')) {
    if (!(markerEl.compareDocumentPosition(el) & Node.DOCUMENT_POSITION_FOLLOWING)) continue;
    const text = el.innerText || el.textContent || '';
    if (!texts.some(t => text.includes(t))) continue;
    el.disabled = false;
    el.removeAttribute('disabled');
    el.removeAttribute('aria-disabled');
    el.click();
    return true;
  }
  return false;
}
"""


@dataclass(frozen=True)
class PortalCredentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class PortalTiming:
    """
    Settle delays and bounded polls (seconds). The run-wide deadline lives in the session.
    """

    settle_seconds: float = 3.0
    login_settle_seconds: float = 5.0
    login_form_timeout_seconds: float = 30.0
    poll_cycles: int = 15
    poll_interval_seconds: float = 1.0
    capture_wait_seconds: float = 5.0
    capture_poll_interval_seconds: float = 0.5


class VodafonePortalClient:
    """
    MeinVodafone invoice acquisition: log in once, then run the per-category state machine
    (navigate -> read period -> capture current invoice or fall back to the archive).
    """

    def __init__(
        self,
        session: SessionDriver,
        *,
        creds: PortalCredentials,
        selectors: Optional[PortalSelectors] = None,
        timing: Optional[PortalTiming] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.session = session
        self.creds = creds
        self.selectors = selectors or PortalSelectors()
        self.timing = timing or PortalTiming()
        self._today = today or date.today

    def run(self, categories: Iterable[DocumentCategory]) -> list[AcquisitionOutcome]:
        """
        Authenticate once, then acquire each category in order against the shared session.

        `AuthenticationError` and `OverallTimeoutError` abort the run; everything else is
        recorded as that category's outcome.
        """
        self.login()

        outcomes: list[AcquisitionOutcome] = []
        for category in categories:
            logger.info("Searching %s...", category.display_name)
            outcome = self.acquire(category)
            self._log_outcome(outcome)
            outcomes.append(outcome)
        return outcomes

    def login(self) -> None:
        s = self.selectors
        try:
            self.session.navigate(s.login_url)
            self.session.wait_visible(s.username_input, self.timing.login_form_timeout_seconds)
        except OverallTimeoutError:
            raise
        except Exception as e:
            self.session.save_debug("login_form_missing")
            raise AuthenticationError(f"Login page did not load: {e}") from e

        best_effort("dismiss cookie banner", self.session.evaluate, _CLICK_IF_PRESENT_JS, s.cookie_reject_button)
        self.session.sleep(1.0)

        try:
            self.session.send_keys(s.username_input, self.creds.username)
            self.session.send_keys(s.password_input, self.creds.password)
            self.session.click(s.submit_button)
        except OverallTimeoutError:
            raise
        except Exception as e:
            self.session.save_debug("login_form_failure")
            raise AuthenticationError(f"Login form could not be submitted: {e}") from e

        self.session.sleep(self.timing.login_settle_seconds)

        if not self._wait_until_login_form_gone():
            self.session.save_debug("login_not_completed")
            raise AuthenticationError(
                "Login did not complete (login form still visible after submit). Check vodafone.user/pass."
            )
        logger.info("Logged in.")

    def acquire(self, category: DocumentCategory) -> AcquisitionOutcome:
        """
        Run the acquisition state machine for one category. Never raises for category-scoped
        failures; the overall deadline still propagates.
        """
        try:
            return self._acquire(category)
        except OverallTimeoutError:
            raise
        except Exception as e:
            logger.warning("%s: navigation failed (%s)", category.display_name, e)
            logger.debug("Navigation failure details", exc_info=True)
            best_effort("save debug artifacts", self.session.save_debug, f"{category.key}_navigation_failed")
            return NotFound(category=category, reason=f"navigation failed: {e}")

    def _acquire(self, category: DocumentCategory) -> AcquisitionOutcome:
        self._open_invoice_page(category)
        text = self._page_text()
        current = Period.current(self._today())

        seen: Optional[Period] = None
        primary_error: Optional[CaptureFailedError] = None
        try:
            document = self._capture_current(category, text, current)
            return Captured(document=document, via_archive=False)
        except NoPeriodMatchError as e:
            seen = e.seen
            logger.info("%s: %s; checking invoice archive.", category.display_name, e)
        except CaptureFailedError as e:
            primary_error = e
            logger.info("%s: current invoice capture failed (%s); checking invoice archive.", category.display_name, e)

        archived = extract_first_archive_entry(text)
        if archived is None:
            best_effort("save debug artifacts", self.session.save_debug, f"{category.key}_no_archive_entry")
            if primary_error is not None:
                return CaptureFailed(category=category, reason=str(primary_error))
            if seen is not None:
                return NotReady(category=category, period=seen)
            return NotFound(category=category, reason="no invoice period on page and no archive entry")

        logger.info("Downloading %s %s from the invoice archive...", category.display_name, archived.label)
        try:
            payload = self._capture(self._archive_trigger())
        except CaptureFailedError as e:
            best_effort("save debug artifacts", self.session.save_debug, f"{category.key}_archive_capture_failed")
            return CaptureFailed(category=category, reason=str(e))

        document = Document.create(category=category, period=archived, payload=payload)
        return Captured(document=document, via_archive=True)

    def _capture_current(self, category: DocumentCategory, text: str, current: Period) -> Document:
        period = extract_period(text)
        if period is None:
            raise NoPeriodMatchError("no invoice period found on page")
        if period != current:
            raise NoPeriodMatchError(
                f"latest invoice is {period.label}, {current.label} not yet available",
                seen=period,
            )

        logger.info("Downloading %s %s...", category.display_name, period.label)
        payload = self._capture(self._download_current_trigger())
        return Document.create(category=category, period=period, payload=payload)

    def _capture(self, trigger: Trigger) -> bytes:
        return capture_binary_artifact(
            self.session,
            trigger,
            wait_seconds=self.timing.capture_wait_seconds,
            poll_interval_seconds=self.timing.capture_poll_interval_seconds,
        )

    def _download_current_trigger(self) -> Trigger:
        return Trigger(
            description="current invoice download",
            script=_DOWNLOAD_CURRENT_JS,
            arg=list(self.selectors.download_current_texts),
        )

    def _archive_trigger(self) -> Trigger:
        return Trigger(
            description="invoice archive download",
            script=_OPEN_ARCHIVE_ENTRY_JS,
            arg=[self.selectors.archive_marker, list(self.selectors.archive_download_texts)],
        )

    def _open_invoice_page(self, category: DocumentCategory) -> None:
        s = self.selectors
        settle = self.timing.settle_seconds
        try:
            self.session.navigate(s.services_url)
            self.session.sleep(settle)
            self._wait_for_any_text((category.nav_label,))

            if not self.session.evaluate(_CLICK_CONTRACT_CARD_JS, [s.contract_heading_selector, category.nav_label]):
                raise NavigationError(f"contract card {category.nav_label!r} not found on services page")
            self.session.sleep(settle)

            clicked = self.session.evaluate(
                _CLICK_INVOICES_LINK_JS,
                [list(s.invoices_link_texts), list(s.invoices_link_exact_texts), list(s.invoices_button_texts)],
            )
            if not clicked:
                logger.warning("%s: invoices link not found; continuing on the current page.", category.display_name)
            self.session.sleep(settle)

            if not self._wait_for_any_text(s.invoice_page_ready_texts):
                logger.debug("%s: invoice page markers not seen; parsing whatever rendered.", category.display_name)
        except (OverallTimeoutError, NavigationError):
            raise
        except Exception as e:
            raise NavigationError(str(e)) from e

    def _page_text(self) -> str:
        text = self.session.evaluate(BODY_TEXT_JS)
        return text if isinstance(text, str) else ""

    def _evaluate_or_default(self, script: str, arg: Any = None, *, default: Any = None) -> Any:
        # Page scripts can fail transiently while the SPA re-renders or navigates.
        try:
            return self.session.evaluate(script, arg)
        except OverallTimeoutError:
            raise
        except Exception:
            logger.debug("Page script failed; treating as not ready.", exc_info=True)
            return default

    def _wait_for_any_text(self, needles: tuple[str, ...]) -> bool:
        """
        Poll the rendered body text (bounded) for any of `needles`. Returns False instead of failing.
        """
        for _ in range(max(1, self.timing.poll_cycles)):
            text = self._evaluate_or_default(BODY_TEXT_JS, default="") or ""
            if any(n in text for n in needles):
                return True
            self.session.sleep(self.timing.poll_interval_seconds)
        return False

    def _wait_until_login_form_gone(self) -> bool:
        for _ in range(max(1, self.timing.poll_cycles)):
            visible = self._evaluate_or_default(_IS_VISIBLE_JS, self.selectors.username_input, default=True)
            if not visible:
                return True
            self.session.sleep(self.timing.poll_interval_seconds)
        return False

    def _log_outcome(self, outcome: AcquisitionOutcome) -> None:
        if isinstance(outcome, Captured):
            doc = outcome.document
            logger.info(
                "%s %s captured%s (%s, %d bytes)",
                doc.category.display_name,
                doc.period.label,
                " from archive" if outcome.via_archive else "",
                doc.filename,
                len(doc.payload),
            )
        elif isinstance(outcome, NotReady):
            current = Period.current(self._today())
            logger.info("%s %s not yet ready!", outcome.category.display_name, current.label)
        elif isinstance(outcome, NotFound):
            logger.info("%s: no invoice found (%s)", outcome.category.display_name, outcome.reason)
        elif isinstance(outcome, CaptureFailed):
            logger.warning("%s: invoice capture failed (%s)", outcome.category.display_name, outcome.reason)

from __future__ import annotations

import base64
import sys
from typing import Any, Callable
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


from vodafone_invoice_mailer.portal import client as portal_client  # noqa: E402
from vodafone_invoice_mailer.portal.capture import (  # noqa: E402
    HARVEST_CAPTURES_JS,
    INSTALL_CAPTURE_JS,
    PENDING_CAPTURES_JS,
)
from vodafone_invoice_mailer.portal.session import BODY_TEXT_JS  # noqa: E402


def pytest_configure(config: Any) -> None:
    config.addinivalue_line(
        "markers",
        "portal: integration smoke tests that require real MeinVodafone + SMTP credentials",
    )
    config.addinivalue_line(
        "markers",
        "browser: tests that launch a local headless Chromium via Playwright (no network)",
    )


def make_pdf_data_url(payload: bytes) -> str:
    return "data:application/pdf;base64," + base64.b64encode(payload).decode("ascii")


class FakeSession:
    """
    Scriptable in-memory `SessionDriver`.

    Page scripts are recognized by identity. Blob capture is simulated: a trigger listed in
    `artifacts` pushes its data URLs into the queue, but only once the hook is installed.
    """

    def __init__(self, *, page_text: str = "") -> None:
        self.page_text = page_text
        self.artifacts: dict[str, list[str]] = {}
        # Trigger/click scripts whose control is missing (evaluate returns False).
        self.missing_controls: set[str] = set()
        # Contract cards (by nav label) that are not on the services page.
        self.missing_contracts: set[str] = set()
        # Contract cards (by nav label) whose click raises.
        self.contract_errors: dict[str, BaseException] = {}
        # Page scripts that raise when evaluated.
        self.script_errors: dict[str, BaseException] = {}
        # Session methods ("navigate", "wait_visible", ...) that raise.
        self.method_errors: dict[str, BaseException] = {}
        self.login_form_visible = False

        self.queue: list[str] = []
        self.hook_installed = False
        self.install_calls = 0
        self.calls: list[tuple[str, Any]] = []
        self.evaluated: list[str] = []
        self.slept = 0.0
        self.debug_saved: list[str] = []

    def _record(self, name: str, value: Any) -> None:
        self.calls.append((name, value))
        exc = self.method_errors.get(name)
        if exc is not None:
            raise exc

    def navigate(self, url: str) -> None:
        self._record("navigate", url)

    def wait_visible(self, selector: str, timeout: float) -> None:
        self._record("wait_visible", selector)

    def click(self, selector: str) -> None:
        self._record("click", selector)

    def send_keys(self, selector: str, text: str) -> None:
        self._record("send_keys", (selector, text))

    def sleep(self, seconds: float) -> None:
        self.slept += seconds

    def save_debug(self, name: str) -> None:
        self.debug_saved.append(name)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append(script)
        exc = self.script_errors.get(script)
        if exc is not None:
            raise exc

        if script == INSTALL_CAPTURE_JS:
            self.install_calls += 1
            self.queue = []
            if self.hook_installed:
                return False
            self.hook_installed = True
            return True
        if script == PENDING_CAPTURES_JS:
            return len(self.queue)
        if script == HARVEST_CAPTURES_JS:
            queued, self.queue = self.queue, []
            return queued
        if script == BODY_TEXT_JS:
            return self.page_text
        if script == portal_client._IS_VISIBLE_JS:
            return self.login_form_visible
        if script == portal_client._CLICK_CONTRACT_CARD_JS:
            label = arg[1]
            if label in self.contract_errors:
                raise self.contract_errors[label]
            return label not in self.missing_contracts

        if script in self.missing_controls:
            return False
        if script in self.artifacts and self.hook_installed:
            self.queue.extend(self.artifacts[script])
        return True

    def count(self, script: str) -> int:
        return sum(1 for s in self.evaluated if s == script)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def pdf_data_url() -> Callable[[bytes], str]:
    return make_pdf_data_url


@pytest.fixture
def no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep a developer's shell (or .env) from leaking into config defaults.
    for key in (
        "VODAFONE_USER",
        "VODAFONE_PASS",
        "EMAIL_FROM",
        "EMAIL_TO",
        "EMAIL_SUBJECT",
        "SMTP_HOST",
        "SMTP_PORT",
        "SMTP_USER",
        "SMTP_PASS",
        "BROWSER_HEADLESS",
        "INVOICE_CATEGORIES",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(key, raising=False)

from __future__ import annotations

import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .errors import OverallTimeoutError


logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

# Full rendered text of the page, as a human would read it.
BODY_TEXT_JS = "() => (document.body && (document.body.innerText || document.body.textContent)) || ''"

# Hide the most common automation fingerprint before any page script runs.
_HIDE_WEBDRIVER_JS = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"


class SessionDriver(Protocol):
    """
    The browser-control capability the acquisition pipeline consumes.

    All timeouts and durations are in seconds.
    """

    def navigate(self, url: str) -> None: ...

    def wait_visible(self, selector: str, timeout: float) -> None: ...

    def click(self, selector: str) -> None: ...

    def send_keys(self, selector: str, text: str) -> None: ...

    def sleep(self, seconds: float) -> None: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def save_debug(self, name: str) -> None: ...


class Deadline:
    """
    One run-wide deadline covering login through the last capture.
    """

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = float(seconds)
        self._clock = clock
        self._expires_at = clock() + self.seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self, what: str = "") -> None:
        if self.expired():
            suffix = f" (during {what})" if what else ""
            raise OverallTimeoutError(f"Overall deadline of {self.seconds:.0f}s expired{suffix}")

    def clamp_ms(self, timeout: float) -> int:
        # Playwright treats 0 as "no timeout"; never hand it a zero.
        return max(1, int(min(float(timeout), self.remaining()) * 1000))


def best_effort(what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """
    Fire-and-ignore: run an optional step and deliberately discard its result and failure.

    Used for steps like dismissing the cookie banner. Overall-deadline expiry still propagates.
    """
    try:
        fn(*args, **kwargs)
    except OverallTimeoutError:
        raise
    except Exception:
        logger.debug("Best-effort step failed: %s (continuing).", what, exc_info=True)


@dataclass(frozen=True)
class SessionOptions:
    headless: bool = True
    disable_gpu: bool = True
    no_sandbox: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    suppress_automation: bool = True
    debug_dir: str = ""

    def chromium_args(self) -> list[str]:
        args = ["--disable-dev-shm-usage"]
        if self.disable_gpu:
            args.append("--disable-gpu")
        if self.no_sandbox:
            args.append("--no-sandbox")
        if self.suppress_automation:
            args.append("--disable-blink-features=AutomationControlled")
        return args


class PlaywrightSession:
    """
    `SessionDriver` backed by a Playwright page. Every step checks the run-wide deadline and
    never waits longer than what is left of it.
    """

    def __init__(
        self,
        page: Page,
        *,
        deadline: Deadline,
        default_timeout: float = 30.0,
        debug_dir: str = "",
    ) -> None:
        self.page = page
        self.deadline = deadline
        self.default_timeout = float(default_timeout)
        self.debug_dir = debug_dir

    @contextmanager
    def _step(self, what: str) -> Iterator[None]:
        self.deadline.check(what)
        try:
            yield
        except PlaywrightTimeoutError as e:
            if self.deadline.expired():
                raise OverallTimeoutError(f"Overall deadline expired during {what}") from e
            raise

    def navigate(self, url: str) -> None:
        with self._step(f"navigate {url}"):
            self.page.goto(url, wait_until="domcontentloaded", timeout=self.deadline.clamp_ms(self.default_timeout))

    def wait_visible(self, selector: str, timeout: float) -> None:
        with self._step(f"wait_visible {selector}"):
            self.page.wait_for_selector(selector, state="visible", timeout=self.deadline.clamp_ms(timeout))

    def click(self, selector: str) -> None:
        with self._step(f"click {selector}"):
            self.page.click(selector, timeout=self.deadline.clamp_ms(self.default_timeout))

    def send_keys(self, selector: str, text: str) -> None:
        # Never log `text`; it is usually a credential.
        with self._step(f"send_keys {selector}"):
            self.page.locator(selector).fill(text, timeout=self.deadline.clamp_ms(self.default_timeout))

    def sleep(self, seconds: float) -> None:
        self.deadline.check("sleep")
        wait_ms = int(min(float(seconds), self.deadline.remaining()) * 1000)
        if wait_ms > 0:
            self.page.wait_for_timeout(wait_ms)
        self.deadline.check("sleep")

    def evaluate(self, script: str, arg: Any = None) -> Any:
        """
        Run a page script and return its result.

        `page.evaluate` takes no timeout, so a script that never returns cannot be interrupted.
        Our scripts are synchronous and short; one that overruns the deadline still ends the run
        with `OverallTimeoutError` once it returns.
        """
        with self._step("evaluate"):
            result = self.page.evaluate(script, arg)
        self.deadline.check("evaluate")
        return result

    def save_debug(self, name: str) -> None:
        """
        Save screenshot + HTML + body text under `debug_dir` (no-op when unset).
        """
        if not self.debug_dir:
            return
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "debug"
        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(out_dir / f"{safe}.png"), full_page=True)
            (out_dir / f"{safe}.html").write_text(self.page.content(), encoding="utf-8")
            # Rendered body text so parsing can be debugged offline without DOM tooling.
            try:
                (out_dir / f"{safe}.txt").write_text(self.page.inner_text("body"), encoding="utf-8")
            except Exception:
                pass
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)


@contextmanager
def open_session(
    options: SessionOptions,
    *,
    deadline: Deadline,
    default_timeout: float = 30.0,
) -> Iterator[PlaywrightSession]:
    """
    Launch Chromium and yield a `PlaywrightSession`. The browser is always torn down on exit,
    including when login or acquisition fails early.
    """
    with sync_playwright() as p:
        launch_kwargs: dict = {"headless": options.headless, "args": options.chromium_args()}
        if options.suppress_automation:
            launch_kwargs["ignore_default_args"] = ["--enable-automation"]

        # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
        # cache doesn't have Playwright browsers available.
        try:
            browser = p.chromium.launch(**launch_kwargs)
        except PlaywrightError as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise
            logger.warning("Playwright Chromium executable missing; falling back to system Chrome. (%s)", msg)
            browser = p.chromium.launch(channel="chrome", **launch_kwargs)

        try:
            ctx = browser.new_context(user_agent=options.user_agent or None, color_scheme="light", locale="de-DE")
            if options.suppress_automation:
                ctx.add_init_script(_HIDE_WEBDRIVER_JS)
            page = ctx.new_page()
            try:
                yield PlaywrightSession(
                    page,
                    deadline=deadline,
                    default_timeout=default_timeout,
                    debug_dir=options.debug_dir,
                )
            finally:
                ctx.close()
        finally:
            browser.close()

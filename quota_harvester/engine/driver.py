"""Page driver capability and its Playwright-backed implementation."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol, Sequence

from ..config import AntiScrapingStrategies
from ..errors import DriverTimeout

# Injected into every page before any site script runs
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) => (
  parameters.name === 'notifications'
    ? Promise.resolve({ state: Notification.permission })
    : originalQuery(parameters)
);
"""


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Client identity presented to the target."""

    user_agent: str | None = None
    viewport: tuple[int, int] = (1920, 1080)


class PageDriver(Protocol):
    """Capabilities the fetch engine needs from a rendering engine.

    Bounded waits raise :class:`DriverTimeout` when they elapse. Everything
    else may raise whatever the backing engine raises.
    """

    def apply_credentials(self, cookies: Sequence[dict[str, Any]]) -> None:
        """Attach the whole credential bundle in one call."""

    def set_fingerprint(self, fingerprint: Fingerprint) -> None:
        """Configure user agent and viewport for subsequent navigations."""

    def navigate(self, url: str, timeout_ms: int) -> None:
        """Load ``url`` and wait until the DOM is ready."""

    def current_url(self) -> str:
        """Resolved URL after redirects."""

    def title(self) -> str:
        """Document title of the loaded page."""

    def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        """Block until ``selector`` is present in the document."""

    def evaluate(self, script: str) -> Any:
        """Run a script in the page and return its JSON-able result."""

    def content(self) -> str:
        """Serialized HTML of the current document."""

    def move_mouse(self, x: float, y: float) -> None:
        """Move the pointer to viewport coordinates."""

    def close(self) -> None:
        """Release the browser and everything attached to it."""


class PlaywrightDriver:
    """Sync Playwright page wrapper started lazily on first use.

    Cookies and fingerprint are remembered so the browser context can be
    rebuilt with the full bundle whenever the fingerprint changes.
    """

    def __init__(self, strategies: AntiScrapingStrategies | None = None) -> None:
        self._strategies = strategies or AntiScrapingStrategies()
        self._lock = Lock()
        self._fingerprint = Fingerprint(viewport=tuple(self._strategies.viewport_size))
        self._cookies: list[dict[str, Any]] = []
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def _ensure_started(self) -> None:
        if self._playwright is not None:
            return
        from playwright.sync_api import sync_playwright

        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self._strategies.headless_mode,
            args=list(self._strategies.launch_args),
        )
        self._open_context()

    def _open_context(self) -> None:
        width, height = self._fingerprint.viewport
        self._context = self._browser.new_context(
            user_agent=self._fingerprint.user_agent,
            viewport={"width": width, "height": height},
        )
        if self._strategies.hide_automation_flags:
            self._context.add_init_script(STEALTH_INIT_SCRIPT)
        if self._cookies:
            self._context.add_cookies(self._cookies)
        self._page = self._context.new_page()

    def _close_context(self) -> None:
        if self._page is not None:
            self._page.close()
            self._page = None
        if self._context is not None:
            self._context.close()
            self._context = None

    # ------------------------------------------------------------------
    def apply_credentials(self, cookies: Sequence[dict[str, Any]]) -> None:
        with self._lock:
            self._cookies = [dict(cookie) for cookie in cookies]
            if self._context is not None and self._cookies:
                self._context.add_cookies(self._cookies)

    def set_fingerprint(self, fingerprint: Fingerprint) -> None:
        with self._lock:
            if fingerprint == self._fingerprint and self._context is not None:
                return
            self._fingerprint = fingerprint
            if self._browser is not None:
                self._close_context()
                self._open_context()

    def navigate(self, url: str, timeout_ms: int) -> None:
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        with self._lock:
            self._ensure_started()
            try:
                self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            except PlaywrightTimeoutError as exc:
                raise DriverTimeout(f"Navigation timeout for {url}: {exc}") from exc

    def current_url(self) -> str:
        with self._lock:
            self._ensure_started()
            return self._page.url

    def title(self) -> str:
        with self._lock:
            self._ensure_started()
            return self._page.title()

    def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        with self._lock:
            self._ensure_started()
            try:
                self._page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
            except PlaywrightTimeoutError as exc:
                raise DriverTimeout(f"Selector wait timeout for '{selector}': {exc}") from exc

    def evaluate(self, script: str) -> Any:
        with self._lock:
            self._ensure_started()
            return self._page.evaluate(script)

    def content(self) -> str:
        with self._lock:
            self._ensure_started()
            return self._page.content()

    def move_mouse(self, x: float, y: float) -> None:
        with self._lock:
            self._ensure_started()
            self._page.mouse.move(x, y)

    def close(self) -> None:
        with self._lock:
            self._close_context()
            if self._browser is not None:
                self._browser.close()
                self._browser = None
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None


__all__ = ["Fingerprint", "PageDriver", "PlaywrightDriver", "STEALTH_INIT_SCRIPT"]

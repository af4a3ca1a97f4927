"""Single-page fetch with anti-bot strategy integration."""

from __future__ import annotations

import random
import threading
from datetime import datetime, timezone
from typing import Callable

import structlog

from ..config import HarvestConfig
from ..errors import DriverTimeout, FailureKind
from .antibot import strategies
from .antibot.chain import AntiBotChain, AntiBotContext, PageDirective
from .antibot.detection import PageInspector
from .driver import Fingerprint, PageDriver
from .extractor import TableExtractor
from .models import FetchFailure, FetchOutcome
from .session import SessionHandle


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FetchEngine:
    """Run one navigate → inspect → wait → extract cycle per URL.

    Never raises for page-level problems: every outcome is a
    :class:`FetchOutcome` carrying either rows or a typed failure. When
    ``stop_event`` is set during the pre-navigation pause the page is not
    visited and the outcome is marked ``cancelled``.
    """

    def __init__(
        self,
        config: HarvestConfig,
        rng: random.Random | None = None,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], object] | None = None,
        extractor: TableExtractor | None = None,
        inspector: PageInspector | None = None,
        clock: Callable[[], str] = utc_timestamp,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.rng = rng or random.Random(config.anti_scraping_strategies.random_seed)
        self.logger = logger or structlog.get_logger("quota_harvester.fetcher")
        self.stop_event = stop_event or threading.Event()
        # pauses end early once a stop is requested
        self._sleep = sleep or self.stop_event.wait
        self.extractor = extractor or TableExtractor()
        self.inspector = inspector or PageInspector(config.detection)
        self._clock = clock
        self.context, self.chain = self._build_chain()
        self._prepared_for: PageDriver | None = None

    def _build_chain(self) -> tuple[AntiBotContext, AntiBotChain]:
        return strategies.build_chain(self.config.anti_scraping_strategies, rng=self.rng)

    # ------------------------------------------------------------------
    def prepare(self, driver: PageDriver, session: SessionHandle) -> None:
        """Set fingerprint and credentials on ``driver`` once."""

        if self._prepared_for is driver:
            return
        directive = self.chain.prepare(self.context)
        fingerprint = Fingerprint(
            user_agent=directive.user_agent,
            viewport=directive.viewport or tuple(self.config.anti_scraping_strategies.viewport_size),
        )
        driver.set_fingerprint(fingerprint)
        if session.empty:
            self.logger.warning("session_empty", detail="fetching unauthenticated")
        else:
            driver.apply_credentials(session.as_playwright_cookies())
            self.logger.info("session_applied", cookies=len(session))
        self._prepared_for = driver
        self.logger.debug("driver_prepared", user_agent=fingerprint.user_agent)

    def fetch(self, driver: PageDriver, session: SessionHandle, url: str) -> FetchOutcome:
        try:
            self.prepare(driver, session)
            directive = self.chain.prepare(self.context)
            outcome = self._visit(driver, url, directive)
        except Exception as exc:  # noqa: BLE001
            outcome = FetchOutcome.failed(FailureKind.UNKNOWN, url, f"{type(exc).__name__}: {exc}")

        if outcome.cancelled:
            self.logger.info("page_skipped", url=url, reason="stop_requested")
        elif outcome.ok:
            self.chain.notify_success(self.context, url)
            self.logger.info("page_fetched", url=url, rows=len(outcome.rows))
        else:
            self.chain.notify_failure(self.context, outcome.failure)
            self._log_failure(outcome.failure)
        return outcome

    # ------------------------------------------------------------------
    def _visit(self, driver: PageDriver, url: str, directive: PageDirective) -> FetchOutcome:
        target = self.config.target
        timeouts = self.config.anti_scraping_strategies

        self._pause(directive.pre_delay)
        if self.stop_event.is_set():
            return FetchOutcome(url=url, cancelled=True)
        try:
            driver.navigate(url, timeouts.navigation_timeout)
        except DriverTimeout as exc:
            return FetchOutcome.failed(FailureKind.TIMEOUT, url, str(exc))

        if directive.humanize:
            self._humanize(driver)

        resolved = driver.current_url() or url
        verdict = self.inspector.inspect(driver.title(), resolved)
        if verdict is not None:
            return FetchOutcome.failed(verdict.kind, url, verdict.message)

        table_timeout = directive.table_timeout_ms or int(timeouts.table_timeout_range[1])
        try:
            driver.wait_for_element(target.table_selector, table_timeout)
        except DriverTimeout as exc:
            return FetchOutcome.failed(FailureKind.TABLE_NOT_FOUND, url, str(exc))

        self._pause(directive.settle_delay)
        rows = self.extractor.extract(driver.content(), target.table_selector, resolved, self._clock())
        return FetchOutcome(url=url, rows=rows)

    def _humanize(self, driver: PageDriver) -> None:
        driver.move_mouse(self.rng.randint(100, 600), self.rng.randint(100, 400))
        driver.evaluate(f"window.scrollTo(0, {self.rng.randint(0, 400)})")

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    def _log_failure(self, failure: FetchFailure) -> None:
        fields = {"url": failure.url, "kind": failure.kind.value, "error": failure.message}
        if failure.kind is FailureKind.CHALLENGE_DETECTED:
            self.logger.error("challenge_detected", streak=self.context.operator_streak, **fields)
        elif failure.kind is FailureKind.SESSION_EXPIRED:
            self.logger.error("session_expired", streak=self.context.operator_streak, **fields)
        elif failure.kind is FailureKind.UNKNOWN:
            self.logger.error("page_failed", **fields)
        else:
            self.logger.warning("page_failed", **fields)


__all__ = ["FetchEngine", "utc_timestamp"]

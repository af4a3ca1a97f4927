"""Strategy chain orchestrating anti-bot adaptations."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ...config import AntiScrapingStrategies
from ..models import FetchFailure


@dataclass
class PageDirective:
    """Mutable set of options to apply to one page visit."""

    user_agent: str | None = None
    viewport: tuple[int, int] | None = None
    pre_delay: float = 0.0
    settle_delay: float = 0.0
    table_timeout_ms: int | None = None
    humanize: bool = False


@dataclass
class AntiBotContext:
    """Shared state for all strategies in the chain."""

    strategies: AntiScrapingStrategies
    rng: random.Random = field(default_factory=random.Random)
    user_agent: str | None = None
    successes: int = 0
    failures: int = 0
    # Challenge/login failures in a row; reset by any success
    operator_streak: int = 0
    last_failure: FetchFailure | None = None


class Strategy(Protocol):
    """Strategy behaviour expected by the chain."""

    def before_navigation(self, context: AntiBotContext, directive: PageDirective) -> None:
        """Mutate directive ahead of a page visit."""

    def after_success(self, context: AntiBotContext, url: str) -> None:
        """Allow strategy to observe a successful extraction."""

    def after_failure(self, context: AntiBotContext, failure: FetchFailure) -> None:
        """Allow strategy to react when a page fails."""


class AntiBotChain:
    """Compose multiple strategies and expose a simple API for the fetch engine."""

    def __init__(self, strategies: Optional[List[Strategy]] = None) -> None:
        self.strategies = strategies or []

    # ------------------------------------------------------------------
    def prepare(self, context: AntiBotContext) -> PageDirective:
        directive = PageDirective()
        for strategy in self.strategies:
            strategy.before_navigation(context, directive)
        return directive

    def notify_success(self, context: AntiBotContext, url: str) -> None:
        context.successes += 1
        context.operator_streak = 0
        context.last_failure = None
        for strategy in self.strategies:
            strategy.after_success(context, url)

    def notify_failure(self, context: AntiBotContext, failure: FetchFailure) -> None:
        context.failures += 1
        context.last_failure = failure
        if failure.kind.needs_operator:
            context.operator_streak += 1
        for strategy in self.strategies:
            strategy.after_failure(context, failure)


__all__ = ["AntiBotChain", "AntiBotContext", "PageDirective", "Strategy"]

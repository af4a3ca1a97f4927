"""Concrete anti-bot strategies used by the chain."""

from __future__ import annotations

import random

from ...config import AntiScrapingStrategies
from ...infra.ua_pool import UserAgentPool
from ..models import FetchFailure
from .chain import AntiBotChain, AntiBotContext, PageDirective, Strategy


class UserAgentStrategy(Strategy):
    """Pick one user agent per context and keep presenting it."""

    def __init__(self, pool: UserAgentPool | None) -> None:
        self.pool = pool

    def before_navigation(self, context: AntiBotContext, directive: PageDirective) -> None:
        if context.user_agent is None and self.pool:
            context.user_agent = self.pool.get()
        directive.user_agent = context.user_agent

    def after_success(self, context: AntiBotContext, url: str) -> None:
        return

    def after_failure(self, context: AntiBotContext, failure: FetchFailure) -> None:
        return


class ViewportStrategy(Strategy):
    """Present the configured desktop resolution."""

    def before_navigation(self, context: AntiBotContext, directive: PageDirective) -> None:
        directive.viewport = tuple(context.strategies.viewport_size)

    def after_success(self, context: AntiBotContext, url: str) -> None:
        return

    def after_failure(self, context: AntiBotContext, failure: FetchFailure) -> None:
        return


class JitterStrategy(Strategy):
    """Draw per-page pauses and the table wait bound from configured ranges."""

    def before_navigation(self, context: AntiBotContext, directive: PageDirective) -> None:
        strategies = context.strategies
        directive.pre_delay = _draw(context.rng, strategies.pre_navigation_delay)
        directive.settle_delay = _draw(context.rng, strategies.settle_delay)
        directive.table_timeout_ms = int(_draw(context.rng, strategies.table_timeout_range))

    def after_success(self, context: AntiBotContext, url: str) -> None:
        return

    def after_failure(self, context: AntiBotContext, failure: FetchFailure) -> None:
        return


class HumanizeStrategy(Strategy):
    """Flag random pointer movement and scrolling after load."""

    def before_navigation(self, context: AntiBotContext, directive: PageDirective) -> None:
        directive.humanize = context.strategies.humanize

    def after_success(self, context: AntiBotContext, url: str) -> None:
        return

    def after_failure(self, context: AntiBotContext, failure: FetchFailure) -> None:
        return


def _draw(rng: random.Random, bounds: tuple[float, float]) -> float:
    low, high = bounds
    if high <= 0:
        return 0.0
    return rng.uniform(low, high)


def build_chain(
    strategies: AntiScrapingStrategies,
    rng: random.Random | None = None,
    ua_pool: UserAgentPool | None = None,
) -> tuple[AntiBotContext, AntiBotChain]:
    """Utility to build a ready-to-use chain from config."""

    rng = rng or random.Random(strategies.random_seed)
    pool = ua_pool or UserAgentPool(strategies.user_agent_list, rng=rng)
    context = AntiBotContext(strategies=strategies, rng=rng)
    chain = AntiBotChain(
        [
            UserAgentStrategy(pool),
            ViewportStrategy(),
            JitterStrategy(),
            HumanizeStrategy(),
        ]
    )
    return context, chain


__all__ = [
    "HumanizeStrategy",
    "JitterStrategy",
    "UserAgentStrategy",
    "ViewportStrategy",
    "build_chain",
]

"""Pydantic models used across the harvest configuration flow."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_URL_TEMPLATE = (
    "https://myip.ms/browse/sites/{page}/rankii/15000000/ipID/23.227.38.0/ipIDii/23.227.38.255"
)

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
]

DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=VizDisplayCompositor",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]


def _coerce_range(value: Any, label: str) -> tuple[float, float]:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        low, high = float(value[0]), float(value[1])
        if low < 0 or high < 0:
            raise ValueError(f"{label} values must be non-negative")
        if high < low:
            raise ValueError(f"{label} upper bound must be >= lower bound")
        return (low, high)
    raise ValueError(f"{label} expects a two-item list or tuple")


class TargetConfig(BaseModel):
    """The paginated table being harvested."""

    url_template: str = DEFAULT_URL_TEMPLATE
    total_pages: int = 15000
    table_selector: str = "#sites_tbl"

    @model_validator(mode="after")
    def _validate_target(self) -> "TargetConfig":
        if "{page}" not in self.url_template:
            raise ValueError("url_template must contain a {page} placeholder")
        if self.total_pages < 1:
            raise ValueError("total_pages must be >= 1")
        if not self.table_selector.strip():
            raise ValueError("table_selector cannot be empty")
        return self


class AntiScrapingStrategies(BaseModel):
    """Fingerprint, pacing and timeout knobs for unattended fetching."""

    user_agent_list: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    viewport_size: tuple[int, int] = (1920, 1080)
    # Pause between consecutive pages of one chunk (seconds)
    delay_range: tuple[float, float] = (3.0, 8.0)
    # Jitter before each navigation (seconds)
    pre_navigation_delay: tuple[float, float] = (1.0, 3.0)
    # Jitter after the table shows up, before extraction (seconds)
    settle_delay: tuple[float, float] = (1.0, 3.0)
    navigation_timeout: int = 60000  # milliseconds
    table_timeout_range: tuple[float, float] = (10000.0, 20000.0)  # milliseconds
    hide_automation_flags: bool = True
    humanize: bool = True
    headless_mode: bool = True
    launch_args: list[str] = Field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))
    random_seed: int | None = None

    @field_validator(
        "delay_range", "pre_navigation_delay", "settle_delay", "table_timeout_range", mode="before"
    )
    @classmethod
    def _coerce_ranges(cls, value: Any, info) -> tuple[float, float]:
        if value in (None, ""):
            return (0.0, 0.0)
        return _coerce_range(value, info.field_name)

    @field_validator("user_agent_list", mode="after")
    @classmethod
    def _strip_agents(cls, value: list[str]) -> list[str]:
        agents = [ua.strip() for ua in value if ua and ua.strip()]
        if not agents:
            raise ValueError("user_agent_list must contain at least one entry")
        return agents

    @model_validator(mode="after")
    def _validate_bounds(self) -> "AntiScrapingStrategies":
        width, height = self.viewport_size
        if width <= 0 or height <= 0:
            raise ValueError("viewport_size must be positive")
        if self.navigation_timeout <= 0:
            raise ValueError("navigation_timeout must be > 0")
        if self.table_timeout_range[1] <= 0:
            raise ValueError("table_timeout_range must allow a positive wait")
        return self


class DetectionConfig(BaseModel):
    """Markers identifying challenge interstitials and login redirects."""

    challenge_title_markers: list[str] = Field(
        default_factory=lambda: ["Verification", "CAPTCHA", "Bot", "Security Check"]
    )
    challenge_url_markers: list[str] = Field(default_factory=lambda: ["verify"])
    login_url_markers: list[str] = Field(default_factory=lambda: ["login"])
    login_title_markers: list[str] = Field(default_factory=lambda: ["Login", "Sign In"])


class SessionConfig(BaseModel):
    """Where the encoded session handle comes from."""

    env_var: str = "SESSION_DATA"


class HarvestConfig(BaseModel):
    """Top-level configuration passed explicitly into every component."""

    target: TargetConfig = Field(default_factory=TargetConfig)
    quota: int = 50
    anti_scraping_strategies: AntiScrapingStrategies = Field(default_factory=AntiScrapingStrategies)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    enable_progress_bar: bool = True
    chunks_dir: Path = Field(default=Path("chunks"))
    partials_dir: Path = Field(default=Path("partials"))
    master_output: Path = Field(default=Path("master_data.csv"))

    @field_validator("chunks_dir", "partials_dir", "master_output", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_quota(self) -> "HarvestConfig":
        if self.quota < 1:
            raise ValueError("quota must be >= 1")
        return self

    def resolve(self, path: Path, base_dir: Path) -> Path:
        """Return ``path`` anchored at ``base_dir`` unless already absolute."""

        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


__all__ = [
    "AntiScrapingStrategies",
    "DEFAULT_URL_TEMPLATE",
    "DEFAULT_USER_AGENTS",
    "DetectionConfig",
    "HarvestConfig",
    "SessionConfig",
    "TargetConfig",
]

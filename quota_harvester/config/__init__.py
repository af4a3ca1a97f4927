"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    AntiScrapingStrategies,
    DetectionConfig,
    HarvestConfig,
    SessionConfig,
    TargetConfig,
)

__all__ = [
    "AntiScrapingStrategies",
    "ConfigLocator",
    "ConfigRepository",
    "DetectionConfig",
    "HarvestConfig",
    "SessionConfig",
    "TargetConfig",
]

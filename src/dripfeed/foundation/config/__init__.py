"""Configuration management for Dripfeed."""

from dripfeed.foundation.config.loader import (
    COMMIT_MODES,
    PUSH_MODES,
    REVIEW_MODES,
    DripfeedConfig,
    load_config,
)

__all__ = [
    "COMMIT_MODES",
    "PUSH_MODES",
    "REVIEW_MODES",
    "DripfeedConfig",
    "load_config",
]

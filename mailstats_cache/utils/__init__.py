"""Shared utilities."""

from mailstats_cache.utils.logger import get_logger, log_stats_resolution, setup_logging

__all__ = ["get_logger", "log_stats_resolution", "setup_logging"]

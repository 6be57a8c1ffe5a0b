"""Workflows built on the stats cache."""

from mailstats_cache.services.stats_resolver import EmailStatsResolver, MailSourceProbe

__all__ = ["EmailStatsResolver", "MailSourceProbe"]

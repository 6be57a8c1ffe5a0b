"""
Pydantic value objects for cached email stats and sync cursors.

Only aggregate counts and opaque provider cursors are modelled here.
Message content, subjects and senders are never part of a cached value.

Field names serialize in camelCase (``newCount``, ``cachedAt``, ...) so
stored JSON matches what the rest of the mail stack reads and writes.
"""
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SyncSource(str, Enum):
    """Mail providers that keep a sync cursor."""

    GMAIL = "GMAIL"
    OUTLOOK = "OUTLOOK"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json(self) -> str:
        """Serialize with camelCase keys, omitting unset optional fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class StatsCounts(_CamelModel):
    """
    The three aggregate counts a caller hands to the stats cache.
    """

    new_count: int = Field(..., ge=0, description="Unread emails")
    vip_count: int = Field(..., ge=0, description="Unread emails from VIP senders")
    urgent_count: int = Field(..., ge=0, description="Flagged or high-importance emails")


class CachedStats(StatsCounts):
    """
    Stats as stored in the cache.

    ``cached_at`` is stamped by the cache at write time, never by the
    caller.
    """

    cached_at: datetime = Field(..., description="When the stats were written (UTC)")

    def counts(self) -> StatsCounts:
        return StatsCounts(
            new_count=self.new_count,
            vip_count=self.vip_count,
            urgent_count=self.urgent_count,
        )


class SyncCursor(_CamelModel):
    """
    Per-source bookmark of how far a mail sync has progressed.

    ``last_stats`` keeps the most recently computed stats so the stats
    workflow can reuse them when the provider reports no new mail, but
    only for the VIP set named by ``last_stats_vips``.
    """

    gmail_history_id: Optional[str] = Field(None, description="Gmail History API cursor")
    outlook_last_received_at: Optional[str] = Field(
        None,
        description="Latest Outlook receivedDateTime (ISO string)",
    )
    last_stats: Optional[CachedStats] = Field(
        None,
        description="Stats computed at the time of the cursor",
    )
    last_stats_vips: Optional[str] = Field(
        None,
        description="VIP fingerprint last_stats were computed for",
    )


class ResolvedStats(_CamelModel):
    """
    Stats returned by the stats workflow together with where they came from.
    """

    new_count: int = Field(0, ge=0)
    vip_count: int = Field(0, ge=0)
    urgent_count: int = Field(0, ge=0)
    origin: Literal["cache", "cursor", "computed", "empty"] = Field(
        ...,
        description="cache hit, reused cursor stats, fresh computation, or no providers",
    )

    @classmethod
    def from_counts(cls, counts: StatsCounts, origin: str) -> "ResolvedStats":
        return cls(
            new_count=counts.new_count,
            vip_count=counts.vip_count,
            urgent_count=counts.urgent_count,
            origin=origin,
        )

"""
Pydantic models for harvested records and archive bookkeeping.

This module defines the data that flows through the pipeline:
- Record: one structured item extracted from the feed
- Skip: the extractor's "nothing to archive" outcome
- CidEntry: natural key -> round -> content identifier
- Proof: round -> manifest content identifier
"""

from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Record(BaseModel):
    """
    One harvested feed item.

    Field names follow the archive's wire layout so previously archived
    ``data.json`` files and new ones share a schema. Records are immutable.
    """
    tweets_id: str = Field(..., min_length=1, description="Natural key (source item id)")
    user_name: str = Field(default="", description="Author display name")
    screen_name: str = Field(..., min_length=1, description="Author handle")
    user_url: str = Field(default="", description="Author profile URL")
    user_img: Optional[str] = Field(None, description="Author avatar URL")
    tweets_content: str = Field(..., min_length=1, description="Body text, line breaks as <br>")
    time_post: Optional[int] = Field(None, description="Original post time (Unix seconds)")
    time_read: int = Field(..., description="Observation time (Unix seconds)")

    # Engagement counters exactly as rendered ("1.2K", "3", "")
    comment: str = ""
    like: str = ""
    share: str = ""
    view: str = ""

    outer_media_url: List[str] = Field(default_factory=list, description="Outbound link URLs")
    outer_media_short_url: List[str] = Field(
        default_factory=list, description="Outbound link display text, parallel to outer_media_url"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("tweets_id", "screen_name", "tweets_content")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Required text fields may not be whitespace only."""
        if not v.strip():
            raise ValueError("value cannot be blank")
        return v

    @model_validator(mode="after")
    def validate_link_pairs(self) -> "Record":
        """Outbound URLs and their display text are parallel sequences."""
        if len(self.outer_media_url) != len(self.outer_media_short_url):
            raise ValueError(
                f"outer_media_url ({len(self.outer_media_url)}) and outer_media_short_url "
                f"({len(self.outer_media_short_url)}) must have the same length"
            )
        return self

    @property
    def natural_key(self) -> str:
        return self.tweets_id


class Skip(BaseModel):
    """Extraction produced nothing archivable (ads, promoted or malformed items)."""
    reason: str = "malformed item"

    model_config = ConfigDict(frozen=True)


ExtractResult = Union[Record, Skip]


class CidEntry(BaseModel):
    """
    Archive bookkeeping for one natural key.

    At most one entry exists per ``id``; the first successful archival wins.
    """
    id: str = Field(..., min_length=1, description="Natural key")
    round: int = Field(..., ge=0, description="Round current when the item was archived")
    cid: str = Field(..., min_length=1, description="Content identifier of the data.json/data.html pair")

    model_config = ConfigDict(frozen=True)


class Proof(BaseModel):
    """Manifest content identifier submitted for a round."""
    id: str = Field(..., min_length=1, description="proof:<round>")
    proof_round: int = Field(..., ge=0)
    proof_cid: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def key_for(cls, round: int) -> str:
        return f"proof:{round}"

    @classmethod
    def for_round(cls, round: int, cid: str) -> "Proof":
        """Build the proof row for ``round``."""
        return cls(id=cls.key_for(round), proof_round=round, proof_cid=cid)

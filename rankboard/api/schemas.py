"""
Wire shapes for the HTTP facade.

Field names follow the existing client contract: identities travel as
`ID`/`Entity`/`Score`, profiles as camelCase.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from rankboard.modules.leaderboard.models import LeaderboardProfile, RankedEntry


class UserIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(default="", alias="ID")
    group: str = Field(default="", alias="Entity")
    score: float = Field(default=0.0, alias="Score")


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(alias="ID")
    group: str = Field(alias="Entity")
    score: float = Field(alias="Score")

    @classmethod
    def from_entry(cls, entry: RankedEntry) -> "UserOut":
        return cls(identity=entry.identity, group=entry.group, score=entry.score)


class RankOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_rank: int = Field(alias="globalRank")
    group_rank: int = Field(alias="entityRank")


class ProfileOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(alias="userID")
    score: float
    group: str = Field(alias="entity")
    global_rank: int = Field(alias="globalRank")
    group_rank: int = Field(alias="entityRank")
    top_k_global: List[UserOut] = Field(default_factory=list, alias="topKGlobal")
    top_k_group: List[UserOut] = Field(default_factory=list, alias="topKEntity")

    @classmethod
    def from_profile(cls, profile: LeaderboardProfile) -> "ProfileOut":
        return cls(
            identity=profile.identity,
            score=profile.score,
            group=profile.group,
            global_rank=profile.global_rank,
            group_rank=profile.group_rank,
            top_k_global=[UserOut.from_entry(e) for e in profile.top_k_global],
            top_k_group=[UserOut.from_entry(e) for e in profile.top_k_group],
        )


class MessageOut(BaseModel):
    message: str


class ErrorOut(BaseModel):
    error: str
    kind: str
    error_code: str


__all__ = ["UserIn", "UserOut", "RankOut", "ProfileOut", "MessageOut", "ErrorOut"]

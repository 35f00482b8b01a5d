"""
HTTP routes over the ranking coordinator.

Route surface:
- POST   /user                        add an identity (201)
- DELETE /user/{identity}             remove an identity
- POST   /user/{identity}/increment   ?score=&entity=
- POST   /user/{identity}/decrement   ?score=&entity=
- GET    /topk/global
- GET    /topk/entity/{entity}
- GET    /rank/{identity}             {globalRank, entityRank}
- GET    /leaderboard/{identity}      full profile
- PUT    /user/{identity}/{entity}    change group
- GET    /health
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from rankboard.api.errors import error_response
from rankboard.api.schemas import MessageOut, ProfileOut, RankOut, UserIn, UserOut
from rankboard.core.config.config import Config
from rankboard.core.exceptions import BackendFailureError
from rankboard.core.logging.logger import get_logging_health
from rankboard.core.redis.service import RedisService
from rankboard.modules.leaderboard.coordinator import KEEP_GROUP, GroupArg, RankingCoordinator
from rankboard.modules.leaderboard.profile import LeaderboardQueryAssembler
from rankboard.modules.shared.exceptions import InvalidInputError, NotFoundError

router = APIRouter()


def get_coordinator(request: Request) -> RankingCoordinator:
    return request.app.state.coordinator


def get_assembler(request: Request) -> LeaderboardQueryAssembler:
    return request.app.state.assembler


def _check_entity_length(group: str) -> None:
    if len(group) > Config.API_MAX_ENTITY_LENGTH:
        raise InvalidInputError(
            "group",
            f"Group tag must be at most {Config.API_MAX_ENTITY_LENGTH} characters",
        )


def _group_arg(entity: Optional[str]) -> GroupArg:
    # An absent or blank entity leaves the group as is.
    if not entity:
        return KEEP_GROUP
    _check_entity_length(entity)
    return entity


# ============================================================================
# MUTATIONS
# ============================================================================


@router.post("/user", status_code=status.HTTP_201_CREATED, response_model=MessageOut)
async def add_user(
    user: UserIn,
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> MessageOut:
    _check_entity_length(user.group)
    await coordinator.add_identity(user.identity, user.group, user.score)
    return MessageOut(message=f"User {user.identity} added")


@router.delete("/user/{identity}", response_model=MessageOut)
async def remove_user(
    identity: str,
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> MessageOut:
    await coordinator.remove_identity(identity)
    return MessageOut(message=f"User {identity} removed")


@router.post("/user/{identity}/increment", response_model=MessageOut)
async def increment_score(
    identity: str,
    score: float = Query(...),
    entity: Optional[str] = Query(default=None),
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> MessageOut:
    await coordinator.adjust_score(identity, _group_arg(entity), score)
    return MessageOut(message=f"Score incremented for user {identity}")


@router.post("/user/{identity}/decrement", response_model=MessageOut)
async def decrement_score(
    identity: str,
    score: float = Query(...),
    entity: Optional[str] = Query(default=None),
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> MessageOut:
    await coordinator.adjust_score(identity, _group_arg(entity), -score)
    return MessageOut(message=f"Score decremented for user {identity}")


@router.put("/user/{identity}/{entity}", response_model=MessageOut)
async def change_group(
    identity: str,
    entity: str,
    coordinator: RankingCoordinator = Depends(get_coordinator),
):
    _check_entity_length(entity)
    if await coordinator.group_of(identity) == entity:
        return MessageOut(message="Entity unchanged")

    try:
        await coordinator.change_group(identity, entity)
    except NotFoundError as exc:
        # Moving an unknown identity is a bad request on this route.
        return error_response(exc, status.HTTP_400_BAD_REQUEST)
    return MessageOut(message=f"Entity updated to {entity} for user {identity}")


# ============================================================================
# READS
# ============================================================================


@router.get("/topk/global", response_model=List[UserOut])
async def top_k_global(
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> List[UserOut]:
    return [UserOut.from_entry(entry) for entry in await coordinator.top_k_global()]


@router.get("/topk/entity/{entity}", response_model=List[UserOut])
async def top_k_entity(
    entity: str,
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> List[UserOut]:
    return [UserOut.from_entry(entry) for entry in await coordinator.top_k_in_group(entity)]


@router.get("/rank/{identity}", response_model=RankOut)
async def user_rank(
    identity: str,
    coordinator: RankingCoordinator = Depends(get_coordinator),
) -> RankOut:
    global_rank, group_rank = await asyncio.gather(
        coordinator.rank_global(identity),
        coordinator.rank_in_group(identity),
    )
    return RankOut(global_rank=global_rank, group_rank=group_rank)


@router.get("/leaderboard/{identity}", response_model=ProfileOut)
async def leaderboard_profile(
    identity: str,
    assembler: LeaderboardQueryAssembler = Depends(get_assembler),
) -> ProfileOut:
    return ProfileOut.from_profile(await assembler.full_profile(identity))


@router.get("/health")
async def health(coordinator: RankingCoordinator = Depends(get_coordinator)):
    payload: Dict[str, Any] = {"status": "ok", "logging": get_logging_health().to_dict()}
    if RedisService.is_initialized():
        payload["redis"] = RedisService.get_status()

    try:
        payload["leaderboard"] = await coordinator.stats()
    except BackendFailureError as exc:
        payload["status"] = "unavailable"
        payload["error"] = exc.message
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)
    return payload

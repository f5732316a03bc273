"""Game history endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from api.schemas import GameResultResponse
from api.store import get_game_service
from config import config
from core.game.serialization import result_to_dict
from core.game.service import GameService

router = APIRouter()

Service = Annotated[GameService, Depends(get_game_service)]
Limit = Annotated[int, Query(ge=1, le=100)]


@router.get("/players/{player_id}")
async def player_history(
    player_id: str, service: Service, limit: Limit = config.history_limit
) -> list[GameResultResponse]:
    """Most recent games a player took part in."""
    results = await service.get_player_history(player_id, limit)
    return [GameResultResponse(**result_to_dict(result)) for result in results]


@router.get("/channels/{channel_id}")
async def channel_history(
    channel_id: str, service: Service, limit: Limit = config.history_limit
) -> list[GameResultResponse]:
    """Most recent games in a channel."""
    results = await service.get_channel_history(channel_id, limit)
    return [GameResultResponse(**result_to_dict(result)) for result in results]

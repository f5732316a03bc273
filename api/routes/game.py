"""Game API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.auth import current_player
from api.schemas import (
    BetRequest,
    CreateGameRequest,
    GameResultResponse,
    GameStateResponse,
)
from api.store import get_game_service
from core.game.serialization import card_to_str, game_view, result_to_dict
from core.game.service import GameService, GameUpdate

router = APIRouter()

Player = Annotated[str, Depends(current_player)]
Service = Annotated[GameService, Depends(get_game_service)]


def _state_response(update: GameUpdate) -> GameStateResponse:
    """Convert a game update to response."""
    view = game_view(update.game)
    view["was_shuffled"] = update.was_shuffled
    if update.result is not None:
        view["result"] = GameResultResponse(**result_to_dict(update.result))
    if update.card is not None:
        view["card"] = card_to_str(update.card)
    view["amount"] = update.amount
    return GameStateResponse(**view)


@router.post("")
async def create_game(
    request: CreateGameRequest, player_id: Player, service: Service
) -> GameStateResponse:
    """Open a game in a channel, seating the caller."""
    return _state_response(await service.create_game(request.channel_id, player_id))


@router.get("/{channel_id}")
async def get_state(channel_id: str, service: Service) -> GameStateResponse:
    """Get current table state."""
    return _state_response(GameUpdate(await service.get_game(channel_id)))


@router.post("/{channel_id}/join")
async def join(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.join(channel_id, player_id))


@router.post("/{channel_id}/betting")
async def start_betting(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    """Close the lobby and open betting."""
    return _state_response(await service.start_betting(channel_id, player_id))


@router.post("/{channel_id}/bet")
async def place_bet(
    channel_id: str, request: BetRequest, player_id: Player, service: Service
) -> GameStateResponse:
    """Place a bet, borrowing if the wallet cannot cover it."""
    return _state_response(await service.place_bet(channel_id, player_id, request.amount))


@router.post("/{channel_id}/deal")
async def deal(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.start_dealing(channel_id, player_id))


@router.post("/{channel_id}/hit")
async def hit(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.hit(channel_id, player_id))


@router.post("/{channel_id}/stand")
async def stand(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.stand(channel_id, player_id))


@router.post("/{channel_id}/double-down")
async def double_down(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.double_down(channel_id, player_id))


@router.post("/{channel_id}/split")
async def split(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.split(channel_id, player_id))


@router.post("/{channel_id}/insurance")
async def insurance(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    return _state_response(await service.place_insurance(channel_id, player_id))


@router.post("/{channel_id}/decline")
async def decline(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    """Pass on the current special-bet offer."""
    return _state_response(await service.decline_special_bet(channel_id, player_id))


@router.post("/{channel_id}/complete")
async def force_complete(
    channel_id: str, player_id: Player, service: Service
) -> GameStateResponse:
    """Stand every open hand, play the dealer and settle."""
    return _state_response(await service.force_complete(channel_id, player_id))


@router.post("/{channel_id}/cancel")
async def cancel(channel_id: str, player_id: Player, service: Service) -> GameStateResponse:
    """Cancel an undealt game, refunding bets."""
    return _state_response(await service.cancel(channel_id, player_id))

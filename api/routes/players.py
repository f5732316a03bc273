"""Player token and wallet endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from api.auth import current_player, get_player_signer
from api.schemas import (
    RepayRequest,
    TokenRequest,
    TokenResponse,
    TransactionResponse,
    WalletResponse,
)
from api.store import get_game_service
from config import config
from core.game.service import GameService

router = APIRouter()

Player = Annotated[str, Depends(current_player)]
Service = Annotated[GameService, Depends(get_game_service)]


@router.post("/token")
async def issue_token(request: TokenRequest) -> TokenResponse:
    """Issue a signed token identifying the player."""
    token = get_player_signer().sign(request.player_id)
    return TokenResponse(player_id=request.player_id, token=token)


@router.get("/me/wallet")
async def get_wallet(player_id: Player, service: Service) -> WalletResponse:
    """Get the caller's wallet, creating it on first use."""
    wallet, _ = service.wallet.get_or_create_wallet(player_id)
    return WalletResponse.model_validate(wallet)


@router.post("/me/wallet/repay")
async def repay_loan(request: RepayRequest, player_id: Player, service: Service) -> WalletResponse:
    """Repay part of the caller's loan."""
    wallet = service.wallet.repay_loan(player_id, request.amount)
    return WalletResponse.model_validate(wallet)


@router.get("/me/transactions")
async def get_transactions(
    player_id: Player,
    service: Service,
    limit: Annotated[int, Query(ge=1, le=100)] = config.history_limit,
) -> list[TransactionResponse]:
    """Most recent wallet transactions, newest first."""
    return [
        TransactionResponse(
            transaction_id=tx.transaction_id,
            amount=tx.amount,
            transaction_type=tx.transaction_type.value,
            description=tx.description,
            balance_after=tx.balance_after,
            reference_id=tx.reference_id,
            timestamp=tx.timestamp,
        )
        for tx in service.wallet.get_transactions(player_id, limit)
    ]

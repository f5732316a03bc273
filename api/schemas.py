"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# Player schemas
class TokenRequest(BaseModel):
    """Request for a signed player token."""

    player_id: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")


class TokenResponse(BaseModel):
    """Signed player token."""

    player_id: str
    token: str


# Game schemas
class CreateGameRequest(BaseModel):
    """Request to open a game in a channel."""

    channel_id: str = Field(..., min_length=1, max_length=64)


class BetRequest(BaseModel):
    """Request to place a bet."""

    amount: int = Field(..., ge=1, description="Bet amount")


class HandResponse(BaseModel):
    """Hand representation."""

    model_config = ConfigDict(from_attributes=True)

    hand_id: str
    owner_id: str
    cards: list[str]
    status: Literal["active", "stood", "bust"]
    score: int
    bet: int
    is_doubled_down: bool = False
    double_down_bet: int = 0
    is_split: bool = False
    split_sibling_id: str | None = None
    parent_hand_id: str | None = None
    has_insurance: bool = False
    insurance_bet: int = 0
    hidden_cards: int = 0


class HandResultResponse(BaseModel):
    """Settlement of one hand."""

    owner_id: str
    hand_id: str
    parent_hand_id: str | None
    cards: list[str]
    score: int
    bet: int
    double_down_bet: int
    insurance_bet: int
    outcome: Literal["win", "lose", "push", "blackjack"]
    payout: int
    insurance_payout: int


class GameResultResponse(BaseModel):
    """Settlement of a completed game."""

    game_id: str
    channel_id: str
    dealer_cards: list[str]
    dealer_score: int
    hands: list[HandResultResponse]
    completed_at: datetime


class GameStateResponse(BaseModel):
    """Current table state."""

    game_id: str
    channel_id: str
    phase: str
    player_order: list[str]
    hands: list[HandResponse]
    dealer_hand: HandResponse
    bets: dict[str, int]
    current_turn: str | None
    current_bettor: str | None
    special_bets: list[str]
    payouts_processed: bool
    cards_remaining: int
    was_shuffled: bool = False
    result: GameResultResponse | None = None
    card: str | None = None
    amount: int | None = None


# Wallet schemas
class WalletResponse(BaseModel):
    """Wallet balance."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    balance: int
    loan_amount: int


class RepayRequest(BaseModel):
    """Request to repay part of a loan."""

    amount: int = Field(..., ge=1)


class TransactionResponse(BaseModel):
    """Wallet transaction."""

    transaction_id: str
    amount: int
    transaction_type: Literal["bet", "win", "loan", "repayment", "refund"]
    description: str
    balance_after: int
    reference_id: str | None
    timestamp: datetime

"""Player identity tokens signed with itsdangerous."""

import logging
from typing import Annotated

from fastapi import Header, HTTPException
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import config

logger = logging.getLogger(__name__)

PLAYER_TOKEN_HEADER = "X-Player-Token"


class PlayerSigner:
    """Sign and verify player ids using itsdangerous."""

    def __init__(self, secret_key: str | None = None) -> None:
        """Initialize the signer with a secret key."""
        self._secret_key = secret_key or config.security.secret_key
        self._serializer = URLSafeTimedSerializer(self._secret_key, salt="player-token")

    def sign(self, player_id: str) -> str:
        """Create a signed token from a player id."""
        return self._serializer.dumps(player_id)

    def unsign(self, token: str, max_age: int | None = None) -> str | None:
        """
        Verify and extract the player id from a signed token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to the configured token lifetime)

        Returns:
            The player id if valid, None otherwise
        """
        max_age = max_age or config.security.token_max_age
        try:
            return self._serializer.loads(token, max_age=max_age)
        except SignatureExpired:
            logger.debug("Rejected expired player token")
            return None
        except BadSignature:
            logger.debug("Rejected player token with bad signature")
            return None


# Global signer instance
_player_signer: PlayerSigner | None = None


def get_player_signer() -> PlayerSigner:
    """Get or create the player signer."""
    global _player_signer
    if _player_signer is None:
        _player_signer = PlayerSigner()
    return _player_signer


async def current_player(
    token: Annotated[str | None, Header(alias=PLAYER_TOKEN_HEADER)] = None,
) -> str:
    """Resolve the acting player from the signed token header."""
    if token is None:
        raise HTTPException(status_code=401, detail=f"Missing {PLAYER_TOKEN_HEADER} header")

    player_id = get_player_signer().unsign(token)
    if player_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired player token")
    return player_id

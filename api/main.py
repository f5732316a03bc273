"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from api.routes import game, history, players
from config import config
from core.errors import (
    GameNotFoundError,
    InvalidActionError,
    InvariantError,
    ResourceError,
    WalletError,
)

logging.basicConfig(level=config.logging.level, format=config.logging.format)
logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    enabled=config.rate_limit.enabled,
    default_limits=[f"{config.rate_limit.requests_per_minute}/minute"],
)


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


async def _invalid_action_handler(request: Request, exc: InvalidActionError) -> JSONResponse:
    """Rejected user actions: the game is unchanged."""
    status_code = 404 if isinstance(exc, GameNotFoundError) else 400
    return _error_response(status_code, exc)


async def _wallet_error_handler(request: Request, exc: WalletError) -> JSONResponse:
    return _error_response(400, exc)


async def _resource_error_handler(request: Request, exc: ResourceError) -> JSONResponse:
    """Not enough cards or funds to carry out the action."""
    return _error_response(409, exc)


async def _invariant_error_handler(request: Request, exc: InvariantError) -> JSONResponse:
    logger.error("Invariant violated handling %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal game error"})


app = FastAPI(
    title="Blackjack Table",
    description="Multiplayer blackjack tables with wallets, loans and special bets",
    version="0.1.0",
)

# Add rate limiter to app state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(InvalidActionError, _invalid_action_handler)
app.add_exception_handler(WalletError, _wallet_error_handler)
app.add_exception_handler(ResourceError, _resource_error_handler)
app.add_exception_handler(InvariantError, _invariant_error_handler)

# CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.allowed_origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=config.cors.allow_methods,
    allow_headers=config.cors.allow_headers,
)


@app.get("/api/health")
@limiter.limit(f"{config.rate_limit.requests_per_minute}/minute")
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(players.router, prefix="/api/players", tags=["players"])
app.include_router(game.router, prefix="/api/games", tags=["games"])
app.include_router(history.router, prefix="/api/history", tags=["history"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=config.host, port=config.port, reload=config.debug)

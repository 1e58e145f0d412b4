from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """
    Minimal health check response.

    This endpoint is intentionally lightweight and side-effect free.
    """

    status: str
    environment: str
    following: str | None = None
    follower_running: bool = False


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health(request: Request) -> HealthResponse:
    settings = request.app.state.settings
    bot = request.app.state.bot
    return HealthResponse(
        status="ok",
        environment=settings.env,
        following=bot.config.target_account if bot is not None else None,
        follower_running=bot.running if bot is not None else False,
    )

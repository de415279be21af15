"""Realtime Session Route - mint ephemeral narration credentials.

Keeps the upstream API key on the server. Clients (including
RealtimeVoiceTransport configured with bootstrap_url) POST their
instructions here and receive a short-lived client secret.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from yogaflow.config.settings import get_settings
from yogaflow.exceptions import TransportUnavailableError
from yogaflow.observability.logging import get_logger
from yogaflow.transport.bootstrap import RealtimeSessionClient

logger = get_logger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])

# Global client (initialized on first use)
_session_client: RealtimeSessionClient | None = None


def get_session_client() -> RealtimeSessionClient:
    """Get global upstream session client."""
    global _session_client
    if _session_client is None:
        settings = get_settings()
        # Always upstream: this route is what bootstrap_url points at
        _session_client = RealtimeSessionClient(
            api_key=settings.openai_api_key,
            base_url=settings.realtime_base_url,
            model=settings.realtime_model,
            timeout_s=settings.http_timeout_s,
        )
    return _session_client


async def close_session_client() -> None:
    global _session_client
    if _session_client is not None:
        await _session_client.close()
        _session_client = None


class RealtimeSessionRequest(BaseModel):
    """Request to mint a realtime session."""

    instructions: str = Field(..., min_length=1, description="Agent system prompt")
    voice: str | None = Field(None, description="Voice (defaults to settings)")
    tools: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Function declarations exposed to the agent",
    )


class ClientSecret(BaseModel):
    value: str
    expires_at: int | None = None


class RealtimeSessionResponse(BaseModel):
    """Ephemeral credential for the SDP exchange."""

    client_secret: ClientSecret
    session_id: str | None = None


@router.post("/session", response_model=RealtimeSessionResponse)
async def create_realtime_session(
    request: RealtimeSessionRequest,
    client: RealtimeSessionClient = Depends(get_session_client),
) -> RealtimeSessionResponse:
    """Mint an ephemeral realtime credential.

    Returns 500 if no API key is configured, 502 if upstream rejects.
    """
    if not get_settings().openai_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Realtime API key not configured",
        )

    voice = request.voice or get_settings().realtime_voice
    try:
        credentials = await client.create_session(
            request.instructions,
            voice,
            request.tools,
        )
    except TransportUnavailableError as e:
        logger.error(
            "realtime_session_failed",
            error=e.message,
            status_code=e.status_code,
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create session",
        )

    return RealtimeSessionResponse(
        client_secret=ClientSecret(
            value=credentials.client_secret,
            expires_at=credentials.expires_at,
        ),
        session_id=credentials.session_id,
    )

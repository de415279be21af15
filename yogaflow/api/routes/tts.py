"""TTS Route - cached narration synthesis.

POST /tts {"text": "..."} → audio/mpeg
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from yogaflow.config.settings import get_settings
from yogaflow.exceptions import NarrationSynthesisError
from yogaflow.narration.narrator import Narrator
from yogaflow.observability.logging import get_logger
from yogaflow.transport.factory import create_narrator

logger = get_logger(__name__)

router = APIRouter(tags=["tts"])

_narrator: Narrator | None = None


def get_narrator() -> Narrator:
    """Get global narrator (no playback, synthesis and cache only)."""
    global _narrator
    if _narrator is None:
        _narrator = create_narrator(get_settings(), player=None)
    return _narrator


async def close_narrator() -> None:
    global _narrator
    if _narrator is not None:
        await _narrator.close()
        _narrator = None


class TTSRequest(BaseModel):
    text: str | None = None


@router.post(
    "/tts",
    response_class=Response,
    responses={200: {"content": {"audio/mpeg": {}}}},
)
async def synthesize(
    request: TTSRequest,
    narrator: Narrator = Depends(get_narrator),
) -> Response:
    """Synthesize (or serve cached) narration audio."""
    if not get_settings().elevenlabs_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ElevenLabs API key not configured",
        )

    text = (request.text or "").strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Text is required",
        )

    try:
        audio = await narrator.synthesize(text)
    except NarrationSynthesisError as e:
        logger.error("tts_failed", error=e.message, status_code=e.status_code)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to generate speech",
        )

    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={"Cache-Control": "public, max-age=86400"},
    )

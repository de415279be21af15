"""Speech Synthesis - ElevenLabs text-to-speech.

Returns complete MP3 bodies. Narration utterances are short, so the
streamed chunks are joined before they reach the cache.
"""

from __future__ import annotations

import httpx
from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs
from elevenlabs.core.api_error import ApiError

from yogaflow.config.settings import Settings
from yogaflow.exceptions import NarrationSynthesisError
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_VOICE_SETTINGS = VoiceSettings(
    stability=0.5,
    similarity_boost=0.75,
    style=0.0,
    use_speaker_boost=True,
)


class SpeechSynthesizer:
    """ElevenLabs client.

    Usage:
        synth = SpeechSynthesizer.from_settings(get_settings())
        audio = await synth.synthesize("Mountain Pose.")
        await synth.close()
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.elevenlabs.io",
        voice_id: str = "21m00Tcm4TlvDq8ikWAM",
        model_id: str = "eleven_multilingual_v2",
        voice_settings: VoiceSettings | None = None,
        output_format: str = "mp3_44100_128",
        timeout_s: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._voice_id = voice_id
        self._model_id = model_id
        self._voice_settings = voice_settings or DEFAULT_VOICE_SETTINGS
        self._output_format = output_format
        self._timeout_s = timeout_s
        self._http = http_client
        self._owns_http = http_client is None
        self._client: AsyncElevenLabs | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SpeechSynthesizer":
        return cls(
            api_key=settings.elevenlabs_api_key,
            base_url=settings.elevenlabs_base_url,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            timeout_s=settings.http_timeout_s,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncElevenLabs:
        if self._client is None:
            if self._http is None:
                self._http = httpx.AsyncClient(timeout=self._timeout_s)
            self._client = AsyncElevenLabs(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout_s,
                httpx_client=self._http,
            )
        return self._client

    async def synthesize(self, text: str) -> bytes:
        """Synthesize text to MP3.

        Raises:
            NarrationSynthesisError: Missing key, API or network failure, empty body
        """
        if not self._api_key:
            raise NarrationSynthesisError("ElevenLabs API key not configured")
        if not text.strip():
            raise NarrationSynthesisError("text is required", text_length=0)

        client = self._get_client()
        chunks: list[bytes] = []
        try:
            async for chunk in client.text_to_speech.convert(
                voice_id=self._voice_id,
                text=text,
                model_id=self._model_id,
                voice_settings=self._voice_settings,
                output_format=self._output_format,
                request_options={"max_retries": 0},
            ):
                if chunk:
                    chunks.append(chunk)
        except ApiError as e:
            logger.error(
                "tts_api_error",
                status_code=e.status_code,
                body=str(e.body)[:200],
            )
            raise NarrationSynthesisError(
                "ElevenLabs request rejected",
                text_length=len(text),
                status_code=e.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise NarrationSynthesisError(
                str(e) or type(e).__name__, text_length=len(text)
            ) from e

        audio = b"".join(chunks)
        if not audio:
            raise NarrationSynthesisError("empty audio body", text_length=len(text))
        logger.debug("tts_synthesized", text_length=len(text), chunks=len(chunks), bytes=len(audio))
        return audio

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
        self._client = None

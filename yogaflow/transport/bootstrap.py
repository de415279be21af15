"""Realtime Session Bootstrap - ephemeral credentials and SDP exchange.

Two HTTP calls precede a live narration session:

1. Mint an ephemeral credential. Either directly upstream
   (POST {base_url}/realtime/sessions with the API key) or through this
   service's own POST /realtime/session route (bootstrap_url), which keeps
   the API key off the client.
2. Exchange the SDP offer for an answer
   (POST {base_url}/realtime?model=..., application/sdp, ephemeral key).

Every failure surfaces as TransportUnavailableError with the failing stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from yogaflow.config.settings import Settings
from yogaflow.exceptions import TransportUnavailableError
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RealtimeCredentials:
    """Ephemeral session credential."""

    client_secret: str
    session_id: str | None = None
    expires_at: int | None = None


class RealtimeSessionClient:
    """HTTP client for realtime session bootstrap.

    Usage:
        client = RealtimeSessionClient.from_settings(get_settings())
        creds = await client.create_session(instructions, "sage", [CONTINUATION_TOOL])
        answer_sdp = await client.exchange_sdp(offer_sdp, creds)
        await client.close()
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-realtime-preview-2024-12-17",
        bootstrap_url: str | None = None,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._bootstrap_url = bootstrap_url
        self._timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RealtimeSessionClient":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.realtime_base_url,
            model=settings.realtime_model,
            bootstrap_url=settings.bootstrap_url,
            timeout_s=settings.http_timeout_s,
        )

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    def session_config(
        self,
        instructions: str,
        voice: str,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Upstream session body. One-way narration: no transcription, no VAD."""
        config: dict[str, Any] = {
            "model": self._model,
            "voice": voice,
            "instructions": instructions,
            "input_audio_transcription": None,
            "turn_detection": None,
        }
        if tools:
            config["tools"] = tools
            config["tool_choice"] = "auto"
        return config

    async def create_session(
        self,
        instructions: str,
        voice: str,
        tools: list[dict[str, Any]] | None = None,
    ) -> RealtimeCredentials:
        """Mint an ephemeral credential.

        Raises:
            TransportUnavailableError: On missing key, HTTP failure or
                malformed response
        """
        if self._bootstrap_url:
            url = self._bootstrap_url
            headers: dict[str, str] = {}
            body: dict[str, Any] = {
                "instructions": instructions,
                "voice": voice,
                "tools": tools or [],
            }
        else:
            if not self._api_key:
                raise TransportUnavailableError(
                    "no API key configured", stage="bootstrap"
                )
            url = f"{self._base_url}/realtime/sessions"
            headers = {"Authorization": f"Bearer {self._api_key}"}
            body = self.session_config(instructions, voice, tools)

        data = await self._post_json(url, body, headers)
        return parse_credentials(data)

    async def exchange_sdp(self, offer_sdp: str, credentials: RealtimeCredentials) -> str:
        """Send the SDP offer, return the SDP answer.

        Raises:
            TransportUnavailableError: On HTTP failure or empty answer
        """
        url = f"{self._base_url}/realtime"
        try:
            response = await self._get_client().post(
                url,
                params={"model": self._model},
                content=offer_sdp,
                headers={
                    "Authorization": f"Bearer {credentials.client_secret}",
                    "Content-Type": "application/sdp",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportUnavailableError(
                f"SDP exchange rejected: {e.response.text[:200]}",
                status_code=e.response.status_code,
                stage="sdp",
            ) from e
        except httpx.HTTPError as e:
            raise TransportUnavailableError(str(e) or type(e).__name__, stage="sdp") from e

        answer = response.text
        if not answer.strip():
            raise TransportUnavailableError("empty SDP answer", stage="sdp")
        return answer

    async def _post_json(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str],
    ) -> dict[str, Any]:
        try:
            response = await self._get_client().post(url, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "realtime_session_error",
                status_code=e.response.status_code,
                body=e.response.text[:200],
            )
            raise TransportUnavailableError(
                "session bootstrap rejected",
                status_code=e.response.status_code,
                stage="bootstrap",
            ) from e
        except httpx.HTTPError as e:
            raise TransportUnavailableError(
                str(e) or type(e).__name__, stage="bootstrap"
            ) from e
        except ValueError as e:
            raise TransportUnavailableError(
                "malformed bootstrap response", stage="bootstrap"
            ) from e

        if not isinstance(data, dict):
            raise TransportUnavailableError("malformed bootstrap response", stage="bootstrap")
        return data

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def parse_credentials(data: dict[str, Any]) -> RealtimeCredentials:
    """Parse upstream or proxied bootstrap body.

    Accepts client_secret either as {"value", "expires_at"} or a bare
    string, and the session id as "id" (upstream) or "session_id" (proxy).
    """
    secret = data.get("client_secret")
    expires_at = None
    if isinstance(secret, dict):
        expires_at = secret.get("expires_at")
        secret = secret.get("value")

    if not isinstance(secret, str) or not secret:
        raise TransportUnavailableError("bootstrap response missing client_secret", stage="bootstrap")

    return RealtimeCredentials(
        client_secret=secret,
        session_id=data.get("session_id") or data.get("id"),
        expires_at=expires_at,
    )

"""Application Settings - Environment-based configuration.

Uses Pydantic Settings for validation and type coercion.

Required variables fail startup if missing.
Conditional variables are required only when their parent feature is enabled.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from yogaflow.config.constants import FLOW


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API bind host")
    api_port: int = Field(default=8090, ge=1024, le=65535, description="API port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment name"
    )

    # Voice transport
    voice_transport: Literal["realtime", "narrated", "mock"] = Field(
        default="realtime",
        description="Narration backend used by the orchestrator",
    )
    connect_timeout_s: float = Field(
        default=FLOW.CONNECT_TIMEOUT_S,
        gt=0,
        le=120,
        description="Upper bound on live session establishment",
    )
    barrier_timeout_s: float = Field(
        default=FLOW.BARRIER_TIMEOUT_S,
        gt=0,
        le=120,
        description="Start the hold timer anyway if no continuation arrives",
    )

    # Realtime agent (OpenAI Realtime)
    openai_api_key: str | None = Field(
        default=None, description="API key used to mint realtime sessions"
    )
    realtime_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Realtime API base URL",
    )
    realtime_model: str = Field(
        default="gpt-4o-realtime-preview-2024-12-17",
        description="Realtime model identifier",
    )
    realtime_voice: str = Field(default="sage", description="Narration voice")
    bootstrap_url: str | None = Field(
        default=None,
        description="Mint sessions through this service's /realtime/session route instead of upstream",
    )
    http_timeout_s: float = Field(
        default=10.0, gt=0, le=60, description="Timeout for bootstrap and SDP requests"
    )

    # WebRTC Configuration
    webrtc_stun_server: str = Field(
        default="stun:stun.l.google.com:19302", description="STUN server URI"
    )

    # Narration (ElevenLabs TTS)
    elevenlabs_api_key: str | None = Field(
        default=None, description="ElevenLabs API key for narration synthesis"
    )
    elevenlabs_base_url: str = Field(
        default="https://api.elevenlabs.io", description="ElevenLabs API base URL"
    )
    elevenlabs_voice_id: str = Field(
        default="21m00Tcm4TlvDq8ikWAM", description="ElevenLabs voice id"
    )
    elevenlabs_model_id: str = Field(
        default="eleven_multilingual_v2", description="ElevenLabs model id"
    )
    narration_cache_dir: str = Field(
        default=".cache/narration", description="Directory for cached narration audio"
    )
    narration_min_bytes: int = Field(
        default=FLOW.NARRATION_MIN_BYTES,
        ge=0,
        description="Cached blobs smaller than this are treated as corrupt",
    )

    # Persistence
    flow_store_path: str = Field(
        default="data/flows.json", description="JSON document holding saved flows"
    )

    # Observability
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics")

    def model_post_init(self, __context) -> None:
        """Validate conditional requirements after model creation."""
        if (
            self.environment == "production"
            and self.voice_transport == "realtime"
            and not self.openai_api_key
            and not self.bootstrap_url
        ):
            raise ValueError(
                "openai_api_key or bootstrap_url is required for the realtime "
                "transport in production environment"
            )

        if self.voice_transport == "narrated" and self.environment == "production":
            if not self.elevenlabs_api_key:
                raise ValueError(
                    "elevenlabs_api_key is required when voice_transport=narrated "
                    "in production environment"
                )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

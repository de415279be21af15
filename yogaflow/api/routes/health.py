"""Health check endpoints.

- /healthz: Liveness probe (is the process alive?)
- /health: Readiness plus component status
"""

from typing import Any

from fastapi import APIRouter, Response, status

router = APIRouter(tags=["health"])


# Health status tracking
_ready: bool = False
_components: dict[str, bool] = {
    "flow_store": False,
    "narration_cache": False,
    "realtime": False,
    "tts": False,
}

# Components without which no session can be played
CRITICAL_COMPONENTS = ("flow_store",)


def set_ready(ready: bool) -> None:
    """Set overall readiness status."""
    global _ready
    _ready = ready


def set_component_health(component: str, healthy: bool) -> None:
    """Set health status for a specific component."""
    if component in _components:
        _components[component] = healthy


def get_component_health() -> dict[str, bool]:
    """Get health status of all components."""
    return _components.copy()


@router.get("/healthz", response_model=dict[str, str])
async def healthz() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {"status": "alive"}


@router.get("/health")
async def health(response: Response) -> dict[str, Any]:
    """Readiness and component status.

    Returns 503 if the service is not ready or a critical component is
    down. Realtime and TTS being unconfigured only degrades voice.
    """
    critical_ready = all(_components.get(c, False) for c in CRITICAL_COMPONENTS)

    if not _ready or not critical_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        status_str = "unavailable"
    elif all(_components.values()):
        status_str = "healthy"
    else:
        status_str = "degraded"

    return {
        "status": status_str,
        "ready": _ready,
        "components": _components.copy(),
    }

"""Flow API Routes - generate and browse saved flows.

Provides REST endpoints for flow management:
- Generate a flow from preferences (optionally saving it)
- List saved flows (flat or grouped by day)
- Get / delete a saved flow
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from yogaflow.config.settings import get_settings
from yogaflow.exceptions import PersistenceError
from yogaflow.flows import (
    BreathPace,
    Difficulty,
    FlowOptions,
    FlowStore,
    FocusArea,
    TimerMode,
    calculate_flow_duration,
    generate_flow,
    generate_test_flow,
)
from yogaflow.flows.models import Flow
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/flows", tags=["flows"])

# Global store (initialized on first use)
_flow_store: FlowStore | None = None


def get_flow_store() -> FlowStore:
    """Get global flow store."""
    global _flow_store
    if _flow_store is None:
        _flow_store = FlowStore(get_settings().flow_store_path)
    return _flow_store


# Request/Response models
class GenerateFlowRequest(BaseModel):
    """Preferences for a new flow."""

    duration: int = Field(15, ge=1, le=120, description="Total minutes")
    focus_areas: list[FocusArea] = Field(
        default_factory=lambda: [FocusArea.FULL_BODY],
        description="Body areas to target",
    )
    timer_mode: TimerMode = Field(TimerMode.SECONDS, description="Hold unit")
    breath_pace: BreathPace = Field(BreathPace.NORMAL, description="Seconds per breath")
    voice_enabled: bool = Field(True, description="Narrate the session")
    difficulty: Difficulty = Field(Difficulty.BEGINNER, description="Maximum pose difficulty")
    test: bool = Field(False, description="Return the short test flow instead")
    save: bool = Field(False, description="Persist the flow to history")


class FlowResponse(BaseModel):
    """A flow plus its computed hold time."""

    flow: dict[str, Any]
    total_minutes: int
    total_seconds: int


def _to_response(flow: Flow) -> FlowResponse:
    minutes, seconds = calculate_flow_duration(flow)
    return FlowResponse(flow=flow.to_dict(), total_minutes=minutes, total_seconds=seconds)


def _storage_unavailable(e: PersistenceError) -> HTTPException:
    logger.error("flow_store_failed", operation=e.operation, error=e.message)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Flow storage unavailable",
    )


@router.post("/generate", response_model=FlowResponse)
async def create_flow(
    request: GenerateFlowRequest,
    store: FlowStore = Depends(get_flow_store),
) -> FlowResponse:
    """Generate a flow. Returns 503 if saving was requested and failed."""
    if request.test:
        flow = generate_test_flow()
    else:
        flow = generate_flow(
            FlowOptions(
                duration=request.duration,
                focus_areas=list(request.focus_areas),
                timer_mode=request.timer_mode,
                breath_pace=request.breath_pace,
                voice_enabled=request.voice_enabled,
                difficulty=request.difficulty,
            )
        )

    logger.info(
        "flow_generated",
        flow_id=flow.id,
        poses=len(flow),
        timer_mode=flow.timer_mode.value,
    )

    if request.save:
        try:
            store.append(flow)
        except PersistenceError as e:
            raise _storage_unavailable(e)

    return _to_response(flow)


@router.get("")
async def list_flows(
    grouped: bool = False,
    store: FlowStore = Depends(get_flow_store),
) -> dict[str, Any]:
    """Saved flows, most recent first.

    With ``grouped=true`` the flows are keyed by calendar day.
    """
    try:
        if grouped:
            groups = store.group_by_date()
            return {
                "groups": [
                    {"day": day, "flows": [_to_response(f).model_dump() for f in flows]}
                    for day, flows in groups.items()
                ]
            }
        flows = store.list()
    except PersistenceError as e:
        raise _storage_unavailable(e)

    return {"flows": [_to_response(f).model_dump() for f in flows]}


@router.get("/{flow_id}", response_model=FlowResponse)
async def get_flow(
    flow_id: str,
    store: FlowStore = Depends(get_flow_store),
) -> FlowResponse:
    """Get a saved flow."""
    try:
        flow = store.get(flow_id)
    except PersistenceError as e:
        raise _storage_unavailable(e)

    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return _to_response(flow)


@router.delete("/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flow(
    flow_id: str,
    store: FlowStore = Depends(get_flow_store),
) -> Response:
    """Delete a saved flow."""
    try:
        removed = store.remove(flow_id)
    except PersistenceError as e:
        raise _storage_unavailable(e)

    if not removed:
        raise HTTPException(status_code=404, detail="Flow not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

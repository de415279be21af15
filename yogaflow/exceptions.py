"""YogaFlow Exception Hierarchy.

Structured exception classes shared by the orchestrator, the voice
transports, narration and persistence.

Hierarchy:
    YogaFlowError (base)
    ├── SessionStateError
    ├── ConfigurationError
    ├── FlowError
    │   ├── EmptyFlowError
    │   └── PoseNotFoundError
    ├── TransportError
    │   └── TransportUnavailableError
    ├── NarrationError
    │   ├── NarrationSynthesisError
    │   └── NarrationPlaybackError
    └── PersistenceError

Transport and narration errors never reach the orchestrator as exceptions:
the transport boundary converts them into typed events.
"""

from typing import Any


class YogaFlowError(Exception):
    """Base exception for all YogaFlow errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Session Errors
# =============================================================================


class SessionStateError(YogaFlowError):
    """Raised for invalid orchestrator state transitions."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        current_state: str | None = None,
        target_state: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if session_id:
            details["session_id"] = session_id
        if current_state:
            details["current_state"] = current_state
        if target_state:
            details["target_state"] = target_state
        super().__init__(message, details, recoverable=False)
        self.session_id = session_id


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(YogaFlowError):
    """Raised when a configuration value is missing or invalid."""

    def __init__(self, config_key: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid configuration for {config_key}: {reason}",
            details={"config_key": config_key, "reason": reason},
            recoverable=False,
        )


# =============================================================================
# Flow Errors
# =============================================================================


class FlowError(YogaFlowError):
    """Base exception for flow construction errors."""

    pass


class EmptyFlowError(FlowError):
    """Raised when a flow would contain no poses."""

    def __init__(self, flow_id: str | None = None) -> None:
        details = {"flow_id": flow_id} if flow_id else None
        super().__init__(
            message="A flow must contain at least one pose",
            details=details,
            recoverable=False,
        )


class PoseNotFoundError(FlowError):
    """Raised when a pose id is not in the catalog."""

    def __init__(self, pose_id: str) -> None:
        super().__init__(
            message=f"Pose not found: {pose_id}",
            details={"pose_id": pose_id},
            recoverable=False,
        )


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(YogaFlowError):
    """Base exception for voice transport errors."""

    pass


class TransportUnavailableError(TransportError):
    """Raised when session bootstrap or media negotiation fails."""

    def __init__(
        self,
        reason: str,
        status_code: int | None = None,
        stage: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        if stage:
            details["stage"] = stage
        super().__init__(
            message=f"Voice transport unavailable: {reason}",
            details=details,
            recoverable=True,  # User may retry
        )
        self.status_code = status_code
        self.stage = stage


# =============================================================================
# Narration Errors
# =============================================================================


class NarrationError(YogaFlowError):
    """Base exception for narration errors."""

    pass


class NarrationSynthesisError(NarrationError):
    """Raised when text-to-speech synthesis fails."""

    def __init__(
        self,
        reason: str,
        text_length: int | None = None,
        status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"reason": reason}
        if text_length is not None:
            details["text_length"] = text_length
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"Narration synthesis failed: {reason}",
            details=details,
            recoverable=True,
        )
        self.status_code = status_code


class NarrationPlaybackError(NarrationError):
    """Raised when local audio playback fails."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Narration playback failed: {reason}",
            details={"reason": reason},
            recoverable=True,
        )


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(YogaFlowError):
    """Raised when the flow store cannot be read or written."""

    def __init__(self, operation: str, path: str, reason: str) -> None:
        super().__init__(
            message=f"Flow store {operation} failed: {reason}",
            details={"operation": operation, "path": path, "reason": reason},
            recoverable=True,
        )
        self.operation = operation

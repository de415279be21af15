"""YogaFlow - Voice-guided pose sessions."""

__version__ = "0.3.0"

# Export exception hierarchy for easy importing
from yogaflow.exceptions import (
    YogaFlowError,
    SessionStateError,
    ConfigurationError,
    FlowError,
    EmptyFlowError,
    PoseNotFoundError,
    TransportError,
    TransportUnavailableError,
    NarrationError,
    NarrationSynthesisError,
    NarrationPlaybackError,
    PersistenceError,
)

__all__ = [
    "__version__",
    # Base
    "YogaFlowError",
    # Session
    "SessionStateError",
    # Configuration
    "ConfigurationError",
    # Flow
    "FlowError",
    "EmptyFlowError",
    "PoseNotFoundError",
    # Transport
    "TransportError",
    "TransportUnavailableError",
    # Narration
    "NarrationError",
    "NarrationSynthesisError",
    "NarrationPlaybackError",
    # Persistence
    "PersistenceError",
]

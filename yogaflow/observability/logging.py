"""Structured Logging - JSON logs with correlation.

Provides structured logging for:
- Session events (start, end, state changes, pose changes)
- Cue traffic (sent, dropped, continuation, barrier timeouts)
- Voice transport lifecycle
- Error tracking

All domain logs include session_id for correlation.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; else human-readable
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging (uvicorn, aiortc)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


# -----------------------------------------------------------------------------
# Event-specific logging functions
# -----------------------------------------------------------------------------


class SessionLogger:
    """Logger for guided session events."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._log = get_logger("session").bind(session_id=session_id)

    def session_started(self, metadata: dict[str, Any] | None = None) -> None:
        """Log session start."""
        self._log.info(
            "session_started",
            event_type="session.started",
            **(metadata or {}),
        )

    def session_ended(self, reason: str, duration_s: float) -> None:
        """Log session end."""
        self._log.info(
            "session_ended",
            event_type="session.ended",
            reason=reason,
            duration_s=duration_s,
        )

    def state_change(
        self,
        old_state: str,
        new_state: str,
        reason: str,
        t_ms: int,
    ) -> None:
        """Log state transition."""
        self._log.info(
            "state_change",
            event_type="session.state_change",
            old_state=old_state,
            new_state=new_state,
            reason=reason,
            t_ms=t_ms,
        )

    def pose_changed(self, index: int, pose_id: str, reason: str) -> None:
        """Log visible pose change."""
        self._log.info(
            "pose_changed",
            event_type="session.pose_changed",
            index=index,
            pose_id=pose_id,
            reason=reason,
        )

    def persistence_failed(self, error: str) -> None:
        """Log flow persistence failure (non-fatal)."""
        self._log.error(
            "persistence_failed",
            event_type="session.persistence_failed",
            error=error,
        )


class CueLogger:
    """Logger for cue protocol traffic."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._log = get_logger("cue").bind(session_id=session_id)

    def cue_sent(self, kind: str, seq: int, token: str) -> None:
        """Log cue handed to the transport."""
        self._log.info(
            "cue_sent",
            event_type="cue.sent",
            kind=kind,
            seq=seq,
            token=token,
        )

    def cue_dropped(self, kind: str, seq: int) -> None:
        """Log cue the transport could not deliver."""
        self._log.warning(
            "cue_dropped",
            event_type="cue.dropped",
            kind=kind,
            seq=seq,
        )

    def continuation_received(self, seq: int | None, waited_ms: float) -> None:
        """Log barrier release."""
        self._log.info(
            "continuation_received",
            event_type="cue.continuation",
            seq=seq,
            waited_ms=waited_ms,
        )

    def continuation_ignored(self, seq: int | None, pending_seq: int | None) -> None:
        """Log continuation that does not match the pending cue."""
        self._log.debug(
            "continuation_ignored",
            event_type="cue.continuation_ignored",
            seq=seq,
            pending_seq=pending_seq,
        )

    def barrier_timeout(self, seq: int, timeout_s: float) -> None:
        """Log barrier released by the bounded wait."""
        self._log.warning(
            "barrier_timeout",
            event_type="cue.barrier_timeout",
            seq=seq,
            timeout_s=timeout_s,
        )


class CancelLogger:
    """Logger for narration cancel events."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._log = get_logger("cancel").bind(session_id=session_id)

    def cancel_initiated(self, reason: str, t_event_ms: int) -> None:
        """Log CANCEL initiation."""
        self._log.info(
            "cancel_initiated",
            event_type="cancel.initiated",
            reason=reason,
            t_event_ms=t_event_ms,
        )

    def handler_failed(self, handler: str, error: str) -> None:
        """Log a cancel handler fault."""
        self._log.warning(
            "cancel_handler_failed",
            event_type="cancel.handler_failed",
            handler=handler,
            error=error,
        )


class TransportLogger:
    """Logger for voice transport lifecycle events."""

    def __init__(self, session_id: str, transport: str) -> None:
        self._session_id = session_id
        self._log = get_logger("transport").bind(
            session_id=session_id,
            transport=transport,
        )

    def status_changed(self, old_status: str, new_status: str) -> None:
        """Log transport status change."""
        self._log.info(
            "transport_status",
            event_type="transport.status",
            old_status=old_status,
            new_status=new_status,
        )

    def connect_failed(self, error: str, stage: str | None = None) -> None:
        """Log failed connection attempt."""
        self._log.error(
            "transport_connect_failed",
            event_type="transport.connect_failed",
            error=error,
            stage=stage,
        )

    def server_error(self, payload: dict[str, Any]) -> None:
        """Log an error event reported by the remote agent."""
        self._log.warning(
            "agent_error",
            event_type="transport.agent_error",
            payload=payload,
        )

    def handler_failed(self, event_name: str, error: str) -> None:
        """Log an event consumer fault."""
        self._log.warning(
            "transport_handler_failed",
            event_type="transport.handler_failed",
            event_name=event_name,
            error=error,
        )

    def disconnected(self) -> None:
        """Log transport teardown."""
        self._log.info(
            "transport_disconnected",
            event_type="transport.disconnected",
        )


# Initialize default logging configuration
def init_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Initialize logging with defaults.

    Call this once at application startup.
    """
    configure_logging(level=level, json_format=json_format)

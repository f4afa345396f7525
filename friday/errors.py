"""
Error taxonomy shared by the recognition session, the gateways and the orchestrator.
"""

from enum import Enum
from typing import Optional


class RecognitionErrorKind(str, Enum):
    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    PERMISSION_DENIED = "permission-denied"
    OTHER = "other"


class GatewayErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMITED = "rate-limited"
    NETWORK = "network"
    UNAVAILABLE = "unavailable"


class FridayError(Exception):
    """Base class for errors raised by the assistant."""


class RecognitionError(FridayError):
    """Speech recognizer fault."""

    def __init__(self, kind: RecognitionErrorKind, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or f"Speech recognition error: {kind.value}")

    @property
    def recoverable(self) -> bool:
        return self.kind is RecognitionErrorKind.NO_SPEECH


class GatewayError(FridayError):
    """
    Failure talking to a generation or synthesis service.

    Args:
        kind: Failure category
        service: Human readable service name ("OpenAI", "ElevenLabs", ...)
        detail: Optional extra detail for the message
        status: HTTP status code if one was received
    """

    def __init__(
        self,
        kind: GatewayErrorKind,
        service: str,
        detail: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.kind = kind
        self.service = service
        self.status = status
        if detail:
            message = f"{service} API error: {detail}"
        elif status is not None:
            message = f"{service} API error: {status}"
        else:
            message = f"{service} API error: {kind.value}"
        super().__init__(message)


class PlaybackError(FridayError):
    """Audio could not be decoded or played."""


class CaptureUnavailable(FridayError):
    """Screen capture is not possible right now."""


def gateway_error_for_status(service: str, status: int, detail: Optional[str] = None) -> GatewayError:
    """Map an HTTP status code onto the gateway error taxonomy."""
    if status in (401, 403):
        kind = GatewayErrorKind.UNAUTHENTICATED
    elif status == 429:
        kind = GatewayErrorKind.RATE_LIMITED
    elif status in (408, 504):
        kind = GatewayErrorKind.NETWORK
    else:
        kind = GatewayErrorKind.UNAVAILABLE
    return GatewayError(kind, service, detail=detail, status=status)

"""
Contracts for the collaborators the orchestrator drives.

Concrete implementations live in transcription.py, llm.py, tts/, audio.py
and screen.py. Tests substitute small fakes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

from .errors import RecognitionError


class RecognitionMode(str, Enum):
    PASSIVE = "passive"
    ACTIVE = "active"


class EventKind(str, Enum):
    RESULT = "result"
    FAULT = "fault"
    END = "end"


@dataclass(frozen=True)
class RecognitionEvent:
    """One event emitted by a speech engine."""

    kind: EventKind
    text: str = ""
    is_final: bool = False
    error: Optional[RecognitionError] = None

    @classmethod
    def result(cls, text: str, is_final: bool = True) -> "RecognitionEvent":
        return cls(EventKind.RESULT, text=text, is_final=is_final)

    @classmethod
    def fault(cls, error: RecognitionError) -> "RecognitionEvent":
        return cls(EventKind.FAULT, error=error)

    @classmethod
    def ended(cls) -> "RecognitionEvent":
        return cls(EventKind.END)


EventSink = Callable[[RecognitionEvent], None]


class SpeechEngine(Protocol):
    def begin(self, mode: RecognitionMode, sink: EventSink) -> None:
        """Start recognizing; every event goes to ``sink`` (any thread)."""

    def end(self) -> None:
        """Stop recognizing. Must be safe to call when not running."""


class GenerationGateway(Protocol):
    async def generate(
        self,
        context: List[Dict[str, str]],
        image: Optional[str] = None,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        ...


class SynthesisGateway(Protocol):
    async def synthesize_async(self, text: str) -> bytes:
        ...


class PlaybackGateway(Protocol):
    async def play(self, audio: bytes) -> None:
        ...


class ScreenCaptureGateway(Protocol):
    async def capture(self, full_page: bool = False) -> str:
        ...

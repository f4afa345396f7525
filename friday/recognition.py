"""
Recognition session - owns a speech engine and runs it in one mode at a time.

Passive mode scans for wake phrases, active mode captures an utterance.
The session never runs both; a start request while any mode is running is
rejected. Engine events are marshalled onto the event loop so the engine
(which may call back from an audio thread) never touches session state.
"""

import asyncio
import logging
from typing import Callable, Optional

from .errors import RecognitionError, RecognitionErrorKind
from .gateways import EventKind, RecognitionEvent, RecognitionMode, SpeechEngine

logger = logging.getLogger(__name__)

RESTART_DELAY = 0.5  # Seconds before restarting an engine that ended on its own

FinalHandler = Callable[[str], None]
FaultHandler = Callable[[RecognitionError], None]


class RecognitionSession:
    """Continuous recognition over a single engine instance."""

    def __init__(self, engine: SpeechEngine, restart_delay: float = RESTART_DELAY):
        self._engine = engine
        self._restart_delay = restart_delay
        self._mode: Optional[RecognitionMode] = None
        # Liveness flag: True while the current mode is still wanted
        self._alive = False
        # Bumped on every (re)start and stop; events from older runs are dropped
        self._generation = 0
        self._on_final: Optional[FinalHandler] = None
        self._on_fault: Optional[FaultHandler] = None
        self._restart_handle: Optional[asyncio.TimerHandle] = None
        self.restarts = 0

    @property
    def mode(self) -> Optional[RecognitionMode]:
        return self._mode

    @property
    def active(self) -> bool:
        return self._mode is not None

    @property
    def restart_pending(self) -> bool:
        return self._restart_handle is not None

    def start_passive(self, on_final: FinalHandler, on_fault: Optional[FaultHandler] = None) -> bool:
        """Begin low-commitment listening; finalized fragments go to ``on_final``."""
        return self._start(RecognitionMode.PASSIVE, on_final, on_fault)

    def start_active(self, on_final: FinalHandler, on_fault: Optional[FaultHandler] = None) -> bool:
        """Begin utterance capture; finalized fragments go to ``on_final``."""
        return self._start(RecognitionMode.ACTIVE, on_final, on_fault)

    def stop(self):
        """Halt whatever mode is running. Safe to call repeatedly."""
        self._cancel_restart()
        self._alive = False
        self._generation += 1
        if self._mode is None:
            return
        logger.debug("Stopping %s recognition", self._mode.value)
        self._mode = None
        self._on_final = None
        self._on_fault = None
        try:
            self._engine.end()
        except Exception as e:
            logger.warning(f"Speech engine failed to stop cleanly: {e}")

    def _start(self, mode: RecognitionMode, on_final: FinalHandler, on_fault: Optional[FaultHandler]) -> bool:
        if self._mode is not None:
            logger.debug("Rejected %s start: %s recognition already running", mode.value, self._mode.value)
            return False

        self._mode = mode
        self._alive = True
        self._on_final = on_final
        self._on_fault = on_fault
        self._generation += 1
        logger.debug("Starting %s recognition", mode.value)
        self._begin()
        return True

    def _begin(self):
        loop = asyncio.get_running_loop()
        generation = self._generation
        assert self._mode is not None

        def sink(event: RecognitionEvent):
            loop.call_soon_threadsafe(self._handle_event, generation, event)

        try:
            self._engine.begin(self._mode, sink)
        except Exception as e:
            logger.error(f"Speech engine failed to start: {e}")
            error = e if isinstance(e, RecognitionError) else RecognitionError(RecognitionErrorKind.OTHER, str(e))
            loop.call_soon(self._handle_event, generation, RecognitionEvent.fault(error))

    def _handle_event(self, generation: int, event: RecognitionEvent):
        if generation != self._generation or not self._alive:
            return

        if event.kind is EventKind.RESULT:
            text = event.text.strip()
            if event.is_final and text and self._on_final is not None:
                self._on_final(text)

        elif event.kind is EventKind.FAULT:
            self._handle_fault(event.error or RecognitionError(RecognitionErrorKind.OTHER))

        elif event.kind is EventKind.END:
            self._schedule_restart()

    def _handle_fault(self, error: RecognitionError):
        on_fault = self._on_fault
        if error.kind is RecognitionErrorKind.NO_SPEECH:
            if self._mode is RecognitionMode.PASSIVE:
                # Nothing said while waiting for the wake phrase; the engine restarts on END
                return
            if on_fault is not None:
                on_fault(error)
            return

        logger.error(f"Recognition fault ({self._mode.value if self._mode else 'idle'}): {error}")
        self.stop()
        if on_fault is not None:
            on_fault(error)

    def _schedule_restart(self):
        if self._restart_handle is not None:
            return
        loop = asyncio.get_running_loop()
        generation = self._generation
        logger.debug("Speech engine ended unexpectedly, restarting in %.2fs", self._restart_delay)
        self._restart_handle = loop.call_later(self._restart_delay, self._restart, generation)

    def _restart(self, generation: int):
        self._restart_handle = None
        if not self._alive or generation != self._generation or self._mode is None:
            return
        logger.info(f"Restarting {self._mode.value} recognition")
        self.restarts += 1
        self._generation += 1
        self._begin()

    def _cancel_restart(self):
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None

"""
Wake word listener - passive-mode consumer of a RecognitionSession.

Scans finalized transcript fragments for a wake phrase. The first match
halts the session before the wake callback runs, so the phrase is never
reprocessed as a command.
"""

import logging
from typing import Callable, Optional, Sequence

from .normalization import find_phrase
from .recognition import FaultHandler, RecognitionSession
from .gateways import RecognitionMode

logger = logging.getLogger(__name__)

WAKE_PHRASES = ("hey friday", "wake up friday", "friday")


class WakeWordListener:
    def __init__(self, session: RecognitionSession, phrases: Sequence[str] = WAKE_PHRASES):
        self.session = session
        self.phrases = tuple(p.lower() for p in phrases)
        self._on_wake: Optional[Callable[[], None]] = None
        self._fired = False

    @property
    def listening(self) -> bool:
        return self.session.mode is RecognitionMode.PASSIVE

    def match(self, text: str) -> Optional[str]:
        """Return the wake phrase contained in ``text``, if any."""
        return find_phrase(text, self.phrases)

    def start(self, on_wake: Callable[[], None], on_fault: Optional[FaultHandler] = None) -> bool:
        """
        Start scanning for a wake phrase.

        Returns False if the session is already busy; ``on_wake`` fires at
        most once per successful start.
        """
        self._on_wake = on_wake
        self._fired = False
        started = self.session.start_passive(self._on_final, on_fault)
        if started:
            logger.info(f"Listening for wake phrase ({', '.join(self.phrases)})")
        return started

    def stop(self):
        if self.listening:
            self.session.stop()

    def _on_final(self, text: str):
        if self._fired:
            return
        phrase = self.match(text)
        if phrase is None:
            logger.debug(f"Ignored passive fragment: {text!r}")
            return

        self._fired = True
        self.session.stop()
        logger.info(f"Wake phrase detected: {phrase!r}")
        on_wake, self._on_wake = self._on_wake, None
        if on_wake is not None:
            on_wake()

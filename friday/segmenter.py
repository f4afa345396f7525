"""
Utterance segmenter - turns active-mode fragments into one utterance.

Each finalized fragment restarts a silence timer; when the timer runs out
the session is stopped and the accumulated text is returned. A "no speech"
report resolves immediately instead of waiting on the timer.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from .errors import RecognitionError, RecognitionErrorKind
from .recognition import RecognitionSession

logger = logging.getLogger(__name__)

SILENCE_DURATION = 2.0  # Seconds of post-speech silence that end an utterance


class UtteranceSegmenter:
    def __init__(self, session: RecognitionSession, silence_duration: float = SILENCE_DURATION):
        self.session = session
        self.silence_duration = silence_duration
        self._fragments: List[str] = []
        self._future: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._on_no_speech: Optional[Callable[[], None]] = None

    @property
    def capturing(self) -> bool:
        return self._future is not None and not self._future.done()

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    async def capture(self, on_no_speech: Optional[Callable[[], None]] = None) -> str:
        """
        Capture one utterance.

        Args:
            on_no_speech: Called when the recognizer heard nothing at all,
                so the caller can keep looping without treating it as intent

        Returns:
            The trimmed utterance, or "" when nothing usable was said

        Raises:
            RecognitionError: On any recognizer fault other than no-speech
        """
        if self._future is not None:
            raise RuntimeError("Utterance capture already in progress")

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._future = future
        self._fragments = []
        self._on_no_speech = on_no_speech

        if not self.session.start_active(self._on_final, self._on_fault):
            self._future = None
            raise RecognitionError(RecognitionErrorKind.OTHER, "Recognition session is busy")

        try:
            return await future
        finally:
            self._cancel_timer()
            if self._future is future:
                self._future = None
            self._on_no_speech = None

    def cancel(self):
        """Abandon the capture in progress, if any."""
        self._cancel_timer()
        future = self._future
        self._future = None
        if future is not None:
            self.session.stop()
            if not future.done():
                future.cancel()

    def _on_final(self, text: str):
        if not self.capturing:
            return
        self._fragments.append(text)
        logger.debug(f"Fragment: {text!r}")
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.silence_duration, self._on_silence)

    def _on_silence(self):
        self._timer = None
        logger.debug(f"Silence for {self.silence_duration:.1f}s, utterance complete")
        self._finish()

    def _on_fault(self, error: RecognitionError):
        if not self.capturing:
            return
        if error.kind is RecognitionErrorKind.NO_SPEECH:
            had_speech = bool(self._fragments)
            on_no_speech = self._on_no_speech
            self._finish()
            if not had_speech:
                logger.debug("No speech detected")
                if on_no_speech is not None:
                    on_no_speech()
            return

        self._cancel_timer()
        self.session.stop()
        self._future.set_exception(error)

    def _finish(self):
        self._cancel_timer()
        self.session.stop()
        text = " ".join(self._fragments).strip()
        if self._future is not None and not self._future.done():
            self._future.set_result(text)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

"""
Ambient screen monitor - periodic background look at the screen.

While the assistant is listening, a snapshot is taken every ``interval``
seconds. Only when the screen changed since the last analyzed snapshot is a
brief analysis requested, and only suggestions that say something useful are
passed on as spoken asides. Nothing here ever raises into the caller.
"""

import asyncio
import hashlib
import logging
from typing import Callable, Optional, Sequence

from .gateways import GenerationGateway, ScreenCaptureGateway
from .normalization import contains_any

logger = logging.getLogger(__name__)

MONITOR_INTERVAL = 30.0
MIN_SUGGESTION_LENGTH = 20
MAX_ASIDE_TOKENS = 80

SUPPRESSED_PHRASES = (
    "looks good",
    "all good",
    "everything looks",
    "nothing notable",
    "nothing to",
    "no suggestions",
)

AMBIENT_SYSTEM_PROMPT = (
    "You are FRIDAY, an AI assistant glancing at the user's screen while they work. "
    "If you notice something specific you could help with, say it in one short sentence. "
    "If nothing stands out, reply exactly: looks good."
)
AMBIENT_PROMPT = "Anything on this screen worth a quick heads-up?"


class AmbientScreenMonitor:
    def __init__(
        self,
        screen: ScreenCaptureGateway,
        llm: GenerationGateway,
        on_aside: Callable[[str], None],
        interval: float = MONITOR_INTERVAL,
        min_length: int = MIN_SUGGESTION_LENGTH,
        suppressed_phrases: Sequence[str] = SUPPRESSED_PHRASES,
    ):
        self._screen = screen
        self._llm = llm
        self._on_aside = on_aside
        self.interval = interval
        self.min_length = min_length
        self.suppressed_phrases = tuple(suppressed_phrases)

        self._task: Optional[asyncio.Task] = None
        self._last_digest: Optional[bytes] = None
        self._tick_in_progress = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def resume(self):
        """Start the polling task if it is not already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll())
        logger.debug("Ambient monitor resumed (every %.0fs)", self.interval)

    def pause(self):
        """Cancel polling; the last analyzed snapshot is remembered."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Ambient monitor paused")

    def stop(self):
        self.pause()

    async def _poll(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()

    async def tick(self) -> Optional[str]:
        """
        Run one capture/compare/analyze cycle.

        Returns the suggestion handed to ``on_aside``, or None.
        """
        if self._tick_in_progress:
            logger.debug("Previous ambient check still running, skipping")
            return None

        self._tick_in_progress = True
        self.ticks += 1
        try:
            return await self._check()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Ambient screen check failed: {e}")
            return None
        finally:
            self._tick_in_progress = False

    async def _check(self) -> Optional[str]:
        snapshot = await self._screen.capture(full_page=True)
        digest = hashlib.sha256(snapshot.encode("utf-8")).digest()
        if digest == self._last_digest:
            logger.debug("Screen unchanged since last ambient check")
            return None

        suggestion = await self._llm.generate(
            [{"role": "user", "content": AMBIENT_PROMPT}],
            image=snapshot,
            system_prompt=AMBIENT_SYSTEM_PROMPT,
            max_tokens=MAX_ASIDE_TOKENS,
        )
        # Remember the screen only once its analysis has completed
        self._last_digest = digest
        del snapshot

        suggestion = (suggestion or "").strip()
        if not self.is_useful(suggestion):
            logger.debug(f"Suppressed ambient suggestion: {suggestion!r}")
            return None

        logger.info(f"Ambient suggestion: {suggestion}")
        self._on_aside(suggestion)
        return suggestion

    def is_useful(self, suggestion: str) -> bool:
        if len(suggestion) < self.min_length:
            return False
        return not contains_any(suggestion, self.suppressed_phrases)

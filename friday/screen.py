"""
Screen capture gateway using mss
"""

import asyncio
import base64
import logging

import mss
import mss.tools

from .errors import CaptureUnavailable

logger = logging.getLogger(__name__)


class ScreenCapture:
    """Grab the screen as a PNG data URL"""

    def __init__(self, monitor: int = 1):
        # mss numbers physical monitors from 1; index 0 spans all of them
        self.monitor = monitor

    async def capture(self, full_page: bool = False) -> str:
        """
        Args:
            full_page: Capture every monitor instead of just the configured one

        Raises:
            CaptureUnavailable: No display, bad monitor index or grab failure
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._grab, full_page)

    def _grab(self, full_page: bool) -> str:
        try:
            with mss.mss() as sct:
                monitors = sct.monitors
                index = 0 if full_page else self.monitor
                if index >= len(monitors):
                    raise CaptureUnavailable(f"Monitor {index} not found ({len(monitors) - 1} available)")
                shot = sct.grab(monitors[index])
                png = mss.tools.to_png(shot.rgb, shot.size)
        except CaptureUnavailable:
            raise
        except Exception as e:
            raise CaptureUnavailable(f"Unable to capture screen: {e}") from e

        logger.debug(f"Captured screen {shot.size[0]}x{shot.size[1]} ({len(png)} bytes)")
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

"""
Audio output - playback gateway
"""

import asyncio
import io
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import sounddevice as sd
import soundfile as sf

from .errors import PlaybackError

logger = logging.getLogger(__name__)


def find_stream_player() -> Optional[List[str]]:
    """Command line for a player that reads audio from stdin, or None"""
    # Prefer ffplay, fallback to mpv
    if shutil.which("ffplay"):
        return ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", "-"]
    if shutil.which("mpv"):
        return ["mpv", "--no-video", "--no-terminal", "-"]
    return None


class AudioOutput:
    """Play synthesized speech through the default output device"""

    def __init__(self, device: Optional[int] = None):
        self.device = device
        # One worker: playback never overlaps
        self.executor = ThreadPoolExecutor(max_workers=1)

    async def play(self, audio: bytes):
        """
        Play ``audio`` and return once playback has finished.

        WAV/FLAC/OGG (and MP3 with libsndfile >= 1.1) are decoded with
        soundfile; anything it cannot read is piped to ffplay or mpv.

        Raises:
            PlaybackError: Undecodable payload or audio device failure
        """
        if not audio:
            raise PlaybackError("No audio data to play")

        try:
            data, samplerate = sf.read(io.BytesIO(audio))
        except Exception as e:
            logger.debug(f"soundfile could not decode audio ({e}), trying external player")
            await self._play_with_player(audio)
            return

        loop = asyncio.get_running_loop()

        def _play():
            sd.play(data, samplerate, device=self.device)
            sd.wait()

        try:
            await loop.run_in_executor(self.executor, _play)
        except asyncio.CancelledError:
            sd.stop()
            raise
        except Exception as e:
            raise PlaybackError(f"Audio playback error: {e}") from e
        logger.debug("Audio playback complete")

    async def _play_with_player(self, audio: bytes):
        player_cmd = find_stream_player()
        if player_cmd is None:
            raise PlaybackError("Cannot decode audio and no player found (ffplay/mpv)")

        proc = await asyncio.create_subprocess_exec(
            *player_cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL
        )
        try:
            await proc.communicate(audio)
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            raise PlaybackError(f"{player_cmd[0]} exited with code {proc.returncode}")

    def close(self):
        self.executor.shutdown(wait=False)

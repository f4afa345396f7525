"""
TTS Engine - synthesis gateway with provider abstraction
"""

import asyncio
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional

import aiohttp

from ..errors import GatewayError, GatewayErrorKind
from ..normalization import sanitize_for_speech

logger = logging.getLogger(__name__)

PROVIDERS = ("11labs", "edge", "local")


class TTSEngine:

    def __init__(self, provider: str = "11labs", config: Optional[dict] = None):
        """
        Args:
            provider: "11labs", "edge" or "local" (piper, falling back to espeak)
            config: The [tts] config section
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown TTS provider: {provider}")

        self.provider = provider
        self.config = config or {}

        if provider == "edge":
            self._init_edge()
        elif provider == "local":
            self._init_local()

    def _init_local(self):
        if shutil.which("piper"):
            self.local_engine = "piper"
            self.piper_model = self.config.get(
                "model_path",
                "~/.local/share/piper/en_US-lessac-medium.onnx"
            )
        else:
            self.local_engine = "espeak"

    def _init_edge(self):
        import edge_tts
        self.edge_tts = edge_tts
        self.voice = self.config.get("edge_voice", "en-US-AriaNeural")

    async def synthesize_async(self, text: str) -> bytes:
        """
        Turn ``text`` into an audio payload.

        Markdown and markup are stripped first so they are not read aloud.

        Raises:
            GatewayError: When the provider fails or returns no audio
        """
        speech = sanitize_for_speech(text)
        if not speech:
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, "nothing to synthesize")

        logger.debug(f"Synthesizing {len(speech)} chars via {self.service}")
        if self.provider == "11labs":
            audio = await self._synthesize_elevenlabs(speech)
        elif self.provider == "edge":
            audio = await self._synthesize_edge(speech)
        else:
            audio = await self._synthesize_local(speech)

        if not audio:
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, "no audio returned")
        return audio

    @property
    def service(self) -> str:
        return {"11labs": "ElevenLabs", "edge": "Edge TTS"}.get(self.provider, "Local TTS")

    async def _synthesize_elevenlabs(self, text: str) -> bytes:
        try:
            from . import elevenlabs
        except ImportError as e:
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, "install friday[elevenlabs]") from e
        return await elevenlabs.synthesize(text, self.config)

    async def _synthesize_edge(self, text: str) -> bytes:
        with tempfile.NamedTemporaryFile(suffix=".mp3", delete=False) as f:
            tmp = Path(f.name)

        try:
            communicate = self.edge_tts.Communicate(text, self.voice)
            await communicate.save(str(tmp))
            return tmp.read_bytes()
        except self.edge_tts.exceptions.NoAudioReceived as e:
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, "no audio received") from e
        except (OSError, aiohttp.ClientError) as e:
            raise GatewayError(GatewayErrorKind.NETWORK, self.service, str(e)) from e
        finally:
            tmp.unlink(missing_ok=True)

    async def _synthesize_local(self, text: str) -> bytes:
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as f:
            tmp = Path(f.name)

        try:
            if self.local_engine == "piper":
                model_path = Path(self.piper_model).expanduser()
                if not model_path.exists():
                    raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, f"Piper model not found: {model_path}")
                proc = await asyncio.create_subprocess_exec(
                    "piper", "-m", str(model_path), "-f", str(tmp),
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
                _, stderr = await proc.communicate(text.encode())
            else:
                proc = await asyncio.create_subprocess_exec(
                    "espeak", "-w", str(tmp), text,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
                _, stderr = await proc.communicate()

            if proc.returncode != 0:
                detail = stderr.decode(errors="replace").strip() if stderr else f"exit code {proc.returncode}"
                raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, detail)
            return tmp.read_bytes()
        except FileNotFoundError as e:
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, f"{self.local_engine} not installed") from e
        finally:
            tmp.unlink(missing_ok=True)

    async def close(self):
        # Nothing to release unless the ElevenLabs client was loaded
        elevenlabs = sys.modules.get(f"{__package__}.elevenlabs")
        if self.provider == "11labs" and elevenlabs is not None:
            await elevenlabs.close()

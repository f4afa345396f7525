"""
ElevenLabs TTS - function-based module using official SDK.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from elevenlabs.client import ElevenLabs
from elevenlabs.core.api_error import ApiError
from elevenlabs.types import VoiceSettings

from ..errors import GatewayError, GatewayErrorKind, gateway_error_for_status

SERVICE = "ElevenLabs"
DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"  # Bella
DEFAULT_MODEL_ID = "eleven_turbo_v2_5"

_client: Optional[ElevenLabs] = None
_client_key: Optional[str] = None


def _ensure_client(api_key: str) -> ElevenLabs:
    """Get or create the ElevenLabs client"""
    global _client, _client_key
    if _client is None or _client_key != api_key:
        _client = ElevenLabs(api_key=api_key)
        _client_key = api_key
    return _client


async def close() -> None:
    global _client, _client_key
    _client = None
    _client_key = None


def _get_voice_settings(tts_cfg: dict) -> VoiceSettings:
    """Build VoiceSettings from config"""
    return VoiceSettings(
        stability=float(tts_cfg.get("elevenlabs_stability", 0.5)),
        similarity_boost=float(tts_cfg.get("elevenlabs_similarity_boost", 0.8)),
        style=float(tts_cfg.get("elevenlabs_style", 0.3)),
        use_speaker_boost=bool(tts_cfg.get("elevenlabs_use_speaker_boost", True))
    )


async def synthesize(text: str, tts_cfg: dict) -> bytes:
    """
    Synthesize ``text`` and return the complete MP3 payload.

    Raises:
        GatewayError: Missing key, rejected request or unreachable service
    """
    api_key = tts_cfg.get("elevenlabs_api_key")
    if not api_key:
        raise GatewayError(GatewayErrorKind.UNAUTHENTICATED, SERVICE, "API key not configured")

    voice_id = tts_cfg.get("elevenlabs_voice_id") or DEFAULT_VOICE_ID
    model_id = tts_cfg.get("elevenlabs_model_id", DEFAULT_MODEL_ID)
    output_format = tts_cfg.get("elevenlabs_output_format", "mp3_44100_128")

    client = _ensure_client(api_key)
    voice_settings = _get_voice_settings(tts_cfg)

    # Run in executor since SDK is sync
    loop = asyncio.get_running_loop()

    def _convert():
        audio_generator = client.text_to_speech.convert(
            voice_id=voice_id,
            text=text,
            model_id=model_id,
            output_format=output_format,
            voice_settings=voice_settings
        )
        # Convert generator to bytes
        return b''.join(audio_generator)

    try:
        return await loop.run_in_executor(None, _convert)
    except ApiError as e:
        if e.status_code is None:
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, SERVICE, str(e.body)) from e
        raise gateway_error_for_status(SERVICE, e.status_code) from e
    except httpx.TransportError as e:
        raise GatewayError(GatewayErrorKind.NETWORK, SERVICE, str(e)) from e

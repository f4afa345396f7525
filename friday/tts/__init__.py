"""
TTS subpackage for speech synthesis providers
"""

from .engine import TTSEngine

__all__ = ["TTSEngine"]

"""Global test configuration - mock hardware modules before any imports.

Microphone, speaker, screen and speech model libraries need devices (or
large downloads) that CI machines do not have. They are replaced in
sys.modules with MagicMock objects before any project module is imported.
"""

import sys
from types import ModuleType
from unittest.mock import MagicMock

_HARDWARE_MODULES = [
    # Audio I/O
    "sounddevice",
    "soundfile",
    # Speech-to-text (local)
    "faster_whisper",
    # Screen capture
    "mss",
    "mss.tools",
    # TTS
    "edge_tts",
]

for _mod_name in _HARDWARE_MODULES:
    if _mod_name not in sys.modules:
        mock = MagicMock(spec=ModuleType)
        mock.__name__ = _mod_name
        mock.__path__ = []  # needed for sub-package mocks
        sys.modules[_mod_name] = mock

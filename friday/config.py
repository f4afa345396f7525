"""
Configuration system for FRIDAY.

TOML-based configuration with automatic initialization; secrets and
providers can be overridden from the environment.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Use tomllib (Python 3.11+) or fallback to tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_TOML = """# FRIDAY Configuration

[wake]
# Phrases that wake the assistant from standby
phrases = ["hey friday", "wake up friday", "friday"]
# Seconds before restarting a recognizer that stopped on its own
restart_delay = 0.5

[listen]
# Speech-to-Text settings
model = "tiny.en"
device = "cpu"  # or "cuda"
silence_threshold = 0.03
# Seconds of silence after speech that end an utterance
silence_duration = 2.0
# Seconds without any speech before giving up on an utterance
no_speech_timeout = 8.0
# Pause before listening again when nothing was said
no_speech_retry_delay = 0.5
# Keep listening after each reply instead of waiting for the wake phrase
continuous = true

[llm]
provider = "openai"  # "openai", "anthropic" or "ollama"
model = ""  # Leave empty for provider defaults
endpoint = ""
temperature = 0.7
max_tokens = 150
screen_max_tokens = 300
history_window = 10

# API keys (can also be set via environment variables)
# openai_api_key = ""
# anthropic_api_key = ""

[tts]
provider = "11labs"  # "11labs", "edge" or "local"
# elevenlabs_api_key = ""
elevenlabs_voice_id = "EXAVITQu4vr4xnSDxMaL"
elevenlabs_model_id = "eleven_turbo_v2_5"
elevenlabs_stability = 0.5
elevenlabs_similarity_boost = 0.8
elevenlabs_style = 0.3
elevenlabs_use_speaker_boost = true
edge_voice = "en-US-AriaNeural"
model_path = "~/.local/share/piper/en_US-lessac-medium.onnx"

[screen]
# mss monitor index used for screen questions (0 = all monitors)
monitor = 1

[monitor]
# Ambient screen monitoring while listening
enabled = true
interval = 30.0
"""


class FridayConfig:
    """
    Configuration manager for FRIDAY.

    Handles loading and access to all system configuration.
    Automatically initializes default config if none exists.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config.toml file. If None, uses default location.
        """
        if config_path:
            self.config_dir = Path(config_path).expanduser().parent
            self.config_file = Path(config_path).expanduser()
        else:
            # Use XDG_CONFIG_HOME or default to ~/.config
            xdg_config = os.getenv("XDG_CONFIG_HOME")
            if xdg_config:
                self.config_dir = Path(xdg_config) / "friday"
            else:
                self.config_dir = Path.home() / ".config" / "friday"

            self.config_file = self.config_dir / "config.toml"

        # Initialize config if needed
        self._ensure_config_exists()

        # Load configuration
        self._config = self._load_config()

    def _ensure_config_exists(self):
        """Create default config file if it doesn't exist."""
        if not self.config_file.exists():
            try:
                self.config_dir.mkdir(parents=True, exist_ok=True)
                self.config_file.write_text(DEFAULT_CONFIG_TOML)
                logger.info(f"Initialized default config at: {self.config_file}")
            except OSError as e:
                logger.warning(f"Could not write default config to {self.config_file}: {e}")

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from TOML file.

        Returns:
            Parsed configuration dict, defaults if the file is unreadable
        """
        try:
            with open(self.config_file, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Failed to load config ({e}), using defaults")
            return tomllib.loads(DEFAULT_CONFIG_TOML)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            section: Config section (e.g., "llm", "listen")
            key: Key within section
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        return self._config.get(section, {}).get(key, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        return dict(self._config.get(section, {}))

    def get_float(self, section: str, key: str, default: float) -> float:
        try:
            return float(self.get(section, key, default))
        except (TypeError, ValueError):
            return default

    def get_bool(self, section: str, key: str, default: bool) -> bool:
        value = self.get(section, key, default)
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    def get_wake_phrases(self) -> List[str]:
        phrases = self.get("wake", "phrases")
        if isinstance(phrases, list):
            cleaned = [str(p).strip().lower() for p in phrases if str(p).strip()]
            if cleaned:
                return cleaned
        return ["hey friday", "wake up friday", "friday"]

    def get_llm_config(self) -> Dict[str, Any]:
        """
        Get LLM configuration with environment variable override.

        Environment variables take precedence over config file.
        """
        llm_config = self.get_section("llm")

        provider = os.getenv("FRIDAY_LLM_PROVIDER", llm_config.get("provider", "openai"))
        model = os.getenv("FRIDAY_LLM_MODEL", llm_config.get("model", ""))
        endpoint = os.getenv("FRIDAY_LLM_ENDPOINT", llm_config.get("endpoint", ""))

        if provider == "anthropic":
            api_key = os.getenv("ANTHROPIC_API_KEY", llm_config.get("anthropic_api_key", ""))
        elif provider == "openai":
            api_key = os.getenv("OPENAI_API_KEY", llm_config.get("openai_api_key", ""))
        else:
            api_key = ""

        llm_config.update({
            "provider": provider,
            "model": model or None,
            "endpoint": endpoint or None,
            "api_key": api_key or None,
        })
        return llm_config

    def get_tts_config(self) -> Dict[str, Any]:
        """Get the [tts] section with environment variable override."""
        tts_config = self.get_section("tts")
        tts_config["provider"] = os.getenv("FRIDAY_TTS_PROVIDER", tts_config.get("provider", "11labs"))

        api_key = os.getenv("ELEVENLABS_API_KEY")
        if api_key:
            tts_config["elevenlabs_api_key"] = api_key
        voice_id = os.getenv("ELEVENLABS_VOICE_ID")
        if voice_id:
            tts_config["elevenlabs_voice_id"] = voice_id
        return tts_config

    def reload(self):
        """Reload configuration from file."""
        self._config = self._load_config()


# Global config instance
_global_config: Optional[FridayConfig] = None


def get_config(config_path: Optional[str] = None) -> FridayConfig:
    """
    Get global configuration instance.

    Args:
        config_path: Optional custom config path (only used on first call)
    """
    global _global_config

    if _global_config is None:
        _global_config = FridayConfig(config_path)

    return _global_config


def init_config(config_path: Optional[str] = None) -> FridayConfig:
    """
    Initialize configuration system.

    This should be called once at application startup.
    """
    global _global_config
    _global_config = FridayConfig(config_path)
    return _global_config

#!/usr/bin/env python3
"""
FRIDAY - voice assistant entry point
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import FridayConfig, get_config, init_config
from .orchestrator import Orchestrator

LOGFILE = "/tmp/friday.log"


def setup_logging(verbose: bool = False, logfile: Optional[str] = LOGFILE):
    handlers = [logging.StreamHandler(sys.stderr)]
    if logfile:
        try:
            handlers.append(logging.FileHandler(logfile))
        except OSError as e:
            print(f"Warning: cannot write log file {logfile}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
    )


def build_orchestrator(
    config: Optional[FridayConfig] = None,
    continuous: Optional[bool] = None,
    monitor: Optional[bool] = None,
    model: Optional[str] = None,
    device: Optional[str] = None,
) -> Orchestrator:
    """Wire the concrete microphone, LLM, TTS, playback and screen gateways."""
    from .audio import AudioOutput
    from .llm import build_llm_client
    from .screen import ScreenCapture
    from .transcription import WhisperSpeechEngine
    from .tts import TTSEngine

    if config is None:
        config = get_config()

    listen_cfg = config.get_section("listen")
    tts_config = config.get_tts_config()

    engine = WhisperSpeechEngine(
        model=model or listen_cfg.get("model", "tiny.en"),
        device=device or listen_cfg.get("device", "cpu"),
        silence_threshold=config.get_float("listen", "silence_threshold", 0.03),
        no_speech_timeout=config.get_float("listen", "no_speech_timeout", 8.0),
    )

    if continuous is None:
        continuous = config.get_bool("listen", "continuous", True)
    if monitor is None:
        monitor = config.get_bool("monitor", "enabled", True)

    return Orchestrator(
        engine=engine,
        llm=build_llm_client(config.get_llm_config()),
        tts=TTSEngine(provider=tts_config["provider"], config=tts_config),
        player=AudioOutput(),
        screen=ScreenCapture(monitor=int(config.get("screen", "monitor", 1))),
        continuous=continuous,
        monitor_enabled=monitor,
        wake_phrases=config.get_wake_phrases(),
        silence_duration=config.get_float("listen", "silence_duration", 2.0),
        restart_delay=config.get_float("wake", "restart_delay", 0.5),
        no_speech_delay=config.get_float("listen", "no_speech_retry_delay", 0.5),
        monitor_interval=config.get_float("monitor", "interval", 30.0),
        history_window=int(config.get("llm", "history_window", 10)),
    )


async def run_assistant(assistant: Orchestrator):
    """Run the console front-end, then release the audio devices and clients"""
    from .console import FridayConsole

    try:
        await FridayConsole(assistant).run()
    finally:
        await assistant.close()


def main():
    parser = argparse.ArgumentParser(
        prog="friday",
        description="FRIDAY - voice assistant",
        epilog="Examples:\n"
               "  friday                      # Wake phrase listening with console controls\n"
               "  friday --no-continuous      # Require the wake phrase before every request\n"
               "  friday --no-monitor -v      # No ambient screen checks, debug logging\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--config",
        help="Path to config.toml (default: ~/.config/friday/config.toml)"
    )
    parser.add_argument(
        "--no-continuous",
        action="store_true",
        help="Return to standby after every reply"
    )
    parser.add_argument(
        "--no-monitor",
        action="store_true",
        help="Disable ambient screen monitoring"
    )
    parser.add_argument(
        "--model",
        help="Whisper model (default from config: tiny.en)"
    )
    parser.add_argument(
        "--device",
        choices=["cpu", "cuda"],
        help="Device for transcription"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        config = init_config(args.config)
        assistant = build_orchestrator(
            config,
            continuous=False if args.no_continuous else None,
            monitor=False if args.no_monitor else None,
            model=args.model,
            device=args.device,
        )
    except Exception as e:
        logging.getLogger(__name__).exception("Startup failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_assistant(assistant))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())

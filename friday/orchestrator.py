"""
Orchestrator - the assistant's state machine.

Owns the recognition session (through the wake listener and the utterance
segmenter), the ambient screen monitor and the conversation log, and drives
every call to the generation, synthesis, playback and screen gateways.

Every external callback posts one Event onto a queue that ``run()``
consumes; long operations run as tasks that post their outcome back. Each
event produced by such a task carries the turn token that was current when
the task began, so results that arrive after the assistant moved on are
discarded instead of applied.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .conversation import HISTORY_WINDOW, ConversationLog, ConversationMessage, Originator
from .errors import CaptureUnavailable, FridayError, RecognitionError
from .gateways import (
    GenerationGateway,
    PlaybackGateway,
    ScreenCaptureGateway,
    SpeechEngine,
    SynthesisGateway,
)
from .monitor import MONITOR_INTERVAL, AmbientScreenMonitor
from .normalization import contains_any
from .recognition import RESTART_DELAY, RecognitionSession
from .segmenter import SILENCE_DURATION, UtteranceSegmenter
from .wake import WAKE_PHRASES, WakeWordListener

logger = logging.getLogger(__name__)

NO_SPEECH_DELAY = 0.5  # Pause before listening again after hearing nothing

POWER_DOWN_PHRASES = ("power down", "standby", "sleep", "shut down", "go to sleep", "power off")
SCREEN_KEYWORDS = ("screen", "see", "look", "analyze")

POWER_DOWN_ACK = "Powering down... Say hey Friday when you need me."
FALLBACK_REPLY = "I apologize, but I encountered an error processing your request."
SCREEN_ANALYSIS_PROMPT = "Analyze my screen and tell me how you can help with what I'm doing."


class AssistantState(str, Enum):
    STANDBY = "standby"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


class Signal(str, Enum):
    WAKE = "wake"
    START = "start"
    STOP = "stop"
    ANALYZE_SCREEN = "analyze-screen"
    UTTERANCE = "utterance"
    RELISTEN = "relisten"
    RESPONSE = "response"
    SPOKEN = "spoken"
    ASIDE = "aside"
    FAILED = "failed"
    RECOGNITION_FAULT = "recognition-fault"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class Event:
    signal: Signal
    turn: int = 0
    text: str = ""
    error: Optional[str] = None


StateListener = Callable[[AssistantState], None]


def is_power_down(text: str) -> bool:
    return contains_any(text, POWER_DOWN_PHRASES)


def needs_screen(text: str) -> bool:
    return contains_any(text, SCREEN_KEYWORDS)


class Orchestrator:
    """
    Voice interaction state machine.

    STANDBY: wake phrase listening only.
    LISTENING: utterance capture plus ambient screen monitoring.
    THINKING: a generation request is in flight.
    SPEAKING: synthesis and playback are in flight.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        llm: GenerationGateway,
        tts: SynthesisGateway,
        player: PlaybackGateway,
        screen: ScreenCaptureGateway,
        continuous: bool = True,
        monitor_enabled: bool = True,
        wake_phrases=WAKE_PHRASES,
        silence_duration: float = SILENCE_DURATION,
        restart_delay: float = RESTART_DELAY,
        no_speech_delay: float = NO_SPEECH_DELAY,
        monitor_interval: float = MONITOR_INTERVAL,
        history_window: int = HISTORY_WINDOW,
    ):
        self.engine = engine
        self.llm = llm
        self.tts = tts
        self.player = player
        self.screen = screen

        self.session = RecognitionSession(engine, restart_delay=restart_delay)
        self.wake_listener = WakeWordListener(self.session, wake_phrases)
        self.segmenter = UtteranceSegmenter(self.session, silence_duration=silence_duration)
        self.monitor = AmbientScreenMonitor(screen, llm, self._on_aside_found, interval=monitor_interval)
        self.conversation = ConversationLog()

        self.continuous_default = continuous
        self.monitor_enabled = monitor_enabled
        self.no_speech_delay = no_speech_delay
        self.history_window = history_window

        self._state = AssistantState.STANDBY
        self._continuous = False
        self._turn = 0
        self._closed = False
        self._events: "asyncio.Queue[Event]" = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()
        self._relisten_task: Optional[asyncio.Task] = None
        self._state_listeners: List[StateListener] = []

        self._handlers: Dict[Signal, Callable[[Event], None]] = {
            Signal.WAKE: self._handle_start,
            Signal.START: self._handle_start,
            Signal.STOP: self._handle_stop,
            Signal.ANALYZE_SCREEN: self._handle_analyze_screen,
            Signal.UTTERANCE: self._handle_utterance,
            Signal.RELISTEN: self._handle_relisten,
            Signal.RESPONSE: self._handle_response,
            Signal.SPOKEN: self._handle_spoken,
            Signal.ASIDE: self._handle_aside,
            Signal.FAILED: self._handle_failed,
            Signal.RECOGNITION_FAULT: self._handle_recognition_fault,
        }

    # ------------------------------------------------------------------
    # Surface exposed to the presentation layer
    # ------------------------------------------------------------------

    @property
    def state(self) -> AssistantState:
        return self._state

    @property
    def messages(self) -> Tuple[ConversationMessage, ...]:
        return self.conversation.messages

    @property
    def error(self) -> Optional[str]:
        return self.conversation.last_error

    @property
    def continuous(self) -> bool:
        return self._continuous

    @property
    def timers_pending(self) -> bool:
        """True while any silence, polling, restart or relisten timer is alive."""
        relisten = self._relisten_task is not None and not self._relisten_task.done()
        return (
            relisten
            or self.segmenter.timer_pending
            or self.monitor.running
            or self.session.restart_pending
        )

    def add_state_listener(self, listener: StateListener):
        self._state_listeners.append(listener)

    def start(self):
        """Leave standby and start listening, as if the wake phrase was heard."""
        self.post(Event(Signal.START))

    wake = start

    def stop(self):
        """Return to standby. Recognition and timers halt immediately."""
        if self._state is AssistantState.STANDBY and self.wake_listener.listening:
            return
        self._halt()
        self.post(Event(Signal.STOP))

    sleep = stop

    def clear_history(self):
        self.conversation.clear()

    def trigger_screen_analysis(self):
        self.post(Event(Signal.ANALYZE_SCREEN))

    def shutdown(self):
        """Stop everything and make ``run()`` return."""
        self._closed = True
        self._halt()
        self.post(Event(Signal.SHUTDOWN))

    def post(self, event: Event):
        self._events.put_nowait(event)

    async def close(self):
        """Release the speech engine and gateways once ``run()`` has returned."""
        for gateway in (self.engine, self.llm, self.tts, self.player, self.screen):
            close = getattr(gateway, "close", None)
            if close is None:
                continue
            result = close()
            if asyncio.iscoroutine(result):
                await result

    async def run(self):
        """Main event loop. Runs until ``shutdown()``."""
        self._closed = False
        logger.info("Assistant starting in standby")
        self._enter_standby()
        try:
            while True:
                event = await self._events.get()
                if event.signal is Signal.SHUTDOWN:
                    break
                self._dispatch(event)
        finally:
            self._halt()
            tasks = list(self._tasks)
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Assistant stopped")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _dispatch(self, event: Event):
        handler = self._handlers.get(event.signal)
        if handler is None:
            logger.warning(f"No handler for event {event.signal.value}")
            return
        try:
            handler(event)
        except Exception as e:
            logger.exception(f"Error handling {event.signal.value} event")
            self.conversation.set_error(f"Unexpected error: {e}")
            self._enter_standby()

    def _set_state(self, state: AssistantState):
        if state is self._state:
            return
        previous, self._state = self._state, state
        logger.info(f"State: {previous.value} -> {state.value}")
        for listener in self._state_listeners:
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"State listener failed: {e}")

    def _is_stale(self, event: Event) -> bool:
        return event.turn != self._turn

    def _halt(self):
        """Halt recognition and cancel every timer. Invalidates in-flight work."""
        self._turn += 1
        self._cancel_relisten()
        self.segmenter.cancel()
        self.monitor.stop()
        self.session.stop()

    def _abandon_capture(self):
        self._turn += 1
        self._cancel_relisten()
        self.segmenter.cancel()

    def _enter_standby(self, resume_wake: bool = True):
        self._halt()
        self._continuous = False
        self._set_state(AssistantState.STANDBY)
        # The only place wake listening is (re)armed
        if resume_wake and not self._closed:
            self.wake_listener.start(self._on_wake_detected, self._on_passive_fault)

    def _listen(self):
        self._cancel_relisten()
        self._set_state(AssistantState.LISTENING)
        if self.monitor_enabled:
            self.monitor.resume()
        self._spawn(self._capture(self._turn))

    def _begin_turn(self, text: str, screen: bool = False, full_page: bool = False):
        message = self.conversation.append(text, Originator.USER)
        self.monitor.pause()
        self._set_state(AssistantState.THINKING)

        if not screen and is_power_down(text):
            logger.info(f"Power-down command: {text!r}")
            self._continuous = False
            self._say(POWER_DOWN_ACK)
            return

        screen = screen or needs_screen(text)
        self._spawn(self._respond(self._turn, message, screen, full_page))

    def _say(self, text: str):
        self.conversation.append(text, Originator.ASSISTANT)
        self._set_state(AssistantState.SPEAKING)
        self._spawn(self._speak(self._turn, text))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _handle_start(self, event: Event):
        if self._state is not AssistantState.STANDBY:
            logger.debug(f"Ignoring {event.signal.value} while {self._state.value}")
            return
        self.wake_listener.stop()
        self._continuous = self.continuous_default
        self.conversation.clear_error()
        self._listen()

    def _handle_stop(self, event: Event):
        if self._state is AssistantState.STANDBY and self.wake_listener.listening:
            return
        logger.info("Stop requested")
        self._enter_standby()

    def _handle_analyze_screen(self, event: Event):
        if self._state is AssistantState.STANDBY:
            self.wake_listener.stop()
        elif self._state is AssistantState.LISTENING:
            self._abandon_capture()
        else:
            logger.info(f"Screen analysis ignored while {self._state.value}")
            return
        self._begin_turn(SCREEN_ANALYSIS_PROMPT, screen=True, full_page=True)

    def _handle_utterance(self, event: Event):
        if self._is_stale(event) or self._state is not AssistantState.LISTENING:
            return

        text = event.text.strip()
        if text:
            logger.info(f"Heard: {text!r}")
            self._begin_turn(text)
            return

        if self._continuous:
            self._relisten_task = self._spawn(self._relisten_after(self._turn))
        else:
            self._enter_standby()

    def _handle_relisten(self, event: Event):
        if self._is_stale(event) or self._state is not AssistantState.LISTENING:
            return
        self._relisten_task = None
        if self._continuous:
            self._listen()
        else:
            self._enter_standby()

    def _handle_response(self, event: Event):
        if self._is_stale(event) or self._state is not AssistantState.THINKING:
            logger.info("Discarding response that arrived after the turn ended")
            return
        reply = event.text.strip() or FALLBACK_REPLY
        self.conversation.clear_error()
        self._say(reply)

    def _handle_spoken(self, event: Event):
        if self._is_stale(event) or self._state is not AssistantState.SPEAKING:
            return
        if self._continuous:
            self._listen()
        else:
            self._enter_standby()

    def _handle_aside(self, event: Event):
        if self._state is not AssistantState.LISTENING:
            logger.info(f"Dropping ambient aside while {self._state.value}")
            return
        if self.segmenter.timer_pending:
            # Fragments are already collected; the user is mid-utterance
            logger.info("Dropping ambient aside while the user is speaking")
            return
        self._abandon_capture()
        self.monitor.pause()
        self._say(event.text)

    def _handle_failed(self, event: Event):
        if self._is_stale(event):
            logger.info(f"Ignoring error from an abandoned turn: {event.error}")
            return
        logger.error(f"Turn failed: {event.error}")
        self.conversation.set_error(event.error or "An unknown error occurred")
        self._enter_standby()

    def _handle_recognition_fault(self, event: Event):
        if self._is_stale(event):
            return
        if self._state is AssistantState.STANDBY:
            # Wake listening failed; wait for an explicit start instead of looping on the fault
            logger.error(f"Wake phrase listening stopped: {event.error}")
            self.conversation.set_error(event.error or "Speech recognition failed")
            return
        logger.error(f"Speech recognition failed: {event.error}")
        self.conversation.set_error(event.error or "Speech recognition failed")
        self._enter_standby()

    # ------------------------------------------------------------------
    # Callbacks from the session and the monitor
    # ------------------------------------------------------------------

    def _on_wake_detected(self):
        self.post(Event(Signal.WAKE, turn=self._turn))

    def _on_passive_fault(self, error: RecognitionError):
        self.post(Event(Signal.RECOGNITION_FAULT, turn=self._turn, error=str(error)))

    def _on_aside_found(self, text: str):
        if self._state is AssistantState.SPEAKING:
            logger.info("Already speaking, dropping ambient aside")
            return
        self.post(Event(Signal.ASIDE, turn=self._turn, text=text))

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_relisten(self):
        if self._relisten_task is not None:
            self._relisten_task.cancel()
            self._relisten_task = None

    async def _capture(self, turn: int):
        def on_no_speech():
            logger.debug("No speech, continuing to listen")

        try:
            text = await self.segmenter.capture(on_no_speech=on_no_speech)
        except RecognitionError as e:
            self.post(Event(Signal.RECOGNITION_FAULT, turn=turn, error=str(e)))
            return
        self.post(Event(Signal.UTTERANCE, turn=turn, text=text))

    async def _relisten_after(self, turn: int):
        await asyncio.sleep(self.no_speech_delay)
        self.post(Event(Signal.RELISTEN, turn=turn))

    async def _respond(self, turn: int, message: ConversationMessage, screen: bool, full_page: bool):
        try:
            image = await self._capture_screen(full_page) if screen else None
            if image is not None and turn == self._turn:
                self.conversation.tag_screen_context(message.id)
            context = self.conversation.history(self.history_window)
            reply = await self.llm.generate(context, image=image)
            del image
        except FridayError as e:
            self.post(Event(Signal.FAILED, turn=turn, error=str(e)))
            return
        except Exception as e:
            logger.exception("Unexpected error while generating a response")
            self.post(Event(Signal.FAILED, turn=turn, error=f"Unexpected error: {e}"))
            return
        self.post(Event(Signal.RESPONSE, turn=turn, text=reply))

    async def _capture_screen(self, full_page: bool) -> Optional[str]:
        try:
            return await self.screen.capture(full_page=full_page)
        except CaptureUnavailable as e:
            logger.warning(f"Screen capture unavailable, answering without it: {e}")
            return None

    async def _speak(self, turn: int, text: str):
        try:
            audio = await self.tts.synthesize_async(text)
            if turn != self._turn:
                return
            await self.player.play(audio)
        except FridayError as e:
            self.post(Event(Signal.FAILED, turn=turn, error=str(e)))
            return
        except Exception as e:
            logger.exception("Unexpected error while speaking")
            self.post(Event(Signal.FAILED, turn=turn, error=f"Unexpected error: {e}"))
            return
        self.post(Event(Signal.SPOKEN, turn=turn))

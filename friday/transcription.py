"""
Speech engine using sounddevice + faster-whisper

Passive mode transcribes fixed chunks so wake phrases can be spotted;
active mode cuts the microphone stream at short pauses and reports each
segment as a finalized fragment. Whisper runs in a thread pool so the
event loop never blocks.
"""

import asyncio
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np
import sounddevice as sd
from faster_whisper import WhisperModel

from .errors import RecognitionError, RecognitionErrorKind
from .gateways import EventSink, RecognitionEvent, RecognitionMode

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1
PASSIVE_CHUNK_SEC = 3.0
DEFAULT_SILENCE_THRESHOLD = 0.03  # RMS threshold for silence detection
PAUSE_DURATION = 0.6  # Pause that closes one fragment in active mode
NO_SPEECH_TIMEOUT = 8.0  # Active mode gives up if nothing is said for this long
MAX_SEGMENT_DURATION = 30.0
HALLUCINATIONS = {"thank you", "thanks", "thank you.", "you"}


class WhisperSpeechEngine:
    """Continuous microphone recognition emitting RecognitionEvents"""

    def __init__(
        self,
        model: str = "tiny.en",
        device: str = "cpu",
        threads: Optional[int] = None,
        silence_threshold: float = DEFAULT_SILENCE_THRESHOLD,
        pause_duration: float = PAUSE_DURATION,
        no_speech_timeout: float = NO_SPEECH_TIMEOUT,
        input_device: Optional[int] = None,
    ):
        if threads is None:
            threads = os.cpu_count()

        compute_type = "int8" if device == "cpu" else "float16"
        logger.info(f"Loading Whisper {model} on {device} (threads={threads})")
        self.model = WhisperModel(model, device=device, compute_type=compute_type, num_workers=threads)

        self.silence_threshold = silence_threshold
        self.pause_duration = pause_duration
        self.no_speech_timeout = no_speech_timeout
        self.input_device = input_device
        self.executor = ThreadPoolExecutor(max_workers=2)
        self._task: Optional[asyncio.Task] = None

    def begin(self, mode: RecognitionMode, sink: EventSink):
        if self._task is not None and not self._task.done():
            raise RecognitionError(RecognitionErrorKind.OTHER, "Speech engine already running")
        self._task = asyncio.get_running_loop().create_task(self._run(mode, sink))

    def end(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, mode: RecognitionMode, sink: EventSink):
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def audio_callback(indata, _frames, _time_info, status):
            """Runs on the PortAudio thread"""
            if status:
                logger.debug(f"Audio: {status}")
            loop.call_soon_threadsafe(queue.put_nowait, indata.copy())

        try:
            with sd.InputStream(
                samplerate=SAMPLE_RATE,
                channels=CHANNELS,
                dtype="float32",
                device=self.input_device,
                callback=audio_callback
            ):
                if mode is RecognitionMode.PASSIVE:
                    await self._run_passive(queue, sink)
                else:
                    await self._run_active(queue, sink)
        except asyncio.CancelledError:
            raise
        except sd.PortAudioError as e:
            sink(RecognitionEvent.fault(self._classify_audio_error(e)))
        except Exception as e:
            logger.exception("Speech engine failed")
            sink(RecognitionEvent.fault(RecognitionError(RecognitionErrorKind.OTHER, f"Speech engine failed: {e}")))

        sink(RecognitionEvent.ended())

    @staticmethod
    def _classify_audio_error(error: Exception) -> RecognitionError:
        message = str(error)
        lowered = message.lower()
        if "permission" in lowered or "access" in lowered:
            return RecognitionError(RecognitionErrorKind.PERMISSION_DENIED, f"Microphone access denied: {message}")
        return RecognitionError(RecognitionErrorKind.OTHER, f"Microphone error: {message}")

    async def _run_passive(self, queue: asyncio.Queue, sink: EventSink):
        target_frames = int(PASSIVE_CHUNK_SEC * SAMPLE_RATE)
        while True:
            buffer = await self._collect(queue, target_frames)
            if self._rms(buffer) < self.silence_threshold / 3:
                continue
            text = await self.transcribe_async(buffer)
            if text:
                sink(RecognitionEvent.result(text, is_final=True))

    async def _run_active(self, queue: asyncio.Queue, sink: EventSink):
        loop = asyncio.get_running_loop()
        started = loop.time()
        heard_anything = False

        buffer = np.zeros((0, CHANNELS), dtype="float32")
        speech_detected = False
        silence_frames = 0
        pause_frames = int(self.pause_duration * SAMPLE_RATE)
        max_frames = int(MAX_SEGMENT_DURATION * SAMPLE_RATE)

        while True:
            try:
                data = await asyncio.wait_for(queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                data = None

            if data is not None:
                rms = self._rms(data)
                if rms > self.silence_threshold:
                    speech_detected = True
                    silence_frames = 0
                elif speech_detected:
                    silence_frames += len(data)
                if speech_detected:
                    buffer = np.concatenate((buffer, data))

            segment_done = speech_detected and (silence_frames >= pause_frames or buffer.shape[0] >= max_frames)
            if segment_done:
                text = await self.transcribe_async(buffer)
                buffer = np.zeros((0, CHANNELS), dtype="float32")
                speech_detected = False
                silence_frames = 0
                if text:
                    heard_anything = True
                    sink(RecognitionEvent.result(text, is_final=True))
                continue

            if not heard_anything and not speech_detected and loop.time() - started >= self.no_speech_timeout:
                sink(RecognitionEvent.fault(RecognitionError(RecognitionErrorKind.NO_SPEECH)))
                return

    @staticmethod
    async def _collect(queue: asyncio.Queue, target_frames: int) -> np.ndarray:
        """Collect audio for a fixed number of frames"""
        chunks = []
        collected = 0
        while collected < target_frames:
            data = await queue.get()
            chunks.append(data)
            collected += len(data)
        return np.concatenate(chunks)[:target_frames]

    @staticmethod
    def _rms(audio: np.ndarray) -> float:
        mono = audio[:, 0] if audio.ndim > 1 else audio
        if mono.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(mono.astype(np.float32) ** 2)))

    async def transcribe_async(self, audio: np.ndarray) -> str:
        """Run Whisper transcription in thread pool to avoid blocking"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self._transcribe, audio)

    def _transcribe(self, audio: np.ndarray) -> str:
        mono = audio[:, 0] if audio.ndim > 1 else audio
        try:
            segments, _ = self.model.transcribe(
                mono.astype(np.float32),
                beam_size=1,
                vad_filter=True,
                language="en",
                condition_on_previous_text=False,
                no_speech_threshold=0.5
            )
            text = " ".join(seg.text.strip() for seg in segments).strip()
        except Exception as e:
            logger.error(f"Transcription error: {e}")
            return ""

        # Filter known hallucinations
        if text.lower() in HALLUCINATIONS:
            return ""
        return text

    def close(self):
        self.end()
        self.executor.shutdown(wait=False)

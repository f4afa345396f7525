"""Fakes for the gateways the orchestrator drives, plus small async helpers."""

import asyncio
from typing import List, Optional

from friday.errors import RecognitionError, RecognitionErrorKind
from friday.gateways import RecognitionEvent, RecognitionMode


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _until(predicate, timeout: float = 2.0):
    """Yield to the loop until ``predicate()`` is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


async def _settle(delay: float = 0.02):
    await asyncio.sleep(delay)


class FakeEngine:
    """Speech engine driven by the test instead of a microphone."""

    def __init__(self, fail_on_begin: Optional[Exception] = None):
        self.mode: Optional[RecognitionMode] = None
        self.sink = None
        self.begins: List[RecognitionMode] = []
        self.ends = 0
        self.running = 0
        self.max_running = 0
        self.fail_on_begin = fail_on_begin

    def begin(self, mode, sink):
        if self.fail_on_begin is not None:
            raise self.fail_on_begin
        self.mode = mode
        self.sink = sink
        self.begins.append(mode)
        self.running += 1
        self.max_running = max(self.max_running, self.running)

    def end(self):
        self.ends += 1
        if self.mode is not None:
            self.mode = None
            self.running -= 1

    # Test controls

    def say(self, text: str, is_final: bool = True):
        self.sink(RecognitionEvent.result(text, is_final=is_final))

    def fault(self, kind: RecognitionErrorKind, message: Optional[str] = None):
        self.sink(RecognitionEvent.fault(RecognitionError(kind, message)))

    def finish(self):
        """Simulate the recognizer ending on its own."""
        if self.mode is not None:
            self.mode = None
            self.running -= 1
        self.sink(RecognitionEvent.ended())


class FakeLLM:
    def __init__(self, reply: str = "Sure thing.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.gate: Optional[asyncio.Event] = None

    async def generate(self, context, image=None, system_prompt=None, max_tokens=None):
        self.calls.append({
            "context": list(context),
            "image": image,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


class FakeTTS:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.spoken: List[str] = []

    async def synthesize_async(self, text: str) -> bytes:
        if self.error is not None:
            raise self.error
        self.spoken.append(text)
        return b"audio:" + text.encode()


class FakePlayer:
    def __init__(self):
        self.played: List[bytes] = []
        self.gate: Optional[asyncio.Event] = None

    async def play(self, audio: bytes):
        if self.gate is not None:
            await self.gate.wait()
        self.played.append(audio)


class FakeScreen:
    def __init__(self, snapshots=None, error: Optional[Exception] = None):
        self.snapshots = list(snapshots or ["data:image/png;base64,AAAA"])
        self.error = error
        self.calls: List[bool] = []

    async def capture(self, full_page: bool = False) -> str:
        self.calls.append(full_page)
        if self.error is not None:
            raise self.error
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]

"""Tests for utterance segmentation by silence timer."""

import asyncio

import pytest

from friday.errors import RecognitionError, RecognitionErrorKind
from friday.gateways import RecognitionMode
from friday.recognition import RecognitionSession
from friday.segmenter import UtteranceSegmenter

from tests.helpers import FakeEngine, _run, _settle, _until


def _segmenter(silence: float = 0.05):
    engine = FakeEngine()
    session = RecognitionSession(engine)
    return engine, session, UtteranceSegmenter(session, silence_duration=silence)


async def _start_capture(engine, segmenter, **kwargs):
    task = asyncio.get_running_loop().create_task(segmenter.capture(**kwargs))
    await _until(lambda: engine.mode is RecognitionMode.ACTIVE)
    return task


class TestSilenceTimer:
    def test_fragments_join_after_silence(self):
        async def scenario():
            engine, session, segmenter = _segmenter()
            task = await _start_capture(engine, segmenter)

            engine.say("what's on")
            engine.say("my screen ")
            text = await asyncio.wait_for(task, 1.0)

            assert text == "what's on my screen"
            assert not session.active
            assert not segmenter.timer_pending
            assert not segmenter.capturing

        _run(scenario())

    def test_each_fragment_restarts_the_timer(self):
        async def scenario():
            engine, _, segmenter = _segmenter(silence=0.12)
            task = await _start_capture(engine, segmenter)

            engine.say("one")
            await _settle(0.07)
            engine.say("two")
            await _settle(0.07)
            assert not task.done()

            assert await asyncio.wait_for(task, 1.0) == "one two"

        _run(scenario())

    def test_capture_while_capturing_raises(self):
        async def scenario():
            engine, _, segmenter = _segmenter()
            task = await _start_capture(engine, segmenter)

            with pytest.raises(RuntimeError):
                await segmenter.capture()

            segmenter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        _run(scenario())

    def test_busy_session_is_reported(self):
        async def scenario():
            engine, session, segmenter = _segmenter()
            session.start_passive(lambda text: None)

            with pytest.raises(RecognitionError):
                await segmenter.capture()
            assert not segmenter.capturing
            session.stop()

        _run(scenario())


class TestNoSpeech:
    def test_no_speech_returns_empty_without_waiting(self):
        async def scenario():
            engine, _, segmenter = _segmenter(silence=5.0)
            calls = []
            task = await _start_capture(engine, segmenter, on_no_speech=lambda: calls.append(True))

            engine.fault(RecognitionErrorKind.NO_SPEECH)
            text = await asyncio.wait_for(task, 0.5)

            assert text == ""
            assert calls == [True]
            assert engine.ends == 1

        _run(scenario())

    def test_no_speech_after_fragments_keeps_them(self):
        async def scenario():
            engine, _, segmenter = _segmenter(silence=5.0)
            calls = []
            task = await _start_capture(engine, segmenter, on_no_speech=lambda: calls.append(True))

            engine.say("open the door")
            engine.fault(RecognitionErrorKind.NO_SPEECH)
            text = await asyncio.wait_for(task, 0.5)

            assert text == "open the door"
            assert calls == []
            assert not segmenter.timer_pending

        _run(scenario())


class TestFaultsAndCancel:
    def test_fault_raises_recognition_error(self):
        async def scenario():
            engine, session, segmenter = _segmenter()
            task = await _start_capture(engine, segmenter)

            engine.say("partial")
            engine.fault(RecognitionErrorKind.PERMISSION_DENIED)

            with pytest.raises(RecognitionError) as exc:
                await asyncio.wait_for(task, 0.5)
            assert exc.value.kind is RecognitionErrorKind.PERMISSION_DENIED
            assert not session.active
            assert not segmenter.timer_pending

        _run(scenario())

    def test_cancel_stops_session_and_timer(self):
        async def scenario():
            engine, session, segmenter = _segmenter(silence=5.0)
            task = await _start_capture(engine, segmenter)
            engine.say("never mind")
            await _until(lambda: segmenter.timer_pending)

            segmenter.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task
            assert not session.active
            assert not segmenter.timer_pending
            assert not segmenter.capturing

        _run(scenario())

    def test_cancel_when_idle_is_harmless(self):
        _, session, segmenter = _segmenter()
        segmenter.cancel()
        assert not session.active

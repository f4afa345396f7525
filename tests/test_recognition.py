"""Tests for RecognitionSession - mode exclusion, restarts and stale events."""

from friday.errors import RecognitionErrorKind
from friday.gateways import RecognitionEvent, RecognitionMode
from friday.recognition import RecognitionSession

from tests.helpers import FakeEngine, _run, _settle, _until


class TestModeExclusion:
    def test_second_start_is_rejected(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)

            assert session.start_passive(lambda text: None) is True
            assert session.start_active(lambda text: None) is False
            assert session.start_passive(lambda text: None) is False

            assert engine.begins == [RecognitionMode.PASSIVE]
            assert engine.max_running == 1
            assert session.mode is RecognitionMode.PASSIVE
            session.stop()

        _run(scenario())

    def test_start_after_stop_is_allowed(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)

            session.start_passive(lambda text: None)
            session.stop()
            assert session.start_active(lambda text: None) is True

            assert engine.begins == [RecognitionMode.PASSIVE, RecognitionMode.ACTIVE]
            assert engine.max_running == 1
            session.stop()

        _run(scenario())

    def test_stop_is_idempotent(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)

            session.stop()
            session.start_passive(lambda text: None)
            session.stop()
            session.stop()

            assert engine.ends == 1
            assert not session.active

        _run(scenario())


class TestResults:
    def test_only_final_non_blank_fragments_are_forwarded(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)
            heard = []
            session.start_active(heard.append)

            engine.say("hel", is_final=False)
            engine.say("   ")
            engine.say("  hello there ")
            await _until(lambda: heard)

            assert heard == ["hello there"]
            session.stop()

        _run(scenario())

    def test_events_from_a_stopped_run_are_dropped(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)
            heard = []
            session.start_passive(heard.append)
            old_sink = engine.sink

            session.stop()
            session.start_passive(heard.append)
            old_sink(RecognitionEvent.result("hey friday"))
            engine.say("current run")
            await _until(lambda: heard)

            assert heard == ["current run"]
            session.stop()

        _run(scenario())


class TestRestart:
    def test_engine_end_restarts_same_mode(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine, restart_delay=0.01)
            session.start_passive(lambda text: None)

            engine.finish()
            await _until(lambda: len(engine.begins) == 2)

            assert engine.begins == [RecognitionMode.PASSIVE, RecognitionMode.PASSIVE]
            assert session.restarts == 1
            assert engine.max_running == 1
            session.stop()

        _run(scenario())

    def test_stop_wins_over_pending_restart(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine, restart_delay=0.05)
            session.start_passive(lambda text: None)

            engine.finish()
            await _until(lambda: session.restart_pending)
            session.stop()
            await _settle(0.15)

            assert engine.begins == [RecognitionMode.PASSIVE]
            assert not session.restart_pending
            assert session.restarts == 0

        _run(scenario())

    def test_restarted_run_still_delivers_results(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine, restart_delay=0.01)
            heard = []
            session.start_passive(heard.append)

            engine.finish()
            await _until(lambda: len(engine.begins) == 2)
            engine.say("friday")
            await _until(lambda: heard)

            assert heard == ["friday"]
            session.stop()

        _run(scenario())


class TestFaults:
    def test_fault_stops_session_and_reports(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)
            faults = []
            session.start_active(lambda text: None, faults.append)

            engine.fault(RecognitionErrorKind.PERMISSION_DENIED, "Microphone access denied")
            await _until(lambda: faults)

            assert faults[0].kind is RecognitionErrorKind.PERMISSION_DENIED
            assert not session.active
            assert engine.ends == 1

        _run(scenario())

    def test_no_speech_is_ignored_while_passive(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)
            faults = []
            session.start_passive(lambda text: None, faults.append)

            engine.fault(RecognitionErrorKind.NO_SPEECH)
            await _settle()

            assert faults == []
            assert session.mode is RecognitionMode.PASSIVE
            session.stop()

        _run(scenario())

    def test_no_speech_is_reported_while_active(self):
        async def scenario():
            engine = FakeEngine()
            session = RecognitionSession(engine)
            faults = []
            session.start_active(lambda text: None, faults.append)

            engine.fault(RecognitionErrorKind.NO_SPEECH)
            await _until(lambda: faults)

            assert faults[0].recoverable
            session.stop()

        _run(scenario())

    def test_engine_that_cannot_start_reports_a_fault(self):
        async def scenario():
            engine = FakeEngine(fail_on_begin=RuntimeError("no input device"))
            session = RecognitionSession(engine)
            faults = []

            assert session.start_passive(lambda text: None, faults.append) is True
            await _until(lambda: faults)

            assert faults[0].kind is RecognitionErrorKind.OTHER
            assert "no input device" in str(faults[0])
            assert not session.active

        _run(scenario())

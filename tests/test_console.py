"""Tests for the text front-end."""

import io

from friday.console import FridayConsole
from friday.conversation import Originator
from friday.orchestrator import AssistantState, Orchestrator, Signal

from tests.helpers import FakeEngine, FakeLLM, FakePlayer, FakeScreen, FakeTTS


def _console():
    assistant = Orchestrator(FakeEngine(), FakeLLM(), FakeTTS(), FakePlayer(), FakeScreen())
    out = io.StringIO()
    return assistant, FridayConsole(assistant, out=out), out


def _queued(assistant):
    signals = []
    while not assistant._events.empty():
        signals.append(assistant._events.get_nowait().signal)
    return signals


class TestCommands:
    def test_control_commands_post_events(self):
        assistant, console, _ = _console()

        assert console.execute_command("start\n")
        assert console.execute_command("SCREEN")

        assert _queued(assistant) == [Signal.START, Signal.ANALYZE_SCREEN]

    def test_quit(self):
        _, console, _ = _console()
        assert console.execute_command("quit") is False
        assert console.execute_command("exit") is False

    def test_unknown_and_blank(self):
        _, console, out = _console()
        assert console.execute_command("dance")
        assert console.execute_command("   ")
        assert "Unknown command: dance" in out.getvalue()

    def test_clear(self):
        assistant, console, out = _console()
        assistant.conversation.append("hello", Originator.USER)
        assistant.conversation.set_error("OpenAI API error: 429")

        console.execute_command("clear")

        assert assistant.messages == ()
        assert assistant.error is None
        assert "History cleared." in out.getvalue()


class TestDisplay:
    def test_messages_are_printed(self):
        assistant, _, out = _console()

        message = assistant.conversation.append("what's on my screen", Originator.USER)
        assistant.conversation.tag_screen_context(message.id)
        assistant.conversation.append("A code editor.", Originator.ASSISTANT)

        lines = out.getvalue().splitlines()
        assert lines[0].endswith("You: what's on my screen")
        assert lines[1].endswith("FRIDAY: A code editor.")

    def test_history_marks_screen_context(self):
        assistant, console, out = _console()
        message = assistant.conversation.append("look at this", Originator.USER)
        assistant.conversation.tag_screen_context(message.id)

        console.show_history()

        assert out.getvalue().splitlines()[-1].endswith("You: look at this [screen]")

    def test_empty_history(self):
        _, console, out = _console()
        console.show_history()
        assert "(no messages)" in out.getvalue()

    def test_state_and_new_errors(self):
        assistant, console, out = _console()

        console.show_state(AssistantState.LISTENING)
        assistant.conversation.set_error("Microphone access denied")
        console.show_state(AssistantState.STANDBY)
        console.show_state(AssistantState.STANDBY)

        text = out.getvalue()
        assert "[Listening...]" in text
        assert text.count("Error: Microphone access denied") == 1

"""Tests for the conversation log."""

from friday.conversation import ConversationLog, Originator


def _log_with(count: int) -> ConversationLog:
    log = ConversationLog()
    for i in range(count):
        originator = Originator.USER if i % 2 == 0 else Originator.ASSISTANT
        log.append(f"message {i}", originator)
    return log


class TestHistory:
    def test_history_is_bounded_by_window(self):
        for count in (0, 3, 10, 25):
            log = _log_with(count)
            context = log.history()
            assert len(context) == min(count, 10)
            if count:
                assert context[-1]["content"] == f"message {count - 1}"

    def test_history_maps_roles(self):
        log = _log_with(2)
        assert log.history() == [
            {"role": "user", "content": "message 0"},
            {"role": "assistant", "content": "message 1"},
        ]

    def test_custom_window(self):
        log = _log_with(5)
        assert [m["content"] for m in log.history(2)] == ["message 3", "message 4"]
        assert log.history(0) == []

    def test_full_log_is_kept(self):
        log = _log_with(25)
        assert len(log) == 25
        assert log.messages[0].text == "message 0"


class TestMessages:
    def test_append_creates_unique_ids(self):
        log = ConversationLog()
        a = log.append("hi", Originator.USER)
        b = log.append("hi", Originator.USER)
        assert a.id != b.id
        assert a.is_user
        assert not a.has_screen_context

    def test_tag_screen_context_once(self):
        log = ConversationLog()
        message = log.append("what's on my screen", Originator.USER)

        tagged = log.tag_screen_context(message.id)
        again = log.tag_screen_context(message.id)

        assert tagged.has_screen_context
        assert again is tagged
        assert log.messages[0].has_screen_context
        assert log.tag_screen_context("missing") is None

    def test_subscribers_see_each_append(self):
        log = ConversationLog()
        seen = []
        log.subscribe(lambda m: seen.append(m.text))

        log.append("one", Originator.USER)
        log.append("two", Originator.ASSISTANT)

        assert seen == ["one", "two"]

    def test_failing_subscriber_does_not_break_append(self):
        log = ConversationLog()

        def broken(message):
            raise ValueError("boom")

        log.subscribe(broken)
        log.append("still stored", Originator.USER)
        assert len(log) == 1


class TestClear:
    def test_clear_empties_log_and_error(self):
        log = _log_with(4)
        log.set_error("OpenAI API error: 401")

        log.clear()

        assert len(log) == 0
        assert log.last_error is None
        assert log.history() == []

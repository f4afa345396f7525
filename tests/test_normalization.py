"""Tests for phrase matching and speech cleanup."""

from friday.normalization import contains_any, find_phrase, normalize_text, sanitize_for_speech


class TestNormalizeText:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize_text("  Hey,   FRIDAY!! ") == "hey friday"

    def test_keeps_apostrophes(self):
        assert normalize_text("What's on my screen?") == "what's on my screen"


class TestFindPhrase:
    def test_first_matching_phrase_wins(self):
        phrases = ("hey friday", "friday")
        assert find_phrase("Hey, Friday", phrases) == "hey friday"
        assert find_phrase("friday?", phrases) == "friday"

    def test_empty_text(self):
        assert find_phrase("", ("friday",)) is None
        assert find_phrase("...", ("friday",)) is None

    def test_contains_any(self):
        assert contains_any("Please power down now", ("power down",))
        assert not contains_any("power is down", ("power down",))


class TestSanitizeForSpeech:
    def test_plain_text_unchanged(self):
        assert sanitize_for_speech("It is three o'clock.") == "It is three o'clock."

    def test_markdown_is_removed(self):
        text = "# Steps\n- **Open** the [docs](https://example.com)\n- Run `make`"
        assert sanitize_for_speech(text) == "Steps\nOpen the docs\nRun make"

    def test_code_blocks_and_urls_dropped(self):
        text = "Try this:\n```python\nprint('hi')\n```\nSee https://example.com for more."
        assert sanitize_for_speech(text) == "Try this:\nSee for more."

    def test_snake_case_survives(self):
        assert sanitize_for_speech("call get_config first") == "call get_config first"

    def test_markup_only_is_empty(self):
        assert sanitize_for_speech("```\ncode\n```") == ""

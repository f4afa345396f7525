"""
Text normalization - phrase matching on transcripts and cleanup before speech
"""

import re
from typing import Iterable, Optional


def normalize_text(text: str) -> str:
    """
    Normalize transcribed text for phrase matching
    - lowercase
    - clean punctuation
    - collapse whitespace
    """
    text = text.lower().strip()

    # Remove punctuation except apostrophes
    text = re.sub(r"[^\w\s']", " ", text)

    return " ".join(text.split())


def find_phrase(text: str, phrases: Iterable[str]) -> Optional[str]:
    """Return the first phrase contained in ``text`` (case-insensitive), or None."""
    normalized = normalize_text(text)
    if not normalized:
        return None
    for phrase in phrases:
        if normalize_text(phrase) in normalized:
            return phrase
    return None


def contains_any(text: str, phrases: Iterable[str]) -> bool:
    return find_phrase(text, phrases) is not None


# Markdown / markup that reads badly when spoken
_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`]*)`")
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_HTML_TAG = re.compile(r"<[^>]+>")
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_BULLET = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^\s*>\s?", re.MULTILINE)
_EMPHASIS = re.compile(r"(\*\*|__|\*|~~)(?=\S)(.+?)(?<=\S)\1")
_URL = re.compile(r"https?://\S+")


def sanitize_for_speech(text: str) -> str:
    """
    Strip markdown and markup so TTS reads plain sentences.

    Code blocks are dropped entirely, links keep their label, bullets and
    headings lose their markers, and bare URLs are removed.
    """
    text = _CODE_BLOCK.sub(" ", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = _IMAGE.sub(r"\1", text)
    text = _LINK.sub(r"\1", text)
    text = _HTML_TAG.sub(" ", text)
    text = _HEADING.sub("", text)
    text = _BULLET.sub("", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _EMPHASIS.sub(r"\2", text)
    text = _URL.sub("", text)

    lines = [" ".join(line.split()) for line in text.splitlines()]
    return "\n".join(line for line in lines if line).strip()


if __name__ == "__main__":
    tests = [
        "Hey, Friday!",
        "**Sure.** Here's a [link](https://example.com) and `code`.",
        "# Steps\n- open the file\n- save it",
    ]

    for test in tests:
        print(f"Input:  {test!r}")
        print(f"Match:  {normalize_text(test)!r}")
        print(f"Speech: {sanitize_for_speech(test)!r}")
        print()

"""
Conversation log - ordered record of exchanged messages.

The full log is kept for display; only a trailing window is handed to the
generation service as context.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10


class Originator(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    text: str
    originator: Originator
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)
    has_screen_context: bool = False

    @property
    def is_user(self) -> bool:
        return self.originator is Originator.USER

    def as_context(self) -> Dict[str, str]:
        return {"role": self.originator.value, "content": self.text}


MessageListener = Callable[[ConversationMessage], None]


class ConversationLog:
    """Append-only message history plus the last user-visible error."""

    def __init__(self):
        self._messages: List[ConversationMessage] = []
        self._listeners: List[MessageListener] = []
        self.last_error: Optional[str] = None

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> Tuple[ConversationMessage, ...]:
        """Read-only view, oldest first."""
        return tuple(self._messages)

    def subscribe(self, listener: MessageListener):
        """Call ``listener`` for every message appended from now on."""
        self._listeners.append(listener)

    def append(self, text: str, originator: Originator) -> ConversationMessage:
        message = ConversationMessage(text=text, originator=Originator(originator))
        self._messages.append(message)
        for listener in self._listeners:
            try:
                listener(message)
            except Exception as e:
                logger.warning(f"Message listener failed: {e}")
        return message

    def history(self, window: int = HISTORY_WINDOW) -> List[Dict[str, str]]:
        """Return the last ``window`` messages as role/content pairs, oldest first."""
        if window <= 0:
            return []
        return [message.as_context() for message in self._messages[-window:]]

    def tag_screen_context(self, message_id: str) -> Optional[ConversationMessage]:
        """Mark a message as having triggered a screen capture. Only applied once."""
        for index, message in enumerate(self._messages):
            if message.id != message_id:
                continue
            if message.has_screen_context:
                return message
            tagged = replace(message, has_screen_context=True)
            self._messages[index] = tagged
            return tagged
        return None

    def set_error(self, message: str):
        self.last_error = message

    def clear_error(self):
        self.last_error = None

    def clear(self):
        """Empty the log and reset the trailing error."""
        self._messages.clear()
        self.last_error = None

#!/usr/bin/env python3
"""
FRIDAY Console - text front-end for the voice assistant
Shows state, messages and errors; accepts control commands on stdin
"""

import asyncio
import logging
import sys
from typing import Optional, TextIO

from .conversation import ConversationMessage
from .orchestrator import AssistantState, Orchestrator

logger = logging.getLogger(__name__)

STATE_LABELS = {
    AssistantState.STANDBY: "Standby - say 'Hey Friday'",
    AssistantState.LISTENING: "Listening...",
    AssistantState.THINKING: "Thinking...",
    AssistantState.SPEAKING: "Speaking...",
}

HELP = "Commands: start, stop, screen, clear, history, help, quit"


class FridayConsole:
    """Text interface to a running Orchestrator"""

    def __init__(self, assistant: Orchestrator, out: TextIO = sys.stdout):
        self.assistant = assistant
        self.out = out
        self._last_error: Optional[str] = None

        assistant.add_state_listener(self.show_state)
        assistant.conversation.subscribe(self.show_message)

    def _print(self, text: str):
        print(text, file=self.out, flush=True)

    def show_state(self, state: AssistantState):
        self._print(f"[{STATE_LABELS[state]}]")
        error = self.assistant.error
        if error and error != self._last_error:
            self._print(f"Error: {error}")
        self._last_error = error

    def show_message(self, message: ConversationMessage):
        who = "You" if message.is_user else "FRIDAY"
        stamp = message.timestamp.strftime("%H:%M:%S")
        marker = " [screen]" if message.has_screen_context else ""
        self._print(f"{stamp} {who}: {message.text}{marker}")

    def show_history(self):
        messages = self.assistant.messages
        if not messages:
            self._print("(no messages)")
            return
        for message in messages:
            self.show_message(message)

    def execute_command(self, text: str) -> bool:
        """
        Run one console command.

        Returns:
            False when the console should exit
        """
        command = text.strip().lower()

        if command in ("quit", "exit", "q"):
            return False
        if command in ("start", "wake"):
            self.assistant.start()
        elif command in ("stop", "sleep"):
            self.assistant.stop()
        elif command == "screen":
            self.assistant.trigger_screen_analysis()
        elif command == "clear":
            self.assistant.clear_history()
            self._last_error = None
            self._print("History cleared.")
        elif command == "history":
            self.show_history()
        elif command in ("help", "?"):
            self._print(HELP)
        elif command:
            self._print(f"Unknown command: {command}. {HELP}")
        return True

    async def repl(self):
        """Read commands until quit or EOF"""
        loop = asyncio.get_running_loop()
        self._print("FRIDAY online. " + HELP)

        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            try:
                if not self.execute_command(line):
                    break
            except Exception as e:
                logger.error(f"Console command failed: {e}")
                self._print(f"Error: {e}")

        self._print("Goodbye.")

    async def run(self):
        """Run the assistant until the user quits"""
        assistant_task = asyncio.create_task(self.assistant.run())
        try:
            await self.repl()
        finally:
            self.assistant.shutdown()
            await assistant_task

"""Stdout notification adapter.

Implements NotifierPort by printing customer messages to the terminal
and asking for confirmation on stdin.
"""

import asyncio
import logging
from collections.abc import Callable

from storefront.core.ports import NotifierPort

logger = logging.getLogger(__name__)

YES_ANSWERS = frozenset({"y", "yes"})


class StdoutNotifier(NotifierPort):
    """Prints messages to stdout with human-readable formatting."""

    def __init__(
        self,
        assume_yes: bool = False,
        input_func: Callable[[str], str] | None = None,
    ):
        """Initialize stdout notifier.

        Args:
            assume_yes: If True, every confirmation is accepted without
                prompting (non-interactive use).
            input_func: Function used to read the answer to a prompt.
                Defaults to the builtin input.
        """
        self.assume_yes = assume_yes
        self.input_func = input_func

    async def info(self, title: str, message: str) -> None:
        await asyncio.to_thread(print, self._format_message("INFO", title, message))

    async def error(self, title: str, message: str) -> None:
        await asyncio.to_thread(print, self._format_message("ERROR", title, message))

    async def confirm(self, title: str, message: str) -> bool:
        """Ask a yes/no question. Anything but y/yes is a refusal."""
        if self.assume_yes:
            logger.debug(f"Auto-confirmed: {title}")
            return True

        await asyncio.to_thread(print, self._format_message("CONFIRM", title, message))
        try:
            read = self.input_func or input
            answer = await asyncio.to_thread(read, "Confirm? [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in YES_ANSWERS

    @staticmethod
    def _format_message(kind: str, title: str, message: str) -> str:
        """Format a message block."""
        lines = [
            "-" * 60,
            f"[{kind}] {title}",
            message,
            "-" * 60,
        ]
        return "\n".join(lines)

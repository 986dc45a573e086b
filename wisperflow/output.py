"""Output handlers for formatted text."""

from __future__ import annotations

import logging
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import pyperclip

from wisperflow.config import Destination

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a delivery. The clipboard write always succeeded if this exists."""

    pasted: bool = False
    warning: str | None = None


class OutputHandler(ABC):
    """Abstract base class for output handlers."""

    @abstractmethod
    def output(self, text: str) -> None:
        """Output the text."""
        ...


class ClipboardOutput(OutputHandler):
    """Outputs text to the system clipboard."""

    def output(self, text: str) -> None:
        """Copy text to clipboard."""
        pyperclip.copy(text)


class PasteKeystroke(OutputHandler):
    """Sends the platform paste shortcut to the focused window."""

    def __init__(self, settle_s: float = 0.05) -> None:
        self._settle_s = settle_s
        self._controller = None

    def output(self, text: str) -> None:
        """Paste whatever is on the clipboard; ``text`` is already there."""
        from pynput.keyboard import Controller, Key

        if self._controller is None:
            self._controller = Controller()
        modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl

        # Small delay to ensure the clipboard owner has published the text
        time.sleep(self._settle_s)
        with self._controller.pressed(modifier):
            self._controller.press("v")
            self._controller.release("v")


class OutputDispatcher:
    """Writes text to the clipboard and optionally pastes it at the cursor."""

    def __init__(
        self,
        clipboard: OutputHandler | None = None,
        paster: OutputHandler | None = None,
    ) -> None:
        self._clipboard = clipboard or ClipboardOutput()
        self._paster = paster or PasteKeystroke()

    def deliver(self, text: str, destination: Destination) -> DeliveryResult:
        """
        Deliver text to the configured destination.

        The clipboard write comes first and its errors propagate. A failed
        paste keystroke only produces a warning: the text stays on the
        clipboard.
        """
        self._clipboard.output(text)

        if destination != Destination.CURSOR:
            return DeliveryResult()

        try:
            self._paster.output(text)
        except Exception as e:
            logger.warning("Paste keystroke failed: %s", e)
            return DeliveryResult(
                pasted=False,
                warning=f"Could not paste into the focused window ({e}); text is on the clipboard",
            )
        return DeliveryResult(pasted=True)

"""Global push-to-talk hotkey monitoring based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from wisperflow.errors import ConfigError

logger = logging.getLogger(__name__)

# Names used by the settings file (and the original CLI) mapped to pynput Key attributes
KEY_ALIASES = {
    "right alt": "alt_r",
    "left alt": "alt_l",
    "alt": "alt",
    "right option": "alt_r",
    "left option": "alt_l",
    "right ctrl": "ctrl_r",
    "left ctrl": "ctrl_l",
    "ctrl": "ctrl",
    "right shift": "shift_r",
    "left shift": "shift_l",
    "shift": "shift",
    "right cmd": "cmd_r",
    "left cmd": "cmd_l",
    "right meta": "cmd_r",
    "left meta": "cmd_l",
    "cmd": "cmd",
    "caps lock": "caps_lock",
    "space": "space",
    "tab": "tab",
    "escape": "esc",
    "esc": "esc",
    "insert": "insert",
    "pause": "pause",
    "scroll lock": "scroll_lock",
    "menu": "menu",
}


def parse_hotkey(name: str) -> Any:
    """
    Resolve a configured hotkey name to a pynput key.

    Accepts names like ``RIGHT ALT`` or ``F13``, pynput names like
    ``Key.alt_r``, and single characters.
    """
    from pynput import keyboard

    raw = name.strip()
    if not raw:
        raise ConfigError("Hotkey is empty")

    if len(raw) == 1:
        return keyboard.KeyCode.from_char(raw.lower())

    normalized = raw.lower()
    if normalized.startswith("key."):
        normalized = normalized[len("key."):]
    attr = KEY_ALIASES.get(normalized.replace("_", " "), normalized.replace(" ", "_"))

    key = getattr(keyboard.Key, attr, None)
    if key is None:
        raise ConfigError(f"Unknown hotkey: {name!r}")
    return key


class HotkeyMonitor:
    """
    Edge-triggered press/release events for one hotkey.

    Auto-repeat delivers repeated presses while the key is held; only the
    first one is forwarded. A release is only forwarded after a forwarded
    press.
    """

    def __init__(
        self,
        hotkey: Any,
        on_pressed: Callable[[], None],
        on_released: Callable[[], None],
        quit_key: Any = None,
        quit_modifier: Any = None,
        on_quit: Callable[[], None] | None = None,
    ) -> None:
        self._hotkey = hotkey
        self._on_pressed = on_pressed
        self._on_released = on_released
        self._quit_key = quit_key
        self._quit_modifier = quit_modifier
        self._on_quit = on_quit

        self._key_down = False
        self._modifier_down = False
        self._lock = threading.Lock()
        self._listener: Any = None

    def handle_press(self, key: Any) -> None:
        if self._quit_modifier is not None and key == self._quit_modifier:
            self._modifier_down = True
            return

        if key != self._hotkey:
            return
        with self._lock:
            if self._key_down:
                return
            self._key_down = True
        self._on_pressed()

    def handle_release(self, key: Any) -> bool | None:
        """Returns False to stop the pynput listener (quit chord)."""
        if self._quit_modifier is not None and key == self._quit_modifier:
            self._modifier_down = False
            return None

        if self._quit_key is not None and key == self._quit_key and self._modifier_down:
            if self._on_quit is not None:
                self._on_quit()
            return False

        if key != self._hotkey:
            return None
        with self._lock:
            if not self._key_down:
                return None
            self._key_down = False
        self._on_released()
        return None

    def _safe_press(self, key: Any) -> None:
        try:
            self.handle_press(key)
        except Exception:
            logger.exception("Hotkey press handler failed")

    def _safe_release(self, key: Any) -> bool | None:
        try:
            return self.handle_release(key)
        except Exception:
            logger.exception("Hotkey release handler failed")
            return None

    def start(self) -> None:
        from pynput import keyboard

        if self._listener is not None:
            return
        self._listener = keyboard.Listener(
            on_press=self._safe_press,
            on_release=self._safe_release,
        )
        self._listener.start()

    def join(self) -> None:
        if self._listener is not None:
            self._listener.join()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

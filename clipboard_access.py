"""
clipboard_access.py – System clipboard writes.

A thin wrapper over pyperclip so that the session controller depends on a
single write_all() method it can be handed a fake for in tests.  Only
writing is supported; the clipboard is never read.
"""

import logging

import pyperclip

logger = logging.getLogger("SecurePasswordManager")


class ClipboardError(Exception):
    """Base class for clipboard failures."""


class ClipboardUnavailable(ClipboardError):
    """No clipboard mechanism is available, or the write was rejected."""


class Clipboard:
    """Writes text to the system clipboard through pyperclip."""

    def write_all(self, text: str) -> None:
        """
        Replace the clipboard contents with *text*.

        Raises ClipboardUnavailable when pyperclip has no working backend
        (e.g. no xclip/xsel/wl-copy on Linux, or a headless session).
        """
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            logger.warning("Clipboard write failed: %s", exc)
            raise ClipboardUnavailable(str(exc) or "clipboard unavailable") from exc

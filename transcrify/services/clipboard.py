"""System clipboard adapter."""

import logging

import pyperclip

logger = logging.getLogger(__name__)


class Clipboard:
    """Copies transcripts to the system clipboard. Never raises."""

    def copy(self, text: str) -> bool:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.warning(f"Clipboard unavailable, transcript not copied: {e}")
            return False
        logger.debug("Text copied to clipboard.")
        return True

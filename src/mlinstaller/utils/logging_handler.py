"""
Event Manager Logging Handler for the MelonLoader Installer

This module provides a logging handler that bridges Python's standard
logging system with the installer's event bus, so a front end can show log
lines as status messages.
"""

import logging
import traceback
from typing import Optional

from mlinstaller.services.events import EventManager, Events


class EventManagerHandler(logging.Handler):
    """
    Custom logging handler that forwards log records to the event manager.
    """

    def __init__(self, event_manager: Optional[EventManager] = None, level: int = logging.NOTSET):
        """
        Initialize the event manager logging handler.

        Args:
            event_manager: The event manager instance to forward messages to.
                          If None, the handler will silently ignore log records.
            level: The minimum log level to handle (default: NOTSET)
        """
        super().__init__(level)
        self.event_manager = event_manager

        if not self.formatter:
            self.setFormatter(logging.Formatter('%(name)s - %(levelname)s - %(message)s'))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if self.event_manager is None:
                return

            formatted_message = self.format(record)

            self.event_manager.emit(Events.STATUS_MESSAGE,
                                    message=formatted_message,
                                    message_type=record.levelname.lower())

        except Exception:
            self.handleError(record)

    def formatException(self, ei) -> str:
        try:
            return ''.join(traceback.format_exception(*ei))
        except Exception:
            return f"Exception formatting failed: {ei[1] if ei and len(ei) > 1 else 'Unknown exception'}"

    def set_event_manager(self, event_manager: Optional[EventManager]) -> None:
        """Set or update the event manager instance, or None to disable."""
        self.event_manager = event_manager

    def close(self) -> None:
        self.event_manager = None
        super().close()


def add_event_manager_handler_to_logger(
    logger: logging.Logger,
    event_manager: Optional[EventManager] = None,
    level: int = logging.INFO,
    formatter: Optional[logging.Formatter] = None
) -> EventManagerHandler:
    """
    Add an EventManagerHandler to an existing logger.

    Returns:
        EventManagerHandler: The handler that was added to the logger
    """
    handler = EventManagerHandler(event_manager, level)

    if formatter:
        handler.setFormatter(formatter)

    logger.addHandler(handler)
    return handler

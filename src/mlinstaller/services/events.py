"""
Event Management System for the MelonLoader Installer

This module provides an event bus so a front end can follow catalog refreshes,
installs and uninstalls without being coupled to the core. It uses the Blinker
library for signal dispatching with weak reference support.
"""

import logging
from typing import Optional, Callable

from blinker import Namespace


class EventManager:
    """
    Central event management system using Blinker signals.

    Components emit named events with keyword payloads; subscribers receive
    the sender followed by the payload.
    """

    def __init__(self):
        """Initialize the event manager."""
        self.logger = logging.getLogger("MLInstaller")

        self._namespace = Namespace()

        self.logger.debug("Event manager initialized with Blinker backend")

    def subscribe(self, event_name: str, callback: Callable, weak: bool = True) -> bool:
        """
        Subscribe to an event.

        Args:
            event_name: Name of the event to subscribe to
            callback: Function to call when the event is emitted
            weak: Whether to use weak references (default: True)

        Returns:
            bool: True if subscription was successful
        """
        try:
            signal = self._namespace.signal(event_name)
            signal.connect(callback, weak=weak)

            self.logger.debug(f"Subscribed to event '{event_name}': {callback}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to subscribe to event '{event_name}': {e}")
            return False

    def unsubscribe(self, event_name: str, callback: Callable) -> bool:
        """
        Unsubscribe from an event.

        Returns:
            bool: True if unsubscription was successful
        """
        try:
            signal = self._namespace.signal(event_name)

            signal.disconnect(receiver=callback)

            self.logger.debug(f"Unsubscribed from event '{event_name}': {callback}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to unsubscribe from event '{event_name}': {e}")
            return False

    def emit(self, event_name: str, **kwargs) -> int:
        """
        Emit an event to all subscribers.

        Args:
            event_name: Name of the event to emit
            **kwargs: Keyword arguments to pass to callbacks

        Returns:
            int: Number of callbacks that were called
        """
        try:
            signal = self._namespace.signal(event_name)

            results = signal.send(self, **kwargs)

            return len(results)

        except Exception as e:
            self.logger.error(f"Failed to emit event '{event_name}': {e}")
            return 0


class Events:
    """Event names used throughout the installer."""

    # Application events
    APP_INITIALIZED = "app_initialized"
    APP_SHUTDOWN = "app_shutdown"

    # Catalog events
    VERSIONS_REFRESHED = "versions_refreshed"
    LOCAL_BUILD_CHANGED = "local_build_changed"

    # Installation events
    INSTALLATION_STARTED = "installation_started"
    INSTALLATION_PROGRESS = "installation_progress"
    INSTALLATION_FINISHED = "installation_finished"
    UNINSTALL_FINISHED = "uninstall_finished"

    # Download events
    DOWNLOAD_STARTED = "download_started"
    DOWNLOAD_PROGRESS = "download_progress"
    DOWNLOAD_FINISHED = "download_finished"

    # Status events
    STATUS_MESSAGE = "status_message"


# Global event manager instance (will be initialized by the application)
event_manager: Optional[EventManager] = None


def get_event_manager() -> EventManager:
    """
    Get the global event manager instance.

    Raises:
        RuntimeError: If event manager hasn't been initialized
    """
    if event_manager is None:
        raise RuntimeError("Event manager not initialized")
    return event_manager


def initialize_event_manager() -> bool:
    """
    Initialize the global event manager instance.

    Returns:
        bool: True if initialization was successful
    """
    global event_manager
    try:
        event_manager = EventManager()
        return True
    except Exception as e:
        logging.getLogger("MLInstaller").error(f"Failed to initialize global event manager: {e}")
        return False


def shutdown_event_manager():
    """Shutdown the global event manager instance."""
    global event_manager
    event_manager = None

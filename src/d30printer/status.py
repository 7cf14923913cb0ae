"""Connection/printing status tracking with change observers."""

from enum import Enum
from typing import Callable


class PrinterStatus(Enum):
    """Connection state of a printer instance."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    PRINTING = "printing"


StatusCallback = Callable[[PrinterStatus], None]


class StatusTracker:
    """
    Holds the current status and notifies observers on every change.

    Observers are called in subscription order. Setting the status it
    already has is a no-op.
    """

    def __init__(self, initial: PrinterStatus = PrinterStatus.DISCONNECTED):
        self._status = initial
        self._observers: list[StatusCallback] = []

    @property
    def status(self) -> PrinterStatus:
        return self._status

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            A callable that removes the observer again
        """
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def set(self, status: PrinterStatus):
        """Move to status and notify observers if it changed."""
        if status is self._status:
            return
        self._status = status
        for callback in list(self._observers):
            callback(status)

"""Exception hierarchy for the D30 driver."""


class PrinterError(Exception):
    """Base exception for all printer errors."""

    pass


class UnsupportedPlatformError(PrinterError):
    """Bluetooth LE is not available in this runtime."""

    pass


class ConnectionError(PrinterError):
    """Error connecting to or communicating with printer."""

    pass


class DeviceNotFoundError(ConnectionError):
    """No printer was selected (scan found nothing)."""

    pass


class HandshakeError(ConnectionError):
    """The printer service or write characteristic is missing."""

    pass


class NotConnectedError(ConnectionError):
    """Operation requires a connected printer."""

    pass


class PrintError(PrinterError):
    """
    Error during print operation.

    Attributes:
        lines_sent: Raster rows fully written before the failure. The
            printer may have accepted fewer; this is a lower bound on
            what left the host, not what was printed.
    """

    def __init__(self, message: str, lines_sent: int = 0):
        super().__init__(message)
        self.lines_sent = lines_sent


class ImageError(PrinterError):
    """Error processing image for printing."""

    pass

"""
Custom exception classes for the FLIR PTU driver.

Transport exchanges report failures as ResponseOutcome values; these
exceptions cover lifecycle and caller errors.
"""


class PTUException(Exception):
    """Base exception for all PTU driver errors."""
    pass


class NotConnectedError(PTUException):
    """Raised when operation requires connection but the PTU is disconnected."""
    pass


class DriverError(PTUException):
    """General driver error."""
    pass


class InvalidValueError(PTUException):
    """Invalid parameter value."""
    pass


class CommandTooLongError(InvalidValueError):
    """Command text exceeds the configured maximum length."""
    pass


class PortIOError(PTUException):
    """Byte stream failure (disconnect, closed port, OS error)."""
    pass


class PortNotFoundError(DriverError):
    """Serial port or TCP endpoint does not exist or cannot be reached."""
    pass


class PortInUseError(DriverError):
    """Serial port is already open by another application."""
    pass


class HandshakeError(DriverError):
    """Failed to establish communication with the controller."""
    pass

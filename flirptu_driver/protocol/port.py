"""
Byte-stream port used by the transport.

The transport only needs blocking writes and two kinds of bounded reads.
BytePort allows transparent substitution between a real serial line, the
controller's TCP server and the simulator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import serial
from serial import SerialException

from flirptu_driver.config.models import ConnectionConfig
from flirptu_driver.utils.exceptions import (
    PortIOError,
    PortNotFoundError,
    PortInUseError,
)


logger = logging.getLogger(__name__)


class BytePort(ABC):
    """Abstract duplex byte channel."""

    @abstractmethod
    def open(self) -> None:
        """
        Open the channel.

        Raises:
            PortNotFoundError: If the device or endpoint does not exist.
            PortInUseError: If the device is held by another process.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the channel. Closing a closed port is a no-op."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def write(self, data: bytes) -> int:
        """
        Write bytes to the channel.

        Returns:
            Number of bytes written.

        Raises:
            PortIOError: On channel failure.
        """
        pass

    @abstractmethod
    def read_until(self, stop: bytes, timeout: float) -> bytes:
        """
        Read until `stop` is received or `timeout` seconds elapse.

        Returns:
            Bytes read, ending with `stop` only if it arrived in time.

        Raises:
            PortIOError: On channel failure.
        """
        pass

    @abstractmethod
    def read_exact(self, size: int, timeout: float) -> bytes:
        """
        Read `size` bytes, giving up after `timeout` seconds.

        Returns:
            Up to `size` bytes; fewer means the timeout expired.

        Raises:
            PortIOError: On channel failure.
        """
        pass


class SerialBytePort(BytePort):
    """
    BytePort backed by pyserial.

    Accepts plain device names (/dev/ttyUSB0, COM3) and pyserial URLs, so the
    controller's TCP server is reached with socket://host:port.
    """

    def __init__(self, config: ConnectionConfig):
        self._config = config
        self._serial: Optional[serial.SerialBase] = None

    @property
    def name(self) -> str:
        return self._config.url

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        if self.is_open:
            logger.warning(f"{self.name} already open")
            return

        logger.info(f"Opening {self.name}")

        try:
            self._serial = serial.serial_for_url(
                self._config.url,
                baudrate=self._config.baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=1.0,
                write_timeout=5.0,
            )
        except (SerialException, ValueError) as e:
            error_msg = str(e).lower()
            if "access" in error_msg or "permission" in error_msg or "busy" in error_msg:
                raise PortInUseError(f"{self.name} is already in use by another application") from e
            raise PortNotFoundError(f"Failed to open {self.name}: {e}") from e

    def close(self) -> None:
        if self._serial is not None:
            try:
                self._serial.close()
            except SerialException as e:
                logger.warning(f"Error while closing {self.name}: {e}")
            logger.info(f"{self.name} closed")
        self._serial = None

    def _require_open(self) -> serial.SerialBase:
        if not self.is_open:
            raise PortIOError(f"{self.name} is not open")
        return self._serial

    def write(self, data: bytes) -> int:
        port = self._require_open()
        try:
            written = port.write(data)
            port.flush()
        except (SerialException, OSError) as e:
            raise PortIOError(f"Write to {self.name} failed: {e}") from e
        return written if written is not None else len(data)

    def read_until(self, stop: bytes, timeout: float) -> bytes:
        port = self._require_open()
        original_timeout = port.timeout
        port.timeout = timeout
        try:
            return bytes(port.read_until(expected=stop))
        except (SerialException, OSError) as e:
            raise PortIOError(f"Read from {self.name} failed: {e}") from e
        finally:
            port.timeout = original_timeout

    def read_exact(self, size: int, timeout: float) -> bytes:
        port = self._require_open()
        original_timeout = port.timeout
        port.timeout = timeout
        try:
            return bytes(port.read(size))
        except (SerialException, OSError) as e:
            raise PortIOError(f"Read from {self.name} failed: {e}") from e
        finally:
            port.timeout = original_timeout

from datetime import datetime, timedelta

import pytest
import serial

from serial_logger.controller import SessionController
from serial_logger.session import SessionLogger


class FakeSerial:
    """Stands in for serial.Serial: queued input, captured output."""

    def __init__(self, port=None, baudrate=9600, timeout=None, write_timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.is_open = True
        self.written = bytearray()
        self.write_limit = None
        self.write_error = None
        self.read_error = None
        self.close_error = None
        self._incoming = []

    def feed(self, data: bytes) -> None:
        self._incoming.append(data)

    @property
    def in_waiting(self) -> int:
        if self.read_error:
            raise self.read_error
        return len(self._incoming[0]) if self._incoming else 0

    def read(self, size=1) -> bytes:
        if not self._incoming:
            return b""
        return self._incoming.pop(0)

    def write(self, data: bytes) -> int:
        if self.write_error:
            raise self.write_error
        if not self.is_open:
            raise serial.PortNotOpenError()
        accepted = data if self.write_limit is None else data[: self.write_limit]
        self.written.extend(accepted)
        return len(accepted)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False
        if self.close_error:
            raise self.close_error


class FakePorts:
    """Factory handing out FakeSerial objects; refuses ports listed in ``missing``."""

    def __init__(self):
        self.opened = []
        self.missing = set()
        self.read_error = None

    def __call__(self, **kwargs):
        port = kwargs["port"]
        if port in self.missing:
            raise serial.SerialException(f"could not open port {port}: No such file or directory")
        ser = FakeSerial(**kwargs)
        ser.read_error = self.read_error
        self.opened.append(ser)
        return ser

    @property
    def last(self) -> FakeSerial:
        return self.opened[-1]


class StepClock:
    def __init__(self, start=datetime(2024, 5, 1, 12, 30, 0, 250000)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(milliseconds=125)
        return current


@pytest.fixture
def ports():
    return FakePorts()


@pytest.fixture
def session():
    return SessionLogger(clock=StepClock())


@pytest.fixture
def controller(session, ports):
    return SessionController(session=session, serial_factory=ports)

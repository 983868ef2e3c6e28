from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import serial
from serial.tools import list_ports

from .config import BAUD_RATES, DEFAULT_BAUD, ENCODING, LINE_TERMINATOR, READ_TIMEOUT, WRITE_TIMEOUT
from .errors import AlreadyOpen, DeviceUnavailable, NotConnected, NotOpen, ReadFailed, WriteFailed
from .session import Direction, LogEntry, SessionLogger


logger = logging.getLogger(__name__)

SerialFactory = Callable[..., Any]


class ConnectionState(enum.Enum):
    DISCONNECTED = "Disconnected"
    CONNECTED = "Connected"


@dataclass(frozen=True)
class PortConfig:
    port: str
    baudrate: int = DEFAULT_BAUD

    def __post_init__(self) -> None:
        if not self.port:
            raise ValueError("No port selected")
        if self.baudrate not in BAUD_RATES:
            raise ValueError(f"Unsupported baud rate: {self.baudrate}")


def available_ports() -> list[str]:
    return [p.device for p in list_ports.comports()]


def describe_ports() -> list[tuple[str, str]]:
    return [(p.device, p.description or "") for p in list_ports.comports()]


class ConnectionManager:
    """Owns the one serial handle of a session.

    Every line written and every chunk read while connected is recorded in the
    session logger; nothing else touches the handle.
    """

    def __init__(self, session: SessionLogger, serial_factory: SerialFactory = serial.Serial):
        self._session = session
        self._serial_factory = serial_factory
        self._ser: Optional[Any] = None
        self._config: Optional[PortConfig] = None

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self._ser is not None else ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self._ser is not None

    @property
    def active_config(self) -> Optional[PortConfig]:
        return self._config

    def connect(self, config: PortConfig) -> None:
        if self._ser is not None:
            raise AlreadyOpen(self._config.port if self._config else "")
        try:
            ser = self._serial_factory(
                port=config.port,
                baudrate=config.baudrate,
                timeout=READ_TIMEOUT,
                write_timeout=WRITE_TIMEOUT,
            )
        except (serial.SerialException, ValueError, OSError) as exc:
            logger.warning("open %s failed: %s", config.port, exc)
            raise DeviceUnavailable(config.port, str(exc)) from exc

        self._ser = ser
        self._config = config
        logger.info("connected to %s at %d baud", config.port, config.baudrate)

    def disconnect(self) -> None:
        if self._ser is None:
            raise NotOpen()
        ser, port = self._ser, self._config.port if self._config else ""
        self._ser = None
        self._config = None
        try:
            ser.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("closing %s reported an error: %s", port, exc)
        logger.info("disconnected from %s", port)

    def close(self) -> None:
        if self._ser is not None:
            self.disconnect()

    def send(self, line: str) -> LogEntry:
        if self._ser is None:
            raise NotConnected()
        data = (line + LINE_TERMINATOR).encode(ENCODING, errors="replace")
        try:
            written = self._ser.write(data)
            self._ser.flush()
        except (serial.SerialException, OSError) as exc:
            raise WriteFailed(str(exc)) from exc
        if not written or written < len(data):
            raise WriteFailed(f"wrote {written or 0} of {len(data)} bytes")
        return self._session.record(Direction.SENT, line)

    def poll_incoming(self) -> Iterator[str]:
        """Yield each non-empty chunk currently waiting on the port.

        A chunk is recorded as received before it is yielded. The generator ends
        as soon as no more input is waiting; call again for later data.
        """
        while self._ser is not None:
            try:
                waiting = self._ser.in_waiting
                if not waiting:
                    return
                chunk = self._ser.read(waiting)
            except (serial.SerialException, OSError) as exc:
                logger.warning("read failed: %s", exc)
                raise ReadFailed(str(exc)) from exc
            if not chunk:
                return
            text = chunk.decode(ENCODING, errors="replace").strip()
            if not text:
                continue
            self._session.record(Direction.RECEIVED, text)
            yield text
